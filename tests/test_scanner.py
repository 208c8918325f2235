import datetime
import os

import pytest
from sqlmodel import Session, select

from longbox import scanner as scanner_module
from longbox.config import ScannerConfig
from longbox.errors import ScanError
from longbox.models import Page
from longbox.scanner import FileOutcome, Scanner, start_background_scan

from conftest import patch_central_directory

FOO_2020 = b"""<?xml version="1.0"?>
<ComicInfo>
  <Series>Foo</Series>
  <Number>1</Number>
  <Year>2020</Year>
  <Publisher>Acme</Publisher>
</ComicInfo>"""


def _bump_mtime(path, seconds=10):
    st = path.stat()
    os.utime(path, (st.st_atime, st.st_mtime + seconds))


def test_end_to_end_series_grouping(store, library, make_cbz):
    path = make_cbz(
        "Foo/Foo 001.cbz",
        ["01.jpg", "02.jpg", "03.jpg", "04.jpg", "05.jpg", ("ComicInfo.xml", FOO_2020)],
    )

    stats = Scanner(store).run(library)
    assert stats["indexed"] == 1

    [issue] = store.all()
    assert issue.filepath == str(path.resolve())
    assert issue.series == "Foo"
    assert issue.publisher == "Acme"
    assert issue.released_at == datetime.date(2020, 1, 1)
    assert issue.size == path.stat().st_size

    user = store.verify_or_create_user("reader", "secret")
    mtime = datetime.datetime.fromtimestamp(path.stat().st_mtime)
    assert store.unread_grouped_by_series(user) == [("Foo", mtime)]
    assert len(store.pages(issue.id)) == 5
    assert [i.id for i in store.search("foo")] == [issue.id]


def test_unfiltered_entry_list_is_stored(store, engine, library, make_cbz):
    make_cbz("x.cbz", ["b.png", "a.jpg", ("ComicInfo.xml", b"<ComicInfo/>"), "readme.txt"])
    Scanner(store).run(library)

    [issue] = store.all()
    with Session(engine) as session:
        names = set(session.exec(select(Page.name).where(Page.issue_id == issue.id)).all())
    assert names == {"b.png", "a.jpg", "ComicInfo.xml", "readme.txt"}
    assert store.pages(issue.id) == ["a.jpg", "b.png"]


def test_second_pass_skips_unchanged_and_reindexes_modified(store, library, make_cbz):
    one = make_cbz("one.cbz", ["1.jpg"])
    make_cbz("two.cbz", ["1.jpg"])
    scanner = Scanner(store)

    assert scanner.run(library)["indexed"] == 2

    stats = scanner.run(library)
    assert stats["indexed"] == 0
    assert stats["skipped"] == 2

    make_cbz("one.cbz", ["1.jpg", "2.jpg"])
    _bump_mtime(one)
    stats = scanner.run(library)
    assert stats["indexed"] == 1
    assert stats["skipped"] == 1
    [issue] = [i for i in store.all() if i.filepath.endswith("one.cbz")]
    assert store.pages(issue.id) == ["1.jpg", "2.jpg"]


def test_failures_and_unsupported_do_not_abort_the_pass(store, library, make_cbz):
    make_cbz("a/good.cbz", ["1.jpg"])
    (library / "a" / "broken.cbz").write_bytes(b"garbage")
    make_cbz("a/badmeta.cbz", ["1.jpg", ("ComicInfo.xml", b"<ComicInfo><Title>")])
    (library / "a" / "notes.txt").write_text("hello")
    make_cbz("b/also-good.cbz", ["1.jpg"])

    stats = Scanner(store).run(library)

    assert stats == {"indexed": 2, "skipped": 0, "unsupported": 1, "failed": 2}
    assert sorted(os.path.basename(i.filepath) for i in store.all()) == [
        "also-good.cbz",
        "good.cbz",
    ]


def test_unsupported_compression_does_not_abort_the_pass(store, library, make_cbz):
    bad = make_cbz("a_bad.cbz", ["1.jpg", ("ComicInfo.xml", FOO_2020)])
    patch_central_directory(bad, 10, 99)
    make_cbz("b_good.cbz", ["1.jpg"])

    stats = Scanner(store).run(library)

    assert stats["indexed"] == 1
    assert stats["failed"] == 1
    assert [os.path.basename(i.filepath) for i in store.all()] == ["b_good.cbz"]


def test_unexpected_error_fails_only_that_file(store, library, make_cbz, monkeypatch):
    make_cbz("a.cbz", ["1.jpg"])
    make_cbz("b.cbz", ["1.jpg"])
    real_list_entries = scanner_module.list_entries

    def flaky_list_entries(path):
        if path.name == "a.cbz":
            raise RuntimeError("boom")
        return real_list_entries(path)

    monkeypatch.setattr(scanner_module, "list_entries", flaky_list_entries)

    stats = Scanner(store).run(library)

    assert stats["indexed"] == 1
    assert stats["failed"] == 1


def test_failed_file_is_retried_next_pass(store, library, make_cbz):
    broken = library / "late.cbz"
    broken.write_bytes(b"still copying")
    scanner = Scanner(store)
    assert scanner.index_file(broken) is FileOutcome.FAILED

    make_cbz("late.cbz", ["1.jpg"])
    assert scanner.index_file(broken) is FileOutcome.INDEXED


def test_ignore_patterns_and_supported_formats(store, library, make_cbz):
    make_cbz("@eaDir/thumb.cbz", ["1.jpg"])
    make_cbz("._hidden.cbz", ["1.jpg"])
    make_cbz("kept.cbz", ["1.jpg"])
    make_cbz("plain.zip", ["1.jpg"])

    stats = Scanner(store, ScannerConfig(supported_formats=("cbz",))).run(library)

    assert stats["indexed"] == 1
    assert stats["unsupported"] == 1
    assert [os.path.basename(i.filepath) for i in store.all()] == ["kept.cbz"]


def test_missing_root_raises_scan_error(store, tmp_path):
    with pytest.raises(ScanError):
        Scanner(store).run(tmp_path / "nowhere")


def test_background_scan_runs_to_completion(store, library, make_cbz):
    make_cbz("x.cbz", ["1.jpg"])
    worker = start_background_scan(Scanner(store), library)
    worker.join(timeout=30)

    assert not worker.is_alive()
    assert len(store.all()) == 1


def test_background_scan_logs_missing_root(store, tmp_path, caplog):
    worker = start_background_scan(Scanner(store), tmp_path / "nowhere")
    worker.join(timeout=30)
    assert "Error scanning" in caplog.text

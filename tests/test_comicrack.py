"""Tests for the ComicRack database import."""

import datetime
from pathlib import Path

from longbox.comicrack import _iter_books, finished_reading, import_comicrack, local_path
from longbox.config import ComicRackConfig
from longbox.errors import StoreError
from longbox.scanner import Scanner

COMICDB = """<?xml version="1.0"?>
<ComicDatabase xmlns:xsd="http://www.w3.org/2001/XMLSchema">
  <Books>
    <Book Id="1" File="D:\\Comics\\Foo\\Foo 001.cbz">
      <Series>Foo Deluxe</Series>
      <Number>1</Number>
      <Year>2019</Year>
      <Month>6</Month>
      <Writer>Jane Doe</Writer>
      <PageCount>10</PageCount>
      <LastPageRead>8</LastPageRead>
    </Book>
    <Book Id="2" File="D:\\Comics\\Foo\\Foo 002.cbz">
      <Series>Foo Deluxe</Series>
      <Number>2</Number>
      <PageCount>10</PageCount>
      <LastPageRead>3</LastPageRead>
    </Book>
    <Book Id="3" File="D:\\Comics\\Gone\\Missing.cbz">
      <Series>Gone</Series>
    </Book>
  </Books>
</ComicDatabase>"""


def test_local_path_strips_prefix_and_converts_separators():
    root = Path("/srv/comics")
    assert local_path("D:\\Comics\\Foo\\1.cbz", root, "D:\\Comics\\") == root / "Foo/1.cbz"
    assert local_path("Foo\\1.cbz", root) == root / "Foo/1.cbz"


def test_finished_reading():
    assert finished_reading("10", "8")
    assert finished_reading("10", "9")
    assert not finished_reading("10", "7")
    assert not finished_reading(None, "7")
    assert not finished_reading("ten", "7")
    # Books too short to have "last two pages"
    assert not finished_reading("0", "0")
    assert not finished_reading("1", "0")
    assert finished_reading("2", "0")


def test_import_overwrites_metadata_and_marks_read(store, library, make_cbz, tmp_path):
    make_cbz("Foo/Foo 001.cbz", ["1.jpg", "2.jpg"])
    make_cbz("Foo/Foo 002.cbz", ["1.jpg"])
    Scanner(store).run(library)
    reader = store.verify_or_create_user("reader", "pw")

    db_file = tmp_path / "ComicDb.xml"
    db_file.write_text(COMICDB, encoding="utf-8")
    config = ComicRackConfig(strip_prefix="D:\\Comics\\", read_user="reader")

    stats = import_comicrack(db_file, store, library, config)

    assert stats == {"imported": 2, "skipped": 1, "marked": 1}
    first, second = sorted(store.all(), key=lambda i: i.issue_number)
    assert first.series == "Foo Deluxe"
    assert first.writer == "Jane Doe"
    assert first.released_at == datetime.date(2019, 6, 1)
    # Pages from the scan are kept
    assert store.pages(first.id) == ["1.jpg", "2.jpg"]
    assert store.read_issue_ids(reader) == {first.id}
    assert [i.id for i in store.search("jane")] == [first.id]

    # Scanned files stay up to date after the import
    assert Scanner(store).run(library)["skipped"] == 2


def test_import_of_unscanned_file_leaves_it_stale(store, library, make_cbz, tmp_path):
    make_cbz("Foo/Foo 001.cbz", ["1.jpg", "2.jpg"])
    db_file = tmp_path / "ComicDb.xml"
    db_file.write_text(COMICDB, encoding="utf-8")

    stats = import_comicrack(
        db_file, store, library, ComicRackConfig(strip_prefix="D:\\Comics\\")
    )
    assert stats == {"imported": 1, "skipped": 2, "marked": 0}

    [issue] = store.all()
    assert store.pages(issue.id) == []

    assert Scanner(store).run(library)["indexed"] == 1
    assert store.pages(issue.id) == ["1.jpg", "2.jpg"]


def test_iter_books_yields_each_book(tmp_path):
    db_file = tmp_path / "ComicDb.xml"
    db_file.write_text(COMICDB, encoding="utf-8")

    books = list(_iter_books(db_file))

    assert [b[0] for b in books] == [
        "D:\\Comics\\Foo\\Foo 001.cbz",
        "D:\\Comics\\Foo\\Foo 002.cbz",
        "D:\\Comics\\Gone\\Missing.cbz",
    ]
    assert books[0][2:] == ("10", "8")
    assert "<Writer>Jane Doe</Writer>" in books[0][1]
    assert books[2][2:] == (None, None)


def test_store_failure_skips_only_that_book(store, library, make_cbz, tmp_path, monkeypatch):
    make_cbz("Foo/Foo 001.cbz", ["1.jpg"])
    make_cbz("Foo/Foo 002.cbz", ["1.jpg"])
    Scanner(store).run(library)
    db_file = tmp_path / "ComicDb.xml"
    db_file.write_text(COMICDB, encoding="utf-8")

    real_upsert = store.upsert_issue

    def locked_for_first(issue, page_entries=None, comicinfo=None):
        if issue.filepath.endswith("Foo 001.cbz"):
            raise StoreError("database is locked")
        return real_upsert(issue, page_entries=page_entries, comicinfo=comicinfo)

    monkeypatch.setattr(store, "upsert_issue", locked_for_first)

    stats = import_comicrack(
        db_file, store, library, ComicRackConfig(strip_prefix="D:\\Comics\\")
    )

    assert stats == {"imported": 1, "skipped": 2, "marked": 0}
    series_by_name = {i.filepath.rsplit("/", 1)[-1]: i.series for i in store.all()}
    assert series_by_name == {"Foo 001.cbz": None, "Foo 002.cbz": "Foo Deluxe"}

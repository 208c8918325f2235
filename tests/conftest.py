"""Shared fixtures: a temp-file catalog and CBZ builders."""

import zipfile
from pathlib import Path
from typing import Iterable, Tuple, Union

import pytest

from longbox.database import create_db_engine, init_db
from longbox.repository import CatalogStore

# Not a real image; the catalog never decodes page bytes.
FAKE_IMAGE = b"\x89PNG\r\n\x1a\nfake"

Entries = Iterable[Union[str, Tuple[str, bytes]]]


def write_cbz(path: Path, entries: Entries) -> Path:
    """Write a zip archive; plain names get FAKE_IMAGE plus the name as content."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(path, "w") as zf:
        for entry in entries:
            if isinstance(entry, tuple):
                name, data = entry
            else:
                name, data = entry, FAKE_IMAGE + entry.encode()
            zf.writestr(name, data)
    return path


@pytest.fixture
def engine(tmp_path):
    engine = create_db_engine(tmp_path / "library.db", pool_size=2)
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def store(engine):
    return CatalogStore(engine)


@pytest.fixture
def library(tmp_path):
    root = tmp_path / "comics"
    root.mkdir()
    return root


@pytest.fixture
def make_cbz(library):
    """Build a CBZ under the library: make_cbz("Series/1.cbz", ["p1.jpg", ...])."""

    def _make(relative: str, entries: Entries) -> Path:
        return write_cbz(library / relative, entries)

    return _make


def patch_central_directory(path: Path, offset: int, value: int) -> Path:
    """Overwrite one 2-byte field of every central directory record in a zip.

    Offset 8 is the general purpose flag, offset 10 the compression method.
    """
    data = bytearray(path.read_bytes())
    start = data.find(b"PK\x01\x02")
    while start != -1:
        data[start + offset:start + offset + 2] = value.to_bytes(2, "little")
        start = data.find(b"PK\x01\x02", start + 4)
    path.write_bytes(bytes(data))
    return path

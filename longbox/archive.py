"""Archive handling for Longbox.

Presents CBZ (zip) and CBR (rar) archives through one capability:
list entry names, read one entry, test for an entry name. The variant is
picked once from the file suffix. Nothing is cached; every call re-opens the
archive.
"""

from __future__ import annotations

import enum
import zipfile
import zlib
from pathlib import Path
from typing import List, Protocol, Union

import rarfile

from .errors import ArchiveError, EntryNotFound

COMICINFO_NAME = "ComicInfo.xml"

PathLike = Union[str, Path]


class ArchiveKind(enum.Enum):
    ZIP = "zip"
    RAR = "rar"

    @classmethod
    def from_path(cls, path: PathLike) -> "ArchiveKind":
        """Classify by suffix. Raises ValueError for anything else."""
        suffix = Path(path).suffix.lower()
        if suffix in (".cbz", ".zip"):
            return cls.ZIP
        if suffix in (".cbr", ".rar"):
            return cls.RAR
        raise ValueError(f"Unsupported archive format: {suffix or path}")


def is_archive(path: PathLike) -> bool:
    try:
        ArchiveKind.from_path(path)
    except ValueError:
        return False
    return True


class Archive(Protocol):
    def list_entries(self) -> List[str]:
        ...

    def read(self, name: str) -> bytes:
        ...

    def close(self) -> None:
        ...

    def __enter__(self) -> "Archive":
        ...

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        ...


class ZipArchiveWrapper:
    def __init__(self, path: Path):
        try:
            self.zf = zipfile.ZipFile(path, mode="r")
        except (zipfile.BadZipFile, OSError) as exc:
            raise ArchiveError(f"Cannot open zip {path}: {exc}") from exc
        self.path = path

    def list_entries(self) -> List[str]:
        # Central directory order
        return [info.filename for info in self.zf.infolist() if not info.is_dir()]

    def read(self, name: str) -> bytes:
        try:
            return self.zf.read(name)
        except KeyError as exc:
            raise EntryNotFound(f"{name} not found in {self.path}") from exc
        # NotImplementedError: unsupported compression method; RuntimeError: encrypted entry
        except (
            zipfile.BadZipFile, zlib.error, OSError, EOFError, NotImplementedError, RuntimeError
        ) as exc:
            raise ArchiveError(f"Cannot read {name} from {self.path}: {exc}") from exc

    def close(self) -> None:
        self.zf.close()

    def __enter__(self) -> "ZipArchiveWrapper":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


class RarArchiveWrapper:
    def __init__(self, path: Path):
        try:
            self.rf = rarfile.RarFile(path, mode="r")
        except (rarfile.Error, OSError) as exc:
            raise ArchiveError(f"Cannot open rar {path}: {exc}") from exc
        self.path = path

    def list_entries(self) -> List[str]:
        # Native rar listing order, not sorted
        return [info.filename for info in self.rf.infolist() if not info.is_dir()]

    def read(self, name: str) -> bytes:
        try:
            return self.rf.read(name)
        except rarfile.NoRarEntry as exc:
            raise EntryNotFound(f"{name} not found in {self.path}") from exc
        except (rarfile.Error, OSError, ValueError) as exc:
            raise ArchiveError(f"Cannot read {name} from {self.path}: {exc}") from exc

    def close(self) -> None:
        self.rf.close()

    def __enter__(self) -> "RarArchiveWrapper":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


_WRAPPERS = {
    ArchiveKind.ZIP: ZipArchiveWrapper,
    ArchiveKind.RAR: RarArchiveWrapper,
}


def open_archive(path: PathLike) -> Archive:
    """Open an archive with the wrapper matching its suffix.

    Raises ValueError for an unknown suffix and ArchiveError when the file is
    missing or unreadable.
    """
    path = Path(path)
    kind = ArchiveKind.from_path(path)
    if not path.is_file():
        raise ArchiveError(f"File not found: {path}")
    return _WRAPPERS[kind](path)


def list_entries(path: PathLike) -> List[str]:
    """Return entry names in the archive's own order (directories omitted)."""
    with open_archive(path) as archive:
        try:
            return archive.list_entries()
        except (zipfile.BadZipFile, rarfile.Error, OSError) as exc:
            raise ArchiveError(f"Cannot list {path}: {exc}") from exc


def read_entry(path: PathLike, name: str) -> bytes:
    """Return the raw bytes of one entry."""
    with open_archive(path) as archive:
        return archive.read(name)


def has_entry(path: PathLike, name: str = COMICINFO_NAME) -> bool:
    """Exact-name membership test (defaults to ComicInfo.xml)."""
    return name in list_entries(path)

"""Filesystem scanner for Longbox.

Walks a directory tree and brings the catalog up to date:
- files whose stored mtime is current are skipped
- stale or new archives are listed, their ComicInfo.xml parsed, and the
  issue upserted with the full (unfiltered) entry list
- a file that fails is logged and skipped; the pass always continues

Files that disappeared are left in the catalog.
"""

from __future__ import annotations

import enum
import os
from datetime import datetime
from pathlib import Path
from threading import Thread
from typing import Iterable, Iterator, Optional, Tuple

from .archive import COMICINFO_NAME, is_archive, list_entries, read_entry
from .comicinfo import ComicInfoParsed, decode_comicinfo, parse_comicinfo
from .config import ScannerConfig
from .errors import ArchiveError, MetadataError, ScanError, StoreError
from .logging_config import get_logger
from .models import IssueBase
from .repository import CatalogStore

logger = get_logger(__name__)


class FileOutcome(enum.Enum):
    INDEXED = "indexed"
    UP_TO_DATE = "skipped"
    UNSUPPORTED = "unsupported"
    FAILED = "failed"


def _should_ignore(name: str, ignore_patterns: Iterable[str]) -> bool:
    """Check if file/folder should be ignored based on patterns or macOS temp files."""
    if name.startswith("._"):
        return True
    return name in ignore_patterns


def walk_files(root: Path, ignore_patterns: Tuple[str, ...]) -> Iterator[Tuple[Path, list[Path]]]:
    """Yield (directory, regular files) depth-first, respecting ignore patterns."""
    for dirpath, dirnames, filenames in os.walk(root):
        dir_path = Path(dirpath)

        # Prune in place so os.walk doesn't descend into ignored folders
        dirnames[:] = sorted(d for d in dirnames if not _should_ignore(d, ignore_patterns))

        files = [
            dir_path / f
            for f in sorted(filenames)
            if not _should_ignore(f, ignore_patterns) and (dir_path / f).is_file()
        ]
        yield dir_path, files


def read_comicinfo(path: Path, entries: list[str]) -> Optional[str]:
    """Return the ComicInfo.xml text if the archive has one (exact name match)."""
    if COMICINFO_NAME not in entries:
        return None
    return decode_comicinfo(read_entry(path, COMICINFO_NAME))


class Scanner:
    """Drives one indexing pass at a time against a shared CatalogStore."""

    def __init__(self, store: CatalogStore, config: Optional[ScannerConfig] = None):
        self.store = store
        self.config = config or ScannerConfig()

    def is_supported(self, path: Path) -> bool:
        fmt = path.suffix.lower().lstrip(".")
        return fmt in self.config.supported_formats and is_archive(path)

    def index_file(self, path: Path) -> FileOutcome:
        """Bring one file up to date in the catalog."""
        if not self.is_supported(path):
            logger.debug(f"Skipping {path} (unsupported)")
            return FileOutcome.UNSUPPORTED

        try:
            stat = path.stat()
        except OSError as exc:
            logger.error(f"✗ {path} - Unable to stat: {exc}")
            return FileOutcome.FAILED

        mtime = datetime.fromtimestamp(stat.st_mtime)
        if not self.store.needs_reindex(str(path), mtime):
            logger.debug(f"Skipping unchanged {path}")
            return FileOutcome.UP_TO_DATE

        try:
            entries = list_entries(path)
            comicinfo = read_comicinfo(path, entries)
            parsed = parse_comicinfo(comicinfo) if comicinfo is not None else ComicInfoParsed()
            issue = IssueBase(
                filepath=str(path),
                modified_at=mtime,
                size=stat.st_size,
                **parsed.model_dump(),
            )
            issue_id = self.store.upsert_issue(issue, entries, comicinfo)
        except (ArchiveError, MetadataError, StoreError) as exc:
            logger.error(f"✗ Skipping {path}: {exc}")
            return FileOutcome.FAILED
        except Exception as exc:
            logger.error(f"✗ {path.name} - unexpected error: {exc}")
            return FileOutcome.FAILED

        logger.debug(f"✓ {path.name} (issue {issue_id}, {len(entries)} entries)")
        return FileOutcome.INDEXED

    def run(self, root: Path) -> dict:
        """Run a full pass over root.

        :return: Counts per outcome (indexed, skipped, unsupported, failed).
        :raises ScanError: if root is not a directory.
        """
        root = Path(root).resolve()
        if not root.is_dir():
            raise ScanError(f"Library path does not exist: {root}")

        stats = {outcome.value: 0 for outcome in FileOutcome}
        ignore_patterns = tuple(self.config.ignore_patterns)

        for dir_path, files in walk_files(root, ignore_patterns):
            rel = dir_path.relative_to(root)
            logger.info(f"[SCAN] {rel if str(rel) != '.' else 'root'} ({len(files)} files)")
            for path in files:
                stats[self.index_file(path).value] += 1

        try:
            self.store.analyze()
        except StoreError as exc:
            logger.warning(f"ANALYZE failed after scan: {exc}")

        return stats


def start_background_scan(scanner: Scanner, root: Path) -> Thread:
    """Run one scan pass in a daemon thread, concurrently with request handling."""

    def _worker() -> None:
        try:
            stats = scanner.run(root)
        except ScanError as exc:
            logger.error(f"Error scanning: {exc}")
            return
        logger.info(
            f"Done scanning {root}: {stats['indexed']} indexed, "
            f"{stats['skipped']} unchanged, {stats['failed']} failed."
        )

    worker = Thread(target=_worker, daemon=True, name="LongboxScanner")
    worker.start()
    return worker

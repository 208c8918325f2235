"""Import of a ComicRack ``ComicDb.xml``.

Meant to run once, right after the first scan of a library that used to be
managed by ComicRack. Each ``<Book>`` element overwrites the issue's metadata
(the element uses the same tag names as ComicInfo.xml) and books that were
read to the end in ComicRack get a read mark for the configured user.
"""

from __future__ import annotations

import xml.etree.ElementTree as ET
from datetime import datetime
from pathlib import Path
from typing import Iterator, Optional, Tuple

from .comicinfo import parse_comicinfo
from .config import ComicRackConfig
from .errors import MetadataError, StoreError
from .logging_config import get_logger
from .models import IssueBase
from .repository import CatalogStore

logger = get_logger(__name__)


def local_path(book_file: str, library_root: Path, strip_prefix: str = "") -> Path:
    """Map a ComicRack (Windows) path onto the local library.

    Example: ``D:\\Comics\\Marvel\\X.cbz`` with prefix ``D:\\Comics\\`` becomes
    ``<library_root>/Marvel/X.cbz``.
    """
    if strip_prefix and book_file.startswith(strip_prefix):
        book_file = book_file[len(strip_prefix):]
    return library_root / book_file.replace("\\", "/").lstrip("/")


def _int_or_none(s: Optional[str]) -> Optional[int]:
    try:
        return int(s) if s is not None else None
    except ValueError:
        return None


def finished_reading(page_count: Optional[str], last_page_read: Optional[str]) -> bool:
    """ComicRack counts a book as read once the last two pages were reached."""
    pages = _int_or_none(page_count)
    last = _int_or_none(last_page_read)
    if pages is None or last is None or pages < 2:
        return False
    return pages - 2 <= last


def _iter_books(db_file: Path) -> Iterator[Tuple[str, str, Optional[str], Optional[str]]]:
    """Yield (File attribute, Book document, PageCount, LastPageRead) per <Book>.

    Handled books are detached from their parent so memory stays flat.
    """
    open_elements = []
    for event, elem in ET.iterparse(db_file, events=("start", "end")):
        if event == "start":
            open_elements.append(elem)
            continue
        open_elements.pop()
        if elem.tag != "Book":
            continue

        book = (
            elem.get("File", ""),
            ET.tostring(elem, encoding="unicode"),
            elem.findtext("PageCount"),
            elem.findtext("LastPageRead"),
        )
        elem.clear()
        if open_elements:
            open_elements[-1].remove(elem)
        yield book


def import_comicrack(
    db_file: Path,
    store: CatalogStore,
    library_root: Path,
    config: Optional[ComicRackConfig] = None,
) -> dict:
    """Import every book of a ComicRack database into the catalog.

    :return: Counts of imported, skipped (file missing or failed) and marked books.
    """
    config = config or ComicRackConfig()
    library_root = library_root.resolve()
    stats = {"imported": 0, "skipped": 0, "marked": 0}

    user_id = None
    if config.read_user:
        user_id = store.get_user(config.read_user)
        if user_id is None:
            logger.warning(f"Read user {config.read_user!r} not found, no read marks will be set")

    for book_file, document, page_count, last_page_read in _iter_books(db_file):
        path = local_path(book_file, library_root, config.strip_prefix)
        if not path.is_file():
            logger.info(f"Can't find {path} - skipping")
            stats["skipped"] += 1
            continue

        try:
            parsed = parse_comicinfo(document)
            stat = path.stat()
            mtime = datetime.fromtimestamp(stat.st_mtime)
            # Never scanned: keep it stale so the next scan still records its pages
            if store.needs_reindex(str(path), mtime):
                mtime = datetime.min

            issue = IssueBase(
                filepath=str(path),
                modified_at=mtime,
                size=stat.st_size,
                **parsed.model_dump(),
            )
            issue_id = store.upsert_issue(issue, page_entries=None, comicinfo=document)
        except (MetadataError, StoreError, OSError) as exc:
            logger.error(f"✗ Skipping {path}: {exc}")
            stats["skipped"] += 1
            continue
        stats["imported"] += 1

        if user_id is not None and finished_reading(page_count, last_page_read):
            logger.info(f"Marking {path} as read")
            if store.mark_read(issue_id, user_id):
                stats["marked"] += 1

    return stats

"""Page sequence rules shared by the store and the serving layer.

Pages are the image entries of an archive sorted by entry name, regardless
of the order they are stored in the archive. Requesting one of the last two
pages counts as finishing the book.
"""

from __future__ import annotations

from pathlib import PurePosixPath
from typing import Iterable, List

PAGE_SUFFIXES = ("jpg", "gif", "png")

# page_index + READ_THRESHOLD > length marks the issue read
READ_THRESHOLD = 3

_CONTENT_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".png": "image/png",
}


def is_page(name: str) -> bool:
    return name.lower().endswith(PAGE_SUFFIXES)


def page_sequence(entry_names: Iterable[str]) -> List[str]:
    """Image entries in lexicographic order; everything else dropped."""
    return sorted(name for name in entry_names if is_page(name))


def completes_issue(page_index: int, length: int) -> bool:
    return page_index + READ_THRESHOLD > length


def content_type_for(name: str) -> str:
    return _CONTENT_TYPES.get(
        PurePosixPath(name).suffix.lower(), "application/octet-stream"
    )

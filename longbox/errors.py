"""Exception types for Longbox.

Convention:
- ``ArchiveError`` / ``EntryNotFound`` and ``MetadataError`` are per-file
  problems. The scanner logs them and moves on to the next file.
- ``StoreError`` wraps database failures and surfaces to the caller; there is
  no retry here.
- ``NoSuchPage`` is the distinct "not found" outcome of page retrieval so the
  serving layer can answer 404 instead of 500.
- A wrong password is not an error: ``verify_or_create_user`` returns the
  ``AUTH_MISMATCH`` sentinel from ``longbox.repository``.
"""

from __future__ import annotations


class LongboxError(Exception):
    """Base class for all Longbox errors."""


class ArchiveError(LongboxError):
    """The archive cannot be opened, listed or decompressed."""


class EntryNotFound(ArchiveError):
    """The requested entry does not exist in the archive."""


class MetadataError(LongboxError):
    """The embedded ComicInfo document is not well-formed XML."""


class StoreError(LongboxError):
    """A catalog store operation failed (connection or SQL error)."""


class NoSuchPage(LongboxError):
    """The requested issue or page index does not exist."""


class ScanError(LongboxError):
    """A scan pass could not start (e.g. the root directory is missing)."""

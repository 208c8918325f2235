"""ComicInfo.xml parsing for Longbox.

The document is read in a single pass: every closing tag dispatches the
element's text into the matching field, so a repeated tag overwrites the
earlier value. Numbers that don't parse are dropped, a missing year means no
release date, and markup that doesn't parse at all raises MetadataError.
"""

from __future__ import annotations

import datetime
import re
import xml.etree.ElementTree as ET
from typing import Optional, Union

from pydantic import BaseModel

from .errors import MetadataError

# ComicInfo element name -> ComicInfoParsed field
TEXT_TAGS = {
    "Title": "title",
    "Series": "series",
    "Summary": "summary",
    "Web": "comicvine_url",
    "Writer": "writer",
    "Penciller": "penciller",
    "Inker": "inker",
    "Colorist": "colorist",
    "CoverArtist": "cover_artist",
    "Publisher": "publisher",
}

INT_TAGS = {
    "Number": "issue_number",
    "Volume": "volume",
    "PageCount": "page_count",
}

DATE_TAGS = {"Year", "Month", "Day"}

# ComicTagger writes e.g. "[CVDB12345]" or "[Issue ID 12345]" into <Notes>
_COMICVINE_ID_RE = re.compile(r"\[(?:CVDB|Issue ID\s*)(\d+)\]", re.IGNORECASE)


class ComicInfoParsed(BaseModel):
    """Issue fields populated from ComicInfo.xml (all optional)."""

    model_config = {"extra": "ignore"}

    title: Optional[str] = None
    series: Optional[str] = None
    issue_number: Optional[int] = None
    volume: Optional[int] = None
    summary: Optional[str] = None
    comicvine_id: Optional[int] = None
    comicvine_url: Optional[str] = None
    released_at: Optional[datetime.date] = None
    writer: Optional[str] = None
    penciller: Optional[str] = None
    inker: Optional[str] = None
    colorist: Optional[str] = None
    cover_artist: Optional[str] = None
    publisher: Optional[str] = None
    page_count: Optional[int] = None


def _local_name(tag: str) -> str:
    """Return tag without namespace (e.g. '{http://...}Title' -> 'Title')."""
    return tag.rsplit("}", 1)[-1]


def _int_or_none(s: Optional[str]) -> Optional[int]:
    if s is None:
        return None
    try:
        return int(s.strip())
    except ValueError:
        return None


def release_date(
    year: Optional[int], month: Optional[int], day: Optional[int]
) -> Optional[datetime.date]:
    """Assemble a release date; month and day default to 1.

    No year, or an impossible combination such as 31 February, gives None.
    """
    if year is None:
        return None
    try:
        return datetime.date(year, month or 1, day or 1)
    except ValueError:
        return None


def comicvine_id_from_notes(notes: str) -> Optional[int]:
    match = _COMICVINE_ID_RE.search(notes)
    return int(match.group(1)) if match else None


def parse_comicinfo(document: Union[str, bytes]) -> ComicInfoParsed:
    """Parse a ComicInfo document. Raises MetadataError on malformed markup."""
    parser = ET.XMLPullParser(events=("end",))
    try:
        parser.feed(document)
        parser.close()
        # feed() defers syntax errors to read_events()
        events = list(parser.read_events())
    except ET.ParseError as exc:
        raise MetadataError(f"Malformed ComicInfo.xml: {exc}") from exc

    raw: dict[str, object] = {}
    date_parts: dict[str, Optional[int]] = {}

    for _event, elem in events:
        name = _local_name(elem.tag)
        text = (elem.text or "").strip()

        if name in TEXT_TAGS:
            raw[TEXT_TAGS[name]] = text or None
        elif name in INT_TAGS:
            raw[INT_TAGS[name]] = _int_or_none(text)
        elif name in DATE_TAGS:
            date_parts[name] = _int_or_none(text)
        elif name == "Notes":
            raw["comicvine_id"] = comicvine_id_from_notes(text)

    raw["released_at"] = release_date(
        date_parts.get("Year"), date_parts.get("Month"), date_parts.get("Day")
    )
    return ComicInfoParsed.model_validate(raw)


def decode_comicinfo(raw: bytes) -> str:
    """Decode the raw ComicInfo.xml entry, which is expected to be UTF-8."""
    try:
        return raw.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise MetadataError(f"ComicInfo.xml is not valid UTF-8: {exc}") from exc

"""Shared data normalization utilities.

Centralizes date and name normalization so all fetchers and the roll-call
parser use consistent formats.

**Date normalization:**
    Legislative Yuan data mixes two calendars:
    - ``2024-02-27``  (ISO, from ly.govapi.tw)
    - ``113/02/27``   (ROC / 民國 calendar, from the speech and roll-call feeds)

    ROC year = AD year - 1911.

**Name normalization:**
    Roll-call sheets prefix names with seat numbers (``025伍麗華``, often with
    full-width digits) and pad them with ideographic spaces.  Indigenous
    legislators carry romanized names after the Chinese characters, which the
    interpellation endpoint does not accept.
"""

from __future__ import annotations

import logging
import re
from datetime import date, datetime

LOGGER = logging.getLogger(__name__)

ROC_YEAR_OFFSET = 1911

_RE_ROC_DATE = re.compile(r"^\s*(\d{2,3})[/.-](\d{1,2})[/.-](\d{1,2})\s*$")
_RE_ISO_DATE = re.compile(r"^\s*(\d{4})-(\d{1,2})-(\d{1,2})")
_RE_LEADING_SEAT = re.compile(r"^[\d０-９]+")
_RE_NAME_SPACES = re.compile(r"[\s\u3000\u200b\ufeff]+")
_RE_CJK = re.compile(r"[\u4e00-\u9fff]+")
_RE_SPEAKER = re.compile(r"^\d+\s+(.+)$")
_RE_PIC_ID = re.compile(r"/(\d+)\.jpg", re.IGNORECASE)


def roc_to_date(roc: str | None) -> date | None:
    """Convert an ROC calendar string to a :class:`date`.

    Returns ``None`` for empty or unparseable input.

        >>> roc_to_date("113/02/27")
        datetime.date(2024, 2, 27)
        >>> roc_to_date("bogus") is None
        True
    """
    if not roc:
        return None
    m = _RE_ROC_DATE.match(roc)
    if not m:
        return None
    year, month, day = (int(g) for g in m.groups())
    try:
        return date(year + ROC_YEAR_OFFSET, month, day)
    except ValueError:
        LOGGER.debug("Invalid ROC date %r", roc)
        return None


def date_to_roc(d: date) -> str:
    """Format a date as the compact ROC string the speech API expects.

        >>> date_to_roc(date(2024, 2, 1))
        '1130201'
    """
    return f"{d.year - ROC_YEAR_OFFSET}{d.month:02d}{d.day:02d}"


def parse_api_date(value: str | None) -> date | None:
    """Parse an ISO (``YYYY-MM-DD``, optional time) or ROC date string."""
    if not value or not isinstance(value, str):
        return None
    m = _RE_ISO_DATE.match(value)
    if m:
        try:
            return date(*(int(g) for g in m.groups()))
        except ValueError:
            return None
    return roc_to_date(value)


def as_date(value: date | datetime) -> date:
    """Drop the time part of a datetime; pass dates through."""
    if isinstance(value, datetime):
        return value.date()
    return value


def normalize_sheet_name(raw: str) -> str:
    """Strip seat-number prefixes and every kind of whitespace from a name.

        >>> normalize_sheet_name("０２５伍　麗華")
        '伍麗華'
    """
    name = _RE_LEADING_SEAT.sub("", raw.strip())
    return _RE_NAME_SPACES.sub("", name).strip()


def chinese_only(name: str) -> str:
    """Keep only CJK characters (falls back to the input when none exist)."""
    chunks = _RE_CJK.findall(name)
    return "".join(chunks) if chunks else name


def parse_speakers(speechers: str | None) -> list[str]:
    """Split the speech feed's ``"0001 Name1, 0002 Name2"`` field into names."""
    if not speechers:
        return []
    names: list[str] = []
    for item in speechers.split(","):
        m = _RE_SPEAKER.match(item.strip())
        if m:
            names.append(m.group(1).strip())
    return names


def external_id_from_pic_url(pic_url: str | None) -> str | None:
    """Extract the legislator id from the roster's picture URL.

        >>> external_id_from_pic_url("http://www.ly.gov.tw//Images/Legislators/110001.jpg")
        '110001'
    """
    if not pic_url:
        return None
    m = _RE_PIC_ID.search(pic_url)
    return m.group(1) if m else None


def first_value(value: str | list | None) -> str | None:
    """Return the first element of list-valued API fields (e.g. 法律編號)."""
    if isinstance(value, list):
        return value[0] if value else None
    return value or None

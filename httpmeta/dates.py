"""HTTP-date parsing and formatting (RFC 7231 §7.1.1.1).

parse_http_date() accepts, in order:
  1. RFC 1123            ``Sun, 06 Nov 1994 08:49:37 GMT``
  2. RFC 1036 / RFC 850  ``Sun, 06 Nov 94 08:49:37 GMT`` and
                         ``Sunday, 06-Nov-94 08:49:37 GMT`` (two-digit year → 19xx)
  3. asctime             ``Sun Nov  6 08:49:37 1994`` (no zone — UTC)
  4. A base-10 count of milliseconds since the epoch.

Anything else raises BadHeaderValueError carrying the header name and value.

format_http_date() always emits the 29-character RFC 1123 form in GMT with
English day and month names.
"""

from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone
from email.utils import format_datetime
from typing import Optional

from httpmeta.errors import BadHeaderValueError

# ─── Name tables (English, independent of process locale) ─────────────────────

_MONTHS: dict[str, int] = {
    name: index
    for index, name in enumerate(
        ("jan", "feb", "mar", "apr", "may", "jun", "jul", "aug", "sep", "oct", "nov", "dec"),
        start=1,
    )
}

_SHORT_DAYS: frozenset[str] = frozenset({"mon", "tue", "wed", "thu", "fri", "sat", "sun"})
_LONG_DAYS: frozenset[str] = frozenset(
    {"monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"}
)

_UTC_ZONES: frozenset[str] = frozenset({"gmt", "utc", "ut", "z"})

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# Four-digit years only; the RFC 1123 form is fixed-width.
MIN_FORMATTABLE_MILLIS: int = (datetime(1, 1, 1, tzinfo=timezone.utc) - _EPOCH) // timedelta(milliseconds=1)
MAX_FORMATTABLE_MILLIS: int = (
    datetime(9999, 12, 31, 23, 59, 59, 999_000, tzinfo=timezone.utc) - _EPOCH
) // timedelta(milliseconds=1)

# ─── Formats ──────────────────────────────────────────────────────────────────

_TIME = r"(?P<hour>\d{2}):(?P<minute>\d{2}):(?P<second>\d{2})"

_RFC1123 = re.compile(
    r"^(?P<wkday>[A-Za-z]{3}), (?P<day>\d{1,2}) (?P<month>[A-Za-z]{3}) (?P<year>\d{4}) "
    + _TIME
    + r" (?P<zone>\S+)$"
)

_RFC1036 = re.compile(
    r"^(?P<wkday>[A-Za-z]{3}), (?P<day>\d{1,2}) (?P<month>[A-Za-z]{3}) (?P<year>\d{2}) "
    + _TIME
    + r" (?P<zone>\S+)$"
)

_RFC850 = re.compile(
    r"^(?P<wkday>[A-Za-z]{6,9}), (?P<day>\d{2})-(?P<month>[A-Za-z]{3})-(?P<year>\d{2}) "
    + _TIME
    + r" (?P<zone>\S+)$"
)

_ASCTIME = re.compile(
    r"^(?P<wkday>[A-Za-z]{3}) (?P<month>[A-Za-z]{3})  ?(?P<day>\d{1,2}) "
    + _TIME
    + r" (?P<year>\d{4})$"
)

_EPOCH_MILLIS = re.compile(r"^[+-]?\d+$")

_NUMERIC_ZONE = re.compile(r"^(?P<sign>[+-])(?P<hours>\d{2})(?P<minutes>\d{2})$")


# ─── Helpers ──────────────────────────────────────────────────────────────────


def _zone_offset(zone: Optional[str]) -> Optional[timezone]:
    if zone is None:
        return timezone.utc
    if zone.lower() in _UTC_ZONES:
        return timezone.utc
    match = _NUMERIC_ZONE.match(zone)
    if match is None:
        return None
    hours, minutes = int(match["hours"]), int(match["minutes"])
    if hours >= 24 or minutes >= 60:
        return None
    delta = timedelta(hours=hours, minutes=minutes)
    return timezone(-delta if match["sign"] == "-" else delta)


def _to_millis(match: re.Match, days: frozenset[str], two_digit_year: bool) -> Optional[int]:
    fields = match.groupdict()
    if fields["wkday"].lower() not in days:
        return None
    month = _MONTHS.get(fields["month"].lower())
    if month is None:
        return None
    tz = _zone_offset(fields.get("zone"))
    if tz is None:
        return None

    year = int(fields["year"])
    if two_digit_year:
        year += 1900

    try:
        moment = datetime(
            year,
            month,
            int(fields["day"]),
            int(fields["hour"]),
            int(fields["minute"]),
            int(fields["second"]),
            tzinfo=tz,
        )
    except ValueError:
        return None
    return (moment - _EPOCH) // timedelta(milliseconds=1)


# ─── Public API ───────────────────────────────────────────────────────────────


def parse_http_date(text: str, header_name: Optional[str] = None) -> int:
    """Parse an HTTP date header value into epoch milliseconds.

    Args:
        text:        The raw header value.
        header_name: Header the value came from; only used in the error.

    Returns:
        Milliseconds since 1970-01-01T00:00:00Z.

    Raises:
        BadHeaderValueError: If no date format and no integer fallback matches.
    """
    candidate = text.strip()

    attempts = (
        (_RFC1123, _SHORT_DAYS, False),
        (_RFC1036, _SHORT_DAYS, True),
        (_RFC850, _LONG_DAYS, True),
        (_ASCTIME, _SHORT_DAYS, False),
    )
    for pattern, days, two_digit_year in attempts:
        match = pattern.match(candidate)
        if match is None:
            continue
        millis = _to_millis(match, days, two_digit_year)
        if millis is not None:
            return millis

    if _EPOCH_MILLIS.match(candidate):
        return int(candidate, 10)

    raise BadHeaderValueError(header_name, text)


def format_http_date(epoch_millis: int) -> str:
    """Format epoch milliseconds as an RFC 1123 date in GMT.

    Sub-second precision is truncated toward the earlier second. Supported
    instants span 0001-01-01 to 9999-12-31 (MIN_FORMATTABLE_MILLIS to
    MAX_FORMATTABLE_MILLIS).

    Example::

        format_http_date(784111777000)
        # 'Sun, 06 Nov 1994 08:49:37 GMT'

    Raises:
        ValueError: If ``epoch_millis`` falls outside the supported range.
    """
    if not MIN_FORMATTABLE_MILLIS <= epoch_millis <= MAX_FORMATTABLE_MILLIS:
        raise ValueError(
            f"Cannot format {epoch_millis} as an HTTP date; supported range is "
            f"{MIN_FORMATTABLE_MILLIS}..{MAX_FORMATTABLE_MILLIS} milliseconds"
        )
    moment = _EPOCH + timedelta(seconds=epoch_millis // 1000)
    return format_datetime(moment, usegmt=True)

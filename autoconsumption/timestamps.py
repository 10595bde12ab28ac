"""Timestamp normalization for consumption and production series.

The smart-meter load curve and the irradiance-model output do not share a
timestamp encoding. Each recognised encoding is handled by a small pure
matcher; matchers are tried in a fixed order and the first one that parses
the token wins. Failures are returned as a MalformedTimestamp value, never
raised, so callers can count them and move on.
"""

import re
from dataclasses import dataclass
from datetime import datetime

import pandas as pd


@dataclass(frozen=True)
class ParsedTimestamp:
    instant: pd.Timestamp
    key: str            # "MMDD-HH", year deliberately dropped
    encoding: str


@dataclass(frozen=True)
class MalformedTimestamp:
    token: str
    reason: str = "unrecognised timestamp encoding"


COMPACT_PATTERN = re.compile(r"^\d{12}$")

# Colon-separated encodings: the irradiance model's "YYYYMMDD:HHMM" first,
# then the plain ISO date with a space instead of "T".
COLON_FORMATS = [
    ("%Y%m%d:%H%M", "colon"),
    ("%Y-%m-%d %H:%M:%S", "iso-space"),
    ("%Y-%m-%d %H:%M", "iso-space"),
]

# Locale-formatted encodings, day first (French locale output).
LOCALE_FORMATS = [
    "%d/%m/%Y %H:%M:%S",
    "%d/%m/%Y %H:%M",
    "%d/%m/%Y",
    "%Y/%m/%d %H:%M:%S",
    "%Y/%m/%d %H:%M",
]


def month_day_hour_key(instant) -> str:
    """Lookup key shared by both series, e.g. "0115-13" for 15 Jan 13:xx."""
    return f"{instant.month:02d}{instant.day:02d}-{instant.hour:02d}"


def _parsed(instant, encoding: str) -> ParsedTimestamp:
    instant = pd.Timestamp(instant)
    # Keep local wall-clock time, drop the offset
    if instant.tzinfo is not None:
        instant = instant.tz_localize(None)
    return ParsedTimestamp(instant, month_day_hour_key(instant), encoding)


def _try_format(token: str, fmt: str):
    try:
        return pd.to_datetime(token, format=fmt)
    except (ValueError, TypeError):
        return None


def match_iso(token: str) -> ParsedTimestamp | None:
    """ISO-8601 local date-time: "2023-01-15T13:00:00[+01:00]"."""
    if "T" not in token:
        return None
    try:
        instant = pd.Timestamp(token)
    except (ValueError, TypeError):
        return None
    if pd.isna(instant):
        return None
    return _parsed(instant, "iso")


def match_compact(token: str) -> ParsedTimestamp | None:
    """Compact "YYYYMMDDHHMM": "202301151300"."""
    if not COMPACT_PATTERN.match(token):
        return None
    instant = _try_format(token, "%Y%m%d%H%M")
    return _parsed(instant, "compact") if instant is not None else None


def match_colon(token: str) -> ParsedTimestamp | None:
    """Colon-separated "YYYYMMDD:HHMM": "20230115:1300"."""
    if ":" not in token or "/" in token:
        return None
    for fmt, encoding in COLON_FORMATS:
        instant = _try_format(token, fmt)
        if instant is not None:
            return _parsed(instant, encoding)
    return None


def match_locale(token: str) -> ParsedTimestamp | None:
    """Locale date-time: "15/01/2023 13:00[:00]"."""
    if "/" not in token:
        return None
    token = re.sub(r"\s+", " ", token.replace(",", " ")).strip()
    for fmt in LOCALE_FORMATS:
        instant = _try_format(token, fmt)
        if instant is not None:
            return _parsed(instant, "locale")
    return None


MATCHERS = (match_iso, match_compact, match_colon, match_locale)


def normalize_timestamp(token) -> ParsedTimestamp | MalformedTimestamp:
    """Parse a raw timestamp token into an instant and its month/day/hour key."""
    if isinstance(token, (pd.Timestamp, datetime)):
        if pd.isna(token):
            return MalformedTimestamp(str(token), "missing timestamp")
        return _parsed(token, "datetime")
    if token is None:
        return MalformedTimestamp("", "missing timestamp")

    text = str(token).strip()
    if not text:
        return MalformedTimestamp(text, "missing timestamp")

    for matcher in MATCHERS:
        result = matcher(text)
        if result is not None:
            return result
    return MalformedTimestamp(text)


def parse_timestamps(tokens) -> tuple[list[ParsedTimestamp | None], int]:
    """Normalize a batch of tokens.

    Returns (parsed, malformed_count); malformed entries are None in parsed.
    """
    parsed = []
    malformed = 0
    for token in tokens:
        result = normalize_timestamp(token)
        if isinstance(result, MalformedTimestamp):
            parsed.append(None)
            malformed += 1
        else:
            parsed.append(result)
    return parsed, malformed

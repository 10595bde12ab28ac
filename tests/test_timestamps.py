from datetime import datetime

import pandas as pd
import pytest

from autoconsumption.timestamps import (
    MalformedTimestamp,
    ParsedTimestamp,
    month_day_hour_key,
    normalize_timestamp,
    parse_timestamps,
)


# ── Encodings ────────────────────────────────────────────────────────────────


class TestEncodings:
    @pytest.mark.parametrize("token, encoding", [
        ("2023-01-15T13:00:00", "iso"),
        ("202301151300", "compact"),
        ("20230115:1300", "colon"),
        ("15/01/2023 13:00", "locale"),
        ("15/01/2023 13:00:00", "locale"),
    ])
    def test_same_key_for_every_encoding(self, token, encoding):
        result = normalize_timestamp(token)
        assert isinstance(result, ParsedTimestamp)
        assert result.key == "0115-13"
        assert result.encoding == encoding

    def test_iso_instant(self):
        result = normalize_timestamp("2023-01-15T13:30:00")
        assert result.instant == pd.Timestamp("2023-01-15 13:30")

    def test_iso_with_offset_keeps_wall_clock(self):
        result = normalize_timestamp("2023-07-01T13:30:00+02:00")
        assert result.instant == pd.Timestamp("2023-07-01 13:30")
        assert result.instant.tzinfo is None
        assert result.key == "0701-13"

    def test_colon_minutes(self):
        """Irradiance-model stamps carry minutes past the hour (HH10)."""
        result = normalize_timestamp("20201231:1610")
        assert result.instant == pd.Timestamp("2020-12-31 16:10")
        assert result.key == "1231-16"

    def test_locale_is_day_first(self):
        result = normalize_timestamp("02/03/2023 08:00")
        assert result.instant.month == 3
        assert result.instant.day == 2

    def test_iso_with_space(self):
        result = normalize_timestamp("2023-01-15 13:00:00")
        assert isinstance(result, ParsedTimestamp)
        assert result.key == "0115-13"

    def test_datetime_objects_pass_through(self):
        result = normalize_timestamp(datetime(2023, 1, 15, 13, 30))
        assert result.key == "0115-13"
        assert result.encoding == "datetime"

    def test_pandas_timestamp_pass_through(self):
        result = normalize_timestamp(pd.Timestamp("2023-06-01 09:00"))
        assert result.key == "0601-09"


# ── Malformed tokens ─────────────────────────────────────────────────────────


class TestMalformed:
    @pytest.mark.parametrize("token", [
        "not a date",
        "2023",
        "12345",
        "",
        "   ",
        None,
        "20231315:1300",     # month 13
        "202313151300",
        "99/99/2023 10:00",
    ])
    def test_returns_malformed_value(self, token):
        result = normalize_timestamp(token)
        assert isinstance(result, MalformedTimestamp)

    def test_nat_is_malformed(self):
        assert isinstance(normalize_timestamp(pd.NaT), MalformedTimestamp)

    def test_malformed_keeps_token(self):
        result = normalize_timestamp("garbage")
        assert result.token == "garbage"


# ── Key and batch helpers ────────────────────────────────────────────────────


class TestHelpers:
    def test_key_drops_year(self):
        a = month_day_hour_key(pd.Timestamp("2020-03-04 05:59"))
        b = month_day_hour_key(pd.Timestamp("2024-03-04 05:00"))
        assert a == b == "0304-05"

    def test_parse_timestamps_counts_failures(self):
        parsed, malformed = parse_timestamps(
            ["2023-01-01T00:00:00", "bad", "202301010100", None])
        assert malformed == 2
        assert parsed[1] is None and parsed[3] is None
        assert parsed[2].key == "0101-01"

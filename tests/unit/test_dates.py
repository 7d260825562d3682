"""Unit tests for HTTP-date parsing and formatting (httpmeta/dates.py)."""

from __future__ import annotations

import pytest

from httpmeta.dates import (
    MAX_FORMATTABLE_MILLIS,
    MIN_FORMATTABLE_MILLIS,
    format_http_date,
    parse_http_date,
)
from httpmeta.errors import BadHeaderValueError

# Sun, 06 Nov 1994 08:49:37 GMT
EPOCH_1994 = 784_111_777_000


class TestParseHttpDate:
    @pytest.mark.parametrize(
        "text",
        [
            "Sun, 06 Nov 1994 08:49:37 GMT",
            "Sun, 6 Nov 1994 08:49:37 GMT",
            "Sun, 06 Nov 94 08:49:37 GMT",
            "Sunday, 06-Nov-94 08:49:37 GMT",
            "Sun Nov  6 08:49:37 1994",
            "Sun Nov 6 08:49:37 1994",
            "sun, 06 nov 1994 08:49:37 gmt",
            "Sun, 06 Nov 1994 09:49:37 +0100",
            "  Sun, 06 Nov 1994 08:49:37 GMT  ",
        ],
    )
    def test_accepted_formats(self, text: str) -> None:
        assert parse_http_date(text) == EPOCH_1994

    def test_epoch_millis_fallback(self) -> None:
        assert parse_http_date("784111777000") == EPOCH_1994
        assert parse_http_date("-5") == -5

    @pytest.mark.parametrize(
        "text",
        [
            "not a date",
            "",
            "Xyz, 06 Nov 1994 08:49:37 GMT",
            "Sun, 32 Nov 1994 08:49:37 GMT",
            "Sun, 06 Foo 1994 08:49:37 GMT",
            "Sun, 06 Nov 1994 08:49:37 PST",
            "Sun, 06 Nov 1994 08:49:37 +9900",
            "Sun, 06 Nov 1994 08:49:37 +2400",
            "Sun, 06 Nov 1994 08:49:37 +0160",
            "12.5",
        ],
    )
    def test_rejected(self, text: str) -> None:
        with pytest.raises(BadHeaderValueError):
            parse_http_date(text)

    def test_error_carries_name_and_value(self) -> None:
        with pytest.raises(BadHeaderValueError) as exc_info:
            parse_http_date("yesterday", header_name="If-Modified-Since")
        assert exc_info.value.name == "If-Modified-Since"
        assert exc_info.value.value == "yesterday"
        assert "If-Modified-Since" in str(exc_info.value)

    def test_out_of_range_zone_carries_name_and_value(self) -> None:
        with pytest.raises(BadHeaderValueError) as exc_info:
            parse_http_date("Sun, 06 Nov 1994 08:49:37 +9900", header_name="If-Modified-Since")
        assert exc_info.value.name == "If-Modified-Since"
        assert exc_info.value.value == "Sun, 06 Nov 1994 08:49:37 +9900"

    def test_largest_numeric_zone_accepted(self) -> None:
        assert parse_http_date("Mon, 07 Nov 1994 08:48:37 +2359") == EPOCH_1994


class TestFormatHttpDate:
    def test_rfc1123(self) -> None:
        assert format_http_date(EPOCH_1994) == "Sun, 06 Nov 1994 08:49:37 GMT"

    def test_fixed_width(self) -> None:
        assert len(format_http_date(EPOCH_1994)) == 29
        assert len(format_http_date(0)) == 29

    def test_epoch(self) -> None:
        assert format_http_date(0) == "Thu, 01 Jan 1970 00:00:00 GMT"

    def test_sub_second_truncated(self) -> None:
        assert format_http_date(EPOCH_1994 + 999) == "Sun, 06 Nov 1994 08:49:37 GMT"

    def test_formatted_value_parses_back(self) -> None:
        assert parse_http_date(format_http_date(EPOCH_1994)) == EPOCH_1994

    def test_range_bounds_keep_fixed_width(self) -> None:
        assert format_http_date(MIN_FORMATTABLE_MILLIS) == "Mon, 01 Jan 0001 00:00:00 GMT"
        assert format_http_date(MAX_FORMATTABLE_MILLIS) == "Fri, 31 Dec 9999 23:59:59 GMT"

    @pytest.mark.parametrize("millis", [MAX_FORMATTABLE_MILLIS + 1, MIN_FORMATTABLE_MILLIS - 1])
    def test_out_of_range_rejected(self, millis: int) -> None:
        with pytest.raises(ValueError):
            format_http_date(millis)

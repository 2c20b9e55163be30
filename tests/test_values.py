"""Tests for value escaping, structured values, dates, offsets and URIs."""
from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest

from vcard_scribe.values import (
    DataUri,
    GeoUri,
    PartialDate,
    UtcOffset,
    escape,
    format_date,
    format_float,
    has_time,
    join_structured,
    parse_date,
    split_list,
    split_structured,
    unescape,
)


# ── Escaping ───────────────────────────────────────────────────────────────────

def test_escape_special_characters():
    assert escape("a,b;c\\d\ne") == "a\\,b\\;c\\\\d\\ne"


def test_escape_keeps_newlines_for_21():
    assert escape("one\ntwo", newlines=False) == "one\ntwo"


def test_unescape_reverses_escape():
    text = "Line 1, still; line 1\\\nLine 2"
    assert unescape(escape(text)) == text


def test_unescape_keeps_unknown_sequences():
    assert unescape("a\\tb") == "a\\tb"
    assert unescape("trailing\\") == "trailing\\"


def test_unescape_upper_case_newline():
    assert unescape("a\\Nb") == "a\nb"


# ── Lists and structured values ────────────────────────────────────────────────

def test_split_list_respects_escaped_commas():
    assert split_list("one,two\\,three") == ["one", "two,three"]
    assert split_list("") == []


def test_split_structured_keeps_empty_components():
    components = split_structured(";;123 Main St;Austin;TX;;USA")
    assert components == [[], [], ["123 Main St"], ["Austin"], ["TX"], [], ["USA"]]


def test_join_structured_is_exact():
    components = [[], [], ["123 Main St"], ["Austin"], ["TX"], [], ["USA"]]
    assert join_structured(components) == ";;123 Main St;Austin;TX;;USA"


def test_join_structured_mixes_strings_and_lists():
    assert join_structured(["Doe", "John", [], ["Dr.", "Prof."], None]) == "Doe;John;;Dr.,Prof.;"


def test_structured_multi_valued_component():
    assert split_structured("a,b;c\\;d") == [["a", "b"], ["c;d"]]


# ── UTC offsets ────────────────────────────────────────────────────────────────

@pytest.mark.parametrize("text, positive, hour, minute", [
    ("-0500", False, 5, 0),
    ("+05:30", True, 5, 30),
    ("-5", False, 5, 0),
    ("Z", True, 0, 0),
])
def test_utc_offset_parse(text, positive, hour, minute):
    offset = UtcOffset.parse(text)
    assert (offset.positive, offset.hour, offset.minute) == (positive, hour, minute)


def test_utc_offset_format():
    offset = UtcOffset.of(-5)
    assert offset.format() == "-0500"
    assert offset.format(extended=True) == "-05:00"


def test_utc_offset_rejects_bad_minutes():
    with pytest.raises(ValueError):
        UtcOffset(True, 1, 75)


def test_utc_offset_timedelta_round_trip():
    offset = UtcOffset.from_timedelta(timedelta(hours=-3, minutes=-30))
    assert offset == UtcOffset(False, 3, 30)
    assert offset.to_timedelta() == timedelta(hours=-3, minutes=-30)


# ── Complete dates ─────────────────────────────────────────────────────────────

def test_parse_date_basic_and_extended():
    assert parse_date("19800322") == date(1980, 3, 22)
    assert parse_date("1980-03-22") == date(1980, 3, 22)


def test_parse_date_time_with_offset():
    value = parse_date("1980-03-22T14:30:00-05:00")
    assert value == datetime(1980, 3, 22, 14, 30, tzinfo=timezone(timedelta(hours=-5)))


def test_parse_date_rejects_garbage():
    with pytest.raises(ValueError):
        parse_date("next tuesday")


def test_format_date_utc():
    value = datetime(2024, 1, 2, 10, 0, tzinfo=timezone(timedelta(hours=2)))
    assert format_date(value, extended=False, utc=True) == "20240102T080000Z"
    assert format_date(date(2024, 1, 2), extended=True) == "2024-01-02"


def test_has_time_only_for_date_times():
    assert has_time(datetime(1980, 3, 22, 14, 30)) is True
    assert has_time(date(1980, 3, 22)) is False


# ── Partial dates ──────────────────────────────────────────────────────────────

def test_partial_date_month_and_day():
    partial = PartialDate.parse("--0412")
    assert (partial.month, partial.date) == (4, 12)
    assert partial.year is None
    assert partial.to_iso8601() == "--0412"
    assert partial.to_iso8601(extended=True) == "--04-12"


def test_partial_time_only():
    partial = PartialDate.parse("T1022")
    assert not partial.has_date_component
    assert (partial.hour, partial.minute) == (10, 22)
    assert partial.to_iso8601(extended=True) == "T10:22"


def test_partial_time_with_offset():
    partial = PartialDate.parse("T102200-0500")
    assert partial.offset == UtcOffset.of(-5)
    assert partial.to_iso8601() == "T102200-0500"


def test_partial_date_invalid():
    with pytest.raises(ValueError):
        PartialDate.parse("--13")
    with pytest.raises(ValueError):
        PartialDate(year=2020, date=5)


# ── Numbers and URIs ───────────────────────────────────────────────────────────

def test_format_float_trims_zeros():
    assert format_float(12.5) == "12.5"
    assert format_float(-0.0) == "0"


def test_geo_uri():
    uri = GeoUri.parse("geo:46.772673,-71.282945")
    assert (uri.latitude, uri.longitude) == (46.772673, -71.282945)
    assert str(uri) == "geo:46.772673,-71.282945"


def test_data_uri():
    uri = DataUri.parse("data:image/png;base64,Zm9vYmFy")
    assert uri.media_type == "image/png"
    assert uri.data == b"foobar"
    assert str(uri) == "data:image/png;base64,Zm9vYmFy"

"""Tests for individual property scribes, called directly."""
from __future__ import annotations

from datetime import date, datetime

from vcard_scribe.errors import CannotParse, Embed, Ok, Skip
from vcard_scribe.index import ScribeIndex, default_index
from vcard_scribe.model import (
    Address,
    Agent,
    BinaryValue,
    ClientPidMap,
    DateOrTime,
    Gender,
    Geo,
    RawValue,
    StructuredName,
    Telephone,
    Text,
    Timezone,
    VCard,
)
from vcard_scribe.parameters import VCardParameters
from vcard_scribe.scribe import ParseContext, WriteContext
from vcard_scribe.scribes_binary import BinaryScribe, media_type_for, type_name_for
from vcard_scribe.scribes_datetime import DateOrTimeScribe, TimezoneScribe
from vcard_scribe.scribes_embedded import AgentScribe
from vcard_scribe.scribes_structured import AddressScribe, ClientPidMapScribe, GeoScribe
from vcard_scribe.scribes_text import GenderScribe, RawScribe, TelephoneScribe, TextScribe
from vcard_scribe.values import PartialDate, UtcOffset
from vcard_scribe.versions import BINARY, DATE, TEXT, URI, VCardVersion

V21 = VCardVersion.V2_1
V30 = VCardVersion.V3_0
V40 = VCardVersion.V4_0


def _write(scribe, value, version):
    return scribe.write_text(value, WriteContext(version))


def _parse(scribe, text, version, data_type=None, params=None):
    context = ParseContext(version)
    result = scribe.parse_text(text, data_type, params or VCardParameters(), context)
    return result, context.warnings


# ── Index ──────────────────────────────────────────────────────────────────────

def test_default_index_knows_standard_properties():
    index = default_index()
    for name in ("FN", "N", "ADR", "TEL", "PHOTO", "BDAY", "AGENT", "CLIENTPIDMAP"):
        assert name in index


def test_unknown_property_gets_raw_scribe():
    scribe = default_index().scribe_for("X-CUSTOM")
    assert isinstance(scribe, RawScribe)
    assert scribe.property_name == "X-CUSTOM"


def test_register_replaces_and_unregister_removes():
    index = ScribeIndex()
    index.register(TextScribe("X-SHOE-SIZE"))
    assert index.has("x-shoe-size")
    removed = index.unregister("X-SHOE-SIZE")
    assert isinstance(removed, TextScribe)
    assert "X-SHOE-SIZE" not in index


def test_hcard_and_xml_lookup():
    index = default_index()
    assert index.scribe_for_hcard_class("tel").property_name == "TEL"
    assert index.scribe_for_hcard_class("category").property_name == "CATEGORIES"
    assert index.scribe_for_xml("urn:ietf:params:xml:ns:vcard-4.0", "fn").property_name == "FN"
    assert index.scribe_for_xml("urn:example", "fn") is None


# ── PREF / TYPE=pref ───────────────────────────────────────────────────────────

def _emails(prefs):
    vcard = VCard(V40)
    props = []
    for i, pref in enumerate(prefs, start=1):
        params = VCardParameters()
        if pref is not None:
            params.pref = pref
        props.append(vcard.add("EMAIL", Text(f"e{i}@example.com"), params))
    return vcard, props


def test_lowest_pref_becomes_type_pref_before_40():
    vcard, props = _emails([3, 1, 2, None])
    scribe = default_index().scribe_for("EMAIL")
    prepared = [scribe.prepare_parameters(p, V30, vcard) for p in props]
    assert [p.types for p in prepared] == [[], ["pref"], [], []]
    assert all("PREF" not in p for p in prepared)


def test_pref_tie_goes_to_first():
    vcard, props = _emails([1, 1])
    scribe = default_index().scribe_for("EMAIL")
    assert scribe.prepare_parameters(props[0], V30, vcard).types == ["pref"]
    assert scribe.prepare_parameters(props[1], V30, vcard).types == []


def test_type_pref_becomes_pref_1_in_40():
    vcard = VCard(V30)
    prop = vcard.add("TEL", Telephone(text="555"), VCardParameters([("TYPE", "home"), ("TYPE", "PREF")]))
    prepared = TelephoneScribe().prepare_parameters(prop, V40, vcard)
    assert prepared.types == ["home"]
    assert prepared.pref == 1


def test_prepare_parameters_leaves_original_untouched():
    vcard, props = _emails([2])
    default_index().scribe_for("EMAIL").prepare_parameters(props[0], V30, vcard)
    assert props[0].parameters.pref == 2


# ── Data types and VALUE ───────────────────────────────────────────────────────

def test_value_parameter_only_when_not_default():
    tel = TelephoneScribe()
    assert tel.value_parameter(Telephone(text="555"), V40) is None
    assert tel.value_parameter(Telephone(uri="tel:+1555"), V40) is URI


def test_value_parameter_skips_date_types_under_date_and_or_time():
    bday = DateOrTimeScribe("BDAY")
    assert bday.value_parameter(DateOrTime(date=date(1980, 3, 22)), V40) is None
    assert bday.value_parameter(DateOrTime(text="circa 1800"), V40) is TEXT


def test_supported_versions():
    assert default_index().scribe_for("GENDER").supported_versions == frozenset({V40})
    assert V21 not in default_index().scribe_for("NICKNAME").supported_versions


# ── TEL ────────────────────────────────────────────────────────────────────────

def test_tel_uri_in_40_and_text_before():
    value = Telephone(uri="tel:+1-555-0100;ext=12")
    assert _write(TelephoneScribe(), value, V40) == Ok("tel:+1-555-0100;ext=12")
    assert _write(TelephoneScribe(), value, V30) == Ok("+1-555-0100")


def test_tel_parse_uri_and_text():
    result, _ = _parse(TelephoneScribe(), "tel:+1-555-0100", V40, URI)
    assert result == Ok(Telephone(uri="tel:+1-555-0100"))
    result, _ = _parse(TelephoneScribe(), "(555) 0100", V30)
    assert result == Ok(Telephone(text="(555) 0100"))


# ── ADR ────────────────────────────────────────────────────────────────────────

def test_adr_round_trips_components():
    text = ";;123 Main St;Austin;TX;;USA"
    result, _ = _parse(AddressScribe(), text, V30)
    address = result.value
    assert (address.street, address.locality, address.country) == ("123 Main St", "Austin", "USA")
    assert address.po_box is None
    assert _write(AddressScribe(), address, V30) == Ok(text)


def test_adr_label_parameter_in_40():
    params = VCardParameters([("LABEL", "1 Work St\nCity")])
    result, _ = _parse(AddressScribe(), ";;1 Work St;City;;;", V40, params=params)
    assert result.value.label == "1 Work St\nCity"
    assert "LABEL" not in params


def test_adr_label_parameter_dropped_before_40():
    vcard = VCard()
    prop = vcard.add("ADR", Address(streets=["1 Work St"], label="1 Work St"))
    assert AddressScribe().prepare_parameters(prop, V40, vcard).label == "1 Work St"
    assert "LABEL" not in AddressScribe().prepare_parameters(prop, V30, vcard)


# ── Binary ─────────────────────────────────────────────────────────────────────

def test_media_type_names():
    assert media_type_for("PNG") == "image/png"
    assert media_type_for("jpg") == "image/jpeg"
    assert type_name_for("image/jpeg") == "JPEG"


def test_binary_value_holds_one_alternative():
    value = BinaryValue(url="http://example.com/a.png", content_type="image/png")
    value.data = b"abc"
    assert value.url is None
    assert value.data == b"abc"
    assert value.content_type == "image/png"


def test_binary_write_per_version():
    value = BinaryValue(data=b"foobar", content_type="image/png")
    scribe = BinaryScribe("PHOTO")
    assert _write(scribe, value, V30) == Ok("Zm9vYmFy")
    assert _write(scribe, value, V40) == Ok("data:image/png;base64,Zm9vYmFy")


def test_binary_parameters_per_version():
    vcard = VCard()
    prop = vcard.add("PHOTO", BinaryValue(data=b"x", content_type="image/png"))
    scribe = BinaryScribe("PHOTO")
    v30 = scribe.prepare_parameters(prop, V30, vcard)
    assert list(v30) == [("TYPE", "PNG"), ("ENCODING", "b")]
    v21 = scribe.prepare_parameters(prop, V21, vcard)
    assert v21.encoding == "BASE64"
    assert len(scribe.prepare_parameters(prop, V40, vcard)) == 0


def test_binary_url_carries_mediatype_in_40():
    vcard = VCard()
    prop = vcard.add("PHOTO", BinaryValue(url="http://example.com/a.png", content_type="image/png"))
    assert BinaryScribe("PHOTO").prepare_parameters(prop, V40, vcard).media_type == "image/png"


def test_binary_parse_data_uri():
    result, warnings = _parse(BinaryScribe("PHOTO"), "data:image/gif;base64,Zm9vYmFy", V40, URI)
    assert result == Ok(BinaryValue(data=b"foobar", content_type="image/gif"))
    assert warnings == []


def test_binary_parse_encoding_parameter():
    params = VCardParameters([("ENCODING", "b"), ("TYPE", "JPEG")])
    result, warnings = _parse(BinaryScribe("PHOTO"), "Zm9vYmFy", V30, BINARY, params)
    assert result == Ok(BinaryValue(data=b"foobar", content_type="image/jpeg"))
    assert warnings == []


def test_binary_guesses_url_with_warning():
    result, warnings = _parse(BinaryScribe("PHOTO"), "http://example.com/me.jpg", V21)
    assert result.value.url == "http://example.com/me.jpg"
    assert len(warnings) == 1


def test_binary_guesses_base64_with_warning():
    result, warnings = _parse(BinaryScribe("PHOTO"), "Zm9vYmFy", V21)
    assert result.value.data == b"foobar"
    assert len(warnings) == 1


def test_key_accepts_text():
    result, _ = _parse(BinaryScribe("KEY", text_allowed=True), "ssh-rsa AAAA", V40, TEXT)
    assert result.value.text == "ssh-rsa AAAA"


def test_empty_binary_is_skipped():
    assert isinstance(_write(BinaryScribe("LOGO"), BinaryValue(), V40), Skip)


# ── Dates and times ────────────────────────────────────────────────────────────

def test_date_written_basic_in_40_and_extended_before():
    value = DateOrTime(date=date(1980, 3, 22))
    scribe = DateOrTimeScribe("BDAY")
    assert _write(scribe, value, V40) == Ok("19800322")
    assert _write(scribe, value, V30) == Ok("1980-03-22")
    assert _write(scribe, value, V21) == Ok("19800322")


def test_partial_date_in_40():
    result, warnings = _parse(DateOrTimeScribe("BDAY"), "--0412", V40)
    assert result == Ok(DateOrTime(partial=PartialDate(month=4, date=12)))
    assert warnings == []


def test_partial_date_skipped_before_40():
    value = DateOrTime(partial=PartialDate(month=4, date=12))
    scribe = DateOrTimeScribe("BDAY")
    assert _write(scribe, value, V40) == Ok("--0412")
    assert isinstance(_write(scribe, value, V30), Skip)
    assert isinstance(_write(scribe, value, V21), Skip)


def test_has_time_follows_the_populated_slot():
    assert DateOrTime(partial=PartialDate.parse("T1022")).has_time
    assert not DateOrTime(partial=PartialDate(month=4, date=12)).has_time
    assert DateOrTime(date=datetime(1980, 3, 22, 10, 22)).has_time
    assert not DateOrTime(date=date(1980, 3, 22)).has_time
    assert not DateOrTime(text="spring").has_time


def test_bad_date_in_30_cannot_parse():
    result, _ = _parse(DateOrTimeScribe("BDAY"), "not a date", V30, DATE)
    assert isinstance(result, CannotParse)


def test_bad_date_in_40_falls_back_to_text():
    result, warnings = _parse(DateOrTimeScribe("BDAY"), "sometime in spring", V40)
    assert result.value.text == "sometime in spring"
    assert len(warnings) == 1


def test_timezone_offset_formats():
    value = Timezone(offset=UtcOffset.of(-5))
    scribe = TimezoneScribe()
    assert _write(scribe, value, V21) == Ok("-0500")
    assert _write(scribe, value, V30) == Ok("-05:00")


def test_timezone_text_in_30_is_not_an_offset():
    result, warnings = _parse(TimezoneScribe(), "America/New_York", V30)
    assert result.value.text == "America/New_York"
    assert len(warnings) == 1


# ── GEO, GENDER, CLIENTPIDMAP ──────────────────────────────────────────────────

def test_geo_per_version():
    value = Geo(12.5, -30.25)
    assert _write(GeoScribe(), value, V40) == Ok("geo:12.5,-30.25")
    assert _write(GeoScribe(), value, V30) == Ok("12.5;-30.25")


def test_geo_parse_both_forms():
    assert _parse(GeoScribe(), "12.5;-30.25", V30)[0] == Ok(Geo(12.5, -30.25))
    assert _parse(GeoScribe(), "geo:12.5,-30.25", V40, URI)[0] == Ok(Geo(12.5, -30.25))


def test_geo_bad_number():
    result, _ = _parse(GeoScribe(), "north;west", V30)
    assert isinstance(result, CannotParse)


def test_gender_components():
    assert _write(GenderScribe(), Gender("M"), V40) == Ok("M")
    assert _write(GenderScribe(), Gender("O", "intersex"), V40) == Ok("O;intersex")
    assert _parse(GenderScribe(), "f;Fellow", V40)[0] == Ok(Gender("F", "Fellow"))


def test_client_pid_map():
    value = ClientPidMap(1, "urn:uuid:1234")
    assert _write(ClientPidMapScribe(), value, V40) == Ok("1;urn:uuid:1234")
    assert _parse(ClientPidMapScribe(), "1;urn:uuid:1234", V40)[0] == Ok(value)


def test_client_pid_map_without_values_is_skipped():
    result = _write(ClientPidMapScribe(), ClientPidMap(), V40)
    assert isinstance(result, Skip)
    assert "neither" in result.reason


def test_client_pid_map_without_uri_cannot_parse():
    assert isinstance(_parse(ClientPidMapScribe(), "1", V40)[0], CannotParse)


# ── Names, raw values, AGENT ───────────────────────────────────────────────────

def test_structured_name():
    scribe = default_index().scribe_for("N")
    value = StructuredName("Doe", "John", ["Q.", "Public"], ["Dr."], [])
    assert _write(scribe, value, V30) == Ok("Doe;John;Q.,Public;Dr.;")
    assert _parse(scribe, "Doe;John;Q.,Public;Dr.;", V30)[0] == Ok(value)


def test_raw_value_written_verbatim():
    scribe = RawScribe("X-CUSTOM")
    assert _parse(scribe, "a\\,b;c", V30)[0] == Ok(RawValue("a\\,b;c"))
    assert _write(scribe, RawValue("a\\,b;c"), V30) == Ok("a\\,b;c")


def test_agent_url_and_embedded():
    assert _parse(AgentScribe(), "http://example.com/agent", V30, URI)[0] == Ok(Agent(url="http://example.com/agent"))
    result, _ = _parse(AgentScribe(), "BEGIN:VCARD\\nEND:VCARD", V30)
    assert isinstance(result, Embed)
    assert result.text == "BEGIN:VCARD\nEND:VCARD"


def test_agent_with_vcard_asks_to_embed():
    child = VCard(V30)
    result = _write(AgentScribe(), Agent(vcard=child), V30)
    assert isinstance(result, Embed)
    assert result.value is child

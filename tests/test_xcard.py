"""xCard reading and writing."""
from __future__ import annotations

import xml.etree.ElementTree as ET
from datetime import date

import pytest

from vcard_scribe.errors import VCardParseError
from vcard_scribe.model import (
    Address,
    Agent,
    ClientPidMap,
    DateOrTime,
    Gender,
    StructuredName,
    Telephone,
    Text,
    TextList,
    VCard,
    Xml,
)
from vcard_scribe.parameters import VCardParameters
from vcard_scribe.versions import XCARD_NS, VCardVersion
from vcard_scribe.xcard import read_xcard, write_xcard

NS = {"x": XCARD_NS}


def _doc(*properties: str) -> str:
    body = "".join(properties)
    return f'<vcards xmlns="{XCARD_NS}"><vcard>{body}</vcard></vcards>'


def _person() -> VCard:
    vcard = VCard(VCardVersion.V4_0)
    vcard.add("FN", Text("John Doe"))
    vcard.add("N", StructuredName("Doe", "John", prefixes=["Dr."]))
    return vcard


def _written_root(vcard: VCard) -> ET.Element:
    text, _ = write_xcard([vcard])
    return ET.fromstring(text)


# ── Writing ────────────────────────────────────────────────────────────────────

def test_writes_vcards_root_and_declaration():
    text, warnings = write_xcard([_person()])
    assert text.startswith("<?xml")
    assert warnings == []
    root = ET.fromstring(text)
    assert root.tag == f"{{{VCardVersion.V4_0.xml_namespace}}}vcards"
    assert VCardVersion.V3_0.xml_namespace is None
    assert root.find("x:vcard/x:fn/x:text", NS).text == "John Doe"


def test_structured_name_elements():
    n = _written_root(_person()).find("x:vcard/x:n", NS)
    assert n.find("x:surname", NS).text == "Doe"
    assert n.find("x:given", NS).text == "John"
    assert n.find("x:prefix", NS).text == "Dr."
    assert (n.find("x:additional", NS).text or "") == ""


def test_parameters_block():
    vcard = _person()
    params = VCardParameters([("TYPE", "work")])
    params.pref = 1
    vcard.add("TEL", Telephone(uri="tel:+1-555-0100"), params)

    tel = _written_root(vcard).find("x:vcard/x:tel", NS)
    assert tel[0].tag == f"{{{XCARD_NS}}}parameters"
    assert tel.find("x:parameters/x:type/x:text", NS).text == "work"
    assert tel.find("x:parameters/x:pref/x:integer", NS).text == "1"
    assert tel.find("x:uri", NS).text == "tel:+1-555-0100"


def test_groups_wrap_properties():
    vcard = _person()
    vcard.add("EMAIL", Text("a@example.com"), group="item1")
    group = _written_root(vcard).find("x:vcard/x:group", NS)
    assert group.get("name") == "item1"
    assert group.find("x:email/x:text", NS).text == "a@example.com"


def test_date_value_element():
    vcard = _person()
    vcard.add("BDAY", DateOrTime(date=date(1980, 3, 22)))
    bday = _written_root(vcard).find("x:vcard/x:bday", NS)
    assert bday.find("x:date", NS).text == "19800322"


def test_agent_is_dropped_with_warning():
    vcard = _person()
    vcard.add("AGENT", Agent(vcard=_person()))
    text, warnings = write_xcard([vcard])
    assert "agent" not in text
    assert [w.property_name for w in warnings] == ["AGENT", "AGENT"]


def test_skipped_property_warns():
    vcard = _person()
    vcard.add("CLIENTPIDMAP", ClientPidMap())
    text, warnings = write_xcard([vcard])
    assert "clientpidmap" not in text
    assert len(warnings) == 1


def test_xml_property_is_inserted_as_is():
    vcard = _person()
    vcard.add("XML", Xml('<a:b xmlns:a="urn:example">hi</a:b>'))
    root = _written_root(vcard)
    assert root.find("x:vcard/{urn:example}b", NS).text == "hi"


# ── Reading ────────────────────────────────────────────────────────────────────

def test_reads_properties_and_parameters():
    vcards, warnings = read_xcard(_doc(
        "<fn><text>John Doe</text></fn>",
        "<n><surname>Doe</surname><given>John</given><additional/><prefix/><suffix/></n>",
        "<tel><parameters><type><text>work</text><text>voice</text></type></parameters>"
        "<uri>tel:+1-555-0100</uri></tel>",
        "<gender><sex>M</sex></gender>",
    ))
    assert warnings == []
    vcard = vcards[0]
    assert vcard.version is VCardVersion.V4_0
    assert vcard.formatted_name == "John Doe"
    assert vcard.first("N").value == StructuredName("Doe", "John")
    tel = vcard.first("TEL")
    assert tel.value == Telephone(uri="tel:+1-555-0100")
    assert tel.parameters.types == ["work", "voice"]
    assert vcard.first("GENDER").value == Gender("M")


def test_reads_bare_vcard_root():
    vcards, _ = read_xcard(f'<vcard xmlns="{XCARD_NS}"><fn><text>A</text></fn></vcard>')
    assert [v.formatted_name for v in vcards] == ["A"]


def test_reads_group():
    vcards, _ = read_xcard(_doc('<group name="item1"><email><text>a@example.com</text></email></group>'))
    assert vcards[0].first("EMAIL").group == "item1"


def test_foreign_element_kept_as_xml():
    vcards, warnings = read_xcard(_doc('<x:foo xmlns:x="urn:example">bar</x:foo>'))
    xml = vcards[0].first("XML").value.value
    assert "urn:example" in xml
    assert "bar" in xml
    assert warnings == []


def test_unparseable_property_kept_as_xml_with_warning():
    vcards, warnings = read_xcard(_doc("<clientpidmap><sourceid>1</sourceid></clientpidmap>"))
    assert vcards[0].first("CLIENTPIDMAP") is None
    assert "clientpidmap" in vcards[0].first("XML").value.value
    assert len(warnings) == 1


def test_malformed_document_raises():
    with pytest.raises(VCardParseError):
        read_xcard("<vcards><vcard>")


# ── Round trip ─────────────────────────────────────────────────────────────────

def test_round_trip_keeps_values():
    vcard = _person()
    vcard.add("ADR", Address(streets=["123 Main St"], localities=["Austin"], countries=["USA"],
                             label="123 Main St\nAustin"),
              VCardParameters([("TYPE", "home")]))
    vcard.add("CATEGORIES", TextList(["friends", "work"]))
    vcard.add("CLIENTPIDMAP", ClientPidMap(1, "urn:uuid:1234"))

    text, _ = write_xcard([vcard])
    back, warnings = read_xcard(text)
    assert warnings == []
    card = back[0]
    assert card.first("ADR").value == vcard.first("ADR").value
    assert card.first("ADR").parameters.types == ["home"]
    assert card.first("CATEGORIES").value.values == ["friends", "work"]
    assert card.first("CLIENTPIDMAP").value == ClientPidMap(1, "urn:uuid:1234")

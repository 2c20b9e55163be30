"""hCard (HTML microformat) reading."""
from __future__ import annotations

from vcard_scribe.config import Settings
from vcard_scribe.elements import HCardElement, HTMLTreeBuilder
from vcard_scribe.hcard import read_hcard
from vcard_scribe.model import Address, BinaryValue, RawValue, StructuredName, Telephone, Text
from vcard_scribe.versions import VCardVersion

PAGE = """
<html><body>
<div class="vcard">
  <a class="url fn" href="/john">John Doe</a>
  <div class="n"><span class="family-name">Doe</span> <span class="given-name">John</span></div>
  <div class="tel"><span class="type">work</span> <span class="value">+1 555 0100</span></div>
  <a class="email" href="mailto:john@example.com?subject=hi">email me</a>
  <div class="adr">
    <span class="type">home</span>
    <span class="street-address">123 Main St</span>
    <span class="locality">Austin</span>, <span class="region">TX</span>
    <span class="country-name">USA</span>
  </div>
  <div class="label"><span class="type">home</span>123 Main St<br>Austin</div>
  <img class="photo" src="/photo.jpg" alt="me">
  <p class="note">Likes   <em>long</em>
     walks</p>
  <div class="agent vcard"><span class="fn">Jane Smith</span></div>
</div>
<div class="vcard"><span class="fn">Second Person</span></div>
</body></html>
"""

BASE = "http://example.com/people/"


def _read(html: str = PAGE, **kwargs):
    return read_hcard(html, base_url=BASE, **kwargs)


# ── Elements ───────────────────────────────────────────────────────────────────

def test_value_class_wins_over_text():
    root = HTMLTreeBuilder.parse('<div class="tel"><span class="type">home</span> <b class="value">555</b></div>')
    assert HCardElement(root[0]).value() == "555"


def test_abbr_title_is_the_value():
    root = HTMLTreeBuilder.parse('<abbr class="bday" title="1980-03-22">March 22</abbr>')
    assert HCardElement(root[0]).value() == "1980-03-22"


def test_text_value_collapses_whitespace_and_keeps_breaks():
    root = HTMLTreeBuilder.parse("<p>one   two<br>three</p>")
    assert HCardElement(root[0]).value() == "one two\nthree"


# ── Reading ────────────────────────────────────────────────────────────────────

def test_finds_top_level_cards_only():
    vcards, _ = _read()
    assert [v.formatted_name for v in vcards] == ["John Doe", "Second Person"]
    assert all(v.version is VCardVersion.V3_0 for v in vcards)


def test_source_is_the_page_url():
    vcards, _ = _read()
    assert vcards[0].properties[0].name == "SOURCE"
    assert vcards[0].first("SOURCE").value == Text(BASE)


def test_no_source_without_base_url():
    vcards, _ = read_hcard(PAGE)
    assert vcards[0].first("SOURCE") is None
    assert vcards[0].first("URL").value == Text("/john")


def test_properties():
    vcard = _read()[0][0]
    assert vcard.first("URL").value == Text("http://example.com/john")
    assert vcard.first("N").value == StructuredName("Doe", "John")
    tel = vcard.first("TEL")
    assert tel.value == Telephone(text="+1 555 0100")
    assert tel.parameters.types == ["work"]
    assert vcard.first("EMAIL").value == Text("john@example.com")
    assert vcard.first("NOTE").value == Text("Likes long walks")


def test_address_and_label():
    adr = _read()[0][0].first("ADR")
    assert adr.parameters.types == ["home"]
    assert adr.value == Address(
        streets=["123 Main St"], localities=["Austin"], regions=["TX"], countries=["USA"],
        label="123 Main St\nAustin",
    )


def test_photo_url_is_absolute():
    photo = _read()[0][0].first("PHOTO").value
    assert photo == BinaryValue(url="http://example.com/photo.jpg", content_type="image/jpeg")


def test_nested_vcard_becomes_agent():
    vcard = _read()[0][0]
    agent = vcard.first("AGENT").value
    assert agent.vcard.formatted_name == "Jane Smith"
    assert agent.vcard.first("SOURCE") is None
    assert len(vcard.properties_named("FN")) == 1


def test_agent_past_depth_limit_is_dropped():
    vcards, warnings = _read(settings=Settings(max_embedded_depth=0))
    assert vcards[0].first("AGENT") is None
    assert any("deeper" in w.message for w in warnings)


def test_page_without_cards():
    vcards, warnings = _read("<p>nothing here</p>")
    assert vcards == []
    assert warnings == []


def test_unparseable_values_are_kept_raw():
    html = (
        '<div class="vcard"><span class="fn">A</span>'
        '<span class="geo">somewhere</span><span class="bday">not a date</span></div>'
    )
    vcards, warnings = read_hcard(html)
    vcard = vcards[0]
    assert [p.name for p in vcard.properties] == ["FN", "GEO", "BDAY"]
    assert vcard.first("GEO").value == RawValue("somewhere")
    assert vcard.first("BDAY").value == RawValue("not a date")
    assert [w.property_name for w in warnings] == ["GEO", "BDAY"]

"""xCard (RFC 6351): vCard 4.0 as XML.

Elements outside the xCard namespace are kept as XML properties, and so
is any property whose value cannot be read.
"""
from __future__ import annotations

import logging
import xml.etree.ElementTree as ET

from .elements import XCardElement, local_name, namespace_of
from .errors import CannotParse, Embed, Ok, Skip, VCardParseError, VCardWarning
from .index import ScribeIndex, default_index
from .model import VCard, VCardProperty, Xml
from .parameters import VCardParameters
from .scribe import ParseContext, WriteContext
from .versions import XCARD_NS, VCardVersion

logger = logging.getLogger(__name__)

ET.register_namespace("", XCARD_NS)

V40 = VCardVersion.V4_0

# Value element used for each parameter; anything not listed is <text>.
_PARAMETER_TYPES = {
    "PREF": "integer",
    "INDEX": "integer",
    "GEO": "uri",
    "LANGUAGE": "language-tag",
}


def _q(name: str) -> str:
    return f"{{{XCARD_NS}}}{name}"


# ── Reading ────────────────────────────────────────────────────────────────────

def _read_parameters(element: ET.Element) -> VCardParameters:
    params = VCardParameters()
    block = element.find(_q("parameters"))
    if block is None:
        return params
    for param in block:
        name = local_name(param.tag).upper()
        values = [child.text or "" for child in param]
        for value in values or [param.text or ""]:
            params.put(name, value)
    return params


class _XCardReader:
    def __init__(self, index: ScribeIndex):
        self.index = index
        self.warnings: list[VCardWarning] = []

    def _warn(self, message: str, property_name: str | None = None) -> None:
        self.warnings.append(VCardWarning(message, property_name))

    def read(self, root: ET.Element) -> list[VCard]:
        if root.tag == _q("vcard"):
            elements = [root]
        else:
            elements = list(root.iter(_q("vcard")))
        return [self._read_vcard(el) for el in elements]

    def _read_vcard(self, element: ET.Element) -> VCard:
        vcard = VCard(version=V40)
        for child in element:
            if child.tag == _q("group"):
                group = child.get("name") or None
                for grouped in child:
                    self._read_property(vcard, grouped, group)
            else:
                self._read_property(vcard, child, None)
        logger.debug("read xCard with %d properties", len(vcard))
        return vcard

    def _as_xml(self, vcard: VCard, element: ET.Element, group: str | None) -> None:
        vcard.add("XML", Xml(ET.tostring(element, encoding="unicode")), group=group)

    def _read_property(self, vcard: VCard, element: ET.Element, group: str | None) -> None:
        if not isinstance(element.tag, str):
            return
        scribe = self.index.scribe_for_xml(namespace_of(element.tag), local_name(element.tag))
        if scribe is None:
            self._as_xml(vcard, element, group)
            return

        name = scribe.property_name
        params = _read_parameters(element)
        context = ParseContext(V40)
        result = scribe.parse_xml(XCardElement(element), params, context)
        if not isinstance(result, (Skip, CannotParse)):
            for message in context.warnings:
                self._warn(message, name)

        if isinstance(result, Ok):
            vcard.add(VCardProperty(name, result.value, params, group))
        elif isinstance(result, Skip):
            self._warn(f"Property has requested that it be skipped: {result.reason}", name)
        elif isinstance(result, CannotParse):
            self._warn(f"Property value could not be parsed and is kept as an XML property: {result.reason}", name)
            self._as_xml(vcard, element, group)
        elif isinstance(result, Embed):
            self._warn("Embedded vCards are not supported in xCard; property dropped.", name)


def read_xcard(
    text: str,
    index: ScribeIndex | None = None,
) -> tuple[list[VCard], list[VCardWarning]]:
    """Read every ``<vcard>`` element of an xCard document."""
    try:
        root = ET.fromstring(text)
    except ET.ParseError as exc:
        raise VCardParseError(f"xCard document is not well-formed: {exc}") from exc
    reader = _XCardReader(index or default_index())
    return reader.read(root), reader.warnings


# ── Writing ────────────────────────────────────────────────────────────────────

class _XCardWriter:
    def __init__(self, index: ScribeIndex):
        self.index = index
        self.warnings: list[VCardWarning] = []

    def _warn(self, message: str, property_name: str | None = None) -> None:
        self.warnings.append(VCardWarning(message, property_name))

    def write(self, vcard: VCard) -> ET.Element:
        root = ET.Element(_q("vcard"))
        groups: dict[str, ET.Element] = {}
        for prop in vcard.properties:
            element = self._property_element(vcard, prop)
            if element is None:
                continue
            if prop.group:
                parent = groups.get(prop.group)
                if parent is None:
                    parent = groups[prop.group] = ET.SubElement(root, _q("group"), name=prop.group)
                parent.append(element)
            else:
                root.append(element)
        if vcard.orphaned_labels:
            self._warn(f"{len(vcard.orphaned_labels)} label(s) match no address and were not written.", "LABEL")
        return root

    def _property_element(self, vcard: VCard, prop: VCardProperty) -> ET.Element | None:
        name = prop.name
        if name == "XML" and isinstance(prop.value, Xml):
            try:
                return ET.fromstring(prop.value.value or "")
            except ET.ParseError as exc:
                self._warn(f"XML property is not well-formed and was dropped: {exc}", name)
                return None

        scribe = self.index.scribe_for_property(prop)
        if V40 not in scribe.supported_versions:
            self._warn("Property is not part of vCard 4.0; writing it anyway.", name)

        element = XCardElement.create(scribe.xml_name)
        context = WriteContext(V40, vcard)
        result = scribe.write_xml(prop.value, element, context)
        for message in context.warnings:
            self._warn(message, name)
        if isinstance(result, Skip):
            self._warn(f"Property has requested that it be skipped: {result.reason}", name)
            return None
        if isinstance(result, Embed):
            self._warn("Embedded vCards are not supported in xCard; property dropped.", name)
            return None

        params = scribe.prepare_parameters(prop, V40, vcard)
        # The value element already names the data type.
        params.remove_all("VALUE")
        if len(params):
            element.element.insert(0, self._parameters_element(params))
        return element.element

    def _parameters_element(self, params: VCardParameters) -> ET.Element:
        block = ET.Element(_q("parameters"))
        for name, values in params.as_multimap().items():
            param = ET.SubElement(block, _q(name.lower()))
            value_tag = _q(_PARAMETER_TYPES.get(name, "text"))
            for value in values:
                ET.SubElement(param, value_tag).text = value
        return block


def write_xcard(
    vcards: list[VCard],
    index: ScribeIndex | None = None,
    indent: bool = True,
) -> tuple[str, list[VCardWarning]]:
    """Serialize ``vcards`` as one ``<vcards>`` document."""
    writer = _XCardWriter(index or default_index())
    root = ET.Element(_q("vcards"))
    for vcard in vcards:
        root.append(writer.write(vcard))
    if indent:
        ET.indent(root)
    return ET.tostring(root, encoding="unicode", xml_declaration=True), writer.warnings

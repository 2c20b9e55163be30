"""hCard: vCard 3.0 data marked up with microformat class names in HTML.

Only reading is supported.
"""
from __future__ import annotations

import logging
import xml.etree.ElementTree as ET

from .config import Settings
from .elements import HCardElement, HTMLTreeBuilder, class_names
from .errors import CannotParse, Embed, Ok, Skip, VCardWarning
from .index import ScribeIndex, default_index
from .model import Label, RawValue, Text, VCard, VCardProperty
from .parameters import VCardParameters
from .scribe import ParseContext
from .scribes_structured import assign_labels
from .versions import VCardVersion

logger = logging.getLogger(__name__)

V30 = VCardVersion.V3_0


def _outermost_vcards(element: ET.Element) -> list[ET.Element]:
    found: list[ET.Element] = []
    for child in element:
        if "vcard" in class_names(child):
            found.append(child)
        else:
            found.extend(_outermost_vcards(child))
    return found


class _HCardReader:
    def __init__(self, index: ScribeIndex, base_url: str | None, settings: Settings):
        self.index = index
        self.base_url = base_url
        self.settings = settings
        self.warnings: list[VCardWarning] = []

    def _warn(self, message: str, property_name: str | None = None) -> None:
        self.warnings.append(VCardWarning(message, property_name))

    def read_vcard(self, root: ET.Element, depth: int = 0) -> VCard:
        vcard = VCard(version=V30)
        labels: list[tuple[VCardProperty, int]] = []
        if self.base_url and depth == 0:
            vcard.add("SOURCE", Text(self.base_url))
        for child in root:
            self._visit(vcard, labels, child, depth)
        assign_labels(vcard, labels)
        logger.debug("read hCard with %d properties", len(vcard))
        return vcard

    def _visit(
        self, vcard: VCard, labels: list[tuple[VCardProperty, int]], element: ET.Element, depth: int
    ) -> None:
        names = class_names(element)
        for name in names:
            scribe = self.index.scribe_for_hcard_class(name)
            if scribe is not None:
                self._read_property(vcard, labels, scribe, element, depth)

        # A nested vCard belongs to its AGENT (read above) or to nobody.
        if "vcard" in names:
            return
        for child in element:
            self._visit(vcard, labels, child, depth)

    def _read_property(self, vcard, labels, scribe, element: ET.Element, depth: int) -> None:
        name = scribe.property_name
        params = VCardParameters()
        context = ParseContext(V30)
        result = scribe.parse_html(HCardElement(element, self.base_url), params, context)
        if not isinstance(result, (Skip, CannotParse)):
            for message in context.warnings:
                self._warn(message, name)

        if isinstance(result, Ok):
            prop = VCardProperty(name, result.value, params)
            if isinstance(result.value, Label):
                labels.append((prop, len(vcard.properties_named("ADR"))))
            else:
                vcard.add(prop)
        elif isinstance(result, Skip):
            self._warn(f"Property has requested that it be skipped: {result.reason}", name)
        elif isinstance(result, CannotParse):
            self._warn(f"Property value could not be parsed and is kept as raw text: {result.reason}", name)
            vcard.add(VCardProperty(name, RawValue(HCardElement(element, self.base_url).value()), params))
        elif isinstance(result, Embed):
            limit = self.settings.max_embedded_depth
            if depth + 1 > limit:
                self._warn(f"Embedded vCard nested deeper than {limit} levels; ignoring it.", name)
                return
            result.value.vcard = self.read_vcard(element, depth + 1)
            vcard.add(VCardProperty(name, result.value, params))


def read_hcard(
    html: str,
    base_url: str | None = None,
    index: ScribeIndex | None = None,
    settings: Settings | None = None,
) -> tuple[list[VCard], list[VCardWarning]]:
    """Read every top-level ``class="vcard"`` element of an HTML page.

    ``base_url`` resolves relative links and, when given, is recorded as
    each record's SOURCE.
    """
    root = HTMLTreeBuilder.parse(html)
    reader = _HCardReader(index or default_index(), base_url, settings or Settings())
    vcards = [reader.read_vcard(el) for el in _outermost_vcards(root)]
    return vcards, reader.warnings

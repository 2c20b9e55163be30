"""jCard (RFC 7095): vCard 4.0 as JSON arrays."""
from __future__ import annotations

import json
import logging
from typing import Any

from .elements import JCardValue
from .errors import CannotParse, Embed, Ok, Skip, VCardParseError, VCardWarning
from .index import ScribeIndex, default_index
from .model import RawValue, VCard, VCardProperty
from .parameters import VCardParameters
from .scribe import ParseContext, WriteContext, json_to_text
from .versions import VCardDataType, VCardVersion

logger = logging.getLogger(__name__)

V40 = VCardVersion.V4_0


# ── Reading ────────────────────────────────────────────────────────────────────

def _parameters(raw: Any) -> tuple[VCardParameters, str | None]:
    params = VCardParameters()
    group = None
    if not isinstance(raw, dict):
        return params, group
    for name, value in raw.items():
        if name.lower() == "group":
            group = str(value) or None
            continue
        for item in value if isinstance(value, list) else [value]:
            params.put(name, str(item))
    return params, group


class _JCardReader:
    def __init__(self, index: ScribeIndex):
        self.index = index
        self.warnings: list[VCardWarning] = []

    def _warn(self, message: str, property_name: str | None = None) -> None:
        self.warnings.append(VCardWarning(message, property_name))

    def read_vcard(self, data: Any) -> VCard:
        if not (isinstance(data, list) and len(data) >= 2 and data[0] == "vcard" and isinstance(data[1], list)):
            raise VCardParseError("jCard must be an array starting with \"vcard\"")

        vcard = VCard(version=V40)
        seen_version = False
        for entry in data[1]:
            if not isinstance(entry, list) or len(entry) < 3:
                self._warn(f"Skipping malformed jCard property: {entry!r}")
                continue
            name = str(entry[0]).upper()
            if name == "VERSION":
                seen_version = True
                if entry[3:] and entry[3] != "4.0":
                    self._warn(f"jCard version is {entry[3]!r}; reading it as 4.0.", name)
                continue
            self._read_property(vcard, name, entry[1], entry[2], entry[3:])

        if not seen_version:
            self._warn("jCard has no VERSION property.", "VERSION")
        logger.debug("read jCard with %d properties", len(vcard))
        return vcard

    def _read_property(self, vcard: VCard, name: str, raw_params: Any, raw_type: Any, values: list[Any]) -> None:
        params, group = _parameters(raw_params)
        type_name = str(raw_type).lower()
        data_type = None if type_name == "unknown" else VCardDataType.get(type_name)
        value = JCardValue(values)

        scribe = self.index.scribe_for(name)
        context = ParseContext(V40)
        result = scribe.parse_json(value, data_type, params, context)
        if not isinstance(result, (Skip, CannotParse)):
            for message in context.warnings:
                self._warn(message, name)

        if isinstance(result, Ok):
            vcard.add(VCardProperty(name, result.value, params, group))
        elif isinstance(result, Skip):
            self._warn(f"Property has requested that it be skipped: {result.reason}", name)
        elif isinstance(result, CannotParse):
            self._warn(f"Property value could not be parsed and is kept as raw text: {result.reason}", name)
            vcard.add(VCardProperty(name, RawValue(json_to_text(value), data_type), params, group))
        elif isinstance(result, Embed):
            self._warn("Embedded vCards are not supported in jCard; property dropped.", name)


def read_jcard(
    text: str,
    index: ScribeIndex | None = None,
) -> tuple[list[VCard], list[VCardWarning]]:
    """Read one jCard (``["vcard", [...]]``) or an array of them."""
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise VCardParseError(f"jCard is not valid JSON: {exc}") from exc

    cards = [data] if isinstance(data, list) and data[:1] == ["vcard"] else data
    if not isinstance(cards, list):
        raise VCardParseError("jCard must be an array")

    reader = _JCardReader(index or default_index())
    return [reader.read_vcard(card) for card in cards], reader.warnings


# ── Writing ────────────────────────────────────────────────────────────────────

class _JCardWriter:
    def __init__(self, index: ScribeIndex):
        self.index = index
        self.warnings: list[VCardWarning] = []

    def _warn(self, message: str, property_name: str | None = None) -> None:
        self.warnings.append(VCardWarning(message, property_name))

    def write_vcard(self, vcard: VCard) -> list[Any]:
        properties: list[list[Any]] = [["version", {}, "text", "4.0"]]
        for prop in vcard.properties:
            entry = self._property(vcard, prop)
            if entry is not None:
                properties.append(entry)
        if vcard.orphaned_labels:
            self._warn(f"{len(vcard.orphaned_labels)} label(s) match no address and were not written.", "LABEL")
        return ["vcard", properties]

    def _property(self, vcard: VCard, prop: VCardProperty) -> list[Any] | None:
        name = prop.name
        scribe = self.index.scribe_for_property(prop)
        if V40 not in scribe.supported_versions:
            self._warn("Property is not part of vCard 4.0; writing it anyway.", name)

        context = WriteContext(V40, vcard)
        result = scribe.write_json(prop.value, context)
        for message in context.warnings:
            self._warn(message, name)
        if isinstance(result, Skip):
            self._warn(f"Property has requested that it be skipped: {result.reason}", name)
            return None
        if isinstance(result, Embed):
            self._warn("Embedded vCards are not supported in jCard; property dropped.", name)
            return None

        params = scribe.prepare_parameters(prop, V40, vcard)
        params.remove_all("VALUE")
        raw_params: dict[str, Any] = {}
        for pname, values in params.as_multimap().items():
            raw_params[pname.lower()] = values[0] if len(values) == 1 else values
        if prop.group:
            raw_params["group"] = prop.group

        data_type = scribe.data_type(prop.value, V40)
        return [name.lower(), raw_params, data_type.name if data_type else "unknown", *result.value.values]


def write_jcard(
    vcards: list[VCard],
    index: ScribeIndex | None = None,
    pretty: bool = False,
) -> tuple[str, list[VCardWarning]]:
    """Serialize ``vcards``; a single record is written without the outer array."""
    writer = _JCardWriter(index or default_index())
    cards = [writer.write_vcard(vcard) for vcard in vcards]
    data: Any = cards[0] if len(cards) == 1 else cards
    if pretty:
        text = json.dumps(data, indent=2, ensure_ascii=False)
    else:
        text = json.dumps(data, separators=(",", ":"), ensure_ascii=False)
    return text, writer.warnings

from __future__ import annotations

import xml.etree.ElementTree as ET

from .elements import HCardElement, JCardValue, XCardElement
from .errors import CannotParseError, SkipMeError
from .model import Gender, RawValue, Related, Telephone, Text, Xml
from .parameters import VCardParameters
from .scribe import Scribe, ValidationContext, WriteContext, json_to_text
from .values import escape, join_structured, split_structured, unescape
from .versions import LANGUAGE_TAG, TEXT, URI, URL, VCardDataType, VCardVersion


def escape_text(text: str, version: VCardVersion) -> str:
    return escape(text, newlines=version is not VCardVersion.V2_1)


def _add_types(element: HCardElement, parameters: VCardParameters) -> None:
    for t in element.types():
        if not parameters.has_type(t):
            parameters.add_type(t)


# ── Text and URI ───────────────────────────────────────────────────────────────

class TextScribe(Scribe):
    """Single text value: FN, NOTE, TITLE, ROLE, PRODID, KIND, ..."""

    def __init__(
        self,
        property_name: str,
        data_type: VCardDataType = TEXT,
        pref: bool = False,
        hcard_class: str | None = None,
    ):
        super().__init__(property_name)
        self.default_type = data_type
        self.supports_pref = pref
        self.hcard_class = hcard_class

    def _write_text(self, value: Text, context: WriteContext) -> str:
        return escape_text(value.value or "", context.version)

    def _parse_text(self, value, data_type, parameters, context) -> Text:
        return Text(unescape(value))

    def _write_xml(self, value: Text, element: XCardElement, context: WriteContext) -> None:
        element.append(self.data_type(value, context.version) or TEXT, value.value or "")

    def _write_json(self, value: Text, context: WriteContext) -> JCardValue:
        return JCardValue.single(value.value or "")

    def _validate(self, value: Text, parameters, context: ValidationContext) -> list[str]:
        if value.value is None or value.value == "":
            return ["Property has no value."]
        return []


class UriScribe(TextScribe):
    """A URI that is written without text escaping (URL, SOURCE, IMPP, MEMBER...).

    ``text_before_40`` covers UID, which is plain text before vCard 4.0.
    """

    def __init__(self, property_name: str, pref: bool = False, text_before_40: bool = False):
        super().__init__(property_name, URI, pref)
        self.text_before_40 = text_before_40

    def default_data_type(self, version: VCardVersion) -> VCardDataType:
        if version is not VCardVersion.V4_0 and self.text_before_40:
            return TEXT
        return URL if version is VCardVersion.V2_1 else URI

    def _write_text(self, value: Text, context: WriteContext) -> str:
        if self.default_data_type(context.version) is TEXT:
            return escape_text(value.value or "", context.version)
        return value.value or ""

    def _parse_text(self, value, data_type, parameters, context) -> Text:
        return Text(unescape(value))

    def _parse_html(self, element: HCardElement, parameters, context) -> Text:
        if element.tag_name == "a" and element.attr("href"):
            return Text(element.abs_url("href"))
        return Text(element.value())


class EmailScribe(TextScribe):
    def __init__(self) -> None:
        super().__init__("EMAIL", TEXT, pref=True)

    def _parse_html(self, element: HCardElement, parameters, context) -> Text:
        _add_types(element, parameters)
        href = element.attr("href")
        if element.tag_name == "a" and href.lower().startswith("mailto:"):
            return Text(href[len("mailto:"):].split("?", 1)[0])
        return Text(element.value())


_EXPERTISE_LEVELS = {"beginner", "average", "expert"}
_INTEREST_LEVELS = {"high", "medium", "low"}


class LeveledTextScribe(TextScribe):
    """EXPERTISE, HOBBY and INTEREST, which take LEVEL and INDEX parameters."""

    def __init__(self, property_name: str, levels: set[str]):
        super().__init__(property_name)
        self.levels = levels

    def _validate(self, value: Text, parameters, context: ValidationContext) -> list[str]:
        problems = super()._validate(value, parameters, context)
        level = parameters.level
        if level is not None and level.lower() not in self.levels:
            allowed = ", ".join(sorted(self.levels))
            problems.append(f"LEVEL={level} is not one of: {allowed}.")
        index = parameters.index
        if index is not None and index < 1:
            problems.append("INDEX must be a positive integer.")
        return problems


# ── TEL ────────────────────────────────────────────────────────────────────────

class TelephoneScribe(Scribe):
    property_name = "TEL"
    supports_pref = True

    def _data_type(self, value: Telephone, version: VCardVersion) -> VCardDataType:
        if value.uri is not None and version is VCardVersion.V4_0:
            return URI
        return TEXT

    def _write_text(self, value: Telephone, context: WriteContext) -> str:
        if value.uri is not None:
            if context.version is VCardVersion.V4_0:
                return value.uri
            number = value.uri[4:] if value.uri.lower().startswith("tel:") else value.uri
            return escape_text(number.split(";", 1)[0], context.version)
        return escape_text(value.text or "", context.version)

    def _parse_text(self, value, data_type, parameters, context) -> Telephone:
        value = unescape(value)
        if data_type is URI or (context.version is VCardVersion.V4_0 and value.lower().startswith("tel:")):
            return Telephone(uri=value)
        return Telephone(text=value)

    def _write_xml(self, value: Telephone, element: XCardElement, context: WriteContext) -> None:
        if value.uri is not None:
            element.append(URI, value.uri)
        else:
            element.append(TEXT, value.text or "")

    def _write_json(self, value: Telephone, context: WriteContext) -> JCardValue:
        return JCardValue.single(value.uri if value.uri is not None else value.text or "")

    def _parse_html(self, element: HCardElement, parameters, context) -> Telephone:
        _add_types(element, parameters)
        href = element.attr("href")
        if element.tag_name == "a" and href.lower().startswith("tel:"):
            return Telephone(uri=href)
        return Telephone(text=element.value())

    def _validate(self, value: Telephone, parameters, context: ValidationContext) -> list[str]:
        if value.is_empty():
            return ["Property has no value."]
        if value.uri is not None and context.version is not VCardVersion.V4_0:
            return [f"A tel URI is written as plain text in vCard {context.version}."]
        return []


# ── RELATED ────────────────────────────────────────────────────────────────────

class RelatedScribe(Scribe):
    property_name = "RELATED"
    supports_pref = True
    default_type = URI

    def _data_type(self, value: Related, version: VCardVersion) -> VCardDataType:
        return TEXT if value.text is not None else URI

    def _write_text(self, value: Related, context: WriteContext) -> str:
        if value.text is not None:
            return escape_text(value.text, context.version)
        return value.uri or ""

    def _parse_text(self, value, data_type, parameters, context) -> Related:
        value = unescape(value)
        if data_type is TEXT:
            return Related(text=value)
        return Related(uri=value)

    def _validate(self, value: Related, parameters, context: ValidationContext) -> list[str]:
        return ["Property has no value."] if value.is_empty() else []


# ── GENDER ─────────────────────────────────────────────────────────────────────

_SEXES = {"M", "F", "O", "N", "U"}


class GenderScribe(Scribe):
    property_name = "GENDER"

    def _write_text(self, value: Gender, context: WriteContext) -> str:
        if value.identity is None:
            return escape(value.sex or "")
        return join_structured([value.sex, value.identity])

    def _parse_text(self, value, data_type, parameters, context) -> Gender:
        components = split_structured(value)
        sex = components[0][0] if components and components[0] else None
        identity = ",".join(components[1]) if len(components) > 1 and components[1] else None
        return Gender(sex.upper() if sex else None, identity)

    def _write_xml(self, value: Gender, element: XCardElement, context: WriteContext) -> None:
        element.append("sex", value.sex or "")
        if value.identity is not None:
            element.append("identity", value.identity)

    def _parse_xml(self, element: XCardElement, parameters, context) -> Gender:
        sex = element.first("sex")
        return Gender(sex.upper() if sex else None, element.first("identity"))

    def _write_json(self, value: Gender, context: WriteContext) -> JCardValue:
        if value.identity is None:
            return JCardValue.single(value.sex or "")
        return JCardValue.structured(value.sex, value.identity)

    def _validate(self, value: Gender, parameters, context: ValidationContext) -> list[str]:
        if value.sex is not None and value.sex.upper() not in _SEXES:
            return [f"Gender sex {value.sex!r} is not one of M, F, O, N, U."]
        return []


# ── XML ────────────────────────────────────────────────────────────────────────

class XmlScribe(Scribe):
    property_name = "XML"

    def _write_text(self, value: Xml, context: WriteContext) -> str:
        if not value.value:
            raise SkipMeError("XML property has no document")
        return escape(value.value)

    def _parse_text(self, value, data_type, parameters, context) -> Xml:
        document = unescape(value)
        try:
            ET.fromstring(document)
        except ET.ParseError as exc:
            raise CannotParseError(f"value is not well-formed XML: {exc}") from exc
        return Xml(document)

    def _write_json(self, value: Xml, context: WriteContext) -> JCardValue:
        if not value.value:
            raise SkipMeError("XML property has no document")
        return JCardValue.single(value.value)


# ── Unknown properties ─────────────────────────────────────────────────────────

class RawScribe(Scribe):
    """Fallback for property names nothing else is registered for.

    The value is kept exactly as it appeared on the wire.
    """

    default_type = None

    def _data_type(self, value: RawValue, version: VCardVersion) -> VCardDataType | None:
        return value.data_type

    def _write_text(self, value: RawValue, context: WriteContext) -> str:
        return value.value

    def _parse_text(self, value, data_type, parameters, context) -> RawValue:
        return RawValue(value, data_type)

    def _write_xml(self, value: RawValue, element: XCardElement, context: WriteContext) -> None:
        element.append(value.data_type.name if value.data_type else "unknown", value.value)

    def _parse_xml(self, element: XCardElement, parameters, context) -> RawValue:
        first = element.first_value()
        if first is None:
            return RawValue("")
        return RawValue(first[1], first[0])

    def _write_json(self, value: RawValue, context: WriteContext) -> JCardValue:
        return JCardValue.single(value.value)

    def _parse_json(self, value: JCardValue, data_type, parameters, context) -> RawValue:
        if len(value.values) == 1 and not isinstance(value.values[0], list):
            text = value.as_single()
        else:
            text = json_to_text(value)
        return RawValue(text, data_type)


def text_scribes() -> list[Scribe]:
    return [
        TextScribe("FN"),
        TextScribe("NOTE"),
        TextScribe("TITLE"),
        TextScribe("ROLE"),
        TextScribe("PRODID"),
        TextScribe("MAILER"),
        TextScribe("SORT-STRING"),
        TextScribe("CLASS"),
        TextScribe("NAME"),
        TextScribe("PROFILE"),
        TextScribe("KIND"),
        TextScribe("LANG", LANGUAGE_TAG),
        EmailScribe(),
        UriScribe("UID", text_before_40=True),
        UriScribe("URL"),
        UriScribe("SOURCE"),
        UriScribe("IMPP", pref=True),
        UriScribe("MEMBER", pref=True),
        UriScribe("FBURL"),
        UriScribe("CALURI"),
        UriScribe("CALADRURI"),
        UriScribe("ORG-DIRECTORY"),
        LeveledTextScribe("EXPERTISE", _EXPERTISE_LEVELS),
        LeveledTextScribe("HOBBY", _INTEREST_LEVELS),
        LeveledTextScribe("INTEREST", _INTEREST_LEVELS),
        TelephoneScribe(),
        RelatedScribe(),
        GenderScribe(),
        XmlScribe(),
    ]

"""The scribe contract: how one property type is read and written.

A scribe turns a property value into vCard text, xCard, jCard and back,
reads it from hCard, and works out the parameters to write for a given
version. Subclasses implement the ``_``-prefixed hooks. The public
methods wrap those hooks and translate the signals from ``errors`` into
result objects.
"""
from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from .elements import HCardElement, JCardValue, XCardElement
from .errors import (
    CannotParse,
    CannotParseError,
    Embed,
    EmbeddedVCardError,
    Ok,
    ParseResult,
    Skip,
    SkipMeError,
    WriteResult,
)
from .model import VCard, VCardProperty
from .parameters import VCardParameters
from .values import escape, join_list, join_structured, unescape
from .versions import (
    DATE,
    DATE_AND_OR_TIME,
    DATE_TIME,
    TEXT,
    TIME,
    URI,
    URL,
    VCardDataType,
    VCardVersion,
    supported_versions,
)

if TYPE_CHECKING:
    from .index import ScribeIndex

logger = logging.getLogger(__name__)


# ── Contexts ───────────────────────────────────────────────────────────────────

@dataclass
class ParseContext:
    version: VCardVersion
    warnings: list[str] = field(default_factory=list)

    def warn(self, message: str) -> None:
        self.warnings.append(message)


@dataclass
class WriteContext:
    version: VCardVersion
    vcard: VCard | None = None
    warnings: list[str] = field(default_factory=list)

    def warn(self, message: str) -> None:
        self.warnings.append(message)


@dataclass
class ValidationContext:
    version: VCardVersion
    vcard: VCard | None
    index: ScribeIndex
    depth: int = 0
    max_depth: int = 10


# ── PREF / TYPE=pref ───────────────────────────────────────────────────────────

def handle_pref_parameter(
    prop: VCardProperty,
    copy: VCardParameters,
    version: VCardVersion,
    vcard: VCard | None,
) -> None:
    """Translate between the 4.0 PREF parameter and the older TYPE=pref.

    4.0: a TYPE=pref becomes PREF=1. Earlier versions: PREF is dropped and
    the sibling with the lowest PREF (first one on a tie) gets TYPE=pref.
    """
    if version is VCardVersion.V4_0:
        for t in copy.types:
            if t.lower() == "pref":
                copy.remove("TYPE", t)
                copy.pref = 1
                break
        return

    copy.remove_all("PREF")
    if vcard is None:
        return

    winner: VCardProperty | None = None
    lowest: int | None = None
    for sibling in vcard.properties_named(prop.name):
        pref = sibling.parameters.pref
        if pref is None:
            continue
        if lowest is None or pref < lowest:
            winner, lowest = sibling, pref

    if winner is None:
        return
    while copy.remove_type("pref"):
        pass
    if winner is prop:
        copy.add_type("pref")


# ── Result wrapping ────────────────────────────────────────────────────────────

def _parse_call(call: Callable[[], Any]) -> ParseResult:
    try:
        return Ok(call())
    except SkipMeError as exc:
        return Skip(str(exc))
    except CannotParseError as exc:
        return CannotParse(str(exc))
    except EmbeddedVCardError as exc:
        return Embed(exc.value, exc.text)
    except ValueError as exc:
        logger.debug("value rejected: %s", exc)
        return CannotParse(str(exc))


def _write_call(call: Callable[[], Any]) -> WriteResult:
    try:
        return Ok(call())
    except (SkipMeError, CannotParseError) as exc:
        return Skip(str(exc))
    except EmbeddedVCardError as exc:
        return Embed(exc.value, exc.text)


def json_to_text(value: JCardValue) -> str:
    """Flatten a jCard value into the escaped text form the text hooks expect."""
    if len(value.values) == 1 and isinstance(value.values[0], list):
        return join_structured(value.as_structured())
    if len(value.values) > 1:
        return join_list(value.as_multi())
    return escape(value.as_single())


# ── Scribe ─────────────────────────────────────────────────────────────────────

class Scribe:
    property_name: str = ""
    hcard_class: str | None = None
    supports_pref: bool = False
    default_type: VCardDataType | None = TEXT

    def __init__(self, property_name: str | None = None):
        if property_name is not None:
            self.property_name = property_name
        self.property_name = self.property_name.upper()

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.property_name!r})"

    @property
    def supported_versions(self) -> frozenset[VCardVersion]:
        return supported_versions(self.property_name)

    @property
    def hcard_class_name(self) -> str:
        return self.hcard_class or self.property_name.lower()

    @property
    def xml_name(self) -> str:
        return self.property_name.lower()

    # ── Data types ─────────────────────────────────────────────────────────────

    def default_data_type(self, version: VCardVersion) -> VCardDataType | None:
        return self.default_type

    def data_type(self, value: Any, version: VCardVersion) -> VCardDataType | None:
        return self._data_type(value, version)

    def _data_type(self, value: Any, version: VCardVersion) -> VCardDataType | None:
        return self.default_data_type(version)

    def value_parameter(self, value: Any, version: VCardVersion) -> VCardDataType | None:
        """The data type to announce with VALUE=, or None when it is the default."""
        dt = self.data_type(value, version)
        default = self.default_data_type(version)
        if dt is None or dt is default:
            return None
        if default is DATE_AND_OR_TIME and dt in (DATE, DATE_TIME, TIME):
            return None
        return dt

    @staticmethod
    def uri_type(version: VCardVersion) -> VCardDataType:
        return URL if version is VCardVersion.V2_1 else URI

    # ── Parameters ─────────────────────────────────────────────────────────────

    def prepare_parameters(
        self,
        prop: VCardProperty,
        version: VCardVersion,
        vcard: VCard | None = None,
    ) -> VCardParameters:
        """Parameters to write for ``prop``, derived on a copy.

        The property's own parameter set is never modified.
        """
        copy = prop.parameters.copy()
        if self.supports_pref:
            handle_pref_parameter(prop, copy, version, vcard)
        self._prepare_parameters(prop.value, copy, version, vcard)
        return copy

    def _prepare_parameters(
        self,
        value: Any,
        copy: VCardParameters,
        version: VCardVersion,
        vcard: VCard | None,
    ) -> None:
        pass

    # ── Text ───────────────────────────────────────────────────────────────────

    def write_text(self, value: Any, context: WriteContext) -> WriteResult:
        return _write_call(lambda: self._write_text(value, context))

    def parse_text(
        self,
        value: str,
        data_type: VCardDataType | None,
        parameters: VCardParameters,
        context: ParseContext,
    ) -> ParseResult:
        return _parse_call(lambda: self._parse_text(value, data_type, parameters, context))

    def _write_text(self, value: Any, context: WriteContext) -> str:
        raise NotImplementedError

    def _parse_text(
        self,
        value: str,
        data_type: VCardDataType | None,
        parameters: VCardParameters,
        context: ParseContext,
    ) -> Any:
        raise NotImplementedError

    # ── xCard ──────────────────────────────────────────────────────────────────

    def write_xml(self, value: Any, element: XCardElement, context: WriteContext) -> WriteResult:
        return _write_call(lambda: self._write_xml(value, element, context))

    def parse_xml(
        self,
        element: XCardElement,
        parameters: VCardParameters,
        context: ParseContext,
    ) -> ParseResult:
        return _parse_call(lambda: self._parse_xml(element, parameters, context))

    def _write_xml(self, value: Any, element: XCardElement, context: WriteContext) -> None:
        dt = self.data_type(value, context.version)
        element.append(dt.name if dt is not None else "unknown", unescape(self._write_text(value, context)))

    def _parse_xml(
        self,
        element: XCardElement,
        parameters: VCardParameters,
        context: ParseContext,
    ) -> Any:
        first = element.first_value()
        if first is None:
            raise CannotParseError("property has no value element")
        dt, text = first
        return self._parse_text(escape(text), dt or self.default_data_type(context.version), parameters, context)

    # ── jCard ──────────────────────────────────────────────────────────────────

    def write_json(self, value: Any, context: WriteContext) -> WriteResult:
        return _write_call(lambda: self._write_json(value, context))

    def parse_json(
        self,
        value: JCardValue,
        data_type: VCardDataType | None,
        parameters: VCardParameters,
        context: ParseContext,
    ) -> ParseResult:
        return _parse_call(lambda: self._parse_json(value, data_type, parameters, context))

    def _write_json(self, value: Any, context: WriteContext) -> JCardValue:
        return JCardValue.single(unescape(self._write_text(value, context)))

    def _parse_json(
        self,
        value: JCardValue,
        data_type: VCardDataType | None,
        parameters: VCardParameters,
        context: ParseContext,
    ) -> Any:
        return self._parse_text(json_to_text(value), data_type, parameters, context)

    # ── hCard ──────────────────────────────────────────────────────────────────

    def parse_html(
        self,
        element: HCardElement,
        parameters: VCardParameters,
        context: ParseContext,
    ) -> ParseResult:
        return _parse_call(lambda: self._parse_html(element, parameters, context))

    def _parse_html(
        self,
        element: HCardElement,
        parameters: VCardParameters,
        context: ParseContext,
    ) -> Any:
        return self._parse_text(
            escape(element.value()),
            self.default_data_type(context.version),
            parameters,
            context,
        )

    # ── Validation ─────────────────────────────────────────────────────────────

    def validate(self, value: Any, parameters: VCardParameters, context: ValidationContext) -> list[str]:
        """Advisory problems for writing ``value`` as ``context.version``. Never raises."""
        problems: list[str] = []
        version = context.version
        if version not in self.supported_versions:
            supported = ", ".join(sorted(v.value for v in self.supported_versions))
            problems.append(f"Property is not supported by vCard {version} (supported: {supported}).")
        problems.extend(parameters.validate(version))
        problems.extend(self._validate(value, parameters, context))
        return problems

    def _validate(self, value: Any, parameters: VCardParameters, context: ValidationContext) -> list[str]:
        return []

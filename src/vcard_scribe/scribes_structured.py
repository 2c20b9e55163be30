from __future__ import annotations

import logging

from .elements import HCardElement, JCardValue, XCardElement
from .errors import CannotParseError, SkipMeError
from .model import Address, ClientPidMap, Geo, Label, StructuredName, TextList, VCard, VCardProperty
from .parameters import VCardParameters
from .scribe import Scribe, ValidationContext, WriteContext
from .scribes_text import _add_types, escape_text
from .values import GeoUri, format_float, join_list, join_structured, split_list, split_structured, unescape
from .versions import TEXT, URI, VCardDataType, VCardVersion

logger = logging.getLogger(__name__)


# ── ADR ────────────────────────────────────────────────────────────────────────

_ADR_XML = ("pobox", "ext", "street", "locality", "region", "code", "country")
_ADR_HCARD = (
    "post-office-box", "extended-address", "street-address", "locality",
    "region", "postal-code", "country-name",
)


class AddressScribe(Scribe):
    property_name = "ADR"
    supports_pref = True

    def _prepare_parameters(self, value: Address, copy, version, vcard) -> None:
        # 4.0 carries the label as a parameter; earlier versions get a LABEL property.
        if version is VCardVersion.V4_0 and value.label is not None:
            copy.label = value.label
        else:
            copy.remove_all("LABEL")

    def _write_text(self, value: Address, context: WriteContext) -> str:
        return join_structured(value.components())

    def _parse_text(self, value, data_type, parameters, context) -> Address:
        return Address.from_components(split_structured(value), label=_pop_label(parameters))

    def _write_xml(self, value: Address, element: XCardElement, context: WriteContext) -> None:
        for name, component in zip(_ADR_XML, value.components()):
            element.append_all(name, component)

    def _parse_xml(self, element: XCardElement, parameters, context) -> Address:
        components = [[v for v in element.all(name) if v] for name in _ADR_XML]
        return Address.from_components(components, label=_pop_label(parameters))

    def _write_json(self, value: Address, context: WriteContext) -> JCardValue:
        return JCardValue.structured(*value.components())

    def _parse_json(self, value: JCardValue, data_type, parameters, context) -> Address:
        return Address.from_components(value.as_structured(), label=_pop_label(parameters))

    def _parse_html(self, element: HCardElement, parameters, context) -> Address:
        _add_types(element, parameters)
        return Address.from_components([element.all_values(name) for name in _ADR_HCARD])

    def _validate(self, value: Address, parameters, context: ValidationContext) -> list[str]:
        return ["Address has no components."] if value.is_empty() and value.label is None else []


def _pop_label(parameters: VCardParameters) -> str | None:
    labels = parameters.remove_all("LABEL")
    return labels[0] if labels else None


def address_types(params: VCardParameters) -> frozenset[str]:
    return frozenset(t.lower() for t in params.types)


def assign_labels(vcard: VCard, labels: list[tuple[VCardProperty, int]]) -> None:
    """Attach LABEL properties read from a pre-4.0 vCard to their addresses.

    ``labels`` pairs each LABEL with the number of ADRs read before it. A
    label goes to the most recent of those ADRs with the same TYPE set that
    has no label yet. Labels with no such ADR are kept as orphans.
    """
    addresses = vcard.properties_named("ADR")
    for label, seen in labels:
        wanted = address_types(label.parameters)
        for adr in reversed(addresses[:seen]):
            if not isinstance(adr.value, Address) or adr.value.label is not None:
                continue
            if address_types(adr.parameters) == wanted:
                adr.value.label = label.value.value
                break
        else:
            logger.debug("orphaned LABEL with types %s", sorted(wanted))
            vcard.orphaned_labels.append(label)


def label_properties(vcard: VCard) -> list[tuple[VCardProperty, VCardProperty]]:
    """LABEL properties to write after each labelled ADR in a pre-4.0 vCard."""
    out = []
    for adr in vcard.properties_named("ADR"):
        if isinstance(adr.value, Address) and adr.value.label is not None:
            params = VCardParameters(("TYPE", t) for t in adr.parameters.types if t.lower() != "pref")
            out.append((adr, VCardProperty("LABEL", Label(adr.value.label), params, adr.group)))
    return out


# ── LABEL ──────────────────────────────────────────────────────────────────────

class LabelScribe(Scribe):
    property_name = "LABEL"

    def _write_text(self, value: Label, context: WriteContext) -> str:
        return escape_text(value.value or "", context.version)

    def _parse_text(self, value, data_type, parameters, context) -> Label:
        return Label(unescape(value))

    def _parse_html(self, element: HCardElement, parameters, context) -> Label:
        _add_types(element, parameters)
        return Label(element.value())


# ── N ──────────────────────────────────────────────────────────────────────────

class StructuredNameScribe(Scribe):
    property_name = "N"

    def _write_text(self, value: StructuredName, context: WriteContext) -> str:
        return join_structured([
            value.family, value.given, value.additional, value.prefixes, value.suffixes,
        ])

    def _parse_text(self, value, data_type, parameters, context) -> StructuredName:
        components = split_structured(value)
        components += [[] for _ in range(5 - len(components))]
        family, given, additional, prefixes, suffixes = components[:5]
        return StructuredName(
            ",".join(family) or None,
            ",".join(given) or None,
            additional,
            prefixes,
            suffixes,
        )

    def _write_xml(self, value: StructuredName, element: XCardElement, context: WriteContext) -> None:
        element.append("surname", value.family)
        element.append("given", value.given)
        element.append_all("additional", value.additional)
        element.append_all("prefix", value.prefixes)
        element.append_all("suffix", value.suffixes)

    def _parse_xml(self, element: XCardElement, parameters, context) -> StructuredName:
        return StructuredName(
            element.first("surname") or None,
            element.first("given") or None,
            [v for v in element.all("additional") if v],
            [v for v in element.all("prefix") if v],
            [v for v in element.all("suffix") if v],
        )

    def _write_json(self, value: StructuredName, context: WriteContext) -> JCardValue:
        return JCardValue.structured(
            value.family, value.given, value.additional, value.prefixes, value.suffixes,
        )

    def _parse_html(self, element: HCardElement, parameters, context) -> StructuredName:
        return StructuredName(
            element.first_value("family-name"),
            element.first_value("given-name"),
            element.all_values("additional-name"),
            element.all_values("honorific-prefix"),
            element.all_values("honorific-suffix"),
        )


# ── ORG, CATEGORIES, NICKNAME ──────────────────────────────────────────────────

class TextListScribe(Scribe):
    def __init__(self, property_name: str, delimiter: str, hcard_class: str | None = None):
        super().__init__(property_name)
        self.delimiter = delimiter
        self.hcard_class = hcard_class

    def _write_text(self, value: TextList, context: WriteContext) -> str:
        return join_list(value.values, self.delimiter)

    def _parse_text(self, value, data_type, parameters, context) -> TextList:
        return TextList(split_list(value, self.delimiter), self.delimiter)

    def _write_xml(self, value: TextList, element: XCardElement, context: WriteContext) -> None:
        element.append_all(TEXT, value.values)

    def _parse_xml(self, element: XCardElement, parameters, context) -> TextList:
        return TextList(element.all(TEXT), self.delimiter)

    def _write_json(self, value: TextList, context: WriteContext) -> JCardValue:
        if self.delimiter == ";":
            if len(value.values) == 1:
                return JCardValue.single(value.values[0])
            return JCardValue.structured(*value.values)
        return JCardValue.multi(*value.values)

    def _parse_json(self, value: JCardValue, data_type, parameters, context) -> TextList:
        return TextList(value.as_multi(), self.delimiter)

    def _parse_html(self, element: HCardElement, parameters, context) -> TextList:
        if self.property_name == "ORG":
            parts = element.all_values("organization-name") + element.all_values("organization-unit")
            if parts:
                return TextList(parts, self.delimiter)
        return TextList([element.value()], self.delimiter)

    def _validate(self, value: TextList, parameters, context: ValidationContext) -> list[str]:
        return ["Property has no values."] if not value.values else []


# ── GEO ────────────────────────────────────────────────────────────────────────

class GeoScribe(Scribe):
    property_name = "GEO"

    def default_data_type(self, version: VCardVersion) -> VCardDataType | None:
        return URI if version is VCardVersion.V4_0 else None

    def _write_text(self, value: Geo, context: WriteContext) -> str:
        if value.latitude is None and value.longitude is None:
            raise SkipMeError("GEO has neither a latitude nor a longitude")
        if context.version is VCardVersion.V4_0:
            return str(GeoUri(value.latitude or 0.0, value.longitude or 0.0))
        lat = format_float(value.latitude) if value.latitude is not None else ""
        lng = format_float(value.longitude) if value.longitude is not None else ""
        return f"{lat};{lng}"

    def _parse_text(self, value, data_type, parameters, context) -> Geo:
        value = unescape(value).strip()
        if value.lower().startswith("geo:"):
            uri = GeoUri.parse(value)
            return Geo(uri.latitude, uri.longitude)

        lat_text, sep, lng_text = value.partition(";")
        if not sep:
            context.warn("GEO value has no longitude component.")
        return Geo(_float(lat_text, "latitude"), _float(lng_text, "longitude"))

    def _write_xml(self, value: Geo, element: XCardElement, context: WriteContext) -> None:
        element.append(URI, self._write_text(value, context))

    def _parse_html(self, element: HCardElement, parameters, context) -> Geo:
        lat = element.first_value("latitude")
        lng = element.first_value("longitude")
        if lat is None and lng is None:
            return self._parse_text(element.value(), None, parameters, context)
        return Geo(_float(lat or "", "latitude"), _float(lng or "", "longitude"))

    def _validate(self, value: Geo, parameters, context: ValidationContext) -> list[str]:
        problems = []
        if value.latitude is None:
            problems.append("Latitude is missing.")
        elif not -90 <= value.latitude <= 90:
            problems.append(f"Latitude {value.latitude} is out of range.")
        if value.longitude is None:
            problems.append("Longitude is missing.")
        elif not -180 <= value.longitude <= 180:
            problems.append(f"Longitude {value.longitude} is out of range.")
        return problems


def _float(text: str, what: str) -> float | None:
    text = text.strip()
    if not text:
        return None
    try:
        return float(text)
    except ValueError as exc:
        raise CannotParseError(f"{what} is not a number: {text!r}") from exc


# ── CLIENTPIDMAP ───────────────────────────────────────────────────────────────

class ClientPidMapScribe(Scribe):
    property_name = "CLIENTPIDMAP"

    def _check(self, value: ClientPidMap) -> None:
        if value.pid is None and value.uri is None:
            raise SkipMeError("CLIENTPIDMAP has neither a PID nor a URI")

    def _write_text(self, value: ClientPidMap, context: WriteContext) -> str:
        self._check(value)
        return join_structured([str(value.pid) if value.pid is not None else "", value.uri])

    def _parse_text(self, value, data_type, parameters, context) -> ClientPidMap:
        components = split_structured(value)
        if len(components) < 2:
            raise CannotParseError("CLIENTPIDMAP needs a PID and a URI separated by a semicolon")
        return _client_pid_map(components[0], components[1])

    def _write_xml(self, value: ClientPidMap, element: XCardElement, context: WriteContext) -> None:
        self._check(value)
        element.append("sourceid", str(value.pid) if value.pid is not None else "")
        element.append(URI, value.uri)

    def _parse_xml(self, element: XCardElement, parameters, context) -> ClientPidMap:
        pid = element.first("sourceid")
        uri = element.first(URI)
        if pid is None or uri is None:
            raise CannotParseError("CLIENTPIDMAP needs <sourceid> and <uri> elements")
        return _client_pid_map([pid], [uri])

    def _write_json(self, value: ClientPidMap, context: WriteContext) -> JCardValue:
        self._check(value)
        return JCardValue.structured(str(value.pid) if value.pid is not None else "", value.uri)

    def _parse_json(self, value: JCardValue, data_type, parameters, context) -> ClientPidMap:
        components = value.as_structured()
        if len(components) < 2:
            raise CannotParseError("CLIENTPIDMAP needs a PID and a URI")
        return _client_pid_map(components[0], components[1])

    def _validate(self, value: ClientPidMap, parameters, context: ValidationContext) -> list[str]:
        problems = []
        if value.pid is None:
            problems.append("CLIENTPIDMAP has no PID.")
        if value.uri is None:
            problems.append("CLIENTPIDMAP has no URI.")
        return problems


def _client_pid_map(pid_component: list[str], uri_component: list[str]) -> ClientPidMap:
    pid_text = ",".join(pid_component).strip()
    try:
        pid = int(pid_text) if pid_text else None
    except ValueError as exc:
        raise CannotParseError(f"CLIENTPIDMAP PID is not an integer: {pid_text!r}") from exc
    uri = ",".join(uri_component) or None
    return ClientPidMap(pid, uri)


def structured_scribes() -> list[Scribe]:
    return [
        AddressScribe(),
        LabelScribe(),
        StructuredNameScribe(),
        TextListScribe("ORG", ";"),
        TextListScribe("CATEGORIES", ",", hcard_class="category"),
        TextListScribe("NICKNAME", ","),
        GeoScribe(),
        ClientPidMapScribe(),
    ]

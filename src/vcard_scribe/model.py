from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

from .parameters import VCardParameters
from .values import GeoUri, PartialDate, UtcOffset, has_time
from .versions import VCardDataType, VCardVersion

# ── One-of slots ───────────────────────────────────────────────────────────────
#
# Several property values hold exactly one of a few alternatives (a URL or
# inline data, a date or free text). Assigning any slot clears the others.


class _Slot:
    def __set_name__(self, owner: type, name: str) -> None:
        self.name = name

    def __get__(self, obj: _OneOf | None, owner: type | None = None) -> Any:
        if obj is None:
            return self
        return obj._value if obj._slot == self.name else None

    def __set__(self, obj: _OneOf, value: Any) -> None:
        if value is None:
            if obj._slot == self.name:
                obj._slot = obj._value = None
            return
        obj._slot, obj._value = self.name, value


class _OneOf:
    def __init__(self, **slots: Any) -> None:
        given = [(k, v) for k, v in slots.items() if v is not None]
        if len(given) > 1:
            names = ", ".join(k for k, _ in given)
            raise ValueError(f"{type(self).__name__} holds only one of: {names}")
        self._slot: str | None = given[0][0] if given else None
        self._value: Any = given[0][1] if given else None

    def is_empty(self) -> bool:
        return self._slot is None

    def _key(self) -> tuple:
        return (self._slot, self._value)

    def __eq__(self, other: object) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        return self._key() == other._key()  # type: ignore[attr-defined]

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        if self._slot is None:
            return f"{type(self).__name__}()"
        return f"{type(self).__name__}({self._slot}={self._value!r})"


# ── Simple values ──────────────────────────────────────────────────────────────

@dataclass
class Text:
    """Text or URI valued properties (FN, NOTE, URL, EMAIL, ...)."""

    value: str | None = None


@dataclass
class RawValue:
    """An unrecognised property, or one whose value could not be parsed."""

    value: str = ""
    data_type: VCardDataType | None = None


@dataclass
class Label:
    value: str | None = None


@dataclass
class Xml:
    value: str | None = None


@dataclass
class Timestamp:
    value: datetime | None = None


@dataclass
class TextList:
    values: list[str] = field(default_factory=list)
    delimiter: str = ","


@dataclass
class Geo:
    latitude: float | None = None
    longitude: float | None = None


@dataclass
class Gender:
    sex: str | None = None
    identity: str | None = None


@dataclass
class ClientPidMap:
    pid: int | None = None
    uri: str | None = None


@dataclass
class Timezone:
    """A UTC offset, a free-text zone (``America/New_York``), or both."""

    offset: UtcOffset | None = None
    text: str | None = None


# ── Structured values ──────────────────────────────────────────────────────────

@dataclass
class StructuredName:
    family: str | None = None
    given: str | None = None
    additional: list[str] = field(default_factory=list)
    prefixes: list[str] = field(default_factory=list)
    suffixes: list[str] = field(default_factory=list)


_ADR_FIELDS = ("po_boxes", "extended", "streets", "localities", "regions", "postal_codes", "countries")


def _first_of(list_name: str) -> property:
    def getter(self: Address) -> str | None:
        items = getattr(self, list_name)
        return items[0] if items else None

    def setter(self: Address, value: str | None) -> None:
        setattr(self, list_name, [] if value is None else [value])

    return property(getter, setter)


@dataclass
class Address:
    """A postal address: seven components, each possibly multi-valued."""

    po_boxes: list[str] = field(default_factory=list)
    extended: list[str] = field(default_factory=list)
    streets: list[str] = field(default_factory=list)
    localities: list[str] = field(default_factory=list)
    regions: list[str] = field(default_factory=list)
    postal_codes: list[str] = field(default_factory=list)
    countries: list[str] = field(default_factory=list)
    label: str | None = None

    po_box = _first_of("po_boxes")
    extended_address = _first_of("extended")
    street = _first_of("streets")
    locality = _first_of("localities")
    region = _first_of("regions")
    postal_code = _first_of("postal_codes")
    country = _first_of("countries")

    def components(self) -> list[list[str]]:
        return [getattr(self, name) for name in _ADR_FIELDS]

    @classmethod
    def from_components(cls, components: list[list[str]], label: str | None = None) -> Address:
        padded = list(components[: len(_ADR_FIELDS)])
        padded += [[] for _ in range(len(_ADR_FIELDS) - len(padded))]
        return cls(*padded, label=label)

    def is_empty(self) -> bool:
        return not any(self.components())


# ── Alternative values ─────────────────────────────────────────────────────────

class Telephone(_OneOf):
    """Free text (``+1 555 0100``) or a ``tel:`` URI."""

    text = _Slot()
    uri = _Slot()

    def __init__(self, text: str | None = None, uri: str | None = None):
        super().__init__(text=text, uri=uri)


class Related(_OneOf):
    uri = _Slot()
    text = _Slot()

    def __init__(self, uri: str | None = None, text: str | None = None):
        super().__init__(uri=uri, text=text)


class BinaryValue(_OneOf):
    """PHOTO, LOGO, SOUND and KEY: a URL, inline bytes, or (KEY only) text.

    ``content_type`` is a media type such as ``image/jpeg`` and survives
    switching between the alternatives.
    """

    url = _Slot()
    data = _Slot()
    text = _Slot()

    def __init__(
        self,
        url: str | None = None,
        data: bytes | None = None,
        text: str | None = None,
        content_type: str | None = None,
    ):
        super().__init__(url=url, data=data, text=text)
        self.content_type = content_type

    def _key(self) -> tuple:
        return (self._slot, self._value, self.content_type)


class DateOrTime(_OneOf):
    """BDAY, ANNIVERSARY and DEATHDATE style values."""

    date = _Slot()
    partial = _Slot()
    text = _Slot()

    def __init__(
        self,
        date: date | datetime | None = None,
        partial: PartialDate | None = None,
        text: str | None = None,
    ):
        super().__init__(date=date, partial=partial, text=text)

    @property
    def has_time(self) -> bool:
        if self.partial is not None:
            return self.partial.has_time_component
        return self.date is not None and has_time(self.date)


class Place(_OneOf):
    text = _Slot()
    uri = _Slot()
    geo = _Slot()

    def __init__(self, text: str | None = None, uri: str | None = None, geo: GeoUri | None = None):
        super().__init__(text=text, uri=uri, geo=geo)

    @property
    def latitude(self) -> float | None:
        return self.geo.latitude if self.geo is not None else None

    @property
    def longitude(self) -> float | None:
        return self.geo.longitude if self.geo is not None else None


class Agent(_OneOf):
    """A URL or a nested vCard."""

    url = _Slot()
    vcard = _Slot()

    def __init__(self, url: str | None = None, vcard: VCard | None = None):
        super().__init__(url=url, vcard=vcard)

    def _key(self) -> tuple:
        # Nested cards compare by identity.
        if self._slot == "vcard":
            return (self._slot, id(self._value))
        return (self._slot, self._value)


# ── Properties and records ─────────────────────────────────────────────────────

@dataclass(eq=False)
class VCardProperty:
    name: str
    value: Any
    parameters: VCardParameters = field(default_factory=VCardParameters)
    group: str | None = None

    def __post_init__(self) -> None:
        self.name = self.name.upper()

    def __repr__(self) -> str:
        prefix = f"{self.group}." if self.group else ""
        return f"VCardProperty({prefix}{self.name}={self.value!r})"


@dataclass(eq=False)
class VCard:
    """One contact: an ordered list of properties plus its version."""

    version: VCardVersion = VCardVersion.V3_0
    properties: list[VCardProperty] = field(default_factory=list)
    # LABELs read from 2.1/3.0 text that matched no ADR.
    orphaned_labels: list[VCardProperty] = field(default_factory=list)

    def add(
        self,
        prop: VCardProperty | str,
        value: Any = None,
        parameters: VCardParameters | None = None,
        group: str | None = None,
    ) -> VCardProperty:
        if isinstance(prop, str):
            prop = VCardProperty(prop, value, parameters or VCardParameters(), group)
        self.properties.append(prop)
        return prop

    def remove(self, prop: VCardProperty) -> bool:
        for i, existing in enumerate(self.properties):
            if existing is prop:
                del self.properties[i]
                return True
        return False

    def properties_named(self, name: str) -> list[VCardProperty]:
        key = name.upper()
        return [p for p in self.properties if p.name == key]

    def first(self, name: str) -> VCardProperty | None:
        found = self.properties_named(name)
        return found[0] if found else None

    def values(self, name: str) -> list[Any]:
        return [p.value for p in self.properties_named(name)]

    @property
    def formatted_name(self) -> str | None:
        prop = self.first("FN")
        if prop is None or not isinstance(prop.value, Text):
            return None
        return prop.value.value

    def __iter__(self) -> Iterator[VCardProperty]:
        return iter(self.properties)

    def __len__(self) -> int:
        return len(self.properties)

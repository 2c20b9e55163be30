from __future__ import annotations

import re
from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from .values import GeoUri
from .versions import PARAMETER_VERSIONS, SUPPORTED_ENCODINGS, VCardDataType, VCardVersion


@dataclass(frozen=True)
class Pid:
    """A PID parameter value, e.g. ``1.2`` (local id 1, CLIENTPIDMAP ref 2)."""

    local_id: int
    client_pid_map_ref: int | None = None

    @classmethod
    def parse(cls, text: str) -> Pid | None:
        m = re.fullmatch(r"\s*(\d+)(?:\.(\d+))?\s*", text)
        if not m:
            return None
        ref = int(m.group(2)) if m.group(2) is not None else None
        return cls(int(m.group(1)), ref)

    def __str__(self) -> str:
        if self.client_pid_map_ref is None:
            return str(self.local_id)
        return f"{self.local_id}.{self.client_pid_map_ref}"


_GEO_PARAM = re.compile(r"\s*(?:geo:)?\s*(-?\d+(?:\.\d+)?)\s*,\s*(-?\d+(?:\.\d+)?)", re.I)
_LEVELS = {"beginner", "average", "expert", "high", "medium", "low"}


def _str_param(name: str) -> property:
    def getter(self: VCardParameters) -> str | None:
        return self.get(name)

    def setter(self: VCardParameters, value: str | None) -> None:
        self.replace(name, value)

    return property(getter, setter)


class VCardParameters:
    """Ordered multi-map of property parameters.

    Names are case-insensitive (stored upper-cased) and a name may carry
    several values. Insertion order is kept so output is stable.
    """

    def __init__(self, items: Iterable[tuple[str, str]] | None = None):
        self._items: list[tuple[str, str]] = []
        for name, value in items or ():
            self.put(name, value)

    @staticmethod
    def _key(name: str | None) -> str:
        if name is None:
            raise ValueError("parameter names cannot be None")
        return name.upper()

    # ── Multi-map API ──────────────────────────────────────────────────────────

    def get(self, name: str) -> str | None:
        key = self._key(name)
        for n, v in self._items:
            if n == key:
                return v
        return None

    def get_all(self, name: str) -> list[str]:
        key = self._key(name)
        return [v for n, v in self._items if n == key]

    def put(self, name: str, value: str) -> None:
        self._items.append((self._key(name), value))

    def replace(self, name: str, value: str | None) -> list[str]:
        """Drop every value of ``name`` and, unless ``value`` is None, store it."""
        removed = self.remove_all(name)
        if value is not None:
            self.put(name, value)
        return removed

    def remove_all(self, name: str) -> list[str]:
        key = self._key(name)
        removed = [v for n, v in self._items if n == key]
        self._items = [(n, v) for n, v in self._items if n != key]
        return removed

    def remove(self, name: str, value: str) -> bool:
        key = self._key(name)
        for i, (n, v) in enumerate(self._items):
            if n == key and v == value:
                del self._items[i]
                return True
        return False

    def names(self) -> list[str]:
        seen: list[str] = []
        for n, _ in self._items:
            if n not in seen:
                seen.append(n)
        return seen

    def as_multimap(self) -> dict[str, list[str]]:
        out: dict[str, list[str]] = {}
        for n, v in self._items:
            out.setdefault(n, []).append(v)
        return out

    def copy(self) -> VCardParameters:
        dup = VCardParameters()
        dup._items = list(self._items)
        return dup

    def __iter__(self) -> Iterator[tuple[str, str]]:
        return iter(list(self._items))

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and any(n == name.upper() for n, _ in self._items)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, VCardParameters):
            return NotImplemented
        return self.as_multimap() == other.as_multimap()

    def __repr__(self) -> str:
        return f"VCardParameters({self._items!r})"

    # ── Typed accessors ────────────────────────────────────────────────────────

    def _get_int(self, name: str) -> int | None:
        raw = self.get(name)
        if raw is None:
            return None
        try:
            return int(raw.strip())
        except ValueError:
            return None

    def _set_int(self, name: str, value: int | None) -> None:
        self.replace(name, None if value is None else str(value))

    @property
    def pref(self) -> int | None:
        return self._get_int("PREF")

    @pref.setter
    def pref(self, value: int | None) -> None:
        self._set_int("PREF", value)

    @property
    def index(self) -> int | None:
        return self._get_int("INDEX")

    @index.setter
    def index(self, value: int | None) -> None:
        self._set_int("INDEX", value)

    @property
    def types(self) -> list[str]:
        return self.get_all("TYPE")

    @property
    def type(self) -> str | None:
        return self.get("TYPE")

    @type.setter
    def type(self, value: str | None) -> None:
        self.replace("TYPE", value)

    def add_type(self, value: str) -> None:
        self.put("TYPE", value)

    def remove_type(self, value: str) -> bool:
        """Remove a TYPE value, compared case-insensitively."""
        for t in self.types:
            if t.lower() == value.lower():
                return self.remove("TYPE", t)
        return False

    def remove_types(self) -> list[str]:
        return self.remove_all("TYPE")

    def has_type(self, value: str) -> bool:
        return any(t.lower() == value.lower() for t in self.types)

    @property
    def pids(self) -> list[Pid]:
        out = []
        for raw in self.get_all("PID"):
            pid = Pid.parse(raw)
            if pid is not None:
                out.append(pid)
        return out

    def add_pid(self, local_id: int, client_pid_map_ref: int | None = None) -> None:
        self.put("PID", str(Pid(local_id, client_pid_map_ref)))

    def remove_pids(self) -> list[str]:
        return self.remove_all("PID")

    @property
    def geo(self) -> tuple[float, float] | None:
        raw = self.get("GEO")
        if raw is None:
            return None
        m = _GEO_PARAM.match(raw)
        if not m:
            return None
        return float(m.group(1)), float(m.group(2))

    @geo.setter
    def geo(self, value: tuple[float, float] | None) -> None:
        if value is None:
            self.remove_all("GEO")
            return
        self.replace("GEO", str(GeoUri(value[0], value[1])))

    @property
    def value(self) -> VCardDataType | None:
        raw = self.get("VALUE")
        return VCardDataType.get(raw) if raw else None

    @value.setter
    def value(self, data_type: VCardDataType | None) -> None:
        self.replace("VALUE", None if data_type is None else data_type.name)

    altid = _str_param("ALTID")
    calscale = _str_param("CALSCALE")
    encoding = _str_param("ENCODING")
    language = _str_param("LANGUAGE")
    media_type = _str_param("MEDIATYPE")
    label = _str_param("LABEL")
    level = _str_param("LEVEL")
    charset = _str_param("CHARSET")
    sort_as = _str_param("SORT-AS")
    tz = _str_param("TZ")

    # ── Validation ─────────────────────────────────────────────────────────────

    def validate(self, version: VCardVersion) -> list[str]:
        """Return human-readable problems with these parameters for ``version``."""
        problems: list[str] = []

        for name in self.names():
            allowed = PARAMETER_VERSIONS.get(name)
            if allowed is not None and version not in allowed:
                problems.append(f"{name} parameter is not supported by vCard {version}.")

        raw_pref = self.get("PREF")
        if raw_pref is not None:
            pref = self.pref
            if pref is None:
                problems.append(f"PREF parameter value must be an integer: {raw_pref!r}")
            elif not 1 <= pref <= 100:
                problems.append(f"PREF parameter value must be between 1 and 100: {pref}")

        for raw in self.get_all("PID"):
            if Pid.parse(raw) is None:
                problems.append(f"PID parameter value is malformed: {raw!r}")

        raw_geo = self.get("GEO")
        if raw_geo is not None and self.geo is None:
            problems.append(f"GEO parameter value is malformed: {raw_geo!r}")

        raw_index = self.get("INDEX")
        if raw_index is not None and self.index is None:
            problems.append(f"INDEX parameter value must be an integer: {raw_index!r}")

        level = self.level
        if level is not None and level.lower() not in _LEVELS:
            problems.append(f"LEVEL parameter value is not recognised: {level!r}")

        encoding = self.encoding
        if encoding is not None and encoding.lower() not in SUPPORTED_ENCODINGS[version]:
            problems.append(f"ENCODING={encoding} is not valid in vCard {version}.")

        raw_value = self.get("VALUE")
        if raw_value is not None:
            dt = VCardDataType.find(raw_value)
            if dt is not None and dt.versions and not dt.is_supported_by(version):
                problems.append(f"VALUE={dt.name} is not supported by vCard {version}.")

        return problems

from __future__ import annotations

import threading
from enum import Enum

# ── Versions ───────────────────────────────────────────────────────────────────

XCARD_NS = "urn:ietf:params:xml:ns:vcard-4.0"


class VCardVersion(Enum):
    V2_1 = "2.1"
    V3_0 = "3.0"
    V4_0 = "4.0"

    @classmethod
    def find(cls, text: str | None) -> VCardVersion | None:
        if text is None:
            return None
        text = text.strip()
        for v in cls:
            if v.value == text:
                return v
        return None

    @property
    def xml_namespace(self) -> str | None:
        return XCARD_NS if self is VCardVersion.V4_0 else None

    def __str__(self) -> str:
        return self.value


ALL_VERSIONS = frozenset(VCardVersion)
V21 = VCardVersion.V2_1
V30 = VCardVersion.V3_0
V40 = VCardVersion.V4_0


# ── Data types (the VALUE parameter) ───────────────────────────────────────────

class VCardDataType:
    """A value-type tag such as ``text`` or ``date-and-or-time``.

    Known tags are singletons, so they can be compared with ``is``. Tags
    found in the wild that are not known (``VALUE=x-foo``) are created on
    demand by :meth:`get` and cached.
    """

    _known: dict[str, VCardDataType] = {}
    _extensions: dict[str, VCardDataType] = {}
    _lock = threading.Lock()

    def __init__(self, name: str, versions: frozenset[VCardVersion] = ALL_VERSIONS):
        self.name = name
        self.versions = versions

    @classmethod
    def _define(cls, name: str, *versions: VCardVersion) -> VCardDataType:
        dt = cls(name, frozenset(versions) if versions else ALL_VERSIONS)
        cls._known[name] = dt
        return dt

    @classmethod
    def find(cls, name: str | None) -> VCardDataType | None:
        if name is None:
            return None
        key = name.strip().lower()
        return cls._known.get(key) or cls._extensions.get(key)

    @classmethod
    def get(cls, name: str) -> VCardDataType:
        found = cls.find(name)
        if found is not None:
            return found
        key = name.strip().lower()
        with cls._lock:
            return cls._extensions.setdefault(key, cls(key, frozenset()))

    def is_supported_by(self, version: VCardVersion) -> bool:
        return version in self.versions

    def __repr__(self) -> str:
        return f"VCardDataType({self.name!r})"

    def __str__(self) -> str:
        return self.name


URL = VCardDataType._define("url", V21)
CONTENT_ID = VCardDataType._define("content-id", V21)
BINARY = VCardDataType._define("binary", V30)
URI = VCardDataType._define("uri", V30, V40)
TEXT = VCardDataType._define("text")
DATE = VCardDataType._define("date", V30, V40)
TIME = VCardDataType._define("time", V30, V40)
DATE_TIME = VCardDataType._define("date-time", V30, V40)
DATE_AND_OR_TIME = VCardDataType._define("date-and-or-time", V40)
TIMESTAMP = VCardDataType._define("timestamp", V40)
BOOLEAN = VCardDataType._define("boolean", V30, V40)
INTEGER = VCardDataType._define("integer", V30, V40)
FLOAT = VCardDataType._define("float", V30, V40)
UTC_OFFSET = VCardDataType._define("utc-offset", V30, V40)
LANGUAGE_TAG = VCardDataType._define("language-tag", V40)


# ── Property support table ─────────────────────────────────────────────────────

_ONLY_21_30 = frozenset({V21, V30})
_ONLY_30 = frozenset({V30})
_ONLY_30_40 = frozenset({V30, V40})
_ONLY_40 = frozenset({V40})

PROPERTY_VERSIONS: dict[str, frozenset[VCardVersion]] = {
    "AGENT": _ONLY_21_30,
    "LABEL": _ONLY_21_30,
    "MAILER": _ONLY_21_30,
    "SORT-STRING": _ONLY_30,
    "CLASS": _ONLY_30,
    "NAME": _ONLY_30,
    "PROFILE": _ONLY_30,
    "NICKNAME": _ONLY_30_40,
    "CATEGORIES": _ONLY_30_40,
    "PRODID": _ONLY_30_40,
    "SOURCE": _ONLY_30_40,
    "IMPP": _ONLY_30_40,
    "CLIENTPIDMAP": _ONLY_40,
    "KIND": _ONLY_40,
    "GENDER": _ONLY_40,
    "ANNIVERSARY": _ONLY_40,
    "XML": _ONLY_40,
    "MEMBER": _ONLY_40,
    "RELATED": _ONLY_40,
    "LANG": _ONLY_40,
    "FBURL": _ONLY_40,
    "CALURI": _ONLY_40,
    "CALADRURI": _ONLY_40,
    "ORG-DIRECTORY": _ONLY_40,
    "BIRTHPLACE": _ONLY_40,
    "DEATHPLACE": _ONLY_40,
    "DEATHDATE": _ONLY_40,
    "EXPERTISE": _ONLY_40,
    "HOBBY": _ONLY_40,
    "INTEREST": _ONLY_40,
}


def supported_versions(property_name: str) -> frozenset[VCardVersion]:
    """Versions a property is defined in. Unknown properties are allowed everywhere."""
    return PROPERTY_VERSIONS.get(property_name.upper(), ALL_VERSIONS)


# ── Parameter support ──────────────────────────────────────────────────────────

PARAMETER_VERSIONS: dict[str, frozenset[VCardVersion]] = {
    "PID": _ONLY_40,
    "PREF": _ONLY_40,
    "ALTID": _ONLY_40,
    "MEDIATYPE": _ONLY_40,
    "GEO": _ONLY_40,
    "CALSCALE": _ONLY_40,
    "SORT-AS": _ONLY_40,
    "TZ": _ONLY_40,
    "LABEL": _ONLY_40,
    "INDEX": _ONLY_40,
    "LEVEL": _ONLY_40,
    "CHARSET": frozenset({V21}),
    "ENCODING": _ONLY_21_30,
}

SUPPORTED_ENCODINGS: dict[VCardVersion, frozenset[str]] = {
    V21: frozenset({"quoted-printable", "base64", "8bit", "7bit"}),
    V30: frozenset({"b"}),
    V40: frozenset(),
}

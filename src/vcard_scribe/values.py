"""Value codecs shared by the property scribes.

Escaping and list splitting, UTC offsets, ISO 8601 dates (complete and
truncated), ``geo:`` URIs and ``data:`` URIs.
"""
from __future__ import annotations

import base64
import binascii
import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from urllib.parse import unquote_to_bytes

# ── Escaping ───────────────────────────────────────────────────────────────────

_NEWLINES = re.compile(r"\r\n|\r|\n")


def escape(text: str, newlines: bool = True) -> str:
    """Escape backslash, comma, semicolon and (optionally) newlines.

    vCard 2.1 keeps newlines literal and relies on quoted-printable instead.
    """
    text = text.replace("\\", "\\\\").replace(",", "\\,").replace(";", "\\;")
    return _NEWLINES.sub(r"\\n", text) if newlines else text


def unescape(text: str) -> str:
    """Reverse :func:`escape`. Unknown escape sequences are kept as-is."""
    if "\\" not in text:
        return text
    out: list[str] = []
    chars = iter(text)
    for ch in chars:
        if ch != "\\":
            out.append(ch)
            continue
        nxt = next(chars, None)
        if nxt is None:
            out.append("\\")
        elif nxt in "nN":
            out.append("\n")
        elif nxt in "\\,;":
            out.append(nxt)
        else:
            out.append("\\" + nxt)
    return "".join(out)


def _split_unescaped(text: str, sep: str) -> list[str]:
    """Split on ``sep`` where it is not preceded by a backslash escape.

    The pieces are returned still escaped.
    """
    parts: list[str] = []
    buf: list[str] = []
    escaped = False
    for ch in text:
        if escaped:
            buf.append(ch)
            escaped = False
        elif ch == "\\":
            buf.append(ch)
            escaped = True
        elif ch == sep:
            parts.append("".join(buf))
            buf = []
        else:
            buf.append(ch)
    parts.append("".join(buf))
    return parts


def split_list(text: str, delimiter: str = ",") -> list[str]:
    """Split a list value (``a,b\\,c``) into unescaped items."""
    if text == "":
        return []
    return [unescape(p) for p in _split_unescaped(text, delimiter)]


def join_list(values: list[str], delimiter: str = ",") -> str:
    return delimiter.join(escape(v) for v in values)


def split_structured(text: str) -> list[list[str]]:
    """Split a structured value into components, each a list of values.

    ``;;123 Main St;Austin`` gives ``[[], [], ['123 Main St'], ['Austin']]``.
    Empty components are kept in place.
    """
    return [split_list(component) for component in _split_unescaped(text, ";")]


def join_structured(components: list[list[str] | str | None]) -> str:
    rendered = []
    for component in components:
        if component is None:
            rendered.append("")
        elif isinstance(component, str):
            rendered.append(escape(component))
        else:
            rendered.append(join_list(component))
    return ";".join(rendered)


# ── UTC offsets ────────────────────────────────────────────────────────────────

_OFFSET = re.compile(r"^([-+])?(\d{1,2})(?::?(\d{2}))?$")


@dataclass(frozen=True)
class UtcOffset:
    """A UTC offset such as ``-05:00``. ``minute`` is always within 0-59."""

    positive: bool
    hour: int
    minute: int = 0

    def __post_init__(self) -> None:
        if not 0 <= self.minute <= 59:
            raise ValueError(f"offset minutes must be between 0 and 59: {self.minute}")
        if self.hour < 0:
            raise ValueError("offset hour must not be negative; use positive=False")

    @classmethod
    def of(cls, hour: int, minute: int = 0) -> UtcOffset:
        """Build from a signed hour, e.g. ``UtcOffset.of(-5)``."""
        return cls(hour >= 0, abs(hour), minute)

    @classmethod
    def parse(cls, text: str) -> UtcOffset:
        text = text.strip()
        if text.upper() == "Z":
            return cls(True, 0, 0)
        m = _OFFSET.match(text)
        if not m:
            raise ValueError(f"offset is not in a recognised format: {text!r}")
        minute = int(m.group(3)) if m.group(3) else 0
        return cls(m.group(1) != "-", int(m.group(2)), minute)

    @classmethod
    def from_timedelta(cls, delta: timedelta) -> UtcOffset:
        total = int(delta.total_seconds()) // 60
        sign = total >= 0
        total = abs(total)
        return cls(sign, total // 60, total % 60)

    def to_timedelta(self) -> timedelta:
        delta = timedelta(hours=self.hour, minutes=self.minute)
        return delta if self.positive else -delta

    def to_tzinfo(self) -> timezone:
        return timezone(self.to_timedelta())

    def format(self, extended: bool = False) -> str:
        sign = "+" if self.positive else "-"
        sep = ":" if extended else ""
        return f"{sign}{self.hour:02d}{sep}{self.minute:02d}"

    def __str__(self) -> str:
        return self.format(extended=False)


# ── Complete dates ─────────────────────────────────────────────────────────────

_DATE = re.compile(
    r"^(\d{4})-?(\d{2})-?(\d{2})"
    r"(?:T(\d{2}):?(\d{2})(?::?(\d{2})(?:[.,]\d+)?)?"
    r"(Z|[-+]\d{2}(?::?\d{2})?)?)?$",
    re.I,
)


def parse_date(text: str) -> date | datetime:
    """Parse a complete ISO 8601 date or date-time in basic or extended form."""
    m = _DATE.match(text.strip())
    if not m:
        raise ValueError(f"not a date: {text!r}")
    year, month, day = int(m.group(1)), int(m.group(2)), int(m.group(3))
    if m.group(4) is None:
        return date(year, month, day)
    tz = None
    if m.group(7):
        tz = UtcOffset.parse(m.group(7)).to_tzinfo()
    return datetime(
        year, month, day,
        int(m.group(4)), int(m.group(5)), int(m.group(6) or 0),
        tzinfo=tz,
    )


def has_time(value: date | datetime) -> bool:
    return isinstance(value, datetime)


def format_date(value: date | datetime, extended: bool = True, utc: bool = False) -> str:
    """Render a date or date-time, e.g. ``1980-03-22T14:30:00-05:00``.

    With ``utc`` an aware date-time is converted to UTC and ends in ``Z``.
    """
    if not isinstance(value, datetime):
        return value.strftime("%Y-%m-%d" if extended else "%Y%m%d")
    if utc and value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    out = value.strftime("%Y-%m-%dT%H:%M:%S" if extended else "%Y%m%dT%H%M%S")
    offset = value.utcoffset()
    if offset is None:
        return out
    if offset == timedelta(0):
        return out + "Z"
    return out + UtcOffset.from_timedelta(offset).format(extended)


# ── Partial dates ──────────────────────────────────────────────────────────────

_OFFSET_SUFFIX = r"(Z|[-+]\d{1,2}(?::?\d{2})?)?"

_DATE_FORMATS: list[tuple[re.Pattern[str], tuple[str, ...]]] = [
    (re.compile(r"^(\d{4})$"), ("year",)),
    (re.compile(r"^(\d{4})-(\d{2})$"), ("year", "month")),
    (re.compile(r"^(\d{4})-?(\d{2})-?(\d{2})$"), ("year", "month", "date")),
    (re.compile(r"^--(\d{2})-?(\d{2})$"), ("month", "date")),
    (re.compile(r"^--(\d{2})$"), ("month",)),
    (re.compile(r"^---(\d{2})$"), ("date",)),
]

_TIME_FORMATS: list[tuple[re.Pattern[str], tuple[str, ...]]] = [
    (re.compile(r"^(\d{2})" + _OFFSET_SUFFIX + "$", re.I), ("hour",)),
    (re.compile(r"^(\d{2}):?(\d{2})" + _OFFSET_SUFFIX + "$", re.I), ("hour", "minute")),
    (re.compile(r"^(\d{2}):?(\d{2}):?(\d{2})" + _OFFSET_SUFFIX + "$", re.I),
     ("hour", "minute", "second")),
    (re.compile(r"^-(\d{2}):?(\d{2})" + _OFFSET_SUFFIX + "$", re.I), ("minute", "second")),
    (re.compile(r"^-(\d{2})" + _OFFSET_SUFFIX + "$", re.I), ("minute",)),
    (re.compile(r"^--(\d{2})" + _OFFSET_SUFFIX + "$", re.I), ("second",)),
]


@dataclass(frozen=True)
class PartialDate:
    """A truncated ISO 8601 date and/or time, e.g. ``--0412`` or ``T1022``.

    Missing components are None. A value may carry only a date part, only
    a time part (and offset), or both.
    """

    year: int | None = None
    month: int | None = None
    date: int | None = None
    hour: int | None = None
    minute: int | None = None
    second: int | None = None
    offset: UtcOffset | None = None

    def __post_init__(self) -> None:
        if self.year is not None and self.date is not None and self.month is None:
            raise ValueError("a year and day without a month is not a valid partial date")
        if self.hour is not None and self.second is not None and self.minute is None:
            raise ValueError("an hour and second without a minute is not a valid partial time")
        if self.month is not None and not 1 <= self.month <= 12:
            raise ValueError(f"month out of range: {self.month}")
        if self.date is not None and not 1 <= self.date <= 31:
            raise ValueError(f"day out of range: {self.date}")
        if self.hour is not None and not 0 <= self.hour <= 23:
            raise ValueError(f"hour out of range: {self.hour}")
        if self.minute is not None and not 0 <= self.minute <= 59:
            raise ValueError(f"minute out of range: {self.minute}")
        if self.second is not None and not 0 <= self.second <= 60:
            raise ValueError(f"second out of range: {self.second}")
        if self.offset is not None and not self.has_time_component:
            raise ValueError("an offset requires a time component")

    @classmethod
    def parse(cls, text: str) -> PartialDate:
        text = text.strip()
        split = text.find("T")
        if split < 0:
            split = text.find("t")
        date_part, time_part = (text, None) if split < 0 else (text[:split], text[split + 1:])

        fields: dict[str, object] = {}
        if date_part:
            fields.update(_match_fields(_DATE_FORMATS, date_part, text))
        if time_part is not None:
            if not time_part:
                raise ValueError(f"partial date has an empty time component: {text!r}")
            fields.update(_match_fields(_TIME_FORMATS, time_part, text))
        if not fields:
            raise ValueError(f"not a partial date: {text!r}")
        return cls(**fields)  # type: ignore[arg-type]

    @property
    def has_date_component(self) -> bool:
        return self.year is not None or self.month is not None or self.date is not None

    @property
    def has_time_component(self) -> bool:
        return self.hour is not None or self.minute is not None or self.second is not None

    def _date_string(self, extended: bool) -> str:
        y, m, d = self.year, self.month, self.date
        dash = "-" if extended else ""
        if y is not None:
            if m is None:
                return f"{y:04d}"
            if d is None:
                return f"{y:04d}-{m:02d}"
            return f"{y:04d}{dash}{m:02d}{dash}{d:02d}"
        if m is not None:
            return f"--{m:02d}" if d is None else f"--{m:02d}{dash}{d:02d}"
        return f"---{d:02d}"

    def _time_string(self, extended: bool) -> str:
        h, mi, s = self.hour, self.minute, self.second
        colon = ":" if extended else ""
        if h is not None:
            if mi is None:
                out = f"{h:02d}"
            elif s is None:
                out = f"{h:02d}{colon}{mi:02d}"
            else:
                out = f"{h:02d}{colon}{mi:02d}{colon}{s:02d}"
        elif mi is not None:
            out = f"-{mi:02d}" if s is None else f"-{mi:02d}{colon}{s:02d}"
        else:
            out = f"--{s:02d}"
        if self.offset is not None:
            out += self.offset.format(extended)
        return out

    def to_iso8601(self, extended: bool = False) -> str:
        out = self._date_string(extended) if self.has_date_component else ""
        if self.has_time_component:
            out += "T" + self._time_string(extended)
        return out

    def __str__(self) -> str:
        return self.to_iso8601(extended=False)


def _match_fields(
    formats: list[tuple[re.Pattern[str], tuple[str, ...]]], part: str, whole: str
) -> dict[str, object]:
    for pattern, names in formats:
        m = pattern.match(part)
        if not m:
            continue
        fields: dict[str, object] = {name: int(m.group(i + 1)) for i, name in enumerate(names)}
        if len(m.groups()) > len(names) and m.group(len(names) + 1):
            fields["offset"] = UtcOffset.parse(m.group(len(names) + 1))
        return fields
    raise ValueError(f"not a partial date: {whole!r}")


# ── Numbers ────────────────────────────────────────────────────────────────────

def format_float(value: float, precision: int = 6) -> str:
    """Format without trailing zeros: ``12.5`` not ``12.500000``."""
    out = f"{value:.{precision}f}".rstrip("0").rstrip(".")
    return "0" if out in ("-0", "") else out


# ── geo: URIs ──────────────────────────────────────────────────────────────────

_GEO_URI = re.compile(
    r"^geo:\s*(-?\d+(?:\.\d+)?)\s*,\s*(-?\d+(?:\.\d+)?)(?:\s*,\s*(-?\d+(?:\.\d+)?))?(?:;.*)?$",
    re.I,
)


@dataclass(frozen=True)
class GeoUri:
    latitude: float
    longitude: float
    altitude: float | None = None

    @classmethod
    def parse(cls, text: str) -> GeoUri:
        m = _GEO_URI.match(text.strip())
        if not m:
            raise ValueError(f"not a geo URI: {text!r}")
        alt = float(m.group(3)) if m.group(3) is not None else None
        return cls(float(m.group(1)), float(m.group(2)), alt)

    def __str__(self) -> str:
        out = f"geo:{format_float(self.latitude)},{format_float(self.longitude)}"
        if self.altitude is not None:
            out += f",{format_float(self.altitude)}"
        return out


# ── data: URIs ─────────────────────────────────────────────────────────────────

_DATA_URI = re.compile(r"^data:([^,]*?)(;base64)?,(.*)$", re.I | re.S)
DEFAULT_MEDIA_TYPE = "application/octet-stream"


@dataclass(frozen=True)
class DataUri:
    media_type: str | None
    data: bytes

    @classmethod
    def parse(cls, text: str) -> DataUri:
        m = _DATA_URI.match(text.strip())
        if not m:
            raise ValueError("not a data URI")
        media_type = m.group(1) or None
        if media_type:
            media_type = media_type.split(";")[0] or None
        payload = m.group(3)
        if m.group(2):
            try:
                data = base64.b64decode(payload, validate=False)
            except binascii.Error as exc:
                raise ValueError(f"data URI payload is not base64: {exc}") from exc
        else:
            data = unquote_to_bytes(payload)
        return cls(media_type, data)

    def __str__(self) -> str:
        encoded = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.media_type or DEFAULT_MEDIA_TYPE};base64,{encoded}"

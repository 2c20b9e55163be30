from __future__ import annotations

import logging
from datetime import datetime, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .elements import HCardElement, JCardValue, XCardElement
from .errors import CannotParseError, SkipMeError
from .model import DateOrTime, Place, Timestamp, Timezone
from .scribe import Scribe, ValidationContext, WriteContext
from .scribes_text import escape_text
from .values import GeoUri, PartialDate, UtcOffset, format_date, parse_date, unescape
from .versions import (
    DATE,
    DATE_AND_OR_TIME,
    DATE_TIME,
    TEXT,
    TIME,
    TIMESTAMP,
    URI,
    UTC_OFFSET,
    VCardDataType,
    VCardVersion,
)

logger = logging.getLogger(__name__)

V21 = VCardVersion.V2_1
V30 = VCardVersion.V3_0
V40 = VCardVersion.V4_0


# ── BDAY, ANNIVERSARY, DEATHDATE ───────────────────────────────────────────────

class DateOrTimeScribe(Scribe):
    def default_data_type(self, version: VCardVersion) -> VCardDataType | None:
        if version is V40:
            return DATE_AND_OR_TIME
        return DATE if version is V30 else None

    def _data_type(self, value: DateOrTime, version: VCardVersion) -> VCardDataType | None:
        if value.text is not None:
            return TEXT
        if version is V21:
            return None
        if value.date is not None:
            return DATE_TIME if value.has_time else DATE
        if value.partial is not None:
            partial = value.partial
            if partial.has_date_component and partial.has_time_component:
                return DATE_TIME
            return TIME if partial.has_time_component else DATE
        return self.default_data_type(version)

    def _write_text(self, value: DateOrTime, context: WriteContext) -> str:
        version = context.version
        if value.date is not None:
            return format_date(value.date, extended=version is V30)
        if value.partial is not None:
            if version is not V40:
                raise SkipMeError(f"Partial dates are not supported by vCard {version}.")
            return value.partial.to_iso8601(extended=False)
        if value.text is not None:
            if version is V21:
                context.warn("Text dates are not supported by vCard 2.1.")
            return escape_text(value.text, version)
        raise SkipMeError(f"{self.property_name} has no date or text")

    def _parse_text(self, value, data_type, parameters, context) -> DateOrTime:
        value = unescape(value)
        if data_type is TEXT:
            return DateOrTime(text=value)
        try:
            return DateOrTime(date=parse_date(value))
        except ValueError:
            pass
        if context.version is not V40:
            raise CannotParseError(f"date is not in a recognised format: {value!r}")
        try:
            return DateOrTime(partial=PartialDate.parse(value))
        except ValueError:
            context.warn(f"Could not parse {value!r} as a date; keeping it as text.")
            return DateOrTime(text=value)

    def _write_xml(self, value: DateOrTime, element: XCardElement, context: WriteContext) -> None:
        dt = self.data_type(value, context.version) or DATE_AND_OR_TIME
        element.append(dt, self._iso(value, extended=False))

    def _write_json(self, value: DateOrTime, context: WriteContext) -> JCardValue:
        return JCardValue.single(self._iso(value, extended=True))

    def _iso(self, value: DateOrTime, extended: bool) -> str:
        if value.date is not None:
            return format_date(value.date, extended=extended)
        if value.partial is not None:
            return value.partial.to_iso8601(extended=extended)
        if value.text is not None:
            return value.text
        raise SkipMeError(f"{self.property_name} has no date or text")

    def _parse_html(self, element: HCardElement, parameters, context) -> DateOrTime:
        text = element.attr("datetime") if element.tag_name == "time" else ""
        return self._parse_text(text or element.value(), None, parameters, context)

    def _validate(self, value: DateOrTime, parameters, context: ValidationContext) -> list[str]:
        if value.is_empty():
            return ["Property has no date or text."]
        if value.partial is not None and context.version is not V40:
            return [f"Partial dates are not supported by vCard {context.version}."]
        if value.text is not None and context.version is V21:
            return ["Text dates are not supported by vCard 2.1."]
        return []


# ── REV ────────────────────────────────────────────────────────────────────────

class TimestampScribe(Scribe):
    property_name = "REV"

    def default_data_type(self, version: VCardVersion) -> VCardDataType | None:
        if version is V40:
            return TIMESTAMP
        return DATE_TIME if version is V30 else None

    def _write_text(self, value: Timestamp, context: WriteContext) -> str:
        if value.value is None:
            raise SkipMeError("REV has no timestamp")
        return format_date(value.value, extended=context.version is V30, utc=True)

    def _parse_text(self, value, data_type, parameters, context) -> Timestamp:
        try:
            parsed = parse_date(unescape(value))
        except ValueError as exc:
            raise CannotParseError(str(exc)) from exc
        if not isinstance(parsed, datetime):
            parsed = datetime(parsed.year, parsed.month, parsed.day, tzinfo=timezone.utc)
        return Timestamp(parsed)

    def _write_json(self, value: Timestamp, context: WriteContext) -> JCardValue:
        if value.value is None:
            raise SkipMeError("REV has no timestamp")
        return JCardValue.single(format_date(value.value, extended=True, utc=True))


# ── TZ ─────────────────────────────────────────────────────────────────────────

def _offset_for_zone(name: str) -> UtcOffset | None:
    try:
        zone = ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return None
    delta = datetime.now(zone).utcoffset()
    return UtcOffset.from_timedelta(delta) if delta is not None else None


class TimezoneScribe(Scribe):
    property_name = "TZ"

    def default_data_type(self, version: VCardVersion) -> VCardDataType:
        return TEXT if version is V40 else UTC_OFFSET

    def _data_type(self, value: Timezone, version: VCardVersion) -> VCardDataType:
        if version is V21:
            return UTC_OFFSET
        if version is V30:
            return UTC_OFFSET if value.offset is not None else TEXT
        return TEXT if value.text is not None else UTC_OFFSET

    def _write_text(self, value: Timezone, context: WriteContext) -> str:
        version = context.version
        if value.offset is None and value.text is None:
            raise SkipMeError("TZ has neither an offset nor a text value")

        if version is V21:
            offset = value.offset or _offset_for_zone(value.text or "")
            if offset is None:
                raise SkipMeError(f"TZ {value.text!r} has no UTC offset, which vCard 2.1 requires")
            return offset.format(extended=False)
        if version is V30:
            if value.offset is not None:
                return value.offset.format(extended=True)
            return escape_text(value.text or "", version)
        if value.text is not None:
            return escape_text(value.text, version)
        return value.offset.format(extended=False)

    def _parse_text(self, value, data_type, parameters, context) -> Timezone:
        value = unescape(value).strip()
        if data_type is TEXT:
            return Timezone(text=value)
        try:
            return Timezone(offset=UtcOffset.parse(value))
        except ValueError:
            context.warn(f"TZ value {value!r} is not a UTC offset; keeping it as text.")
            return Timezone(text=value)

    def _write_xml(self, value: Timezone, element: XCardElement, context: WriteContext) -> None:
        element.append(self.data_type(value, context.version), unescape(self._write_text(value, context)))

    def _write_json(self, value: Timezone, context: WriteContext) -> JCardValue:
        if value.text is not None:
            return JCardValue.single(value.text)
        if value.offset is None:
            raise SkipMeError("TZ has neither an offset nor a text value")
        return JCardValue.single(value.offset.format(extended=True))

    def _validate(self, value: Timezone, parameters, context: ValidationContext) -> list[str]:
        if value.offset is None and value.text is None:
            return ["TZ has neither an offset nor a text value."]
        if context.version is V21 and value.offset is None and _offset_for_zone(value.text or "") is None:
            return [f"TZ {value.text!r} cannot be written as a UTC offset for vCard 2.1."]
        return []


# ── BIRTHPLACE, DEATHPLACE ─────────────────────────────────────────────────────

class PlaceScribe(Scribe):
    def _data_type(self, value: Place, version: VCardVersion) -> VCardDataType:
        return TEXT if value.text is not None else URI

    def _write_text(self, value: Place, context: WriteContext) -> str:
        if value.text is not None:
            return escape_text(value.text, context.version)
        if value.uri is not None:
            return value.uri
        if value.geo is not None:
            return str(value.geo)
        raise SkipMeError(f"{self.property_name} has no text, URI or coordinates")

    def _parse_text(self, value, data_type, parameters, context) -> Place:
        value = unescape(value)
        if data_type is URI:
            if value.lower().startswith("geo:"):
                try:
                    return Place(geo=GeoUri.parse(value))
                except ValueError:
                    logger.debug("unparseable geo URI in %s: %r", self.property_name, value)
            return Place(uri=value)
        return Place(text=value)

    def _validate(self, value: Place, parameters, context: ValidationContext) -> list[str]:
        return ["Property has no value."] if value.is_empty() else []


def datetime_scribes() -> list[Scribe]:
    return [
        DateOrTimeScribe("BDAY"),
        DateOrTimeScribe("ANNIVERSARY"),
        DateOrTimeScribe("DEATHDATE"),
        TimestampScribe(),
        TimezoneScribe(),
        PlaceScribe("BIRTHPLACE"),
        PlaceScribe("DEATHPLACE"),
    ]

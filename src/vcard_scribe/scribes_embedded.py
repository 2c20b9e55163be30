from __future__ import annotations

from .elements import HCardElement, JCardValue, XCardElement
from .errors import CannotParseError, EmbeddedVCardError, SkipMeError
from .model import Agent
from .scribe import Scribe, ValidationContext, WriteContext
from .values import unescape
from .versions import URI, URL, VCardDataType, VCardVersion


class AgentScribe(Scribe):
    """AGENT: a URL, or a whole vCard nested inside this one.

    Nested vCards are not built here. Parsing raises
    :class:`EmbeddedVCardError` with an empty :class:`Agent` and the
    unescaped vCard text (None when a 2.1 ``BEGIN:VCARD`` block follows);
    the reader parses the child and fills the agent in. Writing raises it
    with the child so the writer can marshal it recursively.
    """

    property_name = "AGENT"
    default_type = None

    def _data_type(self, value: Agent, version: VCardVersion) -> VCardDataType | None:
        if value.url is not None:
            return self.uri_type(version)
        return None

    def _write_text(self, value: Agent, context: WriteContext) -> str:
        if value.url is not None:
            return value.url
        if value.vcard is not None:
            raise EmbeddedVCardError(value.vcard)
        raise SkipMeError("AGENT has neither a URL nor an embedded vCard")

    def _parse_text(self, value, data_type, parameters, context) -> Agent:
        if data_type in (URI, URL):
            return Agent(url=unescape(value))
        text = unescape(value).strip()
        raise EmbeddedVCardError(Agent(), text or None)

    def _write_xml(self, value: Agent, element: XCardElement, context: WriteContext) -> None:
        raise SkipMeError("AGENT cannot be written to xCard")

    def _parse_xml(self, element: XCardElement, parameters, context) -> Agent:
        raise CannotParseError("AGENT is not part of xCard")

    def _write_json(self, value: Agent, context: WriteContext) -> JCardValue:
        raise SkipMeError("AGENT cannot be written to jCard")

    def _parse_json(self, value: JCardValue, data_type, parameters, context) -> Agent:
        raise CannotParseError("AGENT is not part of jCard")

    def _parse_html(self, element: HCardElement, parameters, context) -> Agent:
        if "vcard" in element.class_names():
            raise EmbeddedVCardError(Agent())
        url = element.abs_url("href") if element.tag_name == "a" else ""
        return Agent(url=url or element.value())

    def _validate(self, value: Agent, parameters, context: ValidationContext) -> list[str]:
        if value.is_empty():
            return ["AGENT has neither a URL nor an embedded vCard."]
        if value.vcard is None:
            return []
        if context.depth >= context.max_depth:
            return [f"Embedded vCards are nested deeper than {context.max_depth} levels."]

        from .validation import validate

        child = validate(
            value.vcard,
            context.version,
            context.index,
            depth=context.depth + 1,
            max_depth=context.max_depth,
        )
        return [f"AGENT: [{name or '*'}] {message}" for name, message in child]

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable

from .model import RawValue, VCardProperty
from .scribe import Scribe
from .scribes_binary import binary_scribes
from .scribes_datetime import datetime_scribes
from .scribes_embedded import AgentScribe
from .scribes_structured import structured_scribes
from .scribes_text import RawScribe, text_scribes
from .versions import XCARD_NS

logger = logging.getLogger(__name__)


class ScribeIndex:
    """Maps property names (and hCard class names) to scribes.

    Reads never lock: registration builds new dicts under a lock and
    swaps them in, so an index can be shared between threads.
    """

    def __init__(self, scribes: Iterable[Scribe] = ()):
        self._lock = threading.Lock()
        self._by_name: dict[str, Scribe] = {}
        self._by_hcard: dict[str, Scribe] = {}
        for scribe in scribes:
            self.register(scribe)

    def register(self, scribe: Scribe) -> None:
        with self._lock:
            by_name = dict(self._by_name)
            by_hcard = dict(self._by_hcard)
            previous = by_name.get(scribe.property_name)
            if previous is not None:
                by_hcard.pop(previous.hcard_class_name, None)
            by_name[scribe.property_name] = scribe
            by_hcard[scribe.hcard_class_name] = scribe
            self._by_name, self._by_hcard = by_name, by_hcard
        logger.debug("registered %r", scribe)

    def unregister(self, property_name: str) -> Scribe | None:
        with self._lock:
            by_name = dict(self._by_name)
            scribe = by_name.pop(property_name.upper(), None)
            if scribe is None:
                return None
            by_hcard = dict(self._by_hcard)
            by_hcard.pop(scribe.hcard_class_name, None)
            self._by_name, self._by_hcard = by_name, by_hcard
        return scribe

    def has(self, property_name: str) -> bool:
        return property_name.upper() in self._by_name

    def scribe_for(self, property_name: str) -> Scribe:
        """The registered scribe, or a :class:`RawScribe` for unknown names."""
        scribe = self._by_name.get(property_name.upper())
        return scribe if scribe is not None else RawScribe(property_name)

    def scribe_for_property(self, prop: VCardProperty) -> Scribe:
        """Like :meth:`scribe_for`, but raw values always go back out verbatim."""
        if isinstance(prop.value, RawValue):
            return RawScribe(prop.name)
        return self.scribe_for(prop.name)

    def scribe_for_hcard_class(self, class_name: str) -> Scribe | None:
        return self._by_hcard.get(class_name.lower())

    def scribe_for_xml(self, namespace: str | None, local_name: str) -> Scribe | None:
        """None for elements outside the xCard namespace."""
        if namespace != XCARD_NS:
            return None
        return self.scribe_for(local_name)

    def __contains__(self, property_name: object) -> bool:
        return isinstance(property_name, str) and self.has(property_name)

    def __len__(self) -> int:
        return len(self._by_name)


def default_index() -> ScribeIndex:
    """A new index holding every built-in scribe."""
    return ScribeIndex([
        *text_scribes(),
        *structured_scribes(),
        *binary_scribes(),
        *datetime_scribes(),
        AgentScribe(),
    ])

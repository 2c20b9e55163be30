"""Thin wrappers around the trees the scribes read from and write to.

``XCardElement`` wraps an ElementTree property element of an xCard
document, ``JCardValue`` the value slot of a jCard property array and
``HCardElement`` an element of an HTML page parsed by ``HTMLTreeBuilder``.
"""
from __future__ import annotations

import re
import xml.etree.ElementTree as ET
from html.parser import HTMLParser
from typing import Any
from urllib.parse import urljoin

from .versions import XCARD_NS, VCardDataType


def local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1] if tag.startswith("{") else tag


def namespace_of(tag: str) -> str | None:
    return tag[1:].split("}", 1)[0] if tag.startswith("{") else None


# ── xCard ──────────────────────────────────────────────────────────────────────

class XCardElement:
    def __init__(self, element: ET.Element):
        self.element = element

    @classmethod
    def create(cls, property_name: str) -> XCardElement:
        return cls(ET.Element(f"{{{XCARD_NS}}}{property_name.lower()}"))

    @property
    def name(self) -> str:
        return local_name(self.element.tag)

    def _children(self) -> list[ET.Element]:
        return [
            child for child in self.element
            if namespace_of(child.tag) == XCARD_NS and local_name(child.tag) != "parameters"
        ]

    def append(self, name: str | VCardDataType, value: str | None) -> ET.Element:
        """Add a value child, e.g. ``<text>value</text>``; None becomes empty."""
        tag = name.name if isinstance(name, VCardDataType) else name
        child = ET.SubElement(self.element, f"{{{XCARD_NS}}}{tag}")
        child.text = value if value is not None else ""
        return child

    def append_all(self, name: str | VCardDataType, values: list[str]) -> None:
        if not values:
            self.append(name, "")
            return
        for value in values:
            self.append(name, value)

    def first(self, *names: str | VCardDataType) -> str | None:
        """Text of the first child with one of the given names, in document order."""
        wanted = {n.name if isinstance(n, VCardDataType) else n for n in names}
        for child in self._children():
            if local_name(child.tag) in wanted:
                return child.text or ""
        return None

    def all(self, name: str | VCardDataType) -> list[str]:
        wanted = name.name if isinstance(name, VCardDataType) else name
        return [c.text or "" for c in self._children() if local_name(c.tag) == wanted]

    def first_value(self) -> tuple[VCardDataType | None, str] | None:
        """The first typed value child as ``(data type, text)``.

        Unknown child names give a None data type.
        """
        for child in self._children():
            return VCardDataType.find(local_name(child.tag)), child.text or ""
        return None


# ── jCard ──────────────────────────────────────────────────────────────────────

def _as_str(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class JCardValue:
    """The value part of a jCard property: everything after the data type."""

    def __init__(self, values: list[Any]):
        self.values = values

    @classmethod
    def single(cls, value: Any) -> JCardValue:
        return cls([value])

    @classmethod
    def multi(cls, *values: Any) -> JCardValue:
        return cls(list(values))

    @classmethod
    def structured(cls, *components: str | list[str] | None) -> JCardValue:
        """One array; single-item components collapse to plain strings."""
        out: list[Any] = []
        for component in components:
            if component is None:
                out.append("")
            elif isinstance(component, str):
                out.append(component)
            elif len(component) == 0:
                out.append("")
            elif len(component) == 1:
                out.append(component[0])
            else:
                out.append(list(component))
        return cls([out])

    def as_single(self) -> str:
        if not self.values:
            return ""
        first = self.values[0]
        while isinstance(first, list):
            first = first[0] if first else None
        return _as_str(first)

    def as_multi(self) -> list[str]:
        out: list[str] = []
        for value in self.values:
            if isinstance(value, list):
                out.extend(_as_str(v) for v in value)
            else:
                out.append(_as_str(value))
        return out

    def as_structured(self) -> list[list[str]]:
        if len(self.values) == 1 and isinstance(self.values[0], list):
            parts = self.values[0]
        else:
            parts = self.values
        out: list[list[str]] = []
        for part in parts:
            if isinstance(part, list):
                out.append([_as_str(v) for v in part if _as_str(v) != ""])
            else:
                text = _as_str(part)
                out.append([text] if text else [])
        return out

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, JCardValue):
            return NotImplemented
        return self.values == other.values

    def __repr__(self) -> str:
        return f"JCardValue({self.values!r})"


# ── hCard ──────────────────────────────────────────────────────────────────────

_VOID_TAGS = frozenset({
    "area", "base", "br", "col", "embed", "hr", "img", "input",
    "link", "meta", "param", "source", "track", "wbr",
})
_WHITESPACE = re.compile(r"\s+")


class HTMLTreeBuilder(HTMLParser):
    """Build an ElementTree from HTML, tolerating unclosed tags."""

    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.root = ET.Element("document")
        self._stack: list[ET.Element] = [self.root]

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        el = ET.SubElement(self._stack[-1], tag, {k: v or "" for k, v in attrs})
        if tag not in _VOID_TAGS:
            self._stack.append(el)

    def handle_startendtag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        ET.SubElement(self._stack[-1], tag, {k: v or "" for k, v in attrs})

    def handle_endtag(self, tag: str) -> None:
        for i in range(len(self._stack) - 1, 0, -1):
            if self._stack[i].tag == tag:
                del self._stack[i:]
                return

    def handle_data(self, data: str) -> None:
        parent = self._stack[-1]
        if len(parent):
            last = parent[-1]
            last.tail = (last.tail or "") + data
        else:
            parent.text = (parent.text or "") + data

    @classmethod
    def parse(cls, html: str) -> ET.Element:
        builder = cls()
        builder.feed(html)
        builder.close()
        return builder.root


def class_names(element: ET.Element) -> list[str]:
    return element.get("class", "").lower().split()


class HCardElement:
    def __init__(self, element: ET.Element, base_url: str | None = None):
        self.element = element
        self.base_url = base_url

    @property
    def tag_name(self) -> str:
        return self.element.tag.lower()

    def attr(self, name: str) -> str:
        return self.element.get(name, "")

    def abs_url(self, name: str) -> str:
        value = self.attr(name)
        if not value:
            return ""
        return urljoin(self.base_url, value) if self.base_url else value

    def class_names(self) -> list[str]:
        return class_names(self.element)

    def find_all(self, class_name: str) -> list[HCardElement]:
        return [
            HCardElement(el, self.base_url)
            for el in self.element.iter()
            if el is not self.element and class_name in class_names(el)
        ]

    def value(self) -> str:
        """The microformat value of this element.

        ``abbr`` titles win; otherwise the text of any ``value`` class
        children, or else the element's own text with whitespace collapsed.
        """
        if self.tag_name == "abbr" and self.attr("title"):
            return self.attr("title")

        value_elements = self._outermost(self.find_all("value"))
        buf: list[str] = []
        if not value_elements:
            _visit_text(self.element, buf)
        for ve in value_elements:
            if ve.tag_name == "abbr" and ve.attr("title"):
                buf.append(ve.attr("title"))
            else:
                _visit_text(ve.element, buf)
        return "".join(buf).strip()

    def _outermost(self, found: list[HCardElement]) -> list[HCardElement]:
        nested: set[int] = set()
        for outer in found:
            for el in outer.element.iter():
                if el is not outer.element:
                    nested.add(id(el))
        return [f for f in found if id(f.element) not in nested]

    def first_value(self, class_name: str) -> str | None:
        found = self.find_all(class_name)
        return found[0].value() if found else None

    def all_values(self, class_name: str) -> list[str]:
        return [el.value() for el in self.find_all(class_name)]

    def types(self) -> list[str]:
        return [t.lower() for t in self.all_values("type")]


def _visit_text(element: ET.Element, buf: list[str]) -> None:
    if element.text:
        buf.append(_WHITESPACE.sub(" ", element.text))
    for child in element:
        tag = child.tag.lower() if isinstance(child.tag, str) else ""
        if tag == "br":
            buf.append("\n")
        elif tag == "del" or "type" in class_names(child):
            pass
        else:
            _visit_text(child, buf)
        if child.tail:
            buf.append(_WHITESPACE.sub(" ", child.tail))

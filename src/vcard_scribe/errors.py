"""Scribe signals, scribe results and warning records.

Scribe hooks raise the three signals below. The public scribe methods
catch them and hand back one of the result types instead, so a driver
never has to wrap a scribe call in ``try``.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

T = TypeVar("T")


# ── Signals (raised inside scribe hooks) ───────────────────────────────────────

class SkipMeError(Exception):
    """The property should be dropped; the message says why."""


class CannotParseError(Exception):
    """The value is malformed; the caller keeps the raw text instead."""


class EmbeddedVCardError(Exception):
    """The property holds, or is waiting for, an embedded vCard.

    On parse ``value`` is the partially built property value (an ``Agent``)
    and ``text`` the escaped vCard text when it arrived inline. On write
    ``value`` is the ``VCard`` to embed.
    """

    def __init__(self, value: Any, text: str | None = None):
        super().__init__("embedded vCard")
        self.value = value
        self.text = text


class VCardParseError(Exception):
    """A record could not be framed (missing END, unreadable document)."""

    def __init__(self, message: str, line_number: int | None = None):
        if line_number is not None:
            message = f"line {line_number}: {message}"
        super().__init__(message)
        self.line_number = line_number


# ── Results (returned by public scribe methods) ────────────────────────────────

@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T


@dataclass(frozen=True)
class Skip:
    reason: str


@dataclass(frozen=True)
class Embed:
    value: Any
    text: str | None = None


@dataclass(frozen=True)
class CannotParse:
    reason: str


ParseResult = Ok[Any] | Skip | Embed | CannotParse
WriteResult = Ok[Any] | Skip | Embed


# ── Warnings ───────────────────────────────────────────────────────────────────

@dataclass
class VCardWarning:
    message: str
    property_name: str | None = None
    line_number: int | None = None

    def prefixed(self, prefix: str) -> VCardWarning:
        return VCardWarning(f"{prefix}{self.message}", self.property_name, self.line_number)

    def __str__(self) -> str:
        where = []
        if self.line_number is not None:
            where.append(f"line {self.line_number}")
        if self.property_name:
            where.append(self.property_name)
        return f"[{', '.join(where)}] {self.message}" if where else self.message


@dataclass
class ValidationWarnings:
    """Validation findings, grouped by property (None for the whole record)."""

    items: list[tuple[str | None, str]] = field(default_factory=list)

    def add(self, property_name: str | None, message: str) -> None:
        self.items.append((property_name, message))

    def extend(self, property_name: str | None, messages: list[str]) -> None:
        for message in messages:
            self.add(property_name, message)

    def for_property(self, property_name: str | None) -> list[str]:
        key = property_name.upper() if property_name else None
        return [m for p, m in self.items if p == key]

    def is_empty(self) -> bool:
        return not self.items

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self):
        return iter(self.items)

    def __str__(self) -> str:
        return "\n".join(f"[{p or '*'}] {m}" for p, m in self.items)

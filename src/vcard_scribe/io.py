from __future__ import annotations

import logging
import quopri
from dataclasses import dataclass, field
from io import StringIO
from pathlib import Path
from typing import TextIO

import vobject

from .config import Settings
from .errors import CannotParse, Embed, Ok, VCardWarning, Skip, VCardParseError
from .index import ScribeIndex, default_index
from .model import Label, RawValue, VCard, VCardProperty
from .parameters import VCardParameters
from .scribe import ParseContext
from .scribes_structured import assign_labels
from .versions import VCardDataType, VCardVersion

logger = logging.getLogger(__name__)

# ── Parameter clean-up ─────────────────────────────────────────────────────────
#
# vCard 2.1 allows parameters without a name (TEL;HOME;VOICE:...). The name
# is guessed from the value: encodings, then value types, then TYPE.

_NAMELESS_ENCODINGS = {"7bit", "8bit", "base64", "quoted-printable", "b"}
_NAMELESS_VALUES = {"inline", "url", "content-id", "cid"}


def _guess_parameter_name(value: str) -> str:
    lowered = value.lower()
    if lowered in _NAMELESS_ENCODINGS:
        return "ENCODING"
    if lowered in _NAMELESS_VALUES or VCardDataType.find(lowered) is not None:
        return "VALUE"
    return "TYPE"


def caret_decode(value: str) -> str:
    """Decode RFC 6868 parameter escapes (``^n``, ``^^``, ``^'``)."""
    if "^" not in value:
        return value
    out: list[str] = []
    i = 0
    while i < len(value):
        ch = value[i]
        nxt = value[i + 1] if i + 1 < len(value) else ""
        if ch == "^" and nxt in ("n", "N", "^", "'"):
            out.append({"n": "\n", "N": "\n", "^": "^", "'": '"'}[nxt])
            i += 2
            continue
        out.append(ch)
        i += 1
    return "".join(out)


@dataclass
class _Frame:
    vcard: VCard
    labels: list[tuple[VCardProperty, int]] = field(default_factory=list)
    pending_agent: VCardProperty | None = None
    depth: int = 0
    discard: bool = False


# ── Reader ─────────────────────────────────────────────────────────────────────

class VCardReader:
    """Reads vCard 2.1, 3.0 and 4.0 text, one record at a time.

    Problems with individual properties become entries in ``warnings``;
    only an unterminated record raises :class:`VCardParseError`.
    """

    def __init__(
        self,
        source: str | TextIO,
        index: ScribeIndex | None = None,
        settings: Settings | None = None,
        depth: int = 0,
    ):
        text = source if isinstance(source, str) else source.read()
        self._lines = vobject.base.getLogicalLines(StringIO(text), allowQP=True)
        self.index = index or default_index()
        self.settings = settings or Settings()
        self.depth = depth
        self.warnings: list[VCardWarning] = []

    def __iter__(self):
        while True:
            vcard = self.read_next()
            if vcard is None:
                return
            yield vcard

    def read_all(self) -> list[VCard]:
        return list(self)

    def _warn(self, message: str, property_name: str | None = None, line: int | None = None) -> None:
        self.warnings.append(VCardWarning(message, property_name, line))

    def read_next(self) -> VCard | None:
        stack: list[_Frame] = []
        line_number = 0
        for line, line_number in self._lines:
            try:
                name, raw_params, value, group = vobject.base.parseLine(line, line_number)
            except vobject.base.ParseError:
                if stack:
                    self._warn(f"Skipping malformed line: {line[:60]!r}", None, line_number)
                continue

            key = name.upper()
            if key == "BEGIN":
                if value.strip().upper() == "VCARD":
                    self._begin(stack, line_number)
                continue
            if key == "END":
                if value.strip().upper() != "VCARD" or not stack:
                    continue
                finished = self._end(stack, line_number)
                if finished is not None:
                    logger.debug("read vCard %s with %d properties", finished.version, len(finished))
                    return finished
                continue
            if not stack:
                continue

            frame = stack[-1]
            if key == "VERSION":
                version = VCardVersion.find(value)
                if version is None:
                    self._warn(f"Unknown version {value!r}; reading as {frame.vcard.version}.", key, line_number)
                else:
                    frame.vcard.version = version
                continue
            self._read_property(frame, group, name, raw_params, value, line_number)

        if stack:
            raise VCardParseError("vCard is missing END:VCARD", line_number)
        return None

    # ── Framing ────────────────────────────────────────────────────────────────

    def _begin(self, stack: list[_Frame], line_number: int) -> None:
        if not stack:
            stack.append(_Frame(VCard(version=VCardVersion.V2_1), depth=self.depth))
            return

        parent = stack[-1]
        depth = parent.depth + 1
        frame = _Frame(VCard(version=parent.vcard.version), depth=depth, discard=parent.discard)
        if parent.pending_agent is None:
            self._warn("Nested vCard is not attached to an AGENT property; ignoring it.", None, line_number)
            frame.discard = True
        elif depth > self.settings.max_embedded_depth:
            self._warn(
                f"Embedded vCard nested deeper than {self.settings.max_embedded_depth} levels; ignoring it.",
                "AGENT", line_number,
            )
            frame.discard = True
        stack.append(frame)

    def _end(self, stack: list[_Frame], line_number: int) -> VCard | None:
        frame = stack.pop()
        assign_labels(frame.vcard, frame.labels)
        if frame.pending_agent is not None:
            self._warn("AGENT property was not followed by an embedded vCard.", "AGENT", line_number)
        if not stack:
            return frame.vcard

        parent = stack[-1]
        if parent.pending_agent is not None and not frame.discard:
            parent.pending_agent.value.vcard = frame.vcard
        parent.pending_agent = None
        return None

    # ── Properties ─────────────────────────────────────────────────────────────

    def _parameters(self, raw_params: list[list[str]], version: VCardVersion) -> VCardParameters:
        params = VCardParameters()
        caret = self.settings.caret_encoding and version is not VCardVersion.V2_1
        for entry in raw_params:
            pname, values = entry[0], entry[1:]
            if not values:
                pname, values = _guess_parameter_name(pname), [pname]
            for value in values:
                if caret:
                    value = caret_decode(value)
                if pname.upper() == "TYPE" and "," in value:
                    for part in value.split(","):
                        if part:
                            params.put(pname, part)
                    continue
                params.put(pname, value)
        return params

    def _decode_quoted_printable(self, value: str, params: VCardParameters, name: str, line: int) -> str:
        charset = params.charset or "utf-8"
        decoded = quopri.decodestring(value.encode("utf-8"))
        try:
            text = decoded.decode(charset)
        except LookupError:
            self._warn(f"Unknown CHARSET={charset}; decoding as UTF-8.", name, line)
            text = decoded.decode("utf-8", errors="replace")
        except UnicodeDecodeError:
            self._warn(f"Value is not valid {charset}; undecodable bytes were replaced.", name, line)
            text = decoded.decode(charset, errors="replace")
        params.remove_all("ENCODING")
        params.remove_all("CHARSET")
        return text.replace("\r\n", "\n")

    def _read_property(
        self,
        frame: _Frame,
        group: str | None,
        name: str,
        raw_params: list[list[str]],
        value: str,
        line: int,
    ) -> None:
        vcard = frame.vcard
        version = vcard.version
        params = self._parameters(raw_params, version)

        encoding = params.encoding
        if encoding is not None and encoding.lower() == "quoted-printable":
            value = self._decode_quoted_printable(value, params, name, line)

        scribe = self.index.scribe_for(name)
        explicit_type = params.value
        params.remove_all("VALUE")
        data_type = explicit_type or scribe.default_data_type(version)

        context = ParseContext(version)
        result = scribe.parse_text(value, data_type, params, context)
        if not isinstance(result, (Skip, CannotParse)):
            for message in context.warnings:
                self._warn(message, name.upper(), line)

        if isinstance(result, Ok):
            prop = VCardProperty(name, result.value, params, group)
            if isinstance(result.value, Label) and version is not VCardVersion.V4_0:
                frame.labels.append((prop, len(vcard.properties_named("ADR"))))
            else:
                vcard.add(prop)
        elif isinstance(result, Skip):
            self._warn(f"Property has requested that it be skipped: {result.reason}", name.upper(), line)
        elif isinstance(result, CannotParse):
            self._warn(
                f"Property value could not be parsed and is kept as raw text: {result.reason}",
                name.upper(), line,
            )
            vcard.add(VCardProperty(name, RawValue(value, explicit_type), params, group))
        elif isinstance(result, Embed):
            prop = VCardProperty(name, result.value, params, group)
            vcard.add(prop)
            if result.text is None:
                frame.pending_agent = prop
            else:
                result.value.vcard = self._read_embedded(result.text, frame.depth + 1, name.upper(), line)

    def _read_embedded(self, text: str, depth: int, name: str, line: int) -> VCard | None:
        if depth > self.settings.max_embedded_depth:
            self._warn(
                f"Embedded vCard nested deeper than {self.settings.max_embedded_depth} levels; ignoring it.",
                name, line,
            )
            return None
        reader = VCardReader(text, self.index, self.settings, depth=depth)
        try:
            child = reader.read_next()
        except VCardParseError as exc:
            self._warn(f"Embedded vCard could not be read: {exc}", name, line)
            child = None
        for warning in reader.warnings:
            self.warnings.append(warning.prefixed(f"{name}: "))
        if child is None and not reader.warnings:
            self._warn("Embedded vCard text holds no vCard.", name, line)
        return child


# ── Public API ─────────────────────────────────────────────────────────────────

def parse_vcards(
    text: str,
    index: ScribeIndex | None = None,
    settings: Settings | None = None,
) -> tuple[list[VCard], list[VCardWarning]]:
    """Read every vCard in ``text``, returning the records and the warnings."""
    reader = VCardReader(text, index, settings)
    return reader.read_all(), reader.warnings


def read_vcards_from_files(
    paths: list[Path],
    index: ScribeIndex | None = None,
    settings: Settings | None = None,
) -> list[tuple[VCard, str]]:
    """Parse all .vcf files and return (vcard, source_label) pairs."""
    index = index or default_index()
    results: list[tuple[VCard, str]] = []
    for p in paths:
        label = p.stem
        raw = p.read_text(encoding="utf-8", errors="replace")
        reader = VCardReader(raw, index, settings)
        for vcard in reader:
            results.append((vcard, label))
        for warning in reader.warnings:
            logger.debug("%s: %s", label, warning)
    return results


def collect_sources(directory: Path) -> list[Path]:
    """Return all .vcf files found directly inside ``directory``, sorted by name."""
    if not directory.is_dir():
        return []
    return sorted(p for p in directory.iterdir() if p.suffix.lower() == ".vcf")

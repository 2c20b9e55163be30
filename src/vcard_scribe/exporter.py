from __future__ import annotations

import binascii
import logging
from io import StringIO
from pathlib import Path
from typing import TextIO

import vobject

from .config import Settings
from .errors import Embed, Skip, VCardWarning
from .index import ScribeIndex, default_index
from .model import Text, VCard, VCardProperty
from .parameters import VCardParameters
from .scribe import WriteContext
from .scribes_structured import label_properties
from .values import escape
from .versions import VCardVersion

logger = logging.getLogger(__name__)

PRODID = "-//vcard-scribe//EN"


# ── Parameter encoding ─────────────────────────────────────────────────────────

def caret_encode(value: str) -> str:
    """Encode a parameter value with RFC 6868 escapes."""
    return (
        value.replace("^", "^^")
        .replace("\r\n", "^n")
        .replace("\n", "^n")
        .replace("\r", "^n")
        .replace('"', "^'")
    )


def _sanitize(value: str) -> str:
    # Without caret encoding there is no way to write quotes or newlines.
    return value.replace('"', "'").replace("\r\n", " ").replace("\n", " ").replace("\r", " ")


def _quoted_printable(value: str, charset: str = "utf-8") -> str:
    data = value.replace("\r\n", "\n").replace("\n", "\r\n").encode(charset)
    encoded = binascii.b2a_qp(data, istext=False).decode("ascii")
    # b2a_qp uses bare LF for its soft line breaks.
    return encoded.replace("=\n", "=\r\n")


# ── Writer ─────────────────────────────────────────────────────────────────────

class VCardWriter:
    """Writes :class:`VCard` objects as vCard 2.1, 3.0 or 4.0 text.

    A property that cannot be written in the target version is dropped
    with a warning; it never stops the rest of the record.
    """

    def __init__(
        self,
        version: VCardVersion | None = None,
        index: ScribeIndex | None = None,
        settings: Settings | None = None,
    ):
        self.settings = settings or Settings()
        self.version = version or self.settings.default_version
        self.index = index or default_index()
        self.warnings: list[VCardWarning] = []

    def _warn(self, message: str, property_name: str | None = None) -> None:
        self.warnings.append(VCardWarning(message, property_name))

    def write(self, vcard: VCard) -> str:
        out = StringIO()
        self.write_to(vcard, out)
        return out.getvalue()

    def write_to(self, vcard: VCard, out: TextIO) -> None:
        self._write_vcard(vcard, out, depth=0, fold=True)

    # ── Records ────────────────────────────────────────────────────────────────

    def _write_vcard(self, vcard: VCard, out: TextIO, depth: int, fold: bool) -> None:
        version = self.version
        self._line(out, "BEGIN:VCARD", fold)
        self._line(out, f"VERSION:{version}", fold)

        labels: dict[int, VCardProperty] = {}
        if version is not VCardVersion.V4_0:
            labels = {id(adr): label for adr, label in label_properties(vcard)}

        for prop in vcard.properties:
            self._write_property(vcard, prop, out, depth, fold)
            label = labels.get(id(prop))
            if label is not None:
                self._write_property(vcard, label, out, depth, fold)

        for orphan in vcard.orphaned_labels:
            self._write_property(vcard, orphan, out, depth, fold)

        if self.settings.add_prodid and version is not VCardVersion.V2_1 and vcard.first("PRODID") is None:
            self._write_property(vcard, VCardProperty("PRODID", Text(PRODID)), out, depth, fold)

        self._line(out, "END:VCARD", fold)

    def _write_property(self, vcard: VCard, prop: VCardProperty, out: TextIO, depth: int, fold: bool) -> None:
        version = self.version
        name = prop.name
        scribe = self.index.scribe_for_property(prop)

        if version not in scribe.supported_versions:
            self._warn(f"Property is not part of vCard {version}; writing it anyway.", name)

        context = WriteContext(version, vcard)
        result = scribe.write_text(prop.value, context)
        for message in context.warnings:
            self._warn(message, name)

        if isinstance(result, Skip):
            logger.debug("skipping %s: %s", name, result.reason)
            self._warn(f"Property has requested that it be skipped: {result.reason}", name)
            return

        params = scribe.prepare_parameters(prop, version, vcard)
        params.value = scribe.value_parameter(prop.value, version)

        if isinstance(result, Embed):
            self._write_embedded(prop, params, result.value, out, depth, fold)
            return

        value = result.value
        if version is VCardVersion.V2_1 and ("\n" in value or "\r" in value):
            params.encoding = "QUOTED-PRINTABLE"
            params.charset = params.charset or "UTF-8"
            value = _quoted_printable(value, params.charset)
            # Soft line breaks replace folding here.
            self._line(out, self._content_line(prop.group, name, params, value), fold=False)
            return

        self._line(out, self._content_line(prop.group, name, params, value), fold)

    def _write_embedded(
        self,
        prop: VCardProperty,
        params: VCardParameters,
        child: VCard,
        out: TextIO,
        depth: int,
        fold: bool,
    ) -> None:
        limit = self.settings.max_embedded_depth
        if depth + 1 > limit:
            self._warn(f"Embedded vCard nested deeper than {limit} levels; dropping it.", prop.name)
            return

        if self.version is VCardVersion.V2_1:
            self._line(out, self._content_line(prop.group, prop.name, params, ""), fold)
            self._write_vcard(child, out, depth + 1, fold)
            return

        # 3.0 nests the whole record as one escaped text value.
        buf = StringIO()
        before = len(self.warnings)
        self._write_vcard(child, buf, depth + 1, fold=False)
        self.warnings[before:] = [w.prefixed(f"{prop.name}: ") for w in self.warnings[before:]]
        text = buf.getvalue().rstrip("\r\n")
        self._line(out, self._content_line(prop.group, prop.name, params, escape(text)), fold)

    # ── Lines ──────────────────────────────────────────────────────────────────

    def _parameter_value(self, value: str) -> str:
        if self.version is not VCardVersion.V2_1 and self.settings.caret_encoding:
            value = caret_encode(value)
        else:
            value = _sanitize(value)
        return vobject.base.dquoteEscape(value)

    def _content_line(self, group: str | None, name: str, params: VCardParameters, value: str) -> str:
        parts = [f"{group}.{name}" if group else name]
        for pname, values in params.as_multimap().items():
            encoded = [self._parameter_value(v) for v in values]
            if self.version is VCardVersion.V2_1:
                parts.extend(f"{pname}={v}" for v in encoded)
            else:
                parts.append(f"{pname}={','.join(encoded)}")
        return ";".join(parts) + ":" + value

    def _line(self, out: TextIO, line: str, fold: bool) -> None:
        if fold and self.settings.line_length:
            vobject.base.foldOneLine(out, line, self.settings.line_length)
        else:
            out.write(line)
            out.write("\r\n")


# ── Public API ─────────────────────────────────────────────────────────────────

def write_vcards(
    vcards: list[VCard],
    version: VCardVersion | None = None,
    index: ScribeIndex | None = None,
    settings: Settings | None = None,
) -> tuple[str, list[VCardWarning]]:
    """Write every record, returning the text and the writer's warnings."""
    writer = VCardWriter(version, index, settings)
    out = StringIO()
    for vcard in vcards:
        writer.write_to(vcard, out)
    return out.getvalue(), writer.warnings


def export_vcards(
    vcards: list[VCard],
    path: Path,
    target_version: str = "4.0",
    index: ScribeIndex | None = None,
    settings: Settings | None = None,
) -> int:
    """Write ``vcards`` to ``path``, sorted by FN for stable output.

    Returns the number of records written.
    """
    version = VCardVersion.find(target_version)
    if version is None:
        raise ValueError(f"unknown vCard version {target_version!r}")
    cards_sorted = sorted(vcards, key=lambda c: c.formatted_name or "")
    text, warnings = write_vcards(cards_sorted, version, index, settings)
    for warning in warnings:
        logger.debug("%s: %s", path.name, warning)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8", newline="")
    return len(cards_sorted)

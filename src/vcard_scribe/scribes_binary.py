from __future__ import annotations

import base64
import binascii
import mimetypes

from .elements import HCardElement, JCardValue, XCardElement
from .errors import CannotParseError, SkipMeError
from .model import BinaryValue
from .parameters import VCardParameters
from .scribe import ParseContext, Scribe, ValidationContext, WriteContext
from .scribes_text import escape_text
from .values import DEFAULT_MEDIA_TYPE, DataUri, unescape
from .versions import BINARY, CONTENT_ID, TEXT, URI, URL, VCardDataType, VCardVersion

# ── Media types ────────────────────────────────────────────────────────────────
#
# vCard 2.1/3.0 name the format with a TYPE parameter (TYPE=JPEG); 4.0 uses
# MEDIATYPE or the data URI. Values are kept as MIME types internally.

_TYPE_NAMES: dict[str, str] = {
    "image/jpeg": "JPEG",
    "image/gif": "GIF",
    "image/png": "PNG",
    "image/bmp": "BMP",
    "image/tiff": "TIFF",
    "image/svg+xml": "SVG",
    "audio/wav": "WAVE",
    "audio/x-wav": "WAVE",
    "audio/mpeg": "MP3",
    "audio/ogg": "OGG",
    "audio/aac": "AAC",
    "video/mpeg": "MPEG",
    "video/quicktime": "QTIME",
    "application/pgp-keys": "PGP",
    "application/x-x509-ca-cert": "X509",
    "application/pkcs10": "PKCS10",
}
_BY_TYPE_NAME = {name: mime for mime, name in reversed(_TYPE_NAMES.items())}
_BY_TYPE_NAME.update({"JPG": "image/jpeg", "WAV": "audio/wav", "X-WAV": "audio/wav", "MP4": "audio/mp4"})


def media_type_for(type_name: str) -> str:
    """``JPEG`` -> ``image/jpeg``. Unknown names go through :mod:`mimetypes`."""
    if "/" in type_name:
        return type_name.lower()
    found = _BY_TYPE_NAME.get(type_name.upper())
    if found:
        return found
    guessed, _ = mimetypes.guess_type(f"file.{type_name.lower()}")
    return guessed or type_name.lower()


def type_name_for(media_type: str) -> str:
    """``image/jpeg`` -> ``JPEG``, for the TYPE parameter of 2.1/3.0."""
    found = _TYPE_NAMES.get(media_type.lower())
    if found:
        return found
    ext = mimetypes.guess_extension(media_type)
    if ext:
        return ext.lstrip(".").upper()
    return media_type.rsplit("/", 1)[-1].upper()


def _b64decode(text: str) -> bytes:
    try:
        return base64.b64decode("".join(text.split()), validate=False)
    except binascii.Error as exc:
        raise CannotParseError(f"value is not valid base64: {exc}") from exc


# ── Scribe ─────────────────────────────────────────────────────────────────────

class BinaryScribe(Scribe):
    """PHOTO, LOGO, SOUND and KEY.

    Reading tries, in order: a ``data:`` URI, VALUE=uri/url, an ENCODING
    parameter, and finally a guess (``http...`` is a URL, anything else
    base64). Every guess is reported as a warning.
    """

    def __init__(self, property_name: str, text_allowed: bool = False):
        super().__init__(property_name)
        self.text_allowed = text_allowed

    def default_data_type(self, version: VCardVersion) -> VCardDataType | None:
        if version is VCardVersion.V2_1:
            return None
        return BINARY if version is VCardVersion.V3_0 else URI

    def _data_type(self, value: BinaryValue, version: VCardVersion) -> VCardDataType | None:
        if value.url is not None:
            return self.uri_type(version)
        if value.text is not None:
            return TEXT
        return self.default_data_type(version)

    # ── Parameters ─────────────────────────────────────────────────────────────

    def _prepare_parameters(self, value: BinaryValue, copy, version, vcard) -> None:
        copy.remove_all("ENCODING")
        copy.remove_all("MEDIATYPE")
        if version is VCardVersion.V4_0:
            if value.content_type and value.data is None:
                copy.media_type = value.content_type
            return

        copy.remove_types()
        if value.content_type:
            copy.add_type(type_name_for(value.content_type))
        if value.data is not None:
            copy.encoding = "BASE64" if version is VCardVersion.V2_1 else "b"

    def _content_type(self, parameters: VCardParameters, version: VCardVersion) -> str | None:
        media_type = parameters.remove_all("MEDIATYPE")
        if media_type:
            return media_type[0]
        if version is VCardVersion.V4_0:
            return None
        types = parameters.remove_types()
        return media_type_for(types[0]) if types else None

    # ── Text ───────────────────────────────────────────────────────────────────

    def _write_text(self, value: BinaryValue, context: WriteContext) -> str:
        if value.url is not None:
            return value.url
        if value.data is not None:
            if context.version is VCardVersion.V4_0:
                return str(DataUri(value.content_type or DEFAULT_MEDIA_TYPE, value.data))
            return base64.b64encode(value.data).decode("ascii")
        if value.text is not None:
            return escape_text(value.text, context.version)
        raise SkipMeError(f"{self.property_name} has no URL, data or text")

    def _parse_text(self, value, data_type, parameters, context: ParseContext) -> BinaryValue:
        value = unescape(value).strip()
        content_type = self._content_type(parameters, context.version)
        encoding = parameters.remove_all("ENCODING")

        if value.lower().startswith("data:"):
            try:
                uri = DataUri.parse(value)
            except ValueError as exc:
                raise CannotParseError(str(exc)) from exc
            return BinaryValue(data=uri.data, content_type=uri.media_type or content_type)

        if data_type in (URI, URL, CONTENT_ID):
            return BinaryValue(url=value, content_type=content_type)

        if data_type is TEXT and self.text_allowed:
            return BinaryValue(text=value, content_type=content_type)

        if encoding:
            if encoding[0].lower() not in ("b", "base64"):
                context.warn(f"Unrecognised ENCODING={encoding[0]}; decoding the value as base64.")
            return BinaryValue(data=_b64decode(value), content_type=content_type)

        if value.lower().startswith("http"):
            context.warn("No VALUE or ENCODING parameter; the value looks like a URL.")
            return BinaryValue(url=value, content_type=content_type)

        context.warn("No VALUE or ENCODING parameter; decoding the value as base64.")
        return BinaryValue(data=_b64decode(value), content_type=content_type)

    # ── xCard / jCard ──────────────────────────────────────────────────────────

    def _write_xml(self, value: BinaryValue, element: XCardElement, context: WriteContext) -> None:
        text = self._write_text(value, context)
        element.append(TEXT if value.text is not None else URI, unescape(text))

    def _write_json(self, value: BinaryValue, context: WriteContext) -> JCardValue:
        text = self._write_text(value, context)
        return JCardValue.single(value.text if value.text is not None else text)

    # ── hCard ──────────────────────────────────────────────────────────────────

    def _parse_html(self, element: HCardElement, parameters, context) -> BinaryValue:
        tag = element.tag_name
        if tag == "img":
            src = element.abs_url("src")
        elif tag == "object":
            src = element.abs_url("data")
        elif tag == "a":
            src = element.abs_url("href")
        else:
            src = element.value()
        if not src:
            raise CannotParseError(f"no image, object or link found for {self.property_name}")

        content_type = element.attr("type") or None
        if src.lower().startswith("data:"):
            try:
                uri = DataUri.parse(src)
            except ValueError as exc:
                raise CannotParseError(str(exc)) from exc
            return BinaryValue(data=uri.data, content_type=uri.media_type or content_type)
        if content_type is None:
            content_type, _ = mimetypes.guess_type(src)
        return BinaryValue(url=src, content_type=content_type)

    def _validate(self, value: BinaryValue, parameters, context: ValidationContext) -> list[str]:
        if value.is_empty():
            return ["Property has no URL, data or text."]
        if value.text is not None and not self.text_allowed:
            return [f"{self.property_name} cannot hold a text value."]
        return []


def binary_scribes() -> list[Scribe]:
    return [
        BinaryScribe("PHOTO"),
        BinaryScribe("LOGO"),
        BinaryScribe("SOUND"),
        BinaryScribe("KEY", text_allowed=True),
    ]

from __future__ import annotations

import logging

import phonenumbers
from phonenumbers import NumberParseException

from .model import Address, Telephone, VCard

logger = logging.getLogger(__name__)

# ── Phone formatting ───────────────────────────────────────────────────────────


def _format_spaced_e164(num: phonenumbers.PhoneNumber) -> str:
    """Format a parsed number as pretty international, e.g. +44 7980 220 220."""
    intl = phonenumbers.format_number(num, phonenumbers.PhoneNumberFormat.INTERNATIONAL)
    out = intl.replace("-", " ").replace("(", "").replace(")", "")
    out = " ".join(out.split())

    # GB mobile tweak: +44 7xxx xxx xxx
    region = phonenumbers.region_code_for_number(num)
    nsn = phonenumbers.national_significant_number(num)
    if region == "GB" and len(nsn) == 10 and nsn.startswith("7"):
        return f"+44 {nsn[0:4]} {nsn[4:7]} {nsn[7:]}"

    return out


def _parse_valid(text: str, region: str) -> phonenumbers.PhoneNumber | None:
    try:
        parsed = phonenumbers.parse(text, region)
    except NumberParseException:
        return None
    if phonenumbers.is_possible_number(parsed) and phonenumbers.is_valid_number(parsed):
        return parsed
    return None


def format_phone(text: str, region: str = "GB") -> str:
    """Pretty international form of ``text``; unparseable numbers come back unchanged."""
    parsed = _parse_valid(text, region)
    return _format_spaced_e164(parsed) if parsed is not None else text


def tel_uri_from_text(text: str, region: str = "GB") -> str | None:
    """An RFC 3966 ``tel:`` URI in E.164 form, or None when ``text`` is not a valid number."""
    parsed = _parse_valid(text, region)
    if parsed is None:
        return None
    uri = "tel:" + phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.E164)
    if parsed.extension:
        uri += f";ext={parsed.extension}"
    return uri


# ── Region inference ───────────────────────────────────────────────────────────

_COUNTRY_NAMES = {
    "United Kingdom": "GB", "UK": "GB", "Great Britain": "GB",
    "England": "GB", "Scotland": "GB", "Wales": "GB",
    "Northern Ireland": "GB", "United States": "US", "USA": "US",
    "U.S.A.": "US", "Australia": "AU", "Canada": "CA", "Ireland": "IE",
    "France": "FR", "Germany": "DE", "Spain": "ES",
    "Italy": "IT", "Netherlands": "NL", "Sweden": "SE",
}


def region_for_vcard(vcard: VCard, default_region: str = "GB") -> str:
    """Guess a dialling region from the first ADR with a recognisable country."""
    for adr in vcard.values("ADR"):
        if not isinstance(adr, Address) or not adr.country:
            continue
        c = adr.country.strip()
        if len(c) == 2 and c.isalpha():
            return c.upper()
        if c in _COUNTRY_NAMES:
            return _COUNTRY_NAMES[c]
    return default_region


def telephones_to_uris(vcard: VCard, default_region: str = "GB", infer_from_adr: bool = True) -> int:
    """Turn text TEL values into ``tel:`` URIs where the number is valid.

    Numbers that cannot be parsed are left as text. Returns how many
    values were converted.
    """
    region = region_for_vcard(vcard, default_region) if infer_from_adr else default_region
    converted = 0
    for prop in vcard.properties_named("TEL"):
        value = prop.value
        if not isinstance(value, Telephone) or value.text is None:
            continue
        uri = tel_uri_from_text(value.text, region)
        if uri is None:
            logger.debug("leaving TEL %r as text", value.text)
            continue
        prop.value = Telephone(uri=uri)
        converted += 1
    return converted

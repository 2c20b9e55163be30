from __future__ import annotations

import logging

from .errors import ValidationWarnings
from .index import ScribeIndex, default_index
from .model import VCard
from .scribe import ValidationContext
from .versions import VCardVersion

logger = logging.getLogger(__name__)

_REQUIRED: dict[VCardVersion, tuple[str, ...]] = {
    VCardVersion.V2_1: ("N",),
    VCardVersion.V3_0: ("FN", "N"),
    VCardVersion.V4_0: ("FN",),
}


def validate(
    vcard: VCard,
    version: VCardVersion | None = None,
    index: ScribeIndex | None = None,
    depth: int = 0,
    max_depth: int = 10,
) -> ValidationWarnings:
    """Check ``vcard`` against the rules of ``version`` (default: its own).

    Returns advisory warnings; nothing here raises.
    """
    version = version or vcard.version
    index = index or default_index()
    warnings = ValidationWarnings()

    for name in _REQUIRED[version]:
        if vcard.first(name) is None:
            warnings.add(name, f"{name} is required in vCard {version}.")

    context = ValidationContext(version, vcard, index, depth=depth, max_depth=max_depth)
    for prop in vcard.properties:
        scribe = index.scribe_for_property(prop)
        warnings.extend(prop.name, scribe.validate(prop.value, prop.parameters, context))

    if version is VCardVersion.V4_0 and vcard.orphaned_labels:
        warnings.add("LABEL", f"{len(vcard.orphaned_labels)} label(s) match no address; vCard 4.0 has no LABEL property.")

    logger.debug("validated vCard (%s): %d warnings", version, len(warnings))
    return warnings

"""Phone number normalization to E.164.

Every function here is pure: no I/O, no clock. A number that already
carries ``+`` and a country code ignores the region hint.
"""

import logging

import phonenumbers
from phonenumbers import NumberParseException, PhoneNumberFormat

from cellsync.core.config import settings

logger = logging.getLogger(__name__)

# Regions that give no national dialing context: unknown ("ZZ") and
# non-geographic numbers such as +800 ("001")
_NO_REGION = frozenset({phonenumbers.UNKNOWN_REGION, phonenumbers.REGION_CODE_FOR_NON_GEO_ENTITY})


def normalize_phone(raw: str | None, default_country: str | None = None) -> str | None:
    """Convert a raw phone string to canonical E.164.

    Args:
        raw: Phone string as found in a CRM field or a legacy row.
        default_country: ISO region used when ``raw`` has no country code.

    Returns:
        The E.164 string (e.g. ``"+15149791879"``), or None when the input
        is empty, unparseable or not a valid number. Never raises.
    """
    if not isinstance(raw, str) or not raw.strip():
        return None

    region = default_country.upper() if default_country else None
    try:
        parsed = phonenumbers.parse(raw.strip(), region)
    except NumberParseException:
        return None

    if not phonenumbers.is_valid_number(parsed):
        return None
    return phonenumbers.format_number(parsed, PhoneNumberFormat.E164)


def region_of(phone: str | None) -> str | None:
    """Return the ISO region of a phone number written with a country code.

    Returns None when the number is missing or unparseable, and for
    numbers with no single geographic region.
    """
    if not isinstance(phone, str) or not phone.strip():
        return None
    try:
        parsed = phonenumbers.parse(phone.strip(), None)
    except NumberParseException:
        return None

    region = phonenumbers.region_code_for_number(parsed)
    if not region or region in _NO_REGION:
        return None
    return region


def default_country_for_cell(cell_phone: str | None) -> str:
    """Region hint for parsing a cell's contacts: the region of its own number."""
    region = region_of(cell_phone)
    if region is None:
        if cell_phone:
            logger.debug("Cell number %s has no region, using %s", cell_phone, settings.DEFAULT_COUNTRY)
        return settings.DEFAULT_COUNTRY
    return region

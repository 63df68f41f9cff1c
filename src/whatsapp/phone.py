"""Contact normalization into WhatsApp chat addresses.

Domestic mobile numbers may or may not carry the extra leading ``9`` after
the area code, and the gateway only accepts the form registered with the
account. For such numbers both forms are produced and tried.
"""

from __future__ import annotations

import logging
import re

logger = logging.getLogger(__name__)

CHAT_SUFFIX = "@c.us"
MOBILE_PREFIX = "9"
AREA_CODE_LEN = 2
SUBSCRIBER_LEN = 8

_NON_DIGITS = re.compile(r"\D")


def clean_digits(contact: str) -> str:
    """Strip everything but digits (spaces, dashes, parentheses, ``+``)."""
    return _NON_DIGITS.sub("", contact or "")


def _address(digits: str) -> str:
    return f"{digits}{CHAT_SUFFIX}"


def _with_and_without_prefix(country_code: str, area: str, subscriber: str) -> list[str]:
    """Both forms, extra-digit form first."""
    base = country_code + area
    return [_address(base + MOBILE_PREFIX + subscriber), _address(base + subscriber)]


def candidate_addresses(contact: str, country_code: str = "55") -> list[str]:
    """Return the chat addresses to try for *contact*.

    - already an address (contains ``@``) → itself;
    - domestic number (area code + 8 digits, optionally with the extra
      mobile digit), with or without the country code → two candidates,
      with and without the extra digit;
    - 11-digit domestic number without the mobile digit → the country
      code prepended, as the single candidate;
    - anything else → its digits as the single candidate.

    Returns an empty list when *contact* holds no digits.
    """
    if "@" in (contact or ""):
        return [contact.strip()]

    digits = clean_digits(contact)
    if not digits:
        logger.warning("Contact has no digits after cleaning: %r", contact)
        return []

    national = digits
    if digits.startswith(country_code) and len(digits) in (
        len(country_code) + AREA_CODE_LEN + SUBSCRIBER_LEN,
        len(country_code) + AREA_CODE_LEN + SUBSCRIBER_LEN + 1,
    ):
        national = digits[len(country_code):]

    area, rest = national[:AREA_CODE_LEN], national[AREA_CODE_LEN:]

    if len(rest) == SUBSCRIBER_LEN + 1 and rest.startswith(MOBILE_PREFIX):
        candidates = _with_and_without_prefix(country_code, area, rest[1:])
    elif len(rest) == SUBSCRIBER_LEN:
        candidates = _with_and_without_prefix(country_code, area, rest)
    elif len(rest) == SUBSCRIBER_LEN + 1:
        candidates = [_address(country_code + national)]
    else:
        logger.warning("Contact with unexpected format: %d digits", len(digits))
        candidates = [_address(digits)]

    logger.debug("Contact %r -> %s", contact, candidates)
    return candidates

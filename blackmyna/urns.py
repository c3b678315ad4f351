"""
Addressable identities (URNs) for SMS contacts.

Numbers arriving from the vendor are often in local format, so they are
resolved against the channel's country with libphonenumber before being
turned into a `tel:` URN. Normalization is deterministic: the same raw
number and country always produce the same URN.
"""

import re
from dataclasses import dataclass
from typing import Optional

import phonenumbers


TEL_SCHEME = "tel"

# numbers this long may carry their own country code when parsing against the channel fails
MIN_INTERNATIONAL_DIGITS = 11

_FORMATTING = re.compile(r"[\s\-().]")
_LETTERS = re.compile(r"[a-zA-Z]")


@dataclass(frozen=True)
class URN:
    scheme: str
    path: str

    def __str__(self) -> str:
        return f"{self.scheme}:{self.path}"


def _parse(number: str, region: Optional[str]) -> Optional[phonenumbers.PhoneNumber]:
    try:
        return phonenumbers.parse(number, region)
    except phonenumbers.NumberParseException:
        return None


def _e164(parsed: phonenumbers.PhoneNumber) -> str:
    return phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.E164)


def normalize_number(number: str, country: str) -> str:
    """
    Resolve a raw phone number to its E.164 form for `country`.

    A number that is not valid for the channel's country is retried as an
    international number when it is long enough to carry a country code.
    Sender ids containing letters, short codes and anything else that
    cannot be resolved are returned with formatting removed.
    """
    cleaned = _FORMATTING.sub("", number.strip())
    if not cleaned or _LETTERS.search(cleaned):
        return cleaned

    digits = re.sub(r"\D", "", cleaned)
    region = (country or "").upper() or None

    local = _parse(cleaned, region)
    if local is not None and phonenumbers.is_valid_number(local):
        return _e164(local)

    international = None
    if len(digits) >= MIN_INTERNATIONAL_DIGITS:
        international = _parse("+" + digits, None)
        if international is not None and phonenumbers.is_valid_number(international):
            return _e164(international)

    # unallocated ranges still resolve when their length fits the numbering plan
    for parsed in (local, international):
        if parsed is not None and phonenumbers.is_possible_number(parsed):
            return _e164(parsed)

    return cleaned


def new_tel_urn_for_country(number: str, country: str) -> URN:
    """Build a `tel:` URN for a number reported by a channel in `country`."""
    return URN(scheme=TEL_SCHEME, path=normalize_number(number, country))

"""
Phone number normalization to E.164.
"""

import re

_E164 = re.compile(r"^\+[1-9]\d{1,14}$")
_NON_DIGITS = re.compile(r"\D")


def normalize_phone_number(raw: str, default_country_code: str = "1") -> str:
    """
    Canonicalize a raw phone string to a dialable E.164 number.

    - 11 digits starting with 1: already carries the US country code
    - 10 digits: national number, prefixed with ``default_country_code``
    - more than 10 digits: assumed to include a country code

    Raises:
        ValueError: if the input is empty or cannot be interpreted
    """
    if not raw or not raw.strip():
        raise ValueError("Phone number is required")

    digits = _NON_DIGITS.sub("", raw)
    if not digits:
        raise ValueError(f"Phone number contains no digits: {raw!r}")

    if len(digits) == 11 and digits.startswith("1"):
        return f"+{digits}"
    if len(digits) == 10:
        return f"+{default_country_code}{digits}"
    if len(digits) > 10:
        return f"+{digits}"

    raise ValueError(f"Invalid phone number format: {raw!r}")


def is_valid_e164(value: str) -> bool:
    return bool(_E164.match(value))


def fax_digits(raw: str) -> str:
    """Digits-only form used by fax platforms, with the US code added."""
    return normalize_phone_number(raw).lstrip("+")

"""Phone, postal code and address-line normalisation.

Pure string functions; the carrier rejects payloads that fail any of these
shapes, so callers normalise before building a payload.
"""

import re

MIN_ADDRESS_LENGTH = 3
ADDRESS_PLACEHOLDER = "Address not provided"

_NON_DIGITS = re.compile(r"\D+")
_SIX_DIGITS = re.compile(r"^\d{6}$")


def digits_only(value: object) -> str:
    return _NON_DIGITS.sub("", "" if value is None else str(value))


def normalize_phone10(value: object) -> str:
    """Return the last 10 digits, dropping a leading ``91`` country code.

    The ``91`` prefix is only removed when the digit string is exactly 12 long.
    Shorter input is returned as-is; it fails validation downstream.

    >>> normalize_phone10("+91 98765 43210")
    '9876543210'
    """
    digits = digits_only(value)
    if digits.startswith("91") and len(digits) == 12:
        digits = digits[2:]
    return digits[-10:]


def is_six_digit_postal(value: object) -> bool:
    return bool(_SIX_DIGITS.match("" if value is None else str(value)))


def address_length(line_1: str | None, line_2: str | None) -> int:
    return len(((line_1 or "") + (line_2 or "")).strip())


def is_sufficient(line_1: str | None, line_2: str | None) -> bool:
    return address_length(line_1, line_2) >= MIN_ADDRESS_LENGTH


def ensure_minimum_address(
    line_1: str | None, line_2: str | None, fallback: str | None = None
) -> tuple[str, str]:
    """Return ``(line_1, line_2)`` whose concatenation is at least 3 characters.

    Sufficient input passes through trimmed, with line 2 moved up when line 1
    is blank. Otherwise line 1 becomes the first non-empty of ``line_1``,
    ``line_2``, ``fallback`` and line 2 is cleared; if even that is too short
    the placeholder is used.
    """
    line_1 = (line_1 or "").strip()
    line_2 = (line_2 or "").strip()
    if is_sufficient(line_1, line_2):
        return (line_1, line_2) if line_1 else (line_2, "")

    candidate = next(
        (c for c in (line_1, line_2, (fallback or "").strip()) if c), ""
    )
    if len(candidate) < MIN_ADDRESS_LENGTH:
        candidate = ADDRESS_PLACEHOLDER
    return candidate, ""

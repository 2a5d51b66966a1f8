"""
Shared validators for input sanitization.

Validators raise ValueError; services turn that into ValidationError with
the offending field attached.
"""

import re

from shared.config.constants import Limits

_NON_DIGITS = re.compile(r"\D")


def validate_otp(otp: str | None, length: int = 6) -> str:
    """
    Validate a join code: exactly `length` ASCII digits.

    Raises:
        ValueError: If the code is missing or malformed
    """
    if otp is None:
        raise ValueError("Join code is required")
    otp = otp.strip()
    if len(otp) != length or not otp.isascii() or not otp.isdigit():
        raise ValueError(f"Join code must be exactly {length} digits")
    return otp


def validate_display_name(name: str | None) -> str:
    """Trim and bound a customer display name."""
    name = (name or "").strip()
    if len(name) < Limits.MIN_DISPLAY_NAME_LENGTH:
        raise ValueError("Name is required")
    if len(name) > Limits.MAX_DISPLAY_NAME_LENGTH:
        raise ValueError(f"Name must be at most {Limits.MAX_DISPLAY_NAME_LENGTH} characters")
    return name


def normalize_contact(contact: str | None) -> str:
    """
    Normalize a phone number to bare digits.

    "+91 98765-43210" -> "919876543210". The normalized form is the
    idempotency key for joins, so two spellings of one number collide.

    Raises:
        ValueError: If fewer than 10 or more than 15 digits remain
    """
    digits = _NON_DIGITS.sub("", contact or "")
    if not Limits.MIN_CONTACT_DIGITS <= len(digits) <= Limits.MAX_CONTACT_DIGITS:
        raise ValueError(
            f"Phone number must have between {Limits.MIN_CONTACT_DIGITS} "
            f"and {Limits.MAX_CONTACT_DIGITS} digits"
        )
    return digits


def validate_quantity(
    quantity: int,
    min_val: int = Limits.MIN_QUANTITY,
    max_val: int = Limits.MAX_QUANTITY,
) -> int:
    """
    Validate quantity is within acceptable range.

    Raises:
        ValueError: If quantity is outside allowed range
    """
    if quantity < min_val:
        raise ValueError(f"Minimum quantity is {min_val}")
    if quantity > max_val:
        raise ValueError(f"Maximum quantity is {max_val}")
    return quantity


def validate_price_cents(price_cents: int) -> int:
    """Prices are integer minor units within Limits."""
    if not isinstance(price_cents, int) or isinstance(price_cents, bool):
        raise ValueError("Price must be an integer amount in minor units")
    if not Limits.MIN_PRICE_CENTS <= price_cents <= Limits.MAX_PRICE_CENTS:
        raise ValueError("Price is out of range")
    return price_cents

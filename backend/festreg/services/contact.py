"""
Contact-info helpers used when composing provider bookings.
"""

import re
import secrets
import string
from typing import Optional

NATIONAL_CALLING_CODE = "91"
ROOM_ID_LENGTH = 10

_SEPARATORS = re.compile(r"[\s\-()]")


def normalize_phone(raw: str) -> str:
    """
    Normalize a phone number to an E.164-like form.

    - already ``+``-prefixed numbers pass through unchanged
    - bare 10-digit numbers get the national prefix: ``"+91 9876543210"``
    - 12-digit numbers starting with the calling code only gain a ``+``
    - anything else is returned trimmed
    """
    phone = raw.strip()
    if not phone or phone.startswith("+"):
        return phone

    digits = _SEPARATORS.sub("", phone)
    if not digits.isdigit():
        return phone
    if len(digits) == 10:
        return f"+{NATIONAL_CALLING_CODE} {digits}"
    if len(digits) == 12 and digits.startswith(NATIONAL_CALLING_CODE):
        return f"+{digits}"
    return phone


def split_name(full_name: str) -> tuple[str, str]:
    """Split on the first space into (first, last); last may be empty."""
    first, _, last = full_name.strip().partition(" ")
    return first, last.strip()


def is_bit_email(email: Optional[str], pattern: str) -> bool:
    if not email:
        return False
    return re.fullmatch(pattern, email.strip().lower()) is not None


def generate_room_id() -> str:
    return "".join(secrets.choice(string.ascii_uppercase) for _ in range(ROOM_ID_LENGTH))

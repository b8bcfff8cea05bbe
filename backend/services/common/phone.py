"""
Phone number normalization for masjid contact details
"""
from typing import Optional
import phonenumbers
from phonenumbers import NumberParseException

from .logger import get_logger

logger = get_logger("phone")


def normalize_phone(phone: Optional[str], region: str = "US") -> Optional[str]:
    """
    Normalize and validate a phone number to E.164 (+13035551234)
    - Uses Google's phonenumbers library for robust validation
    - Numbers without a +country prefix are parsed for ``region``
    - Returns None if empty or invalid
    """
    if not phone or not phone.strip():
        return None

    try:
        parsed = phonenumbers.parse(phone, region)

        if not phonenumbers.is_valid_number(parsed):
            logger.warning(f"Invalid phone number: {phone}")
            return None

        return phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.E164)

    except NumberParseException as e:
        logger.warning(f"Failed to parse phone number '{phone}': {e}")
        return None

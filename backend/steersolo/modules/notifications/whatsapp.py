"""
WhatsApp click-to-chat links.

Builds https://wa.me and whatsapp://send URLs with a prefilled message.
Nothing is sent; clients open the links.
"""

import re
from urllib.parse import quote

from steersolo.core.config import settings
from steersolo.core.exceptions import InvalidRequestError

WEB_BASE = "https://wa.me"
APP_BASE = "whatsapp://send"


def normalize_phone(phone_number: str, country_code: str | None = None) -> str:
    """
    Normalize a phone number to international digits with a leading '+'.

    Numbers without '+' get the default country code unless they already
    start with it; a local trunk prefix (leading zeros) is dropped.

    Raises:
        ValueError: If no digits remain
    """
    code = country_code or settings.whatsapp_default_country_code
    cleaned = re.sub(r"[^\d+]", "", phone_number or "")
    # Only a leading '+' is meaningful
    cleaned = cleaned[:1] + cleaned[1:].replace("+", "")

    if not cleaned.strip("+"):
        raise ValueError("WhatsApp number not provided")

    if not cleaned.startswith("+"):
        if cleaned.startswith(code):
            cleaned = f"+{cleaned}"
        else:
            cleaned = f"+{code}{cleaned.lstrip('0')}"

    return cleaned


def check_phone(phone_number: str | None) -> str | None:
    """
    Validate a number before it is stored. Returns it as typed.

    Raises:
        ValueError: If it cannot be turned into a WhatsApp number
    """
    if phone_number is None:
        return None
    normalize_phone(phone_number)
    return phone_number.strip()


def _link_digits(phone_number: str) -> str:
    try:
        return normalize_phone(phone_number).lstrip("+")
    except ValueError as e:
        raise InvalidRequestError(f"Invalid WhatsApp number: {e}")


def build_chat_link(phone_number: str, message: str = "") -> str:
    """Web click-to-chat link (works on desktop and mobile)."""
    digits = _link_digits(phone_number)
    if not message:
        return f"{WEB_BASE}/{digits}"
    return f"{WEB_BASE}/{digits}?text={quote(message)}"


def build_app_link(phone_number: str, message: str = "") -> str:
    """Deep link that opens the WhatsApp app directly."""
    digits = _link_digits(phone_number)
    return f"{APP_BASE}?phone={digits}&text={quote(message)}"


def shop_inquiry_message(shop_name: str) -> str:
    return (
        f"👋 Hello {shop_name}!\n\n"
        "I found your shop on SteerSolo and would like to make an inquiry.\n\n"
        "Please let me know more about your products/services."
    )


def product_inquiry_message(shop_name: str, product_name: str) -> str:
    return (
        f"👋 Hello {shop_name}!\n\n"
        f'I\'m interested in "{product_name}" from your SteerSolo shop.\n\n'
        "Could you please provide more details about availability and pricing?"
    )

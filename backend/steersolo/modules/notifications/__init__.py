"""
Notifications module.

Provides:
- Resend order emails
- WhatsApp click-to-chat links
"""

from steersolo.modules.notifications.email import EmailService, get_email_service
from steersolo.modules.notifications.whatsapp import (
    build_app_link,
    build_chat_link,
    normalize_phone,
    product_inquiry_message,
    shop_inquiry_message,
)

__all__ = [
    "EmailService",
    "get_email_service",
    "build_app_link",
    "build_chat_link",
    "normalize_phone",
    "product_inquiry_message",
    "shop_inquiry_message",
]

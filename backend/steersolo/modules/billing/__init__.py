"""
Billing Module - Paystack integration.

Features:
- Paystack API client and webhook signatures
- Subscriptions, trials and plan limits
- Shop revenue and payouts

Order payments live in steersolo.modules.billing.payments.
"""

from steersolo.modules.billing.paystack import PaystackClient, get_paystack_client
from steersolo.modules.billing.payouts import PayoutService
from steersolo.modules.billing.subscriptions import SubscriptionService

__all__ = [
    "PaystackClient",
    "get_paystack_client",
    "PayoutService",
    "SubscriptionService",
]

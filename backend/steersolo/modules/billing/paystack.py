"""
Paystack API Client.

Wraps the Paystack transaction endpoints used by the platform:
- Transaction initialize (hosted checkout)
- Transaction verify
- Subaccounts (split settlement to a shop bank account)
- Bank list
- Webhook signature verification (HMAC-SHA512)

Paystack Documentation:
https://paystack.com/docs/api/transaction/

Security Note:
Webhooks MUST be verified with the x-paystack-signature header
before processing. Never trust unverified payloads.
"""

import hashlib
import hmac
import json
from decimal import Decimal
from typing import Any

import httpx
from loguru import logger
from pydantic import BaseModel, Field

from steersolo.core.config import settings
from steersolo.core.exceptions import InvalidRequestError, PaymentProviderError


class PaystackEvent(BaseModel):
    """Paystack webhook payload structure."""

    event: str
    data: dict[str, Any] = Field(default_factory=dict)

    @property
    def metadata(self) -> dict[str, Any]:
        metadata = self.data.get("metadata") or {}
        # Paystack echoes metadata back as a JSON string for some integrations
        if isinstance(metadata, str):
            try:
                metadata = json.loads(metadata)
            except json.JSONDecodeError:
                return {}
        return metadata if isinstance(metadata, dict) else {}

    @property
    def reference(self) -> str | None:
        return self.data.get("reference")


class PaystackClient:
    """
    Async client for the Paystack REST API.

    Usage:
        paystack = PaystackClient()
        checkout = await paystack.initialize_transaction(
            email="buyer@example.com", amount_kobo=500000, reference="ORDER_1_1700000000000"
        )
        redirect_to = checkout["authorization_url"]
    """

    def __init__(
        self,
        secret_key: str | None = None,
        base_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize Paystack client.

        Args:
            secret_key: Paystack secret key (or from env)
            base_url: API base URL (or from env)
            transport: Custom httpx transport, used by tests
        """
        self.secret_key = secret_key if secret_key is not None else settings.paystack_secret_key
        self.base_url = base_url or settings.paystack_base_url
        self.timeout = settings.paystack_timeout
        self._transport = transport

        if not self.secret_key:
            logger.warning("PAYSTACK_SECRET_KEY not configured")

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers={
                "Authorization": f"Bearer {self.secret_key}",
                "Content-Type": "application/json",
            },
            timeout=self.timeout,
            transport=self._transport,
        )

    async def _request(
        self,
        method: str,
        path: str,
        payload: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """
        Call the API and return the `data` block.

        Raises:
            PaymentProviderError: Not configured, HTTP failure or status=false
        """
        if not self.secret_key:
            raise PaymentProviderError("Payment service not configured")

        try:
            async with self._client() as client:
                response = await client.request(method, path, json=payload, params=params)
                response.raise_for_status()
                result = response.json()
        except httpx.HTTPStatusError as e:
            message = _error_message(e.response)
            logger.error(f"Paystack HTTP error {e.response.status_code} on {path}: {message}")
            raise PaymentProviderError(message or "Payment provider request failed") from e
        except httpx.RequestError as e:
            logger.error(f"Paystack request error on {path}: {e}")
            raise PaymentProviderError("Payment provider unreachable") from e

        if not result.get("status"):
            logger.error(f"Paystack API error on {path}: {result}")
            raise PaymentProviderError(result.get("message") or "Payment provider error")

        return result.get("data") or {}

    async def initialize_transaction(
        self,
        email: str,
        amount_kobo: int,
        reference: str | None = None,
        callback_url: str | None = None,
        metadata: dict[str, Any] | None = None,
        subaccount: str | None = None,
    ) -> dict[str, Any]:
        """
        Start a hosted checkout.

        Args:
            email: Payer email
            amount_kobo: Amount in kobo
            reference: Unique transaction reference
            callback_url: Where Paystack redirects after payment
            metadata: Echoed back on verify and in webhooks
            subaccount: Split the payment to this subaccount (it bears the fees)

        Returns:
            {authorization_url, access_code, reference}
        """
        if not email:
            raise InvalidRequestError("Email is required for payment")
        if amount_kobo <= 0:
            raise InvalidRequestError("Payment amount must be positive")

        payload: dict[str, Any] = {
            "email": email,
            "amount": amount_kobo,
            "currency": settings.currency,
        }
        if reference:
            payload["reference"] = reference
        if callback_url:
            payload["callback_url"] = callback_url
        if metadata:
            payload["metadata"] = metadata
        if subaccount:
            payload["subaccount"] = subaccount
            payload["bearer"] = "subaccount"

        data = await self._request("POST", "/transaction/initialize", payload)
        logger.info(f"Paystack transaction initialized: {data.get('reference', reference)}")
        return data

    async def verify_transaction(self, reference: str) -> dict[str, Any]:
        """
        Verify a transaction by reference.

        Returns:
            Transaction data (status, amount in kobo, metadata, customer...)
        """
        if not reference:
            raise InvalidRequestError("Payment reference is required")
        data = await self._request("GET", f"/transaction/verify/{reference}")
        logger.info(f"Paystack transaction {reference} verified: {data.get('status')}")
        return data

    async def create_subaccount(
        self,
        business_name: str,
        bank_code: str,
        account_number: str,
        percentage_charge: Decimal | None = None,
        contact_email: str | None = None,
    ) -> dict[str, Any]:
        """
        Register a settlement bank account for split payments.

        Args:
            business_name: Name shown on the subaccount
            bank_code: Paystack bank code (see list_banks)
            account_number: 10-digit NUBAN account number
            percentage_charge: Platform commission in percent
            contact_email: Primary contact for the subaccount

        Returns:
            Subaccount data, including subaccount_code
        """
        if not business_name or not bank_code or not account_number:
            raise InvalidRequestError("Business name, bank and account number are required")

        charge = percentage_charge
        if charge is None:
            charge = settings.subaccount_percentage_charge
        payload: dict[str, Any] = {
            "business_name": business_name,
            "settlement_bank": bank_code,
            "account_number": account_number,
            "percentage_charge": float(charge),
        }
        if contact_email:
            payload["primary_contact_email"] = contact_email

        data = await self._request("POST", "/subaccount", payload)
        logger.info(f"Paystack subaccount created: {data.get('subaccount_code')}")
        return data

    async def list_banks(self, country: str | None = None) -> list[dict[str, Any]]:
        """Active banks Paystack can settle to, as {name, code, type}."""
        data = await self._request(
            "GET",
            "/bank",
            params={"country": country or settings.bank_country, "perPage": 100},
        )
        return [
            {"name": bank.get("name"), "code": bank.get("code"), "type": bank.get("type")}
            for bank in data or []
            if bank.get("active", True)
        ]

    def verify_signature(self, payload: bytes, signature: str | None) -> bool:
        """
        Verify webhook signature.

        Paystack signs the raw body with HMAC-SHA512 using the secret key
        and sends the hex digest in the x-paystack-signature header.
        """
        if not signature:
            logger.warning("Missing x-paystack-signature header")
            return False

        if not self.secret_key:
            logger.error("Paystack secret key not configured")
            return False

        expected = hmac.new(
            self.secret_key.encode(),
            payload,
            hashlib.sha512,
        ).hexdigest()

        is_valid = hmac.compare_digest(expected, signature)
        if not is_valid:
            logger.warning("Paystack webhook signature verification failed")
        return is_valid

    def parse_event(self, payload: bytes) -> PaystackEvent:
        """
        Parse webhook payload.

        Raises:
            ValueError: If payload is invalid JSON
        """
        try:
            return PaystackEvent(**json.loads(payload))
        except json.JSONDecodeError as e:
            logger.error(f"Invalid webhook JSON: {e}")
            raise ValueError("Invalid JSON payload") from e


def _error_message(response: httpx.Response) -> str | None:
    try:
        return response.json().get("message")
    except ValueError:
        return None


# Singleton instance
_paystack_client: PaystackClient | None = None


def get_paystack_client() -> PaystackClient:
    """Get or create Paystack client singleton."""
    global _paystack_client
    if _paystack_client is None:
        _paystack_client = PaystackClient()
    return _paystack_client

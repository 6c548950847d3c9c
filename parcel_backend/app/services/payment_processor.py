"""
Payment processor client.

Thin async client over the Stripe PaymentIntents REST API. One instance (and
one underlying httpx connection pool) lives for the whole process.
"""

import logging
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx

from parcel_backend.app.core.config import settings
from parcel_backend.app.core.exceptions import ExternalServiceError, ResourceNotFoundError

logger = logging.getLogger(__name__)

SUCCEEDED = "succeeded"


class StripePaymentProcessor:
    """Client for creating and retrieving payment intents."""

    def __init__(
        self,
        api_base: str,
        secret_key: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_base = api_base.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.api_base,
            headers={"Authorization": f"Bearer {secret_key}"},
            timeout=timeout,
            transport=transport,
        )

    async def create_intent(
        self,
        amount_minor_units: int,
        currency: str,
        metadata: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        """
        Create a card payment intent.

        Args:
            amount_minor_units: Amount in the currency's smallest unit (cents)
            currency: ISO currency code
            metadata: Extra key/value pairs stored on the intent

        Returns:
            dict with id, client_secret, status, amount and currency
        """
        form = {
            "amount": str(amount_minor_units),
            "currency": currency,
            "payment_method_types[]": "card",
        }
        for key, value in (metadata or {}).items():
            form[f"metadata[{key}]"] = str(value)

        data = await self._request("POST", "/payment_intents", data=form)
        logger.info("Created payment intent %s for %s %s", data.get("id"), amount_minor_units, currency)
        return _intent_view(data)

    async def retrieve_intent(self, intent_id: str) -> Dict[str, Any]:
        """Fetch the current state of a payment intent."""
        # The id is client-supplied; keep it a single path segment
        path = f"/payment_intents/{quote(intent_id, safe='')}"
        data = await self._request("GET", path, resource_id=intent_id)
        return _intent_view(data)

    async def aclose(self):
        await self._client.aclose()

    async def _request(self, method: str, path: str, resource_id: Optional[str] = None, **kwargs) -> Dict[str, Any]:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            logger.error("Payment processor unreachable: %s", exc)
            raise ExternalServiceError("payment_processor", "Payment processor unreachable") from exc

        if response.status_code == 404 and resource_id is not None:
            raise ResourceNotFoundError("Payment intent", resource_id)

        if response.status_code >= 400:
            logger.error(
                "Payment processor error: %s %s -> %s %s",
                method, path, response.status_code, response.text
            )
            raise ExternalServiceError("payment_processor", "Payment processor rejected the request")

        return response.json()


def _intent_view(data: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": data.get("id"),
        "client_secret": data.get("client_secret"),
        "status": data.get("status"),
        "amount": data.get("amount"),
        "currency": data.get("currency"),
    }


def build_payment_processor() -> StripePaymentProcessor:
    """Build the processor client from application settings."""
    return StripePaymentProcessor(
        api_base=settings.payment_api_base,
        secret_key=settings.payment_secret_key,
        timeout=settings.payment_timeout_seconds,
    )

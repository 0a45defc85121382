"""
Stripe payment-intent client.

Talks to the Stripe REST API over ``httpx``.  The secret key is a
constructor argument of each client rather than process-wide state, so
several clients (e.g. test and live keys) can coexist.
"""

from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

import httpx

from rideshare.domain.errors import PaymentError
from rideshare.domain.ports import PaymentGateway

logger = logging.getLogger(__name__)


def to_minor_units(amount: Decimal) -> int:
    """Dollars -> cents, rounded half-up."""
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class StripePaymentClient(PaymentGateway):
    def __init__(
        self,
        api_key: str,
        *,
        currency: str = "usd",
        base_url: str = "https://api.stripe.com",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not api_key:
            raise ValueError("Stripe API key is required")
        self.currency = currency
        self._client = httpx.AsyncClient(
            base_url=base_url,
            auth=(api_key, ""),
            timeout=timeout,
            transport=transport,
        )

    async def create_payment_intent(
        self, amount: Decimal, customer_id: Optional[str]
    ) -> str:
        data = {
            "amount": str(to_minor_units(amount)),
            "currency": self.currency,
            "description": "Ride payment",
            "automatic_payment_methods[enabled]": "true",
        }
        if customer_id:
            data["customer"] = customer_id

        try:
            response = await self._client.post("/v1/payment_intents", data=data)
        except httpx.HTTPError as exc:
            logger.warning("Stripe request failed: %s", exc)
            raise PaymentError(f"Error creating payment intent: {exc}") from exc

        if response.status_code >= 400:
            try:
                message = response.json()["error"]["message"]
            except (ValueError, KeyError, TypeError):
                message = response.text
            logger.warning(
                "Stripe rejected payment intent (%d): %s",
                response.status_code,
                message,
            )
            raise PaymentError(f"Error creating payment intent: {message}")

        return response.json()["id"]

    async def aclose(self) -> None:
        await self._client.aclose()

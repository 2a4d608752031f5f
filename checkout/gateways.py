"""
Payment provider gateways.

Each gateway wraps one provider behind the same two calls: ``create_intent``
for an order and ``capture`` of a provider reference. Credentials come from
Settings at construction time.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict

import httpx
import stripe

from checkout.config import Settings
from checkout.errors import ProviderError
from checkout.logging_config import get_logger
from checkout.models import PaymentMethod

logger = get_logger(__name__)


@dataclass(frozen=True)
class ProviderIntent:
    reference: str
    # what the storefront needs to finish payment with the provider
    client_handle: Dict[str, str] = field(default_factory=dict)


def to_minor_units(amount) -> int:
    """12.345 -> 1235, rounding half up."""
    cents = Decimal(str(amount)) * 100
    return int(cents.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class PaymentGateway(ABC):
    method: PaymentMethod
    # Payment column holding this provider's reference
    reference_column: str = "transaction_id"

    @abstractmethod
    def create_intent(self, order) -> ProviderIntent:
        ...

    @abstractmethod
    def capture(self, reference: str) -> dict:
        ...


class StripeGateway(PaymentGateway):
    method = PaymentMethod.STRIPE
    reference_column = "stripe_payment_intent_id"

    def __init__(self, api_key: str, currency: str = "usd"):
        self.api_key = api_key
        self.currency = currency

    def create_intent(self, order) -> ProviderIntent:
        try:
            intent = stripe.PaymentIntent.create(
                amount=to_minor_units(order.total_amount),
                currency=self.currency,
                metadata={"order_id": str(order.id)},
                api_key=self.api_key,
            )
        except stripe.StripeError as exc:
            logger.error(
                "Stripe payment intent creation error",
                extra={"order_id": order.id, "error": str(exc)}
            )
            raise ProviderError("Failed to create payment intent") from exc

        return ProviderIntent(reference=intent.id, client_handle={"clientSecret": intent.client_secret})

    def capture(self, reference: str) -> dict:
        # Card payments are confirmed client-side; capture only checks the outcome.
        try:
            intent = stripe.PaymentIntent.retrieve(reference, api_key=self.api_key)
        except stripe.StripeError as exc:
            logger.error(
                "Stripe payment intent retrieval error",
                extra={"payment_intent_id": reference, "error": str(exc)}
            )
            raise ProviderError("Failed to capture Stripe payment") from exc

        if intent.status != "succeeded":
            logger.warning(
                "Stripe payment intent not succeeded",
                extra={"payment_intent_id": reference, "intent_status": intent.status}
            )
            raise ProviderError("Failed to capture Stripe payment")

        return {"id": intent.id, "status": intent.status}


class PayPalGateway(PaymentGateway):
    method = PaymentMethod.PAYPAL

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        base_url: str,
        currency: str = "usd",
        timeout: float = 10.0,
        transport: httpx.BaseTransport = None,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.base_url = base_url
        self.currency = currency
        self.timeout = timeout
        self.transport = transport

    def _client(self) -> httpx.Client:
        return httpx.Client(base_url=self.base_url, timeout=self.timeout, transport=self.transport)

    def _auth_headers(self, client: httpx.Client) -> dict:
        response = client.post(
            "/v1/oauth2/token",
            data={"grant_type": "client_credentials"},
            auth=(self.client_id, self.client_secret),
        )
        response.raise_for_status()
        token = response.json()["access_token"]
        return {"Authorization": f"Bearer {token}", "Content-Type": "application/json"}

    def create_intent(self, order) -> ProviderIntent:
        body = {
            "intent": "CAPTURE",
            "purchase_units": [{
                "reference_id": str(order.id),
                "amount": {
                    "currency_code": self.currency.upper(),
                    "value": str(order.total_amount),
                },
            }],
        }

        try:
            with self._client() as client:
                headers = self._auth_headers(client)
                headers["Prefer"] = "return=representation"
                response = client.post("/v2/checkout/orders", json=body, headers=headers)
                response.raise_for_status()
                paypal_order = response.json()
            reference = paypal_order["id"]
        except (httpx.HTTPError, KeyError, ValueError) as exc:
            logger.error(
                "PayPal order creation error",
                extra={"order_id": order.id, "error": str(exc)}
            )
            raise ProviderError("Failed to create PayPal order") from exc

        return ProviderIntent(reference=reference, client_handle={"orderID": reference})

    def capture(self, reference: str) -> dict:
        try:
            with self._client() as client:
                headers = self._auth_headers(client)
                response = client.post(
                    f"/v2/checkout/orders/{reference}/capture",
                    json={},
                    headers=headers,
                )
                response.raise_for_status()
                return response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.error(
                "PayPal payment capture error",
                extra={"paypal_order_id": reference, "error": str(exc)}
            )
            raise ProviderError("Failed to capture PayPal payment") from exc


def build_gateways(settings: Settings) -> Dict[PaymentMethod, PaymentGateway]:
    return {
        PaymentMethod.STRIPE: StripeGateway(settings.stripe_secret_key, settings.payment_currency),
        PaymentMethod.PAYPAL: PayPalGateway(
            settings.paypal_client_id,
            settings.paypal_client_secret,
            settings.paypal_base_url,
            currency=settings.payment_currency,
            timeout=settings.provider_timeout,
        ),
    }

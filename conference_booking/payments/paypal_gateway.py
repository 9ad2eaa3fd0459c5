"""PayPal REST client used as the payment gateway.

Only the calls the ledger needs are implemented: create an order, capture
it, read it back and verify webhook signatures. Network errors and 5xx
responses are retried with exponential backoff; anything still failing is
raised as ``PaymentGatewayError``.
"""

import logging
import time
from abc import ABC, abstractmethod
from decimal import Decimal
from functools import lru_cache
from typing import Any, Dict, Mapping, Optional

import httpx

from conference_booking.config import settings
from conference_booking.exceptions import PaymentGatewayError
from conference_booking.money import to_money
from conference_booking.payments.schemas import CapturedPayment

logger = logging.getLogger(__name__)

COMPLETED = "COMPLETED"

class PaymentGateway(ABC):
    """Abstract payment gateway."""

    @abstractmethod
    def create_order(
        self,
        amount: Decimal,
        currency: str,
        booking_id: str,
        booking_reference: str,
        description: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Create an order for ``amount`` and return the gateway's order document."""

    @abstractmethod
    def capture_order(self, order_id: str) -> Dict[str, Any]:
        """Capture an approved order and return the gateway's capture document."""

    @abstractmethod
    def get_order(self, order_id: str) -> Dict[str, Any]:
        pass

    @abstractmethod
    def verify_webhook_signature(self, headers: Mapping[str, str], event: Dict[str, Any]) -> bool:
        """True only when the gateway confirms the event was signed by it."""

def parse_capture(capture_result: Dict[str, Any]) -> CapturedPayment:
    """Pull the first capture out of an order capture response"""
    purchase_units = capture_result.get("purchase_units") or [{}]
    unit = purchase_units[0]
    captures = (unit.get("payments") or {}).get("captures") or []
    if not captures:
        raise PaymentGatewayError("Capture response contained no captures")
    capture = captures[0]
    amount = capture.get("amount") or {}
    return CapturedPayment(
        capture_id=capture["id"],
        amount=to_money(amount.get("value", "0")),
        currency=amount.get("currency_code"),
        status=capture.get("status") or capture_result.get("status", ""),
        booking_id=capture.get("custom_id") or unit.get("custom_id") or unit.get("reference_id"),
        order_id=capture_result.get("id"),
    )

def parse_webhook_capture(resource: Dict[str, Any]) -> CapturedPayment:
    """Capture resource of a ``PAYMENT.CAPTURE.*`` webhook event"""
    purchase_units = resource.get("purchase_units") or [{}]
    amount = resource.get("amount") or {}
    related = (resource.get("supplementary_data") or {}).get("related_ids") or {}
    return CapturedPayment(
        capture_id=resource.get("id", ""),
        amount=to_money(amount.get("value", "0")),
        currency=amount.get("currency_code"),
        status=resource.get("status", ""),
        booking_id=resource.get("custom_id") or purchase_units[0].get("custom_id"),
        order_id=related.get("order_id"),
    )

class PayPalGateway(PaymentGateway):
    """PayPal Orders v2 API client."""

    def __init__(
        self,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        base_url: Optional[str] = None,
        webhook_id: Optional[str] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        backoff: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.client_id = client_id or settings.PAYPAL_CLIENT_ID
        self.client_secret = client_secret or settings.PAYPAL_CLIENT_SECRET
        self.base_url = (base_url or settings.PAYPAL_BASE_URL).rstrip("/")
        self.webhook_id = webhook_id if webhook_id is not None else settings.PAYPAL_WEBHOOK_ID
        self.max_retries = settings.PAYPAL_MAX_RETRIES if max_retries is None else max_retries
        self.backoff = settings.PAYPAL_RETRY_BACKOFF_SECONDS if backoff is None else backoff
        self._client = httpx.Client(
            base_url=self.base_url,
            timeout=timeout or settings.PAYPAL_TIMEOUT_SECONDS,
            transport=transport,
        )
        self._access_token: Optional[str] = None
        self._token_expires_at = 0.0

    def _get_access_token(self) -> str:
        if self._access_token and time.monotonic() < self._token_expires_at:
            return self._access_token
        if not self.client_id or not self.client_secret:
            raise PaymentGatewayError("PayPal credentials not configured")

        response = self._send(
            "POST",
            "/v1/oauth2/token",
            auth=(self.client_id, self.client_secret),
            data={"grant_type": "client_credentials"},
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )
        data = response.json()
        self._access_token = data["access_token"]
        # Refresh a minute early so a token never expires mid-request
        self._token_expires_at = time.monotonic() + max(0, int(data.get("expires_in", 0)) - 60)
        return self._access_token

    def _send(self, method: str, path: str, **kwargs) -> httpx.Response:
        """Send a request, retrying transport errors and 5xx responses"""
        attempt = 0
        while True:
            attempt += 1
            try:
                response = self._client.request(method, path, **kwargs)
            except httpx.TransportError as e:
                if attempt > self.max_retries:
                    logger.error("PayPal %s %s failed after %d attempts: %s", method, path, attempt, e)
                    raise PaymentGatewayError(f"PayPal request failed: {e}") from e
                logger.warning("PayPal %s %s transport error (attempt %d): %s", method, path, attempt, e)
            else:
                if response.status_code < 500:
                    if response.is_error:
                        logger.error(
                            "PayPal %s %s returned %d: %s", method, path, response.status_code, response.text
                        )
                        raise PaymentGatewayError(
                            f"PayPal request failed with status {response.status_code}",
                            status=response.status_code,
                        )
                    return response
                if attempt > self.max_retries:
                    logger.error("PayPal %s %s returned %d after %d attempts",
                                 method, path, response.status_code, attempt)
                    raise PaymentGatewayError(
                        f"PayPal request failed with status {response.status_code}",
                        status=response.status_code,
                    )
                logger.warning("PayPal %s %s returned %d (attempt %d)", method, path, response.status_code, attempt)
            time.sleep(self.backoff * (2 ** (attempt - 1)))

    def _api(self, method: str, path: str, json: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        headers = {
            "Authorization": f"Bearer {self._get_access_token()}",
            "Content-Type": "application/json",
            "Prefer": "return=representation",
        }
        return self._send(method, path, json=json, headers=headers).json()

    def create_order(
        self,
        amount: Decimal,
        currency: str,
        booking_id: str,
        booking_reference: str,
        description: Optional[str] = None,
    ) -> Dict[str, Any]:
        order = {
            "intent": "CAPTURE",
            "purchase_units": [
                {
                    "reference_id": booking_id,
                    "custom_id": booking_id,
                    "description": description or f"Conference Booking: {booking_reference}",
                    "amount": {"currency_code": currency, "value": f"{to_money(amount):.2f}"},
                }
            ],
            "application_context": {
                "brand_name": settings.BRAND_NAME,
                "landing_page": "BILLING",
                "user_action": "PAY_NOW",
                "return_url": f"{settings.PUBLIC_SITE_URL}/conference/payment/success",
                "cancel_url": f"{settings.PUBLIC_SITE_URL}/conference/payment/cancel",
            },
        }
        return self._api("POST", "/v2/checkout/orders", json=order)

    def capture_order(self, order_id: str) -> Dict[str, Any]:
        return self._api("POST", f"/v2/checkout/orders/{order_id}/capture")

    def get_order(self, order_id: str) -> Dict[str, Any]:
        return self._api("GET", f"/v2/checkout/orders/{order_id}")

    def verify_webhook_signature(self, headers: Mapping[str, str], event: Dict[str, Any]) -> bool:
        headers = {k.lower(): v for k, v in headers.items()}
        payload = {
            "transmission_id": headers.get("paypal-transmission-id"),
            "transmission_time": headers.get("paypal-transmission-time"),
            "cert_url": headers.get("paypal-cert-url"),
            "auth_algo": headers.get("paypal-auth-algo"),
            "transmission_sig": headers.get("paypal-transmission-sig"),
            "webhook_id": self.webhook_id,
            "webhook_event": event,
        }
        try:
            result = self._api("POST", "/v1/notifications/verify-webhook-signature", json=payload)
        except PaymentGatewayError as e:
            logger.warning("Webhook signature verification failed: %s", e)
            return False
        return result.get("verification_status") == "SUCCESS"

    def close(self) -> None:
        self._client.close()

@lru_cache()
def get_payment_gateway() -> PaymentGateway:
    """FastAPI dependency returning the shared gateway client"""
    return PayPalGateway()

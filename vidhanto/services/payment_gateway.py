"""Razorpay REST client.

Only the three calls the platform needs (orders, payment lookup, refunds)
plus checkout signature verification. Amounts passed in are whole rupees
and converted to paise here.
"""

import hashlib
import hmac
import logging
from typing import Optional

import requests

from vidhanto.config import (
    RAZORPAY_KEY_ID,
    RAZORPAY_KEY_SECRET,
    RAZORPAY_API_URL,
    PAYMENT_TIMEOUT_SECONDS,
)

logger = logging.getLogger(__name__)


class PaymentGatewayError(Exception):
    """Raised when Razorpay rejects a call or cannot be reached."""


def compute_hmac_sha256(secret: str, payload: str) -> str:
    return hmac.new(secret.encode("utf-8"), payload.encode("utf-8"), hashlib.sha256).hexdigest()


class RazorpayGateway:
    def __init__(
        self,
        key_id: str = RAZORPAY_KEY_ID,
        key_secret: str = RAZORPAY_KEY_SECRET,
        base_url: str = RAZORPAY_API_URL,
        timeout: int = PAYMENT_TIMEOUT_SECONDS,
    ):
        self.key_id = key_id
        self.key_secret = key_secret
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

        if not self.is_available():
            logger.warning("RAZORPAY_KEY_ID/RAZORPAY_KEY_SECRET not set; payment endpoints will fail until configured")

    def is_available(self) -> bool:
        return bool(self.key_id and self.key_secret)

    def _request(self, method: str, path: str, payload: Optional[dict] = None) -> dict:
        if not self.is_available():
            raise PaymentGatewayError("Payment gateway is not configured")

        url = f"{self.base_url}{path}"
        try:
            response = requests.request(
                method,
                url,
                json=payload,
                auth=(self.key_id, self.key_secret),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"Razorpay request failed: {e}", extra={"path": path})
            raise PaymentGatewayError(f"Payment gateway unreachable: {e}") from e

        if response.status_code >= 400:
            try:
                reason = response.json().get("error", {}).get("description")
            except ValueError:
                reason = None
            reason = reason or f"HTTP {response.status_code}"
            logger.error("Razorpay rejected request", extra={"path": path, "status": response.status_code})
            raise PaymentGatewayError(reason)

        return response.json()

    def create_order(self, amount: float, receipt: str, notes: Optional[dict] = None, currency: str = "INR") -> dict:
        order = self._request(
            "POST",
            "/orders",
            {
                "amount": int(round(amount * 100)),
                "currency": currency,
                "receipt": receipt[:40],
                "notes": notes or {},
            },
        )
        logger.info("Razorpay order created", extra={"order_id": order.get("id"), "receipt": receipt})
        return order

    def fetch_payment(self, payment_id: str) -> dict:
        return self._request("GET", f"/payments/{payment_id}")

    def refund(self, payment_id: str, amount: float, notes: Optional[dict] = None) -> dict:
        refund = self._request(
            "POST",
            f"/payments/{payment_id}/refund",
            {"amount": int(round(amount * 100)), "notes": notes or {}},
        )
        logger.info("Razorpay refund created", extra={"payment_id": payment_id, "refund_id": refund.get("id")})
        return refund

    def verify_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
        if not signature or not self.key_secret:
            return False
        expected = compute_hmac_sha256(self.key_secret, f"{order_id}|{payment_id}")
        return hmac.compare_digest(expected, signature)


payment_gateway = RazorpayGateway()


def get_payment_gateway() -> RazorpayGateway:
    return payment_gateway

import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

from app.config import settings
from app.services.errors import PaymentGatewayError

logger = logging.getLogger(__name__)

PAYMENT_STATE_PAID = "paid"
PAYMENT_STATE_PENDING = "pending"
PAYMENT_STATE_EXPIRED = "expired"
PAYMENT_STATE_FAILED = "failed"


@dataclass(frozen=True)
class GatewayOrder:
    id: str
    amount: int
    currency: str
    status: str | None = None


@dataclass(frozen=True)
class GatewayPaymentLink:
    id: str
    short_url: str
    amount: int
    currency: str
    status: str


@dataclass(frozen=True)
class GatewayPaymentStatus:
    """What the gateway says about a reference: one of the PAYMENT_STATE_* values."""

    state: str
    payment_id: str | None = None
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def is_paid(self) -> bool:
        return self.state == PAYMENT_STATE_PAID and bool(self.payment_id)


class GatewayClient:
    """Thin client for the payment gateway REST API. Amounts are minor units."""

    def __init__(
        self,
        key_id: str,
        key_secret: str,
        base_url: str,
        timeout: float = 15.0,
        transport: httpx.BaseTransport | None = None,
    ):
        if not key_id or not key_secret:
            raise PaymentGatewayError("Payment service is not configured")
        self.key_id = key_id
        self._client = httpx.Client(
            base_url=base_url.rstrip("/"),
            auth=(key_id, key_secret),
            timeout=timeout,
            headers={"Content-Type": "application/json"},
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "GatewayClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _request(self, method: str, path: str, json: dict | None = None) -> dict[str, Any]:
        try:
            response = self._client.request(method, path, json=json)
        except httpx.HTTPError as exc:
            logger.error("Gateway %s %s failed: %s", method, path, exc)
            raise PaymentGatewayError() from exc

        if response.is_error:
            description = _error_description(response)
            logger.error(
                "Gateway %s %s returned %s: %s",
                method,
                path,
                response.status_code,
                description,
            )
            raise PaymentGatewayError()

        try:
            data = response.json()
        except ValueError as exc:
            logger.error("Gateway %s %s returned invalid JSON", method, path)
            raise PaymentGatewayError() from exc
        if not isinstance(data, dict):
            logger.error("Gateway %s %s returned %s instead of an object", method, path, type(data).__name__)
            raise PaymentGatewayError()
        return data

    def _created_id(self, path: str, data: dict[str, Any]) -> str:
        created_id = data.get("id")
        if not created_id or not isinstance(created_id, str):
            logger.error("Gateway POST %s returned no id", path)
            raise PaymentGatewayError()
        return created_id

    def create_order(
        self,
        amount_minor: int,
        currency: str,
        receipt: str,
        notes: dict[str, str] | None = None,
    ) -> GatewayOrder:
        payload = {"amount": amount_minor, "currency": currency, "receipt": receipt}
        if notes:
            payload["notes"] = notes
        data = self._request("POST", "/orders", json=payload)
        return GatewayOrder(
            id=self._created_id("/orders", data),
            amount=int(data.get("amount", amount_minor)),
            currency=data.get("currency", currency),
            status=data.get("status"),
        )

    def create_payment_link(
        self,
        amount_minor: int,
        currency: str,
        description: str,
        customer: dict[str, str],
        notes: dict[str, str],
        callback_url: str,
        callback_method: str = "get",
    ) -> GatewayPaymentLink:
        payload = {
            "amount": amount_minor,
            "currency": currency,
            "accept_partial": False,
            "description": description,
            "customer": customer,
            "notify": {"sms": False, "email": True, "whatsapp": False},
            "reminder_enable": False,
            "notes": notes,
            "callback_url": callback_url,
            "callback_method": callback_method,
        }
        data = self._request("POST", "/payment_links", json=payload)
        return GatewayPaymentLink(
            id=self._created_id("/payment_links", data),
            short_url=data.get("short_url", ""),
            amount=int(data.get("amount", amount_minor)),
            currency=data.get("currency", currency),
            status=data.get("status", "created"),
        )

    def fetch_payment_link(self, link_id: str) -> GatewayPaymentStatus:
        data = self._request("GET", f"/payment_links/{link_id}")
        link_status = (data.get("status") or "").lower()
        payments = _payment_entries(data, "payments")
        captured = [
            payment for payment in payments
            if (payment.get("status") or "").lower() in {"captured", "paid"}
        ]

        if link_status == "paid" and captured:
            return GatewayPaymentStatus(PAYMENT_STATE_PAID, captured[-1].get("payment_id"), raw=data)
        if link_status in {"expired", "cancelled"}:
            return GatewayPaymentStatus(PAYMENT_STATE_EXPIRED, raw=data)
        return GatewayPaymentStatus(PAYMENT_STATE_PENDING, raw=data)

    def fetch_order_payments(self, order_id: str) -> GatewayPaymentStatus:
        data = self._request("GET", f"/orders/{order_id}/payments")
        payments = _payment_entries(data, "items")
        for payment in payments:
            if (payment.get("status") or "").lower() == "captured":
                return GatewayPaymentStatus(PAYMENT_STATE_PAID, payment.get("id"), raw=data)
        if payments and all((p.get("status") or "").lower() == "failed" for p in payments):
            return GatewayPaymentStatus(PAYMENT_STATE_FAILED, raw=data)
        return GatewayPaymentStatus(PAYMENT_STATE_PENDING, raw=data)


def _payment_entries(data: dict[str, Any], key: str) -> list[dict[str, Any]]:
    entries = data.get(key)
    if not isinstance(entries, list):
        return []
    return [entry for entry in entries if isinstance(entry, dict)]


def _error_description(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text[:200]
    error = payload.get("error") if isinstance(payload, dict) else None
    if not isinstance(error, dict):
        return "Unknown error"
    return error.get("description") or error.get("code") or "Unknown error"


def get_gateway_client() -> GatewayClient:
    return GatewayClient(
        key_id=settings.GATEWAY_KEY_ID,
        key_secret=settings.GATEWAY_KEY_SECRET,
        base_url=settings.GATEWAY_API_BASE_URL,
        timeout=settings.GATEWAY_TIMEOUT_SECONDS,
    )

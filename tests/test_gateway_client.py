import json

import httpx
import pytest

from app.services.errors import PaymentGatewayError
from app.services.gateway_client import (
    PAYMENT_STATE_EXPIRED,
    PAYMENT_STATE_FAILED,
    PAYMENT_STATE_PAID,
    PAYMENT_STATE_PENDING,
    GatewayClient,
)


def _client(handler) -> GatewayClient:
    return GatewayClient(
        key_id="rzp_test_key",
        key_secret="gateway_test_secret",
        base_url="https://gateway.test/v1",
        transport=httpx.MockTransport(handler),
    )


def test_missing_credentials_raise_before_any_request():
    with pytest.raises(PaymentGatewayError):
        GatewayClient(key_id="", key_secret="secret", base_url="https://gateway.test/v1")


def test_create_payment_link_sends_minor_units_with_basic_auth():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={
            "id": "plink_123",
            "short_url": "https://rzp.io/i/plink_123",
            "amount": 49800,
            "currency": "INR",
            "status": "created",
        })

    with _client(handler) as client:
        link = client.create_payment_link(
            amount_minor=49800,
            currency="INR",
            description="Payment for Order ORD-1",
            customer={"name": "Asha", "email": "asha@example.com", "contact": ""},
            notes={"order_number": "ORD-1"},
            callback_url="http://localhost:8000/webhooks/gateway/callback",
        )

    assert link.id == "plink_123"
    assert link.short_url == "https://rzp.io/i/plink_123"
    assert seen["path"] == "/v1/payment_links"
    assert seen["auth"].startswith("Basic ")
    assert seen["body"]["amount"] == 49800
    assert seen["body"]["callback_method"] == "get"
    assert seen["body"]["notes"] == {"order_number": "ORD-1"}


def test_create_order_returns_gateway_order():
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        assert body["receipt"] == "receipt_ORD-1"
        return httpx.Response(200, json={"id": "order_123", "amount": body["amount"], "currency": "INR"})

    with _client(handler) as client:
        order = client.create_order(amount_minor=1000, currency="INR", receipt="receipt_ORD-1")

    assert order.id == "order_123"
    assert order.amount == 1000


def test_error_response_becomes_payment_gateway_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"error": {"code": "BAD_REQUEST_ERROR", "description": "amount invalid"}})

    with _client(handler) as client:
        with pytest.raises(PaymentGatewayError) as exc_info:
            client.create_order(amount_minor=0, currency="INR", receipt="r")

    # Gateway wording is logged, never shown to the customer.
    assert "amount invalid" not in exc_info.value.message


def test_transport_error_becomes_payment_gateway_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with _client(handler) as client:
        with pytest.raises(PaymentGatewayError):
            client.fetch_payment_link("plink_123")


def test_non_object_reply_becomes_payment_gateway_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=["plink_123"])

    with _client(handler) as client:
        with pytest.raises(PaymentGatewayError):
            client.fetch_payment_link("plink_123")


def test_create_order_without_id_becomes_payment_gateway_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"amount": 100, "currency": "INR"})

    with _client(handler) as client:
        with pytest.raises(PaymentGatewayError):
            client.create_order(amount_minor=100, currency="INR", receipt="r")


def test_malformed_payment_entries_are_ignored():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"items": ["pay_1", None]})

    with _client(handler) as client:
        result = client.fetch_order_payments("order_123")

    assert result.state == PAYMENT_STATE_PENDING


def test_fetch_payment_link_paid_returns_captured_payment_id():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/v1/payment_links/plink_123"
        return httpx.Response(200, json={
            "id": "plink_123",
            "status": "paid",
            "payments": [{"payment_id": "pay_abc", "status": "captured"}],
        })

    with _client(handler) as client:
        result = client.fetch_payment_link("plink_123")

    assert result.state == PAYMENT_STATE_PAID
    assert result.payment_id == "pay_abc"
    assert result.is_paid


@pytest.mark.parametrize(
    "link_status, expected",
    [("created", PAYMENT_STATE_PENDING), ("expired", PAYMENT_STATE_EXPIRED), ("cancelled", PAYMENT_STATE_EXPIRED)],
)
def test_fetch_payment_link_unpaid_states(link_status, expected):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"id": "plink_123", "status": link_status, "payments": []})

    with _client(handler) as client:
        result = client.fetch_payment_link("plink_123")

    assert result.state == expected
    assert not result.is_paid


def test_fetch_order_payments_states():
    responses = {
        "order_paid": [{"id": "pay_1", "status": "failed"}, {"id": "pay_2", "status": "captured"}],
        "order_failed": [{"id": "pay_1", "status": "failed"}],
        "order_open": [],
    }

    def handler(request: httpx.Request) -> httpx.Response:
        order_id = request.url.path.split("/")[3]
        return httpx.Response(200, json={"items": responses[order_id]})

    with _client(handler) as client:
        paid = client.fetch_order_payments("order_paid")
        failed = client.fetch_order_payments("order_failed")
        pending = client.fetch_order_payments("order_open")

    assert paid.state == PAYMENT_STATE_PAID and paid.payment_id == "pay_2"
    assert failed.state == PAYMENT_STATE_FAILED
    assert pending.state == PAYMENT_STATE_PENDING

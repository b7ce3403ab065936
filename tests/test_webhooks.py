from urllib.parse import parse_qs, urlsplit

from fastapi import status

from app.models import Order, PendingOrder
from app.services.materializer import materialize_order


def test_gateway_webhook_success(client, db, make_pending_order, signer):
    """Signed payment_link.paid confirms the pending order."""
    make_pending_order("plink_123")
    body = signer.webhook_body("payment_link.paid", "plink_123", "pay_abc")

    response = client.post("/webhooks/gateway", content=body, headers=signer.webhook_headers(body))

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["received"] is True
    order = db.query(Order).one()
    assert order.order_number == "pay_abc"
    assert db.query(PendingOrder).count() == 0


def test_gateway_webhook_redelivery_is_idempotent(client, db, make_pending_order, signer):
    make_pending_order("plink_123")
    body = signer.webhook_body("payment_link.paid", "plink_123", "pay_abc")

    for _ in range(3):
        response = client.post("/webhooks/gateway", content=body, headers=signer.webhook_headers(body))
        assert response.status_code == status.HTTP_200_OK

    assert db.query(Order).count() == 1


def test_gateway_webhook_invalid_signature(client, db, make_pending_order, signer):
    make_pending_order("plink_123")
    body = signer.webhook_body("payment_link.paid", "plink_123", "pay_abc")

    response = client.post(
        "/webhooks/gateway",
        content=body,
        headers=signer.webhook_headers(body, secret="wrong-secret"),
    )

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    payload = response.json()
    assert payload["success"] is False
    assert payload["code"] == "invalid_signature"
    assert payload["detail"] == "Payment could not be verified"
    assert payload["requestId"]
    assert db.query(Order).count() == 0


def test_gateway_webhook_missing_signature(client, db, make_pending_order, signer):
    make_pending_order("plink_123")
    body = signer.webhook_body("payment_link.paid", "plink_123", "pay_abc")

    response = client.post("/webhooks/gateway", content=body, headers={"Content-Type": "application/json"})

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert db.query(Order).count() == 0


def test_gateway_webhook_invalid_json(client, signer):
    body = b"not json"
    response = client.post("/webhooks/gateway", content=body, headers=signer.webhook_headers(body))
    assert response.status_code == status.HTTP_400_BAD_REQUEST


def test_gateway_webhook_malformed_payload_is_bad_request(client, db, signer):
    body = b'{"event": "payment_link.paid", "payload": ["not", "an", "object"]}'
    response = client.post("/webhooks/gateway", content=body, headers=signer.webhook_headers(body))
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert db.query(Order).count() == 0


def test_gateway_webhook_unknown_reference_is_acknowledged(client, db, signer):
    body = signer.webhook_body("payment_link.paid", "plink_purged", "pay_abc")

    response = client.post("/webhooks/gateway", content=body, headers=signer.webhook_headers(body))

    assert response.status_code == status.HTTP_200_OK
    assert db.query(Order).count() == 0


def test_gateway_webhook_echoes_request_id(client, signer):
    body = b'{"event": "payment_link.expired", "payload": {}}'
    response = client.post(
        "/webhooks/gateway",
        content=body,
        headers={**signer.webhook_headers(body), "X-Request-ID": "req-42"},
    )
    assert response.status_code == status.HTTP_200_OK
    assert response.headers["X-Request-ID"] == "req-42"


def _callback(client, **params):
    return client.get("/webhooks/gateway/callback", params=params, follow_redirects=False)


def test_callback_with_valid_signature_redirects_to_success(client, db, make_pending_order, signer, gateway):
    make_pending_order("plink_123")

    response = _callback(
        client,
        gateway_payment_link_id="plink_123",
        gateway_payment_id="pay_abc",
        gateway_payment_link_status="paid",
        gateway_signature=signer.payment("plink_123", "pay_abc"),
    )

    assert response.status_code == status.HTTP_302_FOUND
    location = urlsplit(response.headers["location"])
    assert location.netloc == "shop.test"
    query = parse_qs(location.query)
    assert query["payment"] == ["success"]
    assert query["order_number"] == ["pay_abc"]
    assert db.query(Order).count() == 1


def test_callback_forged_signature_redirects_pending_without_order(client, db, make_pending_order, gateway):
    make_pending_order("plink_123")

    response = _callback(
        client,
        gateway_payment_link_id="plink_123",
        gateway_payment_id="pay_forged",
        gateway_payment_link_status="paid",
        gateway_signature="a" * 64,
    )

    assert response.status_code == status.HTTP_302_FOUND
    query = parse_qs(urlsplit(response.headers["location"]).query)
    assert query["pending"] == ["true"]
    assert query["payment_link_id"] == ["plink_123"]
    assert db.query(Order).count() == 0


def test_callback_cannot_look_up_order_of_another_checkout(client, db, make_pending_order, gateway):
    materialize_order(db, make_pending_order("plink_123"), "pay_abc")

    response = _callback(
        client,
        gateway_payment_link_id="plink_guess",
        gateway_payment_id="pay_abc",
        gateway_payment_link_status="paid",
    )

    assert response.status_code == status.HTTP_302_FOUND
    query = parse_qs(urlsplit(response.headers["location"]).query)
    assert query["payment"] == ["failed"]
    assert "order_number" not in query


def test_callback_failed_status_redirects_to_failure(client, make_pending_order, gateway):
    make_pending_order("plink_123")

    response = _callback(client, gateway_payment_link_id="plink_123", gateway_payment_link_status="failed")

    assert response.status_code == status.HTTP_302_FOUND
    assert response.headers["location"] == "http://shop.test/orders?payment=failed"


def test_callback_without_link_id_redirects_to_failure(client):
    response = _callback(client)
    assert response.status_code == status.HTTP_302_FOUND
    assert response.headers["location"] == "http://shop.test/orders?payment=failed"


def test_callback_unknown_reference_redirects_to_failure(client, signer, gateway):
    response = _callback(
        client,
        gateway_payment_link_id="plink_unknown",
        gateway_payment_id="pay_abc",
        gateway_payment_link_status="paid",
        gateway_signature=signer.payment("plink_unknown", "pay_abc"),
    )
    assert response.status_code == status.HTTP_302_FOUND
    assert "payment=failed" in response.headers["location"]

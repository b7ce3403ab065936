from datetime import datetime, timedelta, timezone

import pytest
from fastapi import status

from app.models import Order, PendingOrder
from app.services.materializer import materialize_order


@pytest.fixture
def confirmed_order(db, make_pending_order) -> Order:
    return materialize_order(db, make_pending_order("plink_123"), "pay_abc").order


def test_my_orders_lists_confirmed_orders_with_lines(client, auth_headers, confirmed_order):
    response = client.get("/api/orders/me", headers=auth_headers)

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert len(data) == 1
    order = data[0]
    assert order["order_number"] == "pay_abc"
    assert order["checkout_number"].startswith("ORD-")
    assert order["total_amount"] == "498.00"
    assert order["status"] == "confirmed"
    assert order["payment_status"] == "completed"
    assert [item["status"] for item in order["order_items"]] == ["pending", "pending"]


def test_my_orders_empty_for_other_user(client, auth_headers2, confirmed_order):
    response = client.get("/api/orders/me", headers=auth_headers2)
    assert response.json() == []


def test_get_order(client, auth_headers, confirmed_order):
    response = client.get(f"/api/orders/{confirmed_order.id}", headers=auth_headers)
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["id"] == confirmed_order.id


def test_get_order_of_other_user(client, auth_headers2, confirmed_order):
    response = client.get(f"/api/orders/{confirmed_order.id}", headers=auth_headers2)
    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["detail"] == "Order not found"


def test_get_order_requires_auth(client, confirmed_order):
    response = client.get(f"/api/orders/{confirmed_order.id}")
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


def test_cancel_order(client, auth_headers, confirmed_order):
    response = client.post(
        f"/api/orders/{confirmed_order.id}/cancel",
        json={"reason": "Changed my mind"},
        headers=auth_headers,
    )

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["status"] == "cancelled"
    assert "Changed my mind" in response.json()["admin_notes"]


def test_return_before_delivery_is_conflict(client, auth_headers, confirmed_order):
    response = client.post(
        f"/api/orders/{confirmed_order.id}/return",
        json={"reason": "Damaged"},
        headers=auth_headers,
    )
    assert response.status_code == status.HTTP_409_CONFLICT
    assert response.json()["success"] is False


def test_return_delivered_order(client, db, auth_headers, confirmed_order):
    confirmed_order.status = "delivered"
    db.commit()

    response = client.post(
        f"/api/orders/{confirmed_order.id}/return",
        json={"reason": "Damaged"},
        headers=auth_headers,
    )

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["status"] == "return_requested"


def test_admin_lists_orders_needing_reconciliation(client, db, admin_headers, make_pending_order, product):
    product.stock_quantity = 0
    db.commit()
    materialize_order(db, make_pending_order("plink_123"), "pay_abc")
    materialize_order(
        db,
        make_pending_order("plink_456", items=[]),
        "pay_def",
    )

    response = client.get("/api/admin/orders/needs-reconciliation", headers=admin_headers)

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert [order["order_number"] for order in data] == ["pay_abc"]
    assert "insufficient stock" in data[0]["reconciliation_notes"]


def test_admin_purges_only_stale_pending_orders(client, db, admin_headers, make_pending_order):
    stale = make_pending_order("plink_old")
    make_pending_order("plink_new")
    stale.created_at = datetime.now(timezone.utc).replace(tzinfo=None) - timedelta(hours=100)
    db.commit()

    response = client.delete("/api/admin/pending-orders/stale", headers=admin_headers)

    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"deleted": 1}
    remaining = [p.gateway_reference_id for p in db.query(PendingOrder).all()]
    assert remaining == ["plink_new"]


def test_customer_cannot_purge_pending_orders(client, auth_headers):
    response = client.delete("/api/admin/pending-orders/stale", headers=auth_headers)
    assert response.status_code == status.HTTP_403_FORBIDDEN

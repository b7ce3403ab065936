from decimal import Decimal

import pytest
from fastapi import status

from app.models import OrderItem, PayoutRequest
from app.services.errors import InvalidTransition
from app.services.fulfilment import approve_dispatch, mark_delivered, request_dispatch
from app.services.materializer import materialize_order
from app.services.payouts import process_payout, request_payout


@pytest.fixture
def delivered_item(db, make_pending_order, seller) -> OrderItem:
    materialize_order(db, make_pending_order("plink_123"), "pay_abc")
    item = db.query(OrderItem).filter(OrderItem.shop_owner_id == seller.id).one()
    request_dispatch(db, item)
    approve_dispatch(db, item)
    mark_delivered(db, item)
    return item


def test_payout_amount_is_price_times_quantity(db, delivered_item):
    payout = request_payout(db, delivered_item)

    assert payout.amount == Decimal("398.00")
    assert payout.status == "pending"
    assert payout.shop_owner_id == delivered_item.shop_owner_id


def test_payout_only_once_per_item(db, delivered_item):
    request_payout(db, delivered_item)

    with pytest.raises(InvalidTransition):
        request_payout(db, delivered_item)
    assert db.query(PayoutRequest).count() == 1


def test_payout_requires_delivered_item(db, make_pending_order, seller):
    materialize_order(db, make_pending_order("plink_123"), "pay_abc")
    item = db.query(OrderItem).filter(OrderItem.shop_owner_id == seller.id).one()

    with pytest.raises(InvalidTransition):
        request_payout(db, item)


def test_process_payout_once(db, delivered_item):
    payout = request_payout(db, delivered_item)

    process_payout(db, payout)
    assert payout.status == "processed"
    assert payout.processed_at is not None

    with pytest.raises(InvalidTransition):
        process_payout(db, payout)


def test_payout_flow_over_http(client, seller_headers, admin_headers, delivered_item):
    requested = client.post(f"/api/seller/order-items/{delivered_item.id}/payout", headers=seller_headers)
    assert requested.status_code == status.HTTP_200_OK
    payout = requested.json()
    assert payout["amount"] == "398.00"

    duplicate = client.post(f"/api/seller/order-items/{delivered_item.id}/payout", headers=seller_headers)
    assert duplicate.status_code == status.HTTP_409_CONFLICT

    listed = client.get("/api/seller/payouts", headers=seller_headers).json()
    assert [p["id"] for p in listed] == [payout["id"]]

    pending = client.get("/api/admin/payouts", params={"payout_status": "pending"}, headers=admin_headers).json()
    assert [p["id"] for p in pending] == [payout["id"]]

    processed = client.post(f"/api/admin/payouts/{payout['id']}/process", headers=admin_headers)
    assert processed.status_code == status.HTTP_200_OK
    assert processed.json()["status"] == "processed"


def test_process_unknown_payout(client, admin_headers):
    response = client.post("/api/admin/payouts/999/process", headers=admin_headers)
    assert response.status_code == status.HTTP_404_NOT_FOUND

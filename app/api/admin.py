import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.config import settings
from app.dependencies import require_admin
from app.models import Order, OrderItem, PayoutRequest, User, get_db
from app.schemas.orders import OrderItemResponse, OrderResponse, PayoutResponse, PurgeResponse
from app.services.fulfilment import approve_dispatch, mark_delivered
from app.services.payouts import process_payout
from app.services.pending_orders import purge_stale_pending_orders

router = APIRouter()
logger = logging.getLogger(__name__)


def _get_item(db: Session, item_id: int) -> OrderItem:
    item = db.query(OrderItem).filter(OrderItem.id == item_id).first()
    if not item:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order item not found")
    return item


@router.get(
    "/order-items",
    response_model=list[OrderItemResponse],
    summary="List order lines",
)
def list_order_items(
    admin: Annotated[User, Depends(require_admin)],
    db: Annotated[Session, Depends(get_db)],
    item_status: str | None = None,
):
    query = db.query(OrderItem)
    if item_status:
        query = query.filter(OrderItem.status == item_status)
    return [OrderItemResponse.from_model(item) for item in query.order_by(OrderItem.id.desc()).all()]


@router.post(
    "/order-items/{item_id}/dispatch",
    response_model=OrderItemResponse,
    summary="Approve dispatch of an order line",
)
def dispatch_order_item(
    item_id: int,
    admin: Annotated[User, Depends(require_admin)],
    db: Annotated[Session, Depends(get_db)],
):
    return OrderItemResponse.from_model(approve_dispatch(db, _get_item(db, item_id)))


@router.post(
    "/order-items/{item_id}/deliver",
    response_model=OrderItemResponse,
    summary="Mark an order line delivered",
)
def deliver_order_item(
    item_id: int,
    admin: Annotated[User, Depends(require_admin)],
    db: Annotated[Session, Depends(get_db)],
):
    return OrderItemResponse.from_model(mark_delivered(db, _get_item(db, item_id)))


@router.get(
    "/payouts",
    response_model=list[PayoutResponse],
    summary="List payout requests",
)
def list_payouts(
    admin: Annotated[User, Depends(require_admin)],
    db: Annotated[Session, Depends(get_db)],
    payout_status: str | None = None,
):
    query = db.query(PayoutRequest)
    if payout_status:
        query = query.filter(PayoutRequest.status == payout_status)
    return [PayoutResponse.from_model(payout) for payout in query.order_by(PayoutRequest.id.desc()).all()]


@router.post(
    "/payouts/{payout_id}/process",
    response_model=PayoutResponse,
    summary="Mark a payout as paid out",
)
def process_payout_request(
    payout_id: int,
    admin: Annotated[User, Depends(require_admin)],
    db: Annotated[Session, Depends(get_db)],
):
    payout = db.query(PayoutRequest).filter(PayoutRequest.id == payout_id).first()
    if not payout:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Payout not found")
    return PayoutResponse.from_model(process_payout(db, payout))


@router.get(
    "/orders/needs-reconciliation",
    response_model=list[OrderResponse],
    summary="Orders with lines that could not be fulfilled from stock",
)
def orders_needing_reconciliation(
    admin: Annotated[User, Depends(require_admin)],
    db: Annotated[Session, Depends(get_db)],
):
    orders = (
        db.query(Order)
        .filter(Order.needs_reconciliation == True)  # noqa: E712
        .order_by(Order.id.desc())
        .all()
    )
    return [OrderResponse.from_model(order) for order in orders]


@router.delete(
    "/pending-orders/stale",
    response_model=PurgeResponse,
    summary="Delete abandoned checkouts",
)
def purge_pending_orders(
    admin: Annotated[User, Depends(require_admin)],
    db: Annotated[Session, Depends(get_db)],
):
    """Removes pending orders older than the retention window; a late webhook for them is acknowledged and ignored."""
    deleted = purge_stale_pending_orders(db, settings.PENDING_ORDER_RETENTION_HOURS)
    logger.info("Admin %s purged %s stale pending orders", admin.id, deleted)
    return PurgeResponse(deleted=deleted)

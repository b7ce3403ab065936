from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.dependencies import require_shop_owner
from app.models import OrderItem, PayoutRequest, User, get_db
from app.schemas.orders import OrderItemResponse, PayoutResponse
from app.services.fulfilment import request_dispatch
from app.services.payouts import request_payout

router = APIRouter()


def _get_own_item(db: Session, item_id: int, seller: User) -> OrderItem:
    item = (
        db.query(OrderItem)
        .filter(OrderItem.id == item_id, OrderItem.shop_owner_id == seller.id)
        .first()
    )
    if not item:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order item not found")
    return item


@router.get(
    "/order-items",
    response_model=list[OrderItemResponse],
    summary="List order lines for my products",
)
def my_order_items(
    seller: Annotated[User, Depends(require_shop_owner)],
    db: Annotated[Session, Depends(get_db)],
    item_status: str | None = None,
):
    query = db.query(OrderItem).filter(OrderItem.shop_owner_id == seller.id)
    if item_status:
        query = query.filter(OrderItem.status == item_status)
    items = query.order_by(OrderItem.id.desc()).all()
    return [OrderItemResponse.from_model(item) for item in items]


@router.post(
    "/order-items/{item_id}/request-dispatch",
    response_model=OrderItemResponse,
    summary="Ask the platform to dispatch an order line",
)
def request_item_dispatch(
    item_id: int,
    seller: Annotated[User, Depends(require_shop_owner)],
    db: Annotated[Session, Depends(get_db)],
):
    item = request_dispatch(db, _get_own_item(db, item_id, seller))
    return OrderItemResponse.from_model(item)


@router.post(
    "/order-items/{item_id}/payout",
    response_model=PayoutResponse,
    summary="Request payout for a delivered order line",
)
def request_item_payout(
    item_id: int,
    seller: Annotated[User, Depends(require_shop_owner)],
    db: Annotated[Session, Depends(get_db)],
):
    """The amount is always price times quantity of the line; one payout per line."""
    payout = request_payout(db, _get_own_item(db, item_id, seller))
    return PayoutResponse.from_model(payout)


@router.get(
    "/payouts",
    response_model=list[PayoutResponse],
    summary="List my payout requests",
)
def my_payouts(
    seller: Annotated[User, Depends(require_shop_owner)],
    db: Annotated[Session, Depends(get_db)],
):
    payouts = (
        db.query(PayoutRequest)
        .filter(PayoutRequest.shop_owner_id == seller.id)
        .order_by(PayoutRequest.id.desc())
        .all()
    )
    return [PayoutResponse.from_model(payout) for payout in payouts]

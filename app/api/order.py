from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.config import settings
from app.dependencies import get_current_user
from app.models import Order, User, get_db
from app.schemas.orders import OrderActionRequest, OrderResponse
from app.services.fulfilment import cancel_order, request_return

router = APIRouter()


def _get_own_order(db: Session, order_id: int, user: User) -> Order:
    order = db.query(Order).filter(Order.id == order_id, Order.user_id == user.id).first()
    if not order:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found")
    return order


@router.get(
    "/me",
    response_model=list[OrderResponse],
    summary="List my orders",
)
def my_orders(
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
):
    """Returns the confirmed orders of the current user, newest first, with their order lines."""
    orders = (
        db.query(Order)
        .filter(Order.user_id == current_user.id)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .all()
    )
    return [OrderResponse.from_model(order) for order in orders]


@router.get(
    "/{order_id}",
    response_model=OrderResponse,
    summary="Get order",
)
def get_order(
    order_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
):
    """Returns one order (only for the current user's orders)."""
    return OrderResponse.from_model(_get_own_order(db, order_id, current_user))


@router.post(
    "/{order_id}/cancel",
    response_model=OrderResponse,
    summary="Cancel order",
)
def cancel_my_order(
    order_id: int,
    body: OrderActionRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
):
    order = cancel_order(db, _get_own_order(db, order_id, current_user), body.reason)
    return OrderResponse.from_model(order)


@router.post(
    "/{order_id}/return",
    response_model=OrderResponse,
    summary="Request a return",
)
def return_my_order(
    order_id: int,
    body: OrderActionRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
):
    """Only delivered orders, within the return window counted from the order date."""
    order = request_return(
        db,
        _get_own_order(db, order_id, current_user),
        body.reason,
        window_days=settings.RETURN_WINDOW_DAYS,
    )
    return OrderResponse.from_model(order)

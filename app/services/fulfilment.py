"""Order line dispatch/delivery state machine and order-level customer actions."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from sqlalchemy.orm import Session

from app.models import Order, OrderItem
from app.models.order import (
    ITEM_STATUS_DELIVERED,
    ITEM_STATUS_DISPATCH_REQUESTED,
    ITEM_STATUS_DISPATCHED,
    ITEM_STATUS_PENDING,
    ORDER_STATUS_CANCELLED,
    ORDER_STATUS_CONFIRMED,
    ORDER_STATUS_DELIVERED,
    ORDER_STATUS_PENDING,
    ORDER_STATUS_RETURN_REQUESTED,
)
from app.services.errors import InvalidTransition

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ItemTransition:
    source: str
    target: str
    timestamp_field: str


REQUEST_DISPATCH = ItemTransition(ITEM_STATUS_PENDING, ITEM_STATUS_DISPATCH_REQUESTED, "dispatch_requested_at")
APPROVE_DISPATCH = ItemTransition(ITEM_STATUS_DISPATCH_REQUESTED, ITEM_STATUS_DISPATCHED, "dispatched_at")
MARK_DELIVERED = ItemTransition(ITEM_STATUS_DISPATCHED, ITEM_STATUS_DELIVERED, "delivered_at")

CANCELLABLE_ORDER_STATUSES = {ORDER_STATUS_PENDING, ORDER_STATUS_CONFIRMED}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _apply_item_transition(db: Session, item: OrderItem, transition: ItemTransition) -> OrderItem:
    # Conditional on the source state so two admins clicking at once cannot both win.
    updated = (
        db.query(OrderItem)
        .filter(OrderItem.id == item.id, OrderItem.status == transition.source)
        .update(
            {
                OrderItem.status: transition.target,
                getattr(OrderItem, transition.timestamp_field): utcnow(),
            },
            synchronize_session=False,
        )
    )
    if updated != 1:
        db.rollback()
        db.refresh(item)
        raise InvalidTransition(
            f"Order item {item.id} is {item.status}, expected {transition.source}"
        )
    db.flush()
    db.refresh(item)
    logger.info("Order item %s moved %s -> %s", item.id, transition.source, transition.target)
    return item


def request_dispatch(db: Session, item: OrderItem) -> OrderItem:
    """Seller: ``pending -> dispatch_requested``."""
    item = _apply_item_transition(db, item, REQUEST_DISPATCH)
    db.commit()
    return item


def approve_dispatch(db: Session, item: OrderItem) -> OrderItem:
    """Admin: ``dispatch_requested -> dispatched``."""
    item = _apply_item_transition(db, item, APPROVE_DISPATCH)
    db.commit()
    return item


def mark_delivered(db: Session, item: OrderItem) -> OrderItem:
    """Admin: ``dispatched -> delivered``; the order follows once every line is delivered."""
    item = _apply_item_transition(db, item, MARK_DELIVERED)
    order = db.query(Order).filter(Order.id == item.order_id).first()
    if order is not None and order.status == ORDER_STATUS_CONFIRMED:
        open_lines = (
            db.query(OrderItem)
            .filter(OrderItem.order_id == order.id, OrderItem.status != ITEM_STATUS_DELIVERED)
            .count()
        )
        if open_lines == 0:
            order.status = ORDER_STATUS_DELIVERED
            logger.info("Order %s fully delivered", order.order_number)
    db.commit()
    db.refresh(item)
    return item


def cancel_order(db: Session, order: Order, reason: str) -> Order:
    if order.status not in CANCELLABLE_ORDER_STATUSES:
        raise InvalidTransition(f"Order in status {order.status} cannot be cancelled")
    order.status = ORDER_STATUS_CANCELLED
    order.admin_notes = f"Cancelled by user. Reason: {reason}"
    db.commit()
    db.refresh(order)
    logger.info("Order %s cancelled by user", order.order_number)
    return order


def request_return(db: Session, order: Order, reason: str, window_days: int, now: datetime | None = None) -> Order:
    if order.status != ORDER_STATUS_DELIVERED:
        raise InvalidTransition(f"Order in status {order.status} cannot be returned")
    now = now or utcnow()
    if order.created_at is not None and now - _as_utc(order.created_at) > timedelta(days=window_days):
        raise InvalidTransition(f"Return window of {window_days} days has passed")
    order.status = ORDER_STATUS_RETURN_REQUESTED
    order.admin_notes = f"Return requested by user. Reason: {reason}"
    db.commit()
    db.refresh(order)
    logger.info("Return requested for order %s", order.order_number)
    return order

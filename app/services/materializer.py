"""Turn a paid pending order into a confirmed order.

The whole conversion (order row, order lines, stock, pending-order delete) is
one database transaction, so a crash part-way leaves the pending order in
place for the next completion signal to retry. Concurrent attempts for the
same payment are serialized by the unique ``gateway_payment_ref`` column:
the loser of the insert rolls back and returns the winner's order.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models import Order, OrderItem, PendingOrder
from app.models.order import (
    ITEM_STATUS_PENDING,
    ORDER_STATUS_CONFIRMED,
    PAYMENT_STATUS_COMPLETED,
)
from app.services.errors import DuplicatePayment, MaterializationPartialFailure
from app.services.inventory import decrease_product_stock, get_product_owner

logger = logging.getLogger(__name__)


@dataclass
class MaterializationResult:
    order: Order
    created: bool
    shortfalls: list[MaterializationPartialFailure] = field(default_factory=list)


@dataclass(frozen=True)
class _PendingSnapshot:
    id: int
    user_id: int
    order_number: str
    total_amount: Decimal
    delivery_address: dict
    items: list
    gateway_reference_id: str
    price_breakdown: dict | None

    @classmethod
    def of(cls, pending: PendingOrder) -> "_PendingSnapshot":
        return cls(
            id=pending.id,
            user_id=pending.user_id,
            order_number=pending.order_number,
            total_amount=pending.total_amount,
            delivery_address=pending.delivery_address,
            items=list(pending.items or []),
            gateway_reference_id=pending.gateway_reference_id,
            price_breakdown=pending.price_breakdown,
        )


def find_order_by_payment_id(
    db: Session,
    payment_id: str,
    user_id: int | None = None,
    reference_id: str | None = None,
) -> Order | None:
    query = db.query(Order).filter(Order.gateway_payment_ref == payment_id)
    if reference_id is not None:
        query = query.filter(Order.gateway_order_ref == reference_id)
    if user_id is not None:
        query = query.filter(Order.user_id == user_id)
    return query.first()


def find_order_by_reference(db: Session, reference_id: str, user_id: int | None = None) -> Order | None:
    query = db.query(Order).filter(Order.gateway_order_ref == reference_id)
    if user_id is not None:
        query = query.filter(Order.user_id == user_id)
    return query.order_by(Order.id).first()


def _line_value(line: dict, *keys, default=None):
    for key in keys:
        if key in line and line[key] is not None:
            return line[key]
    return default


def _insert_order(db: Session, snapshot: _PendingSnapshot, payment_id: str) -> Order:
    order = Order(
        user_id=snapshot.user_id,
        order_number=payment_id,
        checkout_number=snapshot.order_number,
        total_amount=snapshot.total_amount,
        status=ORDER_STATUS_CONFIRMED,
        payment_status=PAYMENT_STATUS_COMPLETED,
        gateway_order_ref=snapshot.gateway_reference_id,
        gateway_payment_ref=payment_id,
        delivery_address=snapshot.delivery_address,
        items=snapshot.items,
        price_breakdown=snapshot.price_breakdown,
    )
    db.add(order)
    try:
        db.flush()
    except IntegrityError as exc:
        db.rollback()
        raise DuplicatePayment(payment_id) from exc
    return order


def _fan_out_line(db: Session, order: Order, line: dict) -> OrderItem:
    product_id = _line_value(line, "productId", "product_id")
    quantity = int(_line_value(line, "quantity", default=0))
    if product_id is None:
        raise MaterializationPartialFailure(None, "cart line has no product id")

    shop_owner_id = get_product_owner(db, product_id)
    if shop_owner_id is None:
        raise MaterializationPartialFailure(product_id, "product no longer exists")

    item = OrderItem(
        order_id=order.id,
        product_id=product_id,
        shop_owner_id=shop_owner_id,
        quantity=quantity,
        price=Decimal(str(_line_value(line, "price", default="0"))),
        status=ITEM_STATUS_PENDING,
    )
    db.add(item)

    if not decrease_product_stock(db, product_id, quantity):
        # The line is kept: the money has already been captured.
        raise MaterializationPartialFailure(product_id, f"insufficient stock for quantity {quantity}")
    return item


def materialize_order(db: Session, pending: PendingOrder, payment_id: str) -> MaterializationResult:
    """Create the confirmed order for ``pending`` paid by ``payment_id``; safe to re-run."""
    existing = find_order_by_payment_id(db, payment_id, reference_id=pending.gateway_reference_id)
    if existing is not None:
        logger.info("Payment %s already materialized as order %s", payment_id, existing.id)
        return MaterializationResult(order=existing, created=False)

    snapshot = _PendingSnapshot.of(pending)
    try:
        order = _insert_order(db, snapshot, payment_id)
    except DuplicatePayment:
        # A payment already used by a different checkout stays a conflict.
        existing = find_order_by_payment_id(db, payment_id, reference_id=snapshot.gateway_reference_id)
        if existing is None:
            raise
        logger.info("Lost materialization race for payment %s, using order %s", payment_id, existing.id)
        return MaterializationResult(order=existing, created=False)

    shortfalls: list[MaterializationPartialFailure] = []
    for line in snapshot.items:
        try:
            _fan_out_line(db, order, line)
        except MaterializationPartialFailure as failure:
            logger.warning(
                "Order %s (payment %s) needs reconciliation: %s",
                order.id,
                payment_id,
                failure,
            )
            shortfalls.append(failure)

    if shortfalls:
        order.needs_reconciliation = True
        order.reconciliation_notes = "\n".join(str(failure) for failure in shortfalls)

    db.query(PendingOrder).filter(PendingOrder.id == snapshot.id).delete(synchronize_session=False)
    db.commit()
    db.refresh(order)
    logger.info(
        "Order %s confirmed for payment %s (pending %s removed)",
        order.order_number,
        payment_id,
        snapshot.order_number,
    )
    return MaterializationResult(order=order, created=True, shortfalls=shortfalls)

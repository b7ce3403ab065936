import logging
import secrets
import time
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from sqlalchemy.orm import Session

from app.models import PendingOrder

logger = logging.getLogger(__name__)

PLACEHOLDER_PREFIX = "temp_"


def _epoch_millis() -> int:
    return int(time.time() * 1000)


def generate_order_number() -> str:
    """Human-facing checkout number, e.g. ``ORD-1760870400123-3FA9C1``."""
    return f"ORD-{_epoch_millis()}-{secrets.token_hex(3).upper()}"


def placeholder_reference() -> str:
    return f"{PLACEHOLDER_PREFIX}{_epoch_millis()}_{secrets.token_hex(4)}"


def is_placeholder_reference(reference_id: str | None) -> bool:
    return bool(reference_id) and reference_id.startswith(PLACEHOLDER_PREFIX)


def create_pending_order(
    db: Session,
    user_id: int,
    total_amount: Decimal,
    delivery_address: dict,
    items: list[dict],
    checkout_mode: str,
    price_breakdown: dict | None = None,
) -> PendingOrder:
    """Stage a checkout under a placeholder reference until the gateway answers."""
    pending = PendingOrder(
        user_id=user_id,
        order_number=generate_order_number(),
        total_amount=total_amount,
        delivery_address=delivery_address,
        items=items,
        gateway_reference_id=placeholder_reference(),
        checkout_mode=checkout_mode,
        price_breakdown=price_breakdown,
    )
    db.add(pending)
    db.commit()
    db.refresh(pending)
    logger.info("Pending order %s staged for user %s", pending.order_number, user_id)
    return pending


def assign_gateway_reference(db: Session, pending: PendingOrder, reference_id: str) -> PendingOrder:
    """Swap the placeholder for the gateway's id. Allowed exactly once."""
    if not is_placeholder_reference(pending.gateway_reference_id):
        raise ValueError(
            f"Pending order {pending.id} already has gateway reference {pending.gateway_reference_id}"
        )
    updated = (
        db.query(PendingOrder)
        .filter(
            PendingOrder.id == pending.id,
            PendingOrder.gateway_reference_id == pending.gateway_reference_id,
        )
        .update({PendingOrder.gateway_reference_id: reference_id}, synchronize_session=False)
    )
    if updated != 1:
        db.rollback()
        raise ValueError(f"Pending order {pending.id} reference changed concurrently")
    db.commit()
    db.refresh(pending)
    return pending


def find_pending_order(db: Session, reference_id: str, user_id: int | None = None) -> PendingOrder | None:
    """Look up by gateway reference; ``user_id`` scopes the lookup for authenticated callers."""
    query = db.query(PendingOrder).filter(PendingOrder.gateway_reference_id == reference_id)
    if user_id is not None:
        query = query.filter(PendingOrder.user_id == user_id)
    return query.first()


def list_pending_orders_for_user(db: Session, user_id: int) -> list[PendingOrder]:
    return (
        db.query(PendingOrder)
        .filter(PendingOrder.user_id == user_id)
        .order_by(PendingOrder.created_at.desc(), PendingOrder.id.desc())
        .all()
    )


def discard_pending_order(db: Session, pending_order_id: int) -> None:
    """Remove a pending order whose gateway counterpart was never created."""
    db.query(PendingOrder).filter(PendingOrder.id == pending_order_id).delete(synchronize_session=False)
    db.commit()
    logger.info("Pending order %s discarded", pending_order_id)


def purge_stale_pending_orders(db: Session, older_than_hours: int, now: datetime | None = None) -> int:
    now = now or datetime.now(timezone.utc)
    cutoff = now - timedelta(hours=older_than_hours)
    bind = db.get_bind()
    if bind is not None and bind.dialect.name == "sqlite":
        cutoff = cutoff.replace(tzinfo=None)
    deleted = (
        db.query(PendingOrder)
        .filter(PendingOrder.created_at < cutoff)
        .delete(synchronize_session=False)
    )
    db.commit()
    if deleted:
        logger.info("Purged %s pending orders created before %s", deleted, cutoff.isoformat())
    return deleted

import logging
from decimal import Decimal

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models import OrderItem, PayoutRequest
from app.models.order import ITEM_STATUS_DELIVERED
from app.models.payout import PAYOUT_STATUS_PENDING, PAYOUT_STATUS_PROCESSED
from app.services.errors import InvalidTransition
from app.services.fulfilment import utcnow
from app.services.money import quantize_amount

logger = logging.getLogger(__name__)


def request_payout(db: Session, item: OrderItem) -> PayoutRequest:
    """Open the one payout allowed for a delivered order line."""
    if item.status != ITEM_STATUS_DELIVERED:
        raise InvalidTransition("Payout can only be requested for delivered items")

    payout = PayoutRequest(
        shop_owner_id=item.shop_owner_id,
        order_item_id=item.id,
        amount=quantize_amount(Decimal(str(item.price)) * item.quantity),
        status=PAYOUT_STATUS_PENDING,
    )
    db.add(payout)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise InvalidTransition("Payout already requested for this item") from exc
    db.refresh(payout)
    logger.info("Payout %s requested for order item %s", payout.id, item.id)
    return payout


def process_payout(db: Session, payout: PayoutRequest) -> PayoutRequest:
    updated = (
        db.query(PayoutRequest)
        .filter(PayoutRequest.id == payout.id, PayoutRequest.status == PAYOUT_STATUS_PENDING)
        .update(
            {PayoutRequest.status: PAYOUT_STATUS_PROCESSED, PayoutRequest.processed_at: utcnow()},
            synchronize_session=False,
        )
    )
    if updated != 1:
        db.rollback()
        raise InvalidTransition(f"Payout {payout.id} is already processed")
    db.commit()
    db.refresh(payout)
    logger.info("Payout %s processed", payout.id)
    return payout

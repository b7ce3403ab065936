"""Payment completion reconciler.

Webhook, redirect callback and manual poll may all report the same payment,
in any order and at the same time. Each one funnels into ``_complete``,
which returns the existing order when there is one and otherwise hands the
pending order to the materializer.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, assert_never

from sqlalchemy.orm import Session

from app.config import settings
from app.models import Order
from app.services.errors import InvalidSignature, PendingOrderNotFound
from app.services.evidence import (
    Evidence,
    PollRequest,
    RedirectEvidence,
    WebhookEvidence,
    parse_webhook_event,
)
from app.services.gateway_client import (
    PAYMENT_STATE_EXPIRED,
    PAYMENT_STATE_FAILED,
    GatewayClient,
    get_gateway_client,
)
from app.services.materializer import (
    find_order_by_payment_id,
    find_order_by_reference,
    materialize_order,
)
from app.services.payment_gateways import get_checkout_flow
from app.services.pending_orders import find_pending_order, is_placeholder_reference
from app.services.signature import verify_payment_signature, verify_webhook_signature

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReconciliationResult:
    success: bool
    order_id: int | None = None
    order_number: str | None = None
    payment_id: str | None = None
    already_processed: bool = False
    pending: bool = False
    expired: bool = False
    failed: bool = False
    ignored: bool = False
    shortfalls: tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def for_order(cls, order: Order, already_processed: bool, shortfalls=()) -> "ReconciliationResult":
        return cls(
            success=True,
            order_id=order.id,
            order_number=order.order_number,
            payment_id=order.gateway_payment_ref,
            already_processed=already_processed,
            shortfalls=tuple(str(item) for item in shortfalls),
        )


GatewayClientFactory = Callable[[], GatewayClient]


def _find_existing(
    db: Session,
    payment_id: str | None,
    reference_id: str | None,
    user_id: int | None,
) -> Order | None:
    if payment_id:
        return find_order_by_payment_id(db, payment_id, user_id, reference_id=reference_id)
    if reference_id:
        return find_order_by_reference(db, reference_id, user_id)
    return None


def _complete(
    db: Session,
    reference_id: str,
    payment_id: str,
    user_id: int | None,
) -> ReconciliationResult:
    existing = _find_existing(db, payment_id, reference_id, user_id)
    if existing is not None:
        return ReconciliationResult.for_order(existing, already_processed=True)

    pending = find_pending_order(db, reference_id, user_id)
    if pending is None:
        # Another channel may have finished and cleaned up in the meantime.
        existing = _find_existing(db, payment_id, reference_id, user_id)
        if existing is not None:
            return ReconciliationResult.for_order(existing, already_processed=True)
        raise PendingOrderNotFound(reference_id)

    result = materialize_order(db, pending, payment_id)
    return ReconciliationResult.for_order(
        result.order,
        already_processed=not result.created,
        shortfalls=result.shortfalls,
    )


def _confirm_with_gateway(
    db: Session,
    reference_id: str,
    user_id: int | None,
    client_factory: GatewayClientFactory,
) -> ReconciliationResult:
    """Ask the gateway itself whether ``reference_id`` is paid; never trusts a client payment id."""
    existing = _find_existing(db, None, reference_id, user_id)
    if existing is not None:
        return ReconciliationResult.for_order(existing, already_processed=True)

    pending = find_pending_order(db, reference_id, user_id)
    if pending is None:
        existing = _find_existing(db, None, reference_id, user_id)
        if existing is not None:
            return ReconciliationResult.for_order(existing, already_processed=True)
        raise PendingOrderNotFound(reference_id)

    if is_placeholder_reference(pending.gateway_reference_id):
        return ReconciliationResult(success=False, pending=True)

    flow = get_checkout_flow(pending.checkout_mode)
    with client_factory() as client:
        gateway_status = flow.fetch_status(client, reference_id)

    if gateway_status.is_paid:
        return _complete(db, reference_id, gateway_status.payment_id, user_id)
    if gateway_status.state == PAYMENT_STATE_EXPIRED:
        return ReconciliationResult(success=False, expired=True)
    if gateway_status.state == PAYMENT_STATE_FAILED:
        return ReconciliationResult(success=False, failed=True)
    return ReconciliationResult(success=False, pending=True)


def _reconcile_webhook(db: Session, evidence: WebhookEvidence) -> ReconciliationResult:
    if not verify_webhook_signature(evidence.raw_body, evidence.signature, settings.GATEWAY_WEBHOOK_SECRET):
        logger.warning("SECURITY: rejected webhook with invalid signature")
        raise InvalidSignature(evidence.channel)

    event = parse_webhook_event(evidence.raw_body)
    if not event.is_payment_event:
        logger.info("Ignoring webhook event %s", event.event or "<missing>")
        return ReconciliationResult(success=False, ignored=True)
    if not event.reference_id or not event.payment_id:
        logger.warning("Webhook event %s is missing reference or payment id", event.event)
        return ReconciliationResult(success=False, ignored=True)

    logger.info("Webhook %s for reference %s payment %s", event.event, event.reference_id, event.payment_id)
    return _complete(db, event.reference_id, event.payment_id, user_id=None)


def _reconcile_redirect(
    db: Session,
    evidence: RedirectEvidence,
    client_factory: GatewayClientFactory,
) -> ReconciliationResult:
    if evidence.payment_id:
        existing = _find_existing(db, evidence.payment_id, evidence.reference_id, evidence.user_id)
        if existing is not None:
            return ReconciliationResult.for_order(existing, already_processed=True)

    if not evidence.claims_paid:
        logger.info("Redirect for %s reports status %s", evidence.reference_id, evidence.status)
        return ReconciliationResult(success=False, failed=True)

    if evidence.signature_required and not (evidence.payment_id and evidence.signature):
        raise InvalidSignature(evidence.channel, evidence.reference_id)
    if evidence.payment_id and evidence.signature:
        if verify_payment_signature(
            evidence.reference_id,
            evidence.payment_id,
            evidence.signature,
            settings.GATEWAY_KEY_SECRET,
        ):
            return _complete(db, evidence.reference_id, evidence.payment_id, evidence.user_id)
        if evidence.signature_required:
            logger.warning(
                "SECURITY: invalid signature on %s for reference %s",
                evidence.channel,
                evidence.reference_id,
            )
            raise InvalidSignature(evidence.channel, evidence.reference_id)
        logger.warning(
            "SECURITY: invalid signature on %s for reference %s, falling back to gateway confirmation",
            evidence.channel,
            evidence.reference_id,
        )

    return _confirm_with_gateway(db, evidence.reference_id, evidence.user_id, client_factory)


def reconcile(
    db: Session,
    evidence: Evidence,
    client_factory: GatewayClientFactory | None = None,
) -> ReconciliationResult:
    """Single entry point for every completion channel."""
    client_factory = client_factory or get_gateway_client
    if isinstance(evidence, WebhookEvidence):
        return _reconcile_webhook(db, evidence)
    if isinstance(evidence, RedirectEvidence):
        return _reconcile_redirect(db, evidence, client_factory)
    if isinstance(evidence, PollRequest):
        return _confirm_with_gateway(db, evidence.reference_id, evidence.user_id, client_factory)
    assert_never(evidence)

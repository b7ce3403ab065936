import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from app.config import settings
from app.models import get_db
from app.services.errors import CheckoutError, PendingOrderNotFound
from app.services.evidence import RedirectEvidence, WebhookEvidence
from app.services.reconciler import reconcile
from app.services.url_utils import append_query_params

router = APIRouter()
logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Signature"


@router.post(
    "/gateway",
    summary="Payment gateway webhook",
)
async def gateway_webhook(
    request: Request,
    db: Session = Depends(get_db),
):
    """
    The gateway posts payment events here. ``payment_link.paid``, ``order.paid``
    and ``payment.captured`` confirm the matching pending order; anything else
    is acknowledged and ignored. Idempotent: redelivery returns the same order.
    """
    payload = await request.body()
    signature = request.headers.get(SIGNATURE_HEADER)

    try:
        result = reconcile(db, WebhookEvidence(raw_body=payload, signature=signature))
    except PendingOrderNotFound as exc:
        # Purged or never staged here; retrying will not help.
        logger.warning("Webhook for unknown reference %s acknowledged", exc.reference_id)
        return {"received": True}
    except ValueError as e:
        logger.error("Invalid webhook payload: %s", e)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid payload")

    if result.success:
        logger.info(
            "Webhook confirmed order %s (already processed: %s)",
            result.order_number,
            result.already_processed,
        )
    return {"received": True}


@router.get(
    "/gateway/callback",
    summary="Payment gateway browser redirect",
)
def gateway_callback(
    db: Session = Depends(get_db),
    gateway_payment_link_id: str | None = None,
    gateway_payment_id: str | None = None,
    gateway_payment_link_status: str | None = None,
    gateway_signature: str | None = None,
):
    """
    The customer's browser lands here after paying. Query parameters are
    client-supplied, so the order is only created from a valid signature or
    after the gateway itself confirms the payment.
    """
    failure_url = settings.PAYMENT_FAILURE_REDIRECT_URL
    if not gateway_payment_link_id:
        logger.warning("Gateway callback without payment link id")
        return RedirectResponse(failure_url, status_code=status.HTTP_302_FOUND)

    evidence = RedirectEvidence(
        reference_id=gateway_payment_link_id,
        payment_id=gateway_payment_id,
        status=gateway_payment_link_status,
        signature=gateway_signature,
    )
    try:
        result = reconcile(db, evidence)
    except CheckoutError as exc:
        logger.warning(
            "Gateway callback for %s could not be completed: %s (%s)",
            gateway_payment_link_id,
            exc.message,
            exc.code,
        )
        return RedirectResponse(failure_url, status_code=status.HTTP_302_FOUND)

    if result.success:
        target = append_query_params(
            settings.PAYMENT_SUCCESS_REDIRECT_URL,
            {"order_number": result.order_number},
        )
    elif result.pending:
        # Not confirmed yet; the storefront keeps polling this reference.
        target = append_query_params(
            settings.PAYMENT_SUCCESS_REDIRECT_URL,
            {"payment_link_id": gateway_payment_link_id, "pending": "true"},
        )
    else:
        target = failure_url
    return RedirectResponse(target, status_code=status.HTTP_302_FOUND)

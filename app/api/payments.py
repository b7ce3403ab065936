from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.dependencies import get_current_user
from app.models import User, get_db
from app.schemas.payments import (
    CheckoutMethodsResponse,
    CheckoutMode,
    CheckoutVerifyRequest,
    PaymentInitRequest,
    PaymentInitResponse,
    PendingOrderResponse,
    VerificationResponse,
    VerifyPaymentLinkRequest,
)
from app.services.evidence import PollRequest, RedirectEvidence
from app.services.payment_gateways import get_checkout_flows, get_enabled_checkout_modes
from app.services.payment_initiation import initiate_payment
from app.services.pending_orders import list_pending_orders_for_user
from app.services.reconciler import ReconciliationResult, reconcile

router = APIRouter()


def _start_checkout(db: Session, user: User, body: PaymentInitRequest, mode: CheckoutMode) -> PaymentInitResponse:
    result = initiate_payment(db, user, body, mode.value)
    checkout = result.checkout
    return PaymentInitResponse(
        mode=mode,
        gateway_reference_id=checkout.gateway_reference_id,
        order_number=result.order_number,
        pending_order_id=result.pending_order_id,
        amount=checkout.amount_minor,
        currency=checkout.currency,
        payment_link_url=checkout.checkout_url,
        key_id=checkout.key_id,
        status=checkout.status,
    )


def _verification_response(result: ReconciliationResult) -> VerificationResponse:
    if result.success:
        message = (
            "Order already created"
            if result.already_processed
            else "Payment verified and order created successfully"
        )
    elif result.expired:
        message = "Payment link has expired"
    elif result.failed:
        message = "Payment failed"
    else:
        message = "Payment not completed yet"
    return VerificationResponse(
        success=result.success,
        order_id=result.order_id,
        order_number=result.order_number,
        payment_id=result.payment_id,
        pending=result.pending,
        expired=result.expired,
        failed=result.failed,
        message=message,
    )


@router.post(
    "/payment-link",
    response_model=PaymentInitResponse,
    summary="Create a hosted payment link for the cart",
)
def create_payment_link(
    body: PaymentInitRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
):
    """
    Stage the cart as a pending order and return the gateway-hosted checkout URL.
    The order itself is only created once the payment is confirmed.
    """
    return _start_checkout(db, current_user, body, CheckoutMode.PAYMENT_LINK)


@router.post(
    "/order",
    response_model=PaymentInitResponse,
    summary="Create a gateway order for the checkout widget",
)
def create_gateway_order(
    body: PaymentInitRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
):
    """Same as the payment link flow, but returns the public key id for the client-side widget."""
    return _start_checkout(db, current_user, body, CheckoutMode.ORDER)


@router.post(
    "/verify-payment-link",
    response_model=VerificationResponse,
    summary="Check whether a checkout has been paid",
)
def verify_payment_link(
    body: VerifyPaymentLinkRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
):
    """
    Polled by the storefront after checkout. The payment status always comes
    from the gateway; the order is created on the first poll that sees it paid.
    """
    result = reconcile(db, PollRequest(reference_id=body.payment_link_id, user_id=current_user.id))
    return _verification_response(result)


@router.post(
    "/verify",
    response_model=VerificationResponse,
    summary="Confirm a signed checkout widget payment",
)
def verify_checkout_payment(
    body: CheckoutVerifyRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
):
    evidence = RedirectEvidence(
        reference_id=body.gateway_order_id,
        payment_id=body.gateway_payment_id,
        status="paid",
        signature=body.gateway_signature,
        user_id=current_user.id,
        signature_required=True,
    )
    return _verification_response(reconcile(db, evidence))


@router.get(
    "/pending",
    response_model=list[PendingOrderResponse],
    summary="List my unpaid checkouts",
)
def my_pending_orders(
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
):
    pending_orders = list_pending_orders_for_user(db, current_user.id)
    return [PendingOrderResponse.from_model(pending) for pending in pending_orders]


@router.get(
    "/methods",
    response_model=CheckoutMethodsResponse,
    summary="Checkout flows supported by this deployment",
)
def checkout_methods():
    return CheckoutMethodsResponse(
        available_modes=list(get_checkout_flows()),
        enabled_modes=get_enabled_checkout_modes(),
    )

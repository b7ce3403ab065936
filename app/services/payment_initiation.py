import logging
from dataclasses import dataclass
from typing import Callable

from sqlalchemy.orm import Session

from app.config import settings
from app.models import User
from app.schemas.payments import PaymentInitRequest, PriceBreakdown
from app.services.errors import InvalidRequest, PaymentGatewayError
from app.services.gateway_client import GatewayClient, get_gateway_client
from app.services.money import quantize_amount, to_minor_units
from app.services.payment_gateways import CheckoutContext, CheckoutResult, get_checkout_flow
from app.services.pending_orders import (
    assign_gateway_reference,
    create_pending_order,
    discard_pending_order,
)
from app.services.pricing import calculate_price_breakdown, cart_subtotal
from app.services.url_utils import validate_callback_url

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InitiationResult:
    pending_order_id: int
    order_number: str
    mode: str
    checkout: CheckoutResult


def _validate(request: PaymentInitRequest) -> None:
    if request.amount is None or request.amount <= 0:
        raise InvalidRequest("Invalid amount")
    if not request.cart_items:
        raise InvalidRequest("Cart is empty")


def _price_breakdown(request: PaymentInitRequest) -> dict:
    if request.price_breakdown is not None:
        return request.price_breakdown.model_dump(mode="json", by_alias=True)
    computed = calculate_price_breakdown(cart_subtotal(request.cart_items), request.coupon_code)
    return PriceBreakdown(**computed).model_dump(mode="json", by_alias=True)


def _customer(user: User, request: PaymentInitRequest) -> dict[str, str]:
    address = request.delivery_address
    return {
        "name": address.full_name or user.display_name or "Customer",
        "email": address.email or user.email,
        "contact": address.phone or "",
    }


def initiate_payment(
    db: Session,
    user: User,
    request: PaymentInitRequest,
    mode: str,
    client_factory: Callable[[], GatewayClient] | None = None,
) -> InitiationResult:
    """Stage a pending order, open the gateway checkout, then record the gateway reference.

    The pending order is always written first under a placeholder reference;
    if the gateway call fails it is discarded so nothing is left dangling.
    """
    _validate(request)
    flow = get_checkout_flow(mode)
    client_factory = client_factory or get_gateway_client
    callback_url = settings.PAYMENT_CALLBACK_URL
    if request.callback_url:
        callback_url = validate_callback_url(request.callback_url, "callbackUrl")

    total_amount = quantize_amount(request.amount)
    pending = create_pending_order(
        db,
        user_id=user.id,
        total_amount=total_amount,
        delivery_address=request.delivery_address.model_dump(mode="json", by_alias=True, exclude_none=True),
        items=[item.model_dump(mode="json", by_alias=True) for item in request.cart_items],
        checkout_mode=flow.mode,
        price_breakdown=_price_breakdown(request),
    )
    context = CheckoutContext(
        pending_order_id=pending.id,
        order_number=pending.order_number,
        user_id=user.id,
        amount_minor=to_minor_units(total_amount),
        currency=settings.PAYMENT_CURRENCY,
        customer=_customer(user, request),
        item_count=len(request.cart_items),
        callback_url=callback_url,
    )

    try:
        with client_factory() as client:
            checkout = flow.create_checkout(client, context)
    except PaymentGatewayError:
        logger.warning("Gateway rejected checkout for pending order %s, discarding it", pending.order_number)
        discard_pending_order(db, pending.id)
        raise

    assign_gateway_reference(db, pending, checkout.gateway_reference_id)
    logger.info(
        "Checkout %s opened for pending order %s (%s)",
        checkout.gateway_reference_id,
        pending.order_number,
        flow.mode,
    )
    return InitiationResult(
        pending_order_id=pending.id,
        order_number=pending.order_number,
        mode=flow.mode,
        checkout=checkout,
    )

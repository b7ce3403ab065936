from dataclasses import dataclass
from typing import Callable

from app.config import settings
from app.services.errors import InvalidRequest
from app.services.gateway_client import GatewayClient, GatewayPaymentStatus

CHECKOUT_MODE_PAYMENT_LINK = "payment_link"
CHECKOUT_MODE_ORDER = "order"


@dataclass(frozen=True)
class CheckoutContext:
    pending_order_id: int
    order_number: str
    user_id: int
    amount_minor: int
    currency: str
    customer: dict[str, str]
    item_count: int
    callback_url: str


@dataclass(frozen=True)
class CheckoutResult:
    gateway_reference_id: str
    amount_minor: int
    currency: str
    checkout_url: str | None = None
    key_id: str | None = None
    status: str | None = None


@dataclass(frozen=True)
class CheckoutFlow:
    mode: str
    create_checkout: Callable[[GatewayClient, CheckoutContext], CheckoutResult]
    fetch_status: Callable[[GatewayClient, str], GatewayPaymentStatus]


def _notes(context: CheckoutContext) -> dict[str, str]:
    return {
        "order_id": str(context.pending_order_id),
        "order_number": context.order_number,
        "user_id": str(context.user_id),
        "item_count": str(context.item_count),
    }


def _create_payment_link_checkout(client: GatewayClient, context: CheckoutContext) -> CheckoutResult:
    link = client.create_payment_link(
        amount_minor=context.amount_minor,
        currency=context.currency,
        description=f"Payment for Order {context.order_number}",
        customer=context.customer,
        notes=_notes(context),
        callback_url=context.callback_url,
        callback_method="get",
    )
    return CheckoutResult(
        gateway_reference_id=link.id,
        amount_minor=link.amount,
        currency=link.currency,
        checkout_url=link.short_url,
        status=link.status,
    )


def _create_order_checkout(client: GatewayClient, context: CheckoutContext) -> CheckoutResult:
    gateway_order = client.create_order(
        amount_minor=context.amount_minor,
        currency=context.currency,
        receipt=f"receipt_{context.order_number}",
        notes=_notes(context),
    )
    return CheckoutResult(
        gateway_reference_id=gateway_order.id,
        amount_minor=gateway_order.amount,
        currency=gateway_order.currency,
        key_id=client.key_id,
        status=gateway_order.status,
    )


def _fetch_payment_link_status(client: GatewayClient, reference_id: str) -> GatewayPaymentStatus:
    return client.fetch_payment_link(reference_id)


def _fetch_order_status(client: GatewayClient, reference_id: str) -> GatewayPaymentStatus:
    return client.fetch_order_payments(reference_id)


def get_checkout_flows() -> dict[str, CheckoutFlow]:
    return {
        CHECKOUT_MODE_PAYMENT_LINK: CheckoutFlow(
            mode=CHECKOUT_MODE_PAYMENT_LINK,
            create_checkout=_create_payment_link_checkout,
            fetch_status=_fetch_payment_link_status,
        ),
        CHECKOUT_MODE_ORDER: CheckoutFlow(
            mode=CHECKOUT_MODE_ORDER,
            create_checkout=_create_order_checkout,
            fetch_status=_fetch_order_status,
        ),
    }


def get_checkout_flow(mode: str) -> CheckoutFlow:
    flow = get_checkout_flows().get(mode)
    if flow is None:
        raise InvalidRequest(f"Unsupported checkout mode: {mode}")
    return flow


def get_enabled_checkout_modes() -> list[str]:
    if not (settings.GATEWAY_KEY_ID and settings.GATEWAY_KEY_SECRET):
        return []
    return list(get_checkout_flows())

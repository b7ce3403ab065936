from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field, field_serializer


def _isoformat(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


class _AmountModel(BaseModel):
    @field_serializer("price", "total_amount", "amount", check_fields=False)
    def serialize_amount(self, value: Decimal) -> str:
        return format(value, "f")


class OrderItemResponse(_AmountModel):
    id: int
    order_id: int
    product_id: int
    shop_owner_id: int
    quantity: int
    price: Decimal
    status: str
    dispatch_requested_at: str | None = None
    dispatched_at: str | None = None
    delivered_at: str | None = None

    @classmethod
    def from_model(cls, item) -> "OrderItemResponse":
        return cls(
            id=item.id,
            order_id=item.order_id,
            product_id=item.product_id,
            shop_owner_id=item.shop_owner_id,
            quantity=item.quantity,
            price=item.price,
            status=item.status,
            dispatch_requested_at=_isoformat(item.dispatch_requested_at),
            dispatched_at=_isoformat(item.dispatched_at),
            delivered_at=_isoformat(item.delivered_at),
        )


class OrderResponse(_AmountModel):
    id: int
    order_number: str
    checkout_number: str | None = None
    total_amount: Decimal
    status: str
    payment_status: str
    gateway_order_ref: str
    gateway_payment_ref: str
    delivery_address: dict
    items: list[dict]
    price_breakdown: dict | None = None
    admin_notes: str | None = None
    needs_reconciliation: bool = False
    reconciliation_notes: str | None = None
    order_items: list[OrderItemResponse] = []
    created_at: str

    @classmethod
    def from_model(cls, order) -> "OrderResponse":
        return cls(
            id=order.id,
            order_number=order.order_number,
            checkout_number=order.checkout_number,
            total_amount=order.total_amount,
            status=order.status,
            payment_status=order.payment_status,
            gateway_order_ref=order.gateway_order_ref,
            gateway_payment_ref=order.gateway_payment_ref,
            delivery_address=order.delivery_address or {},
            items=order.items or [],
            price_breakdown=order.price_breakdown,
            admin_notes=order.admin_notes,
            needs_reconciliation=bool(order.needs_reconciliation),
            reconciliation_notes=order.reconciliation_notes,
            order_items=[OrderItemResponse.from_model(item) for item in order.order_items],
            created_at=_isoformat(order.created_at) or "",
        )


class OrderActionRequest(BaseModel):
    reason: str = Field(default="", max_length=1000)


class PayoutResponse(_AmountModel):
    id: int
    shop_owner_id: int
    order_item_id: int
    amount: Decimal
    status: str
    requested_at: str | None = None
    processed_at: str | None = None

    @classmethod
    def from_model(cls, payout) -> "PayoutResponse":
        return cls(
            id=payout.id,
            shop_owner_id=payout.shop_owner_id,
            order_item_id=payout.order_item_id,
            amount=payout.amount,
            status=payout.status,
            requested_at=_isoformat(payout.requested_at),
            processed_at=_isoformat(payout.processed_at),
        )


class PurgeResponse(BaseModel):
    deleted: int

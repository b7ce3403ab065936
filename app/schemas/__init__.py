from app.schemas.orders import (
    OrderActionRequest,
    OrderItemResponse,
    OrderResponse,
    PayoutResponse,
    PurgeResponse,
)
from app.schemas.payments import (
    CartItem,
    CheckoutMethodsResponse,
    CheckoutMode,
    CheckoutVerifyRequest,
    DeliveryAddress,
    PaymentInitRequest,
    PaymentInitResponse,
    PendingOrderResponse,
    PriceBreakdown,
    VerificationResponse,
    VerifyPaymentLinkRequest,
)

__all__ = [
    "CartItem",
    "CheckoutMethodsResponse",
    "CheckoutMode",
    "CheckoutVerifyRequest",
    "DeliveryAddress",
    "OrderActionRequest",
    "OrderItemResponse",
    "OrderResponse",
    "PaymentInitRequest",
    "PaymentInitResponse",
    "PayoutResponse",
    "PendingOrderResponse",
    "PriceBreakdown",
    "PurgeResponse",
    "VerificationResponse",
    "VerifyPaymentLinkRequest",
]

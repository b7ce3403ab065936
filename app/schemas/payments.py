from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_serializer


class CheckoutMode(str, Enum):
    PAYMENT_LINK = "payment_link"
    ORDER = "order"


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class CartItem(CamelModel):
    product_id: int = Field(alias="productId")
    title: str = Field(min_length=1, max_length=255)
    price: Decimal = Field(gt=0)
    quantity: int = Field(ge=1)
    image: str | None = None
    max_stock: int = Field(default=0, alias="maxStock", ge=0)


class DeliveryAddress(CamelModel):
    full_name: str = Field(alias="fullName", min_length=1, max_length=255)
    phone: str = ""
    address: str = ""
    city: str = ""
    state: str = ""
    pincode: str = ""
    email: EmailStr | None = None
    id: str | None = None


class PriceBreakdown(CamelModel):
    subtotal: Decimal
    discount: Decimal = Decimal("0")
    coupon_discount: Decimal = Field(default=Decimal("0"), alias="couponDiscount")
    delivery_charge: Decimal = Field(default=Decimal("0"), alias="deliveryCharge")
    platform_charge: Decimal = Field(default=Decimal("0"), alias="platformCharge")
    gst: Decimal = Decimal("0")
    total: Decimal


class PaymentInitRequest(CamelModel):
    amount: Decimal
    cart_items: list[CartItem] = Field(default_factory=list, alias="cartItems")
    delivery_address: DeliveryAddress = Field(alias="deliveryAddress")
    price_breakdown: PriceBreakdown | None = Field(default=None, alias="priceBreakdown")
    coupon_code: str | None = Field(default=None, alias="couponCode")
    callback_url: str | None = Field(default=None, alias="callbackUrl")

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "examples": [
                {
                    "amount": "498.00",
                    "cartItems": [
                        {"productId": 1, "title": "Clay lamp", "price": "199.00", "quantity": 2, "maxStock": 10},
                        {"productId": 2, "title": "Cotton wick", "price": "100.00", "quantity": 1, "maxStock": 5},
                    ],
                    "deliveryAddress": {
                        "fullName": "Asha Rao",
                        "phone": "9000000000",
                        "address": "12 MG Road",
                        "city": "Bengaluru",
                        "state": "KA",
                        "pincode": "560001",
                    },
                }
            ]
        },
    )


class PaymentInitResponse(BaseModel):
    success: bool = True
    mode: CheckoutMode
    gateway_reference_id: str
    order_number: str
    pending_order_id: int
    amount: int
    currency: str
    payment_link_url: str | None = None
    key_id: str | None = None
    status: str | None = None


class VerifyPaymentLinkRequest(BaseModel):
    payment_link_id: str = Field(min_length=1)
    manual_verification: bool = True


class CheckoutVerifyRequest(BaseModel):
    gateway_order_id: str = Field(min_length=1)
    gateway_payment_id: str = Field(min_length=1)
    gateway_signature: str = Field(min_length=1)


class VerificationResponse(BaseModel):
    success: bool
    order_id: int | None = None
    order_number: str | None = None
    payment_id: str | None = None
    pending: bool = False
    expired: bool = False
    failed: bool = False
    message: str


class PendingOrderResponse(BaseModel):
    id: int
    order_number: str
    total_amount: Decimal
    gateway_reference_id: str
    checkout_mode: CheckoutMode
    items: list[dict]
    delivery_address: dict
    price_breakdown: dict | None = None
    created_at: str

    @field_serializer("total_amount")
    def serialize_amount(self, value: Decimal) -> str:
        return format(value, "f")

    @classmethod
    def from_model(cls, pending) -> "PendingOrderResponse":
        return cls(
            id=pending.id,
            order_number=pending.order_number,
            total_amount=pending.total_amount,
            gateway_reference_id=pending.gateway_reference_id,
            checkout_mode=pending.checkout_mode,
            items=pending.items or [],
            delivery_address=pending.delivery_address or {},
            price_breakdown=pending.price_breakdown,
            created_at=pending.created_at.isoformat() if pending.created_at else "",
        )


class CheckoutMethodsResponse(BaseModel):
    available_modes: list[CheckoutMode]
    enabled_modes: list[CheckoutMode]

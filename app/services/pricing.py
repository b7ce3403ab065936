from decimal import Decimal

from app.services.money import quantize_amount

COUPON_RATES = {
    "SAVE10": Decimal("0.10"),
    "WELCOME20": Decimal("0.20"),
}
FREE_DELIVERY_THRESHOLD = Decimal("500")
DELIVERY_CHARGE = Decimal("50")
PLATFORM_CHARGE_RATE = Decimal("0.02")
GST_RATE = Decimal("0.18")


def calculate_price_breakdown(subtotal: Decimal, coupon_code: str | None = None) -> dict[str, Decimal]:
    """Storefront price breakdown for a cart subtotal, in major units."""
    subtotal = quantize_amount(subtotal)
    coupon_rate = COUPON_RATES.get((coupon_code or "").strip().upper(), Decimal("0"))
    coupon_discount = quantize_amount(subtotal * coupon_rate)
    discount = Decimal("0.00")
    delivery_charge = Decimal("0.00") if subtotal >= FREE_DELIVERY_THRESHOLD else quantize_amount(DELIVERY_CHARGE)
    platform_charge = quantize_amount(subtotal * PLATFORM_CHARGE_RATE)

    amount_before_tax = subtotal - discount - coupon_discount + delivery_charge + platform_charge
    gst = quantize_amount(amount_before_tax * GST_RATE)

    return {
        "subtotal": subtotal,
        "discount": discount,
        "coupon_discount": coupon_discount,
        "delivery_charge": delivery_charge,
        "platform_charge": platform_charge,
        "gst": gst,
        "total": quantize_amount(amount_before_tax + gst),
    }


def cart_subtotal(items) -> Decimal:
    return quantize_amount(sum((Decimal(str(item.price)) * item.quantity for item in items), Decimal("0")))

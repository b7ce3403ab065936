"""Single boundary between major units (rupees) and gateway minor units (paise).

Storefront, database and price breakdowns hold ``Decimal`` major units with
two decimal places. The gateway API only ever sees integer minor units.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

MINOR_UNITS_PER_MAJOR = 100
_CENT = Decimal("0.01")


def quantize_amount(amount: Decimal | int | float | str) -> Decimal:
    try:
        value = Decimal(str(amount))
    except InvalidOperation as exc:
        raise ValueError(f"Invalid amount: {amount!r}") from exc
    return value.quantize(_CENT, rounding=ROUND_HALF_UP)


def to_minor_units(amount: Decimal | int | float | str) -> int:
    """Major units (e.g. ``Decimal("498.00")``) -> minor units (``49800``)."""
    return int(quantize_amount(amount) * MINOR_UNITS_PER_MAJOR)


def from_minor_units(amount_minor: int) -> Decimal:
    """Minor units (``49800``) -> major units (``Decimal("498.00")``)."""
    return quantize_amount(Decimal(int(amount_minor)) / MINOR_UNITS_PER_MAJOR)

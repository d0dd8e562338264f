"""Pure pricing rules for quotations.

Nothing here touches the database: every function takes plain values or
objects exposing the relevant attributes and returns ``Decimal`` results at
full precision. Line prices are recomputed from their raw inputs, so stored
four-place values never feed back into a total. Rounding to two places is a
display concern.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

ZERO = Decimal("0")
HUNDRED = Decimal("100")
STORED_PLACES = Decimal("0.0001")
SQ_MM_PER_SQ_FT = Decimal("92903.04")
DEFAULT_PRICE_PER_SQFT = Decimal("130")


@dataclass(frozen=True)
class RoomTotals:
    selling_price: Decimal
    discounted_price: Decimal
    installation_amount: Decimal = ZERO


@dataclass(frozen=True)
class QuotationTotals:
    total_selling_price: Decimal
    total_discounted_price: Decimal
    after_discount: Decimal
    taxable_amount: Decimal
    gst_amount: Decimal
    final_price: Decimal
    total_installation_charges: Decimal = ZERO


def as_decimal(value):
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value or 0))


def quantize_stored(value):
    return as_decimal(value).quantize(STORED_PLACES, rounding=ROUND_HALF_UP)


def compute_line_discounted_price(selling_price, discount=None, discount_type="percentage"):
    """Unit price after the line discount.

    Percentage discounts are clamped to 0-100 and fixed discounts never take
    the price below zero, so the result is always within ``[0, selling_price]``.
    """
    price = as_decimal(selling_price)
    discount = as_decimal(discount)
    if discount <= ZERO:
        return price
    if discount_type == "fixed":
        return max(ZERO, price - discount)
    discount = min(discount, HUNDRED)
    return price - price * discount / HUNDRED


def compute_room_totals(products, accessories, charges=()):
    selling = ZERO
    discounted = ZERO
    for line in [*products, *accessories]:
        quantity = as_decimal(line.quantity)
        unit_price = compute_line_discounted_price(line.selling_price, line.discount, line.discount_type)
        selling += as_decimal(line.selling_price) * quantity
        discounted += unit_price * quantity
    return RoomTotals(
        selling_price=selling,
        discounted_price=discounted,
        installation_amount=compute_installation_total(charges),
    )


def compute_installation_area(width_mm, height_mm):
    return as_decimal(width_mm) * as_decimal(height_mm) / SQ_MM_PER_SQ_FT


def compute_installation_amount(width_mm, height_mm, price_per_sqft=DEFAULT_PRICE_PER_SQFT):
    return compute_installation_area(width_mm, height_mm) * as_decimal(price_per_sqft)


def compute_installation_total(charges):
    return sum((as_decimal(charge.amount) for charge in charges), ZERO)


def compute_quotation_totals(quotation, rooms):
    """Totals for ``quotation`` from per-room figures.

    ``rooms`` holds ``RoomTotals`` (or anything with the same attributes);
    pass the output of ``compute_room_totals`` to keep full precision.
    """
    rooms = list(rooms)
    base = sum((as_decimal(room.discounted_price) for room in rooms), ZERO)
    global_discount = as_decimal(quotation.global_discount)
    after_discount = base - base * global_discount / HUNDRED
    taxable_amount = after_discount + as_decimal(quotation.installation_handling)
    gst_amount = taxable_amount * as_decimal(quotation.gst_percentage) / HUNDRED
    return QuotationTotals(
        total_selling_price=sum((as_decimal(room.selling_price) for room in rooms), ZERO),
        total_discounted_price=base,
        after_discount=after_discount,
        taxable_amount=taxable_amount,
        gst_amount=gst_amount,
        final_price=taxable_amount + gst_amount,
        total_installation_charges=sum(
            (as_decimal(getattr(room, "installation_amount", ZERO)) for room in rooms), ZERO
        ),
    )

"""
Booking fee calculator.

Flat fee of 10 for carts worth 100 or more, 10% (rounded half up to whole
units) below that. Amounts stay in major units until the gateway boundary.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Union

from ...errors import EmptyCartError
from .schemas import BookingTotal, LineItem

FLAT_FEE_THRESHOLD = Decimal("100")
FLAT_BOOKING_FEE = Decimal("10")
PERCENTAGE_BOOKING_FEE = Decimal("0.10")

CENT = Decimal("0.01")


def compute_booking_fee(service_total: Decimal) -> Decimal:
    """Booking fee for a positive service total"""
    if service_total <= 0:
        raise EmptyCartError("Select at least one paid service before booking")
    if service_total >= FLAT_FEE_THRESHOLD:
        return FLAT_BOOKING_FEE
    return (service_total * PERCENTAGE_BOOKING_FEE).quantize(Decimal("1"), rounding=ROUND_HALF_UP)


def compute_booking_total(line_items: Iterable[Union[LineItem, dict]]) -> BookingTotal:
    """
    Compute service total, booking fee and total payable for a cart.

    Raises EmptyCartError when nothing payable is selected, so a booking can
    never be charged for the fee alone.
    """
    items = [item if isinstance(item, LineItem) else LineItem(**item) for item in line_items]
    if not items:
        raise EmptyCartError("Select at least one service before booking")

    service_total = sum((item.price for item in items), Decimal("0")).quantize(CENT, rounding=ROUND_HALF_UP)
    booking_fee = compute_booking_fee(service_total)

    return BookingTotal(
        service_total=service_total,
        booking_fee=booking_fee,
        total_payable=(service_total + booking_fee).quantize(CENT, rounding=ROUND_HALF_UP),
    )


def to_minor_units(amount: Union[Decimal, int, float, str]) -> int:
    """Convert a major-unit amount to an integer count of minor units (x100)"""
    value = Decimal(str(amount)).quantize(CENT, rounding=ROUND_HALF_UP)
    return int(value * 100)

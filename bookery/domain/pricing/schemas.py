"""Pricing schemas - cart line items and computed totals"""

from decimal import Decimal

from pydantic import BaseModel, field_validator


class LineItem(BaseModel):
    """A selected service type and its price in major currency units"""

    id: str
    price: Decimal

    @field_validator("price")
    @classmethod
    def validate_price(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("price cannot be negative")
        return v


class BookingTotal(BaseModel):
    service_total: Decimal
    booking_fee: Decimal
    total_payable: Decimal


class QuoteRequest(BaseModel):
    service_type_ids: list[str]

"""Payments domain schemas - booking metadata, gateway results and API payloads"""

from datetime import date
from decimal import Decimal
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, field_validator

# ============================================================================
# BOOKING METADATA (stored on the payment, read back by the finalizer)
# ============================================================================


class BeautyBookingMetadata(BaseModel):
    booking_type: Literal["beauty"] = "beauty"
    service_type_ids: list[str]
    specialist_id: Optional[str] = None
    scheduled_date: Optional[date] = None
    scheduled_time: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("service_type_ids")
    @classmethod
    def validate_service_type_ids(cls, v: list[str]) -> list[str]:
        if not v:
            raise ValueError("at least one service type is required")
        return v


class LaundryBookingMetadata(BaseModel):
    booking_type: Literal["laundry"] = "laundry"
    laundry_service_id: str
    service_type: Optional[str] = None
    pickup_address: str
    delivery_address: str
    pickup_instructions: Optional[str] = None
    delivery_instructions: Optional[str] = None
    pickup_date: Optional[date] = None
    pickup_time: Optional[str] = None
    delivery_date: Optional[date] = None
    delivery_time: Optional[str] = None
    items_description: Optional[str] = None
    special_instructions: Optional[str] = None
    estimated_weight: Optional[float] = Field(default=None, ge=0)


class CleaningBookingMetadata(BaseModel):
    booking_type: Literal["cleaning"] = "cleaning"
    cleaning_service_id: str
    specialist_id: Optional[str] = None
    service_date: Optional[date] = None
    service_time: Optional[str] = None
    service_address: str
    property_type: Optional[str] = None
    num_rooms: Optional[int] = Field(default=None, ge=0)
    num_bathrooms: Optional[int] = Field(default=None, ge=0)
    square_footage: Optional[int] = Field(default=None, ge=0)
    addon_services: list[str] = []
    special_instructions: Optional[str] = None
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    customer_email: Optional[str] = None


BookingMetadata = Annotated[
    Union[BeautyBookingMetadata, LaundryBookingMetadata, CleaningBookingMetadata],
    Field(discriminator="booking_type"),
]

booking_metadata_adapter = TypeAdapter(BookingMetadata)


def parse_booking_metadata(raw: Optional[dict]):
    """Validate a stored metadata bag into its booking-type record (raises pydantic ValidationError)"""
    return booking_metadata_adapter.validate_python(raw or {})


# ============================================================================
# GATEWAY RESULTS
# ============================================================================


class GatewaySession(BaseModel):
    url: str
    session_id: str
    reference: str


class GatewayVerification(BaseModel):
    reference: str
    status: Literal["complete", "failed", "pending"]
    payer_email: Optional[str] = None
    amount: Optional[int] = None  # minor currency units
    currency: Optional[str] = None
    metadata: Optional[dict] = None


# ============================================================================
# API PAYLOADS
# ============================================================================


class InitiatePaymentRequest(BaseModel):
    """Start checkout. amount is the fee-inclusive total payable in major units."""

    amount: Decimal
    description: str
    metadata: BookingMetadata

    @field_validator("amount")
    @classmethod
    def validate_amount(cls, v: Decimal) -> Decimal:
        if v <= 0:
            raise ValueError("amount must be greater than zero")
        return v


class InitiatePaymentResponse(BaseModel):
    url: str
    session_id: str
    reference: str


class ReferenceRequest(BaseModel):
    reference: Optional[str] = None


class VerifyPaymentResponse(BaseModel):
    reference: str
    status: Literal["complete", "failed", "pending"]
    payer_email: Optional[str] = None
    payment_status: Optional[str] = None  # local payment row status, when known


class PaymentReturnResponse(BaseModel):
    """
    Outcome shown on the payment return page.

    outcome is one of confirmed, declined, pending, paid_not_booked or
    unverified. paid_not_booked means money was taken but no booking exists
    yet; the page must not ask the client to pay again.
    """

    outcome: str
    reference: str
    message: str
    retry_allowed: bool = False
    resource_type: Optional[str] = None
    resource_id: Optional[str] = None
    pending_booking: Optional[dict] = None

"""Bookings domain schemas"""

from typing import Literal, Optional

from pydantic import BaseModel

ResourceType = Literal["appointment", "laundry_order", "cleaning_order"]


class FinalizeRequest(BaseModel):
    reference: Optional[str] = None


class FinalizeResult(BaseModel):
    """Successful finalization; identical for first and repeated calls on a reference"""

    success: bool = True
    resource_type: str
    resource_id: str
    order_reference: Optional[str] = None
    payment_reference: str
    already_finalized: bool = False


class BookingConfirmation(BaseModel):
    """What the notifier needs to announce a freshly finalized booking"""

    booking_type: str
    resource_type: str
    resource_id: str
    order_reference: str
    client_id: Optional[str] = None
    client_name: Optional[str] = None
    specialist_id: Optional[str] = None
    scheduled_date: Optional[str] = None
    scheduled_time: Optional[str] = None
    addresses: dict[str, str] = {}
    total_amount: int  # minor currency units, what the client paid
    currency: str


class StatusTransitionRequest(BaseModel):
    status: str
    notes: Optional[str] = None


class StatusTransitionResponse(BaseModel):
    resource_type: str
    resource_id: str
    previous_status: str
    status: str

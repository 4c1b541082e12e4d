"""
Payment return handling - runs when the client comes back from the gateway.

Verifies the reference and, once the gateway reports the payment complete,
finalizes the booking. The webhook may already have finalized it; both paths
end on the same booking because finalization is idempotent.
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ...cache import PendingBookingStore, pending_bookings
from ...errors import BookingError, ExternalServiceError, ForbiddenError, ValidationError
from ..bookings.finalizer import BookingFinalizer
from .schemas import PaymentReturnResponse
from .service import PaymentService

logger = logging.getLogger(__name__)


class PaymentReturnHandler:
    def __init__(
        self,
        db: Session,
        payment_service: Optional[PaymentService] = None,
        finalizer=None,
        pending_store: Optional[PendingBookingStore] = None,
    ):
        self.db = db
        self.payments = payment_service or PaymentService(db)
        self.finalizer = finalizer or BookingFinalizer(db, payment_service=self.payments)
        self.pending_store = pending_store or pending_bookings

    async def handle(self, reference: Optional[str], actor_id: Optional[str] = None) -> PaymentReturnResponse:
        if not reference:
            raise ValidationError("Missing payment reference. Please return to your booking and try again.")

        pending_booking = self.pending_store.get(actor_id) if actor_id else None

        try:
            verification = await self.payments.verify_payment(reference)
        except ExternalServiceError as e:
            logger.error(f"❌ Could not verify payment {reference} on return: {e.message}")
            return PaymentReturnResponse(
                outcome="unverified",
                reference=reference,
                message="We could not confirm your payment yet. Please try again in a moment.",
                retry_allowed=True,
                pending_booking=pending_booking,
            )

        if verification.status == "failed":
            return PaymentReturnResponse(
                outcome="declined",
                reference=reference,
                message="Your payment was not successful. You have not been charged for this booking.",
                retry_allowed=True,
                pending_booking=pending_booking,
            )
        if verification.status != "complete":
            return PaymentReturnResponse(
                outcome="pending",
                reference=reference,
                message="Your payment is still processing. Please check again shortly.",
                retry_allowed=True,
                pending_booking=pending_booking,
            )

        try:
            result = await self.finalizer.finalize(reference, actor_id=actor_id)
        except ForbiddenError:
            raise
        except BookingError as e:
            logger.error(
                f"❌ Payment {reference} succeeded but booking failed ({e.code}): {e.message} - needs operator follow-up"
            )
            return PaymentReturnResponse(
                outcome="paid_not_booked",
                reference=reference,
                message=(
                    "Your payment was received but we could not complete your booking. "
                    "You do not need to pay again; our team will contact you."
                ),
                pending_booking=pending_booking,
            )
        finally:
            if actor_id:
                self.pending_store.clear(actor_id)

        return PaymentReturnResponse(
            outcome="confirmed",
            reference=reference,
            message="Your booking is confirmed.",
            resource_type=result.resource_type,
            resource_id=result.resource_id,
            pending_booking=pending_booking,
        )

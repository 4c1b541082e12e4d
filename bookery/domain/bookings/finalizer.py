"""
Booking finalizer - turns a paid payment into exactly one booking.

Finalization may run from the client's return page, the gateway webhook and
the reconciliation job, possibly at the same time for the same reference.
All of them converge on one booking:

- a payment that is already completed and linked short-circuits before any
  write
- the booking, its line items and the payment claim are written in one
  transaction
- each booking table has a unique payment_id and the payment claim is a
  conditional update on an unlinked payment, so a losing writer rolls back
  and reports the winner's booking instead of creating a second one
"""

import logging
from decimal import Decimal
from typing import Callable, Optional

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ...errors import (
    BookingError,
    ConflictError,
    ForbiddenError,
    InvalidPaymentType,
    PartialFailure,
    PaymentNotCompleted,
    PaymentNotFound,
    ServicesNotFound,
    ValidationError,
)
from ...models import Appointment, AppointmentService, CleaningOrder, LaundryOrder, Payment, generate_uuid
from ...services.notification_service import BookingNotifier
from ..payments.repository import PaymentRepository
from ..payments.schemas import (
    BeautyBookingMetadata,
    CleaningBookingMetadata,
    LaundryBookingMetadata,
    parse_booking_metadata,
)
from ..payments.service import PaymentService, laundry_service_price
from ..pricing import to_minor_units
from .references import generate_order_reference
from .repository import BOOKING_RESOURCES, BookingRepository
from .schemas import BookingConfirmation, FinalizeResult

logger = logging.getLogger(__name__)


def _iso(value) -> Optional[str]:
    return value.isoformat() if value is not None else None


class BookingFinalizer:
    """Creates the booking for a paid payment reference, at most once"""

    def __init__(
        self,
        db: Session,
        payment_service: Optional[PaymentService] = None,
        notifier: Optional[BookingNotifier] = None,
        reference_generator: Optional[Callable[[Session, str], str]] = None,
    ):
        self.db = db
        self.repo = BookingRepository()
        self.payment_repo = PaymentRepository()
        self.payments = payment_service or PaymentService(db)
        self.notifier = notifier or BookingNotifier(db)
        self.generate_reference = reference_generator or generate_order_reference

    async def finalize(self, reference: Optional[str], actor_id: Optional[str] = None) -> FinalizeResult:
        if not reference:
            raise ValidationError("Missing payment reference")

        payment = await self._load_payment(reference)

        if self._is_linked(payment):
            return self._existing_result(payment)

        if payment.user_id and actor_id and payment.user_id != actor_id:
            logger.warning(
                f"🚫 User {actor_id} tried to finalize payment {reference} owned by {payment.user_id}"
            )
            raise ForbiddenError("This payment belongs to another account")

        existing = self.repo.find_resource_for_payment(self.db, payment.id)
        if existing is not None:
            return self._relink(payment, *existing)

        metadata = self._parse_metadata(payment)

        await self._ensure_paid(payment)
        if self._is_linked(payment):
            return self._existing_result(payment)

        if not payment.user_id and actor_id:
            payment.user_id = actor_id

        try:
            if isinstance(metadata, BeautyBookingMetadata):
                resource, line_items, confirmation = self._build_appointment(payment, metadata)
            elif isinstance(metadata, LaundryBookingMetadata):
                resource, line_items, confirmation = self._build_laundry_order(payment, metadata)
            else:
                resource, line_items, confirmation = self._build_cleaning_order(payment, metadata)
        except BookingError:
            self.db.rollback()
            raise

        resource_type = BOOKING_RESOURCES[metadata.booking_type]
        try:
            self.db.add(resource)
            self.db.flush()
            for item in line_items:
                self.db.add(item)
            self.db.flush()
            if not self.repo.claim_payment(self.db, payment.id, resource_type, resource.id):
                raise ConflictError("Payment already claimed by another booking")
            self.db.commit()
        except (IntegrityError, ConflictError) as e:
            self.db.rollback()
            winner = self._find_winner(reference)
            if winner is not None:
                logger.info(f"🔁 Concurrent finalize for {reference} already created {winner.resource_id}")
                return winner
            logger.error(f"❌ Payment {reference} is paid but its booking violated a constraint: {e}")
            raise PartialFailure(
                "Payment received but the booking could not be saved",
                details={"payment_reference": reference},
            ) from e
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Payment {reference} is paid but its booking could not be saved: {e}")
            raise PartialFailure(
                "Payment received but the booking could not be saved",
                details={"payment_reference": reference},
            ) from e

        logger.info(
            f"✅ Finalized {resource_type} {resource.id} ({confirmation.order_reference}) for payment {reference}"
        )

        try:
            await self.notifier.notify_booking_finalized(confirmation)
        except Exception as e:
            logger.error(f"❌ Notifications failed for {resource_type} {resource.id}: {e}")

        return FinalizeResult(
            resource_type=resource_type,
            resource_id=confirmation.resource_id,
            order_reference=confirmation.order_reference,
            payment_reference=reference,
        )

    # ------------------------------------------------------------------
    # Payment state
    # ------------------------------------------------------------------

    async def _load_payment(self, reference: str) -> Payment:
        payment = self.payment_repo.get_by_reference(self.db, reference)
        if payment is not None:
            return payment

        logger.info(f"🔍 Payment {reference} not found locally, refreshing from gateway")
        try:
            await self.payments.verify_payment(reference)
        except BookingError as e:
            logger.warning(f"⚠️ Refresh for {reference} failed: {e.message}")

        payment = self.payment_repo.get_by_reference(self.db, reference)
        if payment is None:
            raise PaymentNotFound("Payment not found")
        return payment

    @staticmethod
    def _is_linked(payment: Payment) -> bool:
        return payment.status == "completed" and payment.resource_id is not None

    async def _ensure_paid(self, payment: Payment) -> None:
        if payment.status == "failed":
            raise PaymentNotCompleted("Payment was declined", gateway_status="failed")
        if payment.status == "completed" or payment.gateway_status == "complete":
            return

        verification = await self.payments.verify_payment(payment.reference)
        self.db.refresh(payment)
        if verification.status != "complete":
            message = "Payment was declined" if verification.status == "failed" else "Payment is still processing"
            raise PaymentNotCompleted(message, gateway_status=verification.status)

    def _parse_metadata(self, payment: Payment):
        try:
            return parse_booking_metadata(payment.booking_metadata)
        except PydanticValidationError as e:
            logger.warning(f"⚠️ Payment {payment.reference} has invalid booking metadata: {e}")
            raise InvalidPaymentType("Payment is not for a booking this service can complete") from e

    def _existing_result(self, payment: Payment, already_finalized: bool = True) -> FinalizeResult:
        resource = self.repo.get_resource(self.db, payment.resource_type, payment.resource_id)
        return FinalizeResult(
            resource_type=payment.resource_type,
            resource_id=payment.resource_id,
            order_reference=getattr(resource, "order_reference", None),
            payment_reference=payment.reference,
            already_finalized=already_finalized,
        )

    def _relink(self, payment: Payment, resource_type: str, resource) -> FinalizeResult:
        """Repair a booking that exists for this payment but is not linked to it"""
        logger.warning(
            f"🔧 Relinking payment {payment.reference} to existing {resource_type} {resource.id}"
        )
        if not self.repo.claim_payment(self.db, payment.id, resource_type, resource.id):
            self.db.rollback()
            return self._resolve_conflict(payment.reference)
        self.db.commit()
        self.db.refresh(payment)
        return self._existing_result(payment)

    def _find_winner(self, reference: str) -> Optional[FinalizeResult]:
        """Booking another writer created for this payment, if any"""
        self.db.expire_all()
        payment = self.payment_repo.get_by_reference(self.db, reference)
        if payment is None:
            return None
        if payment.resource_id is not None:
            return self._existing_result(payment)

        existing = self.repo.find_resource_for_payment(self.db, payment.id)
        if existing is not None:
            return self._relink(payment, *existing)
        return None

    def _resolve_conflict(self, reference: str) -> FinalizeResult:
        """After losing a race, report the booking the winning writer created"""
        winner = self._find_winner(reference)
        if winner is not None:
            return winner

        logger.error(f"❌ Payment {reference} conflicted but no booking is linked to it")
        raise PartialFailure(
            "Payment received but the booking could not be completed",
            details={"payment_reference": reference},
        )

    # ------------------------------------------------------------------
    # Booking builders
    # ------------------------------------------------------------------

    def _client_name(self, client_id: Optional[str], fallback: Optional[str] = None) -> Optional[str]:
        profile = self.repo.get_profile(self.db, client_id)
        if profile and profile.full_name:
            return profile.full_name
        return fallback

    def _build_appointment(self, payment: Payment, metadata: BeautyBookingMetadata):
        service_types = self.repo.get_service_types_with_service(self.db, metadata.service_type_ids)
        if not service_types:
            raise ServicesNotFound("None of the selected services could be found")

        by_id = {st.id: st for st in service_types}
        missing = [st_id for st_id in metadata.service_type_ids if st_id not in by_id]
        if missing:
            logger.warning(f"⚠️ Payment {payment.reference}: unknown service types {missing}")

        # One line item per base service
        selected = []
        seen_services = set()
        for st_id in metadata.service_type_ids:
            service_type = by_id.get(st_id)
            if service_type is None or service_type.service_id in seen_services:
                continue
            seen_services.add(service_type.service_id)
            selected.append(service_type)

        specialist_id = self._chosen_specialist(payment, metadata) or selected[0].service.specialist_id
        order_reference = self.generate_reference(self.db, "appointment")

        appointment = Appointment(
            id=generate_uuid(),
            order_reference=order_reference,
            client_id=payment.user_id,
            specialist_id=specialist_id,
            payment_id=payment.id,
            scheduled_date=metadata.scheduled_date,
            scheduled_time=metadata.scheduled_time,
            notes=metadata.notes,
            total_amount=payment.amount,
            status="confirmed",
        )
        line_items = [
            AppointmentService(
                appointment_id=appointment.id,
                service_id=st.service_id,
                service_type_id=st.id,
                price=st.price,
            )
            for st in selected
        ]

        confirmation = BookingConfirmation(
            booking_type="beauty",
            resource_type="appointment",
            resource_id=appointment.id,
            order_reference=order_reference,
            client_id=payment.user_id,
            client_name=self._client_name(payment.user_id, payment.payer_email),
            specialist_id=specialist_id,
            scheduled_date=_iso(metadata.scheduled_date),
            scheduled_time=metadata.scheduled_time,
            total_amount=payment.amount,
            currency=payment.currency,
        )
        return appointment, line_items, confirmation

    def _chosen_specialist(self, payment: Payment, metadata) -> Optional[str]:
        """Specialist picked at checkout, ignored when it is no longer a valid specialist"""
        if not metadata.specialist_id:
            return None
        if self.repo.get_specialist(self.db, metadata.specialist_id, metadata.booking_type) is None:
            logger.warning(
                f"⚠️ Payment {payment.reference}: specialist {metadata.specialist_id} is not a "
                f"{metadata.booking_type} specialist, assigning another"
            )
            return None
        return metadata.specialist_id

    def _build_laundry_order(self, payment: Payment, metadata: LaundryBookingMetadata):
        # Includes services deactivated since checkout
        laundry_service = self.payment_repo.get_laundry_service(self.db, metadata.laundry_service_id, active_only=False)
        if laundry_service is None:
            raise ServicesNotFound(
                "The booked laundry service could not be found",
                details={"laundry_service_id": metadata.laundry_service_id},
            )

        specialist = self.repo.first_available_specialist(self.db, "laundry")
        if specialist is None:
            logger.warning(f"⚠️ No laundry specialist available for payment {payment.reference}")

        order_reference = self.generate_reference(self.db, "laundry_order")
        order = LaundryOrder(
            id=generate_uuid(),
            order_reference=order_reference,
            client_id=payment.user_id,
            specialist_id=specialist.id if specialist else None,
            payment_id=payment.id,
            laundry_service_id=metadata.laundry_service_id,
            service_type=metadata.service_type,
            pickup_address=metadata.pickup_address,
            delivery_address=metadata.delivery_address,
            pickup_instructions=metadata.pickup_instructions,
            delivery_instructions=metadata.delivery_instructions,
            pickup_date=metadata.pickup_date,
            pickup_time=metadata.pickup_time,
            delivery_date=metadata.delivery_date,
            delivery_time=metadata.delivery_time,
            items_description=metadata.items_description,
            special_instructions=metadata.special_instructions,
            estimated_weight=metadata.estimated_weight,
            amount=to_minor_units(laundry_service_price(laundry_service, metadata.estimated_weight)),
            status="pending_pickup",
        )

        confirmation = BookingConfirmation(
            booking_type="laundry",
            resource_type="laundry_order",
            resource_id=order.id,
            order_reference=order_reference,
            client_id=payment.user_id,
            client_name=self._client_name(payment.user_id, payment.payer_email),
            specialist_id=order.specialist_id,
            scheduled_date=_iso(metadata.pickup_date),
            scheduled_time=metadata.pickup_time,
            addresses={"Pickup": metadata.pickup_address, "Delivery": metadata.delivery_address},
            total_amount=payment.amount,
            currency=payment.currency,
        )
        return order, [], confirmation

    def _build_cleaning_order(self, payment: Payment, metadata: CleaningBookingMetadata):
        cleaning_service = self.payment_repo.get_cleaning_service(self.db, metadata.cleaning_service_id, active_only=False)
        if cleaning_service is None:
            raise ServicesNotFound(
                "The booked cleaning service could not be found",
                details={"cleaning_service_id": metadata.cleaning_service_id},
            )

        specialist_id = self._chosen_specialist(payment, metadata) or cleaning_service.specialist_id
        if not specialist_id:
            specialist = self.repo.first_available_specialist(self.db, "cleaning")
            specialist_id = specialist.id if specialist else None
        if not specialist_id:
            logger.warning(f"⚠️ No cleaning specialist available for payment {payment.reference}")

        order_reference = self.generate_reference(self.db, "cleaning_order")
        order = CleaningOrder(
            id=generate_uuid(),
            order_reference=order_reference,
            client_id=payment.user_id,
            specialist_id=specialist_id,
            payment_id=payment.id,
            cleaning_service_id=metadata.cleaning_service_id,
            service_date=metadata.service_date,
            service_time=metadata.service_time,
            service_address=metadata.service_address,
            property_type=metadata.property_type,
            num_rooms=metadata.num_rooms,
            num_bathrooms=metadata.num_bathrooms,
            square_footage=metadata.square_footage,
            addon_services=metadata.addon_services,
            special_instructions=metadata.special_instructions,
            customer_name=metadata.customer_name,
            customer_phone=metadata.customer_phone,
            customer_email=metadata.customer_email or payment.payer_email,
            amount=to_minor_units(Decimal(str(cleaning_service.total_price))),
            status="pending",
        )

        confirmation = BookingConfirmation(
            booking_type="cleaning",
            resource_type="cleaning_order",
            resource_id=order.id,
            order_reference=order_reference,
            client_id=payment.user_id,
            client_name=metadata.customer_name or self._client_name(payment.user_id, payment.payer_email),
            specialist_id=specialist_id,
            scheduled_date=_iso(metadata.service_date),
            scheduled_time=metadata.service_time,
            addresses={"Address": metadata.service_address},
            total_amount=payment.amount,
            currency=payment.currency,
        )
        return order, [], confirmation


async def finalize_booking(
    db: Session,
    reference: Optional[str],
    actor_id: Optional[str] = None,
    finalizer: Optional[BookingFinalizer] = None,
) -> dict:
    """Finalize a booking and report {success, resource_id, ...} or {success: False, error, code}"""
    finalizer = finalizer or BookingFinalizer(db)
    try:
        result = await finalizer.finalize(reference, actor_id=actor_id)
    except BookingError as e:
        logger.warning(f"⚠️ Finalize failed for {reference}: {e.code} {e.message}")
        return e.to_dict()
    return result.model_dump()

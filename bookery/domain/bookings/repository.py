"""Bookings repository - Database operations for appointments and orders"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session

from ...models import (
    Appointment,
    CleaningOrder,
    LaundryOrder,
    Payment,
    Profile,
    Service,
    ServiceType,
)

RESOURCE_MODELS = {
    "appointment": Appointment,
    "laundry_order": LaundryOrder,
    "cleaning_order": CleaningOrder,
}

# booking type tag -> resource type created for it
BOOKING_RESOURCES = {
    "beauty": "appointment",
    "laundry": "laundry_order",
    "cleaning": "cleaning_order",
}

SPECIALIST_FLAGS = {
    "beauty": Profile.is_beauty_specialist,
    "laundry": Profile.is_laundry_specialist,
    "cleaning": Profile.is_cleaning_specialist,
}


class BookingRepository:
    """Repository for booking database operations"""

    @staticmethod
    def get_profile(db: Session, profile_id: Optional[str]) -> Optional[Profile]:
        if not profile_id:
            return None
        return db.query(Profile).filter(Profile.id == profile_id).first()

    @staticmethod
    def get_service_types_with_service(db: Session, service_type_ids: list[str]) -> list[ServiceType]:
        return (
            db.query(ServiceType)
            .join(Service, ServiceType.service_id == Service.id)
            .filter(ServiceType.id.in_(service_type_ids))
            .all()
        )

    @staticmethod
    def get_specialist(db: Session, profile_id: Optional[str], booking_type: str) -> Optional[Profile]:
        """Profile with this id only if it is a specialist for the booking type"""
        if not profile_id:
            return None
        return (
            db.query(Profile)
            .filter(Profile.id == profile_id, SPECIALIST_FLAGS[booking_type].is_(True))
            .first()
        )

    @staticmethod
    def first_available_specialist(db: Session, booking_type: str) -> Optional[Profile]:
        """First available specialist the query returns; no ordering or load balancing"""
        return (
            db.query(Profile)
            .filter(SPECIALIST_FLAGS[booking_type].is_(True), Profile.availability.is_(True))
            .first()
        )

    @staticmethod
    def get_resource(db: Session, resource_type: str, resource_id: str):
        model = RESOURCE_MODELS.get(resource_type)
        if model is None:
            return None
        return db.query(model).filter(model.id == resource_id).first()

    @staticmethod
    def find_resource_for_payment(db: Session, payment_id: str) -> Optional[tuple[str, object]]:
        """Booking already created for this payment, as (resource_type, resource)"""
        for resource_type, model in RESOURCE_MODELS.items():
            resource = db.query(model).filter(model.payment_id == payment_id).first()
            if resource is not None:
                return resource_type, resource
        return None

    @staticmethod
    def reference_exists(db: Session, reference: str) -> bool:
        return any(
            db.query(model.id).filter(model.order_reference == reference).first() is not None
            for model in RESOURCE_MODELS.values()
        )

    @staticmethod
    def claim_payment(db: Session, payment_id: str, resource_type: str, resource_id: str) -> bool:
        """
        Mark the payment completed and link it to the new booking.

        Conditional on the payment not being linked yet, so of two concurrent
        finalizers only one can claim it. Returns False for the loser.
        """
        updated = (
            db.query(Payment)
            .filter(Payment.id == payment_id, Payment.resource_id.is_(None))
            .update(
                {
                    Payment.status: "completed",
                    Payment.resource_type: resource_type,
                    Payment.resource_id: resource_id,
                    Payment.completed_at: datetime.now(timezone.utc),
                },
                synchronize_session=False,
            )
        )
        return updated == 1

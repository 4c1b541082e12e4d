"""
Booking status lifecycle
Declared transition tables per booking type and the effects attached to them
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session

from ..domain.bookings.repository import RESOURCE_MODELS, BookingRepository
from ..domain.bookings.schemas import StatusTransitionResponse
from ..errors import ConflictError, ForbiddenError, InvalidTransition, ResourceNotFound, ValidationError
from ..models import LaundryStatusHistory
from .earnings_service import process_earnings
from .notification_service import create_notification

logger = logging.getLogger(__name__)

# Allowed next statuses; terminal statuses map to an empty list
VALID_TRANSITIONS = {
    "appointment": {
        "pending": ["confirmed", "canceled"],
        "confirmed": ["completed", "canceled"],
        "completed": [],
        "canceled": [],
    },
    "laundry_order": {
        "pending_pickup": ["picked_up", "cancelled"],
        "picked_up": ["washing", "cancelled"],
        "washing": ["ready", "cancelled"],
        "ready": ["out_for_delivery", "cancelled"],
        "out_for_delivery": ["delivered", "cancelled"],
        "delivered": [],
        "cancelled": [],
    },
    "cleaning_order": {
        "pending": ["confirmed", "canceled"],
        "confirmed": ["in_progress", "canceled"],
        "in_progress": ["completed", "canceled"],
        "completed": [],
        "canceled": [],
    },
}

CANCEL_STATUS = {
    "appointment": "canceled",
    "laundry_order": "cancelled",
    "cleaning_order": "canceled",
}

TIMESTAMP_COLUMNS = {
    "appointment": {"completed": "completed_at", "canceled": "canceled_at"},
    "laundry_order": {
        "picked_up": "picked_up_at",
        "washing": "washing_started_at",
        "ready": "ready_at",
        "out_for_delivery": "out_for_delivery_at",
        "delivered": "delivered_at",
        "cancelled": "cancelled_at",
    },
    "cleaning_order": {
        "confirmed": "confirmed_at",
        "in_progress": "started_at",
        "completed": "completed_at",
        "canceled": "canceled_at",
    },
}

STATUS_MESSAGES = {
    "confirmed": "Your booking {ref} has been confirmed.",
    "completed": "Your booking {ref} is complete.",
    "canceled": "Your booking {ref} has been canceled.",
    "cancelled": "Your laundry order {ref} has been cancelled.",
    "picked_up": "Your laundry {ref} has been picked up.",
    "washing": "Your laundry {ref} is being washed.",
    "ready": "Your laundry {ref} is clean and ready.",
    "out_for_delivery": "Your laundry {ref} is out for delivery.",
    "delivered": "Your laundry {ref} has been delivered.",
    "in_progress": "Cleaning for {ref} has started.",
}


def validate_status_transition(resource_type: str, current_status: str, new_status: str) -> bool:
    """True only for a transition declared in the table; same-status changes are rejected"""
    table = VALID_TRANSITIONS.get(resource_type)
    if table is None:
        return False
    return new_status in table.get(current_status, [])


class StatusLifecycleManager:
    """Applies caller-requested status changes to appointments and orders"""

    def __init__(self, db: Session, platform_fee_percentage: Optional[float] = None):
        self.db = db
        self.repo = BookingRepository()
        self.platform_fee_percentage = platform_fee_percentage

    def _find(self, resource_id: str, resource_type: Optional[str]):
        if resource_type is not None:
            if resource_type not in RESOURCE_MODELS:
                raise ValidationError(f"Unknown booking type '{resource_type}'")
            resource = self.repo.get_resource(self.db, resource_type, resource_id)
            if resource is not None:
                return resource_type, resource
        else:
            for candidate in RESOURCE_MODELS:
                resource = self.repo.get_resource(self.db, candidate, resource_id)
                if resource is not None:
                    return candidate, resource
        raise ResourceNotFound("Booking not found")

    def _authorize(self, resource_type: str, resource, new_status: str, actor_id: str) -> None:
        """Specialist on the booking or an admin may do any declared change; the client may only cancel"""
        if resource.specialist_id and resource.specialist_id == actor_id:
            return
        actor = self.repo.get_profile(self.db, actor_id)
        if actor is not None and actor.is_admin:
            return
        if resource.client_id == actor_id and new_status == CANCEL_STATUS[resource_type]:
            return
        logger.warning(f"🚫 User {actor_id} not allowed to set {resource_type} {resource.id} to {new_status}")
        raise ForbiddenError("You are not allowed to change this booking")

    def transition_status(
        self,
        resource_id: str,
        new_status: str,
        actor_id: str,
        resource_type: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> StatusTransitionResponse:
        resource_type, resource = self._find(resource_id, resource_type)
        self._authorize(resource_type, resource, new_status, actor_id)

        current_status = resource.status
        if not validate_status_transition(resource_type, current_status, new_status):
            raise InvalidTransition(
                f"Cannot change {resource_type.replace('_', ' ')} from {current_status} to {new_status}",
                details={"current_status": current_status, "requested_status": new_status},
            )

        model = RESOURCE_MODELS[resource_type]
        values = {model.status: new_status}
        timestamp_column = TIMESTAMP_COLUMNS[resource_type].get(new_status)
        if timestamp_column:
            values[getattr(model, timestamp_column)] = datetime.now(timezone.utc)

        # Only applies if nobody changed the status since we read it
        updated = (
            self.db.query(model)
            .filter(model.id == resource.id, model.status == current_status)
            .update(values, synchronize_session=False)
        )
        if updated != 1:
            self.db.rollback()
            raise ConflictError("Booking status changed meanwhile, refresh and try again")

        if resource_type == "laundry_order":
            self.db.add(
                LaundryStatusHistory(
                    order_id=resource.id,
                    previous_status=current_status,
                    status=new_status,
                    changed_by=actor_id,
                    notes=notes,
                )
            )

        self.db.commit()
        self.db.refresh(resource)
        logger.info(f"✅ {resource_type} {resource.id} transitioned: {current_status} → {new_status}")

        self._after_transition(resource_type, resource, current_status, new_status)

        return StatusTransitionResponse(
            resource_type=resource_type,
            resource_id=resource.id,
            previous_status=current_status,
            status=new_status,
        )

    def _after_transition(self, resource_type: str, resource, previous_status: str, new_status: str) -> None:
        if resource.client_id:
            message = STATUS_MESSAGES.get(new_status, "Your booking {ref} was updated.")
            create_notification(
                self.db,
                user_id=resource.client_id,
                title="Booking update",
                message=message.format(ref=resource.order_reference),
                notification_type=f"{resource_type}_status_update",
                related_id=resource.id,
            )

        if resource_type == "appointment" and previous_status == "confirmed" and new_status == "completed":
            try:
                if self.platform_fee_percentage is None:
                    process_earnings(self.db, resource)
                else:
                    process_earnings(self.db, resource, self.platform_fee_percentage)
            except Exception as e:
                self.db.rollback()
                logger.error(f"❌ Earnings processing failed for appointment {resource.id}: {e}")

            if resource.client_id:
                create_notification(
                    self.db,
                    user_id=resource.client_id,
                    title="How was your appointment?",
                    message=f"Rate your experience for booking {resource.order_reference}.",
                    notification_type="rating_prompt",
                    related_id=resource.id,
                )

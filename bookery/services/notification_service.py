"""
Booking Notification Service
Fans out in-app notifications and the specialist email for a finalized booking.
Every channel is best-effort: failures are logged and never fail the booking.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Optional

from sqlalchemy.orm import Session

from ..domain.bookings.schemas import BookingConfirmation
from ..email_service import compile_mjml_to_html, send_email
from ..email_templates import specialist_new_booking_template
from ..models import Notification, Profile

logger = logging.getLogger(__name__)

EmailSender = Callable[[str, str, str], Awaitable[dict]]

BOOKING_LABELS = {
    "beauty": "beauty",
    "laundry": "laundry",
    "cleaning": "cleaning",
}

NOTIFICATION_TTL_DAYS = 30


def create_notification(
    db: Session,
    user_id: str,
    title: str,
    message: str,
    notification_type: str,
    related_id: Optional[str] = None,
    priority: str = "normal",
    expires_in_days: Optional[int] = NOTIFICATION_TTL_DAYS,
) -> bool:
    """Insert one in-app notification; returns False instead of raising"""
    try:
        expires_at = None
        if expires_in_days:
            expires_at = datetime.now(timezone.utc) + timedelta(days=expires_in_days)
        db.add(
            Notification(
                user_id=user_id,
                title=title,
                message=message,
                type=notification_type,
                related_id=related_id,
                priority=priority,
                expires_at=expires_at,
            )
        )
        db.commit()
        return True
    except Exception as e:
        db.rollback()
        logger.error(f"❌ Failed to create {notification_type} notification for {user_id}: {e}")
        return False


class BookingNotifier:
    """Notifies client and assigned specialist about a finalized booking"""

    def __init__(self, db: Session, email_sender: Optional[EmailSender] = None):
        self.db = db
        self.email_sender = email_sender or send_email

    async def notify_booking_finalized(self, booking: BookingConfirmation) -> dict:
        result = {
            "client_notified": False,
            "specialist_notified": False,
            "email_sent": False,
            "email_error": None,
        }
        label = BOOKING_LABELS.get(booking.booking_type, booking.booking_type)

        if booking.client_id:
            result["client_notified"] = create_notification(
                self.db,
                user_id=booking.client_id,
                title="Booking confirmed",
                message=f"Your {label} booking {booking.order_reference} is confirmed.",
                notification_type=f"{booking.booking_type}_booking",
                related_id=booking.resource_id,
            )
        else:
            logger.debug(f"⚠️ No client to notify for {booking.order_reference}")

        if not booking.specialist_id:
            logger.info(f"ℹ️ No specialist assigned to {booking.order_reference}, skipping specialist alert")
            return result

        result["specialist_notified"] = create_notification(
            self.db,
            user_id=booking.specialist_id,
            title=f"New {label} booking",
            message=f"You have a new booking {booking.order_reference} from {booking.client_name or 'a client'}.",
            notification_type=f"{booking.booking_type}_booking_assigned",
            related_id=booking.resource_id,
            priority="high",
        )

        specialist = self.db.query(Profile).filter(Profile.id == booking.specialist_id).first()
        if not specialist or not specialist.email:
            logger.warning(f"⚠️ Specialist {booking.specialist_id} has no email address")
            return result

        try:
            logger.info(f"📧 Sending new booking email to {specialist.email}")
            html = compile_mjml_to_html(
                specialist_new_booking_template(
                    specialist_name=specialist.full_name or "there",
                    client_name=booking.client_name or "A client",
                    booking_label=label,
                    order_reference=booking.order_reference,
                    amount_minor=booking.total_amount,
                    currency=booking.currency,
                    scheduled_date=booking.scheduled_date,
                    scheduled_time=booking.scheduled_time,
                    addresses=booking.addresses,
                )
            )
            await self.email_sender(specialist.email, f"New booking {booking.order_reference}", html)
            result["email_sent"] = True
            logger.info(f"✅ New booking email sent to {specialist.email}")
        except Exception as e:
            result["email_error"] = str(e)
            logger.error(f"❌ Failed to send new booking email to {specialist.email}: {e}")

        return result

"""FastAPI dependency factories shared by the payment and booking routers"""

from typing import Optional

from fastapi import Depends
from sqlalchemy.orm import Session

from .cache import PendingBookingStore, pending_bookings
from .config import PAYSTACK_SECRET_KEY
from .database import get_db
from .domain.bookings.finalizer import BookingFinalizer
from .domain.payments.gateway import PaystackGateway, paystack_gateway
from .domain.payments.return_handler import PaymentReturnHandler
from .domain.payments.service import PaymentService
from .email_service import send_email
from .services.notification_service import BookingNotifier
from .services.status_lifecycle import StatusLifecycleManager


def get_gateway() -> PaystackGateway:
    return paystack_gateway


def get_pending_store() -> PendingBookingStore:
    return pending_bookings


def get_email_sender():
    return send_email


def get_webhook_secret() -> Optional[str]:
    return PAYSTACK_SECRET_KEY


def get_payment_service(
    db: Session = Depends(get_db),
    gateway: PaystackGateway = Depends(get_gateway),
    pending_store: PendingBookingStore = Depends(get_pending_store),
) -> PaymentService:
    """Dependency injection for PaymentService"""
    return PaymentService(db, gateway=gateway, pending_store=pending_store)


def get_notifier(db: Session = Depends(get_db), email_sender=Depends(get_email_sender)) -> BookingNotifier:
    return BookingNotifier(db, email_sender=email_sender)


def get_booking_finalizer(
    db: Session = Depends(get_db),
    payment_service: PaymentService = Depends(get_payment_service),
    notifier: BookingNotifier = Depends(get_notifier),
) -> BookingFinalizer:
    return BookingFinalizer(db, payment_service=payment_service, notifier=notifier)


def get_return_handler(
    db: Session = Depends(get_db),
    payment_service: PaymentService = Depends(get_payment_service),
    finalizer: BookingFinalizer = Depends(get_booking_finalizer),
    pending_store: PendingBookingStore = Depends(get_pending_store),
) -> PaymentReturnHandler:
    return PaymentReturnHandler(db, payment_service=payment_service, finalizer=finalizer, pending_store=pending_store)


def get_lifecycle_manager(db: Session = Depends(get_db)) -> StatusLifecycleManager:
    return StatusLifecycleManager(db)

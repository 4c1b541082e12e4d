"""Payments repository - Database operations for payments and priced catalog lookups"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from ...models import CleaningService, LaundryService, Payment, ServiceType


class PaymentRepository:
    """Repository for payment database operations"""

    @staticmethod
    def get_by_reference(db: Session, reference: str) -> Optional[Payment]:
        return db.query(Payment).filter(Payment.reference == reference).first()

    @staticmethod
    def create(
        db: Session,
        reference: str,
        amount: int,
        currency: str,
        booking_metadata: dict,
        user_id: Optional[str] = None,
        description: Optional[str] = None,
        access_code: Optional[str] = None,
        payer_email: Optional[str] = None,
    ) -> Payment:
        """Add a pending payment to the session (caller commits)"""
        payment = Payment(
            reference=reference,
            amount=amount,
            currency=currency,
            status="pending",
            description=description,
            booking_metadata=booking_metadata,
            user_id=user_id,
            access_code=access_code,
            payer_email=payer_email,
        )
        db.add(payment)
        return payment

    @staticmethod
    def get_unsettled(db: Session, older_than_minutes: int, limit: int = 100) -> list[Payment]:
        """Pending or completed-but-unlinked payments created before the cutoff, oldest first"""
        cutoff = datetime.now(timezone.utc) - timedelta(minutes=older_than_minutes)
        return (
            db.query(Payment)
            .filter(
                or_(
                    Payment.status == "pending",
                    and_(Payment.status == "completed", Payment.resource_id.is_(None)),
                ),
                Payment.created_at <= cutoff,
            )
            .order_by(Payment.created_at.asc())
            .limit(limit)
            .all()
        )

    @staticmethod
    def get_service_types(db: Session, service_type_ids: list[str]) -> list[ServiceType]:
        return db.query(ServiceType).filter(ServiceType.id.in_(service_type_ids)).all()

    @staticmethod
    def get_laundry_service(db: Session, laundry_service_id: str, active_only: bool = True) -> Optional[LaundryService]:
        query = db.query(LaundryService).filter(LaundryService.id == laundry_service_id)
        if active_only:
            query = query.filter(LaundryService.is_active.is_(True))
        return query.first()

    @staticmethod
    def get_cleaning_service(db: Session, cleaning_service_id: str, active_only: bool = True) -> Optional[CleaningService]:
        query = db.query(CleaningService).filter(CleaningService.id == cleaning_service_id)
        if active_only:
            query = query.filter(CleaningService.is_active.is_(True))
        return query.first()

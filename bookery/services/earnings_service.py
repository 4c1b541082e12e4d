"""
Specialist earnings
Credits the specialist's share of a completed appointment, once per payment
"""

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..config import PLATFORM_FEE_PERCENTAGE
from ..models import Appointment, Payment, SpecialistEarning

logger = logging.getLogger(__name__)


def split_earnings(gross_amount: int, platform_fee_percentage: float) -> tuple[int, int]:
    """Return (platform_fee, net_amount) in minor units"""
    fee = (Decimal(gross_amount) * Decimal(str(platform_fee_percentage)) / Decimal("100")).quantize(
        Decimal("1"), rounding=ROUND_HALF_UP
    )
    return int(fee), gross_amount - int(fee)


def process_earnings(
    db: Session,
    appointment: Appointment,
    platform_fee_percentage: float = PLATFORM_FEE_PERCENTAGE,
) -> Optional[SpecialistEarning]:
    """Record earnings for a completed appointment; repeated calls return the existing record"""
    if not appointment.specialist_id:
        logger.warning(f"⚠️ Appointment {appointment.id} has no specialist, no earnings recorded")
        return None

    existing = db.query(SpecialistEarning).filter(SpecialistEarning.payment_id == appointment.payment_id).first()
    if existing:
        logger.info(f"ℹ️ Earnings already recorded for payment {appointment.payment_id}")
        return existing

    payment = db.query(Payment).filter(Payment.id == appointment.payment_id).first()
    if not payment:
        logger.error(f"❌ Payment {appointment.payment_id} for appointment {appointment.id} not found")
        return None

    platform_fee, net_amount = split_earnings(payment.amount, platform_fee_percentage)
    earning = SpecialistEarning(
        specialist_id=appointment.specialist_id,
        appointment_id=appointment.id,
        payment_id=payment.id,
        gross_amount=payment.amount,
        platform_fee=platform_fee,
        net_amount=net_amount,
        platform_fee_percentage=platform_fee_percentage,
        status="available",
    )
    db.add(earning)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        return db.query(SpecialistEarning).filter(SpecialistEarning.payment_id == payment.id).first()

    logger.info(
        f"💰 Earnings for appointment {appointment.id}: gross={payment.amount} fee={platform_fee} net={net_amount}"
    )
    return earning

"""
ARQ Background Worker
Re-verifies payments that never got finalized (lost webhooks, closed return pages)
"""

import logging
import os
from urllib.parse import urlparse

from arq.connections import RedisSettings
from arq.cron import cron

from . import models  # noqa: F401
from .config import RECONCILE_AFTER_MINUTES
from .database import SessionLocal
from .domain.bookings.finalizer import BookingFinalizer, finalize_booking
from .domain.payments.gateway import paystack_gateway
from .domain.payments.repository import PaymentRepository
from .domain.payments.service import PaymentService
from .email_service import send_email
from .services.notification_service import BookingNotifier

logger = logging.getLogger(__name__)


def get_redis_settings() -> RedisSettings:
    """Get Redis settings for ARQ worker"""
    redis_url = os.getenv("REDIS_URL")

    if redis_url:
        parsed = urlparse(redis_url)
        return RedisSettings(
            host=parsed.hostname or "localhost",
            port=parsed.port or 6379,
            password=parsed.password,
            ssl=parsed.scheme == "rediss",
            conn_timeout=15,
            conn_retry_delay=1,
        )

    return RedisSettings(
        host=os.getenv("REDIS_HOST", "localhost"),
        port=int(os.getenv("REDIS_PORT", "6379")),
        password=os.getenv("REDIS_PASSWORD"),
        ssl=os.getenv("REDIS_SSL", "false").lower() == "true",
        conn_timeout=15,
        conn_retry_delay=1,
    )


async def startup(ctx):
    ctx.setdefault("gateway", paystack_gateway)
    ctx.setdefault("email_sender", send_email)
    ctx.setdefault("session_factory", SessionLocal)


def _build_finalizer(ctx, db) -> BookingFinalizer:
    payments = PaymentService(db, gateway=ctx.get("gateway", paystack_gateway))
    notifier = BookingNotifier(db, email_sender=ctx.get("email_sender", send_email))
    return BookingFinalizer(db, payment_service=payments, notifier=notifier)


async def finalize_booking_task(ctx, reference: str) -> dict:
    """Finalize one payment reference"""
    db = ctx.get("session_factory", SessionLocal)()
    try:
        result = await finalize_booking(db, reference, finalizer=_build_finalizer(ctx, db))
        logger.info(f"Finalize task for {reference}: {result}")
        return result
    finally:
        db.close()


async def reconcile_pending_payments(ctx) -> dict:
    """
    Finalize or settle payments still pending after RECONCILE_AFTER_MINUTES.
    Declined payments are marked failed by verification; paid ones get their booking.
    """
    logger.info("🔄 Starting pending payment reconciliation")
    summary = {"checked": 0, "finalized": 0, "unpaid": 0, "errors": 0}

    db = ctx.get("session_factory", SessionLocal)()
    try:
        references = [
            p.reference
            for p in PaymentRepository.get_unsettled(db, ctx.get("older_than_minutes", RECONCILE_AFTER_MINUTES))
        ]
        finalizer = _build_finalizer(ctx, db)

        for reference in references:
            summary["checked"] += 1
            result = await finalize_booking(db, reference, finalizer=finalizer)
            if result.get("success"):
                summary["finalized"] += 1
            elif result.get("code") == "PaymentNotCompleted":
                summary["unpaid"] += 1
            else:
                summary["errors"] += 1
                logger.error(f"❌ Reconciliation could not finalize {reference}: {result}")

        logger.info(f"📊 Reconciliation summary: {summary}")
        return summary
    finally:
        db.close()


class WorkerSettings:
    """ARQ Worker Settings"""

    functions = [finalize_booking_task, reconcile_pending_payments]
    on_startup = startup
    redis_settings = get_redis_settings()

    max_jobs = int(os.getenv("ARQ_MAX_JOBS", "20"))
    job_timeout = int(os.getenv("ARQ_JOB_TIMEOUT", "300"))
    keep_result = int(os.getenv("ARQ_KEEP_RESULT", "3600"))
    max_tries = 3

    cron_jobs = [
        cron(reconcile_pending_payments, minute={0, 10, 20, 30, 40, 50}),
    ]

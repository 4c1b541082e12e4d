"""Payments router - FastAPI endpoints for checkout, verification and gateway webhooks"""

import json
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request

from ...auth import CurrentUser, get_current_user
from ...dependencies import (
    get_booking_finalizer,
    get_payment_service,
    get_return_handler,
    get_webhook_secret,
)
from ...errors import BookingError, ExternalServiceError
from ...webhook_security import verify_paystack_webhook
from ..bookings.finalizer import BookingFinalizer
from ..pricing.schemas import BookingTotal, QuoteRequest
from .return_handler import PaymentReturnHandler
from .schemas import (
    InitiatePaymentRequest,
    InitiatePaymentResponse,
    PaymentReturnResponse,
    ReferenceRequest,
    VerifyPaymentResponse,
)
from .service import PaymentService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["Payments"])


@router.post("/quote", response_model=BookingTotal)
async def quote_booking(
    body: QuoteRequest,
    service: PaymentService = Depends(get_payment_service),
):
    """Service total, booking fee and total payable for selected service types"""
    return service.quote_service_types(body.service_type_ids)


@router.post("/initiate", response_model=InitiatePaymentResponse)
async def initiate_payment(
    body: InitiatePaymentRequest,
    user: CurrentUser = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service),
):
    """Start checkout and return the gateway redirect URL"""
    return await service.initiate_payment(
        actor=user,
        amount=body.amount,
        description=body.description,
        metadata=body.metadata,
    )


@router.post("/verify", response_model=VerifyPaymentResponse)
async def verify_payment(
    body: ReferenceRequest,
    service: PaymentService = Depends(get_payment_service),
):
    return await service.verify_payment(body.reference)


@router.post("/return", response_model=PaymentReturnResponse)
async def payment_return(
    body: ReferenceRequest,
    user: CurrentUser = Depends(get_current_user),
    handler: PaymentReturnHandler = Depends(get_return_handler),
):
    """Called by the return page after the gateway redirects back"""
    return await handler.handle(body.reference, actor_id=user.id)


@router.post("/webhook")
async def paystack_webhook(
    request: Request,
    secret: Optional[str] = Depends(get_webhook_secret),
    finalizer: BookingFinalizer = Depends(get_booking_finalizer),
):
    """
    Paystack webhook. charge.success finalizes the booking with no caller
    identity; other events are acknowledged and ignored.
    """
    raw_body = await verify_paystack_webhook(request, secret)

    try:
        event = json.loads(raw_body)
    except ValueError:
        logger.warning("⚠️ Paystack webhook body is not JSON")
        return {"status": "ignored", "reason": "invalid_payload"}

    event_type = event.get("event")
    reference = (event.get("data") or {}).get("reference")
    logger.info(f"📥 Paystack webhook: {event_type} for {reference}")

    if event_type != "charge.success":
        return {"status": "ignored", "event": event_type}

    try:
        result = await finalizer.finalize(reference, actor_id=None)
    except ExternalServiceError:
        # Let the gateway retry later
        raise
    except BookingError as e:
        logger.error(f"❌ Webhook finalize failed for {reference} ({e.code}): {e.message}")
        return {"status": "failed", "code": e.code}

    return {"status": "ok", "resource_id": result.resource_id}

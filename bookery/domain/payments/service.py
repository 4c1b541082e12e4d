"""
Payment service - checkout initiation, quoting and gateway verification.

The amount passed to initiate_payment is always the fee-inclusive total
payable in major units. It is recomputed here from catalog prices and
rejected when it does not match, so every caller shares one contract.
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ...auth import CurrentUser
from ...cache import PendingBookingStore, pending_bookings
from ...config import FRONTEND_URL, PAYMENT_CURRENCY
from ...errors import (
    AmountMismatch,
    ExternalServiceError,
    InvalidPaymentType,
    ServicesNotFound,
    ValidationError,
)
from ..bookings.repository import BookingRepository
from ..pricing import compute_booking_total, to_minor_units
from ..pricing.schemas import BookingTotal, LineItem
from .gateway import PaystackGateway, paystack_gateway
from .repository import PaymentRepository
from .schemas import (
    BeautyBookingMetadata,
    CleaningBookingMetadata,
    GatewayVerification,
    InitiatePaymentResponse,
    LaundryBookingMetadata,
    VerifyPaymentResponse,
    parse_booking_metadata,
)

logger = logging.getLogger(__name__)


def laundry_service_price(laundry_service, estimated_weight) -> Decimal:
    """Base price plus the per-kg rate for the estimated weight, major units"""
    weight = Decimal(str(estimated_weight or 0))
    return Decimal(str(laundry_service.base_price)) + Decimal(str(laundry_service.price_per_kg)) * weight


class PaymentService:
    """Service for payment initiation and verification"""

    def __init__(
        self,
        db: Session,
        gateway: Optional[PaystackGateway] = None,
        pending_store: Optional[PendingBookingStore] = None,
        currency: str = PAYMENT_CURRENCY,
    ):
        self.db = db
        self.repo = PaymentRepository()
        self.bookings_repo = BookingRepository()
        self.gateway = gateway or paystack_gateway
        self.pending_store = pending_store or pending_bookings
        self.currency = currency

    # ------------------------------------------------------------------
    # Quoting
    # ------------------------------------------------------------------

    def quote_service_types(self, service_type_ids: list[str]) -> BookingTotal:
        """Price a beauty cart from catalog prices"""
        unique_ids = list(dict.fromkeys(service_type_ids))
        if not unique_ids:
            return compute_booking_total([])

        service_types = self.repo.get_service_types(self.db, unique_ids)
        found = {st.id for st in service_types}
        missing = [st_id for st_id in unique_ids if st_id not in found]
        if missing:
            raise ServicesNotFound(
                "Some selected services are no longer available",
                details={"service_type_ids": missing},
            )

        by_id = {st.id: st for st in service_types}
        return compute_booking_total(
            LineItem(id=st_id, price=Decimal(str(by_id[st_id].price))) for st_id in unique_ids
        )

    def quote_metadata(self, metadata) -> BookingTotal:
        """Price any booking type from its metadata"""
        if isinstance(metadata, BeautyBookingMetadata):
            return self.quote_service_types(metadata.service_type_ids)

        if isinstance(metadata, LaundryBookingMetadata):
            laundry_service = self.repo.get_laundry_service(self.db, metadata.laundry_service_id)
            if not laundry_service:
                raise ServicesNotFound("Laundry service not found")
            price = laundry_service_price(laundry_service, metadata.estimated_weight)
            return compute_booking_total([LineItem(id=laundry_service.id, price=price)])

        if isinstance(metadata, CleaningBookingMetadata):
            cleaning_service = self.repo.get_cleaning_service(self.db, metadata.cleaning_service_id)
            if not cleaning_service:
                raise ServicesNotFound("Cleaning service not found")
            return compute_booking_total(
                [LineItem(id=cleaning_service.id, price=Decimal(str(cleaning_service.total_price)))]
            )

        raise InvalidPaymentType("Unsupported booking type")

    def validate_specialist(self, metadata) -> None:
        """
        Reject a chosen specialist that is unknown, not a specialist for this
        booking type or, for beauty, not the owner of the selected services.
        """
        specialist_id = getattr(metadata, "specialist_id", None)
        if not specialist_id:
            return

        specialist = self.bookings_repo.get_specialist(self.db, specialist_id, metadata.booking_type)
        if specialist is None:
            logger.warning(f"⚠️ Rejected unknown {metadata.booking_type} specialist {specialist_id}")
            raise ValidationError(
                "The selected specialist is not available for this booking",
                code="INVALID_SPECIALIST",
                details={"specialist_id": specialist_id},
            )

        if isinstance(metadata, BeautyBookingMetadata):
            service_types = self.bookings_repo.get_service_types_with_service(self.db, metadata.service_type_ids)
            foreign = [
                st.id
                for st in service_types
                if st.service.specialist_id and st.service.specialist_id != specialist_id
            ]
            if foreign:
                raise ValidationError(
                    "The selected specialist does not offer all of the selected services",
                    code="INVALID_SPECIALIST",
                    details={"specialist_id": specialist_id, "service_type_ids": foreign},
                )

    # ------------------------------------------------------------------
    # Initiation
    # ------------------------------------------------------------------

    async def initiate_payment(
        self,
        actor: CurrentUser,
        amount: Decimal,
        description: str,
        metadata,
    ) -> InitiatePaymentResponse:
        """
        Open a gateway checkout session and record the pending payment.

        No retry: any gateway or persistence failure surfaces as
        ExternalServiceError and the client starts a fresh attempt.
        """
        amount = Decimal(str(amount))
        if amount <= 0:
            raise ValidationError("Payment amount must be greater than zero")
        if not actor.email:
            raise ValidationError("An email address is required to pay")

        expected = self.quote_metadata(metadata).total_payable
        if amount.quantize(Decimal("0.01")) != expected:
            logger.warning(
                f"⚠️ Amount mismatch for user {actor.id}: sent {amount}, expected {expected}"
            )
            raise AmountMismatch(
                "Amount does not match the current booking total",
                details={"expected": str(expected), "received": str(amount)},
            )

        self.validate_specialist(metadata)

        metadata_json = metadata.model_dump(mode="json")
        amount_minor = to_minor_units(amount)
        callback_url = f"{FRONTEND_URL}/payment-return?type={metadata.booking_type}"

        try:
            session = await self.gateway.create_session(
                amount_minor=amount_minor,
                currency=self.currency,
                metadata={**metadata_json, "user_id": actor.id},
                email=actor.email,
                callback_url=callback_url,
            )
        except ExternalServiceError:
            raise
        except Exception as e:
            logger.error(f"❌ Payment session creation failed for user {actor.id}: {e}")
            raise ExternalServiceError("Could not start payment", code="GATEWAY_ERROR") from e

        try:
            self.repo.create(
                self.db,
                reference=session.reference,
                amount=amount_minor,
                currency=self.currency,
                booking_metadata=metadata_json,
                user_id=actor.id,
                description=description,
                access_code=session.session_id,
                payer_email=actor.email,
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            # Gateway session exists without a local row; it expires unpaid
            logger.error(f"❌ Failed to record payment {session.reference}, orphaned gateway session: {e}")
            raise ExternalServiceError("Could not start payment", code="PAYMENT_NOT_RECORDED") from e

        self.pending_store.save(
            actor.id,
            {"reference": session.reference, "description": description, **metadata_json},
        )

        logger.info(f"💳 Payment {session.reference} initiated by {actor.id}: {amount} {self.currency}")
        return InitiatePaymentResponse(url=session.url, session_id=session.session_id, reference=session.reference)

    # ------------------------------------------------------------------
    # Verification
    # ------------------------------------------------------------------

    async def verify_payment(self, reference: str) -> VerifyPaymentResponse:
        """
        Ask the gateway for the outcome and record it on the payment.

        Never marks a payment completed; only the finalizer does that together
        with creating the booking. A pending payment the gateway reports as
        failed is marked failed. When no local row exists but the gateway
        transaction carries booking metadata, the row is recreated.
        """
        if not reference:
            raise ValidationError("Missing payment reference")

        verification = await self.gateway.verify(reference)
        payment = self.repo.get_by_reference(self.db, reference)

        if payment is None:
            payment = self._recreate_from_gateway(verification)
            if payment is None:
                return VerifyPaymentResponse(
                    reference=reference,
                    status=verification.status,
                    payer_email=verification.payer_email,
                )

        payment.gateway_status = verification.status
        payment.verified_at = datetime.now(timezone.utc)
        if verification.payer_email and not payment.payer_email:
            payment.payer_email = verification.payer_email
        if verification.status == "failed" and payment.status == "pending":
            payment.status = "failed"
            logger.info(f"❌ Payment {reference} declined at gateway")

        try:
            self.db.commit()
        except IntegrityError:
            # Another request recreated the same reference first
            self.db.rollback()
            payment = self.repo.get_by_reference(self.db, reference)
            if payment is None:
                raise
        return VerifyPaymentResponse(
            reference=reference,
            status=verification.status,
            payer_email=verification.payer_email,
            payment_status=payment.status,
        )

    def _recreate_from_gateway(self, verification: GatewayVerification):
        raw = dict(verification.metadata or {})
        user_id = raw.pop("user_id", None)
        try:
            metadata = parse_booking_metadata(raw)
        except PydanticValidationError:
            logger.warning(f"⚠️ Gateway transaction {verification.reference} has no booking metadata")
            return None

        logger.warning(f"🔄 Recreating missing payment row for {verification.reference} from gateway data")
        return self.repo.create(
            self.db,
            reference=verification.reference,
            amount=verification.amount or 0,
            currency=verification.currency or self.currency,
            booking_metadata=metadata.model_dump(mode="json"),
            user_id=user_id,
            payer_email=verification.payer_email,
        )

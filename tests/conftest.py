"""Shared test fixtures, fakes and seed helpers."""

from decimal import Decimal
from typing import Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from bookery import models  # noqa: F401
from bookery.cache import PendingBookingStore
from bookery.database import Base
from bookery.domain.bookings.finalizer import BookingFinalizer
from bookery.domain.payments.schemas import GatewaySession, GatewayVerification
from bookery.domain.payments.service import PaymentService
from bookery.errors import ExternalServiceError
from bookery.models import (
    CleaningService,
    LaundryService,
    Payment,
    Profile,
    Service,
    ServiceType,
)
from bookery.services.notification_service import BookingNotifier

# ============================================================================
# FAKES
# ============================================================================


class FakeGateway:
    """In-memory payment gateway"""

    def __init__(self, default_status: str = "complete"):
        self.default_status = default_status
        self.results: dict[str, GatewayVerification] = {}
        self.sessions: list[dict] = []
        self.verify_calls: list[str] = []
        self.create_error: Optional[Exception] = None
        self.verify_error: Optional[Exception] = None
        self.on_verify = None

    def is_available(self) -> bool:
        return True

    async def create_session(self, amount_minor, currency, metadata, email, callback_url) -> GatewaySession:
        if self.create_error:
            raise self.create_error
        reference = f"ref_{len(self.sessions) + 1}"
        self.sessions.append(
            {
                "amount_minor": amount_minor,
                "currency": currency,
                "metadata": metadata,
                "email": email,
                "callback_url": callback_url,
                "reference": reference,
            }
        )
        return GatewaySession(url=f"https://checkout.test/{reference}", session_id=f"ac_{reference}", reference=reference)

    async def verify(self, reference: str) -> GatewayVerification:
        self.verify_calls.append(reference)
        if self.on_verify:
            self.on_verify(reference)
        if self.verify_error:
            raise self.verify_error
        if reference in self.results:
            return self.results[reference]
        return GatewayVerification(reference=reference, status=self.default_status, payer_email="client@example.com")


class FakeRedis:
    def __init__(self):
        self.store: dict[str, str] = {}

    def get(self, key):
        return self.store.get(key)

    def setex(self, key, ttl, value):
        self.store[key] = value

    def delete(self, key):
        self.store.pop(key, None)


class FakeEmailSender:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent: list[dict] = []

    async def __call__(self, to, subject, html):
        if self.fail:
            raise Exception("smtp down")
        self.sent.append({"to": to, "subject": subject, "html": html})
        return {"id": f"email_{len(self.sent)}"}


# ============================================================================
# DATABASE
# ============================================================================


@pytest.fixture
def engine(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'test.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def email_sender():
    return FakeEmailSender()


@pytest.fixture
def pending_store():
    return PendingBookingStore(redis_client=FakeRedis())


def build_finalizer(db, gateway, email_sender=None, pending_store=None, reference_generator=None):
    payments = PaymentService(db, gateway=gateway, pending_store=pending_store or PendingBookingStore(redis_client=FakeRedis()))
    notifier = BookingNotifier(db, email_sender=email_sender or FakeEmailSender())
    return BookingFinalizer(db, payment_service=payments, notifier=notifier, reference_generator=reference_generator)


# ============================================================================
# SEED HELPERS
# ============================================================================


def make_profile(db, profile_id: str, **kwargs) -> Profile:
    profile = Profile(
        id=profile_id,
        full_name=kwargs.pop("full_name", profile_id.title()),
        email=kwargs.pop("email", f"{profile_id}@example.com"),
        **kwargs,
    )
    db.add(profile)
    db.commit()
    return profile


def make_service_type(db, price, service: Optional[Service] = None, specialist_id: Optional[str] = None, name="Style") -> ServiceType:
    if service is None:
        service = Service(name=f"{name} service", category="beauty", specialist_id=specialist_id)
        db.add(service)
        db.flush()
    service_type = ServiceType(service_id=service.id, name=name, price=Decimal(str(price)))
    db.add(service_type)
    db.commit()
    return service_type


def make_laundry_service(db, base_price="30", price_per_kg="5") -> LaundryService:
    laundry = LaundryService(name="Wash & Fold", base_price=Decimal(base_price), price_per_kg=Decimal(price_per_kg))
    db.add(laundry)
    db.commit()
    return laundry


def make_cleaning_service(db, total_price="200", specialist_id=None) -> CleaningService:
    cleaning = CleaningService(name="Deep clean", total_price=Decimal(total_price), specialist_id=specialist_id)
    db.add(cleaning)
    db.commit()
    return cleaning


def beauty_metadata(service_type_ids, specialist_id=None, **kwargs) -> dict:
    metadata = {
        "booking_type": "beauty",
        "service_type_ids": list(service_type_ids),
        "specialist_id": specialist_id,
        "scheduled_date": "2026-11-02",
        "scheduled_time": "10:30",
        "notes": "Please be on time",
    }
    metadata.update(kwargs)
    return metadata


def laundry_metadata(laundry_service_id, **kwargs) -> dict:
    metadata = {
        "booking_type": "laundry",
        "laundry_service_id": laundry_service_id,
        "service_type": "wash_fold",
        "pickup_address": "12 Oxford St, Osu",
        "delivery_address": "12 Oxford St, Osu",
        "pickup_date": "2026-11-02",
        "pickup_time": "09:00",
        "estimated_weight": 2,
    }
    metadata.update(kwargs)
    return metadata


def cleaning_metadata(cleaning_service_id, **kwargs) -> dict:
    metadata = {
        "booking_type": "cleaning",
        "cleaning_service_id": cleaning_service_id,
        "service_date": "2026-11-03",
        "service_time": "13:00",
        "service_address": "4 Ring Road, Accra",
        "property_type": "apartment",
        "num_rooms": 3,
        "num_bathrooms": 2,
        "customer_name": "Ama Mensah",
        "customer_phone": "+233200000000",
    }
    metadata.update(kwargs)
    return metadata


def make_payment(
    db,
    reference: str,
    metadata: dict,
    amount: int = 12000,
    user_id: Optional[str] = "client",
    status: str = "pending",
    gateway_status: Optional[str] = "complete",
    **kwargs,
) -> Payment:
    payment = Payment(
        reference=reference,
        amount=amount,
        currency="GHS",
        status=status,
        gateway_status=gateway_status,
        booking_metadata=metadata,
        user_id=user_id,
        payer_email="client@example.com",
        **kwargs,
    )
    db.add(payment)
    db.commit()
    return payment


@pytest.fixture
def client_profile(db):
    return make_profile(db, "client", full_name="Ama Mensah")


@pytest.fixture
def stylist(db):
    return make_profile(db, "stylist", full_name="Efua Stylist", is_beauty_specialist=True)


@pytest.fixture
def gateway_down():
    gateway = FakeGateway()
    gateway.verify_error = ExternalServiceError("Payment gateway unreachable", code="GATEWAY_UNREACHABLE")
    return gateway

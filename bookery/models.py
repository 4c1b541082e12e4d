import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


def generate_uuid():
    """Generate a string UUID primary key"""
    return str(uuid.uuid4())


class Profile(Base):
    """Marketplace user (client, specialist or admin), keyed by the auth provider user id"""

    __tablename__ = "profiles"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    full_name = Column(String(255), nullable=True)
    email = Column(String(255), index=True, nullable=True)
    phone = Column(String(50), nullable=True)
    is_beauty_specialist = Column(Boolean, default=False, nullable=False)
    is_laundry_specialist = Column(Boolean, default=False, nullable=False)
    is_cleaning_specialist = Column(Boolean, default=False, nullable=False)
    availability = Column(Boolean, default=True, nullable=False)
    is_admin = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class Service(Base):
    """Base beauty service offered by a specialist (e.g. Braids)"""

    __tablename__ = "services"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    specialist_id = Column(String(36), ForeignKey("profiles.id"), nullable=True, index=True)
    name = Column(String(255), nullable=False)
    category = Column(String(100), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    service_types = relationship("ServiceType", back_populates="service")


class ServiceType(Base):
    """Priced variant of a base service (e.g. Knotless braids, waist length)"""

    __tablename__ = "service_types"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    service_id = Column(String(36), ForeignKey("services.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)  # major currency units
    duration_minutes = Column(Integer, nullable=True)

    service = relationship("Service", back_populates="service_types")


class LaundryService(Base):
    __tablename__ = "laundry_services"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False)
    base_price = Column(Numeric(10, 2), nullable=False)
    price_per_kg = Column(Numeric(10, 2), nullable=False, default=0)
    is_active = Column(Boolean, default=True, nullable=False)


class CleaningService(Base):
    __tablename__ = "cleaning_services"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    specialist_id = Column(String(36), ForeignKey("profiles.id"), nullable=True)
    name = Column(String(255), nullable=False)
    total_price = Column(Numeric(10, 2), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)


class Payment(Base):
    """One attempt to pay for a booking, keyed by the gateway reference"""

    __tablename__ = "payments"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    reference = Column(String(100), unique=True, index=True, nullable=False)
    access_code = Column(String(100), nullable=True)  # gateway session id
    amount = Column(Integer, nullable=False)  # minor currency units
    currency = Column(String(3), nullable=False)
    status = Column(String(20), default="pending", nullable=False)  # pending, completed, failed
    gateway_status = Column(String(20), nullable=True)  # last verify outcome: complete, failed, pending
    description = Column(Text, nullable=True)
    booking_metadata = Column("metadata", JSON, nullable=True)
    user_id = Column(String(36), ForeignKey("profiles.id"), nullable=True, index=True)
    payer_email = Column(String(255), nullable=True)
    resource_type = Column(String(20), nullable=True)  # appointment, laundry_order, cleaning_order
    resource_id = Column(String(36), unique=True, nullable=True)
    verified_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class Appointment(Base):
    """Beauty booking"""

    __tablename__ = "appointments"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    order_reference = Column(String(50), unique=True, nullable=False)
    client_id = Column(String(36), ForeignKey("profiles.id"), nullable=True, index=True)
    specialist_id = Column(String(36), ForeignKey("profiles.id"), nullable=True, index=True)
    payment_id = Column(String(36), ForeignKey("payments.id"), unique=True, nullable=False)
    scheduled_date = Column(Date, nullable=True)
    scheduled_time = Column(String(20), nullable=True)
    notes = Column(Text, nullable=True)
    total_amount = Column(Integer, nullable=False)  # minor currency units, fee inclusive
    status = Column(String(20), default="pending", nullable=False)
    canceled_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    services = relationship("AppointmentService", back_populates="appointment")


class AppointmentService(Base):
    """Service line item attached to an appointment with its price at booking time"""

    __tablename__ = "appointment_services"
    __table_args__ = (UniqueConstraint("appointment_id", "service_id", name="uq_appointment_service"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    appointment_id = Column(String(36), ForeignKey("appointments.id"), nullable=False, index=True)
    service_id = Column(String(36), ForeignKey("services.id"), nullable=False)
    service_type_id = Column(String(36), ForeignKey("service_types.id"), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)

    appointment = relationship("Appointment", back_populates="services")


class LaundryOrder(Base):
    __tablename__ = "laundry_orders"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    order_reference = Column(String(50), unique=True, nullable=False)
    client_id = Column(String(36), ForeignKey("profiles.id"), nullable=True, index=True)
    specialist_id = Column(String(36), ForeignKey("profiles.id"), nullable=True, index=True)
    payment_id = Column(String(36), ForeignKey("payments.id"), unique=True, nullable=False)
    laundry_service_id = Column(String(36), ForeignKey("laundry_services.id"), nullable=True)
    service_type = Column(String(100), nullable=True)  # wash_fold, dry_clean, ironing...
    pickup_address = Column(Text, nullable=False)
    delivery_address = Column(Text, nullable=False)
    pickup_instructions = Column(Text, nullable=True)
    delivery_instructions = Column(Text, nullable=True)
    pickup_date = Column(Date, nullable=True)
    pickup_time = Column(String(20), nullable=True)
    delivery_date = Column(Date, nullable=True)
    delivery_time = Column(String(20), nullable=True)
    items_description = Column(Text, nullable=True)
    special_instructions = Column(Text, nullable=True)
    estimated_weight = Column(Float, nullable=True)  # kg
    amount = Column(Integer, nullable=False)  # minor currency units, service only
    status = Column(String(30), default="pending_pickup", nullable=False)
    picked_up_at = Column(DateTime(timezone=True), nullable=True)
    washing_started_at = Column(DateTime(timezone=True), nullable=True)
    ready_at = Column(DateTime(timezone=True), nullable=True)
    out_for_delivery_at = Column(DateTime(timezone=True), nullable=True)
    delivered_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    history = relationship("LaundryStatusHistory", back_populates="order")


class LaundryStatusHistory(Base):
    __tablename__ = "laundry_status_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(String(36), ForeignKey("laundry_orders.id"), nullable=False, index=True)
    previous_status = Column(String(30), nullable=True)
    status = Column(String(30), nullable=False)
    changed_by = Column(String(36), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    order = relationship("LaundryOrder", back_populates="history")


class CleaningOrder(Base):
    __tablename__ = "cleaning_orders"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    order_reference = Column(String(50), unique=True, nullable=False)
    client_id = Column(String(36), ForeignKey("profiles.id"), nullable=True, index=True)
    specialist_id = Column(String(36), ForeignKey("profiles.id"), nullable=True, index=True)
    payment_id = Column(String(36), ForeignKey("payments.id"), unique=True, nullable=False)
    cleaning_service_id = Column(String(36), ForeignKey("cleaning_services.id"), nullable=True)
    service_date = Column(Date, nullable=True)
    service_time = Column(String(20), nullable=True)
    service_address = Column(Text, nullable=False)
    property_type = Column(String(50), nullable=True)
    num_rooms = Column(Integer, nullable=True)
    num_bathrooms = Column(Integer, nullable=True)
    square_footage = Column(Integer, nullable=True)
    addon_services = Column(JSON, nullable=True)
    special_instructions = Column(Text, nullable=True)
    customer_name = Column(String(255), nullable=True)
    customer_phone = Column(String(50), nullable=True)
    customer_email = Column(String(255), nullable=True)
    amount = Column(Integer, nullable=False)  # minor currency units, service only
    status = Column(String(20), default="pending", nullable=False)
    confirmed_at = Column(DateTime(timezone=True), nullable=True)
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    canceled_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class Notification(Base):
    """In-app notification, best-effort side channel"""

    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), ForeignKey("profiles.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    type = Column(String(50), nullable=False)
    related_id = Column(String(36), nullable=True)
    priority = Column(String(20), default="normal", nullable=False)  # low, normal, high
    is_read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    expires_at = Column(DateTime(timezone=True), nullable=True)


class SpecialistEarning(Base):
    __tablename__ = "specialist_earnings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    specialist_id = Column(String(36), ForeignKey("profiles.id"), nullable=False, index=True)
    appointment_id = Column(String(36), ForeignKey("appointments.id"), nullable=False)
    payment_id = Column(String(36), ForeignKey("payments.id"), unique=True, nullable=False)
    gross_amount = Column(Integer, nullable=False)  # minor currency units
    platform_fee = Column(Integer, nullable=False)
    net_amount = Column(Integer, nullable=False)
    platform_fee_percentage = Column(Float, nullable=False)
    status = Column(String(20), default="available", nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

"""Modelos SQLAlchemy del festival (usuarios, eventos, sedes, reservas, check-ins, auditoría)"""
from sqlalchemy import (
    Column, String, Integer, Boolean, DateTime, ForeignKey, Text, JSON, Uuid,
    UniqueConstraint, Enum as SAEnum,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from datetime import datetime, timezone
import enum
import uuid
from shared.database.connection import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value):
    """Normalizar datetimes leídos de la BD (SQLite los devuelve sin tzinfo)"""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


class Role(str, enum.Enum):
    USER = "USER"
    ADMIN = "ADMIN"
    APPROVER = "APPROVER"


class ReservationStatus(str, enum.Enum):
    CONFIRMED = "CONFIRMED"
    WAITLIST = "WAITLIST"
    CANCELLED = "CANCELLED"


class AuditAction(str, enum.Enum):
    USER_CREATE = "USER_CREATE"
    USER_UPDATE = "USER_UPDATE"
    USER_DELETE = "USER_DELETE"
    USER_ROLE_CHANGE = "USER_ROLE_CHANGE"
    EVENT_CREATE = "EVENT_CREATE"
    EVENT_UPDATE = "EVENT_UPDATE"
    EVENT_DELETE = "EVENT_DELETE"
    VENUE_CREATE = "VENUE_CREATE"
    VENUE_UPDATE = "VENUE_UPDATE"
    VENUE_DELETE = "VENUE_DELETE"
    RESERVATION_UPDATE = "RESERVATION_UPDATE"
    RESERVATION_APPROVE = "RESERVATION_APPROVE"
    RESERVATION_CANCEL = "RESERVATION_CANCEL"
    RESERVATION_DELETE = "RESERVATION_DELETE"
    CHECK_IN_DELETE = "CHECK_IN_DELETE"


def _enum_column(enum_cls):
    # Guardar el valor como string (sin tipo ENUM nativo en la BD)
    return SAEnum(enum_cls, native_enum=False, length=32, validate_strings=True)


MetaJSON = JSON().with_variant(JSONB(), "postgresql")


class User(Base):
    __tablename__ = "users"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(String, unique=True, nullable=False, index=True)
    phone = Column(String, unique=True, nullable=True, index=True)
    name = Column(String, nullable=True)
    password_hash = Column(String, nullable=True)
    role = Column(_enum_column(Role), nullable=False, default=Role.USER)
    email_verified_at = Column(DateTime(timezone=True), nullable=True)  # null = no verificado
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow, nullable=False)

    # Relaciones
    reservations = relationship(
        "Reservation",
        back_populates="user",
        foreign_keys="Reservation.user_id",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    verification_codes = relationship(
        "EmailVerificationCode",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class EmailVerificationCode(Base):
    __tablename__ = "email_verification_codes"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    code_hash = Column(String, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    used_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

    user = relationship("User", back_populates="verification_codes")


class Venue(Base):
    __tablename__ = "venues"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String, nullable=False)
    label = Column(String, nullable=False)
    address = Column(String, nullable=True)
    city = Column(String, nullable=False)
    country = Column(String, nullable=True, server_default="Norway")
    map_query = Column(String, nullable=True)
    google_maps_url = Column(String, nullable=True)
    open_street_map_url = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow, nullable=False)

    # Sin cascade: el borrado se bloquea mientras existan eventos
    events = relationship("Event", back_populates="venue", passive_deletes="all")


class Event(Base):
    __tablename__ = "events"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    slug = Column(String, unique=True, nullable=False, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    track_id = Column(String, nullable=False)  # creative, games, xr, youth, business
    day_id = Column(String, nullable=False)  # day1 .. day7
    day_label = Column(String, nullable=True)
    weekday = Column(String, nullable=True)
    date_label = Column(String, nullable=True)
    time_label = Column(String, nullable=True)
    target_group = Column(String, nullable=True)
    host = Column(String, nullable=True)
    is_free = Column(Boolean, nullable=False, default=True)
    requires_registration = Column(Boolean, nullable=False, default=False)
    starts_at = Column(DateTime(timezone=True), nullable=True)
    ends_at = Column(DateTime(timezone=True), nullable=True)
    venue_id = Column(Uuid(as_uuid=True), ForeignKey("venues.id", ondelete="RESTRICT"), nullable=True, index=True)
    venue_label = Column(String, nullable=True)  # Cache del label de la sede al momento de escribir
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow, nullable=False)

    # Relaciones
    venue = relationship("Venue", back_populates="events")
    reservations = relationship(
        "Reservation",
        back_populates="event",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class Reservation(Base):
    __tablename__ = "reservations"
    __table_args__ = (
        UniqueConstraint("user_id", "event_id", name="uq_reservations_user_event"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    event_id = Column(Uuid(as_uuid=True), ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(_enum_column(ReservationStatus), nullable=False, default=ReservationStatus.CONFIRMED)
    quantity = Column(Integer, nullable=False, default=1)
    ticket_code = Column(String, unique=True, nullable=False, index=True)  # Nunca cambia una vez asignado
    approved_by_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_by_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancel_reason = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow, nullable=False)

    # Relaciones
    user = relationship("User", back_populates="reservations", foreign_keys=[user_id])
    event = relationship("Event", back_populates="reservations")
    approved_by = relationship("User", foreign_keys=[approved_by_id])
    cancelled_by = relationship("User", foreign_keys=[cancelled_by_id])
    check_ins = relationship(
        "ReservationCheckIn",
        back_populates="reservation",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class ReservationCheckIn(Base):
    __tablename__ = "reservation_check_ins"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    # unique: como máximo un check-in por reserva, incluso con escaneos concurrentes
    reservation_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("reservations.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    scanned_by_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    scanned_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

    reservation = relationship("Reservation", back_populates="check_ins")
    scanned_by = relationship("User", foreign_keys=[scanned_by_id])


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    actor_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    action = Column(_enum_column(AuditAction), nullable=False, index=True)
    entity_type = Column(String, nullable=False)
    entity_id = Column(String, nullable=False)
    meta = Column(MetaJSON, nullable=True)  # Documento opaco, solo se serializa
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False, index=True)

    actor = relationship("User", foreign_keys=[actor_id])

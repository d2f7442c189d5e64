"""Modelos Pydantic para administración"""
from pydantic import EmailStr, Field, field_serializer, field_validator
from typing import Optional, List, Any, Literal
from datetime import datetime
from uuid import UUID

from shared.database.models import Role, ReservationStatus, AuditAction
from shared.utils.schemas import CamelModel, serialize_utc
from services.auth.models.auth import UserSummary
from services.event_management.models.event import EventResponse, VenueResponse
from services.reservations.models.reservation import ReservationResponse
from services.ticket_validation.models.ticket import CheckInResponse


TrackId = Literal["creative", "games", "xr", "youth", "business"]
DayId = Literal["day1", "day2", "day3", "day4", "day5", "day6", "day7"]


def _strip(v):
    return v.strip() if isinstance(v, str) else v


# ==================== USERS ====================

class AdminUserResponse(CamelModel):
    """Respuesta con información de usuario"""
    id: UUID
    email: str
    name: Optional[str] = None
    phone: Optional[str] = None
    role: Role
    email_verified_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    reservation_count: int = 0

    @field_serializer('email_verified_at', 'created_at', 'updated_at')
    def serialize_datetime_utc(self, dt: Optional[datetime], _info) -> Optional[str]:
        return serialize_utc(dt)


class UsersListResponse(CamelModel):
    users: List[AdminUserResponse]


class UserDetailResponse(CamelModel):
    user: AdminUserResponse


class UserCreateRequest(CamelModel):
    """Request para crear usuario desde el back office"""
    name: Optional[str] = Field(None, min_length=2, max_length=80)
    phone: str = Field(..., min_length=4, max_length=30)
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    role: Role = Role.USER
    email_verified: bool = False

    @field_validator('phone', mode='before')
    @classmethod
    def strip_phone(cls, v):
        return _strip(v)

    @field_validator('email')
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()


class UserUpdateRequest(CamelModel):
    """Request de actualización parcial de usuario"""
    name: Optional[str] = Field(None, min_length=2, max_length=80)
    phone: Optional[str] = Field(None, min_length=4, max_length=30)
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(None, min_length=8, max_length=128)
    role: Optional[Role] = None
    email_verified: Optional[bool] = None

    @field_validator('phone', mode='before')
    @classmethod
    def strip_phone(cls, v):
        return _strip(v)

    @field_validator('email')
    @classmethod
    def normalize_email(cls, v: Optional[str]) -> Optional[str]:
        return v.strip().lower() if v else v


# ==================== VENUES ====================

class VenueCreateRequest(CamelModel):
    name: str = Field(..., min_length=1, max_length=200)
    label: str = Field(..., min_length=1, max_length=200)
    address: Optional[str] = Field(None, max_length=500)
    city: str = Field(..., min_length=1, max_length=100)
    country: Optional[str] = Field(None, max_length=100)
    map_query: Optional[str] = None
    google_maps_url: Optional[str] = None
    open_street_map_url: Optional[str] = None


class VenueUpdateRequest(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    label: Optional[str] = Field(None, min_length=1, max_length=200)
    address: Optional[str] = Field(None, max_length=500)
    city: Optional[str] = Field(None, min_length=1, max_length=100)
    country: Optional[str] = Field(None, max_length=100)
    map_query: Optional[str] = None
    google_maps_url: Optional[str] = None
    open_street_map_url: Optional[str] = None


class AdminVenueResponse(VenueResponse):
    event_count: int = 0


class VenuesListResponse(CamelModel):
    venues: List[AdminVenueResponse]


class VenueDetailResponse(CamelModel):
    venue: VenueResponse


# ==================== EVENTS ====================

class EventCreateRequest(CamelModel):
    slug: str = Field(..., min_length=1, max_length=200)
    title: str = Field(..., min_length=1, max_length=500)
    description: Optional[str] = None
    track_id: TrackId
    day_id: DayId
    day_label: Optional[str] = None
    weekday: Optional[str] = None
    date_label: Optional[str] = None
    time_label: Optional[str] = None
    target_group: Optional[str] = None
    host: Optional[str] = None
    is_free: bool = True
    requires_registration: bool = False
    venue_id: UUID
    venue_label: Optional[str] = None
    starts_at: Optional[datetime] = None
    ends_at: Optional[datetime] = None


class EventUpdateRequest(CamelModel):
    slug: Optional[str] = Field(None, min_length=1, max_length=200)
    title: Optional[str] = Field(None, min_length=1, max_length=500)
    description: Optional[str] = None
    track_id: Optional[TrackId] = None
    day_id: Optional[DayId] = None
    day_label: Optional[str] = None
    weekday: Optional[str] = None
    date_label: Optional[str] = None
    time_label: Optional[str] = None
    target_group: Optional[str] = None
    host: Optional[str] = None
    is_free: Optional[bool] = None
    requires_registration: Optional[bool] = None
    venue_id: Optional[UUID] = None
    venue_label: Optional[str] = None
    starts_at: Optional[datetime] = None
    ends_at: Optional[datetime] = None


class AdminEventResponse(EventResponse):
    reservation_count: int = 0


class EventsListResponse(CamelModel):
    events: List[AdminEventResponse]


class EventDetailResponse(CamelModel):
    event: EventResponse


# ==================== RESERVATIONS ====================

class EventSummary(CamelModel):
    id: UUID
    slug: str
    title: str
    day_label: Optional[str] = None
    time_label: Optional[str] = None


class AdminReservationResponse(ReservationResponse):
    user: UserSummary
    event: EventSummary
    latest_check_in: Optional[CheckInResponse] = None
    check_in_count: int = 0


class ReservationsListResponse(CamelModel):
    reservations: List[AdminReservationResponse]


class ReservationDetailResponse(CamelModel):
    reservation: ReservationResponse


class ReservationUpdateRequest(CamelModel):
    status: Optional[ReservationStatus] = None
    quantity: Optional[int] = Field(None, ge=1, strict=True)
    cancel_reason: Optional[str] = Field(None, max_length=500)


# ==================== CHECK-INS ====================

class CheckInReservationSummary(CamelModel):
    id: UUID
    status: ReservationStatus
    quantity: int
    user: UserSummary
    event: EventSummary


class AdminCheckInResponse(CheckInResponse):
    reservation: CheckInReservationSummary
    scanned_by: Optional[UserSummary] = None


class CheckInsListResponse(CamelModel):
    check_ins: List[AdminCheckInResponse]


# ==================== AUDIT LOGS ====================

class AuditLogResponse(CamelModel):
    id: UUID
    actor_id: Optional[UUID] = None
    actor: Optional[UserSummary] = None
    action: AuditAction
    entity_type: str
    entity_id: str
    meta: Optional[Any] = None
    created_at: datetime

    @field_serializer('created_at')
    def serialize_datetime_utc(self, dt: datetime, _info) -> Optional[str]:
        return serialize_utc(dt)


class AuditLogListResponse(CamelModel):
    audit_logs: List[AuditLogResponse]
    total: int
    limit: int
    offset: int


class DeleteResponse(CamelModel):
    success: bool = True

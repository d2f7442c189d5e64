"""Modelos Pydantic para reservas"""
from pydantic import BaseModel, Field, field_serializer
from typing import Optional, List
from datetime import datetime
from uuid import UUID

from shared.database.models import ReservationStatus
from shared.utils.schemas import CamelModel, serialize_utc
from services.event_management.models.event import EventResponse


class ReservationRequest(BaseModel):
    slug: str = Field(..., min_length=1)
    quantity: int = Field(1, ge=1, strict=True)


class ReservationResponse(CamelModel):
    id: UUID
    user_id: UUID
    event_id: UUID
    status: ReservationStatus
    quantity: int
    ticket_code: str
    approved_by_id: Optional[UUID] = None
    approved_at: Optional[datetime] = None
    cancelled_by_id: Optional[UUID] = None
    cancelled_at: Optional[datetime] = None
    cancel_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_serializer('approved_at', 'cancelled_at', 'created_at', 'updated_at')
    def serialize_datetime_utc(self, dt: Optional[datetime], _info) -> Optional[str]:
        return serialize_utc(dt)


class ReservationCreateResponse(CamelModel):
    """Reserva + artefactos del ticket"""
    ok: bool = True
    reservation: ReservationResponse
    ticket_token: str
    ticket_url: str
    qr_image_url: str
    qr_data_url: Optional[str] = None
    email_sent: bool


class ReservationListItem(ReservationResponse):
    event: EventResponse
    ticket_token: str
    ticket_url: str
    qr_image_url: str
    checked_in: bool = False


class ReservationListResponse(CamelModel):
    reservations: List[ReservationListItem]

"""Modelos Pydantic para escaneo y check-in de tickets"""
from pydantic import BaseModel, Field, field_serializer
from typing import Optional, List
from datetime import datetime
from uuid import UUID

from shared.utils.schemas import CamelModel, serialize_utc
from services.auth.models.auth import UserSummary
from services.event_management.models.event import EventResponse
from services.reservations.models.reservation import ReservationResponse


class CheckInRequest(BaseModel):
    token: str = Field(..., min_length=1)


class CheckInResponse(CamelModel):
    id: UUID
    reservation_id: UUID
    scanned_by_id: Optional[UUID] = None
    scanned_at: datetime

    @field_serializer('scanned_at')
    def serialize_datetime_utc(self, dt: datetime, _info) -> Optional[str]:
        return serialize_utc(dt)


class ScannedReservation(ReservationResponse):
    """Reserva resuelta desde un token, con usuario, evento y check-ins"""
    user: UserSummary
    event: EventResponse
    check_ins: List[CheckInResponse] = []


class ScanResponse(CamelModel):
    ok: bool = True
    reservation: ScannedReservation


class CheckInResultResponse(CamelModel):
    ok: bool = True
    check_in: CheckInResponse

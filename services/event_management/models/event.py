"""Modelos Pydantic para eventos y sedes"""
from pydantic import field_serializer
from typing import Optional, List
from datetime import datetime
from uuid import UUID

from shared.utils.schemas import CamelModel, serialize_utc


class VenueResponse(CamelModel):
    """Modelo de respuesta para sedes"""
    id: UUID
    name: str
    label: str
    address: Optional[str] = None
    city: str
    country: Optional[str] = None
    map_query: Optional[str] = None
    google_maps_url: Optional[str] = None
    open_street_map_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_serializer('created_at', 'updated_at')
    def serialize_datetime_utc(self, dt: Optional[datetime], _info) -> Optional[str]:
        return serialize_utc(dt)


class EventResponse(CamelModel):
    id: UUID
    slug: str
    title: str
    description: Optional[str] = None
    track_id: str
    day_id: str
    day_label: Optional[str] = None
    weekday: Optional[str] = None
    date_label: Optional[str] = None
    time_label: Optional[str] = None
    target_group: Optional[str] = None
    host: Optional[str] = None
    is_free: bool
    requires_registration: bool
    starts_at: Optional[datetime] = None
    ends_at: Optional[datetime] = None
    venue_id: Optional[UUID] = None
    venue_label: Optional[str] = None
    venue: Optional[VenueResponse] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_serializer('starts_at', 'ends_at', 'created_at', 'updated_at')
    def serialize_datetime_utc(self, dt: Optional[datetime], _info) -> Optional[str]:
        """Serializar datetime a ISO 8601 con timezone UTC explícito"""
        return serialize_utc(dt)


class EventListResponse(CamelModel):
    events: List[EventResponse]


class EventDetailResponse(CamelModel):
    event: EventResponse

"""Servicio para gestión de eventos (admin)"""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import selectinload
from typing import List, Optional, Tuple
from uuid import UUID
import logging

from shared.database.models import Event, Reservation, User, AuditAction
from shared.utils.audit import write_audit_log, snapshot
from shared.utils.errors import ConflictError, NotFoundError
from services.admin.models.admin import EventCreateRequest, EventUpdateRequest
from services.admin.services.venue_service import VenueService

logger = logging.getLogger(__name__)

NON_NULLABLE_FIELDS = ("slug", "title", "track_id", "day_id", "is_free", "requires_registration")


class AdminEventsService:
    """Servicio para operaciones CRUD sobre eventos del programa"""

    def __init__(self):
        self.venue_service = VenueService()

    async def get_event(self, db: AsyncSession, event_id: UUID) -> Event:
        stmt = (
            select(Event)
            .options(selectinload(Event.venue))
            .where(Event.id == event_id)
            .execution_options(populate_existing=True)
        )
        result = await db.execute(stmt)
        event = result.scalar_one_or_none()
        if event is None:
            raise NotFoundError("Evento no encontrado", code="event_not_found")
        return event

    async def _ensure_slug_free(self, db: AsyncSession, slug: str, exclude_id: Optional[UUID] = None):
        stmt = select(Event.id).where(Event.slug == slug)
        if exclude_id is not None:
            stmt = stmt.where(Event.id != exclude_id)
        if (await db.execute(stmt)).first() is not None:
            raise ConflictError(f"El slug '{slug}' ya existe", code="slug_taken")

    async def list_events(self, db: AsyncSession) -> List[Tuple[Event, int]]:
        """
        Listar eventos con sede y cantidad de reservas

        Returns:
            Lista de (evento, reservas) ordenada por día y hora de inicio
        """
        reservation_count = (
            select(func.count(Reservation.id))
            .where(Reservation.event_id == Event.id)
            .correlate(Event)
            .scalar_subquery()
        )
        stmt = (
            select(Event, reservation_count)
            .options(selectinload(Event.venue))
            .order_by(Event.day_id.asc(), Event.starts_at.asc(), Event.time_label.asc())
        )
        result = await db.execute(stmt)
        return [(event, count or 0) for event, count in result.all()]

    async def create_event(self, db: AsyncSession, data: EventCreateRequest, actor: User) -> Event:
        """
        Crear evento

        venue_label toma el label de la sede si no se envía.

        Raises:
            ConflictError: slug_taken
            NotFoundError: sede inexistente
        """
        actor_id = actor.id
        await self._ensure_slug_free(db, data.slug)
        venue = await self.venue_service.get_venue(db, data.venue_id)

        values = data.model_dump()
        values["venue_label"] = values.get("venue_label") or venue.label
        event = Event(**values)
        db.add(event)
        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            raise ConflictError(f"El slug '{data.slug}' ya existe", code="slug_taken")

        event = await self.get_event(db, event.id)
        logger.info(f"Evento creado por admin {actor_id}: {event.slug}")
        await write_audit_log(
            db, actor_id, AuditAction.EVENT_CREATE, "Event", event.id,
            snapshot(event, "slug", "title"),
        )
        return event

    async def update_event(
        self,
        db: AsyncSession,
        event_id: UUID,
        data: EventUpdateRequest,
        actor: User
    ) -> Event:
        """Actualización parcial; cambiar de sede refresca el venue_label si no se envía"""
        actor_id = actor.id
        event = await self.get_event(db, event_id)
        changes = data.model_dump(exclude_unset=True)
        for field in NON_NULLABLE_FIELDS:
            if field in changes and changes[field] is None:
                changes.pop(field)

        if changes.get("slug"):
            await self._ensure_slug_free(db, changes["slug"], exclude_id=event.id)

        if changes.get("venue_id") is not None and changes["venue_id"] != event.venue_id:
            venue = await self.venue_service.get_venue(db, changes["venue_id"])
            if not changes.get("venue_label"):
                changes["venue_label"] = venue.label

        for field, value in changes.items():
            setattr(event, field, value)

        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            raise ConflictError("El slug ya existe", code="slug_taken")

        event = await self.get_event(db, event_id)
        await write_audit_log(
            db, actor_id, AuditAction.EVENT_UPDATE, "Event", event.id,
            {"slug": event.slug, "fields": sorted(changes)},
        )
        return event

    async def delete_event(self, db: AsyncSession, event_id: UUID, actor: User):
        """Eliminar evento (las reservas se eliminan en cascada)"""
        actor_id = actor.id
        event = await self.get_event(db, event_id)
        meta = snapshot(event, "slug", "title")
        await db.delete(event)
        await db.commit()

        logger.info(f"Evento {event_id} eliminado por admin {actor_id}")
        await write_audit_log(db, actor_id, AuditAction.EVENT_DELETE, "Event", event_id, meta)

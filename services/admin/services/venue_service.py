"""Servicio para gestión de sedes (admin)"""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from typing import List, Tuple
from uuid import UUID
import logging

from shared.database.models import Venue, Event, User, AuditAction
from shared.utils.audit import write_audit_log, snapshot
from shared.utils.errors import ConflictError, NotFoundError
from services.admin.models.admin import VenueCreateRequest, VenueUpdateRequest

logger = logging.getLogger(__name__)

DEFAULT_COUNTRY = "Norway"
NON_NULLABLE_FIELDS = ("name", "label", "city")


class VenueService:
    """Servicio para operaciones CRUD sobre sedes"""

    async def get_venue(self, db: AsyncSession, venue_id: UUID) -> Venue:
        result = await db.execute(select(Venue).where(Venue.id == venue_id))
        venue = result.scalar_one_or_none()
        if venue is None:
            raise NotFoundError("Sede no encontrada", code="venue_not_found")
        return venue

    async def _count_events(self, db: AsyncSession, venue_id: UUID) -> int:
        result = await db.execute(select(func.count(Event.id)).where(Event.venue_id == venue_id))
        return result.scalar_one()

    async def list_venues(self, db: AsyncSession) -> List[Tuple[Venue, int]]:
        """Listar sedes ordenadas por nombre con cantidad de eventos"""
        event_count = (
            select(func.count(Event.id))
            .where(Event.venue_id == Venue.id)
            .correlate(Venue)
            .scalar_subquery()
        )
        result = await db.execute(select(Venue, event_count).order_by(Venue.name.asc()))
        return [(venue, count or 0) for venue, count in result.all()]

    async def create_venue(self, db: AsyncSession, data: VenueCreateRequest, actor: User) -> Venue:
        actor_id = actor.id
        values = data.model_dump()
        values["country"] = values.get("country") or DEFAULT_COUNTRY

        venue = Venue(**values)
        db.add(venue)
        await db.commit()

        await write_audit_log(
            db, actor_id, AuditAction.VENUE_CREATE, "Venue", venue.id,
            snapshot(venue, "name", "label", "city"),
        )
        return venue

    async def update_venue(
        self,
        db: AsyncSession,
        venue_id: UUID,
        data: VenueUpdateRequest,
        actor: User
    ) -> Venue:
        """Actualización parcial; el venue_label de los eventos no se re-escribe"""
        actor_id = actor.id
        venue = await self.get_venue(db, venue_id)
        changes = data.model_dump(exclude_unset=True)
        for field in NON_NULLABLE_FIELDS:
            if field in changes and changes[field] is None:
                changes.pop(field)
        for field, value in changes.items():
            setattr(venue, field, value)
        await db.commit()

        await write_audit_log(
            db, actor_id, AuditAction.VENUE_UPDATE, "Venue", venue.id,
            {"name": venue.name, "fields": sorted(changes)},
        )
        return venue

    async def delete_venue(self, db: AsyncSession, venue_id: UUID, actor: User):
        """
        Eliminar sede

        Raises:
            ConflictError: venue_in_use si algún evento la referencia
        """
        actor_id = actor.id
        venue = await self.get_venue(db, venue_id)

        event_count = await self._count_events(db, venue.id)
        if event_count > 0:
            raise ConflictError(
                f"La sede está en uso por {event_count} evento(s)",
                code="venue_in_use"
            )

        meta = snapshot(venue, "name", "label", "city")
        await db.delete(venue)
        try:
            await db.commit()
        except IntegrityError:
            # Un evento la referenció entre el conteo y el commit
            await db.rollback()
            raise ConflictError("La sede está en uso", code="venue_in_use")

        logger.info(f"Sede {venue_id} eliminada por admin {actor_id}")
        await write_audit_log(db, actor_id, AuditAction.VENUE_DELETE, "Venue", venue_id, meta)

"""Servicio de consulta pública de eventos"""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.orm import selectinload
from typing import List

from shared.database.models import Event
from shared.utils.errors import NotFoundError


class EventService:
    """Servicio para consultar el programa del festival"""

    @staticmethod
    async def get_events(db: AsyncSession) -> List[Event]:
        """
        Obtener todos los eventos con su sede

        Ordenados por día, hora de inicio y label de hora.
        """
        stmt = (
            select(Event)
            .options(selectinload(Event.venue))
            .order_by(Event.day_id.asc(), Event.starts_at.asc(), Event.time_label.asc())
        )
        result = await db.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def get_event_by_slug(db: AsyncSession, slug: str) -> Event:
        """Obtener evento por slug (identificador público)"""
        stmt = select(Event).options(selectinload(Event.venue)).where(Event.slug == slug)
        result = await db.execute(stmt)
        event = result.scalar_one_or_none()
        if event is None:
            raise NotFoundError("Evento no encontrado", code="event_not_found")
        return event

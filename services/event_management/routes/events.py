"""Rutas públicas de eventos"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from shared.database.session import get_db
from services.event_management.models.event import EventListResponse, EventDetailResponse
from services.event_management.services.event_service import EventService


router = APIRouter()


@router.get("", response_model=EventListResponse)
async def get_events(db: AsyncSession = Depends(get_db)):
    """
    Listar el programa completo con sedes

    Endpoint público (no requiere autenticación)
    """
    events = await EventService.get_events(db)
    return {"events": events}


@router.get("/{slug}", response_model=EventDetailResponse)
async def get_event(slug: str, db: AsyncSession = Depends(get_db)):
    """Obtener un evento por slug"""
    event = await EventService.get_event_by_slug(db, slug)
    return {"event": event}

"""Rutas de reservas del usuario autenticado"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from shared.database.session import get_db
from shared.database.models import User
from shared.auth.dependencies import get_current_user
from services.reservations.models.reservation import (
    ReservationRequest,
    ReservationCreateResponse,
    ReservationListResponse,
)
from services.reservations.services.reservation_service import ReservationService
from services.notifications.services.email_service import EmailService, get_email_service


router = APIRouter()


@router.post("", response_model=ReservationCreateResponse)
async def create_reservation(
    data: ReservationRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    email_service: EmailService = Depends(get_email_service)
):
    """
    Crear o actualizar la reserva para un evento

    Re-enviar el mismo slug actualiza la cantidad de la reserva existente.
    Devuelve la reserva con el token, deep link, QR y si se envió el email.
    """
    return await ReservationService.create_or_update_reservation(
        db,
        current_user,
        data.slug,
        data.quantity,
        email_service,
    )


@router.get("", response_model=ReservationListResponse)
async def list_reservations(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Listar las reservas del usuario con tokens recién firmados"""
    reservations = await ReservationService.list_reservations_for_user(db, current_user.id)
    return {"reservations": reservations}

"""Rutas de escaneo y check-in de tickets (approver/admin)"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from shared.database.session import get_db
from shared.database.models import User
from shared.auth.dependencies import get_current_approver
from services.ticket_validation.models.ticket import (
    CheckInRequest,
    CheckInResultResponse,
    ScanResponse,
)
from services.ticket_validation.services.checkin_service import CheckInService


router = APIRouter()


@router.get("/scan", response_model=ScanResponse)
async def scan_ticket(
    token: str = Query(..., min_length=1),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_approver)
):
    """
    Resolver un ticket escaneado sin modificar estado

    Requiere rol ADMIN o APPROVER
    """
    service = CheckInService()
    reservation = await service.resolve_ticket(db, token)
    return {"ok": True, "reservation": reservation}


@router.post("/check-in", response_model=CheckInResultResponse)
async def check_in(
    request: CheckInRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_approver)
):
    """
    Registrar check-in de un ticket

    409 si ya fue registrado, 400 si la reserva no está confirmada
    """
    service = CheckInService()
    check_in = await service.perform_check_in(db, request.token, current_user)
    return {"ok": True, "check_in": check_in}

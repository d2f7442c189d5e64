"""Servicio de check-in: resolución de tokens y registro único por reserva"""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import selectinload
from typing import Optional
from uuid import UUID
import logging

from shared.database.models import (
    Event, Reservation, ReservationCheckIn, ReservationStatus, User
)
from shared.utils.errors import ConflictError, InvalidStateError, NotFoundError
from shared.utils.ticket_token import verify_ticket

logger = logging.getLogger(__name__)


class CheckInService:
    """Servicio para escanear tickets y registrar check-ins"""

    async def resolve_ticket(self, db: AsyncSession, token: str) -> Reservation:
        """
        Resolver un token a su reserva

        Verifica firma y expiración, carga la reserva y compara el ticket_code
        guardado con el del token. Reserva inexistente o código distinto
        lanzan NotFoundError.
        """
        payload = verify_ticket(token)

        try:
            reservation_id = UUID(payload.reservation_id)
        except ValueError:
            raise NotFoundError("Reserva no encontrada", code="reservation_not_found")

        stmt = (
            select(Reservation)
            .options(
                selectinload(Reservation.user),
                selectinload(Reservation.event).selectinload(Event.venue),
                selectinload(Reservation.check_ins),
            )
            .where(Reservation.id == reservation_id)
        )
        result = await db.execute(stmt)
        reservation = result.scalar_one_or_none()

        if reservation is None or reservation.ticket_code != payload.ticket_code:
            raise NotFoundError("Reserva no encontrada", code="reservation_not_found")

        return reservation

    async def _find_check_in(self, db: AsyncSession, reservation_id: UUID) -> Optional[ReservationCheckIn]:
        result = await db.execute(
            select(ReservationCheckIn).where(ReservationCheckIn.reservation_id == reservation_id)
        )
        return result.scalars().first()

    async def perform_check_in(
        self,
        db: AsyncSession,
        token: str,
        scanned_by: User
    ) -> ReservationCheckIn:
        """
        Registrar el check-in de una reserva

        Solo reservas CONFIRMED. Un segundo intento devuelve ConflictError
        (already_checked_in); la restricción única sobre reservation_id
        cubre dos escaneos simultáneos.
        """
        scanned_by_id = scanned_by.id
        reservation = await self.resolve_ticket(db, token)
        reservation_id = reservation.id

        if reservation.status != ReservationStatus.CONFIRMED:
            raise InvalidStateError(
                f"La reserva no está confirmada (estado: {ReservationStatus(reservation.status).value})",
                code="not_confirmed"
            )

        if await self._find_check_in(db, reservation_id) is not None:
            raise ConflictError("El ticket ya fue registrado", code="already_checked_in")

        check_in = ReservationCheckIn(reservation_id=reservation_id, scanned_by_id=scanned_by_id)
        db.add(check_in)
        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            logger.warning(f"Check-in concurrente rechazado para reserva {reservation_id}")
            raise ConflictError("El ticket ya fue registrado", code="already_checked_in")

        logger.info(f"Check-in registrado: reserva {reservation_id} por {scanned_by_id}")
        return check_in

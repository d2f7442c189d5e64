"""Servicio para revisión de check-ins (admin)"""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.orm import selectinload
from typing import List, Optional
from datetime import datetime
from uuid import UUID
import logging

from shared.database.models import ReservationCheckIn, Reservation, User, AuditAction
from shared.utils.audit import write_audit_log
from shared.utils.errors import NotFoundError

logger = logging.getLogger(__name__)


class CheckInsAdminService:
    """Servicio para listar y deshacer check-ins"""

    async def list_check_ins(
        self,
        db: AsyncSession,
        reservation_id: Optional[UUID] = None,
        user_id: Optional[UUID] = None,
        event_id: Optional[UUID] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None
    ) -> List[ReservationCheckIn]:
        """Listar check-ins (más recientes primero) con reserva, usuario, evento y escáner"""
        stmt = (
            select(ReservationCheckIn)
            .join(ReservationCheckIn.reservation)
            .options(
                selectinload(ReservationCheckIn.reservation).selectinload(Reservation.user),
                selectinload(ReservationCheckIn.reservation).selectinload(Reservation.event),
                selectinload(ReservationCheckIn.scanned_by),
            )
        )
        if reservation_id is not None:
            stmt = stmt.where(ReservationCheckIn.reservation_id == reservation_id)
        if user_id is not None:
            stmt = stmt.where(Reservation.user_id == user_id)
        if event_id is not None:
            stmt = stmt.where(Reservation.event_id == event_id)
        if date_from is not None:
            stmt = stmt.where(ReservationCheckIn.scanned_at >= date_from)
        if date_to is not None:
            stmt = stmt.where(ReservationCheckIn.scanned_at <= date_to)
        stmt = stmt.order_by(ReservationCheckIn.scanned_at.desc())

        result = await db.execute(stmt)
        return list(result.scalars().all())

    async def delete_check_in(self, db: AsyncSession, check_in_id: UUID, actor: User):
        """Deshacer un check-in registrado por error; la reserva vuelve a poder escanearse"""
        actor_id = actor.id
        result = await db.execute(select(ReservationCheckIn).where(ReservationCheckIn.id == check_in_id))
        check_in = result.scalar_one_or_none()
        if check_in is None:
            raise NotFoundError("Check-in no encontrado", code="check_in_not_found")

        meta = {
            "reservationId": check_in.reservation_id,
            "scannedById": check_in.scanned_by_id,
            "scannedAt": check_in.scanned_at,
        }
        await db.delete(check_in)
        await db.commit()

        logger.info(f"Check-in {check_in_id} eliminado por admin {actor_id}")
        await write_audit_log(db, actor_id, AuditAction.CHECK_IN_DELETE, "ReservationCheckIn", check_in_id, meta)

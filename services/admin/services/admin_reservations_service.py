"""Servicio para gestión de reservas (admin)"""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, or_
from sqlalchemy.orm import selectinload
from typing import Dict, List, Optional
from uuid import UUID
import logging

from shared.database.models import (
    Reservation, ReservationStatus, Event, User, AuditAction, utcnow, as_utc
)
from shared.utils.audit import write_audit_log
from shared.utils.errors import NotFoundError
from services.admin.models.admin import ReservationUpdateRequest

logger = logging.getLogger(__name__)


class AdminReservationsService:
    """Servicio para revisar, aprobar, cancelar y eliminar reservas"""

    async def _get_reservation(self, db: AsyncSession, reservation_id: UUID) -> Reservation:
        result = await db.execute(select(Reservation).where(Reservation.id == reservation_id))
        reservation = result.scalar_one_or_none()
        if reservation is None:
            raise NotFoundError("Reserva no encontrada", code="reservation_not_found")
        return reservation

    async def list_reservations(
        self,
        db: AsyncSession,
        status: Optional[ReservationStatus] = None,
        event_id: Optional[UUID] = None,
        user_id: Optional[UUID] = None,
        search: Optional[str] = None
    ) -> List[Dict]:
        """
        Listar reservas con usuario, evento y último check-in

        Args:
            db: Sesión de base de datos
            status: Filtrar por estado
            event_id: Filtrar por evento
            user_id: Filtrar por usuario
            search: Búsqueda sobre ticket_code, email/nombre del usuario y título del evento

        Returns:
            Lista de reservas (más recientes primero)
        """
        stmt = (
            select(Reservation)
            .join(Reservation.user)
            .join(Reservation.event)
            .options(
                selectinload(Reservation.user),
                selectinload(Reservation.event),
                selectinload(Reservation.check_ins),
            )
        )
        if status is not None:
            stmt = stmt.where(Reservation.status == status)
        if event_id is not None:
            stmt = stmt.where(Reservation.event_id == event_id)
        if user_id is not None:
            stmt = stmt.where(Reservation.user_id == user_id)
        if search:
            pattern = f"%{search}%"
            stmt = stmt.where(or_(
                Reservation.ticket_code.ilike(pattern),
                User.email.ilike(pattern),
                User.name.ilike(pattern),
                Event.title.ilike(pattern),
            ))
        stmt = stmt.order_by(Reservation.created_at.desc())

        result = await db.execute(stmt)
        reservations = []
        for reservation in result.scalars().unique().all():
            check_ins = sorted(reservation.check_ins, key=lambda c: as_utc(c.scanned_at), reverse=True)
            reservations.append({
                "reservation": reservation,
                "latest_check_in": check_ins[0] if check_ins else None,
                "check_in_count": len(check_ins),
            })
        return reservations

    async def update_reservation(
        self,
        db: AsyncSession,
        reservation_id: UUID,
        data: ReservationUpdateRequest,
        actor: User
    ) -> Reservation:
        """
        Actualizar estado y/o cantidad de una reserva

        CANCELLED registra quién, cuándo y el motivo; CONFIRMED registra quién
        aprobó y cuándo. El ticket_code nunca cambia.
        """
        actor_id = actor.id
        reservation = await self._get_reservation(db, reservation_id)
        changes = data.model_dump(exclude_unset=True)

        new_status = changes.get("status")
        if new_status is not None:
            reservation.status = new_status
            if new_status == ReservationStatus.CANCELLED:
                reservation.cancelled_by_id = actor_id
                reservation.cancelled_at = utcnow()
                if "cancel_reason" in changes:
                    reservation.cancel_reason = changes["cancel_reason"]
            elif new_status == ReservationStatus.CONFIRMED:
                reservation.approved_by_id = actor_id
                reservation.approved_at = utcnow()

        if changes.get("quantity") is not None:
            reservation.quantity = changes["quantity"]

        await db.commit()

        if new_status == ReservationStatus.CONFIRMED:
            action = AuditAction.RESERVATION_APPROVE
        elif new_status == ReservationStatus.CANCELLED:
            action = AuditAction.RESERVATION_CANCEL
        else:
            action = AuditAction.RESERVATION_UPDATE

        await write_audit_log(
            db, actor_id, action, "Reservation", reservation.id,
            {
                "status": ReservationStatus(reservation.status).value,
                "quantity": reservation.quantity,
                "cancelReason": reservation.cancel_reason,
            },
        )
        return reservation

    async def delete_reservation(self, db: AsyncSession, reservation_id: UUID, actor: User):
        """Eliminar reserva (los check-ins se eliminan en cascada)"""
        actor_id = actor.id
        reservation = await self._get_reservation(db, reservation_id)
        meta = {
            "userId": reservation.user_id,
            "eventId": reservation.event_id,
            "status": ReservationStatus(reservation.status).value,
        }
        await db.delete(reservation)
        await db.commit()

        logger.info(f"Reserva {reservation_id} eliminada por admin {actor_id}")
        await write_audit_log(db, actor_id, AuditAction.RESERVATION_DELETE, "Reservation", reservation_id, meta)

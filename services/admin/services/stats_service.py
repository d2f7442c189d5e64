"""Servicio para cálculo de estadísticas del dashboard"""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from typing import Dict
from datetime import timedelta

from shared.database.models import (
    User, Event, Venue, Reservation, ReservationCheckIn, utcnow
)


class StatsService:
    """Servicio para operaciones de estadísticas"""

    async def _count(self, db: AsyncSession, stmt) -> int:
        result = await db.execute(stmt)
        return result.scalar() or 0

    async def _group_count(self, db: AsyncSession, column) -> Dict[str, int]:
        """Conteo agrupado por columna como {valor: cantidad}"""
        result = await db.execute(select(column, func.count()).group_by(column))
        counts = {}
        for key, count in result.all():
            counts[getattr(key, "value", key)] = count
        return counts

    async def get_dashboard_stats(self, db: AsyncSession) -> Dict:
        """
        Obtener estadísticas globales para el dashboard

        Returns:
            Dict con usuarios, eventos, sedes, reservas y check-ins
        """
        total_users = await self._count(db, select(func.count(User.id)))
        verified_users = await self._count(
            db, select(func.count(User.id)).where(User.email_verified_at.is_not(None))
        )

        total_reservations = await self._count(db, select(func.count(Reservation.id)))
        with_check_in = await self._count(
            db,
            select(func.count(func.distinct(ReservationCheckIn.reservation_id)))
        )

        one_week_ago = utcnow() - timedelta(days=7)

        return {
            "users": {
                "total": total_users,
                "byRole": await self._group_count(db, User.role),
                "verified": verified_users,
                "unverified": total_users - verified_users,
            },
            "events": {
                "total": await self._count(db, select(func.count(Event.id))),
                "byTrack": await self._group_count(db, Event.track_id),
                "byDay": await self._group_count(db, Event.day_id),
            },
            "venues": {
                "total": await self._count(db, select(func.count(Venue.id))),
                "byCity": await self._group_count(db, Venue.city),
            },
            "reservations": {
                "total": total_reservations,
                "byStatus": await self._group_count(db, Reservation.status),
                "withCheckIn": with_check_in,
                "withoutCheckIn": total_reservations - with_check_in,
            },
            "checkIns": {
                "total": await self._count(db, select(func.count(ReservationCheckIn.id))),
                "lastWeek": await self._count(
                    db,
                    select(func.count(ReservationCheckIn.id)).where(
                        ReservationCheckIn.scanned_at >= one_week_ago
                    )
                ),
            },
        }

"""Servicio de consulta del registro de auditoría"""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from sqlalchemy.orm import selectinload
from typing import List, Optional, Tuple
from datetime import datetime

from shared.database.models import AuditLog, AuditAction


class AuditLogService:
    """Lectura paginada de audit_logs (solo lectura)"""

    async def list_audit_logs(
        self,
        db: AsyncSession,
        action: Optional[AuditAction] = None,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        limit: int = 100,
        offset: int = 0
    ) -> Tuple[List[AuditLog], int]:
        """
        Listar entradas de auditoría con filtros

        Returns:
            (entradas de la página, total sin paginar)
        """
        conditions = []
        if action is not None:
            conditions.append(AuditLog.action == action)
        if entity_type:
            conditions.append(AuditLog.entity_type == entity_type)
        if entity_id:
            conditions.append(AuditLog.entity_id == entity_id)
        if date_from is not None:
            conditions.append(AuditLog.created_at >= date_from)
        if date_to is not None:
            conditions.append(AuditLog.created_at <= date_to)

        stmt = (
            select(AuditLog)
            .options(selectinload(AuditLog.actor))
            .where(*conditions)
            .order_by(AuditLog.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await db.execute(stmt)
        logs = list(result.scalars().all())

        total = (await db.execute(select(func.count(AuditLog.id)).where(*conditions))).scalar_one()
        return logs, total

    async def recent(self, db: AsyncSession, limit: int = 10) -> List[AuditLog]:
        logs, _ = await self.list_audit_logs(db, limit=limit)
        return logs

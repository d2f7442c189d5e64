"""Registro de auditoría de acciones administrativas (best-effort)"""
from fastapi.encoders import jsonable_encoder
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Any, Optional
import logging

from shared.database.models import AuditLog, AuditAction

logger = logging.getLogger(__name__)

# Campos que nunca deben llegar al snapshot
_REDACTED_KEYS = {"password", "password_hash", "passwordHash", "code", "code_hash", "token"}


def _clean_meta(meta: Optional[dict]) -> Optional[dict]:
    if not meta:
        return None
    return jsonable_encoder({k: v for k, v in meta.items() if k not in _REDACTED_KEYS})


async def write_audit_log(
    db: AsyncSession,
    actor_id,
    action: AuditAction,
    entity_type: str,
    entity_id,
    meta: Optional[dict] = None
) -> bool:
    """
    Agregar una entrada de auditoría

    Se escribe en una sesión propia sobre el mismo engine de la request,
    después de que la mutación principal ya fue confirmada. Cualquier error
    se registra y se descarta: nunca afecta a la operación principal.

    Returns:
        True si la entrada quedó guardada
    """
    try:
        async with AsyncSession(bind=db.bind, expire_on_commit=False) as audit_session:
            audit_session.add(AuditLog(
                actor_id=actor_id,
                action=action,
                entity_type=entity_type,
                entity_id=str(entity_id),
                meta=_clean_meta(meta),
            ))
            await audit_session.commit()
        return True
    except Exception as e:
        logger.error(
            f"Failed to create audit log ({action.value} {entity_type}:{entity_id}): {e}",
            exc_info=True
        )
        return False


def snapshot(obj: Any, *fields: str) -> dict:
    """Snapshot pequeño de campos relevantes de una entidad"""
    return {field: getattr(obj, field, None) for field in fields}

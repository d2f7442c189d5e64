"""Modelos Pydantic base compartidos por los servicios"""
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel
from pydantic.alias_generators import to_camel


def serialize_utc(dt: Optional[datetime]) -> Optional[str]:
    """Serializar datetime a ISO 8601 con timezone UTC explícito"""
    if dt is None:
        return None
    # SQLite devuelve datetimes sin timezone; se guardan siempre en UTC
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    elif dt.tzinfo != timezone.utc:
        dt = dt.astimezone(timezone.utc)
    return dt.isoformat()


class CamelModel(BaseModel):
    """
    Modelo con alias camelCase para el API JSON

    Acepta tanto snake_case como camelCase en la entrada; FastAPI serializa
    las respuestas por alias (camelCase).
    """

    class Config:
        from_attributes = True
        populate_by_name = True
        alias_generator = to_camel

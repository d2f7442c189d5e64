"""
Firma y verificación de tokens de ticket

Formato: base64url(JSON del payload) + "." + base64url(HMAC-SHA256(JSON del payload))

El token es autocontenido: no requiere consultar la base de datos para
comprobar autenticidad o expiración, solo para resolver la reserva.
"""
import base64
import binascii
import hashlib
import hmac
import json
from datetime import datetime, timedelta, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from app.core.config import settings
from shared.utils.errors import (
    ExpiredTokenError,
    InvalidSignatureError,
    InvalidTokenError,
    TicketSecretMissingError,
)

TOKEN_SEPARATOR = "."
EVENT_END_GRACE = timedelta(days=30)
OPEN_ENDED_VALIDITY = timedelta(days=365)


class TicketPayload(BaseModel):
    """Contenido firmado del token"""
    model_config = ConfigDict(strict=True, populate_by_name=True, frozen=True)

    reservation_id: str = Field(alias="reservationId", min_length=1)
    ticket_code: str = Field(alias="ticketCode", min_length=1)
    exp: int


def _get_secret() -> bytes:
    secret = settings.TICKET_SECRET
    if not secret:
        raise TicketSecretMissingError()
    return secret.encode("utf-8")


def _b64url_encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _b64url_decode(segment: str) -> bytes:
    """
    Decodificar un segmento base64url (con o sin padding)

    Solo se acepta la codificación canónica: un segmento que decodifica a los
    mismos bytes pero difiere en los bits sobrantes del último carácter se rechaza.
    """
    padded = segment + "=" * (-len(segment) % 4)
    raw = base64.b64decode(padded, altchars=b"-_", validate=True)
    if _b64url_encode(raw) != segment.rstrip("="):
        raise ValueError("segmento base64url no canónico")
    return raw


def _serialize(payload: TicketPayload) -> bytes:
    """Serialización determinista (claves ordenadas, sin espacios)"""
    data = payload.model_dump(by_alias=True)
    return json.dumps(data, sort_keys=True, separators=(",", ":")).encode("utf-8")


def _digest(secret: bytes, message: bytes) -> bytes:
    return hmac.new(secret, message, hashlib.sha256).digest()


def sign_ticket(payload: TicketPayload) -> str:
    """
    Firmar un payload de ticket

    Returns:
        Token opaco listo para incrustar en un QR o un enlace
    """
    secret = _get_secret()
    body = _serialize(payload)
    return f"{_b64url_encode(body)}{TOKEN_SEPARATOR}{_b64url_encode(_digest(secret, body))}"


def verify_ticket(token: str, now: Optional[datetime] = None) -> TicketPayload:
    """
    Verificar un token y devolver su payload

    Raises:
        InvalidTokenError: estructura o payload malformado
        InvalidSignatureError: la firma no coincide
        ExpiredTokenError: exp ya pasó respecto a `now`
    """
    secret = _get_secret()

    if not isinstance(token, str) or not token.isascii():
        raise InvalidTokenError()

    parts = token.strip().split(TOKEN_SEPARATOR)
    if len(parts) != 2 or not parts[0] or not parts[1]:
        raise InvalidTokenError()

    # Cualquier alteración de un segmento bien formado es un fallo de firma
    body_segment, signature_segment = parts
    try:
        body = _b64url_decode(body_segment)
        provided = _b64url_decode(signature_segment)
    except (binascii.Error, ValueError):
        raise InvalidSignatureError()

    # Comparación en tiempo constante
    if not hmac.compare_digest(_digest(secret, body), provided):
        raise InvalidSignatureError()

    try:
        data = json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        raise InvalidTokenError()

    if not isinstance(data, dict):
        raise InvalidTokenError()

    try:
        payload = TicketPayload.model_validate(data)
    except ValidationError:
        raise InvalidTokenError()

    current = now or datetime.now(timezone.utc)
    if payload.exp < int(current.timestamp()):
        raise ExpiredTokenError()

    return payload


def compute_ticket_expiry(
    ends_at: Optional[datetime],
    issued_at: Optional[datetime] = None
) -> int:
    """
    Calcular exp (unix segundos) para un ticket

    Eventos con fecha de término: termino + 30 días.
    Eventos sin fecha de término: emisión + 1 año.
    """
    if ends_at is not None:
        if ends_at.tzinfo is None:
            ends_at = ends_at.replace(tzinfo=timezone.utc)
        return int((ends_at + EVENT_END_GRACE).timestamp())

    issued = issued_at or datetime.now(timezone.utc)
    return int((issued + OPEN_ENDED_VALIDITY).timestamp())


def create_ticket_token(
    reservation_id: str,
    ticket_code: str,
    ends_at: Optional[datetime] = None,
    issued_at: Optional[datetime] = None
) -> str:
    """Emitir un token nuevo para una reserva con la política de expiración estándar"""
    payload = TicketPayload(
        reservation_id=str(reservation_id),
        ticket_code=ticket_code,
        exp=compute_ticket_expiry(ends_at, issued_at),
    )
    return sign_ticket(payload)

"""
Rate limiting usando slowapi + Redis
Protege registro, verificación, login y generación de QR
"""
from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from fastapi import Request, Response
from starlette.responses import JSONResponse
import logging

from app.core.config import settings

logger = logging.getLogger(__name__)


def get_real_client_ip(request: Request) -> str:
    """
    Obtener IP real del cliente considerando proxies/load balancers.
    Importante para rate limiting correcto detrás de nginx/cloudflare.
    """
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        # X-Forwarded-For puede tener múltiples IPs: client, proxy1, proxy2
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip

    cf_connecting_ip = request.headers.get("CF-Connecting-IP")
    if cf_connecting_ip:
        return cf_connecting_ip

    return get_remote_address(request)


def _build_limiter() -> Limiter:
    if not settings.RATE_LIMIT_ENABLED:
        logger.info("Rate limiting deshabilitado (RATE_LIMIT_ENABLED=false)")
        return Limiter(key_func=get_real_client_ip, enabled=False, headers_enabled=False)

    redis_host = settings.REDIS_URL.split('@')[-1] if '@' in settings.REDIS_URL else settings.REDIS_URL
    logger.info(f"Rate limiter inicializado con Redis: {redis_host}")
    return Limiter(
        key_func=get_real_client_ip,
        storage_uri=settings.REDIS_URL,
        strategy="fixed-window",
        headers_enabled=False,  # Deshabilitado para compatibilidad con response_model de FastAPI
    )


limiter = _build_limiter()


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> Response:
    """
    Handler personalizado para rate limit exceeded.
    Retorna JSON con información útil para el cliente.
    """
    try:
        retry_after = str(exc.limit.limit.get_expiry())
    except AttributeError:
        retry_after = "60"

    logger.warning(
        f"Rate limit exceeded - IP: {get_real_client_ip(request)}, "
        f"Path: {request.url.path}, "
        f"Retry-After: {retry_after}"
    )

    return JSONResponse(
        status_code=429,
        content={
            "error": "rate_limit_exceeded",
            "detail": "Demasiadas solicitudes. Por favor espera antes de intentar nuevamente.",
            "retry_after_seconds": int(retry_after) if retry_after.isdigit() else 60,
        },
        headers={"Retry-After": str(retry_after)}
    )


# ============ RATE LIMITS PRE-DEFINIDOS ============

RATE_LIMITS = {
    # Registro / reenvío de código: envían email, muy restrictivo
    "register": "5/minute",

    # Verificación de código: limita fuerza bruta sobre 6 dígitos
    "verify": "10/minute",

    # Login
    "login": "10/minute",

    # Render de QR: CPU-bound
    "qr": "60/minute",
}

"""Rutas públicas de imágenes QR y deep links de tickets"""
from fastapi import APIRouter, Query, Request
from fastapi.responses import RedirectResponse, Response
from starlette.concurrency import run_in_threadpool
from typing import Optional

from shared.utils.qr_generator import render_qr_png, clamp_size, qr_image_url
from shared.utils.rate_limiter import limiter, RATE_LIMITS
from shared.utils.errors import InvalidTokenError
from shared.utils.ticket_token import verify_ticket


router = APIRouter()
link_router = APIRouter()


@router.get("")
@limiter.limit(RATE_LIMITS["qr"])
async def get_qr_image(
    request: Request,
    token: Optional[str] = Query(None),
    size: Optional[str] = Query(None)
):
    """
    Generar la imagen PNG del QR de un ticket

    Token ausente, inválido o expirado: 400. El tamaño se limita a 120-1024 px.
    """
    if not token:
        raise InvalidTokenError("Falta el token", code="missing_token")

    png = await run_in_threadpool(render_qr_png, token, clamp_size(size))
    return Response(
        content=png,
        media_type="image/png",
        headers={"Cache-Control": "public, max-age=3600"},
    )


@link_router.get("/{token}")
async def resolve_ticket_link(token: str):
    """Destino del deep link del ticket: redirige a la imagen QR"""
    verify_ticket(token)
    return RedirectResponse(url=qr_image_url(token), status_code=307)

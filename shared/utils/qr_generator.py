"""Utilidades para generar códigos QR de tickets"""
import base64
import io
import logging
from typing import Optional
from urllib.parse import urlencode

import qrcode
import qrcode.constants
from PIL import Image

from app.core.config import settings
from shared.utils.ticket_token import verify_ticket

logger = logging.getLogger(__name__)

MIN_QR_SIZE = 120
MAX_QR_SIZE = 1024
DEFAULT_QR_SIZE = 260


def clamp_size(value, fallback: int = DEFAULT_QR_SIZE) -> int:
    """
    Limitar el tamaño solicitado a un rango seguro (120-1024 px)

    Valores no numéricos devuelven el fallback.
    """
    try:
        size = float(value)
    except (TypeError, ValueError):
        return fallback
    if size != size or size in (float("inf"), float("-inf")):
        return fallback
    return max(MIN_QR_SIZE, min(MAX_QR_SIZE, int(size)))


def _base_url() -> str:
    return (settings.APP_BASE_URL or "").rstrip("/")


def ticket_link(token: str) -> str:
    """Deep link canónico del ticket"""
    base = _base_url()
    if base:
        return f"{base}/qr/{token}"
    return f"HT:{token}"


def qr_image_url(token: str, size: int = DEFAULT_QR_SIZE) -> str:
    """URL estable que regenera la imagen QR bajo demanda (para emails)"""
    query = urlencode({"token": token, "size": clamp_size(size)})
    return f"{_base_url()}/api/qr?{query}"


def render_qr_png(token: str, size: Optional[int] = None) -> bytes:
    """
    Generar PNG del QR que apunta al deep link del ticket

    El token se verifica antes de generar la imagen; un token inválido o
    expirado lanza el error correspondiente sin gastar trabajo.
    """
    verify_ticket(token)
    width = clamp_size(size if size is not None else DEFAULT_QR_SIZE)

    qr = qrcode.QRCode(
        version=None,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=10,
        border=1,
    )
    qr.add_data(ticket_link(token))
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white").get_image()
    img = img.resize((width, width), Image.NEAREST)

    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    png = buffer.getvalue()
    logger.debug(f"QR generado ({width}px, {len(png)} bytes)")
    return png


def qr_data_url(token: str, size: Optional[int] = None) -> str:
    """PNG del QR como data URL (data:image/png;base64,...)"""
    png = render_qr_png(token, size)
    return "data:image/png;base64," + base64.b64encode(png).decode("ascii")

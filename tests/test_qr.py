"""Tests de generación de QR y endpoints públicos de imagen y deep link"""
import io
from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qs, urlparse
from uuid import uuid4

import pytest
from PIL import Image

from app.core.config import settings
from shared.utils.errors import ExpiredTokenError, InvalidTokenError
from shared.utils.qr_generator import (
    DEFAULT_QR_SIZE,
    clamp_size,
    qr_data_url,
    qr_image_url,
    render_qr_png,
    ticket_link,
)
from shared.utils.ticket_token import TicketPayload, create_ticket_token, sign_ticket


def _token() -> str:
    return create_ticket_token(uuid4(), "feedfacecafe", datetime.now(timezone.utc) + timedelta(days=1))


def _expired_token() -> str:
    exp = int((datetime.now(timezone.utc) - timedelta(hours=1)).timestamp())
    return sign_ticket(TicketPayload(reservation_id=str(uuid4()), ticket_code="old", exp=exp))


@pytest.mark.parametrize("value,expected", [
    (None, DEFAULT_QR_SIZE),
    ("abc", DEFAULT_QR_SIZE),
    ("nan", DEFAULT_QR_SIZE),
    ("inf", DEFAULT_QR_SIZE),
    (50, 120),
    ("5000", 1024),
    ("300", 300),
    (300.7, 300),
])
def test_clamp_size(value, expected):
    assert clamp_size(value) == expected


def test_ticket_link_uses_base_url(monkeypatch):
    monkeypatch.setattr(settings, "APP_BASE_URL", "https://festival.test/")
    assert ticket_link("tok") == "https://festival.test/qr/tok"


def test_ticket_link_without_base_url_uses_scheme(monkeypatch):
    monkeypatch.setattr(settings, "APP_BASE_URL", "")
    assert ticket_link("tok") == "HT:tok"


def test_qr_image_url_is_relative_without_base_url(monkeypatch):
    monkeypatch.setattr(settings, "APP_BASE_URL", "")
    url = qr_image_url("tok", size=9999)
    assert url.startswith("/api/qr?")
    assert parse_qs(urlparse(url).query) == {"token": ["tok"], "size": ["1024"]}


def test_render_png_has_requested_size():
    png = render_qr_png(_token(), 300)
    assert png.startswith(b"\x89PNG")
    assert Image.open(io.BytesIO(png)).size == (300, 300)


def test_render_png_rejects_invalid_and_expired_tokens():
    with pytest.raises(InvalidTokenError):
        render_qr_png("not-a-token")
    with pytest.raises(ExpiredTokenError):
        render_qr_png(_expired_token())


def test_data_url_prefix():
    assert qr_data_url(_token()).startswith("data:image/png;base64,")


async def test_qr_endpoint_returns_png(client):
    response = await client.get("/api/qr", params={"token": _token(), "size": "200"})
    assert response.status_code == 200
    assert response.headers["content-type"] == "image/png"
    assert response.headers["cache-control"] == "public, max-age=3600"
    assert Image.open(io.BytesIO(response.content)).size == (200, 200)


async def test_qr_endpoint_missing_token(client):
    response = await client.get("/api/qr")
    assert response.status_code == 400
    assert response.json()["error"] == "missing_token"


@pytest.mark.parametrize("token,code", [
    ("garbage", "invalid_token"),
    (None, "expired"),
])
async def test_qr_endpoint_rejects_bad_tokens(client, token, code):
    response = await client.get("/api/qr", params={"token": token or _expired_token()})
    assert response.status_code == 400
    assert response.json()["error"] == code


async def test_deep_link_redirects_to_image(client):
    token = _token()
    response = await client.get(f"/qr/{token}")
    assert response.status_code == 307
    location = urlparse(response.headers["location"])
    assert location.path == "/api/qr"
    assert parse_qs(location.query)["token"] == [token]


async def test_deep_link_with_invalid_token(client):
    response = await client.get("/qr/garbage")
    assert response.status_code == 400

"""Tests de la identificación de cliente para rate limiting"""
from starlette.requests import Request

from shared.utils.rate_limiter import RATE_LIMITS, get_real_client_ip, limiter


def _request(headers: dict) -> Request:
    return Request({
        "type": "http",
        "method": "GET",
        "path": "/api/qr",
        "headers": [(k.lower().encode(), v.encode()) for k, v in headers.items()],
        "client": ("10.0.0.9", 5000),
    })


def test_forwarded_for_uses_first_hop():
    request = _request({"X-Forwarded-For": "203.0.113.7, 10.0.0.1"})
    assert get_real_client_ip(request) == "203.0.113.7"


def test_header_precedence_and_fallback():
    assert get_real_client_ip(_request({"X-Real-IP": "198.51.100.2"})) == "198.51.100.2"
    assert get_real_client_ip(_request({"CF-Connecting-IP": "192.0.2.5"})) == "192.0.2.5"
    assert get_real_client_ip(_request({})) == "10.0.0.9"


def test_limiter_disabled_in_tests():
    assert limiter.enabled is False
    assert set(RATE_LIMITS) >= {"register", "verify", "login", "qr"}

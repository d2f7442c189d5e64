"""Tests del códec de tokens de ticket"""
import base64
import json
from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from app.core.config import settings
from shared.utils.errors import (
    ExpiredTokenError,
    InvalidSignatureError,
    InvalidTokenError,
    TicketSecretMissingError,
)
from shared.utils.ticket_token import (
    TicketPayload,
    compute_ticket_expiry,
    create_ticket_token,
    sign_ticket,
    verify_ticket,
    _b64url_encode,
    _digest,
)


def _payload(exp: int, reservation_id: str = None, ticket_code: str = "a1b2c3d4e5f6a7b8c9d0") -> TicketPayload:
    return TicketPayload(reservation_id=reservation_id or str(uuid4()), ticket_code=ticket_code, exp=exp)


def _decode(segment: str) -> bytes:
    return base64.urlsafe_b64decode(segment + "=" * (-len(segment) % 4))


def _sign_raw(data) -> str:
    """Firmar un documento JSON arbitrario con el secreto configurado"""
    body = json.dumps(data, sort_keys=True, separators=(",", ":")).encode("utf-8")
    signature = _digest(settings.TICKET_SECRET.encode("utf-8"), body)
    return f"{_b64url_encode(body)}.{_b64url_encode(signature)}"


def _future_exp() -> int:
    return int((datetime.now(timezone.utc) + timedelta(days=1)).timestamp())


def test_round_trip_returns_same_payload():
    payload = _payload(_future_exp())
    assert verify_ticket(sign_ticket(payload)) == payload


def test_token_has_two_unpadded_base64url_segments():
    token = sign_ticket(_payload(_future_exp()))
    body, signature = token.split(".")
    assert "=" not in token
    assert len(_decode(signature)) == 32
    data = json.loads(_decode(body))
    assert set(data) == {"reservationId", "ticketCode", "exp"}


def test_serialization_is_deterministic():
    payload = _payload(_future_exp(), reservation_id="r-1")
    assert sign_ticket(payload) == sign_ticket(payload)


@pytest.mark.parametrize("segment_index", [0, 1])
def test_flipped_bit_is_rejected_as_invalid_signature(segment_index):
    token = sign_ticket(_payload(_future_exp()))
    segments = token.split(".")
    raw = bytearray(_decode(segments[segment_index]))

    for position in (0, len(raw) // 2, len(raw) - 1):
        tampered = bytearray(raw)
        tampered[position] ^= 0x01
        parts = list(segments)
        parts[segment_index] = _b64url_encode(bytes(tampered))
        with pytest.raises(InvalidSignatureError):
            verify_ticket(".".join(parts))


def test_every_flipped_character_bit_is_rejected():
    token = sign_ticket(_payload(_future_exp()))
    accepted, wrong_error = [], []

    for index, char in enumerate(token):
        if char == ".":
            continue
        for bit in range(7):
            tampered = token[:index] + chr(ord(char) ^ (1 << bit)) + token[index + 1:]
            # Un "." nuevo cambia la cantidad de segmentos: error estructural
            expected = InvalidTokenError if tampered.count(".") != 1 else InvalidSignatureError
            try:
                verify_ticket(tampered)
            except expected:
                continue
            except Exception as exc:
                wrong_error.append((index, bit, type(exc).__name__))
            else:
                accepted.append((index, bit))

    assert accepted == []
    assert wrong_error == []


def test_non_canonical_trailing_bits_are_rejected():
    token = sign_ticket(_payload(_future_exp()))
    body, signature = token.split(".")
    # 32 bytes -> 43 caracteres; los 2 bits bajos del último carácter no se usan
    alphabet = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-_"
    last = alphabet.index(signature[-1])
    variant = signature[:-1] + alphabet[last ^ 0x01]
    assert _decode(variant) == _decode(signature)

    with pytest.raises(InvalidSignatureError):
        verify_ticket(f"{body}.{variant}")


def test_token_from_other_secret_is_rejected(monkeypatch):
    token = sign_ticket(_payload(_future_exp()))
    monkeypatch.setattr(settings, "TICKET_SECRET", "another-secret")
    with pytest.raises(InvalidSignatureError):
        verify_ticket(token)


def test_expiry_boundary():
    now = datetime(2026, 6, 1, 12, 0, 0, tzinfo=timezone.utc)
    exp = int(now.timestamp())

    assert verify_ticket(sign_ticket(_payload(exp + 1)), now=now).exp == exp + 1
    assert verify_ticket(sign_ticket(_payload(exp)), now=now).exp == exp
    with pytest.raises(ExpiredTokenError):
        verify_ticket(sign_ticket(_payload(exp - 1)), now=now)


def test_padded_segments_are_accepted():
    token = sign_ticket(_payload(_future_exp()))
    padded = ".".join(s + "=" * (-len(s) % 4) for s in token.split("."))
    assert verify_ticket(padded) == verify_ticket(token)


@pytest.mark.parametrize("token", ["", "abc", "a.b.c", ".abc", "abc.", "ñandú.firma"])
def test_malformed_tokens_are_invalid(token):
    with pytest.raises(InvalidTokenError):
        verify_ticket(token)


@pytest.mark.parametrize("data", [
    {"reservationId": "r-1", "exp": 9999999999},
    {"reservationId": "r-1", "ticketCode": "abc"},
    {"reservationId": "r-1", "ticketCode": "abc", "exp": "9999999999"},
    {"reservationId": 5, "ticketCode": "abc", "exp": 9999999999},
    ["r-1", "abc", 9999999999],
])
def test_correctly_signed_but_malformed_payload_is_invalid(data):
    with pytest.raises(InvalidTokenError):
        verify_ticket(_sign_raw(data))


def test_missing_secret_fails_hard(monkeypatch):
    token = sign_ticket(_payload(_future_exp()))
    monkeypatch.setattr(settings, "TICKET_SECRET", "")

    with pytest.raises(TicketSecretMissingError):
        sign_ticket(_payload(_future_exp()))
    with pytest.raises(TicketSecretMissingError):
        verify_ticket(token)


def test_expiry_policy():
    ends_at = datetime(2026, 8, 10, 22, 0, tzinfo=timezone.utc)
    issued_at = datetime(2026, 1, 1, tzinfo=timezone.utc)

    assert compute_ticket_expiry(ends_at, issued_at) == int((ends_at + timedelta(days=30)).timestamp())
    assert compute_ticket_expiry(None, issued_at) == int((issued_at + timedelta(days=365)).timestamp())


def test_naive_end_date_is_treated_as_utc():
    naive = datetime(2026, 8, 10, 22, 0)
    aware = naive.replace(tzinfo=timezone.utc)
    assert compute_ticket_expiry(naive) == compute_ticket_expiry(aware)


def test_create_ticket_token_embeds_reservation():
    reservation_id = uuid4()
    token = create_ticket_token(reservation_id, "c0ffee", datetime.now(timezone.utc) + timedelta(days=2))
    payload = verify_ticket(token)
    assert payload.reservation_id == str(reservation_id)
    assert payload.ticket_code == "c0ffee"

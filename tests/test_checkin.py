"""Tests de escaneo y check-in de tickets"""
from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest
from sqlalchemy import select, func

from shared.database.models import ReservationCheckIn, ReservationStatus, Role
from shared.utils.ticket_token import TicketPayload, create_ticket_token, sign_ticket
from services.ticket_validation.services.checkin_service import CheckInService
from conftest import auth_headers, ticket_token_for


async def _check_in_count(db, reservation_id) -> int:
    result = await db.execute(
        select(func.count(ReservationCheckIn.id)).where(ReservationCheckIn.reservation_id == reservation_id)
    )
    return result.scalar_one()


@pytest.fixture
async def ticket(make_user, make_event, make_reservation):
    """Reserva confirmada + token válido"""
    user = await make_user(name="Guest Person")
    event = await make_event(slug="open-night")
    reservation = await make_reservation(user, event, quantity=2)
    return {
        "user": user,
        "event": event,
        "reservation": reservation,
        "token": ticket_token_for(reservation, event),
    }


async def test_scan_resolves_reservation(client, make_user, ticket):
    approver = await make_user(role=Role.APPROVER)
    response = await client.get(
        "/api/approver/scan", params={"token": ticket["token"]}, headers=auth_headers(approver)
    )
    assert response.status_code == 200
    reservation = response.json()["reservation"]
    assert reservation["id"] == str(ticket["reservation"].id)
    assert reservation["quantity"] == 2
    assert reservation["user"]["email"] == ticket["user"].email
    assert reservation["user"]["name"] == "Guest Person"
    assert reservation["event"]["slug"] == "open-night"
    assert reservation["event"]["venue"]["label"] == ticket["event"].venue_label
    assert reservation["checkIns"] == []


async def test_check_in_succeeds_exactly_once(client, db, make_user, ticket):
    approver = await make_user(role=Role.APPROVER)
    headers = auth_headers(approver)

    first = await client.post("/api/approver/check-in", json={"token": ticket["token"]}, headers=headers)
    assert first.status_code == 200
    check_in = first.json()["checkIn"]
    assert check_in["reservationId"] == str(ticket["reservation"].id)
    assert check_in["scannedById"] == str(approver.id)

    for _ in range(2):
        again = await client.post("/api/approver/check-in", json={"token": ticket["token"]}, headers=headers)
        assert again.status_code == 409
        assert again.json()["error"] == "already_checked_in"

    assert await _check_in_count(db, ticket["reservation"].id) == 1

    scan = await client.get("/api/approver/scan", params={"token": ticket["token"]}, headers=headers)
    assert len(scan.json()["reservation"]["checkIns"]) == 1


async def test_concurrent_check_in_hits_unique_constraint(client, db, monkeypatch, make_user, ticket):
    admin = await make_user(role=Role.ADMIN)
    headers = auth_headers(admin)

    first = await client.post("/api/approver/check-in", json={"token": ticket["token"]}, headers=headers)
    assert first.status_code == 200

    async def no_existing_check_in(self, session, reservation_id):
        # Simula la otra request que leyó antes del primer commit
        return None

    monkeypatch.setattr(CheckInService, "_find_check_in", no_existing_check_in)

    second = await client.post("/api/approver/check-in", json={"token": ticket["token"]}, headers=headers)
    assert second.status_code == 409
    assert second.json()["error"] == "already_checked_in"
    assert await _check_in_count(db, ticket["reservation"].id) == 1


@pytest.mark.parametrize("status", [ReservationStatus.WAITLIST, ReservationStatus.CANCELLED])
async def test_only_confirmed_reservations_check_in(client, db, make_user, make_event, make_reservation, status):
    approver = await make_user(role=Role.APPROVER)
    event = await make_event()
    reservation = await make_reservation(await make_user(), event, status=status)

    response = await client.post(
        "/api/approver/check-in",
        json={"token": ticket_token_for(reservation, event)},
        headers=auth_headers(approver),
    )
    assert response.status_code == 400
    assert response.json()["error"] == "not_confirmed"
    assert await _check_in_count(db, reservation.id) == 0


async def test_ticket_code_mismatch_is_not_found(client, make_user, ticket):
    approver = await make_user(role=Role.APPROVER)
    forged = ticket_token_for(ticket["reservation"], ticket["event"], ticket_code="0" * 20)

    response = await client.post("/api/approver/check-in", json={"token": forged}, headers=auth_headers(approver))
    assert response.status_code == 404
    assert response.json()["error"] == "reservation_not_found"


@pytest.mark.parametrize("reservation_id", ["not-a-uuid", None])
async def test_unknown_reservation_is_not_found(client, make_user, reservation_id):
    approver = await make_user(role=Role.APPROVER)
    token = create_ticket_token(reservation_id or uuid4(), "abc")

    response = await client.get("/api/approver/scan", params={"token": token}, headers=auth_headers(approver))
    assert response.status_code == 404


async def test_token_errors(client, make_user, ticket):
    approver = await make_user(role=Role.APPROVER)
    headers = auth_headers(approver)

    body, signature = ticket["token"].split(".")
    tampered = f"{body}.{signature[::-1]}"
    response = await client.post("/api/approver/check-in", json={"token": tampered}, headers=headers)
    assert response.status_code == 400
    assert response.json()["error"] == "invalid_signature"

    exp = int((datetime.now(timezone.utc) - timedelta(seconds=1)).timestamp())
    expired = sign_ticket(TicketPayload(
        reservation_id=str(ticket["reservation"].id),
        ticket_code=ticket["reservation"].ticket_code,
        exp=exp,
    ))
    response = await client.post("/api/approver/check-in", json={"token": expired}, headers=headers)
    assert response.status_code == 400
    assert response.json()["error"] == "expired"


async def test_check_in_requires_approver_or_admin(client, make_user, ticket):
    response = await client.post("/api/approver/check-in", json={"token": ticket["token"]})
    assert response.status_code == 401

    response = await client.post(
        "/api/approver/check-in", json={"token": ticket["token"]}, headers=auth_headers(ticket["user"])
    )
    assert response.status_code == 403
    assert response.json()["error"] == "forbidden"

    response = await client.get(
        "/api/approver/scan", params={"token": ticket["token"]}, headers=auth_headers(ticket["user"])
    )
    assert response.status_code == 403

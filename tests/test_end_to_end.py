"""Flujo completo: registro, reserva, QR y check-in en la puerta"""
import io

from PIL import Image

from shared.database.models import Role
from conftest import auth_headers


async def test_open_night_flow(client, email_service, make_user, make_event):
    await make_event(slug="open-night", title="Open Night")
    approver = await make_user(role=Role.APPROVER)

    # Registro y verificación
    response = await client.post("/api/auth/register", json={
        "name": "Festival Guest",
        "phone": "+47 48000000",
        "email": "guest@example.com",
        "password": "open-night-pass",
    })
    assert response.status_code == 201
    code = email_service.send_verification_code_email.call_args.kwargs["code"]

    response = await client.post("/api/auth/register/verify", json={"email": "guest@example.com", "code": code})
    assert response.status_code == 200

    response = await client.post(
        "/api/auth/login", json={"identifier": "guest@example.com", "password": "open-night-pass"}
    )
    assert response.status_code == 200
    guest_headers = {"Authorization": f"Bearer {response.json()['access_token']}"}

    # Reserva
    response = await client.post(
        "/api/reservations", json={"slug": "open-night", "quantity": 2}, headers=guest_headers
    )
    assert response.status_code == 200
    reservation = response.json()
    assert reservation["reservation"]["quantity"] == 2
    assert reservation["emailSent"] is True
    token = reservation["ticketToken"]

    # QR
    response = await client.get("/api/qr", params={"token": token})
    assert response.status_code == 200
    assert Image.open(io.BytesIO(response.content)).size == (260, 260)

    # Puerta
    approver_headers = auth_headers(approver)
    response = await client.get("/api/approver/scan", params={"token": token}, headers=approver_headers)
    assert response.status_code == 200
    assert response.json()["reservation"]["user"]["email"] == "guest@example.com"
    assert response.json()["reservation"]["event"]["title"] == "Open Night"

    response = await client.post("/api/approver/check-in", json={"token": token}, headers=approver_headers)
    assert response.status_code == 200

    response = await client.post("/api/approver/check-in", json={"token": token}, headers=approver_headers)
    assert response.status_code == 409
    assert response.json()["error"] == "already_checked_in"

    # El listado del usuario refleja el check-in
    response = await client.get("/api/reservations", headers=guest_headers)
    items = response.json()["reservations"]
    assert len(items) == 1
    assert items[0]["checkedIn"] is True
    assert items[0]["quantity"] == 2

"""Tests del programa público de eventos y endpoints operativos"""
from datetime import datetime, timezone

from shared.database import connection


async def test_list_events_ordered_with_venue(client, make_venue, make_event):
    venue = await make_venue(label="Scenehuset, Hamar")
    await make_event(slug="late", venue=venue, day_id="day2", starts_at=datetime(2026, 8, 11, 20, tzinfo=timezone.utc))
    await make_event(slug="early", venue=venue, day_id="day1", starts_at=datetime(2026, 8, 10, 18, tzinfo=timezone.utc))

    response = await client.get("/api/events")
    assert response.status_code == 200
    events = response.json()["events"]
    assert [e["slug"] for e in events] == ["early", "late"]
    assert events[0]["venue"]["label"] == "Scenehuset, Hamar"
    assert events[0]["startsAt"] == "2026-08-10T18:00:00+00:00"
    assert events[0]["isFree"] is True


async def test_get_event_by_slug(client, make_event):
    event = await make_event(slug="open-night")

    response = await client.get("/api/events/open-night")
    assert response.status_code == 200
    assert response.json()["event"]["id"] == str(event.id)

    response = await client.get("/api/events/missing")
    assert response.status_code == 404
    assert response.json() == {"error": "event_not_found", "detail": "Evento no encontrado"}


async def test_health(client):
    response = await client.get("/health")
    assert response.json() == {"status": "ok", "service": "festival-api"}


async def test_ready(client):
    response = await client.get("/ready")
    assert response.status_code == 200
    assert response.json()["database"] == "connected"


async def test_ready_without_database(client, monkeypatch):
    monkeypatch.setattr(connection, "async_session_maker", None)
    response = await client.get("/ready")
    assert response.status_code == 503
    assert response.json()["status"] == "not ready"

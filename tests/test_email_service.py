"""Tests del servicio de email (Resend)"""
import resend

from app.core.config import settings
from services.notifications.services.email_service import EmailService


async def test_unconfigured_service_degrades_to_false(monkeypatch):
    monkeypatch.setattr(settings, "RESEND_API_KEY", "")
    service = EmailService()
    assert service.resend_configured is False
    assert await service.send_verification_code_email("a@example.com", "A", "123456", 10) is False


async def test_ticket_email_payload(monkeypatch):
    monkeypatch.setattr(settings, "RESEND_API_KEY", "re_test")
    sent = []

    def fake_send(params):
        sent.append(params)
        return {"id": "email-1"}

    monkeypatch.setattr(resend.Emails, "send", fake_send)
    service = EmailService()

    ok = await service.send_ticket_email(
        to_email="guest@example.com",
        attendee_name="Guest <b>",
        event_title="Open Night",
        event_when="Dag 1 18:00",
        event_location="Scenehuset",
        quantity=2,
        ticket_url="https://festival.test/qr/tok",
        qr_data_url="data:image/png;base64,AAAA",
    )
    assert ok is True
    params = sent[0]
    assert params["to"] == ["guest@example.com"]
    assert params["subject"] == "Din billett til Open Night"
    assert "data:image/png;base64,AAAA" in params["html"]
    assert "Guest &lt;b&gt;" in params["html"]
    assert "Antall: 2" in params["text"]


async def test_provider_error_returns_false(monkeypatch):
    monkeypatch.setattr(settings, "RESEND_API_KEY", "re_test")

    def failing_send(params):
        raise RuntimeError("provider down")

    monkeypatch.setattr(resend.Emails, "send", failing_send)
    assert await EmailService().send_email("a@example.com", "Hi", "<p>Hi</p>") is False

"""Servicio de envío de emails usando Resend"""
import asyncio
import logging
from html import escape
from typing import Optional, List, Union

import resend

from app.core.config import settings

logger = logging.getLogger(__name__)


class EmailService:
    """Servicio para enviar emails usando Resend (desarrollo y producción)"""

    def __init__(self):
        self.resend_api_key = settings.RESEND_API_KEY
        self.from_email = settings.RESEND_FROM_EMAIL
        self.brand_name = settings.MAIL_BRAND_NAME
        self.support_email = settings.SUPPORT_EMAIL or settings.RESEND_FROM_EMAIL

        if not self.resend_api_key:
            logger.warning("RESEND_API_KEY no configurado. Los emails no se enviarán.")
            self.resend_configured = False
        else:
            # Configurar API key de Resend
            resend.api_key = self.resend_api_key
            self.resend_configured = True

    async def send_email(
        self,
        to_email: Union[str, List[str]],
        subject: str,
        html_content: str,
        text_content: Optional[str] = None,
        tags: Optional[List[dict]] = None
    ) -> bool:
        """
        Enviar email usando Resend

        Returns:
            True si se envió correctamente, False en caso contrario
        """
        if not self.resend_configured:
            logger.warning(f"Resend no configurado. Email no enviado a {to_email}: {subject}")
            return False

        to_emails = [to_email] if isinstance(to_email, str) else to_email

        params = {
            "from": f"{self.brand_name} <{self.from_email}>",
            "to": to_emails,
            "subject": subject,
            "html": html_content,
        }
        if text_content:
            params["text"] = text_content
        if tags:
            params["tags"] = tags

        try:
            # Resend SDK es síncrono, lo ejecutamos en un thread pool
            loop = asyncio.get_running_loop()
            result = await loop.run_in_executor(None, lambda: resend.Emails.send(params))
        except Exception as e:
            logger.error(f"Error enviando email a {to_emails}: {e}", exc_info=True)
            return False

        if not result or (isinstance(result, dict) and result.get("error")):
            logger.error(f"Error enviando email a {to_emails}: {result}")
            return False

        email_id = result.get("id", "N/A") if isinstance(result, dict) else "N/A"
        logger.info(f"Email enviado exitosamente a {to_emails}: {subject} (ID: {email_id})")
        return True

    def _layout(self, title: str, body: str) -> str:
        return f"""
        <!DOCTYPE html>
        <html>
        <head><meta charset="UTF-8"></head>
        <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #111827; max-width: 600px; margin: 0 auto; padding: 20px;">
            <div style="background-color: #111827; color: white; padding: 20px; text-align: center; border-radius: 8px 8px 0 0;">
                <h1 style="margin: 0;">{escape(title)}</h1>
            </div>
            <div style="background-color: #f9fafb; padding: 30px; border-radius: 0 0 8px 8px;">
                {body}
                <p style="margin-top: 30px; font-size: 13px; color: #6b7280;">
                    {escape(self.brand_name)} &middot; {escape(self.support_email)}
                </p>
            </div>
        </body>
        </html>
        """

    async def send_verification_code_email(
        self,
        to_email: str,
        name: Optional[str],
        code: str,
        expiry_minutes: int
    ) -> bool:
        """Enviar código de verificación de 6 dígitos"""
        display_name = escape(name or "deg")
        body = f"""
            <p>Hei <strong>{display_name}</strong>,</p>
            <p>Din verifiseringskode er:</p>
            <p style="font-size: 32px; letter-spacing: 8px; font-weight: bold; text-align: center;">{escape(code)}</p>
            <p>Koden er gyldig i {expiry_minutes} minutter.</p>
        """
        text_content = (
            f"Hei {name or 'deg'},\n\n"
            f"Din verifiseringskode er: {code}\n"
            f"Koden er gyldig i {expiry_minutes} minutter.\n"
        )
        return await self.send_email(
            to_email=to_email,
            subject="Din verifiseringskode",
            html_content=self._layout(self.brand_name, body),
            text_content=text_content,
            tags=[{"name": "type", "value": "email-verification"}],
        )

    async def send_ticket_email(
        self,
        to_email: str,
        attendee_name: Optional[str],
        event_title: str,
        event_when: str,
        event_location: str,
        quantity: int,
        ticket_url: str,
        qr_data_url: Optional[str] = None,
        qr_image_url: Optional[str] = None
    ) -> bool:
        """
        Enviar email con el ticket de una reserva

        El QR se incluye como data URI en el HTML; si no hay data URI se usa
        la URL que regenera la imagen bajo demanda.
        """
        qr_src = qr_data_url or qr_image_url
        qr_html = ""
        if qr_src:
            qr_html = f'''<div style="text-align: center; margin: 30px 0;">
                <img src="{escape(qr_src)}" alt="QR-billett" width="260" height="260" style="display: block; margin: 0 auto;" />
                <p style="font-size: 12px; color: #6b7280;">Vis QR-koden ved innsjekk.</p>
            </div>'''
        else:
            logger.warning(f"[EMAIL] No hay QR disponible para el ticket de {to_email}")

        body = f"""
            <p>Hei <strong>{escape(attendee_name or 'deg')}</strong>,</p>
            <p>Reservasjonen din er bekreftet.</p>
            <table style="width: 100%; background: white; padding: 16px; border-radius: 8px;">
                <tr><td><strong>Arrangement</strong></td><td>{escape(event_title)}</td></tr>
                <tr><td><strong>Tid</strong></td><td>{escape(event_when)}</td></tr>
                <tr><td><strong>Sted</strong></td><td>{escape(event_location)}</td></tr>
                <tr><td><strong>Antall</strong></td><td>{quantity}</td></tr>
            </table>
            {qr_html}
            <p><a href="{escape(ticket_url)}">{escape(ticket_url)}</a></p>
        """
        text_content = (
            f"Hei {attendee_name or 'deg'},\n\n"
            f"Reservasjonen din til {event_title} er bekreftet.\n"
            f"Tid: {event_when}\nSted: {event_location}\nAntall: {quantity}\n\n"
            f"Billett: {ticket_url}\n"
        )
        return await self.send_email(
            to_email=to_email,
            subject=f"Din billett til {event_title}",
            html_content=self._layout(self.brand_name, body),
            text_content=text_content,
            tags=[{"name": "type", "value": "ticket"}],
        )


_email_service: Optional[EmailService] = None


def get_email_service() -> EmailService:
    """Dependency: instancia compartida del servicio de email"""
    global _email_service
    if _email_service is None:
        _email_service = EmailService()
    return _email_service

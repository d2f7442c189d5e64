"""Servicio de reservas: upsert por (usuario, evento) y emisión de tickets"""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import selectinload
from starlette.concurrency import run_in_threadpool
from typing import Dict, List, Optional
from uuid import UUID
import logging

from app.core.security import generate_ticket_code
from shared.database.models import Event, Reservation, ReservationStatus, User
from shared.utils.qr_generator import ticket_link, qr_image_url, qr_data_url
from shared.utils.ticket_token import create_ticket_token
from services.event_management.services.event_service import EventService
from services.notifications.services.email_service import EmailService
from services.reservations.models.reservation import ReservationResponse

logger = logging.getLogger(__name__)


def compute_status(requires_registration: bool) -> ReservationStatus:
    """
    Estado inicial de una reserva nueva

    Siempre CONFIRMED: no hay lista de espera por capacidad.
    """
    return ReservationStatus.CONFIRMED


def build_ticket_artifacts(reservation: Reservation, event: Event) -> Dict[str, str]:
    """Token recién firmado + deep link + URL de imagen QR (los tokens no se persisten)"""
    token = create_ticket_token(reservation.id, reservation.ticket_code, event.ends_at)
    return {
        "ticket_token": token,
        "ticket_url": ticket_link(token),
        "qr_image_url": qr_image_url(token),
    }


class ReservationService:
    """Servicio para crear y listar reservas"""

    @staticmethod
    async def _find(db: AsyncSession, user_id: UUID, event_id: UUID) -> Optional[Reservation]:
        result = await db.execute(
            select(Reservation).where(
                Reservation.user_id == user_id,
                Reservation.event_id == event_id,
            )
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def create_or_update_reservation(
        db: AsyncSession,
        user: User,
        slug: str,
        quantity: int,
        email_service: EmailService
    ) -> Dict:
        """
        Crear o actualizar la reserva del usuario para un evento

        La unicidad (user_id, event_id) la garantiza la BD: si otra request
        inserta primero, el IntegrityError se resuelve recargando esa fila y
        actualizando solo la cantidad. ticket_code y status nunca cambian en
        una actualización.

        El email del ticket solo se envía en la primera creación; un fallo
        de envío se reporta como email_sent=False.
        """
        # Capturar antes de cualquier rollback (que expira las instancias)
        user_id = user.id
        user_email = user.email
        user_name = user.name

        event = await EventService.get_event_by_slug(db, slug)
        event_id = event.id

        created = False
        reservation = await ReservationService._find(db, user_id, event_id)
        if reservation is None:
            reservation = Reservation(
                user_id=user_id,
                event_id=event_id,
                status=compute_status(event.requires_registration),
                quantity=quantity,
                ticket_code=generate_ticket_code(),
            )
            db.add(reservation)
            try:
                await db.commit()
                created = True
            except IntegrityError:
                await db.rollback()
                logger.info(f"Reserva concurrente detectada para user={user_id} event={event_id}, actualizando")
                reservation = await ReservationService._find(db, user_id, event_id)
                if reservation is None:
                    raise
                reservation.quantity = quantity
                await db.commit()
                event = await EventService.get_event_by_slug(db, slug)
        else:
            reservation.quantity = quantity
            await db.commit()

        artifacts = build_ticket_artifacts(reservation, event)
        data_url = await run_in_threadpool(qr_data_url, artifacts["ticket_token"])

        email_sent = False
        if created:
            logger.info(f"Reserva creada: {reservation.id} (user={user_id}, event={event.slug})")
            email_sent = await ReservationService._send_ticket_email(
                email_service,
                to_email=user_email,
                attendee_name=user_name,
                event=event,
                quantity=reservation.quantity,
                ticket_url=artifacts["ticket_url"],
                qr_data_url=data_url,
                qr_image_url=artifacts["qr_image_url"],
            )

        return {
            "ok": True,
            "reservation": reservation,
            "qr_data_url": data_url,
            "email_sent": email_sent,
            **artifacts,
        }

    @staticmethod
    async def _send_ticket_email(
        email_service: EmailService,
        to_email: str,
        attendee_name: Optional[str],
        event: Event,
        quantity: int,
        ticket_url: str,
        qr_data_url: Optional[str],
        qr_image_url: str
    ) -> bool:
        """Entrega best-effort: nunca propaga errores"""
        venue_label = event.venue_label or (event.venue.label if event.venue else "")
        when = " ".join(part for part in (event.day_label, event.time_label) if part)
        try:
            return await email_service.send_ticket_email(
                to_email=to_email,
                attendee_name=attendee_name,
                event_title=event.title,
                event_when=when,
                event_location=venue_label,
                quantity=quantity,
                ticket_url=ticket_url,
                qr_data_url=qr_data_url,
                qr_image_url=qr_image_url,
            )
        except Exception as e:
            logger.error(f"Error enviando ticket a {to_email}: {e}", exc_info=True)
            return False

    @staticmethod
    async def list_reservations_for_user(db: AsyncSession, user_id: UUID) -> List[Dict]:
        """
        Reservas del usuario (más recientes primero) con tokens re-firmados

        Solo lectura: no modifica ningún estado guardado.
        """
        stmt = (
            select(Reservation)
            .options(
                selectinload(Reservation.event).selectinload(Event.venue),
                selectinload(Reservation.check_ins),
            )
            .where(Reservation.user_id == user_id)
            .order_by(Reservation.created_at.desc())
        )
        result = await db.execute(stmt)

        items = []
        for reservation in result.scalars().all():
            items.append({
                **ReservationResponse.model_validate(reservation).model_dump(),
                "event": reservation.event,
                "checked_in": len(reservation.check_ins) > 0,
                **build_ticket_artifacts(reservation, reservation.event),
            })
        return items

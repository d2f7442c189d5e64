"""Fixtures compartidos: BD SQLite en memoria, cliente HTTP y fábricas de datos"""
import os

# Configuración de entorno antes de importar la aplicación
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ["TICKET_SECRET"] = "test-ticket-secret"
os.environ["JWT_SECRET_KEY"] = "test-jwt-secret"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["APP_BASE_URL"] = "https://festival.test"
os.environ["RESEND_API_KEY"] = ""

import itertools
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event as sa_event, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from main import app
from app.core.security import hash_secret, generate_ticket_code
from shared.auth.jwt_handler import create_session_token
from shared.database import connection
from shared.database.connection import create_tables
from shared.database.session import get_db
from shared.database.models import (
    User, Role, Venue, Event, Reservation, ReservationStatus, AuditLog, utcnow
)
from shared.utils.ticket_token import create_ticket_token
from services.notifications.services.email_service import EmailService, get_email_service

DEFAULT_PASSWORD = "festival-pass-1"

_sequence = itertools.count(1)


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    @sa_event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, _record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_maker):
    """Sesión para preparar datos y hacer aserciones directas sobre la BD"""
    async with session_maker() as session:
        yield session


@pytest.fixture
def email_service():
    service = AsyncMock(spec=EmailService)
    service.send_verification_code_email.return_value = True
    service.send_ticket_email.return_value = True
    service.send_email.return_value = True
    return service


@pytest_asyncio.fixture
async def client(session_maker, email_service):
    async def override_get_db():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_email_service] = lambda: email_service
    connection.async_session_maker = session_maker

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
    connection.async_session_maker = None


# ==================== FÁBRICAS ====================

@pytest.fixture
def make_user(session_maker):
    async def _make_user(
        role: Role = Role.USER,
        verified: bool = True,
        email: str = None,
        phone: str = None,
        name: str = "Test Person",
        password: str = DEFAULT_PASSWORD
    ) -> User:
        n = next(_sequence)
        async with session_maker() as session:
            user = User(
                email=email or f"user{n}@example.com",
                phone=phone or f"+47 400{n:05d}",
                name=name,
                password_hash=hash_secret(password),
                role=role,
                email_verified_at=utcnow() if verified else None,
            )
            session.add(user)
            await session.commit()
            return user
    return _make_user


@pytest.fixture
def make_venue(session_maker):
    async def _make_venue(name: str = "Scenehuset", label: str = "Scenehuset, Hamar", city: str = "Hamar") -> Venue:
        async with session_maker() as session:
            venue = Venue(name=name, label=label, city=city, country="Norway")
            session.add(venue)
            await session.commit()
            return venue
    return _make_venue


@pytest.fixture
def make_event(session_maker, make_venue):
    async def _make_event(slug: str = None, venue: Venue = None, **fields) -> Event:
        venue = venue or await make_venue()
        n = next(_sequence)
        values = {
            "slug": slug or f"event-{n}",
            "title": f"Event {n}",
            "track_id": "creative",
            "day_id": "day1",
            "day_label": "Dag 1",
            "time_label": "18:00",
            "venue_id": venue.id,
            "venue_label": venue.label,
            "ends_at": datetime.now(timezone.utc) + timedelta(days=3),
        }
        values.update(fields)
        async with session_maker() as session:
            event = Event(**values)
            session.add(event)
            await session.commit()
            return event
    return _make_event


@pytest.fixture
def make_reservation(session_maker):
    async def _make_reservation(
        user: User,
        event: Event,
        status: ReservationStatus = ReservationStatus.CONFIRMED,
        quantity: int = 1
    ) -> Reservation:
        async with session_maker() as session:
            reservation = Reservation(
                user_id=user.id,
                event_id=event.id,
                status=status,
                quantity=quantity,
                ticket_code=generate_ticket_code(),
            )
            session.add(reservation)
            await session.commit()
            return reservation
    return _make_reservation


def auth_headers(user: User) -> dict:
    token = create_session_token(str(user.id), Role(user.role).value)
    return {"Authorization": f"Bearer {token}"}


def ticket_token_for(reservation: Reservation, event: Event = None, ticket_code: str = None) -> str:
    return create_ticket_token(
        reservation.id,
        ticket_code or reservation.ticket_code,
        event.ends_at if event is not None else None,
    )


async def audit_actions(session_maker, entity_id=None) -> list:
    """Acciones registradas en audit_logs, en orden de creación"""
    async with session_maker() as session:
        stmt = select(AuditLog).order_by(AuditLog.created_at.asc())
        if entity_id is not None:
            stmt = stmt.where(AuditLog.entity_id == str(entity_id))
        result = await session.execute(stmt)
        return [log.action.value for log in result.scalars().all()]

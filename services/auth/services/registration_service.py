"""Servicio de registro, verificación de email y login"""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete
from sqlalchemy.exc import IntegrityError
from starlette.concurrency import run_in_threadpool
from datetime import datetime, timedelta
from typing import Tuple
import logging

from app.core.config import settings
from app.core.security import hash_secret, verify_secret, generate_verification_code
from shared.auth.jwt_handler import create_session_token
from shared.database.models import User, Role, EmailVerificationCode, utcnow, as_utc
from shared.utils.errors import (
    ConflictError, NotFoundError, InvalidInputError, UnauthorizedError, ServerError
)
from services.auth.models.auth import RegisterRequest
from services.notifications.services.email_service import EmailService

logger = logging.getLogger(__name__)


class RegistrationService:
    """Registro en dos pasos: alta + código por email, luego verificación"""

    @staticmethod
    async def _get_user_by_email(db: AsyncSession, email: str):
        result = await db.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()

    @staticmethod
    async def _get_user_by_phone(db: AsyncSession, phone: str):
        result = await db.execute(select(User).where(User.phone == phone))
        return result.scalar_one_or_none()

    @staticmethod
    async def _conflict_code(db: AsyncSession, email: str, phone: str) -> str:
        """Determinar qué campo único colisionó"""
        phone_owner = await RegistrationService._get_user_by_phone(db, phone)
        if phone_owner is not None and phone_owner.email != email:
            return "phone_taken"
        return "email_taken"

    @staticmethod
    async def _issue_code(
        db: AsyncSession,
        user: User,
        email_service: EmailService
    ) -> datetime:
        """
        Reemplazar los códigos del usuario por uno nuevo y enviarlo por email

        Si el envío falla, los códigos recién creados se eliminan y se lanza
        ServerError(email_failed).
        """
        code = generate_verification_code()
        code_hash = await run_in_threadpool(hash_secret, code)
        expires_at = utcnow() + timedelta(minutes=settings.VERIFY_CODE_TTL_MINUTES)

        await db.execute(delete(EmailVerificationCode).where(EmailVerificationCode.user_id == user.id))
        db.add(EmailVerificationCode(user_id=user.id, code_hash=code_hash, expires_at=expires_at))
        await db.commit()

        sent = await email_service.send_verification_code_email(
            to_email=user.email,
            name=user.name,
            code=code,
            expiry_minutes=settings.VERIFY_CODE_TTL_MINUTES,
        )
        if not sent:
            await db.execute(delete(EmailVerificationCode).where(EmailVerificationCode.user_id == user.id))
            await db.commit()
            logger.error(f"No se pudo enviar el código de verificación a {user.email}")
            raise ServerError("No se pudo enviar el código de verificación", code="email_failed")

        logger.info(f"Código de verificación emitido para {user.email}")
        return expires_at

    @staticmethod
    async def register(
        db: AsyncSession,
        data: RegisterRequest,
        email_service: EmailService
    ) -> datetime:
        """
        Registrar (o re-registrar) un usuario no verificado

        Returns:
            Fecha de expiración del código enviado
        """
        existing = await RegistrationService._get_user_by_email(db, data.email)
        if existing is not None and existing.email_verified_at is not None:
            raise ConflictError("El email ya está registrado", code="email_taken")

        phone_owner = await RegistrationService._get_user_by_phone(db, data.phone)
        if phone_owner is not None and phone_owner.email != data.email:
            raise ConflictError("El teléfono ya está en uso", code="phone_taken")

        password_hash = await run_in_threadpool(hash_secret, data.password)

        if existing is not None:
            existing.name = data.name
            existing.phone = data.phone
            existing.password_hash = password_hash
            user = existing
        else:
            user = User(
                email=data.email,
                name=data.name,
                phone=data.phone,
                password_hash=password_hash,
            )
            db.add(user)

        try:
            await db.flush()
        except IntegrityError:
            # Registro concurrente con el mismo email o teléfono
            await db.rollback()
            code = await RegistrationService._conflict_code(db, data.email, data.phone)
            if code == "phone_taken":
                raise ConflictError("El teléfono ya está en uso", code=code)
            raise ConflictError("El email ya está registrado", code=code)

        return await RegistrationService._issue_code(db, user, email_service)

    @staticmethod
    async def resend_code(
        db: AsyncSession,
        email: str,
        email_service: EmailService
    ) -> datetime:
        """Emitir un código nuevo para un usuario aún no verificado"""
        user = await RegistrationService._get_user_by_email(db, email)
        if user is None:
            raise NotFoundError("Usuario no encontrado", code="user_not_found")
        if user.email_verified_at is not None:
            raise ConflictError("El email ya está verificado", code="already_verified")
        return await RegistrationService._issue_code(db, user, email_service)

    @staticmethod
    async def verify_code(db: AsyncSession, email: str, code: str) -> User:
        """
        Verificar el código de 6 dígitos

        Solo el código más reciente sin usar es válido. Al verificar se marca
        como usado y se eliminan los demás códigos pendientes.
        """
        user = await RegistrationService._get_user_by_email(db, email)
        if user is None:
            raise NotFoundError("Usuario no encontrado", code="user_not_found")
        if user.email_verified_at is not None:
            raise ConflictError("El email ya está verificado", code="already_verified")

        result = await db.execute(
            select(EmailVerificationCode)
            .where(
                EmailVerificationCode.user_id == user.id,
                EmailVerificationCode.used_at.is_(None),
            )
            .order_by(EmailVerificationCode.created_at.desc())
            .limit(1)
        )
        latest = result.scalar_one_or_none()
        if latest is None:
            raise InvalidInputError("No hay un código pendiente", code="no_code")

        now = utcnow()
        if as_utc(latest.expires_at) < now:
            await db.execute(
                delete(EmailVerificationCode).where(
                    EmailVerificationCode.user_id == user.id,
                    EmailVerificationCode.used_at.is_(None),
                )
            )
            await db.commit()
            raise InvalidInputError("El código expiró", code="code_expired")

        valid = await run_in_threadpool(verify_secret, code, latest.code_hash)
        if not valid:
            raise InvalidInputError("Código incorrecto", code="invalid_code")

        latest.used_at = now
        user.email_verified_at = now
        await db.execute(
            delete(EmailVerificationCode).where(
                EmailVerificationCode.user_id == user.id,
                EmailVerificationCode.used_at.is_(None),
                EmailVerificationCode.id != latest.id,
            )
        )
        await db.commit()

        logger.info(f"Email verificado: {user.email}")
        return user

    @staticmethod
    async def login(db: AsyncSession, identifier: str, password: str) -> Tuple[str, User]:
        """
        Autenticar por email o teléfono

        Returns:
            (token de sesión, usuario)
        """
        identifier = identifier.strip()
        if "@" in identifier:
            stmt = select(User).where(User.email == identifier.lower())
        else:
            stmt = select(User).where(User.phone == identifier)
        result = await db.execute(stmt)
        user = result.scalar_one_or_none()

        if user is None or not user.password_hash:
            raise UnauthorizedError("Credenciales inválidas", code="invalid_credentials")

        valid = await run_in_threadpool(verify_secret, password, user.password_hash)
        if not valid:
            raise UnauthorizedError("Credenciales inválidas", code="invalid_credentials")

        if user.email_verified_at is None:
            raise UnauthorizedError("Debes verificar tu email antes de iniciar sesión", code="unverified")

        token = create_session_token(str(user.id), Role(user.role).value)
        return token, user

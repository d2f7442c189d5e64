"""Servicio para gestión de usuarios (admin)"""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, or_
from sqlalchemy.exc import IntegrityError
from starlette.concurrency import run_in_threadpool
from typing import List, Optional, Tuple
from uuid import UUID
import logging

from app.core.security import hash_secret
from shared.database.models import User, Reservation, Role, AuditAction, utcnow
from shared.utils.audit import write_audit_log, snapshot
from shared.utils.errors import ConflictError, NotFoundError, InvalidStateError
from services.admin.models.admin import UserCreateRequest, UserUpdateRequest

logger = logging.getLogger(__name__)

NON_NULLABLE_FIELDS = ("email", "role")


class UserManagementService:
    """Servicio para operaciones CRUD sobre usuarios"""

    async def _get_user(self, db: AsyncSession, user_id: UUID) -> User:
        result = await db.execute(select(User).where(User.id == user_id))
        user = result.scalar_one_or_none()
        if user is None:
            raise NotFoundError("Usuario no encontrado", code="user_not_found")
        return user

    async def _ensure_unique(
        self,
        db: AsyncSession,
        email: Optional[str] = None,
        phone: Optional[str] = None,
        exclude_id: Optional[UUID] = None
    ):
        """Lanzar ConflictError si email o teléfono pertenecen a otro usuario"""
        if email:
            stmt = select(User.id).where(User.email == email)
            if exclude_id is not None:
                stmt = stmt.where(User.id != exclude_id)
            if (await db.execute(stmt)).first() is not None:
                raise ConflictError("El email ya está registrado", code="email_taken")
        if phone:
            stmt = select(User.id).where(User.phone == phone)
            if exclude_id is not None:
                stmt = stmt.where(User.id != exclude_id)
            if (await db.execute(stmt)).first() is not None:
                raise ConflictError("El teléfono ya está en uso", code="phone_taken")

    async def list_users(
        self,
        db: AsyncSession,
        role: Optional[Role] = None,
        verified: Optional[bool] = None,
        search: Optional[str] = None
    ) -> List[Tuple[User, int]]:
        """
        Listar usuarios con filtros

        Args:
            db: Sesión de base de datos
            role: Filtrar por rol
            verified: True solo verificados, False solo no verificados
            search: Búsqueda case-insensitive sobre email, nombre y teléfono

        Returns:
            Lista de (usuario, cantidad de reservas), más recientes primero
        """
        reservation_count = (
            select(func.count(Reservation.id))
            .where(Reservation.user_id == User.id)
            .correlate(User)
            .scalar_subquery()
        )
        stmt = select(User, reservation_count)

        if role is not None:
            stmt = stmt.where(User.role == role)
        if verified is True:
            stmt = stmt.where(User.email_verified_at.is_not(None))
        elif verified is False:
            stmt = stmt.where(User.email_verified_at.is_(None))
        if search:
            pattern = f"%{search}%"
            stmt = stmt.where(or_(
                User.email.ilike(pattern),
                User.name.ilike(pattern),
                User.phone.ilike(pattern),
            ))

        stmt = stmt.order_by(User.created_at.desc())
        result = await db.execute(stmt)
        return [(user, count or 0) for user, count in result.all()]

    async def create_user(
        self,
        db: AsyncSession,
        data: UserCreateRequest,
        actor: User
    ) -> User:
        """
        Crear usuario desde el back office

        Raises:
            ConflictError: email_taken o phone_taken
        """
        actor_id = actor.id
        await self._ensure_unique(db, email=data.email, phone=data.phone)

        password_hash = await run_in_threadpool(hash_secret, data.password)
        user = User(
            email=data.email,
            name=data.name,
            phone=data.phone,
            password_hash=password_hash,
            role=data.role,
            email_verified_at=utcnow() if data.email_verified else None,
        )
        db.add(user)
        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            # Alta concurrente: volver a consultar para informar el campo correcto
            await self._ensure_unique(db, email=data.email, phone=data.phone)
            raise ConflictError("El email o teléfono ya está registrado", code="email_taken")

        logger.info(f"Usuario creado por admin {actor_id}: {user.email}")
        await write_audit_log(
            db, actor_id, AuditAction.USER_CREATE, "User", user.id,
            snapshot(user, "email", "name", "role"),
        )
        return user

    async def update_user(
        self,
        db: AsyncSession,
        user_id: UUID,
        data: UserUpdateRequest,
        actor: User
    ) -> User:
        """
        Actualización parcial de usuario

        Un cambio de rol registra además USER_ROLE_CHANGE con rol anterior y nuevo.
        """
        actor_id = actor.id
        user = await self._get_user(db, user_id)
        changes = data.model_dump(exclude_unset=True)
        for field in NON_NULLABLE_FIELDS:
            if field in changes and changes[field] is None:
                changes.pop(field)

        await self._ensure_unique(
            db,
            email=changes.get("email"),
            phone=changes.get("phone"),
            exclude_id=user.id,
        )

        old_role = Role(user.role)
        for field in ("name", "phone", "email"):
            if field in changes:
                setattr(user, field, changes[field])
        if changes.get("password"):
            user.password_hash = await run_in_threadpool(hash_secret, changes["password"])
        if changes.get("role") is not None:
            user.role = changes["role"]
        if changes.get("email_verified") is not None:
            if changes["email_verified"]:
                user.email_verified_at = user.email_verified_at or utcnow()
            else:
                user.email_verified_at = None

        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            await self._ensure_unique(
                db,
                email=changes.get("email"),
                phone=changes.get("phone"),
                exclude_id=user_id,
            )
            raise ConflictError("El email o teléfono ya está registrado", code="email_taken")

        changed_fields = sorted(k for k in changes if k != "password")
        if "password" in changes:
            changed_fields.append("password_changed")
        await write_audit_log(
            db, actor_id, AuditAction.USER_UPDATE, "User", user.id,
            {"email": user.email, "fields": changed_fields},
        )

        new_role = Role(user.role)
        if new_role != old_role:
            logger.info(f"Rol de {user.email} cambiado: {old_role.value} -> {new_role.value}")
            await write_audit_log(
                db, actor_id, AuditAction.USER_ROLE_CHANGE, "User", user.id,
                {"email": user.email, "oldRole": old_role.value, "newRole": new_role.value},
            )
        return user

    async def delete_user(self, db: AsyncSession, user_id: UUID, actor: User):
        """
        Eliminar usuario (las reservas se eliminan en cascada)

        Raises:
            InvalidStateError: si el admin intenta eliminarse a sí mismo
        """
        actor_id = actor.id
        if user_id == actor_id:
            raise InvalidStateError("No puedes eliminar tu propio usuario", code="cannot_delete_self")

        user = await self._get_user(db, user_id)
        meta = snapshot(user, "email", "name", "role")
        await db.delete(user)
        await db.commit()

        logger.info(f"Usuario {user_id} eliminado por admin {actor_id}")
        await write_audit_log(db, actor_id, AuditAction.USER_DELETE, "User", user_id, meta)

"""Dependencies de autenticación para FastAPI"""
from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import Optional
from uuid import UUID

from app.core.config import settings
from shared.auth.jwt_handler import decode_token
from shared.database.session import get_db
from shared.database.models import User, Role
from shared.utils.errors import UnauthorizedError, ForbiddenError


security = HTTPBearer(auto_error=False)


def extract_session_token(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = None
) -> Optional[str]:
    '''Token de sesión desde el header Authorization o la cookie de sesión'''
    if credentials and credentials.credentials:
        return credentials.credentials
    return request.cookies.get(settings.SESSION_COOKIE_NAME)


def has_role(user: User, *roles: Role) -> bool:
    '''Único punto de comparación de roles'''
    return Role(user.role) in roles


async def get_optional_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> Optional[User]:
    '''Obtener usuario opcional (para endpoints públicos)'''
    token = extract_session_token(request, credentials)
    if not token:
        return None

    payload = decode_token(token)
    if payload is None:
        return None

    try:
        user_id = UUID(str(payload.get('sub')))
    except ValueError:
        return None

    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_current_user(
    user: Optional[User] = Depends(get_optional_user)
) -> User:
    '''Obtener usuario actual desde el token de sesión'''
    if user is None:
        raise UnauthorizedError('Token inválido o expirado')
    return user


async def get_current_admin(
    current_user: User = Depends(get_current_user)
) -> User:
    '''Verificar que el usuario sea admin'''
    if not has_role(current_user, Role.ADMIN):
        raise ForbiddenError('Se requieren permisos de administrador')
    return current_user


async def get_current_approver(
    current_user: User = Depends(get_current_user)
) -> User:
    '''Verificar que el usuario sea approver o admin'''
    if not has_role(current_user, Role.ADMIN, Role.APPROVER):
        raise ForbiddenError('Se requieren permisos de approver')
    return current_user

"""Rutas de autenticación: registro, verificación, login y perfil"""
from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from shared.database.session import get_db
from shared.database.models import User
from shared.auth.dependencies import get_current_user
from shared.utils.rate_limiter import limiter, RATE_LIMITS
from services.auth.models.auth import (
    RegisterRequest,
    ResendCodeRequest,
    VerifyRequest,
    LoginRequest,
    CodeIssuedResponse,
    OkResponse,
    LoginResponse,
    CurrentUserResponse,
)
from services.auth.services.registration_service import RegistrationService
from services.notifications.services.email_service import EmailService, get_email_service


router = APIRouter()
user_router = APIRouter()


@router.post("/register", response_model=CodeIssuedResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(RATE_LIMITS["register"])
async def register(
    request: Request,
    data: RegisterRequest,
    db: AsyncSession = Depends(get_db),
    email_service: EmailService = Depends(get_email_service)
):
    """
    Iniciar registro

    Crea (o actualiza) un usuario no verificado y envía un código de
    6 dígitos por email.
    """
    expires_at = await RegistrationService.register(db, data, email_service)
    return {"ok": True, "expires_at": expires_at}


@router.post("/register/resend", response_model=CodeIssuedResponse)
@limiter.limit(RATE_LIMITS["register"])
async def resend_code(
    request: Request,
    data: ResendCodeRequest,
    db: AsyncSession = Depends(get_db),
    email_service: EmailService = Depends(get_email_service)
):
    """Reenviar código de verificación"""
    expires_at = await RegistrationService.resend_code(db, data.email, email_service)
    return {"ok": True, "expires_at": expires_at}


@router.post("/register/verify", response_model=OkResponse)
@limiter.limit(RATE_LIMITS["verify"])
async def verify(
    request: Request,
    data: VerifyRequest,
    db: AsyncSession = Depends(get_db)
):
    """Verificar email con el código recibido"""
    await RegistrationService.verify_code(db, data.email, data.code)
    return {"ok": True}


@router.post("/login", response_model=LoginResponse)
@limiter.limit(RATE_LIMITS["login"])
async def login(
    request: Request,
    response: Response,
    data: LoginRequest,
    db: AsyncSession = Depends(get_db)
):
    """
    Login con email o teléfono

    Devuelve el token y además lo deja en una cookie HTTP-only.
    """
    token, user = await RegistrationService.login(db, data.identifier, data.password)
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=token,
        httponly=True,
        secure=settings.SESSION_COOKIE_SECURE,
        samesite="lax",
        max_age=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )
    return {"access_token": token, "token_type": "bearer", "user": user}


@router.post("/logout", response_model=OkResponse)
async def logout(response: Response):
    """Cerrar sesión (borra la cookie)"""
    response.delete_cookie(key=settings.SESSION_COOKIE_NAME)
    return {"ok": True}


@user_router.get("", response_model=CurrentUserResponse)
async def get_me(current_user: User = Depends(get_current_user)):
    """Perfil del usuario autenticado"""
    return {"user": current_user}

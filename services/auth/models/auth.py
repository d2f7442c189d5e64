"""Modelos Pydantic para registro, verificación y login"""
from pydantic import BaseModel, EmailStr, Field, field_serializer, field_validator
from typing import Optional
from datetime import datetime
from uuid import UUID

from shared.database.models import Role
from shared.utils.schemas import CamelModel, serialize_utc


def _normalize_email(value: str) -> str:
    return value.strip().lower()


class RegisterRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=80)
    phone: str = Field(..., min_length=4, max_length=30)
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)

    @field_validator('phone', mode='before')
    @classmethod
    def strip_phone(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator('email')
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return _normalize_email(v)


class ResendCodeRequest(BaseModel):
    email: EmailStr

    @field_validator('email')
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return _normalize_email(v)


class VerifyRequest(BaseModel):
    email: EmailStr
    code: str = Field(..., pattern=r"^\d{6}$")

    @field_validator('email')
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return _normalize_email(v)


class LoginRequest(BaseModel):
    """identifier: email (si contiene @) o teléfono"""
    identifier: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class CodeIssuedResponse(CamelModel):
    ok: bool = True
    expires_at: datetime

    @field_serializer('expires_at')
    def serialize_datetime_utc(self, dt: datetime, _info) -> Optional[str]:
        return serialize_utc(dt)


class OkResponse(BaseModel):
    ok: bool = True


class UserResponse(CamelModel):
    """Perfil de usuario (sin hash de contraseña)"""
    id: UUID
    email: str
    phone: Optional[str] = None
    name: Optional[str] = None
    role: Role
    email_verified_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @field_serializer('email_verified_at', 'created_at')
    def serialize_datetime_utc(self, dt: Optional[datetime], _info) -> Optional[str]:
        return serialize_utc(dt)


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse


class CurrentUserResponse(BaseModel):
    user: UserResponse


class UserSummary(CamelModel):
    """Resumen de usuario para vistas de reservas, check-ins y auditoría"""
    id: UUID
    email: str
    name: Optional[str] = None
    phone: Optional[str] = None

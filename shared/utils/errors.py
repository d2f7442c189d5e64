"""
Taxonomía de errores de la aplicación y handlers para FastAPI

Los servicios lanzan subclases de AppError; los handlers registrados en main.py
las convierten en respuestas JSON con un código estable y un mensaje legible.
"""
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from starlette.responses import JSONResponse
from typing import Optional
import logging

logger = logging.getLogger(__name__)


class AppError(Exception):
    """Error base con código de máquina y status HTTP"""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "server_error"
    message = "Error interno del servidor"

    def __init__(self, message: Optional[str] = None, code: Optional[str] = None):
        self.message = message or self.message
        self.code = code or self.code
        super().__init__(self.message)


class UnauthorizedError(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "unauthorized"
    message = "Se requiere autenticación"


class ForbiddenError(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "forbidden"
    message = "No tienes permisos para esta operación"


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"
    message = "Recurso no encontrado"


class ConflictError(AppError):
    status_code = status.HTTP_409_CONFLICT
    code = "conflict"
    message = "Conflicto con el estado actual"


class InvalidInputError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "invalid_input"
    message = "Datos inválidos"


class InvalidStateError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "invalid_state"
    message = "Operación no válida para el estado actual"


class TicketTokenError(AppError):
    """Base de errores del token de ticket"""
    status_code = status.HTTP_400_BAD_REQUEST
    code = "invalid_token"
    message = "Token inválido"


class InvalidTokenError(TicketTokenError):
    code = "invalid_token"
    message = "Token con formato inválido"


class InvalidSignatureError(TicketTokenError):
    code = "invalid_signature"
    message = "Firma del token inválida"


class ExpiredTokenError(TicketTokenError):
    code = "expired"
    message = "Token expirado"


class ServerError(AppError):
    pass


class TicketSecretMissingError(ServerError):
    code = "ticket_secret_missing"
    message = "TICKET_SECRET no está configurado"


def _error_body(code: str, detail) -> dict:
    return {"error": code, "detail": detail}


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{type(exc).__name__} en {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(exc.code, exc.message),
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=_error_body("invalid_input", jsonable_encoder(exc.errors())),
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Error no controlado en {request.method} {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_body("server_error", "Error interno del servidor"),
    )


def register_error_handlers(app: FastAPI):
    """Registrar handlers de errores en la aplicación"""
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

"""Middleware de protección de rutas de páginas"""
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import RedirectResponse
from typing import Optional, Tuple
from urllib.parse import urlencode

from app.core.config import settings
from shared.auth.jwt_handler import decode_token
from shared.database.models import Role


def _matches(path: str, prefix: str) -> bool:
    return path == prefix or path.startswith(prefix + "/")


class RouteProtectionMiddleware(BaseHTTPMiddleware):
    """
    Redirige accesos sin sesión a /login?callbackUrl=... y restringe
    /admin/* a ADMIN y /approver/* a ADMIN o APPROVER.

    Las rutas /api/* no pasan por aquí; sus dependencies validan el acceso.
    """

    LOGIN_PATH = "/login"

    # Rutas que requieren sesión (cualquier rol)
    PROTECTED_PATHS = [
        "/min-side",
        "/reservations",
        "/checkout",
    ]

    # Rutas con restricción de rol
    ROLE_PATHS: Tuple[Tuple[str, Tuple[Role, ...]], ...] = (
        ("/admin", (Role.ADMIN,)),
        ("/approver", (Role.ADMIN, Role.APPROVER)),
    )

    def _required_roles(self, path: str) -> Optional[Tuple[Role, ...]]:
        for prefix, roles in self.ROLE_PATHS:
            if _matches(path, prefix):
                return roles
        if any(_matches(path, prefix) for prefix in self.PROTECTED_PATHS):
            return ()
        return None

    def _session_payload(self, request: Request) -> Optional[dict]:
        token = request.cookies.get(settings.SESSION_COOKIE_NAME)
        auth_header = request.headers.get("Authorization", "")
        if not token and auth_header.startswith("Bearer "):
            token = auth_header.split(" ", 1)[1]
        if not token:
            return None
        return decode_token(token)

    async def dispatch(self, request: Request, call_next):
        """Procesar request y validar sesión si la ruta está protegida"""
        path = request.url.path

        if path.startswith("/api/"):
            return await call_next(request)

        required = self._required_roles(path)
        if required is None:
            return await call_next(request)

        payload = self._session_payload(request)
        if payload is None:
            callback = path + (f"?{request.url.query}" if request.url.query else "")
            return RedirectResponse(
                url=f"{self.LOGIN_PATH}?{urlencode({'callbackUrl': callback})}",
                status_code=307,
            )

        if required:
            try:
                role = Role(payload.get("role"))
            except ValueError:
                role = None
            if role not in required:
                return RedirectResponse(url="/", status_code=307)

        return await call_next(request)

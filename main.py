"""API Gateway principal - Punto de entrada de la aplicación"""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text
import logging
from contextlib import asynccontextmanager

from app.core.config import settings
from shared.auth.middleware import RouteProtectionMiddleware
from shared.database.connection import init_db, close_db
from shared.utils.errors import register_error_handlers
from shared.utils.rate_limiter import limiter, rate_limit_exceeded_handler

# Configurar logging
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifecycle events de la aplicación"""
    # Startup
    logger.info("Iniciando aplicación...")
    await init_db()
    logger.info("Aplicación iniciada")
    yield
    # Shutdown
    logger.info("Cerrando aplicación...")
    await close_db()
    logger.info("Aplicación cerrada")


# Crear aplicación FastAPI
app = FastAPI(
    title="Festival API",
    description="Backend API para reservas, tickets QR y check-in de eventos del festival",
    version="1.0.0",
    lifespan=lifespan
)

# En desarrollo, permitir todos los orígenes para facilitar testing
if settings.APP_ENV == "development":
    logger.info("Modo desarrollo: CORS configurado para permitir todos los orígenes")
    allow_origins = ["*"]
    allow_credentials = False  # No se puede usar credentials con allow_origins=["*"]
else:
    # En producción, solo orígenes específicos
    allow_origins = [origin.strip() for origin in settings.CORS_ORIGINS.split(",") if origin.strip()]
    allow_credentials = True
    logger.info(f"CORS origins configurados: {allow_origins}")

# Protección de páginas antes de CORS (el último middleware agregado es el más externo)
app.add_middleware(RouteProtectionMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins,
    allow_credentials=allow_credentials,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH", "HEAD"],
    allow_headers=["*"],
    expose_headers=["*"],
    max_age=3600,  # Cache preflight requests por 1 hora
)

# Configurar rate limiting y errores de dominio
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
register_error_handlers(app)

# Incluir routers de cada servicio
from services.auth.routes.auth import router as auth_router, user_router
from services.event_management.routes.events import router as events_router
from services.reservations.routes.reservations import router as reservations_router
from services.qr.routes.qr import router as qr_router, link_router as qr_link_router
from services.ticket_validation.routes.validation import router as validation_router
from services.admin.routes.admin import router as admin_router

app.include_router(auth_router, prefix="/api/auth", tags=["auth"])
app.include_router(user_router, prefix="/api/user", tags=["auth"])
app.include_router(events_router, prefix="/api/events", tags=["events"])
app.include_router(reservations_router, prefix="/api/reservations", tags=["reservations"])
app.include_router(qr_router, prefix="/api/qr", tags=["qr"])
app.include_router(qr_link_router, prefix="/qr", tags=["qr"])
app.include_router(validation_router, prefix="/api/approver", tags=["approver"])
app.include_router(admin_router, prefix="/api/admin", tags=["admin"])


@app.get("/health")
async def health():
    """Health check endpoint"""
    return {"status": "ok", "service": "festival-api"}


@app.get("/ready")
async def ready():
    """Ready check endpoint - verifica la conexión a la base de datos"""
    try:
        from shared.database import connection
        async with connection.async_session_maker() as session:
            await session.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Ready check failed: {e}")
        return JSONResponse(status_code=503, content={"status": "not ready", "error": "database_unreachable"})
    return {"status": "ready", "database": "connected"}


@app.options("/{full_path:path}")
async def options_handler(full_path: str):
    """Handler para requests OPTIONS (CORS preflight)"""
    return {"message": "OK"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.APP_DEBUG
    )

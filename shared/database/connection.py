"""Conexión a la base de datos PostgreSQL"""
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base
from typing import AsyncGenerator
import logging
import asyncio

from app.core.config import settings

logger = logging.getLogger(__name__)

# Base para modelos SQLAlchemy
Base = declarative_base()

# Engine y session factory
engine = None
async_session_maker = None


def build_async_url(database_url: str) -> str:
    """Convertir DATABASE_URL al driver async correspondiente"""
    # Limpiar parámetros de la URL (asyncpg no acepta sslmode)
    if "?" in database_url and database_url.startswith("postgresql"):
        database_url = database_url.split("?")[0]
        logger.info("Removed query parameters from DATABASE_URL")

    if database_url.startswith("postgresql://"):
        database_url = database_url.replace("postgresql://", "postgresql+asyncpg://", 1)
    elif database_url.startswith("postgresql+psycopg://"):
        database_url = database_url.replace("postgresql+psycopg://", "postgresql+asyncpg://", 1)
    elif database_url.startswith("sqlite://"):
        database_url = database_url.replace("sqlite://", "sqlite+aiosqlite://", 1)

    return database_url


async def init_db():
    """Inicializar conexión a la base de datos"""
    global engine, async_session_maker

    if engine is not None:
        logger.warning("Database engine already initialized, skipping...")
        return

    database_url = build_async_url(settings.DATABASE_URL)
    logger.info(f"Initializing database connection to: {database_url.split('@')[1] if '@' in database_url else database_url}")
    logger.info(f"Using async driver: {database_url.split(':')[0]}")

    # Configuración del pool (solo aplica a PostgreSQL)
    pool_config = {}
    if database_url.startswith("postgresql"):
        pool_config = {
            "pool_pre_ping": True,  # Verificar conexiones antes de usar
            "pool_recycle": 300,
            "pool_timeout": 30,
            "pool_use_lifo": True,
            "pool_size": settings.DATABASE_POOL_SIZE,
            "max_overflow": settings.DATABASE_MAX_OVERFLOW,
        }
        logger.info(f"Pool config: size={pool_config['pool_size']}, overflow={pool_config['max_overflow']}")

    engine = create_async_engine(
        database_url,
        echo=settings.APP_DEBUG,
        **pool_config
    )

    async_session_maker = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False
    )

    logger.info("Database engine initialized successfully")


async def create_tables(bind=None):
    """Crear tablas a partir de los modelos (desarrollo y tests)"""
    # Registrar modelos en Base.metadata
    from shared.database import models  # noqa: F401

    target = bind or engine
    if target is None:
        raise RuntimeError("Database not initialized. Please check application startup.")

    async with target.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency para obtener sesión de base de datos con retry para errores transitorios.

    Maneja errores de DNS y conexión transitorios con retry exponencial. Solo se
    reintenta la obtención de la conexión, nunca una request ya en curso.
    """
    if async_session_maker is None:
        logger.error("Database not initialized! Call init_db() first.")
        raise RuntimeError("Database not initialized. Please check application startup.")

    max_retries = 3
    retry_delay = 0.5  # Segundos iniciales

    for attempt in range(max_retries):
        session = async_session_maker()
        try:
            await session.connection()
        except OSError as e:
            # Captura errores de DNS y socket (socket.gaierror es subclase de OSError)
            await session.close()
            if attempt >= max_retries - 1:
                logger.error(f"Database connection failed after {max_retries} attempts: {e}")
                raise
            delay = retry_delay * (2 ** attempt)  # Exponential backoff
            logger.warning(
                f"Database connection error (attempt {attempt + 1}/{max_retries}): {type(e).__name__}: {e}. "
                f"Retrying in {delay:.1f}s..."
            )
            await asyncio.sleep(delay)
            continue

        try:
            yield session
        finally:
            await session.close()
        return


async def close_db():
    """Cerrar conexiones a la base de datos"""
    global engine, async_session_maker
    if engine:
        logger.info("Closing database connections...")
        await engine.dispose()
        engine = None
        async_session_maker = None
        logger.info("Database connections closed")

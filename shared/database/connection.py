"""Conexión async a PostgreSQL (Supabase) para el servicio de check-in"""
from typing import AsyncGenerator, Optional
import asyncio
import logging
import ssl

from fastapi import HTTPException, status
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from shared.config.settings import settings

logger = logging.getLogger(__name__)

Base = declarative_base()

engine = None
async_session_maker = None

CONNECT_ATTEMPTS = 3
CONNECT_BASE_DELAY = 0.5


def to_async_url(database_url: str) -> str:
    """Quitar query params (el SSL va en connect_args) y usar el driver asyncpg"""
    database_url = database_url.split("?", 1)[0]
    for prefix in ("postgresql+psycopg://", "postgresql://", "postgres://"):
        if database_url.startswith(prefix):
            return "postgresql+asyncpg://" + database_url[len(prefix):]
    return database_url


def _engine_options(database_url: str) -> dict:
    if database_url.startswith("sqlite"):
        return {}

    options = {
        "pool_pre_ping": True,
        "pool_timeout": 30,
        "pool_use_lifo": True,
        "pool_recycle": 300,
        "pool_size": settings.DATABASE_POOL_SIZE,
        "max_overflow": settings.DATABASE_MAX_OVERFLOW,
    }

    if "supabase.co" in database_url or "supabase.com" in database_url:
        ssl_context = ssl.create_default_context()
        ssl_context.check_hostname = False
        ssl_context.verify_mode = ssl.CERT_NONE
        options.update(
            pool_recycle=180,
            pool_size=min(settings.DATABASE_POOL_SIZE, 3),
            max_overflow=min(settings.DATABASE_MAX_OVERFLOW, 5),
            connect_args={
                "ssl": ssl_context,
                "server_settings": {"search_path": "public", "jit": "off"},
                "command_timeout": 60,
                "timeout": 60,
                "statement_cache_size": 0,  # pgbouncer en modo transaction
            },
        )
        logger.info("Conexión Supabase detectada: SSL y pool reducido")

    return options


async def init_db(database_url: Optional[str] = None):
    """Crear engine y session factory (idempotente)"""
    global engine, async_session_maker

    if engine is not None:
        return

    database_url = to_async_url(database_url or settings.DATABASE_URL)
    logger.info(f"Inicializando base de datos: {database_url.rsplit('@', 1)[-1]}")

    engine = create_async_engine(database_url, echo=settings.APP_DEBUG, **_engine_options(database_url))
    async_session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Sesión por request

    La conexión se abre antes del yield: solo los errores de conexión
    (DNS, socket, pooler caído) se reintentan con backoff exponencial.
    Si se agotan los intentos responde 503, el cliente puede reintentar.
    """
    if async_session_maker is None:
        raise RuntimeError("Base de datos no inicializada, falta init_db()")

    for attempt in range(1, CONNECT_ATTEMPTS + 1):
        session = async_session_maker()
        try:
            await session.connection()
        except (OSError, OperationalError) as e:
            await session.close()
            if attempt == CONNECT_ATTEMPTS:
                logger.error(f"Sin conexión a la base de datos tras {attempt} intentos: {e}")
                raise HTTPException(
                    status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                    detail="Base de datos no disponible",
                    headers={"Retry-After": "5"},
                ) from e
            delay = CONNECT_BASE_DELAY * (2 ** (attempt - 1))
            logger.warning(f"Error de conexión a la base de datos ({attempt}/{CONNECT_ATTEMPTS}): {e}. Reintento en {delay:.1f}s")
            await asyncio.sleep(delay)
            continue

        try:
            yield session
        finally:
            await session.close()
        return


async def create_tables():
    """Crear tablas faltantes (desarrollo local)"""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db():
    global engine, async_session_maker
    if engine is not None:
        await engine.dispose()
        engine = None
        async_session_maker = None
        logger.info("Conexiones a la base de datos cerradas")

"""API Gateway del servicio de check-in"""
from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text

from shared.cache.redis_client import close_redis, get_redis, init_redis
from shared.config.settings import settings
from shared.database import connection
from shared.utils.rate_limiter import limiter, rate_limit_exceeded_handler
from services.check_in.routes.check_in import router as check_in_router

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Iniciando check-in API ({settings.APP_ENV})")
    await connection.init_db()
    if settings.DATABASE_CREATE_TABLES:
        await connection.create_tables()
    await init_redis()
    yield
    await connection.close_db()
    await close_redis()
    logger.info("Check-in API detenida")


app = FastAPI(
    title="Check-in API",
    description="Check-in de asistencia a eventos mediante QR firmado",
    version="1.0.0",
    lifespan=lifespan
)


def _cors_origins() -> list:
    if settings.APP_ENV == "development":
        return ["*"]
    return [origin.strip() for origin in settings.CORS_ORIGINS.split(",") if origin.strip()]


# "*" no admite credentials
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=settings.APP_ENV != "development",
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
    max_age=3600,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

app.include_router(check_in_router, prefix="/api/v1/check-in", tags=["check-in"])


@app.get("/health")
async def health():
    return {"status": "ok", "service": "checkin-api"}


@app.get("/ready")
async def ready():
    """Verifica base de datos y Redis; 503 si alguno no responde"""
    checks = {}
    try:
        async with connection.async_session_maker() as session:
            await session.execute(text("SELECT 1"))
        checks["database"] = "connected"

        await (await get_redis()).ping()
        checks["redis"] = "connected"
    except Exception as e:
        logger.error(f"Ready check falló: {e}")
        return JSONResponse(status_code=503, content={"status": "not ready", "error": str(e), **checks})

    return {"status": "ready", **checks}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=settings.APP_DEBUG)

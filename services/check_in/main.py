"""Service entry point para check-in"""
from contextlib import asynccontextmanager

from fastapi import FastAPI
from slowapi.errors import RateLimitExceeded

from shared.database.connection import init_db, close_db
from shared.utils.rate_limiter import limiter, rate_limit_exceeded_handler
from services.check_in.routes.check_in import router


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    yield
    await close_db()


app = FastAPI(title="Check-in Service", lifespan=lifespan)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
app.include_router(router, prefix="/api/v1/check-in", tags=["check-in"])

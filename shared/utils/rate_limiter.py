"""
Rate limiting con slowapi, conteo compartido en Redis
"""
import hashlib
import logging

from fastapi import Request, Response
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.responses import JSONResponse

from shared.config.settings import settings

logger = logging.getLogger(__name__)

RATE_LIMITS = {
    # Una estación en la puerta puede leer varios QR por segundo
    "scan": "120/minute",
    "qr_generation": "20/minute",
}


def get_real_client_ip(request: Request) -> str:
    """IP del cliente detrás de proxy / load balancer"""
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    return request.headers.get("X-Real-IP") or get_remote_address(request)


def get_user_identifier(request: Request) -> str:
    """
    Clave de rate limiting: IP + hash corto del token

    Las estaciones de scanner de un mismo recinto suelen salir por la misma IP,
    así cada operador tiene su propio cupo.
    """
    ip = get_real_client_ip(request)
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return ip
    return f"{ip}:{hashlib.sha256(auth_header.encode()).hexdigest()[:8]}"


limiter = Limiter(
    key_func=get_user_identifier,
    storage_uri=settings.REDIS_URL,
    strategy="fixed-window",
    headers_enabled=False,  # los endpoints devuelven modelos, no Response
    enabled=settings.RATE_LIMIT_ENABLED,
)


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> Response:
    """429 en JSON con los segundos de la ventana del límite excedido"""
    try:
        retry_after = int(exc.limit.limit.get_expiry())
    except AttributeError:
        retry_after = 60

    logger.warning(
        f"Rate limit excedido - IP: {get_real_client_ip(request)}, path: {request.url.path}, límite: {exc.detail}"
    )

    return JSONResponse(
        status_code=429,
        content={
            "error": "rate_limit_exceeded",
            "detail": "Demasiadas solicitudes. Espera antes de intentar nuevamente.",
            "retry_after_seconds": retry_after,
        },
        headers={"Retry-After": str(retry_after)},
    )

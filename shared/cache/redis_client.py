"""Redis compartido: cache de tokens validados y chequeo de disponibilidad"""
import json
import logging
from typing import Any, Optional

import redis.asyncio as redis

from shared.config.settings import settings

logger = logging.getLogger(__name__)

_client: Optional[redis.Redis] = None


async def init_redis() -> redis.Redis:
    """Crear el cliente (con su pool) una sola vez; un Redis caído no impide arrancar"""
    global _client

    if _client is None:
        _client = redis.from_url(
            settings.REDIS_URL,
            max_connections=settings.REDIS_MAX_CONNECTIONS,
            decode_responses=True,
            socket_connect_timeout=5,
            retry_on_timeout=True,
            health_check_interval=30,
        )
        try:
            await _client.ping()
            logger.info("Redis conectado")
        except (redis.RedisError, OSError) as e:
            logger.error(f"Redis no disponible al iniciar: {e}")

    return _client


async def get_redis() -> redis.Redis:
    return _client or await init_redis()


async def close_redis():
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None
        logger.info("Redis desconectado")


async def cache_get(key: str) -> Optional[Any]:
    """Leer un valor cacheado (JSON si se puede, texto si no)"""
    value = await (await get_redis()).get(key)
    if value is None:
        return None
    try:
        return json.loads(value)
    except json.JSONDecodeError:
        return value


async def cache_set(key: str, value: Any, ttl: int):
    """Guardar un valor con expiración en segundos"""
    if not isinstance(value, str):
        value = json.dumps(value)
    await (await get_redis()).set(key, value, ex=ttl)

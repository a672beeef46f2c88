"""Validación de tokens emitidos por Supabase Auth"""
import hashlib
import logging
from typing import Dict, Optional

import httpx
from jose import jwt

from shared.cache.redis_client import cache_get, cache_set
from shared.config.settings import settings

logger = logging.getLogger(__name__)


def get_token_cache_key(token: str) -> str:
    '''Solo se guarda un hash del token, nunca el token'''
    return f'jwt:validated:{hashlib.sha256(token.encode()).hexdigest()[:16]}'


def _claims_from_user(user_data: Dict, token: str) -> Dict:
    # Supabase ya validó el token, los claims se leen sin verificar firma.
    # El rol sale solo de app_metadata: user_metadata lo edita el propio usuario.
    claims = jwt.get_unverified_claims(token)
    app_metadata = claims.get('app_metadata') or {}
    return {
        'sub': user_data.get('id'),
        'email': user_data.get('email'),
        'role': app_metadata.get('role') or 'user',
        'exp': claims.get('exp'),
        'iss': claims.get('iss'),
        'app_metadata': app_metadata,
    }


async def _cached(cache_key: str) -> Optional[Dict]:
    try:
        return await cache_get(cache_key)
    except Exception as e:
        # Sin Redis se valida directo contra Supabase
        logger.warning(f'Cache de tokens no disponible: {e}')
        return None


async def verify_supabase_token(token: str) -> Optional[Dict]:
    '''
    Valida el token contra /auth/v1/user de Supabase

    El resultado se cachea en Redis TOKEN_CACHE_TTL_SECONDS para no consultar
    Supabase en cada escaneo.
    '''
    if not settings.SUPABASE_URL:
        logger.error('SUPABASE_URL no configurado, no se pueden validar tokens de Supabase')
        return None

    cache_key = get_token_cache_key(token)
    cached = await _cached(cache_key)
    if cached:
        return cached

    try:
        async with httpx.AsyncClient(timeout=5.0) as client:
            response = await client.get(
                f"{settings.SUPABASE_URL.rstrip('/')}/auth/v1/user",
                headers={'apikey': settings.SUPABASE_ANON_KEY, 'Authorization': f'Bearer {token}'},
            )
    except httpx.HTTPError as e:
        logger.error(f'Error validando token con Supabase: {e}')
        return None

    if response.status_code != 200:
        logger.info(f'Supabase rechazó el token ({response.status_code})')
        return None

    payload = _claims_from_user(response.json(), token)

    try:
        await cache_set(cache_key, payload, ttl=settings.TOKEN_CACHE_TTL_SECONDS)
    except Exception as e:
        logger.warning(f'No se pudo cachear token validado: {e}')

    return payload

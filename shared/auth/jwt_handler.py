"""Manejo de JWT tokens"""
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict
from jose import JWTError, jwt
import logging

from shared.config.settings import settings

logger = logging.getLogger(__name__)

JWT_ACCESS_TOKEN_EXPIRE_MINUTES = 30


def create_access_token(data: Dict, expires_delta: Optional[timedelta] = None) -> str:
    '''Crear token de acceso JWT (tokens propios del backend, ej. estaciones de scanner)'''
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=JWT_ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({'exp': expire, 'type': 'access'})
    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> Optional[Dict]:
    '''Decodificar y validar token JWT'''
    try:
        return jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        return None


async def verify_token(token: str) -> Optional[Dict]:
    '''
    Verificar token.
    Tokens de Supabase Auth se validan contra Supabase; tokens propios
    del backend se validan localmente.
    '''
    try:
        unverified = jwt.get_unverified_claims(token)
    except JWTError as e:
        logger.warning(f'Token con formato inválido: {e}')
        return None

    issuer = unverified.get('iss', '')
    if 'supabase.co/auth' in issuer:
        from shared.auth.supabase_validator import verify_supabase_token
        return await verify_supabase_token(token)

    return decode_token(token)

"""Dependencies de autenticación para FastAPI"""
from typing import Dict

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from shared.auth.jwt_handler import verify_token

security = HTTPBearer()

# Roles que pueden operar una estación de check-in
SCANNER_ROLES = ('scanner', 'coordinator', 'admin')


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={'WWW-Authenticate': 'Bearer'},
    )


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> Dict:
    '''Usuario del token: user_id, email y role (claim directo o app_metadata)'''
    payload = await verify_token(credentials.credentials)
    if payload is None:
        raise _unauthorized('Token inválido o expirado')

    user_id = payload.get('sub') or payload.get('user_id')
    if not user_id:
        raise _unauthorized('Token inválido: falta user_id')

    role = payload.get('role') or payload.get('app_metadata', {}).get('role') or 'user'
    return {'user_id': user_id, 'email': payload.get('email'), 'role': role}


def require_roles(*roles: str):
    async def dependency(current_user: Dict = Depends(get_current_user)) -> Dict:
        if current_user.get('role') not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f'Se requiere uno de los roles: {", ".join(roles)}'
            )
        return current_user
    return dependency


get_current_scanner = require_roles(*SCANNER_ROLES)

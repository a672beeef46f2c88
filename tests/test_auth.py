from datetime import timedelta

import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials
from starlette.requests import Request

from shared.auth.dependencies import get_current_scanner, get_current_user
from shared.auth.jwt_handler import create_access_token, decode_token, verify_token
from shared.utils.rate_limiter import get_user_identifier


def bearer(token: str) -> HTTPAuthorizationCredentials:
    return HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)


def test_local_token_round_trip():
    token = create_access_token({"sub": "U1", "role": "scanner"})

    payload = decode_token(token)

    assert payload["sub"] == "U1"
    assert payload["type"] == "access"


def test_expired_token_is_rejected():
    token = create_access_token({"sub": "U1"}, expires_delta=timedelta(minutes=-1))

    assert decode_token(token) is None


async def test_verify_token_rejects_garbage():
    assert await verify_token("not-a-jwt") is None


async def test_scanner_role_from_app_metadata():
    token = create_access_token({"sub": "U1", "app_metadata": {"role": "coordinator"}})

    user = await get_current_user(bearer(token))

    assert user == {"user_id": "U1", "email": None, "role": "coordinator"}
    assert await get_current_scanner(user) is user


async def test_plain_user_cannot_scan():
    user = await get_current_user(bearer(create_access_token({"sub": "U1"})))

    with pytest.raises(HTTPException) as exc:
        await get_current_scanner(user)

    assert exc.value.status_code == 403


async def test_token_without_subject_is_401():
    with pytest.raises(HTTPException) as exc:
        await get_current_user(bearer(create_access_token({"role": "admin"})))

    assert exc.value.status_code == 401


def make_request(headers: dict) -> Request:
    return Request({
        "type": "http",
        "headers": [(k.lower().encode(), v.encode()) for k, v in headers.items()],
        "client": ("10.0.0.9", 1234),
    })


def test_rate_limit_key_separates_operators_behind_same_ip():
    first = get_user_identifier(make_request({"X-Forwarded-For": "200.1.1.1, 10.0.0.1", "Authorization": "Bearer a"}))
    second = get_user_identifier(make_request({"X-Forwarded-For": "200.1.1.1", "Authorization": "Bearer b"}))

    assert first.startswith("200.1.1.1:")
    assert second.startswith("200.1.1.1:")
    assert first != second
    assert get_user_identifier(make_request({})) == "10.0.0.9"


@pytest.fixture
def supabase_auth(monkeypatch):
    """Supabase Auth simulado con MockTransport y cache en memoria"""
    import httpx
    from shared.auth import supabase_validator
    from shared.config.settings import settings

    cache, calls = {}, []

    async def fake_get(key):
        return cache.get(key)

    async def fake_set(key, value, ttl):
        cache[key] = value

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        if request.headers["authorization"] == "Bearer revoked":
            return httpx.Response(401, json={"msg": "invalid"})
        return httpx.Response(200, json={"id": "U9", "email": "staff@example.com"})

    real_client = httpx.AsyncClient
    monkeypatch.setattr(supabase_validator, "cache_get", fake_get)
    monkeypatch.setattr(supabase_validator, "cache_set", fake_set)
    monkeypatch.setattr(
        supabase_validator.httpx, "AsyncClient",
        lambda **kwargs: real_client(transport=httpx.MockTransport(handler), **kwargs),
    )
    monkeypatch.setattr(settings, "SUPABASE_URL", "https://project.supabase.co")
    return calls


def supabase_token(role="scanner", **extra_claims) -> str:
    from jose import jwt
    claims = {"iss": "https://project.supabase.co/auth/v1", "sub": "U9", "app_metadata": {"role": role}}
    claims.update(extra_claims)
    return jwt.encode(claims, "supabase-secret", algorithm="HS256")


async def test_supabase_token_is_validated_remotely_then_cached(supabase_auth):
    token = supabase_token()

    first = await verify_token(token)
    second = await verify_token(token)

    assert first["sub"] == "U9"
    assert first["role"] == "scanner"
    assert second == first
    assert len(supabase_auth) == 1


async def test_token_rejected_by_supabase_is_none(supabase_auth):
    from shared.auth.supabase_validator import verify_supabase_token

    assert await verify_supabase_token("revoked") is None


async def test_role_in_user_metadata_does_not_grant_scanner(supabase_auth):
    # user_metadata es editable por el usuario desde el cliente de Supabase
    token = supabase_token(app_metadata={}, user_metadata={"role": "scanner"})

    user = await get_current_user(bearer(token))

    assert user["role"] == "user"
    with pytest.raises(HTTPException) as exc:
        await get_current_scanner(user)
    assert exc.value.status_code == 403

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from fastapi import Header, HTTPException, status
from jose import JWTError, jwt

from charwizard.config import settings

DEFAULT_DEV_USER_ID = "dev-user"
MAX_USER_ID_LENGTH = 64


def _unauthorized(code: str, message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"code": code, "message": message},
    )


def create_access_token(user_id: str, *, expires_minutes: int | None = None) -> str:
    now = datetime.now(timezone.utc)
    minutes = settings.jwt_exp_minutes if expires_minutes is None else expires_minutes
    payload = {
        "sub": str(user_id),
        "userId": str(user_id),
        "iss": settings.jwt_issuer,
        "aud": settings.jwt_audience,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=minutes)).timestamp()),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> str:
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
            issuer=settings.jwt_issuer,
            options={"verify_exp": False, "verify_iat": False},
        )
    except JWTError as exc:
        raise _unauthorized("INVALID_TOKEN", "Invalid access token") from exc

    now_ts = int(datetime.now(timezone.utc).timestamp())
    leeway = int(settings.jwt_leeway_s)
    try:
        exp = int(payload.get("exp", 0))
        iat = int(payload.get("iat", 0))
    except (TypeError, ValueError) as exc:
        raise _unauthorized("INVALID_TOKEN", "Invalid access token") from exc
    if exp and now_ts > exp + leeway:
        raise _unauthorized("TOKEN_EXPIRED", "Access token expired")
    if iat and now_ts + leeway < iat:
        raise _unauthorized("INVALID_TOKEN", "Access token issued in the future")

    user_id = str(payload.get("sub") or payload.get("userId") or "").strip()
    if not user_id or len(user_id) > MAX_USER_ID_LENGTH:
        raise _unauthorized("INVALID_TOKEN", "Access token has no usable subject")
    return user_id


def get_current_user_id(
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_user_id: str | None = Header(default=None, alias="X-User-Id"),
) -> str:
    if authorization and authorization.lower().startswith("bearer "):
        return decode_access_token(authorization.split(" ", 1)[1].strip())

    if settings.env == "dev" and settings.dev_auth_enabled:
        candidate = str(x_user_id or "").strip() or DEFAULT_DEV_USER_ID
        if len(candidate) > MAX_USER_ID_LENGTH:
            raise _unauthorized("INVALID_USER", "X-User-Id is too long")
        return candidate

    raise _unauthorized("MISSING_TOKEN", "Bearer token required")

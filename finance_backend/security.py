from __future__ import annotations

from datetime import datetime, timedelta, timezone
import hashlib
import secrets
from typing import Any, Mapping, Optional
import uuid

import bcrypt
import jwt

from finance_backend.settings import JwtSettings

JWT_ALGORITHM = "HS256"
RESET_TOKEN_BYTES = 32
RESET_TOKEN_TTL = timedelta(minutes=30)


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, hashed_password: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError:
        return False


def issue_access_token(
    user: Mapping[str, Any],
    settings: JwtSettings,
    now: Optional[datetime] = None,
) -> str:
    """Sign a bearer token for ``user`` (a row with id, email, full_name, is_active)."""
    if not settings.key.strip():
        raise RuntimeError("JWT key is not configured.")
    issued_at = now or datetime.now(timezone.utc)
    claims: dict[str, Any] = {
        "sub": str(user["id"]),
        "email": user["email"],
        "unique_name": user["email"],
        "jti": str(uuid.uuid4()),
        "fullName": user["full_name"],
        "isActive": str(bool(user["is_active"])),
        "iat": issued_at,
        "exp": issued_at + timedelta(minutes=settings.expires_minutes),
    }
    if settings.issuer:
        claims["iss"] = settings.issuer
    if settings.audience:
        claims["aud"] = settings.audience
    return jwt.encode(claims, settings.key, algorithm=JWT_ALGORITHM)


def decode_access_token(token: str, settings: JwtSettings) -> dict[str, Any]:
    if not settings.key.strip():
        raise RuntimeError("JWT key is not configured.")
    options = {"require": ["exp", "sub"], "verify_aud": bool(settings.audience)}
    try:
        return jwt.decode(
            token,
            settings.key,
            algorithms=[JWT_ALGORITHM],
            audience=settings.audience or None,
            issuer=settings.issuer or None,
            options=options,
            leeway=0,
        )
    except jwt.PyJWTError as exc:
        raise ValueError("Invalid or expired token.") from exc


def generate_reset_token() -> str:
    return secrets.token_hex(RESET_TOKEN_BYTES).upper()


def hash_reset_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest().upper()

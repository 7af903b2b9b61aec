# Overview: JWT access/refresh token issuing and verification.

"""
Stateless bearer tokens.

- Access token: {user_id, email, role, token_type="access"}; signed with
  JWT_SECRET, valid JWT_ACCESS_EXPIRES_HOURS.
- Refresh token: {user_id, token_type="refresh"}; signed with
  JWT_REFRESH_SECRET, valid JWT_REFRESH_EXPIRES_DAYS.

Both carry iat/exp/jti and the JWT_ISSUER claim.
"""
from __future__ import annotations

import secrets
from datetime import timedelta, timezone

import jwt
from flask import current_app

from ..extensions import db
from ..models import User
from app.time_utils import utcnow

JWT_ALGORITHM = "HS256"


def _now():
    return utcnow().replace(tzinfo=timezone.utc)


def generate_access_token(user: User) -> str:
    cfg = current_app.config
    now = _now()
    payload = {
        "user_id": user.user_id,
        "email": user.email,
        "role": user.role,
        "token_type": "access",
        "iss": cfg["JWT_ISSUER"],
        "iat": now,
        "exp": now + timedelta(hours=cfg["JWT_ACCESS_EXPIRES_HOURS"]),
        "jti": secrets.token_hex(16),
    }
    return jwt.encode(payload, cfg["JWT_SECRET"], algorithm=JWT_ALGORITHM)


def generate_refresh_token(user: User) -> str:
    cfg = current_app.config
    now = _now()
    payload = {
        "user_id": user.user_id,
        "token_type": "refresh",
        "iss": cfg["JWT_ISSUER"],
        "iat": now,
        "exp": now + timedelta(days=cfg["JWT_REFRESH_EXPIRES_DAYS"]),
        "jti": secrets.token_hex(16),
    }
    return jwt.encode(payload, cfg["JWT_REFRESH_SECRET"], algorithm=JWT_ALGORITHM)


def generate_tokens(user: User) -> dict:
    """Generate both access and refresh tokens for user."""
    return {
        "accessToken": generate_access_token(user),
        "refreshToken": generate_refresh_token(user),
    }


def _decode(token: str, secret: str, token_type: str) -> dict | None:
    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=[JWT_ALGORITHM],
            issuer=current_app.config["JWT_ISSUER"],
        )
    except jwt.ExpiredSignatureError:
        return None
    except jwt.InvalidTokenError:
        return None
    if payload.get("token_type") != token_type:
        return None
    return payload


def decode_access_token(token: str) -> dict | None:
    """Decode and validate access token."""
    return _decode(token, current_app.config["JWT_SECRET"], "access")


def decode_refresh_token(token: str) -> dict | None:
    """Decode and validate refresh token."""
    return _decode(token, current_app.config["JWT_REFRESH_SECRET"], "refresh")


def user_from_access_token(token: str) -> User | None:
    """Resolve the active user behind an access token, or None."""
    payload = decode_access_token(token)
    if not payload:
        return None
    user = db.session.get(User, payload.get("user_id"))
    if not user or not user.is_active:
        return None
    return user


def refresh_access_token(refresh_token: str) -> str | None:
    """Generate new access token using refresh token."""
    payload = decode_refresh_token(refresh_token)
    if not payload:
        return None
    user = db.session.get(User, payload.get("user_id"))
    if not user or not user.is_active:
        return None
    return generate_access_token(user)

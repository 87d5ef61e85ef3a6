from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from functools import wraps
from typing import Any

import jwt
from flask import Request, current_app, g, jsonify

TOKEN_ALGORITHM = "HS256"


class TokenError(Exception):
    pass


def issue_token(user_id: int, *, secret: str | None = None, ttl_hours: int | None = None) -> str:
    """Sign a bearer token for the given admin user id."""
    secret = secret or current_app.config["SECRET_KEY"]
    ttl = ttl_hours if ttl_hours is not None else int(current_app.config.get("TOKEN_TTL_HOURS", 24))
    now = datetime.now(timezone.utc)
    payload = {"sub": str(user_id), "iat": now, "exp": now + timedelta(hours=ttl)}
    return jwt.encode(payload, secret, algorithm=TOKEN_ALGORITHM)


def decode_token(token: str, *, secret: str | None = None) -> int:
    """Return the user id carried by a valid token, else raise TokenError."""
    secret = secret or current_app.config["SECRET_KEY"]
    try:
        payload = jwt.decode(token, secret, algorithms=[TOKEN_ALGORITHM])
    except jwt.ExpiredSignatureError as e:
        raise TokenError("Token expired") from e
    except jwt.InvalidTokenError as e:
        raise TokenError("Token is not valid") from e
    try:
        return int(payload["sub"])
    except (KeyError, TypeError, ValueError) as e:
        raise TokenError("Token is not valid") from e


def bearer_token(req: Request) -> str | None:
    header = req.headers.get("Authorization") or ""
    scheme, _, value = header.partition(" ")
    if scheme.lower() != "bearer" or not value.strip():
        return None
    return value.strip()


def require_auth(fn: Callable[..., Any]) -> Callable[..., Any]:
    """Reject the request with 401 unless load_current_user() found an active admin."""

    @wraps(fn)
    def wrapped(*args: Any, **kwargs: Any):
        user = getattr(g, "current_user", None)
        if not user or not user.is_active:
            return jsonify({"message": "No token, authorization denied"}), 401
        return fn(*args, **kwargs)

    return wrapped

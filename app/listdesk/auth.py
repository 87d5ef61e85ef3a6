from __future__ import annotations

import uuid
from collections import defaultdict
from datetime import datetime, timedelta

from flask import Blueprint, current_app, g, jsonify, request
from werkzeug.security import check_password_hash, generate_password_hash

from app.listdesk.audit import record_event
from app.listdesk.db import db_session
from app.listdesk.models import User
from app.listdesk.security import TokenError, bearer_token, decode_token, issue_token, require_auth
from app.listdesk.utils import MIN_PASSWORD_LENGTH, normalize_email, normalize_text, request_payload, validate_email

bp = Blueprint("auth", __name__)
_LOGIN_RATE_LIMIT = 5
_LOGIN_RATE_WINDOW = 300  # seconds


def _login_attempts() -> dict[str, list[datetime]]:
    # Per-app (and so per-worker) memory; not shared across gunicorn workers.
    return current_app.extensions.setdefault("login_attempts", defaultdict(list))


def _check_rate_limit(ip: str) -> bool:
    attempts = _login_attempts()
    cutoff = datetime.utcnow() - timedelta(seconds=_LOGIN_RATE_WINDOW)
    attempts[ip] = [t for t in attempts[ip] if t > cutoff]
    return len(attempts[ip]) >= _LOGIN_RATE_LIMIT


def _record_attempt(ip: str) -> None:
    _login_attempts()[ip].append(datetime.utcnow())


def load_current_user() -> None:
    """
    Loads g.current_user from the bearer token.
    Also assigns a simple per-request request_id (for audit/log correlation).
    """
    if not getattr(g, "request_id", None):
        g.request_id = uuid.uuid4().hex
    g.current_user = None
    if request.path.startswith(("/static/", "/health", "/healthz")):
        return

    token = bearer_token(request)
    if not token:
        return

    try:
        user_id = decode_token(token)
    except TokenError as e:
        current_app.logger.info("Rejected bearer token (request_id=%s): %s", g.request_id, e)
        return

    s = db_session()
    user = s.get(User, user_id)
    if user and user.is_active:
        g.current_user = user


def _auth_response(user: User, status: int = 200):
    return jsonify({"token": issue_token(user.id), "user": user.to_dict()}), status


@bp.post("/register")
def register():
    data = request_payload(request)
    name = normalize_text(data.get("name"))
    email = normalize_email(data.get("email"))
    password = data.get("password") or ""

    errors = []
    if not name:
        errors.append({"field": "name", "message": "Name is required"})
    if not validate_email(email):
        errors.append({"field": "email", "message": "Please include a valid email"})
    if len(password) < MIN_PASSWORD_LENGTH:
        errors.append({"field": "password", "message": f"Please enter a password with {MIN_PASSWORD_LENGTH} or more characters"})
    if errors:
        return jsonify({"errors": errors}), 400

    s = db_session()
    if s.query(User).filter(User.email == email).one_or_none():
        return jsonify({"message": "User already exists"}), 400

    user = User(name=name, email=email, password_hash=generate_password_hash(password), is_active=True)
    s.add(user)
    s.flush()
    record_event(s, actor=user, action="auth.register", entity_type="User", entity_id=str(user.id))
    s.commit()
    current_app.logger.info("Registered admin user id=%s", user.id)
    return _auth_response(user, 201)


@bp.post("/login")
def login():
    data = request_payload(request)
    email = normalize_email(data.get("email"))
    password = data.get("password") or ""
    ip = request.remote_addr or "unknown"

    if _check_rate_limit(ip):
        return jsonify({"message": "Too many login attempts. Please wait 5 minutes."}), 429

    _record_attempt(ip)

    try:
        s = db_session()
        user = s.query(User).filter(User.email == email).one_or_none()
        if not user or not user.is_active or not check_password_hash(user.password_hash, password):
            record_event(
                s,
                actor=None,
                action="auth.login_failed",
                entity_type="User",
                entity_id=email,
                reason="Invalid credentials",
                metadata={"email": email},
            )
            s.commit()
            return jsonify({"message": "Invalid credentials"}), 400

        _login_attempts()[ip].clear()
        record_event(s, actor=user, action="auth.login", entity_type="User", entity_id=str(user.id))
        s.commit()
        return _auth_response(user)
    except Exception:
        current_app.logger.exception("Login crashed (email=%s request_id=%s)", email, getattr(g, "request_id", None))
        raise


@bp.get("/user")
@require_auth
def current_user():
    return jsonify(g.current_user.to_dict())

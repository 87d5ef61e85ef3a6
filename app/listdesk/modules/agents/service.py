from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any, Mapping

from werkzeug.security import generate_password_hash

from app.listdesk.audit import record_event
from app.listdesk.modules.agents.models import Agent
from app.listdesk.utils import MIN_PASSWORD_LENGTH, normalize_email, normalize_text, validate_email

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.listdesk.models import User


class DuplicateEmailError(ValueError):
    pass


def validate_agent_payload(payload: Mapping[str, Any], *, require_password: bool) -> list[dict[str, str]]:
    """Validate agent create/update payload. Returns a list of {field, message} errors."""
    errors: list[dict[str, str]] = []
    if not normalize_text(payload.get("name")):
        errors.append({"field": "name", "message": "Name is required"})
    if not validate_email(normalize_email(payload.get("email"))):
        errors.append({"field": "email", "message": "Please include a valid email"})
    if not normalize_text(payload.get("mobileNumber")):
        errors.append({"field": "mobileNumber", "message": "Mobile number is required"})
    if require_password and len(payload.get("password") or "") < MIN_PASSWORD_LENGTH:
        errors.append(
            {"field": "password", "message": f"Please enter a password with {MIN_PASSWORD_LENGTH} or more characters"}
        )
    return errors


def _email_taken(s: "Session", email: str, *, exclude_id: int | None = None) -> bool:
    q = s.query(Agent).filter(Agent.email == email)
    if exclude_id is not None:
        q = q.filter(Agent.id != exclude_id)
    return s.query(q.exists()).scalar()


def create_agent(s: "Session", payload: Mapping[str, Any], user: "User | None") -> Agent:
    email = normalize_email(payload.get("email"))
    if _email_taken(s, email):
        raise DuplicateEmailError("Agent with this email already exists")

    now = datetime.utcnow()
    agent = Agent(
        name=normalize_text(payload.get("name")),
        email=email,
        mobile_number=normalize_text(payload.get("mobileNumber")),
        password_hash=generate_password_hash(payload.get("password") or ""),
        created_at=now,
        updated_at=now,
    )
    s.add(agent)
    s.flush()

    record_event(
        s,
        actor=user,
        action="agent.create",
        entity_type="Agent",
        entity_id=str(agent.id),
        metadata={"name": agent.name, "email": agent.email},
    )
    return agent


def update_agent(s: "Session", agent: Agent, payload: Mapping[str, Any], user: "User | None") -> Agent:
    email = normalize_email(payload.get("email"))
    if _email_taken(s, email, exclude_id=agent.id):
        raise DuplicateEmailError("Email is already taken by another agent")

    changes = {}
    for attr, value in (
        ("name", normalize_text(payload.get("name"))),
        ("email", email),
        ("mobile_number", normalize_text(payload.get("mobileNumber"))),
    ):
        old = getattr(agent, attr)
        if value != old:
            changes[attr] = {"old": old, "new": value}
            setattr(agent, attr, value)

    agent.updated_at = datetime.utcnow()

    record_event(
        s,
        actor=user,
        action="agent.edit",
        entity_type="Agent",
        entity_id=str(agent.id),
        metadata={"name": agent.name, "changes": changes},
    )
    return agent


def delete_agent(s: "Session", agent: Agent, user: "User | None") -> None:
    """Remove an agent. Items already distributed to it stay in place."""
    record_event(
        s,
        actor=user,
        action="agent.delete",
        entity_type="Agent",
        entity_id=str(agent.id),
        metadata={"name": agent.name, "email": agent.email},
    )
    s.delete(agent)

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from app.listdesk.db import db_session
from app.listdesk.models import User
from app.listdesk.modules.agents.models import Agent
from app.listdesk.modules.agents.service import (
    DuplicateEmailError,
    create_agent,
    delete_agent,
    update_agent,
    validate_agent_payload,
)
from app.listdesk.modules.distribution.service import list_agents_in_order
from app.listdesk.security import require_auth
from app.listdesk.utils import request_payload

bp = Blueprint("agents", __name__)


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


def _not_found():
    return jsonify({"message": "Agent not found"}), 404


# ---------- List ----------
@bp.get("")
@require_auth
def agents_list():
    s = db_session()
    return jsonify([a.to_dict() for a in list_agents_in_order(s)])


# ---------- New ----------
@bp.post("")
@require_auth
def agents_create():
    s = db_session()
    payload = request_payload(request)

    errors = validate_agent_payload(payload, require_password=True)
    if errors:
        return jsonify({"errors": errors}), 400

    try:
        agent = create_agent(s, payload, _current_user())
    except DuplicateEmailError as e:
        s.rollback()
        return jsonify({"message": str(e)}), 400
    s.commit()
    return jsonify(agent.to_dict()), 201


# ---------- Detail ----------
@bp.get("/<int:agent_id>")
@require_auth
def agent_detail(agent_id: int):
    s = db_session()
    agent = s.get(Agent, agent_id)
    if not agent:
        return _not_found()
    return jsonify(agent.to_dict())


# ---------- Edit ----------
@bp.put("/<int:agent_id>")
@require_auth
def agent_update(agent_id: int):
    s = db_session()
    payload = request_payload(request)

    errors = validate_agent_payload(payload, require_password=False)
    if errors:
        return jsonify({"errors": errors}), 400

    agent = s.get(Agent, agent_id)
    if not agent:
        return _not_found()

    try:
        update_agent(s, agent, payload, _current_user())
    except DuplicateEmailError as e:
        s.rollback()
        return jsonify({"message": str(e)}), 400
    s.commit()
    return jsonify(agent.to_dict())


# ---------- Delete ----------
@bp.delete("/<int:agent_id>")
@require_auth
def agent_delete(agent_id: int):
    s = db_session()
    agent = s.get(Agent, agent_id)
    if not agent:
        return _not_found()
    delete_agent(s, agent, _current_user())
    s.commit()
    return jsonify({"message": "Agent removed successfully"})

# Overview: Flask API routes for the audit log; client-side event intake and admin review.

# backend/spa_pos/routes/log.py
from flask import Blueprint, request, jsonify, g

from ..decorators import require_auth, require_admin, optional_auth
from ..errors import InvalidValueError
from ..services.audit_service import AUDIT_KINDS
from ..services.ledgers import audit_log
from ..validation import as_id, clean_text


log_bp = Blueprint("log", __name__, url_prefix="/api/log")

# Kinds a client may submit; "auth" is server-side only
CLIENT_LOG_KINDS = ("navigation", "action")


@log_bp.post("")
@optional_auth
def create_log_route():
    """
    Client-side navigation/action log.

    Request body:
    {
        "kind": "navigation" | "action" (anything else is stored as "system"),
        "message": str,
        "path": str (optional),
        "context": object (optional)
    }

    Identity is optional; anonymous events are stored with actor_id = null.
    """
    data = request.get_json(silent=True) or {}

    message = clean_text(data.get("message"))
    if not message:
        return jsonify({"error": "message is required", "code": "missing_input"}), 400

    context = data.get("context")
    if context is not None and not isinstance(context, dict):
        context = {"value": context}

    kind = data.get("kind")
    if kind not in CLIENT_LOG_KINDS:
        kind = "system"

    identity = g.identity
    event = audit_log().record(
        kind,
        message,
        actor_id=identity.actor_id if identity else None,
        path=clean_text(data.get("path")),
        context=context,
    )

    return jsonify({"event": event.to_dict() if event else None}), 201


@log_bp.get("")
@require_auth
@require_admin
def list_log_route():
    """
    Audit events, newest first (admin only).

    Query params: kind, actor_id, limit (max 500)
    """
    kind = request.args.get("kind")
    if kind and kind not in AUDIT_KINDS:
        e = InvalidValueError(f"Invalid kind: {kind}")
        return jsonify(e.to_dict()), e.status_code

    actor_id = request.args.get("actor_id")
    if actor_id is not None:
        actor_id = as_id(actor_id)
        if actor_id is None:
            e = InvalidValueError("actor_id must be a positive integer")
            return jsonify(e.to_dict()), e.status_code

    limit = min(request.args.get("limit", 200, type=int) or 200, 500)
    events = audit_log().list(kind=kind, actor_id=actor_id, limit=limit)
    return jsonify({"events": [e.to_dict() for e in events]}), 200

# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .errors import UnauthenticatedError
from .services.identity_service import bearer_token, resolve_identity


def _is_authenticated() -> bool:
    return getattr(g, "identity", None) is not None


def require_auth(f):
    """
    Require a valid session token.

    Sets the following Flask g attributes:
    - g.identity: validated Identity (actor_id + Role)
    - g.session_token: the plaintext bearer token (used by logout)

    SECURITY: Returns 401 if:
    - No Authorization header
    - Invalid, expired or revoked token
    - User account deactivated
    - Stored role is not a known Role
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = bearer_token(request.headers.get("Authorization"))

        try:
            identity = resolve_identity(token)
        except UnauthenticatedError as e:
            return jsonify(e.to_dict()), e.status_code

        g.identity = identity
        g.session_token = token

        return f(*args, **kwargs)

    return decorated_function


def require_admin(f):
    """Admin-only endpoint. Must be stacked under @require_auth."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not _is_authenticated():
            return jsonify({"error": "Authentication required", "code": "unauthenticated"}), 401

        if not g.identity.is_admin:
            return jsonify({"error": "Admin access required", "code": "forbidden"}), 403

        return f(*args, **kwargs)

    return decorated_function


def optional_auth(f):
    """
    Resolve the identity if a valid token is present; otherwise continue
    anonymously with g.identity = None.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        g.identity = None
        token = bearer_token(request.headers.get("Authorization"))
        if token:
            try:
                g.identity = resolve_identity(token)
            except UnauthenticatedError:
                g.identity = None

        return f(*args, **kwargs)

    return decorated_function

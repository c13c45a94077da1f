# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/spa_pos/routes/auth.py
"""
Authentication API routes

SECURITY FEATURES:
- Password strength validation on user creation
- Session management with token-based auth
- Every login, logout and account creation lands in the audit log
- No self-registration; admins create accounts
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..extensions import db
from ..errors import LedgerError, MissingInputError
from ..services import auth_service
from ..services import session_service
from ..services.ledgers import audit_log
from ..decorators import require_auth, require_admin


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/register")
def register_route():
    """
    Self-registration is disabled for security.

    Users can only be created by administrators via:
    - POST /api/auth/users (admin only)
    - CLI: flask users create
    """
    return jsonify({
        "error": "Self-registration is disabled. Contact an administrator to create an account.",
        "code": "forbidden",
    }), 403


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Token must be included in Authorization header for protected routes.
    """
    try:
        data = request.get_json(silent=True) or {}
        username = str(data.get("username") or "").strip()
        password = data.get("password")

        if not username or not password:
            raise MissingInputError("username and password required")

        user_agent = request.headers.get("User-Agent")
        ip_address = request.remote_addr

        user = auth_service.authenticate(username, password)

        if not user:
            audit_log().record(
                "auth",
                f"Failed login for {username}",
                path=request.path,
                context={"username": username, "ip_address": ip_address},
            )
            return jsonify({"error": "Invalid credentials", "code": "unauthenticated"}), 401

        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=user_agent,
            ip_address=ip_address,
        )

        audit_log().record(
            "auth",
            f"Login {user.username}",
            actor_id=user.id,
            path=request.path,
            context={"session_id": session.id, "ip_address": ip_address},
        )

        return jsonify({
            "user": user.to_dict(),
            "token": token,
            "session": session.to_dict(),
            "message": "Login successful",
        }), 200

    except LedgerError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
@require_auth
def logout_route():
    """Revoke the current session token."""
    try:
        session_service.revoke_session(g.session_token, reason="User logout")

        audit_log().record(
            "auth",
            f"Logout {g.identity.username}",
            actor_id=g.identity.actor_id,
            path=request.path,
        )
        return jsonify({"message": "Logout successful"}), 200

    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to logout user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.get("/me")
@require_auth
def me_route():
    user = auth_service.get_user(g.identity.actor_id)
    if not user:
        return jsonify({"error": "User not found", "code": "not_found"}), 404
    return jsonify({"user": user.to_dict()}), 200


@auth_bp.post("/users")
@require_auth
@require_admin
def create_user_route():
    """
    Create a staff or admin account.

    Request body:
    {
        "username": str,
        "password": str,
        "role": "admin" | "staff" (optional, default "staff")
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        user = auth_service.create_user(
            username=data.get("username"),
            password=data.get("password"),
            role=data.get("role") or "staff",
        )

        audit_log().record(
            "auth",
            f"Created user {user.username} ({user.role})",
            actor_id=g.identity.actor_id,
            path=request.path,
            context={"user_id": user.id, "role": user.role},
        )
        return jsonify({"user": user.to_dict()}), 201

    except LedgerError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.get("/users")
@require_auth
@require_admin
def list_users_route():
    users = auth_service.list_users()
    return jsonify({"users": [u.to_dict() for u in users]}), 200

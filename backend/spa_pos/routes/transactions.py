# Overview: Flask API routes for spa transactions; parses input and returns JSON responses.

# backend/spa_pos/routes/transactions.py
"""
Transaction API routes.

Role and business-day rules live in TransactionLedger; these handlers only
translate JSON in and out.
"""
from flask import Blueprint, request, jsonify, current_app, g

from ..extensions import db
from ..errors import LedgerError
from ..decorators import require_auth
from ..services.ledgers import transaction_ledger


transactions_bp = Blueprint("transactions", __name__, url_prefix="/api/transactions")


@transactions_bp.get("")
@require_auth
def list_transactions_route():
    """
    Query params:
    - scope: active | today | history (default active)
    - from, to: inclusive business-date bounds for history (YYYY-MM-DD)
    """
    try:
        transactions = transaction_ledger().query(
            request.args.get("scope", "active"),
            actor=g.identity,
            date_from=request.args.get("from"),
            date_to=request.args.get("to"),
        )
        return jsonify({"transactions": [t.to_dict() for t in transactions]}), 200

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to query transactions")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.post("")
@require_auth
def create_transaction_route():
    """
    Open a transaction.

    Request body:
    {
        "services": [{"service_name": str, "amount": number, "duration_minutes": int}],
        "started_at": ISO-8601 (optional, admin only; naive = business-local time),
        "guest_name": str (optional),
        "therapist_id": str (optional),
        "therapist_name": str (optional),
        "room_name": str (optional),
        "notes": str (optional)
    }
    """
    data = request.get_json(silent=True) or {}

    try:
        tx = transaction_ledger().create(
            data.get("services"),
            actor=g.identity,
            started_at=data.get("started_at"),
            guest_name=data.get("guest_name"),
            therapist_id=data.get("therapist_id"),
            therapist_name=data.get("therapist_name"),
            room_name=data.get("room_name"),
            notes=data.get("notes"),
        )
        return jsonify({"transaction": tx.to_dict()}), 201

    except LedgerError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create transaction")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.get("/<int:transaction_id>")
@require_auth
def get_transaction_route(transaction_id: int):
    try:
        tx = transaction_ledger().get(transaction_id)
        return jsonify({"transaction": tx.to_dict()}), 200

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to load transaction %s", transaction_id)
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.patch("/<int:transaction_id>")
@require_auth
def patch_transaction_route(transaction_id: int):
    """
    Partial update. Recognised fields: service_status, payment_status,
    payment_method, guest_name, therapist_id, therapist_name, room_name,
    notes, total_amount (admin only).
    """
    data = request.get_json(silent=True) or {}

    try:
        tx = transaction_ledger().patch(transaction_id, data, actor=g.identity)
        return jsonify({"transaction": tx.to_dict()}), 200

    except LedgerError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update transaction %s", transaction_id)
        return jsonify({"error": "Internal server error"}), 500

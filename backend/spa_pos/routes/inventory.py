# Overview: Flask API routes for inventory operations; parses input and returns JSON responses.

# backend/spa_pos/routes/inventory.py
"""
Inventory API routes: items, deliveries, manual corrections, daily counts.
"""
from flask import Blueprint, request, jsonify, current_app, g

from ..extensions import db
from ..errors import LedgerError
from ..decorators import require_auth
from ..services.ledgers import inventory_ledger


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


def _error(e: LedgerError):
    db.session.rollback()
    return jsonify(e.to_dict()), e.status_code


@inventory_bp.get("/items")
@require_auth
def list_items_route():
    """
    List inventory items sorted by name.

    Query params:
    - include_inactive: "false" hides deactivated items (default true)
    """
    include_inactive = request.args.get("include_inactive", "true").lower() != "false"

    try:
        items = inventory_ledger().list_items(include_inactive=include_inactive)
        return jsonify({"items": [i.to_dict() for i in items]}), 200

    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to list inventory items")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.post("/items")
@require_auth
def create_item_route():
    """
    Create an inventory item (admin only).

    Request body:
    {
        "name": str,
        "sku": str,
        "category": "oil" | "towel" | "disposable" | "drink" | "other",
        "reorder_level": int (optional),
        "quantity_on_hand": int (optional, booked as initial stock),
        "unit_cost": number (optional),
        "unit_price": number (optional)
    }

    Returns:
        201: Item created
        400: Invalid request
        403: Not an admin
        409: Duplicate SKU
    """
    data = request.get_json(silent=True) or {}

    try:
        item = inventory_ledger().create_item(
            actor=g.identity,
            name=data.get("name"),
            sku=data.get("sku"),
            category=data.get("category"),
            reorder_level=data.get("reorder_level"),
            quantity_on_hand=data.get("quantity_on_hand"),
            unit_cost=data.get("unit_cost"),
            unit_price=data.get("unit_price"),
        )
        return jsonify({"item": item.to_dict()}), 201

    except LedgerError as e:
        return _error(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create inventory item")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.post("/receive")
@require_auth
def receive_route():
    """
    Record a delivery.

    Request body:
    {
        "item_id": int,
        "quantity": int (> 0),
        "reason": str (optional)
    }
    """
    data = request.get_json(silent=True) or {}

    try:
        item = inventory_ledger().receive(
            data.get("item_id"),
            data.get("quantity"),
            data.get("reason"),
            actor=g.identity,
        )
        return jsonify({"item": item.to_dict()}), 200

    except LedgerError as e:
        return _error(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to receive inventory")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.post("/adjust")
@require_auth
def adjust_route():
    """
    Manual stock correction (admin only).

    Request body:
    {
        "item_id": int,
        "quantity_delta": int (non-zero, may be negative),
        "reason": str
    }
    """
    data = request.get_json(silent=True) or {}

    try:
        item = inventory_ledger().adjust(
            data.get("item_id"),
            data.get("quantity_delta"),
            data.get("reason"),
            actor=g.identity,
        )
        return jsonify({"item": item.to_dict()}), 200

    except LedgerError as e:
        return _error(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to adjust inventory")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.post("/daily")
@require_auth
def daily_count_route():
    """
    End-of-day physical count.

    Request body:
    {
        "business_date_key": "YYYY-MM-DD" (optional; missing or malformed means today),
        "counts": [{"item_id": int, "actual_qty": int}, ...]
    }

    Returns:
        200: {date_key, results, skipped, rejected_date_key}
        400: counts missing or empty
    """
    data = request.get_json(silent=True) or {}

    try:
        outcome = inventory_ledger().record_daily_count(
            data.get("counts"),
            actor=g.identity,
            business_date_key=data.get("business_date_key"),
        )
        return jsonify(outcome.to_dict()), 200

    except LedgerError as e:
        return _error(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to record daily count")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.get("/adjustments")
@require_auth
def list_adjustments_route():
    """
    Count and adjustment history, newest first.

    Query params: item_id, business_date_key, kind, limit (max 500)
    """
    try:
        limit = min(request.args.get("limit", 200, type=int) or 200, 500)
        adjustments = inventory_ledger().list_adjustments(
            item_id=request.args.get("item_id"),
            business_date_key=request.args.get("business_date_key"),
            kind=request.args.get("kind"),
            limit=limit,
        )
        return jsonify({"adjustments": [a.to_dict() for a in adjustments]}), 200

    except LedgerError as e:
        return _error(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to list inventory adjustments")
        return jsonify({"error": "Internal server error"}), 500

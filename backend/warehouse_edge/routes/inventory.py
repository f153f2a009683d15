# backend/warehouse_edge/routes/inventory.py
"""
Inventory ledger routes.

- GET  /api/inventory/transactions      - ledger page, newest first
- POST /api/inventory/transactions      - record a movement (manager)
- GET  /api/inventory/<product_id>      - on-hand summary for one product
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import inventory_service, permission_service
from ..services.products_service import list_products
from ..validation import ValidationError, NotFoundError
from ..decorators import require_user, require_capability


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.get("/transactions")
@require_user
def list_transactions_route():
    """
    Query params (all optional): product_id, type, warehouse_id, user,
    start, end, limit (default 200).
    """
    user = g.current_user
    try:
        rows = inventory_service.list_transactions(
            product_id=request.args.get("product_id") or None,
            type=request.args.get("type") or None,
            warehouse_id=request.args.get("warehouse_id") or None,
            user=request.args.get("user") or None,
            start=request.args.get("start") or None,
            end=request.args.get("end") or None,
            limit=request.args.get("limit", 200, type=int),
        )
    except Exception:
        current_app.logger.exception("Failed to list inventory transactions")
        return jsonify({"error": "Internal server error"}), 500

    categories = permission_service.visible_categories(user)
    if categories is not None:
        visible_ids = {p.id for p in list_products(categories=categories)}
        rows = [tx for tx in rows if tx.product_id in visible_ids]

    return jsonify({"transactions": [tx.to_dict() for tx in rows], "count": len(rows)}), 200


@inventory_bp.post("/transactions")
@require_user
@require_capability(
    permission_service.can_manage_inventory,
    "Only Admins and Warehouse Managers can record inventory movements",
)
def record_transaction_route():
    """
    Body:
        {
            "product_id": "...",
            "type": "Inflow" | "Outflow" | "Return" | "Damage" | "Adjustment",
            "quantity_change": -20,
            "reason": "...", "notes": "...",
            "occurred_at": "2024-07-25T10:00:00Z",
            "warehouse_id": "..."
        }

    user is always the acting user's name.
    """
    user = g.current_user
    data = request.get_json(silent=True) or {}

    try:
        tx = inventory_service.record_transaction(
            product_id=data.get("product_id"),
            type=data.get("type"),
            quantity_change=data.get("quantity_change"),
            user=user.name,
            reason=data.get("reason"),
            notes=data.get("notes"),
            occurred_at=data.get("occurred_at"),
            warehouse_id=data.get("warehouse_id"),
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to record inventory transaction")
        return jsonify({"error": "Internal server error"}), 500

    current_app.logger.info(
        "Recorded %s of %s for %s by %s", tx.type, tx.quantity_change, tx.product_id, user.id
    )
    return jsonify({"transaction": tx.to_dict()}), 201


@inventory_bp.get("/<product_id>")
@require_user
def inventory_summary_route(product_id: str):
    try:
        return jsonify(inventory_service.get_inventory_summary(product_id)), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404

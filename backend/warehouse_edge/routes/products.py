# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/warehouse_edge/routes/products.py
"""
Product catalog routes.

SECURITY: All routes require a known user.
- Reads are open to every role; a DepartmentEmployee only sees products of
  their category
- Writes require Admin or WarehouseManager
- quantity is never writable here; stock moves through the ledger
"""
from flask import Blueprint, request, g, current_app

from ..models import Product
from ..services import permission_service, products_service
from ..services.products_service import PRODUCT_CREATE_POLICY, PRODUCT_UPDATE_POLICY
from ..validation import (
    validate_payload,
    ValidationError,
    ConflictError,
    NotFoundError,
)
from ..decorators import require_user, require_capability

products_bp = Blueprint("products", __name__, url_prefix="/api/products")

_MANAGE_MESSAGE = "Only Admins and Warehouse Managers can manage products"


@products_bp.get("")
@require_user
def list_products():
    """
    Query params (all optional):
    - category: str
    - warehouse_id: str
    - status: Available | Low Stock | Out of Stock | Damaged
    """
    rows = products_service.list_products(
        category=request.args.get("category") or None,
        warehouse_id=request.args.get("warehouse_id") or None,
        status=request.args.get("status") or None,
        categories=permission_service.visible_categories(g.current_user),
    )
    return {"products": [p.to_dict() for p in rows], "count": len(rows)}


@products_bp.get("/<product_id>")
@require_user
def get_product_route(product_id: str):
    try:
        product = products_service.get_product(product_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404

    categories = permission_service.visible_categories(g.current_user)
    if categories is not None and product.category not in categories:
        return {"error": f"Product {product_id} not found"}, 404

    return {"product": product.to_dict()}


@products_bp.post("")
@require_user
@require_capability(permission_service.can_manage_inventory, _MANAGE_MESSAGE)
def create_product_route():
    """
    Create a new product. An opening quantity is written to the ledger as
    an Initial transaction attributed to the acting user.
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_CREATE_POLICY, partial=False)
        created = products_service.create_product(patch=patch, user=g.current_user.name)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409
    except Exception:
        current_app.logger.exception("Failed to create product")
        return {"error": "Internal server error"}, 500

    current_app.logger.info("Product %s (%s) created by %s", created.id, created.sku, g.current_user.id)
    return {"product": created.to_dict()}, 201


@products_bp.patch("/<product_id>")
@require_user
@require_capability(permission_service.can_manage_inventory, _MANAGE_MESSAGE)
def update_product_route(product_id: str):
    payload = request.get_json(silent=True) or {}

    if "quantity" in payload:
        return {"error": "quantity cannot be edited directly; record a ledger transaction"}, 400

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_UPDATE_POLICY, partial=True)
        updated = products_service.update_product(product_id=product_id, patch=patch)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409
    except Exception:
        current_app.logger.exception("Failed to update product")
        return {"error": "Internal server error"}, 500

    return {"product": updated.to_dict()}

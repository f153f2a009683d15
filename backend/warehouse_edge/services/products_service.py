# Overview: Service-layer operations for the product catalog.

from __future__ import annotations

from typing import Iterable

from sqlalchemy import func

from ..extensions import db
from ..models import Category, Product, InventoryTransaction, Warehouse
from ..models.inventory import (
    PRODUCT_STATUS_AVAILABLE,
    PRODUCT_STATUS_LOW_STOCK,
    PRODUCT_STATUS_OUT_OF_STOCK,
    TX_INITIAL,
)
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    enforce_rules_product,
)
from warehouse_edge.time_utils import utcnow


PRODUCT_CREATE_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({
        "id", "sku", "name", "category", "warehouse_id", "quantity",
        "reorder_level", "status", "description",
    }),
    required_on_create=frozenset({"sku", "name", "category", "warehouse_id"}),
)

# Quantity moves only through the ledger once a product exists
PRODUCT_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({"sku", "name", "category", "warehouse_id", "reorder_level", "status", "description"}),
)


def derive_status(quantity: int, reorder_level: int) -> str:
    """
    Status a product would have if it were computed from stock levels.

    Only used to fill a blank status; stored statuses are never overwritten.
    """
    if quantity <= 0:
        return PRODUCT_STATUS_OUT_OF_STOCK
    if quantity <= reorder_level:
        return PRODUCT_STATUS_LOW_STOCK
    return PRODUCT_STATUS_AVAILABLE


def _ensure_warehouse(warehouse_id: str) -> None:
    if db.session.get(Warehouse, warehouse_id) is None:
        raise NotFoundError(f"Warehouse {warehouse_id} not found")


def find_category(name: str) -> Category | None:
    """Case-insensitive lookup by name."""
    return (
        db.session.query(Category)
        .filter(func.lower(Category.name) == name.strip().lower())
        .first()
    )


def _resolve_category(name: str | None) -> str:
    if not name or not str(name).strip():
        raise ValidationError("category is required")
    category = find_category(str(name))
    if category is None:
        raise NotFoundError(f"Category {name} not found")
    return category.name


def _ensure_sku_free(sku: str, *, exclude_id: str | None = None) -> None:
    q = db.session.query(Product).filter(Product.sku == sku)
    if exclude_id is not None:
        q = q.filter(Product.id != exclude_id)
    if q.first() is not None:
        raise ConflictError(f"SKU {sku} already exists")


def get_product(product_id: str) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError(f"Product {product_id} not found")
    return product


def get_product_by_sku(sku: str) -> Product | None:
    return db.session.query(Product).filter_by(sku=sku).first()


def list_products(
    *,
    category: str | None = None,
    warehouse_id: str | None = None,
    status: str | None = None,
    categories: Iterable[str] | None = None,
) -> list[Product]:
    """
    categories restricts to a set of category names (category access);
    None means unrestricted, an empty set means nothing is visible.
    """
    q = db.session.query(Product)
    if category:
        q = q.filter(Product.category == category)
    if warehouse_id:
        q = q.filter(Product.warehouse_id == warehouse_id)
    if status:
        q = q.filter(Product.status == status)
    if categories is not None:
        allowed = list(categories)
        if not allowed:
            return []
        q = q.filter(Product.category.in_(allowed))
    return q.order_by(Product.name.asc(), Product.id.asc()).all()


def create_product(*, patch: dict, user: str = "System", commit: bool = True) -> Product:
    """
    Create a product from a validated patch.

    An opening quantity is written as an Initial ledger line in the same
    commit so the ledger reconciles with on-hand from day one.
    """
    enforce_rules_product(patch)
    _ensure_sku_free(patch["sku"])
    _ensure_warehouse(patch["warehouse_id"])
    category = _resolve_category(patch["category"])

    quantity = patch.get("quantity") or 0
    reorder_level = patch.get("reorder_level") or 0

    product = Product(
        sku=patch["sku"],
        name=patch["name"],
        category=category,
        warehouse_id=patch["warehouse_id"],
        quantity=quantity,
        reorder_level=reorder_level,
        status=patch.get("status") or derive_status(quantity, reorder_level),
        description=patch.get("description"),
        last_updated=utcnow(),
    )
    if patch.get("id"):
        if db.session.get(Product, patch["id"]) is not None:
            raise ConflictError(f"Product {patch['id']} already exists")
        product.id = patch["id"]

    db.session.add(product)
    db.session.flush()

    if quantity > 0:
        db.session.add(
            InventoryTransaction(
                product_id=product.id,
                product_name=product.name,
                type=TX_INITIAL,
                quantity_change=quantity,
                occurred_at=product.last_updated,
                user=user,
                reason="Initial stock",
                warehouse_id=product.warehouse_id,
            )
        )

    if commit:
        db.session.commit()
    return product


def update_product(*, product_id: str, patch: dict, commit: bool = True) -> Product:
    if "quantity" in patch:
        raise ValidationError("quantity cannot be edited directly; record a ledger transaction")

    enforce_rules_product(patch)
    product = get_product(product_id)

    if "sku" in patch and patch["sku"] != product.sku:
        _ensure_sku_free(patch["sku"], exclude_id=product.id)
    if "warehouse_id" in patch and patch["warehouse_id"] != product.warehouse_id:
        _ensure_warehouse(patch["warehouse_id"])
    if "category" in patch:
        patch = {**patch, "category": _resolve_category(patch["category"])}

    for key, value in patch.items():
        setattr(product, key, value)
    product.last_updated = utcnow()

    if commit:
        db.session.commit()
    return product

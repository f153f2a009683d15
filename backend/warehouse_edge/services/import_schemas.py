from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..extensions import db
from ..models import Product, Warehouse
from ..models.inventory import (
    PRODUCT_STATUSES,
    TRANSACTION_TYPES,
    INBOUND_TYPES,
    OUTBOUND_TYPES,
    TX_ADJUSTMENT,
)
from ..validation import ValidationError
from warehouse_edge.time_utils import coerce_datetime
from . import inventory_service, products_service


def _to_int(value: Any) -> int | None:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not value.is_integer():
            raise ValueError(f"{value} is not a whole number")
        return int(value)
    text = str(value).strip()
    if not text:
        return None
    number = float(text)
    if not number.is_integer():
        raise ValueError(f"{text} is not a whole number")
    return int(number)


def _to_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text if text else None


def _pick(raw_row: dict[str, Any], *keys: str) -> Any:
    """First non-blank value among alternative column headings."""
    for key in keys:
        value = raw_row.get(key)
        if value not in (None, ""):
            return value
    return None


@dataclass
class SchemaContext:
    actor_name: str
    row_number: int


class BaseImportSchema:
    def normalize_row(self, raw_row: dict[str, Any]) -> dict[str, Any]:
        raise NotImplementedError

    def validate_row(self, normalized_row: dict[str, Any]) -> list[str]:
        raise NotImplementedError

    def post_row(self, normalized_row: dict[str, Any], context: SchemaContext) -> str:
        """Apply one validated row; returns 'created', 'updated' or 'recorded'."""
        raise NotImplementedError


class ProductsSchema(BaseImportSchema):
    """
    Product upserts keyed by SKU.

    For an existing SKU a differing quantity is posted as an Adjustment
    ledger line, never written onto the product directly.
    """

    def normalize_row(self, raw_row: dict[str, Any]) -> dict[str, Any]:
        errors: list[str] = []

        def _int(*keys):
            try:
                return _to_int(_pick(raw_row, *keys))
            except ValueError:
                errors.append(f"{keys[0]} must be an integer")
                return None

        return {
            "id": _to_text(_pick(raw_row, "id", "product_id")),
            "sku": _to_text(_pick(raw_row, "sku", "SKU")),
            "name": _to_text(_pick(raw_row, "name", "product_name")),
            "category": _to_text(_pick(raw_row, "category")),
            "warehouse_id": _to_text(_pick(raw_row, "warehouse_id", "warehouseId")),
            "quantity": _int("quantity"),
            "reorder_level": _int("reorder_level", "reorderLevel"),
            "status": _to_text(_pick(raw_row, "status")),
            "description": _to_text(_pick(raw_row, "description")),
            "_errors": errors,
        }

    def validate_row(self, normalized_row: dict[str, Any]) -> list[str]:
        errors: list[str] = list(normalized_row.get("_errors", []))
        for field in ("sku", "name", "category", "warehouse_id"):
            if not normalized_row.get(field):
                errors.append(f"{field} is required")
        for field in ("quantity", "reorder_level"):
            value = normalized_row.get(field)
            if value is not None and value < 0:
                errors.append(f"{field} must be >= 0")
        status = normalized_row.get("status")
        if status and status not in PRODUCT_STATUSES:
            errors.append(f"status must be one of: {', '.join(PRODUCT_STATUSES)}")
        warehouse_id = normalized_row.get("warehouse_id")
        if warehouse_id and db.session.get(Warehouse, warehouse_id) is None:
            errors.append(f"warehouse {warehouse_id} not found")
        category = normalized_row.get("category")
        if category and products_service.find_category(category) is None:
            errors.append(f"category {category} not found")
        return errors

    def post_row(self, normalized_row: dict[str, Any], context: SchemaContext) -> str:
        fields = {
            k: v for k, v in normalized_row.items()
            if not k.startswith("_") and v is not None
        }
        existing = products_service.get_product_by_sku(fields["sku"])
        if existing is None:
            products_service.create_product(patch=fields, user=context.actor_name, commit=False)
            return "created"

        target_quantity = fields.pop("quantity", None)
        fields.pop("id", None)
        products_service.update_product(product_id=existing.id, patch=fields, commit=False)

        if target_quantity is not None and target_quantity != existing.quantity:
            inventory_service.record_transaction(
                product_id=existing.id,
                type=TX_ADJUSTMENT,
                quantity_change=target_quantity - existing.quantity,
                user=context.actor_name,
                reason="Bulk import",
                notes=f"Import row {context.row_number}",
                commit=False,
            )
        return "updated"


class TransactionsSchema(BaseImportSchema):
    """Ledger lines; the product may be referenced by id or by SKU."""

    def normalize_row(self, raw_row: dict[str, Any]) -> dict[str, Any]:
        errors: list[str] = []
        try:
            quantity_change = _to_int(_pick(raw_row, "quantity_change", "quantityChange", "quantity"))
        except ValueError:
            errors.append("quantity_change must be an integer")
            quantity_change = None

        raw_when = _pick(raw_row, "occurred_at", "date")
        try:
            occurred_at = coerce_datetime(raw_when) if raw_when is not None else None
        except ValueError:
            errors.append("occurred_at must be an ISO-8601 datetime")
            occurred_at = None

        return {
            "product_id": _to_text(_pick(raw_row, "product_id", "productId")),
            "sku": _to_text(_pick(raw_row, "sku", "product_sku")),
            "type": _to_text(_pick(raw_row, "type")),
            "quantity_change": quantity_change,
            "occurred_at": occurred_at,
            "user": _to_text(_pick(raw_row, "user")),
            "reason": _to_text(_pick(raw_row, "reason")),
            "notes": _to_text(_pick(raw_row, "notes")),
            "warehouse_id": _to_text(_pick(raw_row, "warehouse_id", "warehouseId")),
            "_errors": errors,
        }

    def resolve_product(self, normalized_row: dict[str, Any]) -> Product | None:
        if normalized_row.get("product_id"):
            return db.session.get(Product, normalized_row["product_id"])
        if normalized_row.get("sku"):
            return products_service.get_product_by_sku(normalized_row["sku"])
        return None

    def validate_row(self, normalized_row: dict[str, Any]) -> list[str]:
        errors: list[str] = list(normalized_row.get("_errors", []))
        tx_type = normalized_row.get("type")
        change = normalized_row.get("quantity_change")

        if not tx_type:
            errors.append("type is required")
        elif tx_type not in TRANSACTION_TYPES:
            errors.append(f"type must be one of: {', '.join(TRANSACTION_TYPES)}")
        if change is None and not normalized_row.get("_errors"):
            errors.append("quantity_change is required")
        elif change == 0:
            errors.append("quantity_change must be non-zero")
        elif change is not None and tx_type in INBOUND_TYPES and change < 0:
            errors.append(f"quantity_change must be > 0 for {tx_type}")
        elif change is not None and tx_type in OUTBOUND_TYPES and change > 0:
            errors.append(f"quantity_change must be < 0 for {tx_type}")

        if not normalized_row.get("product_id") and not normalized_row.get("sku"):
            errors.append("product_id or sku is required")
        elif self.resolve_product(normalized_row) is None:
            errors.append(
                f"product {normalized_row.get('product_id') or normalized_row.get('sku')} not found"
            )
        return errors

    def post_row(self, normalized_row: dict[str, Any], context: SchemaContext) -> str:
        product = self.resolve_product(normalized_row)
        if product is None:
            raise ValidationError("product not found")
        inventory_service.record_transaction(
            product_id=product.id,
            type=normalized_row["type"],
            quantity_change=normalized_row["quantity_change"],
            user=normalized_row.get("user") or context.actor_name,
            reason=normalized_row.get("reason"),
            notes=normalized_row.get("notes"),
            occurred_at=normalized_row.get("occurred_at"),
            warehouse_id=normalized_row.get("warehouse_id"),
            commit=False,
        )
        return "recorded"


SCHEMAS = {
    "products": ProductsSchema,
    "transactions": TransactionsSchema,
}

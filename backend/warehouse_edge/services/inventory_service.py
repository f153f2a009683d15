# Overview: Service-layer operations for the inventory ledger; encapsulates business logic and database work.

# backend/warehouse_edge/services/inventory_service.py

from __future__ import annotations

from typing import Any

from ..extensions import db
from ..models import Product, InventoryTransaction
from ..validation import ValidationError, NotFoundError, enforce_rules_inventory_transaction
from warehouse_edge.time_utils import coerce_datetime, utcnow
from .aggregation_service import filter_transactions
from .concurrency import lock_for_update, run_with_retry
"""
Inventory Ledger Invariants & Time Semantics (authoritative)

Canonical time handling:
- All internal datetimes are UTC-naive (tzinfo=None).
- Inputs accept datetimes, dates or ISO-8601 strings with 'Z' or offsets.

Ledger model:
- InventoryTransaction rows are append-only; nothing here updates or deletes them.
- Product.quantity is kept equal to its opening quantity plus the sum of
  quantity_change over its ledger lines; both are written in one commit.

Business invariants:
- On-hand quantity may never go negative.
- Sign convention per type (see validation.enforce_rules_inventory_transaction).
- Recording a movement NEVER touches Product.status (status is manual).
"""


def _parse_occurred_at(value):
    if value is None:
        return utcnow()
    try:
        dt = coerce_datetime(value)
    except ValueError:
        raise ValidationError("occurred_at must be an ISO-8601 datetime")
    if dt is None:
        raise ValidationError("occurred_at must be an ISO-8601 datetime")
    return dt


def _get_product(product_id: str, *, lock: bool = False) -> Product:
    query = db.session.query(Product).filter_by(id=product_id)
    if lock:
        query = lock_for_update(query)
    product = query.first()
    if product is None:
        raise NotFoundError(f"Product {product_id} not found")
    return product


def _record_transaction_inner(
    *,
    product_id: str,
    type: str,
    quantity_change: int,
    user: str,
    reason: str | None,
    notes: str | None,
    occurred_at,
    warehouse_id: str | None,
    commit: bool = True,
) -> InventoryTransaction:
    product = _get_product(product_id, lock=True)

    new_quantity = product.quantity + quantity_change
    if new_quantity < 0:
        raise ValidationError(
            f"{type} of {abs(quantity_change)} would take {product.name} below zero "
            f"(on hand: {product.quantity})"
        )

    tx = InventoryTransaction(
        product_id=product.id,
        product_name=product.name,
        type=type,
        quantity_change=quantity_change,
        occurred_at=occurred_at,
        user=user,
        reason=reason,
        notes=notes,
        warehouse_id=warehouse_id or product.warehouse_id,
    )
    db.session.add(tx)

    product.quantity = new_quantity
    product.last_updated = utcnow()

    if commit:
        db.session.commit()
    else:
        db.session.flush()
    return tx


def record_transaction(
    *,
    product_id: str,
    type: str,
    quantity_change: int,
    user: str,
    reason: str | None = None,
    notes: str | None = None,
    occurred_at=None,
    warehouse_id: str | None = None,
    commit: bool = True,
) -> InventoryTransaction:
    """
    Append one ledger line and move the product's on-hand quantity with it.

    With commit=False the line is only flushed and the caller owns the
    transaction (bulk import posts a whole batch this way).

    Raises:
        ValidationError: unknown type, zero change, wrong sign for the type,
            blank user, or a result below zero on hand
        NotFoundError: unknown product
    """
    enforce_rules_inventory_transaction(type, quantity_change)
    if user is None or not str(user).strip():
        raise ValidationError("user is required")
    occurred = _parse_occurred_at(occurred_at)

    def _op():
        return _record_transaction_inner(
            product_id=product_id,
            type=type,
            quantity_change=quantity_change,
            user=str(user).strip(),
            reason=reason.strip() if isinstance(reason, str) and reason.strip() else None,
            notes=notes,
            occurred_at=occurred,
            warehouse_id=warehouse_id,
            commit=commit,
        )

    if not commit:
        return _op()

    try:
        return run_with_retry(_op)
    except (ValidationError, NotFoundError):
        db.session.rollback()
        raise


def load_transactions(
    *,
    product_id: str | None = None,
    warehouse_id: str | None = None,
    start=None,
    end=None,
) -> list[InventoryTransaction]:
    """
    Ledger snapshot for reports, newest first.

    Narrows on the indexed columns in SQL; fine-grained filtering is done by
    aggregation_service so the rules stay in one place.
    """
    q = db.session.query(InventoryTransaction)
    if product_id:
        q = q.filter(InventoryTransaction.product_id == product_id)
    if warehouse_id:
        q = q.filter(InventoryTransaction.warehouse_id == warehouse_id)
    if start is not None:
        q = q.filter(InventoryTransaction.occurred_at >= start)
    if end is not None:
        q = q.filter(InventoryTransaction.occurred_at <= end)
    q = q.order_by(
        InventoryTransaction.occurred_at.desc(),
        InventoryTransaction.id.desc(),
    )
    return q.all()


def list_transactions(
    *,
    product_id: str | None = None,
    type: str | None = None,
    warehouse_id: str | None = None,
    user: str | None = None,
    start: Any = None,
    end: Any = None,
    limit: int | None = 200,
) -> list[InventoryTransaction]:
    """The ledger page: every filter optional, newest first."""
    rows = filter_transactions(
        load_transactions(product_id=product_id, warehouse_id=warehouse_id),
        type=type,
        user=user,
        start=start,
        end=end,
    )
    return rows[:limit] if limit is not None else rows


def get_inventory_summary(product_id: str) -> dict:
    product = _get_product(product_id)
    return {
        "product_id": product.id,
        "quantity": product.quantity,
        "reorder_level": product.reorder_level,
        "status": product.status,
        "last_updated": product.to_dict()["last_updated"],
    }

# Overview: Pure aggregation over inventory ledger and product snapshots.

"""
Inventory Movement Aggregator

Every function here is a pure function of its arguments: no session, no
clock, no hidden state. Callers (reporting_service, the CLI, tests) load the
snapshot and pass it in.

Records may be ORM instances or plain dicts with the same field names, so an
export or import collaborator can reuse these without touching the database.

Nothing here raises on empty or partially-filled input: a missing quantity
counts as 0, a record without a timestamp never matches a bounded window,
and an unparseable window bound is treated as open.
"""

from __future__ import annotations

from datetime import date, datetime, time
from typing import Any, Iterable

from ..models.inventory import (
    PRODUCT_STATUS_LOW_STOCK,
    PRODUCT_STATUS_OUT_OF_STOCK,
    TX_INFLOW,
    TX_INITIAL,
    TX_OUTFLOW,
    TX_DAMAGE,
    TX_RETURN,
)
from warehouse_edge.time_utils import coerce_datetime


LOW_STOCK_STATUSES = frozenset({PRODUCT_STATUS_LOW_STOCK, PRODUCT_STATUS_OUT_OF_STOCK})

# Report cards of the movement report: label -> transaction types
MOVEMENT_GROUPS = {
    "inflow": (TX_INFLOW, TX_INITIAL),
    "outflow": (TX_OUTFLOW,),
    "damaged": (TX_DAMAGE,),
    "returned": (TX_RETURN,),
}


def _field(record: Any, name: str, default=None):
    if isinstance(record, dict):
        return record.get(name, default)
    return getattr(record, name, default)


def _qty(record: Any, name: str = "quantity_change") -> int:
    value = _field(record, name)
    if value is None or isinstance(value, bool):
        return 0
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def _when(value: Any) -> datetime | None:
    try:
        return coerce_datetime(value)
    except ValueError:
        return None


def _window_start(value: Any) -> datetime | None:
    return _when(value)


def _window_end(value: Any) -> datetime | None:
    # A bare date as the upper bound covers that whole day
    if isinstance(value, date) and not isinstance(value, datetime):
        return datetime.combine(value, time.max)
    if isinstance(value, str) and len(value.strip()) == 10:
        try:
            return datetime.combine(date.fromisoformat(value.strip()), time.max)
        except ValueError:
            return None
    return _when(value)


def _in_window(record: Any, start: datetime | None, end: datetime | None) -> bool:
    if start is None and end is None:
        return True
    occurred = _when(_field(record, "occurred_at"))
    if occurred is None:
        return False
    if start is not None and occurred < start:
        return False
    if end is not None and occurred > end:
        return False
    return True


def filter_transactions(
    transactions: Iterable[Any],
    *,
    product_id: str | None = None,
    type: str | None = None,
    types: Iterable[str] | None = None,
    warehouse_id: str | None = None,
    user: str | None = None,
    start: Any = None,
    end: Any = None,
) -> list[Any]:
    """Ledger filter set: product, type(s), warehouse, acting user, inclusive date window."""
    start_dt = _window_start(start)
    end_dt = _window_end(end)
    type_set = set(types) if types is not None else None

    selected = []
    for tx in transactions:
        if product_id and _field(tx, "product_id") != product_id:
            continue
        if type and _field(tx, "type") != type:
            continue
        if type_set is not None and _field(tx, "type") not in type_set:
            continue
        if warehouse_id and _field(tx, "warehouse_id") != warehouse_id:
            continue
        if user and _field(tx, "user") != user:
            continue
        if not _in_window(tx, start_dt, end_dt):
            continue
        selected.append(tx)
    return selected


def summarize(
    transactions: Iterable[Any],
    *,
    start: Any = None,
    end: Any = None,
    product_id: str | None = None,
    warehouse_id: str | None = None,
    types: Iterable[str] | None = None,
) -> dict:
    """
    Totals over the filtered ledger:
    - total_quantity: sum of |quantity_change|
    - transaction_count: number of matching lines
    - distinct_products: number of distinct product ids among them
    """
    selected = filter_transactions(
        transactions,
        product_id=product_id,
        warehouse_id=warehouse_id,
        types=types,
        start=start,
        end=end,
    )
    return {
        "total_quantity": sum(abs(_qty(tx)) for tx in selected),
        "transaction_count": len(selected),
        "distinct_products": len({_field(tx, "product_id") for tx in selected}),
    }


def movement_stats(transactions: Iterable[Any], *, start: Any = None, end: Any = None) -> dict:
    """Inflow / outflow / damaged / returned summaries for one window."""
    snapshot = list(transactions)
    return {
        label: summarize(snapshot, start=start, end=end, types=types)
        for label, types in MOVEMENT_GROUPS.items()
    }


def breakdown_by_product(transactions: Iterable[Any]) -> list[dict]:
    """
    Per-product movement totals, sorted by product name then id.

    net_change is the plain sum of every quantity_change for the product and
    is the figure to reconcile against on-hand quantity.
    """
    rows: dict[Any, dict] = {}
    for tx in transactions:
        product_id = _field(tx, "product_id")
        row = rows.get(product_id)
        if row is None:
            row = rows[product_id] = {
                "product_id": product_id,
                "product_name": _field(tx, "product_name") or "",
                "total_inflow": 0,
                "total_outflow": 0,
                "total_damaged": 0,
                "total_returned": 0,
                "net_change": 0,
            }
        elif not row["product_name"] and _field(tx, "product_name"):
            row["product_name"] = _field(tx, "product_name")

        change = _qty(tx)
        tx_type = _field(tx, "type")
        if tx_type in (TX_INFLOW, TX_INITIAL):
            row["total_inflow"] += change
        elif tx_type == TX_OUTFLOW:
            row["total_outflow"] += abs(change)
        elif tx_type == TX_DAMAGE:
            row["total_damaged"] += abs(change)
        elif tx_type == TX_RETURN:
            row["total_returned"] += change
        row["net_change"] += change

    return sorted(rows.values(), key=lambda r: (r["product_name"], str(r["product_id"])))


def type_distribution(transactions: Iterable[Any]) -> dict[str, int]:
    """Sum of |quantity_change| per transaction type; zero totals are left out."""
    totals: dict[str, int] = {}
    for tx in transactions:
        tx_type = _field(tx, "type")
        if tx_type is None:
            continue
        totals[tx_type] = totals.get(tx_type, 0) + abs(_qty(tx))
    return {tx_type: total for tx_type, total in totals.items() if total}


def is_low_stock(product: Any) -> bool:
    """Either signal is enough: quantity at/below reorder level, or a low-stock status."""
    if _qty(product, "quantity") <= _qty(product, "reorder_level"):
        return True
    return _field(product, "status") in LOW_STOCK_STATUSES


def low_stock(
    products: Iterable[Any],
    *,
    warehouse_id: str | None = None,
    category: str | None = None,
) -> list[Any]:
    selected = []
    for product in products:
        if not is_low_stock(product):
            continue
        if warehouse_id and _field(product, "warehouse_id") != warehouse_id:
            continue
        if category and _field(product, "category") != category:
            continue
        selected.append(product)
    return selected


def reorder_shortfall(product: Any) -> int:
    return _qty(product, "reorder_level") - _qty(product, "quantity")


def items_to_reorder(products: Iterable[Any], *, limit: int = 3) -> list[Any]:
    """Low-stock products, largest shortfall first."""
    ranked = sorted(low_stock(products), key=reorder_shortfall, reverse=True)
    return ranked[:limit] if limit is not None else ranked


def due_notifications(settings: Iterable[Any], products: Iterable[Any]) -> list[dict]:
    """
    Enabled low-stock rules whose product sits at or below the rule threshold.

    Rules pointing at a product missing from `products` are skipped.
    """
    by_id = {_field(p, "id"): p for p in products}
    due = []
    for setting in settings:
        if _field(setting, "is_enabled") is False:
            continue
        product = by_id.get(_field(setting, "product_id"))
        if product is None:
            continue
        quantity = _qty(product, "quantity")
        if quantity <= _qty(setting, "threshold"):
            due.append({
                "setting_id": _field(setting, "id"),
                "product_id": _field(product, "id"),
                "product_name": _field(product, "name"),
                "quantity": quantity,
                "threshold": _qty(setting, "threshold"),
                "recipient": _field(setting, "recipient"),
                "channel": _field(setting, "channel"),
            })
    return due

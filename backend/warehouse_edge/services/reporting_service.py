# Overview: Service-layer report composition; loads snapshots and hands them to the aggregator.

from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import Iterable

from flask import current_app

from ..extensions import db
from ..models import MaterialRequest, Product
from ..models.material_requests import REQUEST_STATUS_PENDING
from ..validation import ValidationError
from warehouse_edge.time_utils import parse_iso_datetime, utcnow, to_utc_z
from . import aggregation_service
from .inventory_service import load_transactions
from .products_service import list_products


class ReportError(ValidationError):
    """Raised when report parameters cannot be understood."""
    pass


def _parse_bound(value: str | None, *, end: bool) -> datetime | None:
    if value is None or not str(value).strip():
        return None
    text = str(value).strip()
    try:
        # A bare date as the upper bound covers that whole day
        if len(text) == 10:
            day = date.fromisoformat(text)
            return datetime.combine(day, time.max if end else time.min)
        return parse_iso_datetime(text)
    except ValueError:
        raise ReportError(f"{'end' if end else 'start'} must be an ISO-8601 date or datetime")


def _parse_range(start: str | None, end: str | None) -> tuple[datetime | None, datetime | None]:
    start_dt = _parse_bound(start, end=False)
    end_dt = _parse_bound(end, end=True)
    if start_dt and end_dt and start_dt > end_dt:
        raise ReportError("start must not be after end")
    return start_dt, end_dt


def movement_report(
    *,
    start: str | None,
    end: str | None,
    product_id: str | None = None,
    warehouse_id: str | None = None,
) -> dict:
    start_dt, end_dt = _parse_range(start, end)
    ledger = load_transactions(
        product_id=product_id, warehouse_id=warehouse_id, start=start_dt, end=end_dt
    )
    return {
        "start": to_utc_z(start_dt) if start_dt else None,
        "end": to_utc_z(end_dt) if end_dt else None,
        "product_id": product_id,
        "warehouse_id": warehouse_id,
        "total": aggregation_service.summarize(ledger, start=start_dt, end=end_dt),
        "stats": aggregation_service.movement_stats(ledger, start=start_dt, end=end_dt),
    }


def product_breakdown_report(
    *,
    start: str | None,
    end: str | None,
    product_id: str | None = None,
    warehouse_id: str | None = None,
) -> dict:
    start_dt, end_dt = _parse_range(start, end)
    ledger = aggregation_service.filter_transactions(
        load_transactions(product_id=product_id, warehouse_id=warehouse_id, start=start_dt, end=end_dt),
        start=start_dt,
        end=end_dt,
    )
    return {
        "start": to_utc_z(start_dt) if start_dt else None,
        "end": to_utc_z(end_dt) if end_dt else None,
        "rows": aggregation_service.breakdown_by_product(ledger),
    }


def type_distribution_report(
    *,
    start: str | None,
    end: str | None,
    product_id: str | None = None,
    warehouse_id: str | None = None,
) -> dict:
    start_dt, end_dt = _parse_range(start, end)
    ledger = load_transactions(
        product_id=product_id, warehouse_id=warehouse_id, start=start_dt, end=end_dt
    )
    return {
        "start": to_utc_z(start_dt) if start_dt else None,
        "end": to_utc_z(end_dt) if end_dt else None,
        "distribution": aggregation_service.type_distribution(ledger),
    }


def _low_stock_row(product: Product) -> dict:
    row = product.to_dict()
    row["shortfall"] = aggregation_service.reorder_shortfall(product)
    return row


def low_stock_report(
    *,
    warehouse_id: str | None = None,
    category: str | None = None,
    categories: Iterable[str] | None = None,
) -> dict:
    products = list_products(categories=categories)
    selected = aggregation_service.low_stock(products, warehouse_id=warehouse_id, category=category)
    return {
        "warehouse_id": warehouse_id,
        "category": category,
        "count": len(selected),
        "rows": [_low_stock_row(p) for p in selected],
    }


def dashboard_summary(
    *,
    now: datetime | None = None,
    categories: Iterable[str] | None = None,
    requester_id: str | None = None,
) -> dict:
    """
    Headline numbers for the landing page.

    categories / requester_id narrow the view for a DepartmentEmployee;
    the caller derives them from permission_service.
    """
    now = now or utcnow()
    recent_days = int(current_app.config.get("RECENT_ACTIVITY_DAYS", 7))
    recent_since = now - timedelta(days=recent_days)

    products = list_products(categories=categories)
    ledger = load_transactions()
    if categories is not None:
        visible_ids = {p.id for p in products}
        ledger = [tx for tx in ledger if tx.product_id in visible_ids]

    requests_q = db.session.query(MaterialRequest)
    if requester_id:
        requests_q = requests_q.filter(MaterialRequest.requester_id == requester_id)
    requests = requests_q.order_by(
        MaterialRequest.submission_date.desc(), MaterialRequest.id.desc()
    ).all()

    low = aggregation_service.low_stock(products)
    recent = aggregation_service.filter_transactions(ledger, start=recent_since, end=now)

    return {
        "as_of": to_utc_z(now),
        "total_products": len(products),
        "low_stock_alerts": len(low),
        "pending_material_requests": sum(1 for r in requests if r.status == REQUEST_STATUS_PENDING),
        "recent_transactions_count": len(recent),
        "recent_transactions": [tx.to_dict() for tx in ledger[:5]],
        "recent_requests": [r.to_dict() for r in requests[:5]],
        "items_to_reorder": [
            _low_stock_row(p) for p in aggregation_service.items_to_reorder(products, limit=3)
        ],
    }

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .models.inventory import (
    PRODUCT_STATUSES,
    TRANSACTION_TYPES,
    INBOUND_TYPES,
    OUTBOUND_TYPES,
)


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate SKU)."""


class NotFoundError(LookupError):
    """404-level missing entity (unknown request, product or user id)."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Which columns a client may write, and which must be present on create.
    Anything outside writable_fields is refused, never silently dropped.
    """
    writable_fields: frozenset[str]
    required_on_create: frozenset[str] = field(default_factory=frozenset)


def parse_int(name: str, value: Any) -> int:
    """
    Whole numbers only. Accepts ints and digit strings such as " 12" or "-3";
    rejects bools, floats, "2.5" and "1e3".
    """
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        text = value.strip()
        digits = text[1:] if text[:1] in "+-" else text
        if digits.isdigit():
            return int(text)
    raise ValidationError(f"{name} must be an integer")


def _normalize(column, value: Any) -> Any:
    if isinstance(column.type, Integer):
        return parse_int(column.key, value)
    if not isinstance(column.type, (String, Text)):
        return value

    text = str(value).strip()
    if not text and not column.nullable:
        raise ValidationError(f"{column.key} cannot be blank")
    length = getattr(column.type, "length", None)
    if length and len(text) > length:
        raise ValidationError(f"{column.key} exceeds max length {length}")
    return text


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Turn a JSON body into a patch dict for `model`.

    Column metadata drives the checks: Integer columns take whole numbers,
    String/Text columns are trimmed, must fit their length and may not be
    blank when NOT NULL. partial=True validates only the keys present
    (PATCH); partial=False also requires policy.required_on_create (POST).
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    columns = {c.key: c for c in model.__mapper__.columns}

    refused = sorted(k for k in payload if k not in policy.writable_fields or k not in columns)
    if refused:
        raise ValidationError(f"Field not allowed: {', '.join(refused)}")

    if not partial:
        missing = sorted(policy.required_on_create - payload.keys())
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    patch: dict = {}
    for key, raw in payload.items():
        column = columns[key]
        if raw is None:
            if not column.nullable:
                raise ValidationError(f"{key} cannot be null")
            patch[key] = None
        else:
            patch[key] = _normalize(column, raw)
    return patch


def enforce_rules_product(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    for key in ("quantity", "reorder_level"):
        if key in patch and patch[key] is not None and patch[key] < 0:
            raise ValidationError(f"{key} must be >= 0")

    if "status" in patch and patch["status"] is not None:
        if patch["status"] not in PRODUCT_STATUSES:
            raise ValidationError(
                f"status must be one of: {', '.join(PRODUCT_STATUSES)}"
            )


def enforce_rules_inventory_transaction(tx_type: str, quantity_change: int) -> None:
    """
    Ledger sign convention:
    - Inflow / Return / Initial are positive
    - Outflow / Damage are negative
    - Adjustment may go either way
    Zero-quantity entries are never written.
    """
    if tx_type not in TRANSACTION_TYPES:
        raise ValidationError(
            f"type must be one of: {', '.join(TRANSACTION_TYPES)}"
        )
    if isinstance(quantity_change, bool) or not isinstance(quantity_change, int):
        raise ValidationError("quantity_change must be an integer")
    if quantity_change == 0:
        raise ValidationError("quantity_change must be non-zero")
    if tx_type in INBOUND_TYPES and quantity_change < 0:
        raise ValidationError(f"quantity_change must be > 0 for {tx_type}")
    if tx_type in OUTBOUND_TYPES and quantity_change > 0:
        raise ValidationError(f"quantity_change must be < 0 for {tx_type}")

# Overview: Service-layer operations for bulk imports; validates a whole batch, then posts it in one commit.

from __future__ import annotations

import csv
import io
import json
from typing import Any, Iterable

from ..extensions import db
from ..models import User
from ..validation import ConflictError, NotFoundError, ValidationError
from .import_schemas import SCHEMAS, SchemaContext
from .permission_service import PermissionDeniedError, can_manage_inventory


class BulkImportError(ValidationError):
    """Raised when an upload cannot be read or an import kind is unknown."""


EXCEL_EXTENSIONS = {"xlsx", "xlsm", "xltx", "xltm"}


def _schema_for(kind: str):
    schema = SCHEMAS.get(kind)
    if not schema:
        raise BulkImportError(f"Unsupported import kind: {kind}")
    return schema()


def parse_upload(filename: str, stream) -> list[dict[str, Any]]:
    """Read CSV, JSON or Excel (.xlsx) into a list of row dicts keyed by header."""
    ext = (filename or "").rsplit(".", 1)[-1].lower() if "." in (filename or "") else ""

    try:
        if ext == "csv":
            raw = stream.read()
            text = raw.decode("utf-8-sig") if isinstance(raw, bytes) else raw
            reader = csv.DictReader(io.StringIO(text))
            return [row for row in reader]
        if ext == "json":
            rows = json.load(stream)
            if isinstance(rows, dict):
                rows = rows.get("rows", [])
            if not isinstance(rows, list):
                raise BulkImportError("JSON upload must be a list of rows or {\"rows\": [...]}")
            return rows
        if ext in EXCEL_EXTENSIONS:
            from openpyxl import load_workbook

            wb = load_workbook(stream, data_only=True)
            sheet = wb.active
            data = list(sheet.values)
            if not data:
                return []
            headers = [str(h) if h is not None else "" for h in data[0]]
            return [
                {headers[i]: row[i] for i in range(len(headers))}
                for row in data[1:]
                if any(cell is not None for cell in row)
            ]
    except (UnicodeDecodeError, json.JSONDecodeError, csv.Error) as exc:
        raise BulkImportError(f"Failed to parse upload: {exc}")

    raise BulkImportError("Unsupported file format")


def _batch_checks(kind: str, schema, normalized: list[dict[str, Any]]) -> dict[int, list[str]]:
    """
    Checks that need the whole batch: duplicate SKUs in a product file, and
    running on-hand balances in a transaction file.
    """
    problems: dict[int, list[str]] = {}

    if kind == "products":
        seen: dict[str, int] = {}
        for index, row in enumerate(normalized, start=1):
            sku = row.get("sku")
            if not sku:
                continue
            if sku in seen:
                problems.setdefault(index, []).append(f"sku {sku} duplicates row {seen[sku]}")
            else:
                seen[sku] = index
        return problems

    balances: dict[str, int] = {}
    for index, row in enumerate(normalized, start=1):
        change = row.get("quantity_change")
        product = schema.resolve_product(row)
        if product is None or not isinstance(change, int):
            continue
        balance = balances.get(product.id, product.quantity) + change
        if balance < 0:
            problems.setdefault(index, []).append(
                f"would take {product.name} below zero (running balance {balance})"
            )
        balances[product.id] = balance
    return problems


def import_rows(kind: str, rows: Iterable[dict[str, Any]], actor: User) -> dict:
    """
    Validate every row, then post the batch in a single commit.

    If any row fails validation nothing is written and the per-row errors
    are returned with posted=False. Row numbers are 1-based, matching a
    spreadsheet without its header line.

    Raises:
        PermissionDeniedError: actor may not manage inventory
        BulkImportError: unknown kind or rows is not a list of objects
    """
    if not can_manage_inventory(actor):
        raise PermissionDeniedError("Only Admins and Warehouse Managers can import data")

    schema = _schema_for(kind)
    rows = list(rows)
    if any(not isinstance(row, dict) for row in rows):
        raise BulkImportError("every row must be an object")

    normalized = [schema.normalize_row(row) for row in rows]
    errors: list[dict[str, Any]] = []
    batch_problems = _batch_checks(kind, schema, normalized)
    for index, row in enumerate(normalized, start=1):
        row_errors = schema.validate_row(row) + batch_problems.get(index, [])
        if row_errors:
            errors.append({"row": index, "errors": row_errors})

    result = {
        "kind": kind,
        "total_rows": len(rows),
        "created": 0,
        "updated": 0,
        "recorded": 0,
        "errors": errors,
        "posted": False,
    }
    if errors or not rows:
        return result

    try:
        for index, row in enumerate(normalized, start=1):
            outcome = schema.post_row(row, SchemaContext(actor_name=actor.name, row_number=index))
            result[outcome] += 1
        db.session.commit()
    except (ValidationError, ConflictError, NotFoundError) as exc:
        db.session.rollback()
        result.update({"created": 0, "updated": 0, "recorded": 0})
        result["errors"] = [{"row": index, "errors": [str(exc)]}]
        return result
    except Exception:
        db.session.rollback()
        raise

    result["posted"] = True
    return result

# Overview: Service-layer operations for material requests; owns every status transition.

"""
Material Request Lifecycle Service

================================================================================
PURPOSE: Enforce the approval workflow for department material requests
================================================================================

STATE MACHINE:
    PENDING -> APPROVED -> COMPLETED
    PENDING -> REJECTED
    PENDING -> CANCELLED

    PENDING:   Submitted by a requester. Only the requester may edit or cancel.
    APPROVED:  Admin / WarehouseManager accepted it. Awaits fulfilment.
    REJECTED:  Admin / WarehouseManager declined it. Terminal.
    CANCELLED: Requester withdrew it. Terminal. approver_* stay empty.
    COMPLETED: Fulfilment finished. Terminal.

RULES:
1. Transitions outside the table above raise InvalidTransitionError
2. Every mutation is all-or-nothing: on any error nothing is written
3. Each transition is a compare-and-set on the current status, so two
   concurrent decisions on the same PENDING request cannot both win
4. list_requests() applies no visibility rules; callers pass the filter
   from permission_service.request_visibility_filter()

================================================================================
"""

from __future__ import annotations
from datetime import date, datetime, time
from typing import Any, Iterable

from flask import current_app

from ..extensions import db
from ..models import MaterialRequest, MaterialRequestItem, Product, User
from ..models.material_requests import (
    REQUEST_STATUSES,
    REQUEST_STATUS_PENDING,
    REQUEST_STATUS_APPROVED,
    REQUEST_STATUS_REJECTED,
    REQUEST_STATUS_COMPLETED,
    REQUEST_STATUS_CANCELLED,
)
from ..validation import ValidationError, NotFoundError
from warehouse_edge.time_utils import coerce_datetime, utcnow
from . import permission_service
from .concurrency import compare_and_set, run_with_retry
from .permission_service import PermissionDeniedError


VALID_TRANSITIONS = frozenset({
    (REQUEST_STATUS_PENDING, REQUEST_STATUS_APPROVED),
    (REQUEST_STATUS_PENDING, REQUEST_STATUS_REJECTED),
    (REQUEST_STATUS_PENDING, REQUEST_STATUS_CANCELLED),
    (REQUEST_STATUS_APPROVED, REQUEST_STATUS_COMPLETED),
})

DECISIONS = (REQUEST_STATUS_APPROVED, REQUEST_STATUS_REJECTED)

DEFAULT_DEPARTMENT = "Unassigned"


class InvalidTransitionError(ValueError):
    """
    Raised when a status change is attempted from a state that does not allow it.

    Also raised to the loser of a concurrent transition race.
    """
    pass


def validate_status(status: str) -> None:
    if status not in REQUEST_STATUSES:
        raise ValidationError(
            f"Invalid status '{status}'. Must be one of: {', '.join(REQUEST_STATUSES)}"
        )


def can_transition(from_status: str, to_status: str) -> bool:
    validate_status(from_status)
    validate_status(to_status)
    return (from_status, to_status) in VALID_TRANSITIONS


# =============================================================================
# LOOKUPS
# =============================================================================

def get_request(request_id: str) -> MaterialRequest:
    req = db.session.get(MaterialRequest, request_id)
    if req is None:
        raise NotFoundError(f"MaterialRequest {request_id} not found")
    return req


def _get_user(user_id: str) -> User:
    user = db.session.get(User, user_id) if user_id else None
    if user is None:
        raise NotFoundError(f"User {user_id} not found")
    return user


def list_requests(
    *,
    status: str | None = None,
    requester_id: str | None = None,
    department: str | None = None,
    submitted_between: tuple[Any, Any] | None = None,
) -> list[MaterialRequest]:
    """
    Raw query over material requests, newest submission first.

    submitted_between is an inclusive (start, end) pair; either end may be None.
    """
    q = db.session.query(MaterialRequest)

    if status:
        validate_status(status)
        q = q.filter(MaterialRequest.status == status)
    if requester_id:
        q = q.filter(MaterialRequest.requester_id == requester_id)
    if department:
        q = q.filter(MaterialRequest.department_category == department)
    if submitted_between:
        start, end = submitted_between
        start_dt = _coerce_date(start, "submitted_between start") if start else None
        end_dt = _coerce_end_bound(end, "submitted_between end") if end else None
        if start_dt:
            q = q.filter(MaterialRequest.submission_date >= start_dt)
        if end_dt:
            q = q.filter(MaterialRequest.submission_date <= end_dt)

    q = q.order_by(
        MaterialRequest.submission_date.desc(),
        MaterialRequest.id.desc(),
    )
    return q.all()


# =============================================================================
# VALIDATION
# =============================================================================

def _coerce_date(value: Any, field: str) -> datetime:
    try:
        dt = coerce_datetime(value)
    except ValueError:
        raise ValidationError(f"{field} must be an ISO-8601 date or datetime")
    if dt is None:
        raise ValidationError(f"{field} is required")
    return dt


def _coerce_end_bound(value: Any, field: str) -> datetime:
    # A bare date as the upper bound covers that whole day
    if isinstance(value, date) and not isinstance(value, datetime):
        return datetime.combine(value, time.max)
    if isinstance(value, str) and len(value.strip()) == 10:
        try:
            return datetime.combine(date.fromisoformat(value.strip()), time.max)
        except ValueError:
            raise ValidationError(f"{field} must be an ISO-8601 date or datetime")
    return _coerce_date(value, field)


def _validate_reason(reason: Any) -> str:
    if reason is None or not str(reason).strip():
        raise ValidationError("reason_for_request is required")
    return str(reason).strip()


def _normalize_items(items: Any) -> list[dict]:
    if items is None or isinstance(items, (str, bytes, dict)):
        raise ValidationError("items must be a list")
    try:
        items = list(items)
    except TypeError:
        raise ValidationError("items must be a list")
    if not items:
        raise ValidationError("At least one item is required in a request")

    normalized = []
    for index, item in enumerate(items, start=1):
        if not isinstance(item, dict):
            raise ValidationError(f"Item {index} must be an object")
        product_id = item.get("product_id")
        if not product_id or not str(product_id).strip():
            raise ValidationError(f"Item {index}: product_id is required")
        quantity = item.get("quantity")
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            raise ValidationError(f"Item {index}: quantity must be an integer")
        if quantity < 1:
            raise ValidationError(f"Item {index}: quantity must be >= 1")
        normalized.append({"product_id": str(product_id).strip(), "quantity": quantity})
    return normalized


def _build_items(actor: User, items: list[dict]) -> list[MaterialRequestItem]:
    """Resolve products, enforce category access and snapshot product names."""
    built = []
    for position, item in enumerate(items):
        product = db.session.get(Product, item["product_id"])
        if product is None:
            raise NotFoundError(f"Product {item['product_id']} not found")
        if not permission_service.can_request_product(actor, product.category):
            raise PermissionDeniedError(
                f"{actor.name} may not request products outside category "
                f"'{actor.category_access}' (product {product.id} is '{product.category}')"
            )
        built.append(
            MaterialRequestItem(
                position=position,
                product_id=product.id,
                product_name=product.name,
                quantity=item["quantity"],
            )
        )
    return built


# =============================================================================
# COMMANDS
# =============================================================================

def submit_request(
    requester_id: str,
    items: Iterable[dict],
    reason: str,
    requested_date: Any,
) -> MaterialRequest:
    """
    Create a new PENDING request on behalf of requester_id.

    Raises:
        NotFoundError: unknown requester or product
        PermissionDeniedError: requester's role may not submit, or a product
            lies outside their category access
        ValidationError: empty items, quantity < 1, blank reason, missing date
    """
    actor = _get_user(requester_id)
    allowed_roles = current_app.config.get(
        "REQUEST_SUBMIT_ROLES", permission_service.DEFAULT_SUBMIT_ROLES
    )
    permission_service.require(
        permission_service.can_submit(actor, allowed_roles),
        f"Role '{actor.role}' may not submit material requests",
    )

    normalized = _normalize_items(items)
    clean_reason = _validate_reason(reason)
    needed_by = _coerce_date(requested_date, "requested_date")
    built_items = _build_items(actor, normalized)

    req = MaterialRequest(
        requester_id=actor.id,
        requester_name=actor.name,
        department_category=actor.category_access or DEFAULT_DEPARTMENT,
        reason_for_request=clean_reason,
        requested_date=needed_by,
        submission_date=utcnow(),
        status=REQUEST_STATUS_PENDING,
        items=built_items,
    )
    db.session.add(req)
    db.session.commit()
    return req


def _transition(req: MaterialRequest, *, from_status: str, to_status: str, values: dict) -> MaterialRequest:
    """
    Move req from from_status to to_status atomically.

    The UPDATE only matches while the row still holds from_status, so a
    concurrent writer that got there first leaves zero rows to update.
    """
    if not can_transition(from_status, to_status):
        raise InvalidTransitionError(f"Cannot move request from '{from_status}' to '{to_status}'")

    request_id = req.id

    def _op():
        changed = compare_and_set(
            MaterialRequest,
            pk=request_id,
            expected={"status": from_status},
            values={"status": to_status, **values},
        )
        if not changed:
            db.session.rollback()
            current = db.session.get(MaterialRequest, request_id)
            raise InvalidTransitionError(
                f"Cannot move request {request_id} to '{to_status}': "
                f"current status is '{current.status if current else 'unknown'}', must be '{from_status}'"
            )
        db.session.commit()

    run_with_retry(_op)
    db.session.refresh(req)
    return req


def decide_request(
    request_id: str,
    actor_id: str,
    decision: str,
    notes: str | None = None,
) -> MaterialRequest:
    """
    Approve or reject a PENDING request (manager action).

    Raises:
        ValidationError: decision is not Approved / Rejected
        NotFoundError: unknown request or actor
        PermissionDeniedError: actor is not Admin / WarehouseManager
        InvalidTransitionError: request is not PENDING (including losing a race)
    """
    if decision not in DECISIONS:
        raise ValidationError(f"decision must be one of: {', '.join(DECISIONS)}")

    req = get_request(request_id)
    actor = _get_user(actor_id)
    permission_service.require(
        permission_service.can_decide(actor),
        f"Role '{actor.role}' may not approve or reject requests",
    )
    if req.status != REQUEST_STATUS_PENDING:
        raise InvalidTransitionError(
            f"Cannot {decision.lower()} request {request_id}: "
            f"current status is '{req.status}', must be '{REQUEST_STATUS_PENDING}'"
        )

    clean_notes = notes.strip() if isinstance(notes, str) and notes.strip() else None

    return _transition(
        req,
        from_status=REQUEST_STATUS_PENDING,
        to_status=decision,
        values={
            "approver_id": actor.id,
            "approver_name": actor.name,
            "approver_notes": clean_notes,
            "action_date": utcnow(),
        },
    )


def approve_request(request_id: str, actor_id: str, notes: str | None = None) -> MaterialRequest:
    return decide_request(request_id, actor_id, REQUEST_STATUS_APPROVED, notes)


def reject_request(request_id: str, actor_id: str, notes: str | None = None) -> MaterialRequest:
    return decide_request(request_id, actor_id, REQUEST_STATUS_REJECTED, notes)


def cancel_request(request_id: str, actor_id: str) -> MaterialRequest:
    """
    Withdraw a PENDING request (requester action).

    approver_id / approver_name are left unset, which is how a cancellation
    is told apart from a manager rejection.
    """
    req = get_request(request_id)
    permission_service.require(
        permission_service.can_cancel(actor_id, req),
        f"Only the requester may cancel request {request_id}",
    )
    if req.status != REQUEST_STATUS_PENDING:
        raise InvalidTransitionError(
            f"Cannot cancel request {request_id}: "
            f"current status is '{req.status}', must be '{REQUEST_STATUS_PENDING}'"
        )

    return _transition(
        req,
        from_status=REQUEST_STATUS_PENDING,
        to_status=REQUEST_STATUS_CANCELLED,
        values={"action_date": utcnow()},
    )


def edit_request(
    request_id: str,
    actor_id: str,
    items: Iterable[dict],
    reason: str,
    requested_date: Any,
) -> MaterialRequest:
    """
    Replace items, reason and requested_date of a PENDING request in place.

    id and submission_date never change. Same guards as cancel_request plus
    the submit validation rules.
    """
    req = get_request(request_id)
    permission_service.require(
        permission_service.can_edit(actor_id, req),
        f"Only the requester may edit request {request_id}",
    )
    if req.status != REQUEST_STATUS_PENDING:
        raise InvalidTransitionError(
            f"Cannot edit request {request_id}: "
            f"current status is '{req.status}', must be '{REQUEST_STATUS_PENDING}'"
        )

    actor = _get_user(actor_id)
    normalized = _normalize_items(items)
    clean_reason = _validate_reason(reason)
    needed_by = _coerce_date(requested_date, "requested_date")
    built_items = _build_items(actor, normalized)

    changed = compare_and_set(
        MaterialRequest,
        pk=request_id,
        expected={"status": REQUEST_STATUS_PENDING, "version_id": req.version_id},
        values={"reason_for_request": clean_reason, "requested_date": needed_by},
    )
    if not changed:
        db.session.rollback()
        raise InvalidTransitionError(
            f"Cannot edit request {request_id}: it changed since it was read"
        )

    req.items = built_items
    db.session.commit()
    db.session.refresh(req)
    return req


def complete_request(request_id: str, actor_id: str) -> MaterialRequest:
    """Mark an APPROVED request fulfilled (APPROVED -> COMPLETED)."""
    req = get_request(request_id)
    actor = _get_user(actor_id)
    permission_service.require(
        permission_service.can_complete(actor),
        f"Role '{actor.role}' may not complete requests",
    )
    if req.status != REQUEST_STATUS_APPROVED:
        raise InvalidTransitionError(
            f"Cannot complete request {request_id}: "
            f"current status is '{req.status}', must be '{REQUEST_STATUS_APPROVED}'"
        )

    now = utcnow()
    return _transition(
        req,
        from_status=REQUEST_STATUS_APPROVED,
        to_status=REQUEST_STATUS_COMPLETED,
        values={"completed_by_id": actor.id, "completed_at": now},
    )

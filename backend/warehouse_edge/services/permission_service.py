# Overview: Capability checks for material requests and inventory operations.

"""
Role-Based Capability Checks

WHY: Every "may this user do X" decision lives here, so the lifecycle
service, the API layer and the importer all ask the same question the same
way and tests can exercise authorization without any HTTP in the way.

DESIGN PRINCIPLES:
- Fail closed: an actor of an unknown role can do nothing
- can_* functions are pure predicates; require_* raise PermissionDeniedError
- Visibility of requests is NOT enforced by list queries; callers obtain the
  filter from request_visibility_filter() and pass it along themselves
"""

from __future__ import annotations

from ..models import MaterialRequest, User
from ..models.auth import ROLE_ADMIN, ROLE_WAREHOUSE_MANAGER, ROLE_DEPARTMENT_EMPLOYEE


MANAGER_ROLES = frozenset({ROLE_ADMIN, ROLE_WAREHOUSE_MANAGER})
DEFAULT_SUBMIT_ROLES = (ROLE_DEPARTMENT_EMPLOYEE,)


class PermissionDeniedError(PermissionError):
    """Raised when the acting user's role or identity does not allow an operation."""
    pass


def is_manager(actor: User | None) -> bool:
    return actor is not None and actor.role in MANAGER_ROLES


def can_submit(actor: User | None, allowed_roles=DEFAULT_SUBMIT_ROLES) -> bool:
    """Only roles in the deployment's submit policy may raise requests."""
    return actor is not None and actor.role in set(allowed_roles)


def can_decide(actor: User | None) -> bool:
    """Approve / reject is reserved for Admin and WarehouseManager."""
    return is_manager(actor)


def can_complete(actor: User | None) -> bool:
    return is_manager(actor)


def can_cancel(actor_id: str | None, request: MaterialRequest) -> bool:
    """Only the original requester may withdraw a request."""
    return actor_id is not None and actor_id == request.requester_id


def can_edit(actor_id: str | None, request: MaterialRequest) -> bool:
    return can_cancel(actor_id, request)


def can_manage_inventory(actor: User | None) -> bool:
    """Catalog edits, ledger entries and bulk imports."""
    return is_manager(actor)


def can_manage_settings(actor: User | None) -> bool:
    """Warehouses, categories, users and low-stock notification rules."""
    return is_manager(actor)


def can_manage_user(actor: User | None, role: str, current_role: str | None = None) -> bool:
    """
    Admins manage every account. A WarehouseManager manages DepartmentEmployee
    accounts only: they may neither create nor edit an Admin or a manager,
    nor promote anyone into those roles.
    """
    if actor is None:
        return False
    if actor.role == ROLE_ADMIN:
        return True
    if actor.role != ROLE_WAREHOUSE_MANAGER:
        return False
    return role == ROLE_DEPARTMENT_EMPLOYEE and current_role in (None, ROLE_DEPARTMENT_EMPLOYEE)


def can_view_request(actor: User | None, request: MaterialRequest) -> bool:
    if actor is None:
        return False
    if is_manager(actor):
        return True
    return request.requester_id == actor.id


def can_request_product(actor: User, product_category: str) -> bool:
    """
    DepartmentEmployees may only request products of their category.
    Other roles allowed to submit by policy are not category-bound.
    """
    if actor.role != ROLE_DEPARTMENT_EMPLOYEE:
        return True
    return actor.category_access is not None and actor.category_access == product_category


def request_visibility_filter(actor: User) -> dict:
    """
    Filter a presentation layer passes to list_requests() for this actor.

    - DepartmentEmployee: only their own requests
    - Admin / WarehouseManager: everything
    """
    if is_manager(actor):
        return {}
    return {"requester_id": actor.id}


def visible_categories(actor: User) -> set[str] | None:
    """Product categories the actor may see; None means unrestricted."""
    if actor.role == ROLE_DEPARTMENT_EMPLOYEE:
        return {actor.category_access} if actor.category_access else set()
    return None


def require(allowed: bool, message: str) -> None:
    if not allowed:
        raise PermissionDeniedError(message)

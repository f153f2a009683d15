# Overview: Service-layer operations for warehouses, categories, users and low-stock notification rules.

"""
Settings Service

Reference data the rest of the system leans on:
- Warehouses products are stored in
- Categories, referenced by name from Product.category and
  User.category_access
- The user directory, including the DepartmentEmployee category binding
- Low-stock notification rules per product

RULES:
1. category_access is set iff the role is DepartmentEmployee, and it must
   name an existing category
2. Category names are unique regardless of case and are never renamed,
   since products and users reference them by name
3. A WarehouseManager may only manage DepartmentEmployee accounts
   (permission_service.can_manage_user)
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import func

from ..extensions import db
from ..models import Category, NotificationSetting, Product, User, Warehouse
from ..models.auth import USER_ROLES, ROLE_DEPARTMENT_EMPLOYEE
from ..models.settings import NOTIFICATION_CHANNELS
from ..validation import ConflictError, ModelValidationPolicy, NotFoundError, ValidationError
from . import aggregation_service, permission_service
from .products_service import find_category, get_product


WAREHOUSE_CREATE_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({"id", "name", "location"}),
    required_on_create=frozenset({"name"}),
)
WAREHOUSE_UPDATE_POLICY = ModelValidationPolicy(writable_fields=frozenset({"name", "location"}))

CATEGORY_CREATE_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({"id", "name", "description"}),
    required_on_create=frozenset({"name"}),
)

USER_CREATE_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({"id", "name", "email", "role", "category_access"}),
    required_on_create=frozenset({"name", "email", "role"}),
)
USER_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({"name", "email", "role", "category_access"}),
)

# is_enabled is passed separately; it is not a column patch
NOTIFICATION_CREATE_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({"product_id", "threshold", "recipient", "channel"}),
    required_on_create=frozenset({"product_id", "threshold", "recipient"}),
)
NOTIFICATION_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({"threshold", "recipient", "channel"}),
)


# =============================================================================
# WAREHOUSES
# =============================================================================

def list_warehouses() -> list[Warehouse]:
    return db.session.query(Warehouse).order_by(Warehouse.name.asc(), Warehouse.id.asc()).all()


def get_warehouse(warehouse_id: str) -> Warehouse:
    warehouse = db.session.get(Warehouse, warehouse_id)
    if warehouse is None:
        raise NotFoundError(f"Warehouse {warehouse_id} not found")
    return warehouse


def create_warehouse(*, patch: dict) -> Warehouse:
    if not patch.get("name"):
        raise ValidationError("name is required")
    if patch.get("id") and db.session.get(Warehouse, patch["id"]) is not None:
        raise ConflictError(f"Warehouse {patch['id']} already exists")

    warehouse = Warehouse(name=patch["name"], location=patch.get("location"))
    if patch.get("id"):
        warehouse.id = patch["id"]
    db.session.add(warehouse)
    db.session.commit()
    return warehouse


def update_warehouse(*, warehouse_id: str, patch: dict) -> Warehouse:
    warehouse = get_warehouse(warehouse_id)
    if "name" in patch and not patch["name"]:
        raise ValidationError("name is required")
    for key, value in patch.items():
        setattr(warehouse, key, value)
    db.session.commit()
    return warehouse


# =============================================================================
# CATEGORIES
# =============================================================================

def list_categories() -> list[Category]:
    return db.session.query(Category).order_by(Category.name.asc()).all()


def create_category(*, patch: dict) -> Category:
    name = (patch.get("name") or "").strip()
    if not name:
        raise ValidationError("name is required")
    existing = find_category(name)
    if existing is not None:
        raise ConflictError(f"Category {existing.name} already exists")
    if patch.get("id") and db.session.get(Category, patch["id"]) is not None:
        raise ConflictError(f"Category {patch['id']} already exists")

    category = Category(name=name, description=patch.get("description"))
    if patch.get("id"):
        category.id = patch["id"]
    db.session.add(category)
    db.session.commit()
    return category


# =============================================================================
# USERS
# =============================================================================

def list_users(*, role: str | None = None) -> list[User]:
    q = db.session.query(User)
    if role:
        if role not in USER_ROLES:
            raise ValidationError(f"role must be one of: {', '.join(USER_ROLES)}")
        q = q.filter(User.role == role)
    return q.order_by(User.name.asc(), User.id.asc()).all()


def get_user(user_id: str) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError(f"User {user_id} not found")
    return user


def _check_email(email: Any, *, exclude_id: str | None = None) -> None:
    text = str(email or "")
    local, _, domain = text.partition("@")
    if not local or "." not in domain or " " in text:
        raise ValidationError("email must be a valid email address")
    q = db.session.query(User).filter(func.lower(User.email) == email.lower())
    if exclude_id is not None:
        q = q.filter(User.id != exclude_id)
    if q.first() is not None:
        raise ConflictError(f"Email {email} is already in use")


def _resolve_category_access(role: str, category_access: str | None) -> str | None:
    """Canonical category name for an employee, None for every other role."""
    if role != ROLE_DEPARTMENT_EMPLOYEE:
        if category_access:
            raise ValidationError("category_access applies only to DepartmentEmployee users")
        return None
    if not category_access:
        raise ValidationError("category_access is required for DepartmentEmployee users")
    category = find_category(category_access)
    if category is None:
        raise NotFoundError(f"Category {category_access} not found")
    return category.name


def create_user(*, patch: dict, actor: User) -> User:
    role = patch.get("role")
    if role not in USER_ROLES:
        raise ValidationError(f"role must be one of: {', '.join(USER_ROLES)}")
    permission_service.require(
        permission_service.can_manage_user(actor, role),
        f"Role '{actor.role}' may not create {role} users",
    )
    if not patch.get("name"):
        raise ValidationError("name is required")
    _check_email(patch.get("email"))
    category_access = _resolve_category_access(role, patch.get("category_access"))
    if patch.get("id") and db.session.get(User, patch["id"]) is not None:
        raise ConflictError(f"User {patch['id']} already exists")

    user = User(
        name=patch["name"],
        email=patch["email"],
        role=role,
        category_access=category_access,
    )
    if patch.get("id"):
        user.id = patch["id"]
    db.session.add(user)
    db.session.commit()
    return user


def update_user(*, user_id: str, patch: dict, actor: User) -> User:
    """
    Edit a user's name, email, role or category access.

    Moving a DepartmentEmployee to another role clears category_access
    unless the patch sets it, which is refused.
    """
    user = get_user(user_id)
    role = patch.get("role", user.role)
    if role not in USER_ROLES:
        raise ValidationError(f"role must be one of: {', '.join(USER_ROLES)}")
    permission_service.require(
        permission_service.can_manage_user(actor, role, user.role),
        f"Role '{actor.role}' may not edit user {user_id} as {role}",
    )

    if "name" in patch and not patch["name"]:
        raise ValidationError("name is required")
    if "email" in patch and patch["email"] != user.email:
        _check_email(patch["email"], exclude_id=user.id)

    if "category_access" in patch:
        requested_access = patch["category_access"]
    elif role == ROLE_DEPARTMENT_EMPLOYEE:
        requested_access = user.category_access
    else:
        requested_access = None

    user.category_access = _resolve_category_access(role, requested_access)
    user.role = role
    if "name" in patch:
        user.name = patch["name"]
    if "email" in patch:
        user.email = patch["email"]
    db.session.commit()
    return user


# =============================================================================
# LOW-STOCK NOTIFICATION RULES
# =============================================================================

def _check_enabled(value: Any) -> bool:
    if not isinstance(value, bool):
        raise ValidationError("is_enabled must be true or false")
    return value


def _check_notification_fields(patch: dict) -> None:
    if "threshold" in patch and (patch["threshold"] is None or patch["threshold"] < 0):
        raise ValidationError("threshold must be >= 0")
    if "recipient" in patch and not patch["recipient"]:
        raise ValidationError("recipient is required")
    if "channel" in patch and patch["channel"] not in NOTIFICATION_CHANNELS:
        raise ValidationError(f"channel must be one of: {', '.join(NOTIFICATION_CHANNELS)}")


def list_notification_settings(*, product_id: str | None = None) -> list[NotificationSetting]:
    q = db.session.query(NotificationSetting)
    if product_id:
        q = q.filter(NotificationSetting.product_id == product_id)
    return q.order_by(NotificationSetting.created_at.asc(), NotificationSetting.id.asc()).all()


def get_notification_setting(setting_id: str) -> NotificationSetting:
    setting = db.session.get(NotificationSetting, setting_id)
    if setting is None:
        raise NotFoundError(f"Notification setting {setting_id} not found")
    return setting


def create_notification_setting(*, patch: dict, is_enabled: Any = True) -> NotificationSetting:
    for key in ("product_id", "threshold", "recipient"):
        if patch.get(key) is None:
            raise ValidationError(f"{key} is required")
    _check_notification_fields(patch)
    enabled = _check_enabled(is_enabled)
    product = get_product(patch["product_id"])

    setting = NotificationSetting(
        product_id=product.id,
        threshold=patch["threshold"],
        recipient=patch["recipient"],
        channel=patch.get("channel") or NOTIFICATION_CHANNELS[0],
        is_enabled=enabled,
    )
    db.session.add(setting)
    db.session.commit()
    return setting


def update_notification_setting(
    *,
    setting_id: str,
    patch: dict,
    is_enabled: Any = None,
) -> NotificationSetting:
    setting = get_notification_setting(setting_id)
    if "product_id" in patch:
        raise ValidationError("product_id cannot be changed; create a new rule instead")
    _check_notification_fields(patch)
    if is_enabled is not None:
        setting.is_enabled = _check_enabled(is_enabled)
    for key, value in patch.items():
        setattr(setting, key, value)
    db.session.commit()
    return setting


def triggered_notifications() -> list[dict]:
    """Enabled rules whose product is currently at or below the rule threshold."""
    settings = list_notification_settings()
    product_ids = {s.product_id for s in settings}
    if not product_ids:
        return []
    products = db.session.query(Product).filter(Product.id.in_(product_ids)).all()
    return aggregation_service.due_notifications(settings, products)

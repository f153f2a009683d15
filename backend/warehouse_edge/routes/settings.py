# Overview: Flask API routes for settings (warehouses, categories, users, notification rules).

# backend/warehouse_edge/routes/settings.py
"""
Settings routes.

- GET/POST   /api/settings/warehouses, GET/PATCH /api/settings/warehouses/:id
- GET/POST   /api/settings/categories
- GET/POST   /api/settings/users, GET/PATCH /api/settings/users/:id
- GET/POST   /api/settings/notifications, PATCH /api/settings/notifications/:id
- GET        /api/settings/notifications/triggered

SECURITY:
- Warehouse and category lists are open to every known user (forms need them)
- Everything else requires Admin or WarehouseManager
- Which accounts a manager may touch is decided by settings_service
"""
from flask import Blueprint, request, g, current_app

from ..models import Category, NotificationSetting, User, Warehouse
from ..services import permission_service, settings_service
from ..services.permission_service import PermissionDeniedError
from ..validation import validate_payload, ValidationError, ConflictError, NotFoundError
from ..decorators import require_user, require_capability

settings_bp = Blueprint("settings", __name__, url_prefix="/api/settings")

_MANAGE_MESSAGE = "Only Admins and Warehouse Managers can manage settings"


def _save(action: str, func):
    """Run a settings write and map service errors to responses."""
    try:
        return func(), None
    except ValidationError as e:
        return None, ({"error": str(e)}, 400)
    except PermissionDeniedError as e:
        current_app.logger.warning("Refused %s by %s: %s", action, g.current_user.id, e)
        return None, ({"error": str(e)}, 403)
    except NotFoundError as e:
        return None, ({"error": str(e)}, 404)
    except ConflictError as e:
        return None, ({"error": str(e)}, 409)
    except Exception:
        current_app.logger.exception("Failed to %s", action)
        return None, ({"error": "Internal server error"}, 500)


# =============================================================================
# WAREHOUSES
# =============================================================================

@settings_bp.get("/warehouses")
@require_user
def list_warehouses():
    rows = settings_service.list_warehouses()
    return {"warehouses": [w.to_dict() for w in rows], "count": len(rows)}


@settings_bp.post("/warehouses")
@require_user
@require_capability(permission_service.can_manage_settings, _MANAGE_MESSAGE)
def create_warehouse():
    payload = request.get_json(silent=True) or {}
    warehouse, error = _save("create warehouse", lambda: settings_service.create_warehouse(
        patch=validate_payload(
            model=Warehouse, payload=payload,
            policy=settings_service.WAREHOUSE_CREATE_POLICY, partial=False,
        ),
    ))
    if error:
        return error
    current_app.logger.info("Warehouse %s created by %s", warehouse.id, g.current_user.id)
    return {"warehouse": warehouse.to_dict()}, 201


@settings_bp.get("/warehouses/<warehouse_id>")
@require_user
def get_warehouse(warehouse_id: str):
    try:
        warehouse = settings_service.get_warehouse(warehouse_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return {"warehouse": warehouse.to_dict()}


@settings_bp.patch("/warehouses/<warehouse_id>")
@require_user
@require_capability(permission_service.can_manage_settings, _MANAGE_MESSAGE)
def update_warehouse(warehouse_id: str):
    payload = request.get_json(silent=True) or {}
    warehouse, error = _save("update warehouse", lambda: settings_service.update_warehouse(
        warehouse_id=warehouse_id,
        patch=validate_payload(
            model=Warehouse, payload=payload,
            policy=settings_service.WAREHOUSE_UPDATE_POLICY, partial=True,
        ),
    ))
    if error:
        return error
    return {"warehouse": warehouse.to_dict()}


# =============================================================================
# CATEGORIES
# =============================================================================

@settings_bp.get("/categories")
@require_user
def list_categories():
    rows = settings_service.list_categories()
    return {"categories": [c.to_dict() for c in rows], "count": len(rows)}


@settings_bp.post("/categories")
@require_user
@require_capability(permission_service.can_manage_settings, _MANAGE_MESSAGE)
def create_category():
    payload = request.get_json(silent=True) or {}
    category, error = _save("create category", lambda: settings_service.create_category(
        patch=validate_payload(
            model=Category, payload=payload,
            policy=settings_service.CATEGORY_CREATE_POLICY, partial=False,
        ),
    ))
    if error:
        return error
    current_app.logger.info("Category %s created by %s", category.name, g.current_user.id)
    return {"category": category.to_dict()}, 201


# =============================================================================
# USERS
# =============================================================================

@settings_bp.get("/users")
@require_user
@require_capability(permission_service.can_manage_settings, _MANAGE_MESSAGE)
def list_users():
    try:
        rows = settings_service.list_users(role=request.args.get("role") or None)
    except ValidationError as e:
        return {"error": str(e)}, 400
    return {"users": [u.to_dict() for u in rows], "count": len(rows)}


@settings_bp.post("/users")
@require_user
@require_capability(permission_service.can_manage_settings, _MANAGE_MESSAGE)
def create_user():
    payload = request.get_json(silent=True) or {}
    user, error = _save("create user", lambda: settings_service.create_user(
        patch=validate_payload(
            model=User, payload=payload,
            policy=settings_service.USER_CREATE_POLICY, partial=False,
        ),
        actor=g.current_user,
    ))
    if error:
        return error
    current_app.logger.info("User %s (%s) created by %s", user.id, user.role, g.current_user.id)
    return {"user": user.to_dict()}, 201


@settings_bp.get("/users/<user_id>")
@require_user
@require_capability(permission_service.can_manage_settings, _MANAGE_MESSAGE)
def get_user(user_id: str):
    try:
        user = settings_service.get_user(user_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return {"user": user.to_dict()}


@settings_bp.patch("/users/<user_id>")
@require_user
@require_capability(permission_service.can_manage_settings, _MANAGE_MESSAGE)
def update_user(user_id: str):
    payload = request.get_json(silent=True) or {}
    user, error = _save("update user", lambda: settings_service.update_user(
        user_id=user_id,
        patch=validate_payload(
            model=User, payload=payload,
            policy=settings_service.USER_UPDATE_POLICY, partial=True,
        ),
        actor=g.current_user,
    ))
    if error:
        return error
    current_app.logger.info("User %s updated by %s", user.id, g.current_user.id)
    return {"user": user.to_dict()}


# =============================================================================
# LOW-STOCK NOTIFICATION RULES
# =============================================================================

@settings_bp.get("/notifications")
@require_user
@require_capability(permission_service.can_manage_settings, _MANAGE_MESSAGE)
def list_notifications():
    rows = settings_service.list_notification_settings(
        product_id=request.args.get("product_id") or None,
    )
    return {"notifications": [n.to_dict() for n in rows], "count": len(rows)}


@settings_bp.post("/notifications")
@require_user
@require_capability(permission_service.can_manage_settings, _MANAGE_MESSAGE)
def create_notification():
    payload = request.get_json(silent=True) or {}
    if not isinstance(payload, dict):
        return {"error": "Invalid JSON payload"}, 400
    payload = dict(payload)
    is_enabled = payload.pop("is_enabled", True)
    setting, error = _save("create notification rule", lambda: settings_service.create_notification_setting(
        patch=validate_payload(
            model=NotificationSetting, payload=payload,
            policy=settings_service.NOTIFICATION_CREATE_POLICY, partial=False,
        ),
        is_enabled=is_enabled,
    ))
    if error:
        return error
    return {"notification": setting.to_dict()}, 201


@settings_bp.patch("/notifications/<setting_id>")
@require_user
@require_capability(permission_service.can_manage_settings, _MANAGE_MESSAGE)
def update_notification(setting_id: str):
    payload = request.get_json(silent=True) or {}
    if not isinstance(payload, dict):
        return {"error": "Invalid JSON payload"}, 400
    payload = dict(payload)
    is_enabled = payload.pop("is_enabled", None)
    setting, error = _save("update notification rule", lambda: settings_service.update_notification_setting(
        setting_id=setting_id,
        patch=validate_payload(
            model=NotificationSetting, payload=payload,
            policy=settings_service.NOTIFICATION_UPDATE_POLICY, partial=True,
        ),
        is_enabled=is_enabled,
    ))
    if error:
        return error
    return {"notification": setting.to_dict()}


@settings_bp.get("/notifications/triggered")
@require_user
@require_capability(permission_service.can_manage_settings, _MANAGE_MESSAGE)
def triggered_notifications():
    rows = settings_service.triggered_notifications()
    return {"triggered": rows, "count": len(rows)}

# backend/warehouse_edge/routes/material_requests.py
"""
Material Request API Routes

- GET  /api/material-requests               - list (employees see only their own)
- POST /api/material-requests               - submit a new PENDING request
- GET  /api/material-requests/:id           - one request
- PUT  /api/material-requests/:id           - edit a PENDING request (requester only)
- POST /api/material-requests/:id/approve   - PENDING -> APPROVED (manager)
- POST /api/material-requests/:id/reject    - PENDING -> REJECTED (manager)
- POST /api/material-requests/:id/cancel    - PENDING -> CANCELLED (requester only)
- POST /api/material-requests/:id/complete  - APPROVED -> COMPLETED (manager)

SECURITY:
- The acting user always comes from X-User-Id (g.current_user), never from
  the request body, so requester and approver fields cannot be spoofed
- Role and ownership checks are made by the service layer, not here
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import material_request_service, permission_service
from ..services.material_request_service import InvalidTransitionError
from ..services.permission_service import PermissionDeniedError
from ..validation import ValidationError, NotFoundError
from ..decorators import require_user


material_requests_bp = Blueprint("material_requests", __name__, url_prefix="/api/material-requests")


def _run_transition(action: str, request_id: str, func, *args):
    """Shared error mapping for the lifecycle endpoints."""
    user = g.current_user
    try:
        req = func(request_id, user.id, *args)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except PermissionDeniedError as e:
        current_app.logger.warning("Refused %s of %s by %s: %s", action, request_id, user.id, e)
        return jsonify({"error": str(e)}), 403
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except InvalidTransitionError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to %s material request", action)
        return jsonify({"error": "Internal server error"}), 500

    current_app.logger.info("Material request %s: %s by %s -> %s", req.id, action, user.id, req.status)
    return jsonify({"request": req.to_dict()}), 200


@material_requests_bp.get("")
@require_user
def list_requests_route():
    """
    Query params (all optional):
    - status: Pending | Approved | Rejected | Completed | Cancelled
    - department: department category
    - requester_id: managers only; ignored for employees
    - start, end: submission date window (ISO-8601)
    """
    user = g.current_user
    filters = {
        "status": request.args.get("status") or None,
        "department": request.args.get("department") or None,
        "requester_id": request.args.get("requester_id") or None,
    }
    filters.update(permission_service.request_visibility_filter(user))

    start = request.args.get("start")
    end = request.args.get("end")
    if start or end:
        filters["submitted_between"] = (start, end)

    try:
        rows = material_request_service.list_requests(**filters)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to list material requests")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"requests": [r.to_dict() for r in rows], "count": len(rows)}), 200


@material_requests_bp.post("")
@require_user
def submit_request_route():
    """
    Body:
        {
            "items": [{"product_id": "...", "quantity": 3}, ...],
            "reason_for_request": "...",
            "requested_date": "2024-08-05"
        }
    """
    user = g.current_user
    data = request.get_json(silent=True) or {}

    try:
        req = material_request_service.submit_request(
            user.id,
            data.get("items"),
            data.get("reason_for_request"),
            data.get("requested_date"),
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except PermissionDeniedError as e:
        current_app.logger.warning("Refused submit by %s: %s", user.id, e)
        return jsonify({"error": str(e)}), 403
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to submit material request")
        return jsonify({"error": "Internal server error"}), 500

    current_app.logger.info("Material request %s submitted by %s", req.id, user.id)
    return jsonify({"request": req.to_dict()}), 201


@material_requests_bp.get("/<request_id>")
@require_user
def get_request_route(request_id: str):
    user = g.current_user
    try:
        req = material_request_service.get_request(request_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to load material request")
        return jsonify({"error": "Internal server error"}), 500

    if not permission_service.can_view_request(user, req):
        current_app.logger.warning("Refused view of %s by %s", request_id, user.id)
        return jsonify({"error": "Permission denied"}), 403

    return jsonify({"request": req.to_dict()}), 200


@material_requests_bp.put("/<request_id>")
@require_user
def edit_request_route(request_id: str):
    data = request.get_json(silent=True) or {}
    return _run_transition(
        "edit",
        request_id,
        material_request_service.edit_request,
        data.get("items"),
        data.get("reason_for_request"),
        data.get("requested_date"),
    )


@material_requests_bp.post("/<request_id>/approve")
@require_user
def approve_request_route(request_id: str):
    data = request.get_json(silent=True) or {}
    return _run_transition(
        "approve", request_id, material_request_service.approve_request, data.get("notes")
    )


@material_requests_bp.post("/<request_id>/reject")
@require_user
def reject_request_route(request_id: str):
    data = request.get_json(silent=True) or {}
    return _run_transition(
        "reject", request_id, material_request_service.reject_request, data.get("notes")
    )


@material_requests_bp.post("/<request_id>/cancel")
@require_user
def cancel_request_route(request_id: str):
    return _run_transition("cancel", request_id, material_request_service.cancel_request)


@material_requests_bp.post("/<request_id>/complete")
@require_user
def complete_request_route(request_id: str):
    return _run_transition("complete", request_id, material_request_service.complete_request)

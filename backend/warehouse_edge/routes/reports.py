# backend/warehouse_edge/routes/reports.py
"""
Reporting API

Read-only views over the ledger and catalog. Query params start / end
accept ISO-8601 dates or datetimes; a bare end date covers the whole day.

Movement, breakdown and type-distribution reports are for Admins and
Warehouse Managers. Low-stock and the dashboard are open to every user
but narrowed to the caller's category for a DepartmentEmployee.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import reporting_service, permission_service
from ..services.reporting_service import ReportError
from ..decorators import require_user, require_capability


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")

_MANAGERS_ONLY = "Only Admins and Warehouse Managers can view movement reports"


def _range_args() -> dict:
    return {
        "start": request.args.get("start"),
        "end": request.args.get("end"),
        "product_id": request.args.get("product_id") or None,
        "warehouse_id": request.args.get("warehouse_id") or None,
    }


def _run_report(name: str, func, **kwargs):
    try:
        return jsonify(func(**kwargs)), 200
    except ReportError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to build %s report", name)
        return jsonify({"error": "Internal server error"}), 500


@reports_bp.get("/movements")
@require_user
@require_capability(permission_service.can_manage_inventory, _MANAGERS_ONLY)
def movement_report_route():
    return _run_report("movement", reporting_service.movement_report, **_range_args())


@reports_bp.get("/breakdown")
@require_user
@require_capability(permission_service.can_manage_inventory, _MANAGERS_ONLY)
def product_breakdown_route():
    return _run_report("product breakdown", reporting_service.product_breakdown_report, **_range_args())


@reports_bp.get("/type-distribution")
@require_user
@require_capability(permission_service.can_manage_inventory, _MANAGERS_ONLY)
def type_distribution_route():
    return _run_report("type distribution", reporting_service.type_distribution_report, **_range_args())


@reports_bp.get("/low-stock")
@require_user
def low_stock_route():
    return _run_report(
        "low stock",
        reporting_service.low_stock_report,
        warehouse_id=request.args.get("warehouse_id") or None,
        category=request.args.get("category") or None,
        categories=permission_service.visible_categories(g.current_user),
    )


@reports_bp.get("/dashboard")
@require_user
def dashboard_route():
    user = g.current_user
    return _run_report(
        "dashboard",
        reporting_service.dashboard_summary,
        categories=permission_service.visible_categories(user),
        requester_id=permission_service.request_visibility_filter(user).get("requester_id"),
    )

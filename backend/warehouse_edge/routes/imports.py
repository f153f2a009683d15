# Overview: Flask API routes for bulk imports; parses input and returns JSON responses.

"""
Import Routes

POST /api/imports/<kind> with kind = products | transactions.

Accepts either a multipart "file" upload (CSV, JSON, or Excel .xlsx) or a
JSON body {"rows": [...]}. The whole batch is validated before anything is
written; a batch with any bad row returns 422 with per-row errors.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_user
from ..services import import_service
from ..services.import_service import BulkImportError
from ..services.permission_service import PermissionDeniedError


imports_bp = Blueprint("imports", __name__, url_prefix="/api/imports")


@imports_bp.post("/<kind>")
@require_user
def import_route(kind: str):
    user = g.current_user

    try:
        if "file" in request.files:
            file = request.files["file"]
            rows = import_service.parse_upload(file.filename or "", file.stream)
        else:
            data = request.get_json(silent=True) or {}
            rows = data.get("rows")
            if not isinstance(rows, list):
                return jsonify({"error": "rows must be a list"}), 400

        result = import_service.import_rows(kind, rows, user)
    except BulkImportError as e:
        return jsonify({"error": str(e)}), 400
    except PermissionDeniedError as e:
        current_app.logger.warning("Refused %s import by %s: %s", kind, user.id, e)
        return jsonify({"error": str(e)}), 403
    except Exception:
        current_app.logger.exception("Failed to import %s", kind)
        return jsonify({"error": "Internal server error"}), 500

    if not result["posted"] and result["errors"]:
        return jsonify(result), 422

    current_app.logger.info(
        "Imported %s rows of %s by %s (created=%s updated=%s recorded=%s)",
        result["total_rows"], kind, user.id,
        result["created"], result["updated"], result["recorded"],
    )
    return jsonify(result), 201 if result["posted"] else 200

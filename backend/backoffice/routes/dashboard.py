# Overview: Flask API routes for dashboard reads; parses input and returns JSON responses.

from flask import Blueprint, jsonify, current_app

from ..decorators import require_auth
from ..errors import LedgerError, ValidationError
from ..services import reporting_service
from ..validation import parse_date

dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/dashboard")


@dashboard_bp.get("/summary/<day>")
@require_auth
def daily_summary_route(day: str):
    try:
        parsed = parse_date(day, "date")
        if parsed is None:
            raise ValidationError("date is required")
        return jsonify(reporting_service.daily_summary(parsed)), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to build daily summary")
        return jsonify({"error": "Internal server error"}), 500

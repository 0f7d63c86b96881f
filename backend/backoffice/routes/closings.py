# Overview: Flask API routes for cash closing operations; parses input and returns JSON responses.

# backend/backoffice/routes/closings.py
"""
Cash Closing API Routes

The client posts only what was counted. Expected figures, variances and the
reconciliation status are computed server-side, and the closing is stamped
with the session user; closed_by / expected_* keys in the body are ignored.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth
from ..errors import LedgerError, NotFoundError, ValidationError
from ..services import closing_service
from ..validation import parse_date

closings_bp = Blueprint("closings", __name__, url_prefix="/api/cash-closings")


def _path_date(value: str):
    day = parse_date(value, "date")
    if day is None:
        raise ValidationError("date is required")
    return day


@closings_bp.post("")
@require_auth
def create_closing_route():
    """
    Request body:
    {
        "closing_date": "2024-05-01",
        "actual_cash": "1500.00",
        "actual_transfers": "320.00",
        "notes": "..."
    }

    Returns:
        201: the closing with expected/actual/variance and status
        400: invalid input
        409: closing already exists for that date
    """
    try:
        data = request.get_json(silent=True) or {}
        closing = closing_service.create_cash_closing(
            g.actor,
            closing_date=data.get("closing_date"),
            actual_cash=data.get("actual_cash"),
            actual_transfers=data.get("actual_transfers"),
            notes=data.get("notes"),
        )
        return jsonify(closing.to_dict()), 201
    except LedgerError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to create cash closing")
        return jsonify({"error": "Internal server error"}), 500


@closings_bp.get("")
@require_auth
def list_closings_route():
    try:
        closings = closing_service.list_cash_closings(
            start_date=parse_date(request.args.get("start_date"), "start_date"),
            end_date=parse_date(request.args.get("end_date"), "end_date"),
        )
        return jsonify({"items": [c.to_dict() for c in closings]}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to list cash closings")
        return jsonify({"error": "Internal server error"}), 500


@closings_bp.get("/<int:closing_id>")
@require_auth
def get_closing_route(closing_id: int):
    try:
        return jsonify(closing_service.get_cash_closing(closing_id).to_dict()), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to get cash closing")
        return jsonify({"error": "Internal server error"}), 500


@closings_bp.get("/by-date/<day>")
@require_auth
def get_closing_by_date_route(day: str):
    try:
        closing = closing_service.get_cash_closing_by_date(_path_date(day))
        if closing is None:
            raise NotFoundError(f"No cash closing for {day}")
        return jsonify(closing.to_dict()), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to get cash closing by date")
        return jsonify({"error": "Internal server error"}), 500


@closings_bp.get("/preview/<day>")
@require_auth
def preview_closing_route(day: str):
    """Expected figures for the date, before counting."""
    try:
        return jsonify(closing_service.preview_cash_closing(_path_date(day))), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to preview cash closing")
        return jsonify({"error": "Internal server error"}), 500

# Overview: Flask API routes for expenses operations; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth
from ..errors import LedgerError
from ..services import expense_service
from ..validation import parse_date

expenses_bp = Blueprint("expenses", __name__, url_prefix="/api/expenses")


@expenses_bp.post("")
@require_auth
def create_expense_route():
    try:
        data = request.get_json(silent=True) or {}
        expense = expense_service.record_expense(
            g.actor,
            description=data.get("description"),
            amount=data.get("amount"),
            payment_method=data.get("payment_method"),
            expense_date=data.get("expense_date"),
            category=data.get("category"),
            notes=data.get("notes"),
        )
        return jsonify(expense.to_dict()), 201
    except LedgerError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to record expense")
        return jsonify({"error": "Internal server error"}), 500


@expenses_bp.get("")
@require_auth
def list_expenses_route():
    try:
        expenses = expense_service.list_expenses(
            start_date=parse_date(request.args.get("start_date"), "start_date"),
            end_date=parse_date(request.args.get("end_date"), "end_date"),
        )
        return jsonify({"items": [e.to_dict() for e in expenses]}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to list expenses")
        return jsonify({"error": "Internal server error"}), 500

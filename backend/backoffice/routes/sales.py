# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

# backend/backoffice/routes/sales.py
"""
Sales API Routes

POST records a complete sale in one call: the sale header, its items, the
stock decrements and (for credit sales) the customer's debt.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth
from ..errors import LedgerError, ValidationError
from ..services import sales_service
from ..validation import parse_date, parse_int_id

sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("")
@require_auth
def create_sale_route():
    """
    Record a sale.

    Request body:
    {
        "sale": {
            "payment_method": "cash" | "transfer" | "credit",
            "sale_date": "2024-05-01",   (optional, defaults to today)
            "customer_id": 3,            (required for credit)
            "notes": "..."
        },
        "items": [{"product_id": 1, "quantity": "2"}, ...]
    }

    Returns:
        201: sale with items, plus warnings (e.g. credit_limit_exceeded)
        400: invalid input
        404: unknown product or customer
        409: insufficient stock or concurrent update
    """
    try:
        data = request.get_json(silent=True) or {}
        sale_data = data.get("sale") or {}
        if not isinstance(sale_data, dict):
            raise ValidationError("sale must be an object")

        result = sales_service.record_sale(
            g.actor,
            items=data.get("items"),
            payment_method=sale_data.get("payment_method"),
            sale_date=sale_data.get("sale_date"),
            customer_id=sale_data.get("customer_id"),
            notes=sale_data.get("notes"),
        )
        return jsonify({
            "sale": result.sale.to_dict(include_items=True),
            "warnings": result.warnings,
        }), 201

    except LedgerError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to record sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("")
@require_auth
def list_sales_route():
    """Query params: start_date, end_date, customer_id, include_items=true."""
    try:
        customer_id = request.args.get("customer_id")
        sales = sales_service.list_sales(
            start_date=parse_date(request.args.get("start_date"), "start_date"),
            end_date=parse_date(request.args.get("end_date"), "end_date"),
            customer_id=parse_int_id(customer_id, "customer_id") if customer_id else None,
        )
        include_items = request.args.get("include_items") == "true"
        return jsonify({"items": [s.to_dict(include_items=include_items) for s in sales]}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to list sales")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/<int:sale_id>")
@require_auth
def get_sale_route(sale_id: int):
    try:
        sale = sales_service.get_sale(sale_id)
        return jsonify(sale.to_dict(include_items=True)), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to get sale")
        return jsonify({"error": "Internal server error"}), 500

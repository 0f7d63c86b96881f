# Overview: Flask API routes for customers operations; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, current_app

from ..decorators import require_auth
from ..errors import LedgerError
from ..services import customers_service

customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("")
@require_auth
def list_customers_route():
    try:
        q = request.args.get("q")
        customers = customers_service.search_customers(q) if q else customers_service.list_customers()
        return jsonify({"items": [c.to_dict() for c in customers]}), 200
    except Exception:
        current_app.logger.exception("Failed to list customers")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.get("/with-debt")
@require_auth
def customers_with_debt_route():
    try:
        customers = customers_service.get_customers_with_debt()
        return jsonify({"items": [c.to_dict() for c in customers]}), 200
    except Exception:
        current_app.logger.exception("Failed to list customers with debt")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.post("")
@require_auth
def create_customer_route():
    """current_debt is not writable here; it only moves through sales and payments."""
    try:
        customer = customers_service.create_customer(request.get_json(silent=True))
        return jsonify(customer.to_dict()), 201
    except LedgerError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to create customer")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.get("/<int:customer_id>")
@require_auth
def get_customer_route(customer_id: int):
    try:
        customer = customers_service.get_customer(customer_id)
        return jsonify(customer.to_dict()), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to get customer")
        return jsonify({"error": "Internal server error"}), 500

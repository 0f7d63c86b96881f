# Overview: Flask API routes for payments operations; parses input and returns JSON responses.

# backend/backoffice/routes/payments.py
"""
Debt Payment API Routes

A payment always belongs to a customer and always reduces that customer's
debt by the same amount. Overpayment is rejected with 409.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth
from ..errors import LedgerError
from ..services import payment_service
from ..validation import parse_date, parse_int_id


payments_bp = Blueprint("payments", __name__, url_prefix="/api/payments")


@payments_bp.post("")
@require_auth
def create_payment_route():
    """
    Request body:
    {
        "customer_id": 3,
        "amount": "250.00",
        "payment_method": "cash" | "transfer" | "card",
        "payment_date": "2024-05-01",  (optional)
        "notes": "..."
    }

    Returns:
        201: payment plus the customer's new balance
        400: invalid amount or method
        404: customer not found
        409: amount exceeds current debt
    """
    try:
        data = request.get_json(silent=True) or {}

        payment = payment_service.record_payment(
            g.actor,
            customer_id=data.get("customer_id"),
            amount=data.get("amount"),
            payment_method=data.get("payment_method"),
            payment_date=data.get("payment_date"),
            notes=data.get("notes"),
        )

        return jsonify({
            "payment": payment.to_dict(),
            "customer": payment.customer.to_dict(),
        }), 201

    except LedgerError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to record payment")
        return jsonify({"error": "Internal server error"}), 500


@payments_bp.get("")
@require_auth
def list_payments_route():
    """Query params: start_date & end_date, or customer_id."""
    try:
        customer_id = request.args.get("customer_id")
        payments = payment_service.list_payments(
            start_date=parse_date(request.args.get("start_date"), "start_date"),
            end_date=parse_date(request.args.get("end_date"), "end_date"),
            customer_id=parse_int_id(customer_id, "customer_id") if customer_id else None,
        )
        return jsonify({"items": [p.to_dict() for p in payments]}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to list payments")
        return jsonify({"error": "Internal server error"}), 500

# Overview: Flask API routes for the mobile assistant; API-key gated, parses input and returns JSON.

# backend/backoffice/routes/mobile.py
"""
Mobile Assistant API Routes

WHY: A voice/chat assistant records sales and payments on the owner's
behalf. It authenticates with an X-API-Key header instead of a session and
addresses customers by name; the first search match is used.

Every write here goes through the same coordinators as the web API, so the
stock, debt and overpayment rules are identical. Rows are stamped with the
key id and entry_method 'api'.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_api_key
from ..errors import LedgerError, NotFoundError, ValidationError
from ..money import money_str, quantity_str
from ..services import (
    customers_service,
    inventory_service,
    payment_service,
    products_service,
    reporting_service,
    sales_service,
)
from ..services.api_key_service import (
    PERM_CREATE_PAYMENT,
    PERM_CREATE_SALE,
    PERM_READ_CUSTOMERS,
    PERM_READ_REPORTS,
    PERM_READ_STOCK,
    PERM_UPDATE_STOCK,
)
from ..time_utils import utcnow, to_utc_z

mobile_bp = Blueprint("mobile", __name__, url_prefix="/api/mobile")


@mobile_bp.get("/status")
@require_api_key()
def status_route():
    return jsonify({
        "status": "active",
        "key_name": g.api_key.key_name,
        "permissions": sorted(g.api_key.permission_set),
        "timestamp": to_utc_z(utcnow()),
    }), 200


@mobile_bp.get("/products/stock")
@require_api_key(PERM_READ_STOCK)
def product_stock_route():
    """Query params: barcode (exact) or name (first substring match)."""
    try:
        barcode = request.args.get("barcode")
        name = request.args.get("name")
        if not barcode and not name:
            raise ValidationError("barcode or name is required")

        if barcode:
            product = products_service.get_product_by_barcode(barcode)
        else:
            matches = products_service.search_products(name)
            product = matches[0] if matches else None

        if product is None:
            raise NotFoundError("Product not found")

        return jsonify({
            "product": {
                "id": product.id,
                "name": product.name,
                "current_stock": quantity_str(product.current_stock),
                "sale_price": money_str(product.sale_price),
                "unit": product.unit,
                "is_low_stock": product.is_low_stock,
            }
        }), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to get product stock")
        return jsonify({"error": "Internal server error"}), 500


@mobile_bp.get("/customers/debt")
@require_api_key(PERM_READ_CUSTOMERS)
def customer_debt_route():
    try:
        name = request.args.get("name")
        if not name:
            raise ValidationError("name is required")
        customer = customers_service.find_customer_by_name(name)
        return jsonify({
            "customer": {
                "id": customer.id,
                "name": customer.name,
                "current_debt": money_str(customer.current_debt),
                "credit_limit": money_str(customer.credit_limit),
            }
        }), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to get customer debt")
        return jsonify({"error": "Internal server error"}), 500


@mobile_bp.get("/customers/debtors")
@require_api_key(PERM_READ_CUSTOMERS)
def debtors_route():
    try:
        debtors = customers_service.get_customers_with_debt()
        return jsonify({
            "debtors": [
                {"id": c.id, "name": c.name, "current_debt": money_str(c.current_debt)}
                for c in debtors
            ]
        }), 200
    except Exception:
        current_app.logger.exception("Failed to list debtors")
        return jsonify({"error": "Internal server error"}), 500


@mobile_bp.post("/sales")
@require_api_key(PERM_CREATE_SALE)
def create_sale_route():
    """
    Request body:
    {
        "payment_method": "cash" | "transfer" | "credit",
        "customer_name": "Ana",       (required for credit)
        "sale_date": "2024-05-01",    (optional)
        "items": [{"product_id": 1, "quantity": 2}]
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        result = sales_service.record_mobile_sale(
            g.actor,
            items=data.get("items"),
            payment_method=data.get("payment_method"),
            customer_name=data.get("customer_name"),
            sale_date=data.get("sale_date"),
        )
        sale = result.sale
        return jsonify({
            "sale": {
                "id": sale.id,
                "total_amount": money_str(sale.total_amount),
                "payment_method": sale.payment_method,
                "customer_name": sale.customer.name if sale.customer else None,
            },
            "warnings": result.warnings,
            "message": "Sale recorded",
        }), 201
    except LedgerError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to record mobile sale")
        return jsonify({"error": "Internal server error"}), 500


@mobile_bp.post("/payments")
@require_api_key(PERM_CREATE_PAYMENT)
def create_payment_route():
    """Request body: {"customer_name", "amount", "payment_method", "payment_date"?}"""
    try:
        data = request.get_json(silent=True) or {}
        customer_name = data.get("customer_name")
        if not customer_name:
            raise ValidationError("customer_name is required")

        payment = payment_service.record_payment_by_customer_name(
            g.actor,
            customer_name=customer_name,
            amount=data.get("amount"),
            payment_method=data.get("payment_method"),
            payment_date=data.get("payment_date"),
        )
        return jsonify({
            "payment": {
                "id": payment.id,
                "amount": money_str(payment.amount),
                "customer_name": payment.customer.name,
                "remaining_debt": money_str(payment.customer.current_debt),
            },
            "message": "Payment recorded",
        }), 201
    except LedgerError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to record mobile payment")
        return jsonify({"error": "Internal server error"}), 500


@mobile_bp.patch("/products/<int:product_id>/stock")
@require_api_key(PERM_UPDATE_STOCK)
def update_stock_route(product_id: int):
    """Request body: {"stock": 12, "reason": "..."}; recorded as an adjustment movement."""
    try:
        data = request.get_json(silent=True) or {}
        adjustment = inventory_service.adjust_stock(
            g.actor,
            product_id=product_id,
            new_stock=data.get("stock"),
            reason=data.get("reason"),
        )
        product = adjustment.product
        return jsonify({
            "product": {
                "id": product.id,
                "name": product.name,
                "previous_stock": quantity_str(adjustment.previous_stock),
                "new_stock": quantity_str(product.current_stock),
            },
            "message": "Stock updated",
        }), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to update product stock")
        return jsonify({"error": "Internal server error"}), 500


@mobile_bp.get("/reports/sales")
@require_api_key(PERM_READ_REPORTS)
def sales_report_route():
    try:
        report = reporting_service.sales_report(
            start=request.args.get("start_date"),
            end=request.args.get("end_date"),
        )
        return jsonify(report), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to build sales report")
        return jsonify({"error": "Internal server error"}), 500

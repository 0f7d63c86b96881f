# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/backoffice/routes/products.py
from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth
from ..errors import LedgerError
from ..services import inventory_service, products_service

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
def list_products_route():
    """
    List products.

    Query params:
    - q: name substring or exact barcode
    - low_stock=true: only products at or below min_stock
    - include_inactive=true: also soft-deleted products
    """
    try:
        q = request.args.get("q")
        if q:
            products = products_service.search_products(q)
        elif request.args.get("low_stock") == "true":
            products = products_service.get_low_stock_products()
        else:
            include_inactive = request.args.get("include_inactive") == "true"
            products = products_service.list_products(include_inactive=include_inactive)
        return jsonify({"items": [p.to_dict() for p in products]}), 200
    except Exception:
        current_app.logger.exception("Failed to list products")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.post("")
@require_auth
def create_product_route():
    try:
        product = products_service.create_product(request.get_json(silent=True), actor=g.actor)
        return jsonify(product.to_dict()), 201
    except LedgerError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.get("/<int:product_id>")
@require_auth
def get_product_route(product_id: int):
    try:
        product = products_service.get_product(product_id)
        return jsonify(product.to_dict()), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to get product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.delete("/<int:product_id>")
@require_auth
def delete_product_route(product_id: int):
    """Soft delete; sales history keeps referencing the product."""
    try:
        product = products_service.deactivate_product(product_id)
        return jsonify(product.to_dict()), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to deactivate product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.get("/<int:product_id>/movements")
@require_auth
def product_movements_route(product_id: int):
    try:
        products_service.get_product(product_id)
        movements = inventory_service.get_stock_movements(
            product_id=product_id,
            movement_type=request.args.get("type"),
        )
        return jsonify({"items": [m.to_dict() for m in movements]}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to list stock movements")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.get("/purchase-suggestions")
@require_auth
def purchase_suggestions_route():
    """Reorder list for low-stock products, out-of-stock ones marked urgent."""
    try:
        suggestions = products_service.get_purchase_suggestions()
        return jsonify({"items": [s.to_dict() for s in suggestions]}), 200
    except Exception:
        current_app.logger.exception("Failed to build purchase suggestions")
        return jsonify({"error": "Internal server error"}), 500

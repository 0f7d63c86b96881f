# backend/backoffice/services/products_service.py
"""
Product directory.

Plain lookups and creation. Stock is never written here: new products start
with an opening stock recorded as an adjustment movement, and every later
change goes through the inventory adjuster.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy.exc import IntegrityError

from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Product
from ..money import quantity_str, to_quantity
from ..validation import ModelValidationPolicy, validate_payload
from .actor import Actor
from .inventory_service import MOVEMENT_ADJUSTMENT, apply_stock_delta
from .concurrency import unit_of_work

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "name", "barcode", "unit", "cost_price", "sale_price",
        "current_stock", "min_stock", "max_stock",
    },
    required_on_create={"name", "sale_price"},
)


def create_product(payload: dict, actor: Actor | None = None) -> Product:
    """
    Create a product from a client payload.

    current_stock in the payload is treated as opening stock and recorded
    through the adjuster so the movement trail starts at zero.
    """
    data = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY)

    if data["sale_price"] <= 0:
        raise ValidationError("sale_price must be a positive number")
    for field in ("cost_price", "min_stock", "max_stock"):
        if data.get(field) is not None and data[field] < 0:
            raise ValidationError(f"{field} must be >= 0")

    if not data.get("barcode"):
        data["barcode"] = None

    opening_stock = data.pop("current_stock", None) or 0
    if opening_stock < 0:
        raise ValidationError("current_stock must be >= 0")

    try:
        with unit_of_work():
            product = Product(current_stock=0, **data)
            db.session.add(product)
            db.session.flush()
            if opening_stock:
                apply_stock_delta(
                    product,
                    opening_stock,
                    movement_type=MOVEMENT_ADJUSTMENT,
                    reason="Opening stock",
                    actor=actor,
                )
    except IntegrityError:
        raise ConflictError("A product with this barcode already exists")
    return product


def get_product(product_id: int, *, require_active: bool = False) -> Product:
    product = db.session.get(Product, product_id)
    if product is None or (require_active and not product.is_active):
        raise NotFoundError(f"Product {product_id} not found")
    return product


def get_product_by_barcode(barcode: str) -> Product | None:
    return db.session.query(Product).filter_by(barcode=barcode, is_active=True).first()


def list_products(include_inactive: bool = False) -> list[Product]:
    q = db.session.query(Product)
    if not include_inactive:
        q = q.filter(Product.is_active.is_(True))
    return q.order_by(Product.name.asc(), Product.id.asc()).all()


def search_products(query: str) -> list[Product]:
    """Case-insensitive substring match on name or exact barcode."""
    term = (query or "").strip()
    if not term:
        return []
    return (
        db.session.query(Product)
        .filter(
            Product.is_active.is_(True),
            db.or_(Product.name.ilike(f"%{term}%"), Product.barcode == term),
        )
        .order_by(Product.name.asc(), Product.id.asc())
        .all()
    )


def get_low_stock_products() -> list[Product]:
    return (
        db.session.query(Product)
        .filter(Product.is_active.is_(True), Product.current_stock <= Product.min_stock)
        .order_by(Product.current_stock.asc(), Product.name.asc())
        .all()
    )


def deactivate_product(product_id: int) -> Product:
    """Soft delete: products referenced by sales are never removed."""
    product = get_product(product_id)
    product.is_active = False
    db.session.commit()
    return product


PRIORITY_URGENT = "urgent"
PRIORITY_NORMAL = "normal"


@dataclass
class PurchaseSuggestion:
    product: Product
    suggested_quantity: Decimal
    priority: str

    def to_dict(self) -> dict:
        return {
            "product": self.product.to_dict(),
            "suggested_quantity": quantity_str(self.suggested_quantity),
            "priority": self.priority,
        }


def get_purchase_suggestions() -> list[PurchaseSuggestion]:
    """
    Reorder list for products at or below min_stock.

    Refill up to max_stock when one is set, otherwise order twice min_stock.
    Out-of-stock products are urgent.
    """
    suggestions = []
    for product in get_low_stock_products():
        current = to_quantity(product.current_stock)
        max_stock = to_quantity(product.max_stock)
        if max_stock > 0:
            quantity = max(max_stock - current, Decimal("0"))
        else:
            quantity = to_quantity(product.min_stock) * 2
        suggestions.append(PurchaseSuggestion(
            product=product,
            suggested_quantity=to_quantity(quantity),
            priority=PRIORITY_URGENT if current <= 0 else PRIORITY_NORMAL,
        ))
    return suggestions

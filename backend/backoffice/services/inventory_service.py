# Overview: Inventory adjuster and stock adjustment operation.

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import Product, StockMovement
from ..money import to_quantity
from ..validation import parse_quantity
from .actor import Actor
from .concurrency import lock_for_update, run_with_retry, unit_of_work

"""
Inventory invariants (authoritative)

- Product.current_stock is a stored quantity (Numeric 10,3), changed only by
  apply_stock_delta() and always together with one StockMovement row.
- StockMovement is append-only; quantity is signed (negative = outflow).
- apply_stock_delta() does no validation and never commits: it must be
  called inside an open unit_of_work() by a coordinator that already checked
  the business rules against the locked product row.
"""

MOVEMENT_SALE = "sale"
MOVEMENT_ADJUSTMENT = "adjustment"

DEFAULT_ADJUSTMENT_REASON = "Adjustment from mobile assistant"


@dataclass
class StockAdjustment:
    product: Product
    previous_stock: Decimal
    movement: StockMovement


def apply_stock_delta(
    product: Product,
    delta: Decimal,
    *,
    movement_type: str,
    reason: str | None = None,
    reference_id: str | None = None,
    actor: Actor | None = None,
) -> StockMovement:
    """
    Add a signed delta to the product's stock and append the audit row.

    The UPDATE is version-checked at flush; a concurrent writer surfaces as
    StaleDataError from here.
    """
    delta = to_quantity(delta)
    product.current_stock = to_quantity(product.current_stock) + delta

    movement = StockMovement(
        product_id=product.id,
        movement_type=movement_type,
        quantity=delta,
        reason=reason,
        reference_id=reference_id,
        **(actor.stamps() if actor else {}),
    )
    db.session.add(movement)
    db.session.flush()
    return movement


def lock_products(product_ids) -> dict[int, Product]:
    """Load and lock products by id, in id order to keep lock order stable."""
    ids = sorted(set(product_ids))
    if not ids:
        return {}
    rows = lock_for_update(
        db.session.query(Product).filter(Product.id.in_(ids)).order_by(Product.id)
    ).all()
    return {p.id: p for p in rows}


def adjust_stock(
    actor: Actor,
    *,
    product_id: int,
    new_stock,
    reason: str | None = None,
) -> StockAdjustment:
    """
    Set a product's stock to a counted value.

    Recorded as an 'adjustment' movement of (new_stock - previous_stock).
    """
    target = parse_quantity(new_stock, "stock")
    if target < 0:
        raise ValidationError("stock cannot be negative")
    target = to_quantity(target)

    def _op():
        with unit_of_work():
            product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
            if not product:
                raise NotFoundError(f"Product {product_id} not found")

            previous = to_quantity(product.current_stock)
            movement = apply_stock_delta(
                product,
                target - previous,
                movement_type=MOVEMENT_ADJUSTMENT,
                reason=reason or DEFAULT_ADJUSTMENT_REASON,
                actor=actor,
            )
        return StockAdjustment(product=product, previous_stock=previous, movement=movement)

    return run_with_retry(_op)


def get_stock_movements(
    product_id: int | None = None,
    movement_type: str | None = None,
    limit: int = 200,
) -> list[StockMovement]:
    q = db.session.query(StockMovement)
    if product_id is not None:
        q = q.filter(StockMovement.product_id == product_id)
    if movement_type:
        q = q.filter(StockMovement.movement_type == movement_type)
    return q.order_by(StockMovement.created_at.desc(), StockMovement.id.desc()).limit(limit).all()

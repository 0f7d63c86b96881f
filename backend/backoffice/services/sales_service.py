"""
Sale Transaction Coordinator

WHY: A sale touches four kinds of rows (sale, items, product stock, customer
debt). They are written in one unit of work so a failure anywhere leaves no
sale, no items, no stock change and no debt change behind.

DESIGN PRINCIPLES:
- Validate eagerly: malformed input fails before any transaction opens
- Re-validate stock and customer against locked rows inside the unit
- Unit prices are snapshotted from the product at this moment
- Credit sales accrue debt through the debt ledger; nothing else does
"""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from flask import current_app

from ..errors import InsufficientStockError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Product, Sale, SaleItem
from ..money import line_total, to_money, to_quantity
from ..time_utils import today
from ..validation import normalize_choice, parse_date, parse_int_id, parse_quantity
from .actor import Actor
from .concurrency import run_with_retry, unit_of_work
from .customers_service import find_customer_by_name, get_customer
from .debt_service import apply_debt_delta, credit_headroom, lock_customer
from .inventory_service import MOVEMENT_SALE, apply_stock_delta, lock_products


# =============================================================================
# PAYMENT METHODS (CONSTANTS)
# =============================================================================

METHOD_CASH = "cash"
METHOD_TRANSFER = "transfer"
METHOD_CREDIT = "credit"
METHOD_CARD = "card"

VALID_SALE_METHODS = {METHOD_CASH, METHOD_TRANSFER, METHOD_CREDIT}

# Spanish codes sent by the web front end and the assistant
PAYMENT_METHOD_ALIASES = {
    "efectivo": METHOD_CASH,
    "transferencia": METHOD_TRANSFER,
    "fiado": METHOD_CREDIT,
    "tarjeta": METHOD_CARD,
}

WARNING_CREDIT_LIMIT_EXCEEDED = "credit_limit_exceeded"

MOBILE_SALE_NOTE = "Sale recorded from mobile assistant"


@dataclass(frozen=True)
class SaleLineRequest:
    product_id: int
    quantity: Decimal


@dataclass
class SaleResult:
    sale: Sale
    warnings: list[str] = field(default_factory=list)


def parse_sale_items(items) -> list[SaleLineRequest]:
    """Normalize the client item list; order is preserved."""
    if not isinstance(items, list) or not items:
        raise ValidationError("Sale must contain at least one item")

    lines = []
    for index, raw in enumerate(items):
        if not isinstance(raw, dict):
            raise ValidationError(f"items[{index}] must be an object")
        product_id = parse_int_id(raw.get("product_id"), f"items[{index}].product_id")
        quantity = to_quantity(parse_quantity(raw.get("quantity"), f"items[{index}].quantity"))
        if quantity <= 0:
            raise ValidationError(f"items[{index}].quantity must be a positive number")
        lines.append(SaleLineRequest(product_id=product_id, quantity=quantity))
    return lines


def _requested_by_product(lines: list[SaleLineRequest]) -> "OrderedDict[int, Decimal]":
    totals: OrderedDict[int, Decimal] = OrderedDict()
    for line in lines:
        totals[line.product_id] = totals.get(line.product_id, Decimal("0")) + line.quantity
    return totals


def _validate_stock(lines: list[SaleLineRequest], products: dict[int, Product]) -> None:
    """NotFound for unknown/inactive products, then stock sufficiency per product."""
    requested = _requested_by_product(lines)

    for product_id in requested:
        product = products.get(product_id)
        if product is None or not product.is_active:
            raise NotFoundError(f"Product {product_id} not found", details={"product_id": product_id})

    for product_id, quantity in requested.items():
        product = products[product_id]
        available = to_quantity(product.current_stock)
        if quantity > available:
            raise InsufficientStockError(product.id, product.name, quantity, available)


def _preflight(lines: list[SaleLineRequest], customer_id: int | None) -> None:
    # Unlocked read so known-bad requests never open a write transaction
    ids = {line.product_id for line in lines}
    products = {
        p.id: p for p in db.session.query(Product).filter(Product.id.in_(ids)).all()
    }
    _validate_stock(lines, products)
    if customer_id is not None:
        get_customer(customer_id, require_active=True)


def record_sale(
    actor: Actor,
    *,
    items,
    payment_method: str,
    sale_date: date | str | None = None,
    customer_id: int | None = None,
    notes: str | None = None,
) -> SaleResult:
    """
    Record a sale with its items, stock decrements and (for credit) debt accrual.

    Raises:
        ValidationError: empty/malformed items, bad method, credit without customer
        NotFoundError: unknown product or customer
        InsufficientStockError: requested quantity above current stock
        ConflictError: lost a concurrent update on every retry
    """
    lines = parse_sale_items(items)
    method = normalize_choice(payment_method, "payment_method", VALID_SALE_METHODS, PAYMENT_METHOD_ALIASES)
    day = parse_date(sale_date, "sale_date") or today()
    if customer_id is not None:
        customer_id = parse_int_id(customer_id, "customer_id")

    if method == METHOD_CREDIT and customer_id is None:
        raise ValidationError("customer_id is required for credit sales")

    _preflight(lines, customer_id)

    def _op():
        warnings: list[str] = []
        with unit_of_work():
            products = lock_products(line.product_id for line in lines)
            _validate_stock(lines, products)

            customer = None
            if customer_id is not None:
                customer = lock_customer(customer_id)
                # Deactivated customers take no new sales
                if customer is None or not customer.is_active:
                    raise NotFoundError(f"Customer {customer_id} not found", details={"customer_id": customer_id})

            priced = []
            for line in lines:
                product = products[line.product_id]
                unit_price = to_money(product.sale_price)
                priced.append((line, product, unit_price, line_total(line.quantity, unit_price)))
            total_amount = to_money(sum((p[3] for p in priced), Decimal("0")))

            sale = Sale(
                sale_date=day,
                customer_id=customer_id,
                payment_method=method,
                total_amount=total_amount,
                is_paid=method != METHOD_CREDIT,
                entry_method=actor.entry_method,
                notes=notes,
                **actor.stamps(),
            )
            db.session.add(sale)
            db.session.flush()

            for line, product, unit_price, total_price in priced:
                db.session.add(SaleItem(
                    sale_id=sale.id,
                    product_id=product.id,
                    quantity=line.quantity,
                    unit_price=unit_price,
                    total_price=total_price,
                ))
                apply_stock_delta(
                    product,
                    -line.quantity,
                    movement_type=MOVEMENT_SALE,
                    reason=f"Sale #{sale.id}",
                    reference_id=str(sale.id),
                    actor=actor,
                )

            if method == METHOD_CREDIT:
                headroom = credit_headroom(customer)
                if headroom is not None and total_amount > headroom:
                    # Advisory limit: recorded anyway, flagged to the caller
                    warnings.append(WARNING_CREDIT_LIMIT_EXCEEDED)
                    current_app.logger.warning(
                        "Credit sale %s takes customer %s past credit limit %s",
                        sale.id, customer.id, customer.credit_limit,
                    )
                apply_debt_delta(customer, total_amount)
            # A customer on a cash/transfer sale is stored for reference only;
            # the debt ledger is not touched.

        return SaleResult(sale=sale, warnings=warnings)

    return run_with_retry(_op)


def record_mobile_sale(
    actor: Actor,
    *,
    items,
    payment_method: str,
    customer_name: str | None = None,
    sale_date: date | str | None = None,
) -> SaleResult:
    """
    Mobile assistant variant: the customer is addressed by name.

    The name is resolved (first search match) only for credit sales.
    """
    method = normalize_choice(payment_method, "payment_method", VALID_SALE_METHODS, PAYMENT_METHOD_ALIASES)
    customer_id = None
    if method == METHOD_CREDIT:
        if not customer_name or not str(customer_name).strip():
            raise ValidationError("customer_name is required for credit sales")
        customer_id = find_customer_by_name(customer_name).id

    return record_sale(
        actor,
        items=items,
        payment_method=method,
        sale_date=sale_date,
        customer_id=customer_id,
        notes=MOBILE_SALE_NOTE,
    )


# =============================================================================
# QUERIES
# =============================================================================

def get_sale(sale_id: int) -> Sale:
    sale = db.session.get(Sale, sale_id)
    if sale is None:
        raise NotFoundError(f"Sale {sale_id} not found")
    return sale


def list_sales(
    start_date: date | None = None,
    end_date: date | None = None,
    customer_id: int | None = None,
) -> list[Sale]:
    q = db.session.query(Sale)
    if start_date:
        q = q.filter(Sale.sale_date >= start_date)
    if end_date:
        q = q.filter(Sale.sale_date <= end_date)
    if customer_id is not None:
        q = q.filter(Sale.customer_id == customer_id)
    return q.order_by(Sale.sale_date.desc(), Sale.created_at.desc(), Sale.id.desc()).all()

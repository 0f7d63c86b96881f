# backend/backoffice/services/customers_service.py
"""Customer directory. current_debt is read-only here; see debt_service."""
from __future__ import annotations

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import Customer
from ..validation import ModelValidationPolicy, validate_payload

CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={
        "name", "phone", "email", "address", "id_document", "credit_limit", "notes",
    },
    required_on_create={"name"},
)


def create_customer(payload: dict) -> Customer:
    data = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY)
    if data.get("credit_limit") is not None and data["credit_limit"] < 0:
        raise ValidationError("credit_limit must be >= 0")

    customer = Customer(current_debt=0, **data)
    db.session.add(customer)
    db.session.commit()
    return customer


def get_customer(customer_id: int, *, require_active: bool = False) -> Customer:
    customer = db.session.get(Customer, customer_id)
    if customer is None or (require_active and not customer.is_active):
        raise NotFoundError(f"Customer {customer_id} not found")
    return customer


def list_customers() -> list[Customer]:
    return (
        db.session.query(Customer)
        .filter(Customer.is_active.is_(True))
        .order_by(Customer.name.asc(), Customer.id.asc())
        .all()
    )


def search_customers(query: str) -> list[Customer]:
    """Case-insensitive substring match on name, phone or document."""
    term = (query or "").strip()
    if not term:
        return []
    like = f"%{term}%"
    return (
        db.session.query(Customer)
        .filter(
            Customer.is_active.is_(True),
            db.or_(
                Customer.name.ilike(like),
                Customer.phone.ilike(like),
                Customer.id_document.ilike(like),
            ),
        )
        .order_by(Customer.name.asc(), Customer.id.asc())
        .all()
    )


def find_customer_by_name(name: str) -> Customer:
    """First search match, as the mobile assistant addresses customers by name."""
    matches = search_customers(name)
    if not matches:
        raise NotFoundError(f"Customer '{name}' not found")
    return matches[0]


def get_customers_with_debt(limit: int | None = None) -> list[Customer]:
    q = (
        db.session.query(Customer)
        .filter(Customer.is_active.is_(True), Customer.current_debt > 0)
        .order_by(Customer.current_debt.desc(), Customer.name.asc())
    )
    if limit:
        q = q.limit(limit)
    return q.all()

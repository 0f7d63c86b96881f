# Overview: Debt ledger primitive for customer credit balances.

from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from ..models import Customer
from ..money import to_money
from .concurrency import lock_for_update

"""
Debt ledger invariants (authoritative)

- Customer.current_debt >= 0 at every commit.
- apply_debt_delta() is the only writer of current_debt. It does no
  validation and never commits; the sale and payment coordinators check
  the rules against the locked customer row inside their unit of work.
- Positive delta = credit sale accrued; negative delta = payment received.
"""


def lock_customer(customer_id: int) -> Customer | None:
    return lock_for_update(db.session.query(Customer).filter_by(id=customer_id)).first()


def apply_debt_delta(customer: Customer, delta: Decimal) -> Decimal:
    """Add a signed amount to the customer's debt; returns the new balance."""
    customer.current_debt = to_money(customer.current_debt) + to_money(delta)
    db.session.flush()
    return customer.current_debt


def credit_headroom(customer: Customer) -> Decimal | None:
    """Remaining advisory credit, or None when the customer has no limit."""
    limit = to_money(customer.credit_limit)
    if limit <= 0:
        return None
    return limit - to_money(customer.current_debt)

# Overview: Payment Transaction Coordinator for customer debt payments.

from __future__ import annotations

from datetime import date

from ..errors import NotFoundError, OverpaymentError
from ..extensions import db
from ..models import Payment
from ..money import to_money
from ..time_utils import today
from ..validation import normalize_choice, parse_date, parse_int_id, parse_positive_amount
from .actor import Actor
from .concurrency import run_with_retry, unit_of_work
from .customers_service import find_customer_by_name, get_customer
from .debt_service import apply_debt_delta, lock_customer
from .sales_service import (
    METHOD_CARD,
    METHOD_CASH,
    METHOD_TRANSFER,
    PAYMENT_METHOD_ALIASES,
)

"""
Payment invariants (authoritative)

- 0 < Payment.amount <= customer.current_debt at the moment of creation.
- A Payment row and its debt reduction commit together or not at all.
- The overpayment check runs twice: eagerly on an unlocked read (fast
  rejection) and again on the locked row inside the unit of work.
"""

VALID_PAYMENT_METHODS = {METHOD_CASH, METHOD_TRANSFER, METHOD_CARD}

MOBILE_PAYMENT_NOTE = "Payment recorded from mobile assistant"


def _check_overpayment(customer, amount) -> None:
    current_debt = to_money(customer.current_debt)
    if amount > current_debt:
        raise OverpaymentError(customer.id, amount, current_debt)


def record_payment(
    actor: Actor,
    *,
    customer_id,
    amount,
    payment_method: str,
    payment_date: date | str | None = None,
    notes: str | None = None,
) -> Payment:
    """
    Record a debt payment and reduce the customer's balance by the same amount.

    Validation order (first failure wins): amount, payment method, customer,
    overpayment.

    Raises:
        ValidationError: amount not a positive number, unknown method, bad date
        NotFoundError: customer does not exist
        OverpaymentError: amount exceeds the customer's current debt
        ConflictError: lost a concurrent update on every retry
    """
    value = to_money(parse_positive_amount(amount, "amount"))
    method = normalize_choice(payment_method, "payment_method", VALID_PAYMENT_METHODS, PAYMENT_METHOD_ALIASES)
    cid = parse_int_id(customer_id, "customer_id")
    day = parse_date(payment_date, "payment_date") or today()

    _check_overpayment(get_customer(cid), value)

    def _op():
        with unit_of_work():
            customer = lock_customer(cid)
            if customer is None:
                raise NotFoundError(f"Customer {cid} not found")
            _check_overpayment(customer, value)

            payment = Payment(
                customer_id=customer.id,
                amount=value,
                payment_date=day,
                payment_method=method,
                entry_method=actor.entry_method,
                notes=notes,
                **actor.stamps(),
            )
            db.session.add(payment)
            apply_debt_delta(customer, -value)
        return payment

    return run_with_retry(_op)


def record_payment_by_customer_name(
    actor: Actor,
    *,
    customer_name: str,
    amount,
    payment_method: str,
    payment_date: date | str | None = None,
) -> Payment:
    """Mobile assistant variant; the first name-search match receives the payment."""
    value = parse_positive_amount(amount, "amount")
    method = normalize_choice(payment_method, "payment_method", VALID_PAYMENT_METHODS, PAYMENT_METHOD_ALIASES)
    customer = find_customer_by_name(customer_name)
    return record_payment(
        actor,
        customer_id=customer.id,
        amount=value,
        payment_method=method,
        payment_date=payment_date,
        notes=MOBILE_PAYMENT_NOTE,
    )


def list_payments(
    start_date: date | None = None,
    end_date: date | None = None,
    customer_id: int | None = None,
) -> list[Payment]:
    q = db.session.query(Payment)
    if customer_id is not None:
        q = q.filter(Payment.customer_id == customer_id)
    if start_date:
        q = q.filter(Payment.payment_date >= start_date)
    if end_date:
        q = q.filter(Payment.payment_date <= end_date)
    return q.order_by(Payment.payment_date.desc(), Payment.id.desc()).all()

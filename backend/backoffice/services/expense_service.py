# backend/backoffice/services/expense_service.py
"""Expense recording. Expenses touch no stock or debt; closings consume them."""
from __future__ import annotations

from datetime import date

from ..errors import ValidationError
from ..extensions import db
from ..models import Expense
from ..money import to_money
from ..time_utils import today
from ..validation import normalize_choice, parse_date, parse_positive_amount
from .actor import Actor
from .concurrency import unit_of_work
from .sales_service import METHOD_CASH, METHOD_TRANSFER, PAYMENT_METHOD_ALIASES

VALID_EXPENSE_METHODS = {METHOD_CASH, METHOD_TRANSFER}


def record_expense(
    actor: Actor,
    *,
    description: str,
    amount,
    payment_method: str,
    expense_date: date | str | None = None,
    category: str | None = None,
    notes: str | None = None,
) -> Expense:
    if not isinstance(description, str) or not description.strip():
        raise ValidationError("description is required")
    value = to_money(parse_positive_amount(amount, "amount"))
    method = normalize_choice(payment_method, "payment_method", VALID_EXPENSE_METHODS, PAYMENT_METHOD_ALIASES)
    day = parse_date(expense_date, "expense_date") or today()

    with unit_of_work():
        expense = Expense(
            description=description.strip(),
            amount=value,
            expense_date=day,
            category=(category or "").strip() or None,
            payment_method=method,
            notes=notes,
            created_by_user_id=actor.user_id,
        )
        db.session.add(expense)
    return expense


def list_expenses(start_date: date | None = None, end_date: date | None = None) -> list[Expense]:
    q = db.session.query(Expense)
    if start_date:
        q = q.filter(Expense.expense_date >= start_date)
    if end_date:
        q = q.filter(Expense.expense_date <= end_date)
    return q.order_by(Expense.expense_date.desc(), Expense.id.desc()).all()

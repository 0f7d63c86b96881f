# Overview: Reconciliation Engine for the end-of-day cash closing.

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import CashClosing, Expense, Payment, Sale
from ..money import ZERO, money_str, to_money
from ..validation import parse_date, parse_money
from .actor import ENTRY_API, Actor
from .concurrency import unit_of_work
from .sales_service import METHOD_CARD, METHOD_CASH, METHOD_CREDIT, METHOD_TRANSFER

"""
Reconciliation invariants (authoritative)

- expected_cash      = cash sales + cash debt payments - cash expenses
- expected_transfers = transfer sales + transfer debt payments - transfer expenses
- Credit sales never contribute to expected cash or transfers.
- variance = actual - expected; status is 'discrepancy' when either
  |variance| exceeds CASH_CLOSING_TOLERANCE, else 'completed'.
- One closing per date (UNIQUE closing_date). Closings are never updated.
- closed_by_user_id comes from the authenticated actor only.
"""

STATUS_COMPLETED = "completed"
STATUS_DISCREPANCY = "discrepancy"


@dataclass(frozen=True)
class DailyTotals:
    """Aggregates of one business date over committed rows."""
    day: date
    cash_sales: Decimal = ZERO
    transfer_sales: Decimal = ZERO
    credit_sales: Decimal = ZERO
    cash_payments: Decimal = ZERO
    transfer_payments: Decimal = ZERO
    card_payments: Decimal = ZERO
    cash_expenses: Decimal = ZERO
    transfer_expenses: Decimal = ZERO
    sales_count: int = 0
    api_sales_count: int = 0

    @property
    def total_sales(self) -> Decimal:
        return self.cash_sales + self.transfer_sales

    @property
    def credit_given(self) -> Decimal:
        return self.credit_sales

    @property
    def debt_collected(self) -> Decimal:
        return self.cash_payments + self.transfer_payments + self.card_payments

    @property
    def total_expenses(self) -> Decimal:
        return self.cash_expenses + self.transfer_expenses

    @property
    def expected_cash(self) -> Decimal:
        return self.cash_sales + self.cash_payments - self.cash_expenses

    @property
    def expected_transfers(self) -> Decimal:
        return self.transfer_sales + self.transfer_payments - self.transfer_expenses

    def to_dict(self) -> dict:
        return {
            "date": self.day.isoformat(),
            "cash_sales": money_str(self.cash_sales),
            "transfer_sales": money_str(self.transfer_sales),
            "credit_given": money_str(self.credit_given),
            "total_sales": money_str(self.total_sales),
            "cash_payments": money_str(self.cash_payments),
            "transfer_payments": money_str(self.transfer_payments),
            "card_payments": money_str(self.card_payments),
            "debt_collected": money_str(self.debt_collected),
            "cash_expenses": money_str(self.cash_expenses),
            "transfer_expenses": money_str(self.transfer_expenses),
            "total_expenses": money_str(self.total_expenses),
            "expected_cash": money_str(self.expected_cash),
            "expected_transfers": money_str(self.expected_transfers),
            "sales_count": self.sales_count,
            "api_sales_count": self.api_sales_count,
        }


def _sums_by_method(amount_col, method_col, date_col, day: date) -> dict[str, Decimal]:
    rows = (
        db.session.query(method_col, db.func.sum(amount_col))
        .filter(date_col == day)
        .group_by(method_col)
        .all()
    )
    return {method: to_money(total) for method, total in rows}


def compute_daily_totals(day: date) -> DailyTotals:
    """Pure aggregation; safe to call inside or outside a unit of work."""
    sales = _sums_by_method(Sale.total_amount, Sale.payment_method, Sale.sale_date, day)
    payments = _sums_by_method(Payment.amount, Payment.payment_method, Payment.payment_date, day)
    expenses = _sums_by_method(Expense.amount, Expense.payment_method, Expense.expense_date, day)

    # Counts sales that brought money in; credit sales are reported as credit_given
    sales_count = (
        db.session.query(db.func.count(Sale.id))
        .filter(Sale.sale_date == day, Sale.payment_method != METHOD_CREDIT)
        .scalar()
    ) or 0
    api_sales_count = (
        db.session.query(db.func.count(Sale.id))
        .filter(Sale.sale_date == day, Sale.entry_method == ENTRY_API)
        .scalar()
    ) or 0

    return DailyTotals(
        day=day,
        cash_sales=sales.get(METHOD_CASH, ZERO),
        transfer_sales=sales.get(METHOD_TRANSFER, ZERO),
        credit_sales=sales.get(METHOD_CREDIT, ZERO),
        cash_payments=payments.get(METHOD_CASH, ZERO),
        transfer_payments=payments.get(METHOD_TRANSFER, ZERO),
        card_payments=payments.get(METHOD_CARD, ZERO),
        cash_expenses=expenses.get(METHOD_CASH, ZERO),
        transfer_expenses=expenses.get(METHOD_TRANSFER, ZERO),
        sales_count=sales_count,
        api_sales_count=api_sales_count,
    )


def closing_tolerance() -> Decimal:
    return to_money(Decimal(str(current_app.config.get("CASH_CLOSING_TOLERANCE", "1.00"))))


def reconciliation_status(cash_variance: Decimal, transfer_variance: Decimal, tolerance: Decimal) -> str:
    if abs(cash_variance) > tolerance or abs(transfer_variance) > tolerance:
        return STATUS_DISCREPANCY
    return STATUS_COMPLETED


def _parse_counted(value, field: str) -> Decimal:
    amount = to_money(parse_money(value, field))
    if amount < 0:
        raise ValidationError(f"{field} cannot be negative")
    return amount


def create_cash_closing(
    actor: Actor,
    *,
    closing_date,
    actual_cash,
    actual_transfers,
    notes: str | None = None,
) -> CashClosing:
    """
    Reconcile a business date against counted cash and transfers.

    Expected figures are always computed here from committed sales, payments
    and expenses; the caller supplies only what was counted.

    Raises:
        ValidationError: missing/invalid date or amounts, no authenticated user
        ConflictError: the date already has a closing
    """
    day = parse_date(closing_date, "closing_date")
    if day is None:
        raise ValidationError("closing_date is required")
    cash = _parse_counted(actual_cash, "actual_cash")
    transfers = _parse_counted(actual_transfers, "actual_transfers")
    if actor.user_id is None:
        raise ValidationError("Cash closing requires an authenticated user")

    if get_cash_closing_by_date(day) is not None:
        raise ConflictError(f"Cash closing already exists for {day.isoformat()}")

    tolerance = closing_tolerance()
    try:
        with unit_of_work():
            totals = compute_daily_totals(day)
            cash_variance = cash - totals.expected_cash
            transfer_variance = transfers - totals.expected_transfers
            status = reconciliation_status(cash_variance, transfer_variance, tolerance)

            closing = CashClosing(
                closing_date=day,
                expected_cash=totals.expected_cash,
                expected_transfers=totals.expected_transfers,
                actual_cash=cash,
                actual_transfers=transfers,
                cash_variance=cash_variance,
                transfer_variance=transfer_variance,
                total_sales=totals.total_sales,
                total_expenses=totals.total_expenses,
                debt_collected=totals.debt_collected,
                credit_given=totals.credit_given,
                reconciliation_status=status,
                notes=notes,
                closed_by_user_id=actor.user_id,
            )
            db.session.add(closing)
    except IntegrityError:
        raise ConflictError(f"Cash closing already exists for {day.isoformat()}")

    if status == STATUS_DISCREPANCY:
        current_app.logger.warning(
            "Cash closing %s has a discrepancy: cash variance %s, transfer variance %s",
            day.isoformat(), cash_variance, transfer_variance,
        )
    else:
        current_app.logger.info("Cash closing %s completed", day.isoformat())
    return closing


def preview_cash_closing(day: date) -> dict:
    """Expected figures for a date before counting, plus any existing closing."""
    existing = get_cash_closing_by_date(day)
    return {
        "totals": compute_daily_totals(day).to_dict(),
        "tolerance": money_str(closing_tolerance()),
        "existing_closing": existing.to_dict() if existing else None,
    }


def get_cash_closing(closing_id: int) -> CashClosing:
    closing = db.session.get(CashClosing, closing_id)
    if closing is None:
        raise NotFoundError(f"Cash closing {closing_id} not found")
    return closing


def get_cash_closing_by_date(day: date) -> CashClosing | None:
    return db.session.query(CashClosing).filter_by(closing_date=day).first()


def list_cash_closings(start_date: date | None = None, end_date: date | None = None) -> list[CashClosing]:
    q = db.session.query(CashClosing)
    if start_date:
        q = q.filter(CashClosing.closing_date >= start_date)
    if end_date:
        q = q.filter(CashClosing.closing_date <= end_date)
    return q.order_by(CashClosing.closing_date.desc()).all()

# Overview: Read-only dashboard and report aggregates; never writes.

from __future__ import annotations

from datetime import date

from sqlalchemy import func

from ..extensions import db
from ..models import Customer, Product, Sale
from ..money import ZERO, money_str, to_money
from ..validation import parse_date
from ..errors import ValidationError
from .closing_service import compute_daily_totals
from .sales_service import METHOD_CASH, METHOD_CREDIT, METHOD_TRANSFER


def daily_summary(day: date) -> dict:
    """
    Dashboard figures for one business date.

    total_sales excludes credit sales (money not yet received); those are
    reported separately as credit_given.
    """
    totals = compute_daily_totals(day)

    low_stock_count = (
        db.session.query(func.count(Product.id))
        .filter(Product.is_active.is_(True), Product.current_stock <= Product.min_stock)
        .scalar()
    ) or 0
    total_debt = (
        db.session.query(func.sum(Customer.current_debt))
        .filter(Customer.is_active.is_(True))
        .scalar()
    )

    return {
        "date": day.isoformat(),
        "total_sales": money_str(totals.total_sales),
        "credit_given": money_str(totals.credit_given),
        "debt_collected": money_str(totals.debt_collected),
        "total_expenses": money_str(totals.total_expenses),
        "sales_count": totals.sales_count,
        "api_sales_count": totals.api_sales_count,
        "low_stock_count": low_stock_count,
        "total_outstanding_debt": money_str(to_money(total_debt)),
    }


def sales_report(start: str | None = None, end: str | None = None) -> dict:
    """Totals by payment method over an inclusive date range; either bound may be open."""
    start_date = parse_date(start, "start_date")
    end_date = parse_date(end, "end_date")
    if start_date and end_date and start_date > end_date:
        raise ValidationError("start_date must be on or before end_date")

    query = db.session.query(
        Sale.payment_method,
        func.count(Sale.id),
        func.sum(Sale.total_amount),
    )
    if start_date:
        query = query.filter(Sale.sale_date >= start_date)
    if end_date:
        query = query.filter(Sale.sale_date <= end_date)

    by_method = {method: (count, to_money(total)) for method, count, total in query.group_by(Sale.payment_method).all()}

    def _total(method):
        return by_method.get(method, (0, ZERO))[1]

    total = sum((t for _, t in by_method.values()), ZERO)
    return {
        "period": {
            "start_date": start_date.isoformat() if start_date else None,
            "end_date": end_date.isoformat() if end_date else None,
        },
        "summary": {
            "total_sales": money_str(total),
            "sales_count": sum(c for c, _ in by_method.values()),
            "cash_sales": money_str(_total(METHOD_CASH)),
            "transfer_sales": money_str(_total(METHOD_TRANSFER)),
            "credit_sales": money_str(_total(METHOD_CREDIT)),
        },
    }

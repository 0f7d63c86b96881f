"""
Cash closing tests.

Verifies:
- Expected cash/transfers follow sales + debt payments - expenses per method
- Credit sales never count toward expected cash
- Status flips to discrepancy only outside the tolerance
- One closing per date, even when the pre-check is bypassed
"""

from datetime import date
from decimal import Decimal

import pytest

from backoffice.errors import ConflictError, NotFoundError, ValidationError
from backoffice.extensions import db
from backoffice.models import CashClosing
from backoffice.services import closing_service
from backoffice.services.closing_service import (
    STATUS_COMPLETED,
    STATUS_DISCREPANCY,
    compute_daily_totals,
    create_cash_closing,
)
from backoffice.services.expense_service import record_expense
from backoffice.services.payment_service import record_payment
from backoffice.services.sales_service import record_sale

DAY = date(2024, 5, 1)


@pytest.fixture
def busy_day(actor, make_product, make_customer):
    """
    Cash sales 1000, transfer sales 300, credit sale 400, cash debt payment 200,
    transfer debt payment 50, card debt payment 25, cash expenses 150,
    transfer expense 30.
    """
    product = make_product(sale_price="100.00", stock="100")
    customer = make_customer(debt="500.00")

    def sell(qty, method, **kw):
        record_sale(actor, items=[{"product_id": product.id, "quantity": qty}],
                    payment_method=method, sale_date=DAY, **kw)

    sell(6, "cash")
    sell(4, "cash")
    sell(3, "transfer")
    sell(4, "credit", customer_id=customer.id)

    record_payment(actor, customer_id=customer.id, amount="200", payment_method="cash", payment_date=DAY)
    record_payment(actor, customer_id=customer.id, amount="50", payment_method="transfer", payment_date=DAY)
    record_payment(actor, customer_id=customer.id, amount="25", payment_method="card", payment_date=DAY)

    record_expense(actor, description="Supplier", amount="100", payment_method="cash", expense_date=DAY)
    record_expense(actor, description="Cleaning", amount="50", payment_method="cash", expense_date=DAY)
    record_expense(actor, description="Internet", amount="30", payment_method="transfer", expense_date=DAY)

    # Another day's activity must not leak in
    record_sale(actor, items=[{"product_id": product.id, "quantity": 1}],
                payment_method="cash", sale_date=date(2024, 5, 2))
    return DAY


class TestDailyTotals:

    def test_expected_figures(self, busy_day):
        totals = compute_daily_totals(busy_day)

        assert totals.cash_sales == Decimal("1000.00")
        assert totals.transfer_sales == Decimal("300.00")
        assert totals.credit_given == Decimal("400.00")
        assert totals.debt_collected == Decimal("275.00")
        assert totals.total_expenses == Decimal("180.00")
        assert totals.total_sales == Decimal("1300.00")
        # 1000 + 200 - 150
        assert totals.expected_cash == Decimal("1050.00")
        # 300 + 50 - 30
        assert totals.expected_transfers == Decimal("320.00")
        assert totals.sales_count == 3

    def test_empty_day_is_all_zero(self, db_session):
        totals = compute_daily_totals(date(2030, 1, 1))
        assert totals.expected_cash == Decimal("0")
        assert totals.expected_transfers == Decimal("0")
        assert totals.sales_count == 0


class TestCreateCashClosing:

    def test_balanced_closing_is_completed(self, actor, busy_day):
        closing = create_cash_closing(
            actor,
            closing_date=busy_day,
            actual_cash="1050.00",
            actual_transfers="320.00",
        )

        assert closing.expected_cash == Decimal("1050.00")
        assert closing.expected_transfers == Decimal("320.00")
        assert closing.cash_variance == Decimal("0.00")
        assert closing.transfer_variance == Decimal("0.00")
        assert closing.total_sales == Decimal("1300.00")
        assert closing.total_expenses == Decimal("180.00")
        assert closing.debt_collected == Decimal("275.00")
        assert closing.credit_given == Decimal("400.00")
        assert closing.reconciliation_status == STATUS_COMPLETED
        assert closing.closed_by_user_id == actor.user_id

    def test_short_cash_is_discrepancy(self, actor, busy_day):
        closing = create_cash_closing(
            actor,
            closing_date=busy_day,
            actual_cash="1000.00",
            actual_transfers="320.00",
        )

        assert closing.cash_variance == Decimal("-50.00")
        assert closing.reconciliation_status == STATUS_DISCREPANCY

    def test_variance_equal_to_tolerance_is_completed(self, actor, busy_day):
        closing = create_cash_closing(
            actor,
            closing_date=busy_day,
            actual_cash="1051.00",
            actual_transfers="319.00",
        )
        assert closing.reconciliation_status == STATUS_COMPLETED

    def test_variance_just_over_tolerance_is_discrepancy(self, actor, busy_day):
        closing = create_cash_closing(
            actor,
            closing_date=busy_day,
            actual_cash="1050.00",
            actual_transfers="321.01",
        )
        assert closing.transfer_variance == Decimal("1.01")
        assert closing.reconciliation_status == STATUS_DISCREPANCY

    def test_tolerance_is_configurable(self, app, actor, busy_day, monkeypatch):
        monkeypatch.setitem(app.config, "CASH_CLOSING_TOLERANCE", Decimal("100"))
        closing = create_cash_closing(
            actor,
            closing_date=busy_day,
            actual_cash="1000.00",
            actual_transfers="320.00",
        )
        assert closing.reconciliation_status == STATUS_COMPLETED

    def test_closing_day_with_no_activity(self, actor):
        closing = create_cash_closing(actor, closing_date="2030-01-01", actual_cash=0, actual_transfers=0)
        assert closing.expected_cash == Decimal("0.00")
        assert closing.reconciliation_status == STATUS_COMPLETED

    def test_second_closing_for_same_date_conflicts(self, actor, busy_day):
        first = create_cash_closing(actor, closing_date=busy_day, actual_cash="1050", actual_transfers="320")

        with pytest.raises(ConflictError):
            create_cash_closing(actor, closing_date=busy_day, actual_cash="1", actual_transfers="1")

        assert db.session.query(CashClosing).count() == 1
        db.session.expire_all()
        stored = db.session.get(CashClosing, first.id)
        assert stored.actual_cash == Decimal("1050.00")
        assert stored.actual_transfers == Decimal("320.00")
        assert stored.cash_variance == Decimal("0.00")
        assert stored.reconciliation_status == STATUS_COMPLETED

    def test_unique_constraint_guards_when_precheck_misses(self, actor, busy_day, monkeypatch):
        """A concurrent closing that slipped past the read still loses on insert."""
        create_cash_closing(actor, closing_date=busy_day, actual_cash="1050", actual_transfers="320")
        monkeypatch.setattr(closing_service, "get_cash_closing_by_date", lambda day: None)

        with pytest.raises(ConflictError):
            create_cash_closing(actor, closing_date=busy_day, actual_cash="1", actual_transfers="1")

        assert db.session.query(CashClosing).count() == 1

    @pytest.mark.parametrize("field,value", [
        ("actual_cash", "abc"),
        ("actual_cash", "-1"),
        ("actual_cash", "1.001"),
        ("actual_transfers", None),
        ("closing_date", None),
        ("closing_date", "01/05/2024"),
    ])
    def test_invalid_input_rejected(self, actor, field, value):
        kwargs = {"closing_date": "2024-05-01", "actual_cash": "10", "actual_transfers": "10"}
        kwargs[field] = value
        with pytest.raises(ValidationError):
            create_cash_closing(actor, **kwargs)
        assert db.session.query(CashClosing).count() == 0


class TestClosingReads:

    def test_get_by_id_and_date(self, actor, busy_day):
        closing = create_cash_closing(actor, closing_date=busy_day, actual_cash="1050", actual_transfers="320")

        assert closing_service.get_cash_closing(closing.id).id == closing.id
        assert closing_service.get_cash_closing_by_date(busy_day).id == closing.id
        assert closing_service.get_cash_closing_by_date(date(2031, 1, 1)) is None

    def test_missing_id_not_found(self, db_session):
        with pytest.raises(NotFoundError):
            closing_service.get_cash_closing(999999)

    def test_list_is_newest_first_and_filtered(self, actor):
        for day in ("2024-05-01", "2024-05-03", "2024-05-02"):
            create_cash_closing(actor, closing_date=day, actual_cash=0, actual_transfers=0)

        closings = closing_service.list_cash_closings()
        assert [c.closing_date.isoformat() for c in closings] == ["2024-05-03", "2024-05-02", "2024-05-01"]

        filtered = closing_service.list_cash_closings(start_date=date(2024, 5, 2))
        assert len(filtered) == 2

    def test_preview_includes_existing_closing(self, actor, busy_day):
        preview = closing_service.preview_cash_closing(busy_day)
        assert preview["totals"]["expected_cash"] == "1050.00"
        assert preview["existing_closing"] is None

        create_cash_closing(actor, closing_date=busy_day, actual_cash="1050", actual_transfers="320")
        assert closing_service.preview_cash_closing(busy_day)["existing_closing"] is not None

"""
Concurrency tests for ledger writes.

A concurrent writer is simulated by bumping a row's version_id between the
coordinator's locked read and its write. The version-checked UPDATE then
matches no row, the unit is rolled back and re-run.

Verifies:
- A lost update is retried and applied exactly once
- Exhausted retries surface as ConflictError with nothing persisted
- Store failures outside the retry set become InternalError
- Stock and debt are re-checked against the locked row, not the pre-read
"""

from decimal import Decimal

import pytest
from sqlalchemy import text
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from backoffice.errors import ConflictError, InsufficientStockError, InternalError, OverpaymentError
from backoffice.extensions import db
from backoffice.models import Customer, Payment, Product, Sale, StockMovement
from backoffice.services import concurrency, payment_service, sales_service
from backoffice.services.concurrency import run_with_retry, unit_of_work
from backoffice.services.inventory_service import apply_stock_delta, lock_products
from backoffice.services.debt_service import apply_debt_delta, lock_customer


def _bump_version(table: str, row_id: int) -> None:
    db.session.execute(
        text(f"UPDATE {table} SET version_id = version_id + 1 WHERE id = :id"),
        {"id": row_id},
    )


class TestSaleRace:

    def test_lost_stock_update_is_retried_once(self, actor, make_product, monkeypatch):
        product = make_product(stock="10")
        calls = {"n": 0}

        def racing_stock_delta(product_row, delta, **kwargs):
            calls["n"] += 1
            if calls["n"] == 1:
                _bump_version("products", product_row.id)
            return apply_stock_delta(product_row, delta, **kwargs)

        monkeypatch.setattr(sales_service, "apply_stock_delta", racing_stock_delta)

        result = sales_service.record_sale(
            actor,
            items=[{"product_id": product.id, "quantity": 2}],
            payment_method="cash",
        )

        assert calls["n"] == 2
        assert db.session.query(Sale).count() == 1
        assert db.session.query(StockMovement).filter_by(movement_type="sale").count() == 1
        assert db.session.get(Product, product.id).current_stock == Decimal("8")
        assert result.sale.id is not None

    def test_exhausted_retries_raise_conflict(self, actor, make_product, monkeypatch):
        product = make_product(stock="10")

        def always_racing(product_row, delta, **kwargs):
            _bump_version("products", product_row.id)
            return apply_stock_delta(product_row, delta, **kwargs)

        monkeypatch.setattr(sales_service, "apply_stock_delta", always_racing)

        with pytest.raises(ConflictError):
            sales_service.record_sale(
                actor,
                items=[{"product_id": product.id, "quantity": 2}],
                payment_method="cash",
            )

        assert db.session.query(Sale).count() == 0
        assert db.session.query(StockMovement).filter_by(movement_type="sale").count() == 0
        assert db.session.get(Product, product.id).current_stock == Decimal("10")

    def test_lost_debt_update_on_credit_sale_is_retried(self, actor, make_product, make_customer, monkeypatch):
        product = make_product(sale_price="10.00")
        customer = make_customer()
        calls = {"n": 0}

        def racing_debt_delta(customer_row, delta):
            calls["n"] += 1
            if calls["n"] == 1:
                _bump_version("customers", customer_row.id)
            return apply_debt_delta(customer_row, delta)

        monkeypatch.setattr(sales_service, "apply_debt_delta", racing_debt_delta)

        sales_service.record_sale(
            actor,
            items=[{"product_id": product.id, "quantity": 3}],
            payment_method="credit",
            customer_id=customer.id,
        )

        assert calls["n"] == 2
        assert db.session.get(Customer, customer.id).current_debt == Decimal("30.00")
        assert db.session.query(Sale).count() == 1

    def test_stock_drained_after_preflight_is_rejected(self, actor, make_product, monkeypatch):
        product = make_product(stock="10")

        def drained_then_locked(product_ids):
            ids = list(product_ids)
            for product_id in ids:
                db.session.execute(
                    text("UPDATE products SET current_stock = 1 WHERE id = :id"),
                    {"id": product_id},
                )
            return lock_products(ids)

        monkeypatch.setattr(sales_service, "lock_products", drained_then_locked)

        with pytest.raises(InsufficientStockError):
            sales_service.record_sale(
                actor,
                items=[{"product_id": product.id, "quantity": 5}],
                payment_method="cash",
            )

        assert db.session.query(Sale).count() == 0
        assert db.session.query(StockMovement).filter_by(movement_type="sale").count() == 0
        assert db.session.get(Product, product.id).current_stock == Decimal("10")


class TestPaymentRace:

    def test_lost_debt_update_is_retried_once(self, actor, make_customer, monkeypatch):
        customer = make_customer(debt="100")
        calls = {"n": 0}

        def racing_debt_delta(customer_row, delta):
            calls["n"] += 1
            if calls["n"] == 1:
                _bump_version("customers", customer_row.id)
            return apply_debt_delta(customer_row, delta)

        monkeypatch.setattr(payment_service, "apply_debt_delta", racing_debt_delta)

        payment_service.record_payment(actor, customer_id=customer.id, amount="60", payment_method="cash")

        assert calls["n"] == 2
        assert db.session.query(Payment).count() == 1
        assert db.session.get(Customer, customer.id).current_debt == Decimal("40.00")

    def test_exhausted_retries_raise_conflict(self, actor, make_customer, monkeypatch):
        customer = make_customer(debt="100")

        def always_racing(customer_row, delta):
            _bump_version("customers", customer_row.id)
            return apply_debt_delta(customer_row, delta)

        monkeypatch.setattr(payment_service, "apply_debt_delta", always_racing)

        with pytest.raises(ConflictError):
            payment_service.record_payment(actor, customer_id=customer.id, amount="60", payment_method="cash")

        assert db.session.query(Payment).count() == 0
        assert db.session.get(Customer, customer.id).current_debt == Decimal("100.00")

    def test_debt_paid_down_after_preflight_is_rejected(self, actor, make_customer, monkeypatch):
        customer = make_customer(debt="100")

        def paid_down_then_locked(customer_id):
            db.session.execute(
                text("UPDATE customers SET current_debt = 10 WHERE id = :id"),
                {"id": customer_id},
            )
            return lock_customer(customer_id)

        monkeypatch.setattr(payment_service, "lock_customer", paid_down_then_locked)

        with pytest.raises(OverpaymentError):
            payment_service.record_payment(actor, customer_id=customer.id, amount="60.00", payment_method="cash")

        assert db.session.query(Payment).count() == 0
        assert db.session.get(Customer, customer.id).current_debt == Decimal("100.00")


class TestPrimitives:

    def test_operational_error_exhaustion_is_internal(self, app, monkeypatch):
        attempts = {"n": 0}

        def locked():
            attempts["n"] += 1
            raise OperationalError("UPDATE products", {}, Exception("database is locked"))

        with pytest.raises(InternalError):
            run_with_retry(locked, attempts=3, backoff_base=0)
        assert attempts["n"] == 3

    def test_success_after_transient_lock(self, app):
        attempts = {"n": 0}

        def flaky():
            attempts["n"] += 1
            if attempts["n"] < 2:
                raise OperationalError("UPDATE products", {}, Exception("database is locked"))
            return "ok"

        assert run_with_retry(flaky, attempts=3, backoff_base=0) == "ok"
        assert attempts["n"] == 2

    def test_other_store_errors_become_internal(self, db_session, make_product):
        product = make_product(stock="5")

        with pytest.raises(InternalError):
            with unit_of_work():
                db.session.get(Product, product.id).current_stock = Decimal("1")
                raise SQLAlchemyError("connection reset")

        assert db.session.get(Product, product.id).current_stock == Decimal("5")

    def test_retry_attempts_come_from_config(self, app, monkeypatch):
        monkeypatch.setitem(app.config, "LEDGER_RETRY_ATTEMPTS", 5)
        monkeypatch.setattr(concurrency.time, "sleep", lambda seconds: None)
        attempts = {"n": 0}

        def locked():
            attempts["n"] += 1
            raise OperationalError("UPDATE products", {}, Exception("database is locked"))

        with pytest.raises(InternalError):
            run_with_retry(locked)
        assert attempts["n"] == 5

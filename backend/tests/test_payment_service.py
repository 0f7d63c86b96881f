"""
Payment coordinator tests.

Verifies:
- A payment and its debt reduction are written together
- Overpayment is rejected and reports both amounts
- Validation order: amount, method, customer, overpayment
"""

from decimal import Decimal

import pytest

from backoffice.errors import NotFoundError, OverpaymentError, ValidationError
from backoffice.extensions import db
from backoffice.models import Customer, Payment
from backoffice.services import payment_service
from backoffice.services.actor import Actor
from backoffice.services.payment_service import record_payment
from backoffice.services.sales_service import record_sale


class TestRecordPayment:

    def test_partial_payment_reduces_debt(self, actor, make_customer):
        customer = make_customer(debt="500.00")

        payment = record_payment(
            actor,
            customer_id=customer.id,
            amount="200.00",
            payment_method="cash",
            payment_date="2024-05-02",
        )

        assert payment.amount == Decimal("200.00")
        assert payment.entry_method == "manual"
        assert payment.created_by_user_id == actor.user_id
        assert db.session.get(Customer, customer.id).current_debt == Decimal("300.00")

    def test_exact_payment_clears_debt(self, actor, make_customer):
        customer = make_customer(debt="120.50")

        record_payment(actor, customer_id=customer.id, amount="120.50", payment_method="transfer")

        assert db.session.get(Customer, customer.id).current_debt == Decimal("0.00")

    def test_card_and_alias_methods_accepted(self, actor, make_customer):
        customer = make_customer(debt="100")

        first = record_payment(actor, customer_id=customer.id, amount=10, payment_method="card")
        second = record_payment(actor, customer_id=customer.id, amount=10, payment_method="tarjeta")

        assert first.payment_method == "card"
        assert second.payment_method == "card"

    def test_credit_sale_then_payment_round_trip(self, actor, make_product, make_customer):
        product = make_product(sale_price="40.00")
        customer = make_customer()

        record_sale(
            actor,
            items=[{"product_id": product.id, "quantity": 3}],
            payment_method="credit",
            customer_id=customer.id,
        )
        record_payment(actor, customer_id=customer.id, amount="120.00", payment_method="cash")

        assert db.session.get(Customer, customer.id).current_debt == Decimal("0.00")


class TestPaymentRejections:

    def test_overpayment_rejected_with_both_amounts(self, actor, make_customer):
        customer = make_customer(debt="500.00")

        with pytest.raises(OverpaymentError) as exc_info:
            record_payment(actor, customer_id=customer.id, amount="600.00", payment_method="cash")

        err = exc_info.value
        assert "600.00" in err.message
        assert "500.00" in err.message
        assert err.details["amount"] == "600.00"
        assert err.details["current_debt"] == "500.00"
        assert err.http_status == 409

        assert db.session.get(Customer, customer.id).current_debt == Decimal("500.00")
        assert db.session.query(Payment).count() == 0

    def test_payment_with_no_debt_rejected(self, actor, make_customer):
        customer = make_customer()
        with pytest.raises(OverpaymentError):
            record_payment(actor, customer_id=customer.id, amount="0.01", payment_method="cash")

    @pytest.mark.parametrize("amount", [0, -5, "abc", None, "NaN", "0.001", "60.004"])
    def test_invalid_amount_rejected(self, actor, make_customer, amount):
        customer = make_customer(debt="100")
        with pytest.raises(ValidationError):
            record_payment(actor, customer_id=customer.id, amount=amount, payment_method="cash")
        assert db.session.query(Payment).count() == 0
        assert db.session.get(Customer, customer.id).current_debt == Decimal("100.00")

    def test_sub_cent_amount_is_not_rounded_into_full_payment(self, actor, make_customer):
        customer = make_customer(debt="200")
        with pytest.raises(ValidationError):
            record_payment(actor, customer_id=customer.id, amount="200.004", payment_method="cash")
        assert db.session.get(Customer, customer.id).current_debt == Decimal("200.00")
        assert db.session.query(Payment).count() == 0

    def test_credit_is_not_a_payment_method(self, actor, make_customer):
        customer = make_customer(debt="100")
        with pytest.raises(ValidationError):
            record_payment(actor, customer_id=customer.id, amount=10, payment_method="credit")

    def test_unknown_customer_not_found(self, actor):
        with pytest.raises(NotFoundError):
            record_payment(actor, customer_id=999999, amount=10, payment_method="cash")

    def test_amount_checked_before_customer(self, actor):
        # Both the amount and the customer are bad; the amount error wins
        with pytest.raises(ValidationError):
            record_payment(actor, customer_id=999999, amount=-1, payment_method="cash")

    def test_method_checked_before_customer(self, actor):
        with pytest.raises(ValidationError):
            record_payment(actor, customer_id=999999, amount=10, payment_method="cheque")

    def test_failure_after_insert_rolls_back(self, actor, make_customer, monkeypatch):
        customer = make_customer(debt="100")

        def broken_debt(customer_row, delta):
            raise RuntimeError("debt ledger unavailable")

        monkeypatch.setattr(payment_service, "apply_debt_delta", broken_debt)

        with pytest.raises(RuntimeError):
            record_payment(actor, customer_id=customer.id, amount=10, payment_method="cash")

        assert db.session.query(Payment).count() == 0
        assert db.session.get(Customer, customer.id).current_debt == Decimal("100.00")


class TestPaymentByCustomerName:

    def test_first_match_receives_payment(self, make_customer, make_api_key):
        api_key, _ = make_api_key()
        customer = make_customer(name="Lucia Fernandez", debt="80")

        payment = payment_service.record_payment_by_customer_name(
            Actor.for_api_key(api_key.id),
            customer_name="lucia",
            amount="30",
            payment_method="efectivo",
        )

        assert payment.customer_id == customer.id
        assert payment.payment_method == "cash"
        assert payment.entry_method == "api"
        assert payment.notes == payment_service.MOBILE_PAYMENT_NOTE
        assert db.session.get(Customer, customer.id).current_debt == Decimal("50.00")

    def test_unknown_name_not_found(self, make_api_key):
        api_key, _ = make_api_key()
        with pytest.raises(NotFoundError):
            payment_service.record_payment_by_customer_name(
                Actor.for_api_key(api_key.id),
                customer_name="Nobody",
                amount="30",
                payment_method="cash",
            )

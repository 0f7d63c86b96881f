from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from ..money import money_str
from ..time_utils import to_iso_date, to_utc_z


class Customer(db.Model):
    """
    Customer with a running credit ("fiado") balance.

    INVARIANT: current_debt >= 0. Only the debt ledger writes it, inside the
    same unit of work as the credit sale or payment that caused the change.

    credit_limit is advisory (0 = no limit); it is checked at sale time but
    not enforced by the table.
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.Index("ix_customers_active_name", "is_active", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    address = db.Column(db.Text, nullable=True)
    id_document = db.Column(db.String(64), nullable=True)

    credit_limit = db.Column(db.Numeric(10, 2), nullable=False, default=Decimal("0"))
    current_debt = db.Column(db.Numeric(10, 2), nullable=False, default=Decimal("0"))

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    notes = db.Column(db.Text, nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "email": self.email,
            "address": self.address,
            "id_document": self.id_document,
            "credit_limit": money_str(self.credit_limit),
            "current_debt": money_str(self.current_debt),
            "is_active": self.is_active,
            "notes": self.notes,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Payment(db.Model):
    """
    Debt payment from a customer.

    INVARIANT: 0 < amount <= customer.current_debt at creation. Created only
    by the payment coordinator, always paired with a debt reduction.
    """
    __tablename__ = "payments"
    __table_args__ = (
        db.Index("ix_payments_date_method", "payment_date", "payment_method"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)

    amount = db.Column(db.Numeric(10, 2), nullable=False)
    payment_date = db.Column(db.Date, nullable=False, index=True)
    payment_method = db.Column(db.String(16), nullable=False)  # cash, transfer, card
    entry_method = db.Column(db.String(16), nullable=False, default="manual")  # manual, api
    notes = db.Column(db.Text, nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    api_key_id = db.Column(db.Integer, db.ForeignKey("api_keys.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    customer = db.relationship("Customer", backref=db.backref("payments", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "amount": money_str(self.amount),
            "payment_date": to_iso_date(self.payment_date),
            "payment_method": self.payment_method,
            "entry_method": self.entry_method,
            "notes": self.notes,
            "created_by_user_id": self.created_by_user_id,
            "api_key_id": self.api_key_id,
            "created_at": to_utc_z(self.created_at),
        }

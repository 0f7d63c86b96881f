from __future__ import annotations

from ..extensions import db
from ..money import money_str
from ..time_utils import to_iso_date, to_utc_z


class Expense(db.Model):
    """
    Money paid out by the business.

    Touches no stock or debt; reduces the day's expected cash or transfer
    position in the cash closing.
    """
    __tablename__ = "expenses"
    __table_args__ = (
        db.Index("ix_expenses_date_method", "expense_date", "payment_method"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    description = db.Column(db.Text, nullable=False)
    amount = db.Column(db.Numeric(10, 2), nullable=False)
    expense_date = db.Column(db.Date, nullable=False, index=True)
    category = db.Column(db.String(64), nullable=True)  # suppliers, services, wages, ...
    payment_method = db.Column(db.String(16), nullable=False)  # cash, transfer
    notes = db.Column(db.Text, nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "description": self.description,
            "amount": money_str(self.amount),
            "expense_date": to_iso_date(self.expense_date),
            "category": self.category,
            "payment_method": self.payment_method,
            "notes": self.notes,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }


class CashClosing(db.Model):
    """
    End-of-day reconciliation record.

    IMMUTABLE: one row per closing_date, created once and never updated. The
    unique constraint is the authoritative guard against two closings for the
    same date; expected_* figures are always computed server-side and
    closed_by_user_id always comes from the authenticated actor.
    """
    __tablename__ = "cash_closings"
    __table_args__ = (
        db.UniqueConstraint("closing_date", name="uq_cash_closings_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    closing_date = db.Column(db.Date, nullable=False)

    expected_cash = db.Column(db.Numeric(10, 2), nullable=False)
    expected_transfers = db.Column(db.Numeric(10, 2), nullable=False)
    actual_cash = db.Column(db.Numeric(10, 2), nullable=False)
    actual_transfers = db.Column(db.Numeric(10, 2), nullable=False)
    cash_variance = db.Column(db.Numeric(10, 2), nullable=False)
    transfer_variance = db.Column(db.Numeric(10, 2), nullable=False)

    # Snapshots of the day's aggregates at closing time
    total_sales = db.Column(db.Numeric(10, 2), nullable=False)
    total_expenses = db.Column(db.Numeric(10, 2), nullable=False)
    debt_collected = db.Column(db.Numeric(10, 2), nullable=False)
    credit_given = db.Column(db.Numeric(10, 2), nullable=False)

    reconciliation_status = db.Column(db.String(16), nullable=False)  # completed, discrepancy
    notes = db.Column(db.Text, nullable=True)

    closed_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "closing_date": to_iso_date(self.closing_date),
            "expected_cash": money_str(self.expected_cash),
            "expected_transfers": money_str(self.expected_transfers),
            "actual_cash": money_str(self.actual_cash),
            "actual_transfers": money_str(self.actual_transfers),
            "cash_variance": money_str(self.cash_variance),
            "transfer_variance": money_str(self.transfer_variance),
            "total_sales": money_str(self.total_sales),
            "total_expenses": money_str(self.total_expenses),
            "debt_collected": money_str(self.debt_collected),
            "credit_given": money_str(self.credit_given),
            "reconciliation_status": self.reconciliation_status,
            "notes": self.notes,
            "closed_by_user_id": self.closed_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }

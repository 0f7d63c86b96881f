from __future__ import annotations

from ..extensions import db
from ..money import money_str, quantity_str
from ..time_utils import to_iso_date, to_utc_z


class Sale(db.Model):
    """
    Sale header.

    total_amount always equals the sum of its items' total_price. is_paid is
    False only for credit sales. Created only by the sale coordinator,
    together with its items and stock movements.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_date_method", "sale_date", "payment_method"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_date = db.Column(db.Date, nullable=False, index=True)

    # Required for credit sales; stored for reference otherwise
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)

    payment_method = db.Column(db.String(16), nullable=False)  # cash, transfer, credit
    total_amount = db.Column(db.Numeric(10, 2), nullable=False)
    is_paid = db.Column(db.Boolean, nullable=False, default=True)
    entry_method = db.Column(db.String(16), nullable=False, default="manual")  # manual, api
    notes = db.Column(db.Text, nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    api_key_id = db.Column(db.Integer, db.ForeignKey("api_keys.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    customer = db.relationship("Customer", backref=db.backref("sales", lazy=True))

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "sale_date": to_iso_date(self.sale_date),
            "customer_id": self.customer_id,
            "payment_method": self.payment_method,
            "total_amount": money_str(self.total_amount),
            "is_paid": self.is_paid,
            "entry_method": self.entry_method,
            "notes": self.notes,
            "created_by_user_id": self.created_by_user_id,
            "api_key_id": self.api_key_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class SaleItem(db.Model):
    """Line item; unit_price is a snapshot of the product price at sale time."""
    __tablename__ = "sale_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Numeric(10, 3), nullable=False)
    unit_price = db.Column(db.Numeric(10, 2), nullable=False)
    total_price = db.Column(db.Numeric(10, 2), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    sale = db.relationship(
        "Sale",
        backref=db.backref("items", lazy=True, order_by="SaleItem.id"),
    )
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "quantity": quantity_str(self.quantity),
            "unit_price": money_str(self.unit_price),
            "total_price": money_str(self.total_price),
            "created_at": to_utc_z(self.created_at),
        }

from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from ..money import money_str, quantity_str
from ..time_utils import to_utc_z


class Product(db.Model):
    """
    Sellable product with a stored stock quantity.

    current_stock is written only by the inventory adjuster, always inside the
    unit of work of the sale or adjustment that caused it. version_id turns
    every stock write into a conditional update.

    Products are never hard-deleted; deletion sets is_active=False.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("barcode", name="uq_products_barcode"),
        db.Index("ix_products_active_name", "is_active", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    barcode = db.Column(db.String(64), nullable=True)
    unit = db.Column(db.String(32), nullable=False, default="unit")  # unit, kg, liter

    cost_price = db.Column(db.Numeric(10, 2), nullable=True)
    sale_price = db.Column(db.Numeric(10, 2), nullable=False)

    # Numeric so weighed goods can be sold in fractional quantities
    current_stock = db.Column(db.Numeric(10, 3), nullable=False, default=Decimal("0"))
    min_stock = db.Column(db.Numeric(10, 3), nullable=False, default=Decimal("0"))
    max_stock = db.Column(db.Numeric(10, 3), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_low_stock(self) -> bool:
        return (self.current_stock or 0) <= (self.min_stock or 0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "barcode": self.barcode,
            "unit": self.unit,
            "cost_price": money_str(self.cost_price),
            "sale_price": money_str(self.sale_price),
            "current_stock": quantity_str(self.current_stock),
            "min_stock": quantity_str(self.min_stock),
            "max_stock": quantity_str(self.max_stock),
            "is_active": self.is_active,
            "is_low_stock": self.is_low_stock,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class StockMovement(db.Model):
    """
    Append-only audit row for every change to Product.current_stock.

    TYPES:
    - sale: outflow caused by a sale (quantity negative, reference_id = sale id)
    - adjustment: manual or mobile correction (quantity = new - previous)
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.Index("ix_stock_movements_product_created", "product_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    movement_type = db.Column(db.String(16), nullable=False, index=True)

    # Signed: negative for outflow
    quantity = db.Column(db.Numeric(10, 3), nullable=False)
    reason = db.Column(db.Text, nullable=True)
    reference_id = db.Column(db.String(64), nullable=True, index=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    api_key_id = db.Column(db.Integer, db.ForeignKey("api_keys.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product", backref=db.backref("stock_movements", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "movement_type": self.movement_type,
            "quantity": quantity_str(self.quantity),
            "reason": self.reason,
            "reference_id": self.reference_id,
            "created_by_user_id": self.created_by_user_id,
            "api_key_id": self.api_key_id,
            "created_at": to_utc_z(self.created_at),
        }

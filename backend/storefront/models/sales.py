from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z
from ..validation import format_cents


class Sale(db.Model):
    """
    Point-of-sale transaction.

    IMMUTABLE: Sales are written once and never updated. Stock decrements
    happen after the sale is committed, one product at a time.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_occurred_at", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    total_cents = db.Column(db.Integer, nullable=False)
    customer_name = db.Column(db.String(200), nullable=True)
    payment_method = db.Column(db.String(32), nullable=False)
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "total": format_cents(self.total_cents),
            "total_cents": self.total_cents,
            "customer_name": self.customer_name,
            "payment_method": self.payment_method,
            "items": [line.to_dict() for line in self.lines],
            "timestamp": to_utc_z(self.occurred_at),
            "created_at": to_utc_z(self.created_at),
        }


class SaleLine(db.Model):
    """Item snapshot on a sale, kept in the order it was rung up."""
    __tablename__ = "sale_lines"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False)
    product_id = db.Column(db.Integer, nullable=False, index=True)
    product_name = db.Column(db.String(200), nullable=True)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)

    sale = db.relationship(
        "Sale",
        backref=db.backref("lines", lazy=True, order_by="SaleLine.position"),
    )

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "name": self.product_name,
            "quantity": self.quantity,
            "price": format_cents(self.unit_price_cents),
            "unit_price_cents": self.unit_price_cents,
        }

from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z
from ..validation import format_cents


class Order(db.Model):
    """
    Customer order (storefront checkout or manual EFT transfer).

    WHY: total_cents is fixed at creation from the line snapshot and never
    recomputed. EFT orders are addressed by external_reference, the
    human-readable reference the customer quotes on their bank transfer.
    Status values are governed by services.order_status.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.UniqueConstraint("external_reference", name="uq_orders_external_reference"),
        db.Index("ix_orders_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # NULL for guest checkouts
    user_id = db.Column(db.String(128), nullable=True, index=True)

    total_cents = db.Column(db.Integer, nullable=False)
    status = db.Column(db.String(32), nullable=False, default="pending", index=True)
    payment_method = db.Column(db.String(32), nullable=True)
    external_reference = db.Column(db.String(64), nullable=True, index=True)
    payment_proof_ref = db.Column(db.String(512), nullable=True)

    # Contact snapshot: name, email, phone, address
    customer_info = db.Column(db.JSON, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "user_id": self.user_id,
            "total": format_cents(self.total_cents),
            "total_cents": self.total_cents,
            "status": self.status,
            "payment_method": self.payment_method,
            "order_reference": self.external_reference,
            "payment_proof_ref": self.payment_proof_ref,
            "customer_info": dict(self.customer_info or {}),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class OrderItem(db.Model):
    """Order line with the unit price captured at order time."""
    __tablename__ = "order_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)

    order = db.relationship(
        "Order",
        backref=db.backref("items", lazy=True, order_by="OrderItem.id"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "price": format_cents(self.unit_price_cents),
            "unit_price_cents": self.unit_price_cents,
        }

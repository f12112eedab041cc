from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z
from ..validation import format_cents


class Product(db.Model):
    """
    Catalog product.

    WHY: Prices are stored in cents; orders and sales copy the unit price at
    the time of purchase so later edits never rewrite history.
    Stock is clamped at zero on POS decrement.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_category_featured", "category", "featured"),
        db.CheckConstraint("stock >= 0", name="ck_products_stock_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=False)
    price_cents = db.Column(db.Integer, nullable=False)
    category = db.Column(db.String(64), nullable=False, index=True)
    image = db.Column(db.String(512), nullable=False)

    # Optional potency label (e.g., "22% THC")
    thc = db.Column(db.String(64), nullable=True)
    effects = db.Column(db.JSON, nullable=True)

    featured = db.Column(db.Boolean, nullable=False, default=False)
    in_stock = db.Column(db.Boolean, nullable=False, default=True)
    stock = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "price": format_cents(self.price_cents),
            "price_cents": self.price_cents,
            "category": self.category,
            "image": self.image,
            "thc": self.thc,
            "effects": list(self.effects or []),
            "featured": self.featured,
            "in_stock": self.in_stock,
            "stock": self.stock,
            "created_at": to_utc_z(self.created_at),
        }

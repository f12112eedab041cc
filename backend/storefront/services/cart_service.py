"""
Cart engine.

Two identity classes share one contract:
- persistent identities (session user ids) keep lines in the cart_items table
- the guest sentinel keeps lines in a GuestCartStore owned by the app
  (app.extensions["guest_cart"]), which lives as long as the process

A second add for the same (identity, product) merges by summing quantity.
"""

from __future__ import annotations

import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import CartItem, Product
from ..time_utils import utcnow, to_utc_z
from ..validation import NotFoundError, ValidationError, require_id, require_quantity
from .concurrency import lock_for_update, run_with_retry

GUEST_IDENTITY = "guest"
GUEST_LINE_PREFIX = "guest-"


@dataclass
class GuestCartLine:
    id: str
    product_id: int
    quantity: int
    created_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": GUEST_IDENTITY,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "created_at": to_utc_z(self.created_at),
        }


class GuestCartStore:
    """
    Process-local cart for the guest identity.

    Created once per app in create_app(); emptied by clear() or a restart.
    """

    def __init__(self):
        self._lines: dict[str, GuestCartLine] = {}
        self._lock = threading.Lock()

    def add(self, product_id: int, quantity: int) -> GuestCartLine:
        with self._lock:
            for line in self._lines.values():
                if line.product_id == product_id:
                    line.quantity += quantity
                    return line
            line = GuestCartLine(
                id=f"{GUEST_LINE_PREFIX}{uuid.uuid4().hex[:12]}",
                product_id=product_id,
                quantity=quantity,
            )
            self._lines[line.id] = line
            return line

    def lines(self) -> list[GuestCartLine]:
        with self._lock:
            return list(self._lines.values())

    def get(self, line_id: str) -> GuestCartLine | None:
        with self._lock:
            return self._lines.get(line_id)

    def set_quantity(self, line_id: str, quantity: int) -> GuestCartLine | None:
        with self._lock:
            line = self._lines.get(line_id)
            if line is not None:
                line.quantity = quantity
            return line

    def remove(self, line_id: str) -> None:
        with self._lock:
            self._lines.pop(line_id, None)

    def clear(self) -> None:
        with self._lock:
            self._lines.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._lines)


def is_guest(identity: str | None) -> bool:
    return not identity or identity == GUEST_IDENTITY


def _require_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError(f"Product {product_id} not found")
    return product


def add_line(identity: str, product_id, quantity=1, *, guest_cart: GuestCartStore) -> dict:
    """
    Add a product to the identity's cart, merging with an existing line.

    Raises:
        ValidationError: bad product_id or quantity
        NotFoundError: product does not exist
    """
    product_id = require_id(product_id, "product_id")
    quantity = require_quantity(quantity)
    _require_product(product_id)

    if is_guest(identity):
        return guest_cart.add(product_id, quantity).to_dict()

    def _op():
        existing = lock_for_update(
            db.session.query(CartItem).filter_by(user_id=identity, product_id=product_id)
        ).first()
        if existing:
            existing.quantity += quantity
            db.session.commit()
            return existing.to_dict()

        line = CartItem(user_id=identity, product_id=product_id, quantity=quantity)
        db.session.add(line)
        db.session.commit()
        return line.to_dict()

    try:
        return run_with_retry(_op)
    except IntegrityError:
        # Another request inserted the same (user, product) line first; merge into it
        db.session.rollback()
        current_app.logger.info("Cart insert raced for user=%s product=%s; merging", identity, product_id)
        return run_with_retry(_op)


def list_lines(identity: str, *, guest_cart: GuestCartStore) -> list[dict]:
    """
    Cart lines joined with their products.

    Raises:
        NotFoundError: a line references a product that has since been deleted
    """
    if is_guest(identity):
        raw = [line.to_dict() for line in guest_cart.lines()]
    else:
        raw = [
            line.to_dict()
            for line in db.session.query(CartItem)
            .filter_by(user_id=identity)
            .order_by(CartItem.id.asc())
            .all()
        ]

    product_ids = {line["product_id"] for line in raw}
    products = {
        p.id: p
        for p in db.session.query(Product).filter(Product.id.in_(product_ids)).all()
    } if product_ids else {}

    result = []
    for line in raw:
        product = products.get(line["product_id"])
        if product is None:
            raise NotFoundError(f"Product {line['product_id']} not found")
        result.append({**line, "product": product.to_dict()})
    return result


def update_quantity(line_id: str, quantity, *, guest_cart: GuestCartStore) -> dict:
    """
    Set a line's quantity.

    Raises:
        ValidationError: quantity below 1
        NotFoundError: no such line
    """
    quantity = require_quantity(quantity)

    if str(line_id).startswith(GUEST_LINE_PREFIX):
        line = guest_cart.set_quantity(str(line_id), quantity)
        if line is None:
            raise NotFoundError("Cart item not found")
        return line.to_dict()

    try:
        db_id = int(line_id)
    except (TypeError, ValueError):
        raise NotFoundError("Cart item not found")

    def _op():
        line = lock_for_update(db.session.query(CartItem).filter_by(id=db_id)).first()
        if line is None:
            raise NotFoundError("Cart item not found")
        line.quantity = quantity
        db.session.commit()
        return line.to_dict()

    return run_with_retry(_op)


def remove_line(line_id: str, *, guest_cart: GuestCartStore) -> None:
    """Remove a line; silently does nothing when it does not exist."""
    if str(line_id).startswith(GUEST_LINE_PREFIX):
        guest_cart.remove(str(line_id))
        return
    try:
        db_id = int(line_id)
    except (TypeError, ValueError):
        return
    db.session.query(CartItem).filter_by(id=db_id).delete(synchronize_session=False)
    db.session.commit()


def clear(identity: str, *, guest_cart: GuestCartStore, commit: bool = True) -> None:
    if is_guest(identity):
        guest_cart.clear()
        return
    db.session.query(CartItem).filter_by(user_id=identity).delete(synchronize_session=False)
    if commit:
        db.session.commit()


def coerce_identity(identity) -> str:
    if identity is None:
        return GUEST_IDENTITY
    identity = str(identity).strip()
    if not identity:
        return GUEST_IDENTITY
    if len(identity) > 128:
        raise ValidationError("identity exceeds max length 128")
    return identity

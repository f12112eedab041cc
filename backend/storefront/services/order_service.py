"""
Order ledger: storefront checkout.

Checkout runs as one transaction: the order, its lines and the clearing of
the persistent cart commit together or not at all. Unit prices come from the
client's cart snapshot and are stored on each line, so the order total never
follows later catalog price changes.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Order, OrderItem, Product
from ..validation import NotFoundError, ValidationError, parse_money_cents, require_id, require_quantity
from . import cart_service
from .cart_service import GuestCartStore, is_guest
from .concurrency import lock_for_update, run_with_retry
from .order_status import OrderStatus, apply_transition

CUSTOMER_INFO_FIELDS = ("name", "email", "phone", "address")


def normalize_customer_info(customer_info, *, require_name: bool = True) -> dict:
    """Keep the contact snapshot fields as trimmed strings."""
    if customer_info is None:
        customer_info = {}
    if not isinstance(customer_info, dict):
        raise ValidationError("customer_info must be an object")

    info = {}
    for key in CUSTOMER_INFO_FIELDS:
        value = customer_info.get(key)
        info[key] = "" if value is None else str(value).strip()
    if info["email"]:
        info["email"] = info["email"].lower()
    if require_name and not info["name"]:
        raise ValidationError("customer_info.name is required")
    return info


def parse_order_items(items, *, allow_empty: bool = False) -> list[tuple[int, int, int]]:
    """
    Validate [{product_id, quantity, price}, ...].

    Returns:
        List of (product_id, quantity, unit_price_cents)
    """
    if not isinstance(items, list):
        raise ValidationError("items must be a list")
    if not items and not allow_empty:
        raise ValidationError("items must not be empty")

    parsed = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationError(f"items[{index}] must be an object")
        product_id = require_id(item.get("product_id"), f"items[{index}].product_id")
        quantity = require_quantity(item.get("quantity"), f"items[{index}].quantity")
        unit_price_cents = parse_money_cents(item.get("price"), f"items[{index}].price")
        parsed.append((product_id, quantity, unit_price_cents))
    return parsed


def order_total_cents(lines: list[tuple[int, int, int]]) -> int:
    return sum(quantity * unit_price_cents for _, quantity, unit_price_cents in lines)


def place_order(identity: str, customer_info, items, *, guest_cart: GuestCartStore) -> Order:
    """
    Create an order from the caller's cart snapshot and empty the cart.

    Raises:
        ValidationError: malformed customer info or items
        NotFoundError: an item references a product that does not exist
    """
    info = normalize_customer_info(customer_info)
    lines = parse_order_items(items)
    total_cents = order_total_cents(lines)
    guest = is_guest(identity)

    def _op():
        product_ids = {product_id for product_id, _, _ in lines}
        found = {
            pid for (pid,) in db.session.query(Product.id).filter(Product.id.in_(product_ids)).all()
        }
        missing = sorted(product_ids - found)
        if missing:
            raise NotFoundError(f"Product {missing[0]} not found")

        order = Order(
            user_id=None if guest else identity,
            total_cents=total_cents,
            status=OrderStatus.PENDING,
            customer_info=info,
        )
        db.session.add(order)
        db.session.flush()

        for product_id, quantity, unit_price_cents in lines:
            db.session.add(OrderItem(
                order_id=order.id,
                product_id=product_id,
                quantity=quantity,
                unit_price_cents=unit_price_cents,
            ))

        if not guest:
            cart_service.clear(identity, guest_cart=guest_cart, commit=False)

        db.session.commit()
        return order

    try:
        order = run_with_retry(_op)
    except NotFoundError:
        db.session.rollback()
        raise

    if guest:
        guest_cart.clear()

    current_app.logger.info(
        "Order %s placed by %s: %d lines, total_cents=%d",
        order.id, "guest" if guest else identity, len(lines), total_cents,
    )
    return order


def list_orders(identity: str) -> list[Order]:
    """Orders owned by a persistent identity. Guests own none."""
    if is_guest(identity):
        return []
    return (
        db.session.query(Order)
        .filter_by(user_id=identity)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .all()
    )


def get_order(order_id: int) -> Order:
    order = db.session.get(Order, order_id)
    if order is None:
        raise NotFoundError("Order not found")
    return order


def update_order_status(order_id: int, status) -> Order:
    """
    Move an order through the status state machine.

    Raises:
        NotFoundError: unknown order
        StatusTransitionError: unknown status or forbidden move
    """
    def _op():
        order = lock_for_update(db.session.query(Order).filter_by(id=order_id)).first()
        if order is None:
            raise NotFoundError("Order not found")
        previous = order.status
        if apply_transition(order, status):
            db.session.commit()
            current_app.logger.info("Order %s status %s -> %s", order.id, previous, order.status)
        return order

    try:
        return run_with_retry(_op)
    except (ValueError, NotFoundError):
        db.session.rollback()
        raise

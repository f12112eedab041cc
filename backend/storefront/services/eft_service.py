"""
EFT order tracker.

Manual bank-transfer orders are addressed by the reference the customer
quotes on their transfer (orders.external_reference), not by order id.
They start in pending_payment, skip the cart, and move through the order
status state machine like every other order.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..extensions import db
from ..models import Order, OrderItem, Product
from ..validation import ConflictError, NotFoundError, ValidationError, parse_money_cents
from .concurrency import lock_for_update, run_with_retry
from .order_service import normalize_customer_info, parse_order_items
from .order_status import EFT_STATUSES, OrderStatus, apply_transition

PAYMENT_METHOD_EFT = "EFT"
MAX_REFERENCE_LENGTH = 64


def _require_reference(reference) -> str:
    if not isinstance(reference, str) or not reference.strip():
        raise ValidationError("order_reference is required")
    reference = reference.strip()
    if len(reference) > MAX_REFERENCE_LENGTH:
        raise ValidationError(f"order_reference exceeds max length {MAX_REFERENCE_LENGTH}")
    return reference


def create_eft_order(reference, customer_info, items, total) -> Order:
    """
    Create an EFT order awaiting payment.

    Item rows are written one at a time after the order commits; an item that
    fails (or names a missing product) is logged and skipped.

    Raises:
        ValidationError: malformed input
        ConflictError: reference already used
    """
    reference = _require_reference(reference)
    info = normalize_customer_info(customer_info, require_name=False)
    # Kept in the contact snapshot for clients that read it from there
    info["order_reference"] = reference
    lines = parse_order_items(items, allow_empty=True)
    total_cents = parse_money_cents(total, "total")

    if db.session.query(Order.id).filter_by(external_reference=reference).first():
        raise ConflictError(f"Order reference {reference} already exists")

    order = Order(
        user_id=None,
        total_cents=total_cents,
        status=OrderStatus.PENDING_PAYMENT,
        payment_method=PAYMENT_METHOD_EFT,
        external_reference=reference,
        customer_info=info,
    )
    db.session.add(order)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(f"Order reference {reference} already exists")

    for product_id, quantity, unit_price_cents in lines:
        try:
            if db.session.get(Product, product_id) is None:
                current_app.logger.warning(
                    "EFT order %s: product %s not found, item skipped", reference, product_id
                )
                continue
            db.session.add(OrderItem(
                order_id=order.id,
                product_id=product_id,
                quantity=quantity,
                unit_price_cents=unit_price_cents,
            ))
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            current_app.logger.exception("EFT order %s: failed to add item for product %s", reference, product_id)

    current_app.logger.info("EFT order %s created: total_cents=%d", reference, total_cents)
    return order


def get_eft_order(reference) -> Order:
    reference = _require_reference(reference)
    order = db.session.query(Order).filter_by(external_reference=reference).first()
    if order is None:
        raise NotFoundError("EFT order not found")
    return order


def set_status(reference, status) -> Order:
    """
    Move the referenced order to `status`.

    Raises:
        NotFoundError: no order with that reference
        StatusTransitionError: unknown status or forbidden move
    """
    reference = _require_reference(reference)

    def _op():
        order = lock_for_update(db.session.query(Order).filter_by(external_reference=reference)).first()
        if order is None:
            raise NotFoundError("EFT order not found")
        previous = order.status
        if apply_transition(order, status):
            db.session.commit()
            current_app.logger.info("EFT order %s status %s -> %s", reference, previous, order.status)
        return order

    try:
        return run_with_retry(_op)
    except (ValueError, NotFoundError):
        db.session.rollback()
        raise


def confirm_payment(reference, payment_proof: str | None = None) -> Order:
    """Customer reports the transfer: status becomes payment_submitted."""
    order = set_status(reference, OrderStatus.PAYMENT_SUBMITTED)
    if payment_proof:
        order.payment_proof_ref = str(payment_proof).strip()[:512]
        db.session.commit()
    return order


def list_eft_orders() -> list[Order]:
    return (
        db.session.query(Order)
        .filter(Order.status.in_(EFT_STATUSES))
        .order_by(Order.created_at.desc(), Order.id.desc())
        .all()
    )

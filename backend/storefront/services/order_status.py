"""
Order status state machine.

STATE MACHINE:
    pending            -> payment_confirmed | fulfilled | cancelled
    pending_payment    -> payment_submitted | payment_confirmed | cancelled
    payment_submitted  -> payment_confirmed | pending_payment | cancelled
    payment_confirmed  -> fulfilled | cancelled
    fulfilled, cancelled: terminal

pending is where storefront checkouts start; pending_payment is where EFT
orders start and payment_submitted means the customer has sent proof of
transfer. payment_submitted -> pending_payment covers rejected proof.
"""

from __future__ import annotations

from ..validation import ValidationError


class OrderStatus:
    PENDING = "pending"
    PENDING_PAYMENT = "pending_payment"
    PAYMENT_SUBMITTED = "payment_submitted"
    PAYMENT_CONFIRMED = "payment_confirmed"
    FULFILLED = "fulfilled"
    CANCELLED = "cancelled"


VALID_STATUSES = {
    OrderStatus.PENDING,
    OrderStatus.PENDING_PAYMENT,
    OrderStatus.PAYMENT_SUBMITTED,
    OrderStatus.PAYMENT_CONFIRMED,
    OrderStatus.FULFILLED,
    OrderStatus.CANCELLED,
}

# Statuses that make up the EFT work queue
EFT_STATUSES = (
    OrderStatus.PENDING_PAYMENT,
    OrderStatus.PAYMENT_SUBMITTED,
    OrderStatus.PAYMENT_CONFIRMED,
)

_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.PAYMENT_CONFIRMED, OrderStatus.FULFILLED, OrderStatus.CANCELLED},
    OrderStatus.PENDING_PAYMENT: {OrderStatus.PAYMENT_SUBMITTED, OrderStatus.PAYMENT_CONFIRMED, OrderStatus.CANCELLED},
    OrderStatus.PAYMENT_SUBMITTED: {OrderStatus.PAYMENT_CONFIRMED, OrderStatus.PENDING_PAYMENT, OrderStatus.CANCELLED},
    OrderStatus.PAYMENT_CONFIRMED: {OrderStatus.FULFILLED, OrderStatus.CANCELLED},
    OrderStatus.FULFILLED: set(),
    OrderStatus.CANCELLED: set(),
}


class StatusTransitionError(ValidationError):
    """Unknown status literal or a move the state machine forbids."""


def validate_status(status) -> str:
    if not isinstance(status, str) or status not in VALID_STATUSES:
        raise StatusTransitionError(
            f"Invalid status '{status}'. Must be one of: {', '.join(sorted(VALID_STATUSES))}"
        )
    return status


def can_transition(from_status: str, to_status: str) -> bool:
    validate_status(from_status)
    validate_status(to_status)
    if from_status == to_status:
        return True
    return to_status in _TRANSITIONS[from_status]


def apply_transition(order, to_status) -> bool:
    """
    Move order to to_status.

    Returns False when the order is already in that status (no-op).

    Raises:
        StatusTransitionError: unknown status or forbidden move
    """
    validate_status(to_status)
    if order.status == to_status:
        return False
    if not can_transition(order.status, to_status):
        raise StatusTransitionError(f"Cannot move order from {order.status} to {to_status}")
    order.status = to_status
    return True

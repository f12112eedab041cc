"""
Payment processor boundary.

Card payments are taken by an external processor. This module only defines
the call the storefront makes (create a payment intent for an amount and get
back a client handle) and the processor installed on the app.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from flask import current_app

from ..validation import ValidationError, parse_money_cents


class PaymentProcessorError(RuntimeError):
    """The payment processor is unavailable or rejected the call."""


@dataclass(frozen=True)
class PaymentIntent:
    id: str
    client_secret: str
    amount_cents: int
    currency: str
    metadata: dict = field(default_factory=dict)


class PaymentProcessor:
    """Interface for external payment processors."""

    def create_payment_intent(self, *, amount_cents: int, currency: str, metadata: dict) -> PaymentIntent:
        raise NotImplementedError


class UnconfiguredPaymentProcessor(PaymentProcessor):
    """Installed when no processor credentials are configured."""

    def create_payment_intent(self, *, amount_cents: int, currency: str, metadata: dict) -> PaymentIntent:
        raise PaymentProcessorError("Payment processing not available. Payment processor keys not configured.")


def create_payment_intent(processor: PaymentProcessor, amount, currency: str) -> PaymentIntent:
    """
    Ask the processor for a payment handle for `amount` (currency units).

    Raises:
        ValidationError: amount missing, negative or zero
        PaymentProcessorError: processor unavailable or failed
    """
    amount_cents = parse_money_cents(amount, "amount")
    if amount_cents <= 0:
        raise ValidationError("amount must be > 0")

    try:
        return processor.create_payment_intent(
            amount_cents=amount_cents,
            currency=currency,
            metadata={"source": "storefront"},
        )
    except PaymentProcessorError:
        raise
    except Exception as exc:
        current_app.logger.exception("Payment processor call failed")
        raise PaymentProcessorError(f"Error creating payment intent: {exc}") from exc

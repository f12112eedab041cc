"""
POS sales ledger.

A sale is committed before any stock moves. Each sold product is then
decremented on its own: a missing product or a failed update is logged and
skipped, and never undoes the sale or the other lines.
"""

from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Product, Sale, SaleLine
from ..time_utils import utc_day_bounds, utcnow
from ..validation import (
    NotFoundError,
    ValidationError,
    format_cents,
    parse_money_cents,
    require_id,
    require_quantity,
)
from .concurrency import lock_for_update, run_with_retry


def _flatten_pos_item(item: dict) -> dict:
    # Register clients send {"item": {"id", "price", "name"}, "quantity"}
    nested = item.get("item")
    if isinstance(nested, dict):
        return {
            "product_id": nested.get("id"),
            "price": nested.get("price"),
            "name": nested.get("name"),
            "quantity": item.get("quantity"),
        }
    return item


def parse_sale_items(items) -> list[dict]:
    if not isinstance(items, list) or not items:
        raise ValidationError("items must be a non-empty list")

    parsed = []
    for index, raw in enumerate(items):
        if not isinstance(raw, dict):
            raise ValidationError(f"items[{index}] must be an object")
        item = _flatten_pos_item(raw)
        name = item.get("name")
        parsed.append({
            "product_id": require_id(item.get("product_id"), f"items[{index}].product_id"),
            "quantity": require_quantity(item.get("quantity"), f"items[{index}].quantity"),
            "unit_price_cents": parse_money_cents(item.get("price"), f"items[{index}].price"),
            "product_name": str(name).strip()[:200] if name is not None else None,
        })
    return parsed


def _decrement_stock(product_id: int, quantity: int) -> tuple[int, int] | None:
    """Clamp-at-zero stock decrement. Returns (before, after) or None if the product is gone."""
    def _op():
        product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
        if product is None:
            return None
        before = product.stock or 0
        product.stock = max(0, before - quantity)
        db.session.commit()
        return before, product.stock

    return run_with_retry(_op)


def record_sale(
    total,
    payment_method,
    items,
    customer_name: str | None = None,
    occurred_at=None,
) -> Sale:
    """
    Record a POS sale and decrement stock for each sold product.

    Raises:
        ValidationError: malformed total, payment method or items
    """
    total_cents = parse_money_cents(total, "total")
    if not isinstance(payment_method, str) or not payment_method.strip():
        raise ValidationError("payment_method is required")
    lines = parse_sale_items(items)
    if customer_name is not None:
        customer_name = str(customer_name).strip() or None

    sale = Sale(
        total_cents=total_cents,
        customer_name=customer_name,
        payment_method=payment_method.strip().upper()[:32],
        occurred_at=occurred_at or utcnow(),
    )
    db.session.add(sale)
    db.session.flush()
    for position, line in enumerate(lines, start=1):
        db.session.add(SaleLine(sale_id=sale.id, position=position, **line))
    db.session.commit()

    current_app.logger.info(
        "POS sale %s recorded: total_cents=%d items=%d payment=%s customer=%s",
        sale.id, total_cents, len(lines), sale.payment_method, customer_name,
    )

    for line in lines:
        product_id = line["product_id"]
        try:
            result = _decrement_stock(product_id, line["quantity"])
        except SQLAlchemyError:
            db.session.rollback()
            current_app.logger.exception("Failed to update stock for product %s on sale %s", product_id, sale.id)
            continue
        if result is None:
            current_app.logger.warning("Sale %s: product %s not found, stock not updated", sale.id, product_id)
            continue
        before, after = result
        current_app.logger.info(
            "Updated product %s: stock %d -> %d (sold %d)", product_id, before, after, line["quantity"]
        )

    return sale


def get_sale(sale_id: int) -> Sale:
    sale = db.session.get(Sale, sale_id)
    if sale is None:
        raise NotFoundError("Sale not found")
    return sale


def list_sales(limit: int | None = None) -> list[Sale]:
    query = db.session.query(Sale).order_by(Sale.occurred_at.desc(), Sale.id.desc())
    if limit:
        query = query.limit(limit)
    return query.all()


def sales_stats(now=None) -> dict:
    """Totals for the UTC day containing `now`."""
    start, end = utc_day_bounds(now)
    total_cents, count = (
        db.session.query(func.coalesce(func.sum(Sale.total_cents), 0), func.count(Sale.id))
        .filter(Sale.occurred_at >= start, Sale.occurred_at < end)
        .one()
    )
    total_cents = int(total_cents or 0)
    average_cents = 0
    if count:
        average_cents = int((Decimal(total_cents) / count).quantize(Decimal(1), rounding=ROUND_HALF_UP))
    return {
        "today_total": format_cents(total_cents),
        "today_total_cents": total_cents,
        "today_count": count,
        "average_sale": format_cents(average_cents),
        "average_sale_cents": average_cents,
    }

# Overview: Flask API routes for the point-of-sale register; parses input and returns JSON responses.

from flask import Blueprint, current_app, jsonify, request

from ..services import sales_service
from ..validation import NotFoundError, ValidationError

pos_bp = Blueprint("pos", __name__, url_prefix="/api/pos")


@pos_bp.post("/sales")
def record_sale_route():
    """
    Record a register sale and decrement stock.

    Body: {"total", "payment_method", "customer_name"?,
           "items": [{"product_id", "quantity", "price", "name"}, ...]}
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({"error": "Invalid JSON payload"}), 400

    try:
        sale = sales_service.record_sale(
            total=data.get("total"),
            payment_method=data.get("payment_method") or data.get("paymentMethod"),
            items=data.get("items"),
            customer_name=data.get("customer_name") or data.get("customerName"),
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to process sale")
        return jsonify({"error": "Failed to process sale"}), 500

    return jsonify({
        "success": True,
        "sale_id": sale.id,
        "message": "Sale processed successfully and inventory updated",
    }), 201


@pos_bp.get("/sales")
def sales_stats_route():
    """Today's totals (UTC)."""
    try:
        return jsonify(sales_service.sales_stats()), 200
    except Exception:
        current_app.logger.exception("Failed to fetch sales stats")
        return jsonify({"error": "Failed to fetch sales stats"}), 500


@pos_bp.get("/sales/history")
def list_sales_route():
    limit = request.args.get("limit", type=int)
    sales = sales_service.list_sales(limit=limit)
    return jsonify([s.to_dict() for s in sales]), 200


@pos_bp.get("/sales/<int:sale_id>")
def get_sale_route(sale_id: int):
    try:
        sale = sales_service.get_sale(sale_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify(sale.to_dict()), 200

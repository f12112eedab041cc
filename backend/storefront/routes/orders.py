# Overview: Flask API routes for storefront orders; parses input and returns JSON responses.

from flask import Blueprint, current_app, jsonify, request

from ..decorators import current_identity, guest_cart, require_admin
from ..services import order_service
from ..validation import NotFoundError, ValidationError

orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


@orders_bp.post("")
def place_order_route():
    """
    Checkout.

    Body: {"customer_info": {name, email, phone, address},
           "items": [{"product_id", "quantity", "price"}, ...]}
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({"error": "Invalid JSON payload"}), 400

    try:
        order = order_service.place_order(
            current_identity(),
            data.get("customer_info"),
            data.get("items"),
            guest_cart=guest_cart(),
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to create order")
        return jsonify({"error": "Failed to create order"}), 500

    return jsonify(order.to_dict(include_items=True)), 201


@orders_bp.get("")
def list_orders_route():
    orders = order_service.list_orders(current_identity())
    return jsonify([o.to_dict() for o in orders]), 200


@orders_bp.get("/<int:order_id>")
def get_order_route(order_id: int):
    try:
        order = order_service.get_order(order_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404

    identity = current_identity()
    if order.user_id is not None and order.user_id != identity:
        return jsonify({"error": "Order not found"}), 404

    return jsonify(order.to_dict(include_items=True)), 200


@orders_bp.patch("/<int:order_id>/status")
@require_admin
def update_order_status_route(order_id: int):
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({"error": "Invalid JSON payload"}), 400
    try:
        order = order_service.update_order_status(order_id, data.get("status"))
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to update order status")
        return jsonify({"error": "Failed to update order status"}), 500
    return jsonify(order.to_dict()), 200

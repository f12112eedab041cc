# Overview: Flask API routes for the shopping cart; parses input and returns JSON responses.

"""
Cart routes.

The cart owner is the session's user id, or the guest sentinel when the
request carries no session identity.
"""

from flask import Blueprint, current_app, jsonify, request

from ..decorators import current_identity, guest_cart
from ..services import cart_service
from ..validation import NotFoundError, ValidationError

cart_bp = Blueprint("cart", __name__, url_prefix="/api/cart")


@cart_bp.get("")
def list_cart_route():
    try:
        lines = cart_service.list_lines(current_identity(), guest_cart=guest_cart())
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to fetch cart")
        return jsonify({"error": "Failed to fetch cart"}), 500
    return jsonify(lines), 200


@cart_bp.post("")
def add_to_cart_route():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({"error": "Invalid JSON payload"}), 400
    if not data.get("product_id"):
        return jsonify({"error": "Product ID is required"}), 400

    try:
        line = cart_service.add_line(
            current_identity(),
            data.get("product_id"),
            data.get("quantity", 1),
            guest_cart=guest_cart(),
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to add to cart")
        return jsonify({"error": "Failed to add to cart"}), 500

    return jsonify(line), 201


@cart_bp.put("/<line_id>")
def update_cart_item_route(line_id: str):
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({"error": "Invalid JSON payload"}), 400
    try:
        line = cart_service.update_quantity(line_id, data.get("quantity"), guest_cart=guest_cart())
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to update cart item")
        return jsonify({"error": "Failed to update cart item"}), 500
    return jsonify(line), 200


@cart_bp.delete("/<line_id>")
def remove_cart_item_route(line_id: str):
    try:
        cart_service.remove_line(line_id, guest_cart=guest_cart())
    except Exception:
        current_app.logger.exception("Failed to remove from cart")
        return jsonify({"error": "Failed to remove from cart"}), 500
    return "", 204


@cart_bp.delete("")
def clear_cart_route():
    try:
        cart_service.clear(current_identity(), guest_cart=guest_cart())
    except Exception:
        current_app.logger.exception("Failed to clear cart")
        return jsonify({"error": "Failed to clear cart"}), 500
    return "", 204

# Overview: Flask API routes for EFT (manual bank transfer) orders.

from flask import Blueprint, current_app, jsonify, request

from ..decorators import require_admin
from ..services import eft_service
from ..validation import ConflictError, NotFoundError, ValidationError

eft_bp = Blueprint("eft", __name__, url_prefix="/api/eft-orders")


@eft_bp.post("")
def create_eft_order_route():
    """
    Body: {"order_reference", "customer_info", "items": [...], "total_amount"}
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({"error": "Invalid JSON payload"}), 400

    try:
        order = eft_service.create_eft_order(
            data.get("order_reference"),
            data.get("customer_info"),
            data.get("items", []),
            data.get("total_amount"),
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to create EFT order")
        return jsonify({"error": "Failed to create EFT order"}), 500

    return jsonify({
        "success": True,
        "order_id": order.id,
        "order_reference": order.external_reference,
        "message": "Order created successfully. Please complete EFT payment.",
    }), 201


@eft_bp.post("/confirm-payment")
def confirm_payment_route():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({"error": "Invalid JSON payload"}), 400
    try:
        order = eft_service.confirm_payment(data.get("order_reference"), data.get("payment_proof"))
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to confirm EFT payment")
        return jsonify({"error": "Failed to confirm payment"}), 500

    return jsonify({
        "success": True,
        "status": order.status,
        "message": "Payment proof submitted. Order will be verified within 2-4 hours.",
    }), 200


@eft_bp.get("")
@require_admin
def list_eft_orders_route():
    orders = eft_service.list_eft_orders()
    return jsonify([o.to_dict(include_items=True) for o in orders]), 200


@eft_bp.get("/<reference>")
def get_eft_order_route(reference: str):
    try:
        order = eft_service.get_eft_order(reference)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify(order.to_dict(include_items=True)), 200


@eft_bp.put("/<reference>/status")
@require_admin
def set_eft_status_route(reference: str):
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({"error": "Invalid JSON payload"}), 400
    try:
        order = eft_service.set_status(reference, data.get("status"))
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to update EFT order status")
        return jsonify({"error": "Failed to update order status"}), 500

    return jsonify({
        "success": True,
        "status": order.status,
        "message": f"Order {reference} status updated to {order.status}",
    }), 200

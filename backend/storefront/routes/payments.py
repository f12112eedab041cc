# Overview: Flask API route that hands card payments to the external payment processor.

from flask import Blueprint, current_app, jsonify, request

from ..decorators import payment_processor
from ..services import payment_service
from ..services.payment_service import PaymentProcessorError
from ..validation import ValidationError

payments_bp = Blueprint("payments", __name__, url_prefix="/api")


@payments_bp.post("/create-payment-intent")
def create_payment_intent_route():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({"error": "Invalid JSON payload"}), 400
    try:
        intent = payment_service.create_payment_intent(
            payment_processor(),
            data.get("amount"),
            current_app.config["PAYMENT_CURRENCY"],
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except PaymentProcessorError as e:
        current_app.logger.error("Payment intent failed: %s", e)
        return jsonify({"error": str(e)}), 500

    return jsonify({"client_secret": intent.client_secret}), 200

# Overview: Flask API routes for catalog operations; parses input and returns JSON responses.

# backend/storefront/routes/products.py
"""
Catalog routes.

SECURITY: Reads are public. Writes, bulk clear and the demo refresh
require the admin secret.
"""
from flask import Blueprint, current_app, jsonify, request

from ..decorators import require_admin
from ..models import Product
from ..services import catalog_service
from ..services.catalog_service import PRODUCT_POLICY
from ..validation import (
    NotFoundError,
    ValidationError,
    enforce_rules_product,
    money_fields_to_cents,
    validate_payload,
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")
catalog_admin_bp = Blueprint("catalog_admin", __name__, url_prefix="/api/admin")

MONEY_FIELDS = {"price": "price_cents"}


def _parse_bool_arg(name: str):
    raw = request.args.get(name)
    if raw is None:
        return None
    return raw.strip().lower() in {"1", "true", "yes"}


def _validated_patch(partial: bool) -> dict:
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    payload = money_fields_to_cents(payload, MONEY_FIELDS)
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=partial)
    enforce_rules_product(patch)
    return patch


@products_bp.get("")
def list_products():
    """
    List products.

    Query params:
    - category: str (optional)
    - featured: bool (optional)
    - page: int (optional) - page number (1-indexed). If omitted, returns all items.
    - per_page: int (optional) - items per page (default 20, max 100)
    """
    try:
        return catalog_service.list_products(
            category=request.args.get("category") or None,
            featured=_parse_bool_arg("featured"),
            page=request.args.get("page", type=int),
            per_page=request.args.get("per_page", type=int),
        )
    except Exception:
        current_app.logger.exception("Failed to fetch products")
        return jsonify({"error": "Failed to fetch products"}), 500


@products_bp.get("/<int:product_id>")
def get_product_route(product_id: int):
    try:
        return catalog_service.get_product(product_id).to_dict()
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@products_bp.post("")
@require_admin
def create_product_route():
    try:
        patch = _validated_patch(partial=False)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    try:
        product = catalog_service.create_product(patch=patch)
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Failed to create product"}), 500

    return product.to_dict(), 201


@products_bp.route("/<int:product_id>", methods=["PATCH", "PUT"])
@require_admin
def update_product_route(product_id: int):
    try:
        patch = _validated_patch(partial=True)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    try:
        product = catalog_service.update_product(product_id=product_id, patch=patch)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404

    return product.to_dict(), 200


@products_bp.delete("/<int:product_id>")
@require_admin
def delete_product_route(product_id: int):
    try:
        catalog_service.delete_product(product_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return "", 204


@products_bp.delete("")
@require_admin
def clear_products_route():
    catalog_service.clear_products()
    return "", 204


@catalog_admin_bp.post("/force-refresh-products")
@require_admin
def force_refresh_products_route():
    """Replace the catalog with the demo products."""
    try:
        catalog_service.clear_products()
        created = catalog_service.seed_products()
    except Exception:
        current_app.logger.exception("Failed to force refresh products")
        return jsonify({"error": "Failed to force refresh products"}), 500
    return jsonify({"message": "Products force refreshed successfully", "created": created}), 200

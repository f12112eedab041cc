# Overview: Flask API routes for membership applications and member lookup.

# backend/storefront/routes/membership.py
"""
Membership routes.

SECURITY:
- Submitting an application is public.
- Listing, reading, reviewing and deleting applications require the admin secret.
- Member lookup/verify are public but only ever return approved members.
"""

from flask import Blueprint, current_app, jsonify, request

from ..decorators import require_admin
from ..services import membership_service
from ..validation import NotFoundError, ValidationError

membership_bp = Blueprint("membership", __name__, url_prefix="/api/membership-applications")
members_bp = Blueprint("members", __name__, url_prefix="/api")


@membership_bp.post("")
def submit_application_route():
    data = request.get_json(silent=True)
    try:
        application = membership_service.submit(data)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to create membership application")
        return jsonify({"error": "Failed to create membership application"}), 500
    return jsonify(application.to_dict()), 201


@membership_bp.get("")
@require_admin
def list_applications_route():
    try:
        applications = membership_service.list_applications(status=request.args.get("status"))
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify([a.to_dict() for a in applications]), 200


@membership_bp.get("/<int:application_id>")
@require_admin
def get_application_route(application_id: int):
    try:
        application = membership_service.get_application(application_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify(application.to_dict()), 200


@membership_bp.patch("/<int:application_id>/status")
@require_admin
def set_status_route(application_id: int):
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({"error": "Invalid JSON payload"}), 400
    try:
        application = membership_service.set_status(application_id, data.get("status"))
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to update membership application status")
        return jsonify({"error": "Failed to update membership application status"}), 500
    return jsonify(application.to_dict()), 200


@membership_bp.patch("/<int:application_id>")
@require_admin
def update_application_route(application_id: int):
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({"error": "Invalid JSON payload"}), 400
    try:
        application = membership_service.update_application(application_id, data)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to update membership application")
        return jsonify({"error": "Failed to update membership application"}), 500
    return jsonify(application.to_dict()), 200


@membership_bp.delete("/<int:application_id>")
@require_admin
def delete_application_route(application_id: int):
    membership_service.delete_application(application_id)
    return "", 204


@members_bp.get("/member-lookup")
def member_lookup_route():
    """Member portal: find an approved member by member number or email."""
    try:
        member = membership_service.lookup_member(request.args.get("q", ""))
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify(member.to_card_dict()), 200


@members_bp.get("/member-verify")
def member_verify_route():
    """Staff check at the counter: exact member number only."""
    member_number = request.args.get("member_number") or request.args.get("memberNumber", "")
    try:
        member = membership_service.verify_member(member_number)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify(member.to_card_dict()), 200

# Overview: Request decorators and per-request context helpers for API routes.

import hmac
from functools import wraps

from flask import current_app, g, jsonify, request, session

from .extensions import GUEST_CART_KEY, PAYMENT_PROCESSOR_KEY
from .services.cart_service import GUEST_IDENTITY, coerce_identity

ADMIN_HEADER = "Admin-Password"


def _admin_secret_matches(supplied: str | None) -> bool:
    expected = current_app.config.get("ADMIN_PASSWORD") or ""
    if not supplied or not expected:
        return False
    return hmac.compare_digest(supplied.encode("utf-8"), expected.encode("utf-8"))


def require_admin(f):
    """
    Require the shared admin secret in the Admin-Password header.

    SECURITY: Exact match against ADMIN_PASSWORD; returns 401 otherwise.
    This is a shared secret, not per-user authentication.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not _admin_secret_matches(request.headers.get(ADMIN_HEADER)):
            current_app.logger.warning(
                "Admin check failed for %s %s from %s", request.method, request.path, request.remote_addr
            )
            return jsonify({"error": "Unauthorized: Admin access required"}), 401
        g.is_admin = True
        return f(*args, **kwargs)

    return decorated_function


def current_identity() -> str:
    """
    Cart/order owner for this request: the session user id, else the guest sentinel.

    user_id is written into the signed session cookie by the upstream login
    service; this app only reads it.
    """
    return coerce_identity(session.get("user_id") or GUEST_IDENTITY)


def guest_cart():
    return current_app.extensions[GUEST_CART_KEY]


def payment_processor():
    return current_app.extensions[PAYMENT_PROCESSOR_KEY]

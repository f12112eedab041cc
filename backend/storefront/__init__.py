# backend/storefront/__init__.py
import time

from flask import Flask, g, request

from .config import Config, apply_storage_backend
from .extensions import db, migrate, GUEST_CART_KEY, PAYMENT_PROCESSOR_KEY


def create_app(config: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config:
        app.config.update(config)
    apply_storage_backend(app.config)

    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Per-process collaborators
    from .services.cart_service import GuestCartStore
    from .services.payment_service import UnconfiguredPaymentProcessor

    app.extensions[GUEST_CART_KEY] = GuestCartStore()
    app.extensions.setdefault(PAYMENT_PROCESSOR_KEY, UnconfiguredPaymentProcessor())

    if app.config["STORAGE_BACKEND"] == "memory":
        with app.app_context():
            db.create_all()

    # Register blueprints
    from .routes.system import system_bp
    from .routes.products import products_bp, catalog_admin_bp
    from .routes.cart import cart_bp
    from .routes.orders import orders_bp
    from .routes.pos import pos_bp
    from .routes.membership import membership_bp, members_bp
    from .routes.eft import eft_bp
    from .routes.payments import payments_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(catalog_admin_bp)
    app.register_blueprint(cart_bp)
    app.register_blueprint(orders_bp)
    app.register_blueprint(pos_bp)
    app.register_blueprint(membership_bp)
    app.register_blueprint(members_bp)
    app.register_blueprint(eft_bp)
    app.register_blueprint(payments_bp)

    @app.before_request
    def start_timer():
        g.request_started = time.perf_counter()

    @app.after_request
    def log_api_request(response):
        if request.path.startswith("/api"):
            started = g.get("request_started")
            elapsed_ms = (time.perf_counter() - started) * 1000 if started else 0.0
            app.logger.info("%s %s %s in %dms", request.method, request.path, response.status_code, elapsed_ms)
        return response

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin in app.config["CORS_ALLOWED_ORIGINS"]:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Access-Control-Allow-Credentials"] = "true"
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Content-Type, Authorization, Admin-Password"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,PATCH,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app

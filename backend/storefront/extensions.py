# Overview: Flask extension instances for database and migrations.

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

db = SQLAlchemy()
migrate = Migrate()

# Keys under app.extensions for per-process collaborators
GUEST_CART_KEY = "guest_cart"
PAYMENT_PROCESSOR_KEY = "payment_processor"

# backend/storefront/services/catalog_service.py
"""
Catalog service: product CRUD, bulk clear and demo seeding.

Callers pass patches that already went through validation.validate_payload
with PRODUCT_POLICY and enforce_rules_product.
"""
from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Product
from ..validation import ModelValidationPolicy, NotFoundError

PRODUCT_MUTABLE_FIELDS = {
    "name", "description", "price_cents", "category", "image",
    "thc", "effects", "featured", "in_stock", "stock",
}

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields=PRODUCT_MUTABLE_FIELDS,
    required_on_create={"name", "description", "price_cents", "category", "image"},
)

DEMO_PRODUCTS = [
    {
        "name": "Northern Lights",
        "description": "Classic indica with a sweet, earthy aroma.",
        "price_cents": 18000,
        "category": "flower",
        "image": "/images/northern-lights.jpg",
        "thc": "18-22%",
        "effects": ["relaxed", "sleepy", "happy"],
        "featured": True,
        "stock": 40,
    },
    {
        "name": "Durban Poison",
        "description": "Local sativa landrace, bright and energetic.",
        "price_cents": 20000,
        "category": "flower",
        "image": "/images/durban-poison.jpg",
        "thc": "17-24%",
        "effects": ["energetic", "uplifted", "creative"],
        "featured": True,
        "stock": 35,
    },
    {
        "name": "CBD Tincture 30ml",
        "description": "Full-spectrum CBD oil, 1000mg per bottle.",
        "price_cents": 45000,
        "category": "oils",
        "image": "/images/cbd-tincture.jpg",
        "thc": "<0.3%",
        "effects": ["calm", "focused"],
        "featured": False,
        "stock": 20,
    },
    {
        "name": "Glass Water Pipe",
        "description": "Borosilicate glass, 30cm, with ice catcher.",
        "price_cents": 65000,
        "category": "accessories",
        "image": "/images/water-pipe.jpg",
        "featured": False,
        "stock": 8,
    },
]


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def list_products(
    category: str | None = None,
    featured: bool | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """
    Product listing with optional filters and pagination.

    Returns:
        Dict with 'items', 'count', and pagination metadata if paginated.
    """
    base_query = db.session.query(Product)
    if category:
        base_query = base_query.filter(Product.category == category)
    if featured is not None:
        base_query = base_query.filter(Product.featured == featured)
    base_query = base_query.order_by(Product.name.asc(), Product.id.asc())

    if page is None:
        products = base_query.all()
        return {
            "items": [p.to_dict() for p in products],
            "count": len(products),
        }

    per_page = min(per_page or 20, 100)  # Default 20, max 100
    page = max(page, 1)

    total = base_query.count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1

    products = base_query.offset((page - 1) * per_page).limit(per_page).all()

    return {
        "items": [p.to_dict() for p in products],
        "count": len(products),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError("Product not found")
    return product


def create_product(*, patch: dict) -> Product:
    product = Product()
    apply_product_patch(product, patch)
    if product.stock is None:
        product.stock = 0
    db.session.add(product)
    db.session.commit()
    return product


def update_product(*, product_id: int, patch: dict) -> Product:
    product = get_product(product_id)
    apply_product_patch(product, patch)
    db.session.commit()
    return product


def delete_product(product_id: int) -> None:
    """Delete a product. Cart lines that reference it are left in place."""
    product = get_product(product_id)
    db.session.delete(product)
    db.session.commit()


def clear_products() -> int:
    deleted = db.session.query(Product).delete(synchronize_session=False)
    db.session.commit()
    current_app.logger.info("Cleared %d products from catalog", deleted)
    return deleted


def seed_products() -> int:
    """Insert the demo catalog, skipping names that already exist."""
    existing = {name for (name,) in db.session.query(Product.name).all()}
    created = 0
    for data in DEMO_PRODUCTS:
        if data["name"] in existing:
            continue
        db.session.add(Product(**data))
        created += 1
    db.session.commit()
    current_app.logger.info("Seeded %d demo products", created)
    return created

from flask import current_app, jsonify, request

from salesdesk.extensions import db
from salesdesk.models import Product
from salesdesk.services.codes import generate_product_slug, unique_code

from . import admin_bp
from .utils import parse_int

PRODUCT_STATUSES = ("active", "inactive")
TEXT_FIELDS = {
    "description": "description",
    "introduction": "introduction",
    "features": "features",
    "specifications": "specifications",
    "imageUrl": "image_url",
}


def _apply(product: Product, data: dict):
    if "name" in data:
        name = (data.get("name") or "").strip()
        if not name:
            return "name cannot be empty."
        product.name = name
    for key in ("price", "cost"):
        if key in data:
            value = parse_int(data.get(key))
            if value is None or value < 0:
                return f"{key} must be a non-negative whole number."
            setattr(product, key, value)
    if "status" in data:
        if data["status"] not in PRODUCT_STATUSES:
            return "status must be active or inactive."
        product.status = data["status"]
    for key, attr in TEXT_FIELDS.items():
        if key in data:
            setattr(product, attr, (data.get(key) or "").strip() or None)
    return None


@admin_bp.get("/products")
def products_index():
    status = (request.args.get("status") or "all").strip()
    stmt = db.select(Product).order_by(Product.id)
    if status in PRODUCT_STATUSES:
        stmt = stmt.where(Product.status == status)
    rows = db.session.execute(stmt).scalars()
    return jsonify({"ok": True, "products": [p.to_dict(include_cost=True) for p in rows]})


@admin_bp.post("/products")
def products_create():
    data = request.get_json(silent=True) or {}
    if not (data.get("name") or "").strip() or data.get("price") is None:
        return jsonify({"ok": False, "error": "name and price are required."}), 400

    product = Product(name="", price=0, cost=0, status="active")
    error = _apply(product, data)
    if error:
        return jsonify({"ok": False, "error": error}), 400
    try:
        product.slug = unique_code(Product.slug, generate_product_slug)
        db.session.add(product)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.exception("product create failed")
        return jsonify({"ok": False, "error": str(e)}), 500
    return jsonify({"ok": True, "product": product.to_dict(include_cost=True)}), 201


@admin_bp.put("/products/<int:product_id>")
def products_update(product_id: int):
    product = db.session.get(Product, product_id)
    if product is None:
        return jsonify({"ok": False, "error": "Product not found."}), 404

    data = request.get_json(silent=True) or {}
    error = _apply(product, data)
    if error:
        db.session.rollback()
        return jsonify({"ok": False, "error": error}), 400
    if not product.slug:
        product.slug = unique_code(Product.slug, generate_product_slug)
    db.session.commit()
    return jsonify({"ok": True, "product": product.to_dict(include_cost=True)})

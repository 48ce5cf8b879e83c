# Overview: Flask API routes for catalog operations; parses input and returns JSON responses.

"""
Product and variant routes.

SECURITY: All routes require authentication.
- Listing and reading products: any role (cashiers sell from the list)
- Creating, editing, deleting and stock adjustment: admin only
"""
from flask import Blueprint, request, current_app

from ..services import products_service
from ..validation import ValidationError, NotFoundError
from ..decorators import require_auth, require_role

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


def _product_and_variants(payload: dict) -> tuple[dict, list]:
    """Accept {"product": {...}, "variants": [...]} or a flat product with "variants"."""
    if "product" in payload:
        return payload.get("product") or {}, payload.get("variants") or []
    product = {k: v for k, v in payload.items() if k != "variants"}
    return product, payload.get("variants") or []


@products_bp.get("")
@require_auth
def list_products():
    """List all products with their variants."""
    items = products_service.list_products()
    return {"items": items, "count": len(items)}


@products_bp.get("/<int:product_id>")
@require_auth
def get_product_route(product_id: int):
    try:
        return products_service.get_product(product_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404


@products_bp.post("")
@require_auth
@require_role("admin")
def create_product_route():
    payload = request.get_json(silent=True) or {}
    product, variants = _product_and_variants(payload)

    try:
        product_id = products_service.create_product(product, variants)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to create product")
        return {"error": "Failed to create product"}, 500

    return products_service.get_product(product_id), 201


@products_bp.post("/bulk")
@require_auth
@require_role("admin")
def create_products_bulk_route():
    """
    Create many products at once (all-or-nothing).

    Body: {"products": [{"product": {...}, "variants": [...]}, ...]}
    """
    payload = request.get_json(silent=True) or {}
    entries = payload.get("products")

    try:
        ids = products_service.create_products_bulk(entries)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to bulk-create products")
        return {"error": "Failed to create products"}, 500

    return {"ids": ids, "count": len(ids)}, 201


@products_bp.put("/<int:product_id>")
@require_auth
@require_role("admin")
def update_product_route(product_id: int):
    """Update product fields; variants with an id are edited, others added. None are removed."""
    payload = request.get_json(silent=True) or {}
    product, variants = _product_and_variants(payload)
    product = dict(product, id=product_id)

    try:
        products_service.update_product(product, variants)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except Exception:
        current_app.logger.exception("Failed to update product %s", product_id)
        return {"error": "Failed to update product"}, 500

    return products_service.get_product(product_id), 200


@products_bp.delete("/<int:product_id>")
@require_auth
@require_role("admin")
def delete_product_route(product_id: int):
    try:
        products_service.delete_product(product_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except Exception:
        current_app.logger.exception("Failed to delete product %s", product_id)
        return {"error": "Failed to delete product"}, 500

    return {"ok": True}, 200


@products_bp.post("/variants/<int:variant_id>/adjust")
@require_auth
@require_role("admin")
def adjust_stock_route(variant_id: int):
    """Body: {"delta": int}. Returns the new stock_qty."""
    payload = request.get_json(silent=True) or {}
    if "delta" not in payload:
        return {"error": "delta is required"}, 400

    try:
        new_qty = products_service.adjust_stock(variant_id, payload["delta"])
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except Exception:
        current_app.logger.exception("Failed to adjust stock for variant %s", variant_id)
        return {"error": "Failed to adjust stock"}, 500

    return {"variant_id": variant_id, "stock_qty": new_qty}, 200

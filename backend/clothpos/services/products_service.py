# Overview: Service-layer operations for the catalog; products with their size/color variants and stock.

"""
Catalog Store

Products carry prices; variants carry stock. Every write here is one
transaction: either the product and all of its variant rows land, or nothing
does.

Product edits are additive: variants omitted from an update are kept, never
deleted. Deleting a product cascades to its variants while sale_items keep
their snapshot rows.
"""
from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Product, Variant
from ..validation import (
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    enforce_rules_product,
    enforce_rules_variant,
    to_int,
    validate_payload,
)

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "cost_price", "selling_price", "tax_rate", "category"},
    required_on_create={"name", "selling_price"},
    ignored_fields={"id", "created_at", "variants"},
)

VARIANT_POLICY = ModelValidationPolicy(
    writable_fields={"size", "color", "stock_qty"},
    required_on_create={"size", "color"},
    ignored_fields={"id", "product_id"},
)


def clean_product(product: dict, *, partial: bool) -> dict:
    patch = validate_payload(model=Product, payload=product, policy=PRODUCT_POLICY, partial=partial)
    enforce_rules_product(patch)
    return patch


def clean_variant(variant: dict, *, partial: bool) -> dict:
    patch = validate_payload(model=Variant, payload=variant, policy=VARIANT_POLICY, partial=partial)
    enforce_rules_variant(patch)
    return patch


def _clean_variants(variants, *, partial: bool) -> list[tuple[int | None, dict]]:
    if variants is None:
        return []
    if not isinstance(variants, list):
        raise ValidationError("variants must be a list")

    cleaned = []
    for variant in variants:
        if not isinstance(variant, dict):
            raise ValidationError("each variant must be an object")
        variant_id = variant.get("id")
        if variant_id is not None:
            variant_id = to_int(variant_id, "variant id")
            # Existing rows take patch semantics; new rows need size/color
            patch = clean_variant(variant, partial=partial)
        else:
            patch = clean_variant(variant, partial=False)
        cleaned.append((variant_id, patch))
    return cleaned


def _get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError("Product not found")
    return product


def list_products() -> list[dict]:
    """Every product in insertion order, variants nested under "variants"."""
    products = db.session.query(Product).order_by(Product.id.asc()).all()
    return [p.to_dict() for p in products]


def get_product(product_id: int) -> dict:
    return _get_product(product_id).to_dict()


def _add_product(patch: dict, variants: list[tuple[int | None, dict]]) -> Product:
    product = Product(**patch)
    db.session.add(product)
    db.session.flush()

    for _, vpatch in variants:
        db.session.add(Variant(product_id=product.id, **vpatch))
    return product


def create_product(product: dict, variants: list[dict] | None = None) -> int:
    """
    Insert a product and its variants atomically.

    Returns the new product id.

    Raises:
        ValidationError: before any write, for bad product or variant fields
    """
    patch = clean_product(product, partial=False)
    cleaned = _clean_variants(variants, partial=False)

    try:
        created = _add_product(patch, cleaned)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info(
        "Created product id=%s name=%s with %d variants", created.id, created.name, len(cleaned)
    )
    return created.id


def create_products_bulk(entries: list[dict]) -> list[int]:
    """
    Insert many products (each {"product": {...}, "variants": [...]}) all-or-nothing.

    Every entry is validated before the first insert.
    """
    if not isinstance(entries, list) or not entries:
        raise ValidationError("entries must be a non-empty list")

    prepared = []
    for index, entry in enumerate(entries):
        if not isinstance(entry, dict):
            raise ValidationError(f"entry {index} must be an object")
        try:
            patch = clean_product(entry.get("product"), partial=False)
            cleaned = _clean_variants(entry.get("variants"), partial=False)
        except ValidationError as e:
            raise ValidationError(f"entry {index}: {e}") from e
        prepared.append((patch, cleaned))

    try:
        ids = [_add_product(patch, cleaned).id for patch, cleaned in prepared]
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info("Bulk-created %d products", len(ids))
    return ids


def update_product(product: dict, variants: list[dict] | None = None) -> None:
    """
    Update product fields and upsert its variants in one transaction.

    Variants with an id are updated in place and must belong to this product;
    variants without one are inserted. Variants not mentioned are left alone.
    """
    if not isinstance(product, dict) or product.get("id") is None:
        raise ValidationError("product id is required")
    product_id = to_int(product["id"], "id")

    patch = clean_product(product, partial=True)
    cleaned = _clean_variants(variants, partial=True)

    try:
        existing = _get_product(product_id)
        for key, value in patch.items():
            setattr(existing, key, value)

        for variant_id, vpatch in cleaned:
            if variant_id is None:
                db.session.add(Variant(product_id=product_id, **vpatch))
                continue
            variant = db.session.get(Variant, variant_id)
            if variant is None or variant.product_id != product_id:
                raise ValidationError(f"Variant {variant_id} does not belong to product {product_id}")
            for key, value in vpatch.items():
                setattr(variant, key, value)

        db.session.commit()
    except Exception:
        db.session.rollback()
        raise


def adjust_stock(variant_id: int, delta) -> int:
    """stock_qty += delta (no floor). Returns the new quantity."""
    delta = to_int(delta, "delta")
    try:
        variant = db.session.get(Variant, variant_id)
        if variant is None:
            raise NotFoundError("Variant not found")
        variant.stock_qty = Variant.stock_qty + delta
        db.session.flush()
        db.session.refresh(variant)
        new_qty = variant.stock_qty
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return new_qty


def delete_product(product_id: int) -> None:
    """Delete a product and its variants. Sale items that reference them remain."""
    try:
        product = _get_product(product_id)
        db.session.delete(product)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    current_app.logger.info("Deleted product id=%s", product_id)

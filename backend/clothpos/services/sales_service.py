# Overview: Service-layer operations for sales; atomic checkout, receipt numbers and sale history.

"""
Sale Processor

process_sale() is the only writer of sales and sale_items. One call is one
transaction: the sale row, every sale item and every stock decrement commit
together or not at all.

The persisted total is always sum(qty * price_at_sale); a caller-supplied
total is only a cross-check.
"""
from __future__ import annotations

import secrets
import string
from decimal import Decimal

from flask import current_app
from sqlalchemy import update

from ..extensions import db
from ..models import Sale, SaleItem, Product, Variant, PAYMENT_METHODS
from ..validation import NotFoundError, ValidationError, to_int, to_money, CENT, MAX_PRICE

RECEIPT_ALPHABET = string.ascii_uppercase + string.digits
RECEIPT_SUFFIX_LENGTH = 6


class SaleError(Exception):
    """Raised for sale operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def _generate_receipt_number() -> str:
    prefix = current_app.config.get("RECEIPT_PREFIX", "INV")
    suffix = "".join(secrets.choice(RECEIPT_ALPHABET) for _ in range(RECEIPT_SUFFIX_LENGTH))
    return f"{prefix}-{suffix}"


def _unique_receipt_number() -> str:
    """Receipt number not yet used by any sale (case-insensitive)."""
    attempts = current_app.config.get("RECEIPT_NUMBER_ATTEMPTS", 5)
    for _ in range(attempts):
        candidate = _generate_receipt_number()
        taken = (
            db.session.query(Sale.id)
            .filter(Sale.receipt_number == candidate)
            .first()
        )
        if taken is None:
            return candidate
    raise SaleError("Could not allocate a unique receipt number", details={"attempts": attempts})


def _decrement_stock(variant_id: int, qty: int) -> int:
    """Subtract qty from a variant's stock. Returns the number of rows touched."""
    result = db.session.execute(
        update(Variant)
        .where(Variant.id == variant_id)
        .values(stock_qty=Variant.stock_qty - qty)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


def _clean_items(items) -> list[dict]:
    if not isinstance(items, list) or not items:
        raise SaleError("Sale must contain at least one item")

    cleaned = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise SaleError(f"Item {index} must be an object")
        try:
            line = {
                "product_id": to_int(item.get("product_id"), "product_id"),
                "variant_id": to_int(item.get("variant_id"), "variant_id"),
                "qty": to_int(item.get("qty"), "qty"),
                "cost_at_sale": to_money(item.get("cost_at_sale", 0), "cost_at_sale"),
                "price_at_sale": to_money(item.get("price_at_sale"), "price_at_sale"),
                "discount": to_money(item.get("discount") or 0, "discount"),
            }
        except ValidationError as e:
            raise SaleError(f"Item {index}: {e}", details={"item": index}) from e

        if line["qty"] <= 0:
            raise SaleError(f"Item {index}: qty must be a positive integer", details={"item": index})
        for field in ("cost_at_sale", "price_at_sale", "discount"):
            if line[field] < 0 or line[field] > MAX_PRICE:
                raise SaleError(f"Item {index}: {field} out of range", details={"item": index})
        cleaned.append(line)
    return cleaned


def compute_total(items: list[dict]) -> Decimal:
    total = sum((line["qty"] * line["price_at_sale"] for line in items), Decimal("0"))
    return total.quantize(CENT)


def _check_variant(line: dict) -> Variant:
    variant = db.session.get(Variant, line["variant_id"])
    if variant is None:
        raise SaleError(
            f"Variant {line['variant_id']} not found",
            details={"variant_id": line["variant_id"]},
        )
    if variant.product_id != line["product_id"]:
        raise SaleError(
            f"Variant {line['variant_id']} does not belong to product {line['product_id']}",
            details={"variant_id": line["variant_id"], "product_id": line["product_id"]},
        )
    return variant


def process_sale(sale: dict) -> dict:
    """
    Record a completed sale and take its items out of stock.

    Args:
        sale: {payment_method, items: [{product_id, variant_id, qty, cost_at_sale,
               price_at_sale, discount?}], total?, cashier_id?}

    Returns:
        {"id": sale id, "receipt_number": "INV-XXXXXX"}

    Raises:
        SaleError: invalid cart, total mismatch, unknown variant, or (when
            ALLOW_NEGATIVE_STOCK is off) insufficient stock. Nothing persists.
    """
    if not isinstance(sale, dict):
        raise SaleError("Invalid sale payload")

    items = _clean_items(sale.get("items"))

    payment_method = sale.get("payment_method")
    if payment_method not in PAYMENT_METHODS:
        raise SaleError(
            f"payment_method must be one of: {', '.join(PAYMENT_METHODS)}",
            details={"payment_method": payment_method},
        )

    total = compute_total(items)
    if sale.get("total") is not None:
        try:
            claimed = to_money(sale["total"], "total")
        except ValidationError as e:
            raise SaleError(str(e)) from e
        if claimed != total:
            raise SaleError(
                "Sale total does not match its items",
                details={"total": str(claimed), "computed_total": str(total)},
            )

    cashier_id = sale.get("cashier_id")
    if cashier_id is not None:
        try:
            cashier_id = to_int(cashier_id, "cashier_id")
        except ValidationError as e:
            raise SaleError(str(e)) from e

    allow_negative = current_app.config.get("ALLOW_NEGATIVE_STOCK", True)

    try:
        record = Sale(
            receipt_number=_unique_receipt_number(),
            total=total,
            payment_method=payment_method,
            cashier_id=cashier_id,
        )
        db.session.add(record)
        db.session.flush()

        # Quantities per variant across the whole cart (a variant may repeat)
        requested: dict[int, int] = {}
        for line in items:
            variant = _check_variant(line)
            requested[variant.id] = requested.get(variant.id, 0) + line["qty"]

        short = []
        for variant_id, qty in requested.items():
            on_hand = db.session.get(Variant, variant_id).stock_qty
            if on_hand - qty < 0:
                short.append({"variant_id": variant_id, "requested": qty, "on_hand": on_hand})

        if short and not allow_negative:
            raise SaleError("Insufficient stock", details={"items": short})

        for line in items:
            db.session.add(SaleItem(sale_id=record.id, **line))
            if _decrement_stock(line["variant_id"], line["qty"]) != 1:
                raise SaleError(
                    f"Stock update failed for variant {line['variant_id']}",
                    details={"variant_id": line["variant_id"]},
                )

        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    # Decrements above bypass the identity map
    db.session.expire_all()

    for entry in short:
        current_app.logger.warning(
            "Sale %s took variant %s below zero (requested %s, on hand %s)",
            record.receipt_number, entry["variant_id"], entry["requested"], entry["on_hand"],
        )
    current_app.logger.info(
        "Processed sale id=%s receipt=%s total=%s items=%d",
        record.id, record.receipt_number, total, len(items),
    )
    return {"id": record.id, "receipt_number": record.receipt_number}


def list_sales(sale_id: int | None = None) -> list[dict]:
    """All sales, newest first; a single-element (or empty) list when sale_id is given."""
    query = db.session.query(Sale)
    if sale_id is not None:
        query = query.filter(Sale.id == sale_id)
    sales = query.order_by(Sale.timestamp.desc(), Sale.id.desc()).all()
    return [s.to_dict() for s in sales]


def get_sale(sale_id: int) -> dict:
    sale = db.session.get(Sale, sale_id)
    if sale is None:
        raise NotFoundError("Sale not found")
    return sale.to_dict()


def get_sale_details(sale_id: int) -> list[dict]:
    """
    Items of a sale with product name and variant size/color.

    Outer joins: name/size/color are None once the product or variant is gone.
    """
    rows = (
        db.session.query(SaleItem, Product.name, Variant.size, Variant.color)
        .outerjoin(Product, Product.id == SaleItem.product_id)
        .outerjoin(Variant, Variant.id == SaleItem.variant_id)
        .filter(SaleItem.sale_id == sale_id)
        .order_by(SaleItem.id.asc())
        .all()
    )

    details = []
    for item, name, size, color in rows:
        data = item.to_dict()
        data.update({"name": name, "size": size, "color": color})
        details.append(data)
    return details

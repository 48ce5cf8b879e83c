from __future__ import annotations

from ..extensions import db
from clothpos.time_utils import to_utc_z, utcnow
from .catalog import money_out

PAYMENT_METHODS = ("cash", "mobile", "card")


class Sale(db.Model):
    """
    A completed sale. Written once by sales_service.process_sale, never updated.

    total always equals sum(qty * price_at_sale) over the sale's items.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_timestamp", "timestamp"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable receipt id (e.g., "INV-9A2B3C")
    receipt_number = db.Column(db.String(32, collation="NOCASE"), nullable=False, unique=True)

    timestamp = db.Column(db.DateTime, nullable=False, default=utcnow, server_default=db.func.now())
    total = db.Column(db.Numeric(12, 2), nullable=False)
    payment_method = db.Column(db.String(16), nullable=False)
    cashier_id = db.Column(db.Integer, nullable=True)

    items = db.relationship("SaleItem", backref="sale", order_by="SaleItem.id", lazy=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "receipt_number": self.receipt_number,
            "timestamp": to_utc_z(self.timestamp),
            "total": money_out(self.total),
            "payment_method": self.payment_method,
            "cashier_id": self.cashier_id,
        }


class SaleItem(db.Model):
    """
    Line of a sale with cost/price snapshots taken at sale time.

    product_id/variant_id are not foreign keys: history outlives catalog deletes.
    """
    __tablename__ = "sale_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, nullable=False, index=True)
    variant_id = db.Column(db.Integer, nullable=False, index=True)

    qty = db.Column(db.Integer, nullable=False)
    cost_at_sale = db.Column(db.Numeric(12, 2), nullable=False, default=0, server_default="0")
    price_at_sale = db.Column(db.Numeric(12, 2), nullable=False)
    discount = db.Column(db.Numeric(12, 2), nullable=True, default=0, server_default="0")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "variant_id": self.variant_id,
            "qty": self.qty,
            "cost_at_sale": money_out(self.cost_at_sale),
            "price_at_sale": money_out(self.price_at_sale),
            "discount": money_out(self.discount),
        }

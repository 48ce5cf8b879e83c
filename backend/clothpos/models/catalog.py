from __future__ import annotations

from ..extensions import db
from clothpos.time_utils import to_utc_z, utcnow


def money_out(value) -> float | None:
    """Serialize a Numeric column for JSON (currency units, 2 dp)."""
    if value is None:
        return None
    return float(value)


class Product(db.Model):
    """
    Product master data.

    Prices live on the product; stock lives on its variants (size/color).
    Deleting a product deletes its variants (ON DELETE CASCADE), while sale
    items keep their snapshot columns and plain product/variant ids.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_category", "category"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)

    cost_price = db.Column(db.Numeric(12, 2), nullable=False, default=0, server_default="0")
    selling_price = db.Column(db.Numeric(12, 2), nullable=False)
    tax_rate = db.Column(db.Numeric(12, 2), nullable=True, default=0, server_default="0")
    category = db.Column(db.String(128), nullable=True)

    created_at = db.Column(db.DateTime, nullable=True, default=utcnow, server_default=db.func.now())

    variants = db.relationship(
        "Variant",
        backref="product",
        order_by="Variant.id",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy=True,
    )

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} category={self.category!r}>"

    def to_dict(self, include_variants: bool = True) -> dict:
        data = {
            "id": self.id,
            "name": self.name,
            "cost_price": money_out(self.cost_price),
            "selling_price": money_out(self.selling_price),
            "tax_rate": money_out(self.tax_rate),
            "category": self.category,
            "created_at": to_utc_z(self.created_at),
        }
        if include_variants:
            data["variants"] = [v.to_dict() for v in self.variants]
        return data


class Variant(db.Model):
    """Size/color variant of a product. (product_id, size, color) is not unique."""
    __tablename__ = "variants"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(
        db.Integer,
        db.ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    size = db.Column(db.String(64), nullable=False)
    color = db.Column(db.String(64), nullable=False)

    # May go negative when ALLOW_NEGATIVE_STOCK is on
    stock_qty = db.Column(db.Integer, nullable=False, default=0, server_default="0")

    def __repr__(self) -> str:
        return f"<Variant id={self.id} product_id={self.product_id} {self.size}/{self.color} qty={self.stock_qty}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "size": self.size,
            "color": self.color,
            "stock_qty": self.stock_qty,
        }

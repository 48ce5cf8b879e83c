# Overview: Service-layer operations for reporting; read-only profit, trend and summary queries.

from __future__ import annotations

import csv
import io
from datetime import datetime
from decimal import Decimal
from typing import Iterable

from sqlalchemy import func

from ..extensions import db
from ..models import Sale, SaleItem, Product, Variant
from ..validation import CENT
from clothpos.time_utils import parse_iso_datetime


class ReportError(Exception):
    """Raised when report generation fails."""
    pass


def _parse_range(start: str | None, end: str | None) -> tuple[datetime | None, datetime | None]:
    try:
        start_dt = parse_iso_datetime(start) if start else None
        # A date-only end bound covers that whole day
        end_dt = parse_iso_datetime(end, end_of_day=True) if end else None
    except (TypeError, ValueError):
        raise ReportError("start and end must be ISO-8601 dates or datetimes")
    if start_dt and end_dt and start_dt > end_dt:
        raise ReportError("start must be before end")
    return start_dt, end_dt


# Stored timestamps mix "YYYY-MM-DD HH:MM:SS" (desktop app, CURRENT_TIMESTAMP)
# with SQLAlchemy's "...SS.ffffff"; both sides are compared in SQLite's
# millisecond layout so text order matches time order.
_SALE_STAMP = func.strftime("%Y-%m-%d %H:%M:%f", Sale.timestamp)


def _stamp(dt: datetime) -> str:
    return dt.strftime("%Y-%m-%d %H:%M:%S.") + f"{dt.microsecond // 1000:03d}"


def _in_range(query, start_dt: datetime | None, end_dt: datetime | None):
    if start_dt:
        query = query.filter(_SALE_STAMP >= _stamp(start_dt))
    if end_dt:
        query = query.filter(_SALE_STAMP <= _stamp(end_dt))
    return query


def _money(value) -> float:
    if value is None:
        return 0.0
    return float(Decimal(str(value)).quantize(CENT))


def profit_report(start: str | None, end: str | None) -> list[dict]:
    """
    Profit and revenue per product category for sales in [start, end].

    Items whose variant or product no longer exists drop out of the join.
    Categories without sales in the range are omitted.
    """
    start_dt, end_dt = _parse_range(start, end)

    revenue = func.sum(SaleItem.qty * SaleItem.price_at_sale)
    profit = func.sum(SaleItem.qty * (SaleItem.price_at_sale - SaleItem.cost_at_sale))

    query = (
        db.session.query(Product.category, profit, revenue)
        .select_from(Sale)
        .join(SaleItem, SaleItem.sale_id == Sale.id)
        .join(Variant, Variant.id == SaleItem.variant_id)
        .join(Product, Product.id == Variant.product_id)
    )
    rows = _in_range(query, start_dt, end_dt).group_by(Product.category).order_by(Product.category.asc()).all()

    return [
        {"category": category, "profit": _money(p), "revenue": _money(r)}
        for category, p, r in rows
    ]


def sales_trend(start: str | None, end: str | None) -> list[dict]:
    """Revenue per UTC calendar day, ascending; days without sales are absent."""
    start_dt, end_dt = _parse_range(start, end)

    day = func.strftime("%Y-%m-%d", Sale.timestamp)
    query = db.session.query(day.label("date"), func.sum(Sale.total))
    rows = _in_range(query, start_dt, end_dt).group_by(day).order_by(day.asc()).all()

    return [{"date": date, "revenue": _money(total)} for date, total in rows]


def sales_summary(start: str | None, end: str | None) -> dict:
    """Dashboard totals: sale count, items sold, revenue and profit."""
    start_dt, end_dt = _parse_range(start, end)

    sale_count, revenue = _in_range(
        db.session.query(func.count(Sale.id), func.sum(Sale.total)), start_dt, end_dt
    ).one()

    items_sold, profit = _in_range(
        db.session.query(
            func.sum(SaleItem.qty),
            func.sum(SaleItem.qty * (SaleItem.price_at_sale - SaleItem.cost_at_sale)),
        ).join(Sale, Sale.id == SaleItem.sale_id),
        start_dt,
        end_dt,
    ).one()

    return {
        "sale_count": int(sale_count or 0),
        "items_sold": int(items_sold or 0),
        "revenue": _money(revenue),
        "profit": _money(profit),
    }


def to_csv(rows: Iterable[dict], headers: dict[str, str] | None = None) -> str:
    """
    Render report rows as CSV text.

    headers maps row keys to column titles and fixes the column order; by
    default the keys of the first row are used as-is.
    """
    rows = list(rows)
    if headers is None:
        keys = list(rows[0].keys()) if rows else []
        headers = {k: k for k in keys}

    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(headers.values())
    for row in rows:
        writer.writerow(["" if row.get(k) is None else row.get(k) for k in headers])
    return buf.getvalue()

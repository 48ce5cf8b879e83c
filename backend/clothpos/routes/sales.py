# Overview: Flask API routes for sales operations; checkout, history and receipt printing.

from flask import Blueprint, request, current_app, g, Response

from ..services import sales_service, receipt_service, settings_service
from ..services.reporting_service import to_csv
from ..services.sales_service import SaleError
from ..validation import NotFoundError
from ..decorators import require_auth

sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")

SALES_CSV_HEADERS = {
    "id": "ID",
    "receipt_number": "Receipt",
    "timestamp": "Date",
    "total": "Total",
    "payment_method": "Payment Method",
    "cashier_id": "Cashier",
}


@sales_bp.post("")
@require_auth
def create_sale_route():
    """
    Complete a sale.

    Body: {payment_method, items: [{product_id, variant_id, qty, cost_at_sale,
    price_at_sale, discount?}], total?}. The cashier is the caller.
    """
    payload = request.get_json(silent=True) or {}
    payload = dict(payload, cashier_id=g.current_user.id)

    try:
        result = sales_service.process_sale(payload)
    except SaleError as e:
        return {"error": str(e), "details": e.details}, 400
    except Exception:
        current_app.logger.exception("Failed to process sale")
        return {"error": "Failed to process sale"}, 500

    return result, 201


@sales_bp.get("")
@require_auth
def list_sales_route():
    """
    Sales, newest first.

    Query params:
    - id: int (optional) - only that sale
    - format: "csv" (optional) - CSV download instead of JSON
    """
    sale_id = request.args.get("id", type=int)
    if request.args.get("id") and sale_id is None:
        return {"error": "id must be an integer"}, 400

    sales = sales_service.list_sales(sale_id)

    if request.args.get("format") == "csv":
        return Response(
            to_csv(sales, SALES_CSV_HEADERS),
            mimetype="text/csv",
            headers={"Content-Disposition": "attachment; filename=transactions.csv"},
        )
    return {"items": sales, "count": len(sales)}


@sales_bp.get("/<int:sale_id>")
@require_auth
def get_sale_route(sale_id: int):
    try:
        sale = sales_service.get_sale(sale_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return {"sale": sale, "items": sales_service.get_sale_details(sale_id)}


@sales_bp.post("/<int:sale_id>/print")
@require_auth
def print_sale_route(sale_id: int):
    """Print (or reprint) a committed sale's receipt. {"ok": false} when the printer fails."""
    try:
        snapshot = receipt_service.build_receipt(sale_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404

    settings = receipt_service.printer_settings(settings_service.get_settings_map())
    ok = receipt_service.print_receipt(snapshot, settings)
    return {"ok": ok}, 200

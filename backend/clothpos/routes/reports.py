# Overview: Flask API routes for reports; admin-only, read-only.

from flask import Blueprint, request, Response

from ..services import reporting_service
from ..services.reporting_service import ReportError
from ..decorators import require_auth, require_role

reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")

PROFIT_CSV_HEADERS = {"category": "Category", "revenue": "Revenue", "profit": "Profit"}


def _range() -> tuple[str | None, str | None]:
    return request.args.get("start"), request.args.get("end")


@reports_bp.get("/profit")
@require_auth
@require_role("admin")
def profit_report_route():
    """
    Profit and revenue per category.

    Query params: start, end (ISO-8601; date-only end covers the day), format=csv
    """
    start, end = _range()
    try:
        rows = reporting_service.profit_report(start, end)
    except ReportError as e:
        return {"error": str(e)}, 400

    if request.args.get("format") == "csv":
        return Response(
            reporting_service.to_csv(rows, PROFIT_CSV_HEADERS),
            mimetype="text/csv",
            headers={"Content-Disposition": "attachment; filename=profit_report.csv"},
        )
    return {"items": rows}


@reports_bp.get("/trend")
@require_auth
@require_role("admin")
def sales_trend_route():
    start, end = _range()
    try:
        return {"items": reporting_service.sales_trend(start, end)}
    except ReportError as e:
        return {"error": str(e)}, 400


@reports_bp.get("/summary")
@require_auth
@require_role("admin")
def sales_summary_route():
    start, end = _range()
    try:
        return reporting_service.sales_summary(start, end)
    except ReportError as e:
        return {"error": str(e)}, 400

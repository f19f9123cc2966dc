"""
Price reconciliation API routes.

Import a price sheet or submit edited rows, poll bulk jobs, export the
current catalog, and manage the B2B price metafield definition.
"""

from typing import Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile
from fastapi.responses import JSONResponse, Response
from io import BytesIO
import structlog

from integrations.shopify import get_shopify_client
from models.pricing import DesiredRow
from models.reconciliation import (
    BulkPollResult,
    PollRequest,
    PriceRowInput,
    ReconcileRequest,
    ReconciliationReport,
)
from models.shop import ShopContext
from parsers.price_sheet_parser import parse_price_sheet
from routes.dependencies import get_shop_context
from services.export_service import PriceExportService
from services.reconciliation_service import ReconciliationService
from services.snapshot_service import SnapshotLoader
from exceptions import AppError, PriceSheetParseError

logger = structlog.get_logger(__name__)

router = APIRouter()

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


# ===================
# EXCEPTION HANDLER
# ===================

def handle_error(e: Exception) -> JSONResponse:
    """Convert exception to JSON response."""
    if isinstance(e, AppError):
        return JSONResponse(
            status_code=e.status_code,
            content=e.to_dict()
        )
    # Unexpected error
    logger.error("unexpected_error", error=str(e), type=type(e).__name__)
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred"
            }
        }
    )


def to_desired_row(row: PriceRowInput, index: int) -> DesiredRow:
    """JSON row to DesiredRow."""
    return DesiredRow(
        sku=row.sku,
        price=row.price,
        compare_at_price=row.compare_at_price,
        special_price=row.special_price,
        submitted_at=row.submitted_at,
        row_number=index + 1,
    )


# ===================
# ROUTES
# ===================

@router.post("/import", response_model=ReconciliationReport)
async def import_price_sheet(
    file: UploadFile = File(..., description="Price sheet (.xlsx)"),
    force_bulk: bool = Query(True, description="Always run as a bulk job"),
    shop: ShopContext = Depends(get_shop_context),
):
    """
    Reconcile an uploaded price sheet.

    Returns the report; when job_id is set, poll /jobs/{job_id}/poll.
    """
    try:
        if not file.filename or not file.filename.lower().endswith((".xlsx", ".xlsm")):
            raise PriceSheetParseError(
                message="File must be an Excel workbook (.xlsx)",
                details={"filename": file.filename}
            )

        content = await file.read()
        sheet = parse_price_sheet(BytesIO(content))

        service = ReconciliationService(get_shopify_client(shop))
        report = service.reconcile(sheet.rows, headers=sheet.headers, force_bulk=force_bulk)
        report.total = sheet.total

        return report

    except Exception as e:
        return handle_error(e)


@router.post("/reconcile", response_model=ReconciliationReport)
async def reconcile_rows(
    data: ReconcileRequest,
    shop: ShopContext = Depends(get_shop_context),
):
    """
    Reconcile edited table rows.

    Small batches are applied immediately; large ones start a bulk job.
    """
    try:
        rows = [to_desired_row(r, i) for i, r in enumerate(data.rows)]

        service = ReconciliationService(get_shopify_client(shop))
        return service.reconcile(rows, force_bulk=data.force_bulk)

    except Exception as e:
        return handle_error(e)


@router.post("/jobs/{job_id:path}/poll", response_model=BulkPollResult)
async def poll_job(
    job_id: str,
    data: Optional[PollRequest] = None,
    shop: ShopContext = Depends(get_shop_context),
):
    """
    Poll a bulk job once.

    Send the pending report to get it back merged when the job finishes.
    """
    try:
        service = ReconciliationService(get_shopify_client(shop))
        return service.poll_job(job_id, data.report if data else None)

    except Exception as e:
        return handle_error(e)


@router.get("/export")
async def export_prices(shop: ShopContext = Depends(get_shop_context)):
    """Download every variant's prices as an importable sheet."""
    try:
        service = PriceExportService(SnapshotLoader(get_shopify_client(shop)))
        output = service.export_workbook()

        return Response(
            content=output.getvalue(),
            media_type=XLSX_MEDIA_TYPE,
            headers={"Content-Disposition": 'attachment; filename="product_prices.xlsx"'}
        )

    except Exception as e:
        return handle_error(e)


@router.post("/special-price/definition")
async def upsert_special_price_definition(shop: ShopContext = Depends(get_shop_context)):
    """Create or update the B2B price metafield definition (read-only in admin)."""
    try:
        client = get_shopify_client(shop)
        return client.upsert_special_price_definition()

    except Exception as e:
        return handle_error(e)

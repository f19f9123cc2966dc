"""
Price sheet export.

Writes every variant's current prices in the same layout the importer
reads, so a merchant can edit the file and upload it back.
"""

from decimal import Decimal
from io import BytesIO
from typing import Optional

from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill
import structlog

from models.pricing import (
    COLUMN_COMPARE_AT,
    COLUMN_PRICE,
    COLUMN_SKU,
    COLUMN_SPECIAL_PRICE,
    CatalogSnapshot,
)
from services.snapshot_service import SnapshotLoader

logger = structlog.get_logger(__name__)

EXPORT_COLUMNS = [COLUMN_SKU, COLUMN_PRICE, COLUMN_COMPARE_AT, COLUMN_SPECIAL_PRICE]
SHEET_TITLE = "Prices"


def _number(amount: Optional[Decimal]):
    return float(amount) if amount is not None else ""


class PriceExportService:
    """Builds the price sheet workbook."""

    def __init__(self, loader: SnapshotLoader):
        self.loader = loader

    def export_workbook(self) -> BytesIO:
        """
        Export all variants, sorted by SKU.

        Returns:
            BytesIO with the xlsx content

        Raises:
            SnapshotLoadError: If the catalog cannot be read
        """
        snapshot = self.loader.load_snapshot()
        output = self.build_workbook(snapshot)

        logger.info("price_sheet_exported", variants=len(snapshot.by_id))

        return output

    def build_workbook(self, snapshot: CatalogSnapshot) -> BytesIO:
        """Write the snapshot as a one-sheet workbook."""
        wb = Workbook()
        ws = wb.active
        ws.title = SHEET_TITLE

        header_font = Font(bold=True)
        header_fill = PatternFill(start_color="E0E8FF", end_color="E0E8FF", fill_type="solid")

        ws.append(EXPORT_COLUMNS)
        for cell in ws[1]:
            cell.font = header_font
            cell.fill = header_fill

        ws.column_dimensions["A"].width = 30
        ws.column_dimensions["B"].width = 12
        ws.column_dimensions["C"].width = 16
        ws.column_dimensions["D"].width = 12

        variants = sorted(snapshot.variants, key=lambda v: v.sku.lower())

        for variant in variants:
            ws.append([
                variant.sku,
                _number(variant.price),
                _number(variant.compare_at_price),
                _number(variant.special_price) if variant.has_special_price else "",
            ])

        if not variants:
            # Empty catalog still gets a fillable template
            ws.append(["", "", "", ""])

        output = BytesIO()
        wb.save(output)
        output.seek(0)

        return output

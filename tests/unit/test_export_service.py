"""
Tests for export_service: price sheet workbook generation.
"""

from openpyxl import load_workbook

from exceptions import SnapshotLoadError
from services.export_service import PriceExportService, EXPORT_COLUMNS
from services.snapshot_service import SnapshotLoader
from parsers.price_sheet_parser import parse_price_sheet
from tests.conftest import FakeShopifyClient
from tests.factories import VariantNodeFactory

import pytest


def export(nodes: list[dict]):
    loader = SnapshotLoader(FakeShopifyClient(nodes=nodes), page_size=50)
    return PriceExportService(loader).export_workbook()


class TestPriceExport:
    """Tests for PriceExportService"""

    def test_header_row(self):
        ws = load_workbook(export([])).active

        assert ws.title == "Prices"
        assert [c.value for c in ws[1]] == EXPORT_COLUMNS
        assert ws["A1"].font.bold is True

    def test_rows_sorted_by_sku(self):
        nodes = [
            VariantNodeFactory.create(sku="beta"),
            VariantNodeFactory.create(sku="Alpha"),
            VariantNodeFactory.create(sku="charlie"),
        ]

        ws = load_workbook(export(nodes)).active

        assert [ws.cell(row=r, column=1).value for r in range(2, 5)] == ["Alpha", "beta", "charlie"]

    def test_values(self):
        nodes = [
            VariantNodeFactory.create(sku="A", price="12.50", compare_at_price="15.00", special_price="9.75"),
            VariantNodeFactory.create(sku="B", price="8.00", special_price="0"),
        ]

        ws = load_workbook(export(nodes)).active

        assert [c.value for c in ws[2]] == ["A", 12.5, 15.0, 9.75]
        # Zero B2B price reads as not set
        assert ws.cell(row=3, column=4).value in (None, "")
        assert ws.cell(row=3, column=3).value in (None, "")

    def test_empty_catalog_still_writes_template(self):
        ws = load_workbook(export([])).active

        assert ws["A1"].value == "SKU"
        assert ws["A2"].value in (None, "")

    def test_export_round_trips_through_parser(self):
        """A downloaded sheet uploads back without changes to its meaning."""
        nodes = [VariantNodeFactory.create(sku="A", price="12.50", special_price="9.75")]

        result = parse_price_sheet(export(nodes))

        assert result.rows[0].sku == "A"
        assert result.rows[0].price == "12.5"
        assert result.rows[0].special_price == "9.75"

    def test_snapshot_failure_propagates(self):
        client = FakeShopifyClient(nodes=VariantNodeFactory.create_batch(2))
        client.fail_pages_after = 0

        with pytest.raises(SnapshotLoadError):
            PriceExportService(SnapshotLoader(client)).export_workbook()

"""
Spreadsheet parsers.
"""

from parsers.price_sheet_parser import (
    parse_price_sheet,
    rows_from_records,
    PriceSheetParseResult,
)

__all__ = [
    "parse_price_sheet",
    "rows_from_records",
    "PriceSheetParseResult",
]

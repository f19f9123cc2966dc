"""
Price spreadsheet parser.

Reads the merchant's price sheet (first worksheet, header in row 1) into
DesiredRows. Column lookup is case-insensitive:

    SKU              required
    Price            optional
    CompareAt Price  optional, "null" clears
    B2B Price        optional, alias "Special Price"; "null" clears
    Submitted At     optional, edit time used to rank additions

Values are passed on as text; the change classifier decides what they mean.
An empty cell carries no intent; clearing takes an explicit "null".
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from io import BytesIO
from pathlib import Path
from typing import Any, Optional, Union
import math
import structlog

import pandas as pd

from models.pricing import (
    COLUMN_COMPARE_AT,
    COLUMN_PRICE,
    COLUMN_SKU,
    COLUMN_SPECIAL_PRICE,
    COLUMN_SUBMITTED_AT,
    DesiredRow,
)
from exceptions import PriceSheetParseError

logger = structlog.get_logger(__name__)


# Accepted spellings per field, lower-cased
COLUMN_ALIASES = {
    "sku": [COLUMN_SKU.lower()],
    "price": [COLUMN_PRICE.lower()],
    "compare_at_price": [COLUMN_COMPARE_AT.lower(), "compare at price", "compare_at_price"],
    "special_price": [COLUMN_SPECIAL_PRICE.lower(), "special price", "b2b_price"],
    "submitted_at": [COLUMN_SUBMITTED_AT.lower(), "submitted_at"],
}


@dataclass
class PriceSheetParseResult:
    """Rows read from a price sheet."""
    rows: list[DesiredRow] = field(default_factory=list)
    headers: list[str] = field(default_factory=list)
    total: int = 0

    @property
    def has_data(self) -> bool:
        return len(self.rows) > 0


def resolve_columns(headers: list[str]) -> dict[str, Optional[str]]:
    """
    Map each field to the sheet's actual header, once per sheet.

    Returns:
        {field: header or None}
    """
    by_lower = {}
    for header in headers:
        by_lower.setdefault(str(header).strip().lower(), header)

    resolved = {}
    for name, aliases in COLUMN_ALIASES.items():
        resolved[name] = next((by_lower[a] for a in aliases if a in by_lower), None)
    return resolved


def cell_to_text(value: Any) -> Optional[str]:
    """
    Cell value as text, None for empty cells.

    Whole floats drop the ".0" pandas adds (10.0 -> "10"); other floats
    use their shortest repr (19.99 -> "19.99").
    """
    if value is None:
        return None
    if isinstance(value, float):
        if math.isnan(value):
            return None
        if value.is_integer():
            return str(int(value))
        return repr(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    text = str(value).strip()
    return text if text != "" else None


def cell_to_timestamp(value: Any) -> Optional[float]:
    """Submitted At as epoch seconds (or a plain counter). None if unusable."""
    if value is None:
        return None
    if isinstance(value, pd.Timestamp):
        return None if pd.isna(value) else value.timestamp()
    if isinstance(value, datetime):
        return value.timestamp()
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return None if math.isnan(value) else float(value)
    text = str(value).strip()
    if not text:
        return None
    try:
        return float(text)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).timestamp()
    except ValueError:
        return None


def _clean(value: Any) -> Any:
    """NaN and NaT become None; everything else passes through."""
    if value is None:
        return None
    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):
        pass
    return value


def rows_from_records(
    records: list[dict[str, Any]],
    headers: Optional[list[str]] = None,
    first_row_number: int = 2
) -> list[DesiredRow]:
    """
    Build DesiredRows from header-keyed records.

    Args:
        records: One dict per sheet row, keyed by header
        headers: Header order (defaults to keys seen in the records)
        first_row_number: Sheet row number of the first record

    Returns:
        DesiredRows; rows without a SKU cell are dropped
    """
    if headers is None:
        headers = []
        for record in records:
            for key in record:
                if key not in headers:
                    headers.append(key)

    columns = resolve_columns(headers)
    rows = []

    for offset, record in enumerate(records):
        cleaned = {k: _clean(v) for k, v in record.items()}

        def text(name: str) -> Optional[str]:
            column = columns[name]
            return cell_to_text(cleaned.get(column)) if column else None

        sku = text("sku")
        if not sku:
            continue

        rows.append(DesiredRow(
            sku=sku,
            price=text("price"),
            compare_at_price=text("compare_at_price"),
            special_price=text("special_price"),
            submitted_at=(
                cell_to_timestamp(cleaned.get(columns["submitted_at"]))
                if columns["submitted_at"] else None
            ),
            row_number=first_row_number + offset,
            raw={k: ("" if v is None else v) for k, v in cleaned.items()},
        ))

    return rows


def parse_price_sheet(file: Union[str, Path, BytesIO]) -> PriceSheetParseResult:
    """
    Parse a price spreadsheet.

    Args:
        file: File path or file-like object (xlsx)

    Returns:
        PriceSheetParseResult

    Raises:
        PriceSheetParseError: Unreadable file or no SKU column
    """
    logger.info("parsing_price_sheet", file_type=type(file).__name__)

    try:
        excel = pd.ExcelFile(file, engine="openpyxl")
        # "null" is the clear token; pandas would otherwise read it as NaN
        df = excel.parse(excel.sheet_names[0], dtype=object, keep_default_na=False)
    except Exception as e:
        logger.error("price_sheet_read_failed", error=str(e))
        raise PriceSheetParseError(
            message="Failed to read price sheet",
            details={"original_error": str(e)}
        )

    headers = [str(col).strip() for col in df.columns]
    df.columns = headers

    if resolve_columns(headers)["sku"] is None:
        raise PriceSheetParseError(
            message="Missing required column: SKU",
            details={"headers": headers}
        )

    records = df.to_dict(orient="records")
    rows = rows_from_records(records, headers)

    logger.info(
        "price_sheet_parsed",
        sheet_rows=len(records),
        rows=len(rows),
        headers=headers
    )

    return PriceSheetParseResult(rows=rows, headers=headers, total=len(records))

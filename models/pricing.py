"""
Internal records for price reconciliation.

These are plain dataclasses passed between the snapshot loader, the
change classifier, the admission controller and the bulk driver.
API-facing schemas live in models/reconciliation.py.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional


# Column names as they appear in the price spreadsheet and report tables
COLUMN_SKU = "SKU"
COLUMN_PRICE = "Price"
COLUMN_COMPARE_AT = "CompareAt Price"
COLUMN_SPECIAL_PRICE = "B2B Price"
COLUMN_SUBMITTED_AT = "Submitted At"


def normalize_sku(sku: Optional[str]) -> str:
    """SKU lookup key: trimmed, case-insensitive."""
    if sku is None:
        return ""
    return str(sku).strip().lower()


class SpecialPriceOp(str, Enum):
    """What a row does to the variant's special price."""
    NONE = "NONE"
    ADDITION = "ADDITION"          # not set -> set
    MODIFICATION = "MODIFICATION"  # set -> set to a different value
    DELETION = "DELETION"          # set -> not set


@dataclass(frozen=True)
class VariantSnapshot:
    """One variant as read from Shopify at the start of a run."""
    id: str
    product_id: str
    price: Decimal
    sku: str = ""
    compare_at_price: Optional[Decimal] = None
    special_price: Optional[Decimal] = None
    special_price_handle: Optional[str] = None  # metafield id, None if never created
    updated_at: Optional[datetime] = None

    @property
    def has_special_price(self) -> bool:
        """Zero, negative and missing values all count as not set."""
        return self.special_price is not None and self.special_price > 0


@dataclass
class CatalogSnapshot:
    """Read-once view of the whole catalog for one run."""
    by_sku: dict[str, VariantSnapshot] = field(default_factory=dict)
    by_id: dict[str, VariantSnapshot] = field(default_factory=dict)

    @property
    def special_price_count(self) -> int:
        return sum(1 for v in self.by_id.values() if v.has_special_price)

    @property
    def variants(self) -> list[VariantSnapshot]:
        return list(self.by_id.values())

    def get_by_sku(self, sku: Optional[str]) -> Optional[VariantSnapshot]:
        return self.by_sku.get(normalize_sku(sku))

    def add(self, variant: VariantSnapshot) -> bool:
        """
        Index a variant.

        Returns False when the SKU was already indexed; the first
        variant keeps the SKU and the later one is reachable by id only.
        """
        self.by_id[variant.id] = variant
        key = normalize_sku(variant.sku)
        if not key:
            return True
        if key in self.by_sku:
            return False
        self.by_sku[key] = variant
        return True


@dataclass
class DesiredRow:
    """
    One unit of merchant intent: a spreadsheet row or an edited table row.

    Values are kept as typed by the merchant. For special_price, ""
    and "null" mean clear; a number means set; anything else is ignored.
    None means the column was absent or blank.
    """
    sku: Optional[str]
    price: Optional[str] = None
    compare_at_price: Optional[str] = None
    special_price: Optional[str] = None
    submitted_at: Optional[float] = None
    row_number: Optional[int] = None
    raw: dict[str, Any] = field(default_factory=dict)


@dataclass
class ClassifiedOperation:
    """A row that maps to a known variant and changes at least one field."""
    row: DesiredRow
    variant_id: str
    product_id: str
    sku: str
    price_changed: bool = False
    new_price: Optional[Decimal] = None
    compare_at_changed: bool = False
    new_compare_at_price: Optional[Decimal] = None  # None with compare_at_changed means clear
    special_price_op: SpecialPriceOp = SpecialPriceOp.NONE
    new_special_price: Optional[Decimal] = None     # None with DELETION
    special_price_handle: Optional[str] = None

    @property
    def special_price_changed(self) -> bool:
        return self.special_price_op != SpecialPriceOp.NONE

    @property
    def submitted_at(self) -> float:
        # Rows without a timestamp rank as 0, ahead of every timestamped row
        return self.row.submitted_at or 0

    @property
    def changed_fields(self) -> list[str]:
        fields = []
        if self.price_changed:
            fields.append(COLUMN_PRICE)
        if self.compare_at_changed:
            fields.append(COLUMN_COMPARE_AT)
        if self.special_price_changed:
            fields.append(COLUMN_SPECIAL_PRICE)
        return fields


@dataclass
class RowFailure:
    """Row rejected before execution, or failed during point mutation."""
    row: DesiredRow
    reason: str
    message: str


@dataclass
class RowSkip:
    """Row whose values already match the catalog."""
    row: DesiredRow
    reason: str = "Prices already match"


@dataclass
class DeferredOperation:
    """Addition held back because the plan has no free special-price slot."""
    operation: ClassifiedOperation
    reason: str = "Plan limit reached"

    @property
    def variant_id(self) -> str:
        return self.operation.variant_id


@dataclass
class AdmissionDecision:
    """Which operations run now and which additions wait for capacity."""
    admitted: list[ClassifiedOperation] = field(default_factory=list)
    deferred: list[DeferredOperation] = field(default_factory=list)
    available_slots: Optional[int] = None  # None when the plan is unlimited

    @property
    def admitted_additions(self) -> list[ClassifiedOperation]:
        return [op for op in self.admitted if op.special_price_op == SpecialPriceOp.ADDITION]

    @property
    def deferred_variant_ids(self) -> list[str]:
        return [d.variant_id for d in self.deferred]

"""
Change classifier.

Turns one desired row into exactly one outcome against the snapshot:
dropped (None), RowFailure, RowSkip, or ClassifiedOperation.

Rule order matters and is fixed:
    1. Missing SKU or the literal header "SKU" -> dropped
    2. SKU not in catalog -> "Variant not found"
    3. SKU already seen in this batch -> "Duplicate SKU in file"
    4. Unparsable Price / CompareAt Price -> "Invalid ... value"
    5. Special price intent: "" / "null" clear, number set, else ignored
    6. Nothing changed beyond epsilon -> "Prices already match"
    7. Special price op from old vs new state
"""

from decimal import Decimal, InvalidOperation
from typing import Optional, Union
import math
import structlog

from config import settings
from models.pricing import (
    COLUMN_SKU,
    CatalogSnapshot,
    ClassifiedOperation,
    DesiredRow,
    RowFailure,
    RowSkip,
    SpecialPriceOp,
    VariantSnapshot,
    normalize_sku,
)

logger = structlog.get_logger(__name__)

ClassifyResult = Optional[Union[ClassifiedOperation, RowFailure, RowSkip]]

REASON_NOT_FOUND = "Variant not found"
REASON_DUPLICATE = "Duplicate SKU in file"
REASON_INVALID_PRICE = "Invalid Price value"
REASON_INVALID_COMPARE_AT = "Invalid CompareAt Price value"

NULL_TOKEN = "null"


class _Unset:
    """Marker for "no intent" on the special price."""


UNSET = _Unset()


def parse_decimal(value) -> Optional[Decimal]:
    """
    Parse a cell or string into a finite Decimal.

    Accepts ints, floats and numeric strings with surrounding whitespace.
    Returns None when the value is not a finite number.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            return None
        return Decimal(repr(value))
    text = str(value).strip()
    if not text:
        return None
    try:
        amount = Decimal(text)
    except InvalidOperation:
        return None
    if not amount.is_finite():
        return None
    return amount


def is_blank(value) -> bool:
    return value is None or str(value).strip() == ""


def is_null_token(value) -> bool:
    return value is not None and str(value).strip().lower() == NULL_TOKEN


def parse_special_price_intent(value) -> Union[_Unset, None, Decimal]:
    """
    Read the merchant's special price intent.

    Returns:
        None to clear, a Decimal to set, UNSET when the value is ignored
    """
    if value is None:
        return UNSET
    if str(value).strip() == "" or is_null_token(value):
        return None
    amount = parse_decimal(value)
    if amount is None:
        return UNSET
    return amount


def special_price_op(old: Optional[Decimal], new: Optional[Decimal]) -> SpecialPriceOp:
    """
    Op table:
        set   -> clear or <= 0     DELETION
        unset -> > 0               ADDITION
        set   -> > 0, different    MODIFICATION
        anything else              NONE
    """
    old_set = old is not None and old > 0
    new_set = new is not None and new > 0

    if old_set and not new_set:
        return SpecialPriceOp.DELETION
    if not old_set and new_set:
        return SpecialPriceOp.ADDITION
    if old_set and new_set and old != new:
        return SpecialPriceOp.MODIFICATION
    return SpecialPriceOp.NONE


class ChangeClassifier:
    """Stateless row classifier; the caller owns the seen-SKU set."""

    def __init__(self, epsilon: Optional[float] = None):
        self.epsilon = Decimal(str(epsilon if epsilon is not None else settings.price_epsilon))

    def differs(self, old: Optional[Decimal], new: Optional[Decimal]) -> bool:
        """Changed when presence differs or |old - new| > epsilon."""
        if old is None and new is None:
            return False
        if old is None or new is None:
            return True
        return abs(old - new) > self.epsilon

    def classify(
        self,
        row: DesiredRow,
        snapshot: CatalogSnapshot,
        seen_skus: set[str]
    ) -> ClassifyResult:
        """
        Classify one row.

        Args:
            row: Desired row
            snapshot: Catalog snapshot for this run
            seen_skus: Normalized SKUs already claimed in this batch (updated in place)

        Returns:
            None if the row is dropped, otherwise its single outcome
        """
        # 1. Placeholder rows
        key = normalize_sku(row.sku)
        if not key or key == COLUMN_SKU.lower():
            return None

        # 2. Unknown SKU; not recorded, so repeats also fail as not found
        variant = snapshot.get_by_sku(key)
        if variant is None:
            return RowFailure(row=row, reason=REASON_NOT_FOUND, message=f"Variant not found for SKU: {row.sku}")

        # 3. First occurrence owns the SKU even if it fails below
        if key in seen_skus:
            return RowFailure(row=row, reason=REASON_DUPLICATE, message=f"Skipped SKU {row.sku}: {REASON_DUPLICATE}")
        seen_skus.add(key)

        # 4. Price and compare-at
        new_price = None
        if not is_blank(row.price):
            new_price = parse_decimal(row.price)
            if new_price is None:
                return RowFailure(row=row, reason=REASON_INVALID_PRICE, message=f"Skipped SKU {row.sku}: {REASON_INVALID_PRICE} '{row.price}'")

        compare_at_intent = UNSET
        if not is_blank(row.compare_at_price):
            if is_null_token(row.compare_at_price):
                compare_at_intent = None
            else:
                compare_at_intent = parse_decimal(row.compare_at_price)
                if compare_at_intent is None:
                    return RowFailure(
                        row=row,
                        reason=REASON_INVALID_COMPARE_AT,
                        message=f"Skipped SKU {row.sku}: {REASON_INVALID_COMPARE_AT} '{row.compare_at_price}'"
                    )

        # 5. Special price intent
        special_intent = parse_special_price_intent(row.special_price)

        # 6. Change detection
        price_changed = new_price is not None and self.differs(variant.price, new_price)
        compare_at_changed = (
            compare_at_intent is not UNSET
            and self.differs(variant.compare_at_price, compare_at_intent)
        )

        # 7. Special price op
        op = SpecialPriceOp.NONE
        new_special = None
        if special_intent is not UNSET:
            new_special = special_intent
            op = special_price_op(variant.special_price, new_special)
            if op == SpecialPriceOp.MODIFICATION and not self.differs(variant.special_price, new_special):
                op = SpecialPriceOp.NONE

        if not (price_changed or compare_at_changed or op != SpecialPriceOp.NONE):
            return RowSkip(row=row)

        return self._operation(
            row=row,
            variant=variant,
            price_changed=price_changed,
            new_price=new_price,
            compare_at_changed=compare_at_changed,
            new_compare_at=None if compare_at_intent is UNSET else compare_at_intent,
            op=op,
            new_special=new_special if op in (SpecialPriceOp.ADDITION, SpecialPriceOp.MODIFICATION) else None,
        )

    @staticmethod
    def _operation(
        row: DesiredRow,
        variant: VariantSnapshot,
        price_changed: bool,
        new_price: Optional[Decimal],
        compare_at_changed: bool,
        new_compare_at: Optional[Decimal],
        op: SpecialPriceOp,
        new_special: Optional[Decimal],
    ) -> ClassifiedOperation:
        return ClassifiedOperation(
            row=row,
            variant_id=variant.id,
            product_id=variant.product_id,
            sku=variant.sku,
            price_changed=price_changed,
            new_price=new_price if price_changed else None,
            compare_at_changed=compare_at_changed,
            new_compare_at_price=new_compare_at if compare_at_changed else None,
            special_price_op=op,
            new_special_price=new_special,
            special_price_handle=variant.special_price_handle,
        )

    def classify_batch(
        self,
        rows: list[DesiredRow],
        snapshot: CatalogSnapshot
    ) -> tuple[list[ClassifiedOperation], list[RowFailure], list[RowSkip]]:
        """
        Classify every row of a batch in order.

        Returns:
            Tuple of (operations, failures, skips); dropped rows appear in none
        """
        seen: set[str] = set()
        operations: list[ClassifiedOperation] = []
        failures: list[RowFailure] = []
        skips: list[RowSkip] = []

        for row in rows:
            result = self.classify(row, snapshot, seen)
            if result is None:
                continue
            if isinstance(result, ClassifiedOperation):
                operations.append(result)
            elif isinstance(result, RowFailure):
                failures.append(result)
            else:
                skips.append(result)

        logger.info(
            "batch_classified",
            rows=len(rows),
            operations=len(operations),
            failures=len(failures),
            skipped=len(skips)
        )

        return operations, failures, skips

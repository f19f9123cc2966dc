"""
Capacity admission controller.

Decides which special-price additions fit the plan. Deletions and
modifications never consume capacity, so they are always admitted;
deletions in the same batch free slots for additions.
"""

from typing import Optional
import structlog

from models.pricing import (
    AdmissionDecision,
    ClassifiedOperation,
    DeferredOperation,
    SpecialPriceOp,
    VariantSnapshot,
)

logger = structlog.get_logger(__name__)


def admit(
    operations: list[ClassifiedOperation],
    current_count: int,
    limit: Optional[int]
) -> AdmissionDecision:
    """
    Admit operations against the plan limit.

    Additions are ranked by submitted_at ascending (oldest intent wins,
    ties keep batch order) and the first available_slots are admitted:

        available_slots = max(0, limit - current_count + deletions_in_batch)

    Args:
        operations: Classified operations of the batch
        current_count: Variants currently carrying a special price
        limit: Plan limit, None for unlimited

    Returns:
        AdmissionDecision with admitted in batch order
    """
    if limit is None:
        return AdmissionDecision(admitted=list(operations), deferred=[], available_slots=None)

    additions = [op for op in operations if op.special_price_op == SpecialPriceOp.ADDITION]
    deletions = sum(1 for op in operations if op.special_price_op == SpecialPriceOp.DELETION)

    available_slots = max(0, limit - current_count + deletions)

    # sorted() is stable, so equal timestamps keep batch order
    ranked = sorted(additions, key=lambda op: op.submitted_at)
    admitted_ids = {id(op) for op in ranked[:available_slots]}
    deferred = [DeferredOperation(operation=op) for op in ranked[available_slots:]]

    admitted = [
        op for op in operations
        if op.special_price_op != SpecialPriceOp.ADDITION or id(op) in admitted_ids
    ]

    if deferred:
        logger.info(
            "additions_deferred",
            limit=limit,
            current_count=current_count,
            deletions=deletions,
            available_slots=available_slots,
            deferred=len(deferred)
        )

    return AdmissionDecision(
        admitted=admitted,
        deferred=deferred,
        available_slots=available_slots
    )


def select_evictions(
    variants: list[VariantSnapshot],
    limit: Optional[int]
) -> list[VariantSnapshot]:
    """
    Pick special prices to remove so the catalog fits a (smaller) plan.

    Least recently updated variants go first; a missing updated_at
    counts as oldest.

    Args:
        variants: Variants in the catalog (only those with a special price count)
        limit: New plan limit, None for unlimited

    Returns:
        Variants whose special price must be removed
    """
    if limit is None:
        return []

    carrying = [v for v in variants if v.has_special_price]
    excess = len(carrying) - limit
    if excess <= 0:
        return []

    ranked = sorted(
        carrying,
        key=lambda v: (v.updated_at is not None, v.updated_at.timestamp() if v.updated_at else 0)
    )
    return ranked[:excess]

"""
Reconciliation orchestrator.

One run: load snapshot -> classify every row -> admit against the plan ->
execute (point mutations for small batches, a bulk job otherwise) ->
report per-row outcomes.

Per-field counters are computed from what was admitted for change, not
from what a bulk job later confirms. A completed job only contributes
row-level error messages, merged in afterwards by poll_job().
"""

from typing import Any, Optional
import structlog

from config import settings
from integrations.shopify import ShopifyClient
from models.pricing import (
    COLUMN_COMPARE_AT,
    COLUMN_PRICE,
    COLUMN_SKU,
    COLUMN_SPECIAL_PRICE,
    ClassifiedOperation,
    DesiredRow,
)
from models.reconciliation import BulkJobStatus, BulkPollResult, ReconciliationReport
from services.admission_service import admit
from services.bulk_mutation_service import BACKGROUND_FAILURE, BulkMutationDriver
from services.change_classifier import ChangeClassifier
from services.snapshot_service import SnapshotLoader
from services.subscription_service import SubscriptionService
from exceptions import StagingUploadError

logger = structlog.get_logger(__name__)

DEFAULT_HEADERS = [COLUMN_SKU, COLUMN_PRICE, COLUMN_COMPARE_AT, COLUMN_SPECIAL_PRICE]

ERROR_REASON = "Error Reason"
REASON = "Reason"
PLAN_LIMIT_REACHED = "Plan limit reached"


def row_cells(row: DesiredRow) -> dict[str, Any]:
    """Original cells of a row, or its parsed values when it came as JSON."""
    if row.raw:
        return row.raw
    cells = {
        COLUMN_SKU: row.sku,
        COLUMN_PRICE: row.price,
        COLUMN_COMPARE_AT: row.compare_at_price,
        COLUMN_SPECIAL_PRICE: row.special_price,
    }
    return {k: v for k, v in cells.items() if v is not None}


def resolve_headers(rows: list[DesiredRow], headers: Optional[list[str]] = None) -> list[str]:
    """Given headers, else every column seen across rows in first-seen order."""
    if headers:
        return list(headers)

    seen: list[str] = []
    for row in rows:
        for column in row_cells(row):
            if column not in seen:
                seen.append(column)
    return seen or list(DEFAULT_HEADERS)


def normalize_row(
    row: DesiredRow,
    headers: list[str],
    extra: Optional[dict[str, Any]] = None
) -> dict[str, Any]:
    """Row in header order with blanks for missing cells, plus extra columns."""
    cells = row_cells(row)
    normalized = {column: cells.get(column, "") for column in headers}
    normalized.update(extra or {})
    return normalized


def merge_job_result(report: ReconciliationReport, result: BulkPollResult) -> ReconciliationReport:
    """
    Fold a terminal poll result into a pending report.

    A completed job counts every queued update as applied and adds the
    job's row-level errors. A failed job adds its run-level error.
    """
    merged = report.model_copy(deep=True)
    merged.poll_interval_seconds = None

    if result.status == BulkJobStatus.COMPLETED.value:
        merged.updated = report.expected_update_count
        merged.errors.extend(result.errors)
    else:
        merged.errors.extend(result.errors or [result.message or BACKGROUND_FAILURE])

    return merged


class ReconciliationService:
    """Runs reconciliation for one shop."""

    def __init__(
        self,
        client: ShopifyClient,
        subscription_service: Optional[SubscriptionService] = None,
        loader: Optional[SnapshotLoader] = None,
        classifier: Optional[ChangeClassifier] = None,
        driver: Optional[BulkMutationDriver] = None,
    ):
        self.client = client
        self.subscriptions = subscription_service or SubscriptionService(client)
        self.loader = loader or SnapshotLoader(client)
        self.classifier = classifier or ChangeClassifier()
        self.driver = driver or BulkMutationDriver(client)

    def reconcile(
        self,
        rows: list[DesiredRow],
        headers: Optional[list[str]] = None,
        force_bulk: bool = False
    ) -> ReconciliationReport:
        """
        Reconcile desired rows against the live catalog.

        Args:
            rows: Desired rows, in the order the merchant supplied them
            headers: Column order for the report tables
            force_bulk: Use a bulk job regardless of batch size

        Returns:
            ReconciliationReport; job_id is set when a bulk job must be polled

        Raises:
            SnapshotLoadError: Catalog could not be read, nothing was mutated
            ShopifyError: Active plan could not be read, nothing was mutated
        """
        headers = resolve_headers(rows, headers)
        report = ReconciliationReport(total=len(rows), headers=headers)

        logger.info(
            "reconciliation_started",
            shop=self.client.shop.shop,
            rows=len(rows),
            force_bulk=force_bulk
        )

        snapshot = self.loader.load_snapshot()
        capacity = self.subscriptions.get_plan_capacity()

        operations, failures, skips = self.classifier.classify_batch(rows, snapshot)

        for failure in failures:
            report.errors.append(failure.message)
            report.failed_rows.append(normalize_row(failure.row, headers, {ERROR_REASON: failure.reason}))

        for skip in skips:
            report.skipped_rows.append(normalize_row(skip.row, headers, {REASON: skip.reason}))

        decision = admit(operations, snapshot.special_price_count, capacity.limit)

        for deferred in decision.deferred:
            op = deferred.operation
            report.errors.append(
                f"SKU {op.row.sku}: {PLAN_LIMIT_REACHED}. Your {capacity.display_name} plan "
                f"allows {capacity.limit} variants with B2B prices."
            )
            report.failed_rows.append(normalize_row(op.row, headers, {ERROR_REASON: deferred.reason}))
        report.limit_skipped_count = len(decision.deferred)
        report.deferred_variant_ids = decision.deferred_variant_ids

        admitted = decision.admitted
        self._count(report, admitted)

        if not admitted:
            logger.info("reconciliation_nothing_to_apply", shop=self.client.shop.shop)
            return report

        if force_bulk or len(admitted) > settings.bulk_row_threshold:
            self._run_bulk(report, admitted, headers)
        else:
            self._run_direct(report, admitted, headers)

        logger.info(
            "reconciliation_finished",
            shop=self.client.shop.shop,
            total=report.total,
            updated=report.updated,
            failed=len(report.failed_rows),
            skipped=len(report.skipped_rows),
            deferred=report.limit_skipped_count,
            job_id=report.job_id
        )

        return report

    @staticmethod
    def _count(report: ReconciliationReport, admitted: list[ClassifiedOperation]) -> None:
        report.updated_price = sum(1 for op in admitted if op.price_changed)
        report.updated_compare_at = sum(1 for op in admitted if op.compare_at_changed)
        report.updated_special = sum(1 for op in admitted if op.special_price_changed)

    @staticmethod
    def _updated_row(op: ClassifiedOperation, headers: list[str]) -> dict[str, Any]:
        return normalize_row(op.row, headers, {REASON: f"Updated: {', '.join(op.changed_fields)}"})

    def _run_direct(
        self,
        report: ReconciliationReport,
        admitted: list[ClassifiedOperation],
        headers: list[str]
    ) -> None:
        failures = self.driver.execute_direct(admitted)
        failed_rows = {id(f.row) for f in failures}

        for failure in failures:
            report.errors.append(failure.message)
            report.failed_rows.append(normalize_row(failure.row, headers, {ERROR_REASON: failure.reason}))

        applied = [op for op in admitted if id(op.row) not in failed_rows]
        report.updated = len(applied)
        report.updated_rows = [self._updated_row(op, headers) for op in applied]

    def _run_bulk(
        self,
        report: ReconciliationReport,
        admitted: list[ClassifiedOperation],
        headers: list[str]
    ) -> None:
        report.updated_rows = [self._updated_row(op, headers) for op in admitted]

        try:
            job_id = self.driver.execute_bulk(admitted)
        except StagingUploadError as e:
            logger.error("bulk_submission_failed", shop=self.client.shop.shop, error=e.message)
            report.errors.append(e.message)
            return

        report.job_id = job_id
        report.expected_update_count = len(admitted)
        report.poll_interval_seconds = settings.bulk_poll_interval_seconds

    def poll_job(
        self,
        job_id: str,
        pending_report: Optional[ReconciliationReport] = None
    ) -> BulkPollResult:
        """
        Poll a bulk job; merge into the pending report once it is terminal.

        Args:
            job_id: Bulk operation id from reconcile()
            pending_report: Report returned with that job id

        Returns:
            BulkPollResult, with merged_report when terminal and a report was given
        """
        result = self.driver.poll(job_id)

        if result.terminal and pending_report is not None:
            result.merged_report = merge_job_result(pending_report, result)

        return result

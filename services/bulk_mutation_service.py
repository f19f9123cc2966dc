"""
Bulk mutation driver.

Executes admitted operations either as one Shopify bulk operation
(staged JSONL upload + bulkOperationRunMutation) or as per-product point
mutations for small batches, and turns bulk job status into a poll result.
"""

import json
from decimal import Decimal
from typing import Any, Optional
import structlog

from config import settings
from integrations.shopify import VARIANTS_BULK_UPDATE_MUTATION, ShopifyClient, dump_jsonl
from models.pricing import ClassifiedOperation, RowFailure, SpecialPriceOp
from models.reconciliation import BulkJobStatus, BulkPollResult
from exceptions import ShopifyError

logger = structlog.get_logger(__name__)


SPECIAL_PRICE_TYPE = "number_decimal"
BACKGROUND_FAILURE = "Background update failed"
STATUS_NONE = "NONE"


def format_amount(amount: Decimal) -> str:
    """Decimal as a plain string ("10.5", never "1.05E+1")."""
    return format(amount, "f")


def build_variant_input(
    op: ClassifiedOperation,
    namespace: Optional[str] = None,
    key: Optional[str] = None,
    clear_value: Optional[str] = "0",
) -> dict[str, Any]:
    """
    ProductVariantsBulkInput for one operation.

    A set special price updates the existing metafield by id when there
    is one, otherwise creates it by namespace/key. A cleared special price
    is written as `clear_value` ("0" reads as not set); pass None to leave
    the metafield out so the caller can delete it separately.
    """
    namespace = namespace or settings.special_price_namespace
    key = key or settings.special_price_key

    variant: dict[str, Any] = {"id": op.variant_id}

    if op.price_changed and op.new_price is not None:
        variant["price"] = format_amount(op.new_price)

    if op.compare_at_changed:
        variant["compareAtPrice"] = (
            format_amount(op.new_compare_at_price)
            if op.new_compare_at_price is not None else None
        )

    if op.special_price_op == SpecialPriceOp.DELETION:
        value = clear_value
    elif op.special_price_changed and op.new_special_price is not None:
        value = format_amount(op.new_special_price)
    else:
        value = None

    if value is not None:
        if op.special_price_handle:
            metafield = {"id": op.special_price_handle, "value": value, "type": SPECIAL_PRICE_TYPE}
        else:
            metafield = {"namespace": namespace, "key": key, "value": value, "type": SPECIAL_PRICE_TYPE}
        variant["metafields"] = [metafield]

    return variant


def group_by_product(operations: list[ClassifiedOperation]) -> dict[str, list[ClassifiedOperation]]:
    """Group operations by product id, products in first-seen order."""
    groups: dict[str, list[ClassifiedOperation]] = {}
    for op in operations:
        groups.setdefault(op.product_id, []).append(op)
    return groups


def build_payload(operations: list[ClassifiedOperation]) -> str:
    """One JSON line {"productId", "variants"} per product."""
    return dump_jsonl([
        {"productId": product_id, "variants": [build_variant_input(op) for op in ops]}
        for product_id, ops in group_by_product(operations).items()
    ])


def parse_result_lines(text: str) -> list[str]:
    """
    Row-level errors from a bulk result file.

    Each non-blank line is JSON; a result record carries
    productVariantsBulkUpdate.userErrors either under "data" or at the
    top level. Malformed lines are logged and skipped.
    """
    errors: list[str] = []

    for number, line in enumerate(text.splitlines(), start=1):
        if not line.strip():
            continue
        try:
            record = json.loads(line)
        except ValueError:
            logger.warning("bulk_result_line_unparsable", line=number)
            continue
        if not isinstance(record, dict):
            continue

        body = record.get("data") if isinstance(record.get("data"), dict) else record
        result = body.get("productVariantsBulkUpdate") or {}
        user_errors = result.get("userErrors") or []
        if user_errors:
            errors.append(user_errors[0].get("message") or "Unknown error")

    return errors


class BulkMutationDriver:
    """Runs admitted operations against one shop."""

    def __init__(self, client: ShopifyClient):
        self.client = client

    # ===================
    # BULK PATH
    # ===================

    def cancel_running_job(self) -> Optional[str]:
        """
        Cancel the shop's in-flight bulk mutation, if any.

        Shopify allows one bulk mutation per shop at a time. Failures are
        logged and swallowed; the new submission reports its own error.

        Returns:
            Id of the job asked to cancel, or None
        """
        try:
            current = self.client.get_current_bulk_mutation()
            if current is None or current.status not in (
                BulkJobStatus.CREATED.value, BulkJobStatus.RUNNING.value
            ):
                return None
            errors = self.client.cancel_bulk_job(current.id)
        except ShopifyError as e:
            logger.warning("cancel_running_job_failed", error=e.message)
            return None

        if errors:
            logger.warning("cancel_running_job_rejected", job_id=current.id, error=errors[0])
            return None

        logger.info("running_job_cancelled", job_id=current.id)
        return current.id

    def execute_bulk(self, operations: list[ClassifiedOperation]) -> str:
        """
        Stage the payload and start a bulk job.

        Returns:
            Bulk operation id

        Raises:
            StagingUploadError: Upload or job submission failed
        """
        payload = build_payload(operations)

        logger.info(
            "executing_bulk",
            shop=self.client.shop.shop,
            operations=len(operations),
            products=payload.count("\n") + 1
        )

        self.cancel_running_job()
        staged = self.client.stage_upload(payload)
        return self.client.create_bulk_job(VARIANTS_BULK_UPDATE_MUTATION, staged.upload_path)

    # ===================
    # POINT PATH
    # ===================

    def execute_direct(self, operations: list[ClassifiedOperation]) -> list[RowFailure]:
        """
        Apply operations with one mutation per product.

        Special price deletions go through metafieldsDelete. An error in a
        product group is attributed to every row of that group.

        Returns:
            Failures, empty when everything applied
        """
        failures: list[RowFailure] = []

        for product_id, ops in group_by_product(operations).items():
            variants = [build_variant_input(op, clear_value=None) for op in ops]
            variants = [v for v in variants if len(v) > 1]
            deletions = [op.variant_id for op in ops if op.special_price_op == SpecialPriceOp.DELETION]

            try:
                errors = []
                if variants:
                    errors.extend(self.client.set_variant_attributes(product_id, variants))
                if deletions:
                    errors.extend(self.client.delete_special_prices(deletions))
            except ShopifyError as e:
                errors = [e.message]

            if errors:
                logger.warning(
                    "point_mutation_failed",
                    product_id=product_id,
                    rows=len(ops),
                    error=errors[0]
                )
                failures.extend(
                    RowFailure(
                        row=op.row,
                        reason=errors[0],
                        message=f"Error updating SKU {op.sku}: {errors[0]}"
                    )
                    for op in ops
                )

        logger.info(
            "direct_execution_complete",
            shop=self.client.shop.shop,
            operations=len(operations),
            failed=len(failures)
        )

        return failures

    # ===================
    # POLLING
    # ===================

    def poll(self, job_id: str) -> BulkPollResult:
        """
        One poll of a bulk job.

        CREATED/RUNNING is non-terminal. COMPLETED is terminal and carries
        the row-level errors from the result file. Any other status is a
        terminal failure. A transient gateway error is reported as
        non-terminal so the caller simply polls again.
        """
        try:
            job = self.client.get_job_status(job_id)
        except ShopifyError as e:
            logger.warning("bulk_poll_transient_error", job_id=job_id, error=e.message)
            return BulkPollResult(
                job_id=job_id,
                status=BulkJobStatus.RUNNING.value,
                terminal=False,
                succeeded=False,
                errors=[e.message],
                message="Job status temporarily unavailable"
            )

        if job is None:
            return BulkPollResult(
                job_id=job_id,
                status=STATUS_NONE,
                terminal=True,
                succeeded=False,
                message="Bulk job not found"
            )

        if job.status in (BulkJobStatus.CREATED.value, BulkJobStatus.RUNNING.value):
            return BulkPollResult(
                job_id=job_id,
                status=job.status,
                terminal=False,
                succeeded=True,
                progress=job.object_count
            )

        if job.status != BulkJobStatus.COMPLETED.value:
            logger.error("bulk_job_failed", job_id=job_id, status=job.status, error_code=job.error_code)
            return BulkPollResult(
                job_id=job_id,
                status=job.status,
                terminal=True,
                succeeded=False,
                errors=[BACKGROUND_FAILURE],
                message=BACKGROUND_FAILURE
            )

        errors: list[str] = []
        if job.result_url:
            try:
                errors = parse_result_lines(self.client.fetch_result_file(job.result_url))
            except ShopifyError as e:
                logger.error("bulk_result_fetch_failed", job_id=job_id, error=e.message)
                errors = [f"Could not read bulk results: {e.message}"]

        logger.info(
            "bulk_job_completed",
            job_id=job_id,
            objects=job.object_count,
            row_errors=len(errors)
        )

        return BulkPollResult(
            job_id=job_id,
            status=BulkJobStatus.COMPLETED.value,
            terminal=True,
            succeeded=True,
            progress=job.object_count,
            errors=errors
        )

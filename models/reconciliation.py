"""
Reconciliation schemas for requests, reports and bulk job polling.
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Optional
from enum import Enum

from models.base import BaseSchema


class BulkJobStatus(str, Enum):
    """Shopify BulkOperation statuses."""
    CREATED = "CREATED"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    CANCELING = "CANCELING"
    CANCELED = "CANCELED"
    EXPIRED = "EXPIRED"
    FAILED = "FAILED"

    @property
    def in_progress(self) -> bool:
        return self in (BulkJobStatus.CREATED, BulkJobStatus.RUNNING)


class BulkJobHandle(BaseSchema):
    """Bulk operation as reported by Shopify. Never mutated locally."""

    id: str
    status: str
    object_count: Optional[int] = None
    result_url: Optional[str] = None
    error_code: Optional[str] = None


# ===================
# REQUESTS
# ===================

class PriceRowInput(BaseModel):
    """
    One desired row sent as JSON (table edit or pre-parsed sheet).

    Values stay raw strings so "", "null" and numbers keep their meaning.
    JSON numbers are accepted and turned into strings.
    """

    model_config = ConfigDict(coerce_numbers_to_str=True)

    sku: Optional[str] = Field(None, description="Variant SKU")
    price: Optional[str] = Field(None, description="New price")
    compare_at_price: Optional[str] = Field(
        None,
        description="New compare-at price, 'null' clears it"
    )
    special_price: Optional[str] = Field(
        None,
        description="New B2B price, '' or 'null' clears it"
    )
    submitted_at: Optional[float] = Field(
        None,
        description="When the edit was made (epoch seconds or counter)"
    )


class ReconcileRequest(BaseModel):
    """Batch of desired rows."""

    rows: list[PriceRowInput] = Field(..., description="Desired price rows")
    force_bulk: bool = Field(
        False,
        description="Always use a bulk job, regardless of batch size"
    )


# ===================
# RESPONSES
# ===================

class ReconciliationReport(BaseSchema):
    """
    Outcome of one reconciliation run.

    Per-field counters reflect what was admitted for change, not what the
    bulk job later confirmed. Job-level row errors are merged into
    `errors` once the job completes.
    """

    total: int = 0
    updated: int = 0
    updated_price: int = 0
    updated_compare_at: int = 0
    updated_special: int = 0
    errors: list[str] = Field(default_factory=list)
    failed_rows: list[dict[str, Any]] = Field(default_factory=list)
    skipped_rows: list[dict[str, Any]] = Field(default_factory=list)
    updated_rows: list[dict[str, Any]] = Field(default_factory=list)
    limit_skipped_count: int = 0
    deferred_variant_ids: list[str] = Field(default_factory=list)
    job_id: Optional[str] = None
    expected_update_count: int = 0
    headers: list[str] = Field(default_factory=list)
    poll_interval_seconds: Optional[int] = Field(
        None,
        description="Set while a bulk job still has to be polled"
    )


class BulkPollResult(BaseSchema):
    """One poll of a bulk job."""

    job_id: str
    status: str
    terminal: bool
    succeeded: bool = False
    progress: Optional[int] = Field(None, description="Objects processed so far")
    errors: list[str] = Field(default_factory=list)
    message: Optional[str] = None
    merged_report: Optional[ReconciliationReport] = None


class PollRequest(BaseModel):
    """Optional pending report to merge once the job completes."""

    report: Optional[ReconciliationReport] = None

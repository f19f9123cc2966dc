"""
Pydantic models and internal records.
"""

from models.base import (
    BaseSchema,
    TimestampMixin,
    ShopScopedMixin,
)
from models.shop import ShopContext
from models.pricing import (
    SpecialPriceOp,
    VariantSnapshot,
    CatalogSnapshot,
    DesiredRow,
    ClassifiedOperation,
    RowFailure,
    RowSkip,
    DeferredOperation,
    AdmissionDecision,
    normalize_sku,
)
from models.reconciliation import (
    BulkJobStatus,
    BulkJobHandle,
    PriceRowInput,
    ReconcileRequest,
    ReconciliationReport,
    BulkPollResult,
    PollRequest,
)
from models.subscription import (
    PlanTier,
    PlanCapacity,
    ActiveSubscription,
    SubscriptionStatusResponse,
    CancelSubscriptionRequest,
    PlanChangeResult,
)
from models.form import (
    FieldType,
    SubmissionStatus,
    FormField,
    FormCreate,
    FormUpdate,
    FormResponse,
    PublicFormResponse,
    SubmissionCreate,
    SubmissionResponse,
    ApproveSubmissionRequest,
)

__all__ = [
    # Base
    "BaseSchema",
    "TimestampMixin",
    "ShopScopedMixin",

    # Shop
    "ShopContext",

    # Pricing
    "SpecialPriceOp",
    "VariantSnapshot",
    "CatalogSnapshot",
    "DesiredRow",
    "ClassifiedOperation",
    "RowFailure",
    "RowSkip",
    "DeferredOperation",
    "AdmissionDecision",
    "normalize_sku",

    # Reconciliation
    "BulkJobStatus",
    "BulkJobHandle",
    "PriceRowInput",
    "ReconcileRequest",
    "ReconciliationReport",
    "BulkPollResult",
    "PollRequest",

    # Subscription
    "PlanTier",
    "PlanCapacity",
    "ActiveSubscription",
    "SubscriptionStatusResponse",
    "CancelSubscriptionRequest",
    "PlanChangeResult",

    # Forms
    "FieldType",
    "SubmissionStatus",
    "FormField",
    "FormCreate",
    "FormUpdate",
    "FormResponse",
    "PublicFormResponse",
    "SubmissionCreate",
    "SubmissionResponse",
    "ApproveSubmissionRequest",
]

"""
Business logic services.

Each service handles one domain area.
"""

from services.subscription_service import (
    SubscriptionService,
    get_variant_limit_for_plan,
    SUBSCRIPTION_TIERS,
)
from services.snapshot_service import SnapshotLoader
from services.change_classifier import ChangeClassifier
from services.admission_service import admit, select_evictions
from services.bulk_mutation_service import BulkMutationDriver
from services.reconciliation_service import ReconciliationService, merge_job_result
from services.export_service import PriceExportService
from services.plan_enforcement_service import PlanEnforcementService
from services.form_service import FormService, get_form_service
from services.submission_service import SubmissionService, get_submission_service

__all__ = [
    "SubscriptionService",
    "get_variant_limit_for_plan",
    "SUBSCRIPTION_TIERS",
    "SnapshotLoader",
    "ChangeClassifier",
    "admit",
    "select_evictions",
    "BulkMutationDriver",
    "ReconciliationService",
    "merge_job_result",
    "PriceExportService",
    "PlanEnforcementService",
    "FormService",
    "get_form_service",
    "SubmissionService",
    "get_submission_service",
]

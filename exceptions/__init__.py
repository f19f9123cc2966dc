"""
Custom exceptions module.
"""

from exceptions.errors import (
    # Base exceptions
    AppError,
    NotFoundError,
    ValidationError,
    ConflictError,
    ExternalServiceError,
    DatabaseError,

    # Shopify
    ShopifyError,
    ShopifyNotConfiguredError,

    # Reconciliation
    SnapshotLoadError,
    StagingUploadError,

    # Price sheet
    PriceSheetParseError,

    # Forms
    FormNotFoundError,
    FormLimitReachedError,
    SubmissionNotFoundError,
    InvalidSubmissionStateError,
)

__all__ = [
    # Base
    "AppError",
    "NotFoundError",
    "ValidationError",
    "ConflictError",
    "ExternalServiceError",
    "DatabaseError",

    # Shopify
    "ShopifyError",
    "ShopifyNotConfiguredError",

    # Reconciliation
    "SnapshotLoadError",
    "StagingUploadError",

    # Price sheet
    "PriceSheetParseError",

    # Forms
    "FormNotFoundError",
    "FormLimitReachedError",
    "SubmissionNotFoundError",
    "InvalidSubmissionStateError",
]

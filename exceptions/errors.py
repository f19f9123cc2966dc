"""
Custom exception classes for the application.

Row-level reconciliation problems (unknown SKU, bad number, duplicate)
are reported as values in the reconciliation report, not raised.
The classes here cover run-level and request-level failures.
"""

from typing import Optional, Any
from datetime import datetime


class AppError(Exception):
    """
    Base exception for all application errors.

    All custom exceptions inherit from this.

    Attributes:
        code: Error code (e.g., "SNAPSHOT_LOAD_FAILED")
        message: Human-readable message
        status_code: HTTP status code
        details: Additional context
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: Optional[dict[str, Any]] = None
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.utcnow().isoformat()
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to API response format."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
                "timestamp": self.timestamp
            }
        }


class NotFoundError(AppError):
    """Resource not found (404)."""

    def __init__(
        self,
        resource: str,
        identifier: str,
        code: Optional[str] = None
    ):
        super().__init__(
            code=code or f"{resource.upper()}_NOT_FOUND",
            message=f"{resource} not found",
            status_code=404,
            details={"id": identifier}
        )


class ValidationError(AppError):
    """Validation failed (422)."""

    def __init__(
        self,
        message: str,
        code: str = "VALIDATION_ERROR",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=422,
            details=details
        )


class ConflictError(AppError):
    """Conflict with existing resource (409)."""

    def __init__(
        self,
        message: str,
        code: str = "CONFLICT",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=409,
            details=details
        )


class ExternalServiceError(AppError):
    """External service failure (503)."""

    def __init__(
        self,
        service: str,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code=f"{service.upper()}_ERROR",
            message=message,
            status_code=503,
            details={"service": service, **(details or {})}
        )


class DatabaseError(AppError):
    """Database operation failed (500)."""

    def __init__(
        self,
        operation: str,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code="DATABASE_ERROR",
            message=f"Database {operation} failed: {message}",
            status_code=500,
            details={"operation": operation, **(details or {})}
        )


# ===================
# SHOPIFY ERRORS
# ===================

class ShopifyError(ExternalServiceError):
    """Shopify Admin API request failed."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(
            service="shopify",
            message=message,
            details=details
        )


class ShopifyNotConfiguredError(AppError):
    """No shop domain or access token available for the request."""

    def __init__(self):
        super().__init__(
            code="SHOPIFY_NOT_CONFIGURED",
            message="Shop domain and access token are required",
            status_code=401,
        )


# ===================
# RECONCILIATION ERRORS
# ===================

class SnapshotLoadError(AppError):
    """Catalog snapshot could not be fully loaded; nothing was mutated."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(
            code="SNAPSHOT_LOAD_FAILED",
            message=f"Failed to load variant snapshot: {message}",
            status_code=503,
            details=details
        )


class StagingUploadError(AppError):
    """Staged upload or bulk job submission failed."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(
            code="STAGING_UPLOAD_FAILED",
            message=message,
            status_code=502,
            details=details
        )


# ===================
# PRICE SHEET ERRORS
# ===================

class PriceSheetParseError(ValidationError):
    """Price spreadsheet could not be read."""

    def __init__(
        self,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code="PRICE_SHEET_PARSE_ERROR",
            message=message,
            details=details
        )


# ===================
# FORM ERRORS
# ===================

class FormNotFoundError(NotFoundError):
    """Form not found."""

    def __init__(self, form_id: str):
        super().__init__(
            resource="Form",
            identifier=form_id,
            code="FORM_NOT_FOUND"
        )


class FormLimitReachedError(ConflictError):
    """Shop already has the maximum number of forms."""

    def __init__(self, limit: int):
        super().__init__(
            code="FORM_LIMIT_REACHED",
            message=f"Form limit reached (Max {limit}).",
            details={"limit": limit}
        )


class SubmissionNotFoundError(NotFoundError):
    """Form submission not found."""

    def __init__(self, submission_id: str):
        super().__init__(
            resource="Submission",
            identifier=submission_id,
            code="SUBMISSION_NOT_FOUND"
        )


class InvalidSubmissionStateError(ValidationError):
    """Submission already reviewed."""

    def __init__(self, submission_id: str, current_status: str, new_status: str):
        super().__init__(
            code="INVALID_SUBMISSION_STATE",
            message=f"Cannot move submission from {current_status} to {new_status}",
            details={
                "id": submission_id,
                "current_status": current_status,
                "new_status": new_status,
                "reason": "Only PENDING submissions can be approved or rejected"
            }
        )

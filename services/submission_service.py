"""
Submission service for lead-capture form entries.

Storefront visitors submit forms; merchants review the entries and may
approve one into a Shopify customer tagged for B2B pricing.
"""

from datetime import datetime
from typing import Any, Optional
import structlog

from config import get_supabase_client, settings
from integrations.shopify import ShopifyClient
from models.form import SubmissionCreate, SubmissionResponse, SubmissionStatus
from services.form_service import FormService, get_form_service
from exceptions import (
    AppError,
    DatabaseError,
    InvalidSubmissionStateError,
    SubmissionNotFoundError,
    ValidationError,
)

logger = structlog.get_logger(__name__)


def find_value(data: dict[str, Any], *keys: str) -> Optional[str]:
    """
    First non-empty value whose label matches one of the keys.

    Labels are merchant-chosen ("Email", "E-mail address"), so the match is
    case-insensitive and by containment.
    """
    for key in keys:
        for label, value in data.items():
            if key in str(label).lower() and value not in (None, ""):
                return str(value).strip()
    return None


class SubmissionService:
    """
    Submission business logic.

    Only PENDING submissions can be approved or rejected.
    """

    def __init__(self, form_service: Optional[FormService] = None):
        self.db = get_supabase_client()
        self.table = "form_submissions"
        self.forms = form_service or get_form_service()

    # ===================
    # READ OPERATIONS
    # ===================

    def get_for_form(self, form_id: str, shop: str) -> list[SubmissionResponse]:
        """
        Submissions of one form, newest first.

        Raises:
            FormNotFoundError: If the form doesn't belong to the shop
        """
        self.forms.get(form_id, shop)

        try:
            result = (
                self.db.table(self.table)
                .select("*")
                .eq("form_id", form_id)
                .order("created_at", desc=True)
                .execute()
            )

            submissions = [SubmissionResponse(**row) for row in result.data]

            logger.info("submissions_retrieved", form_id=form_id, count=len(submissions))

            return submissions

        except Exception as e:
            logger.error("get_submissions_failed", form_id=form_id, error=str(e))
            raise DatabaseError("select", str(e))

    def get_by_id(self, submission_id: str) -> SubmissionResponse:
        """
        Get a single submission.

        Raises:
            SubmissionNotFoundError: If submission doesn't exist
        """
        try:
            result = (
                self.db.table(self.table)
                .select("*")
                .eq("id", submission_id)
                .limit(1)
                .execute()
            )

            if not result.data:
                raise SubmissionNotFoundError(submission_id)

            return SubmissionResponse(**result.data[0])

        except AppError:
            raise
        except Exception as e:
            logger.error("get_submission_failed", submission_id=submission_id, error=str(e))
            raise DatabaseError("select", str(e))

    # ===================
    # WRITE OPERATIONS
    # ===================

    def create(self, data: SubmissionCreate) -> SubmissionResponse:
        """
        Store a storefront submission.

        Raises:
            FormNotFoundError: If the form doesn't exist
            ValidationError: If a required field is missing
        """
        form = self.forms.get(data.form_id)

        missing = [
            f.label for f in form.fields
            if f.required and data.data.get(f.label) in (None, "", [])
        ]
        if missing:
            raise ValidationError(
                message=f"Missing required fields: {', '.join(missing)}",
                details={"missing": missing}
            )

        try:
            result = self.db.table(self.table).insert({
                "form_id": data.form_id,
                "data": data.data,
                "status": SubmissionStatus.PENDING.value,
            }).execute()

            submission = SubmissionResponse(**result.data[0])

            logger.info("submission_created", form_id=data.form_id, submission_id=submission.id)

            return submission

        except Exception as e:
            logger.error("create_submission_failed", form_id=data.form_id, error=str(e))
            raise DatabaseError("insert", str(e))

    def delete(self, submission_id: str) -> bool:
        """
        Delete a submission.

        Raises:
            SubmissionNotFoundError: If submission doesn't exist
        """
        self.get_by_id(submission_id)

        try:
            self.db.table(self.table).delete().eq("id", submission_id).execute()

            logger.info("submission_deleted", submission_id=submission_id)

            return True

        except Exception as e:
            logger.error("delete_submission_failed", submission_id=submission_id, error=str(e))
            raise DatabaseError("delete", str(e))

    def approve(
        self,
        submission_id: str,
        client: ShopifyClient,
        create_customer: bool = True
    ) -> SubmissionResponse:
        """
        Approve a submission, optionally creating a B2B customer.

        Raises:
            SubmissionNotFoundError: If submission doesn't exist
            InvalidSubmissionStateError: If it was already reviewed
            ValidationError: If a customer is requested but no email was submitted
            ShopifyError: If Shopify rejects the customer
        """
        submission = self._pending(submission_id, SubmissionStatus.APPROVED)

        customer_id = None
        if create_customer:
            email = find_value(submission.data, "email")
            if not email:
                raise ValidationError(
                    message="Submission has no email to create a customer from",
                    details={"id": submission_id}
                )

            customer_id = client.create_customer(
                email=email,
                first_name=find_value(submission.data, "first name", "firstname"),
                last_name=find_value(submission.data, "last name", "lastname"),
                phone=find_value(submission.data, "phone"),
                tags=[settings.b2b_customer_tag],
                note=find_value(submission.data, "company"),
            )

            logger.info("b2b_customer_created", submission_id=submission_id, customer_id=customer_id)

        try:
            return self._set_status(submission_id, SubmissionStatus.APPROVED, customer_id)
        except DatabaseError as e:
            if customer_id:
                # Customer exists in Shopify but the submission is still PENDING
                logger.error(
                    "approved_customer_orphaned",
                    submission_id=submission_id,
                    customer_id=customer_id,
                    error=e.message
                )
                e.details["customer_id"] = customer_id
            raise

    def reject(self, submission_id: str) -> SubmissionResponse:
        """
        Reject a submission.

        Raises:
            SubmissionNotFoundError: If submission doesn't exist
            InvalidSubmissionStateError: If it was already reviewed
        """
        self._pending(submission_id, SubmissionStatus.REJECTED)
        return self._set_status(submission_id, SubmissionStatus.REJECTED)

    def _pending(self, submission_id: str, new_status: SubmissionStatus) -> SubmissionResponse:
        submission = self.get_by_id(submission_id)
        if submission.status != SubmissionStatus.PENDING:
            raise InvalidSubmissionStateError(submission_id, submission.status.value, new_status.value)
        return submission

    def _set_status(
        self,
        submission_id: str,
        status: SubmissionStatus,
        customer_id: Optional[str] = None
    ) -> SubmissionResponse:
        update_data: dict[str, Any] = {
            "status": status.value,
            "updated_at": datetime.utcnow().isoformat(),
        }
        if customer_id:
            update_data["customer_id"] = customer_id

        try:
            result = (
                self.db.table(self.table)
                .update(update_data)
                .eq("id", submission_id)
                .execute()
            )

            submission = SubmissionResponse(**result.data[0])

            logger.info("submission_status_changed", submission_id=submission_id, status=status.value)

            return submission

        except Exception as e:
            logger.error("update_submission_failed", submission_id=submission_id, error=str(e))
            raise DatabaseError("update", str(e))


# Singleton instance for convenience
_submission_service: Optional[SubmissionService] = None


def get_submission_service() -> SubmissionService:
    """Get or create SubmissionService instance."""
    global _submission_service
    if _submission_service is None:
        _submission_service = SubmissionService()
    return _submission_service

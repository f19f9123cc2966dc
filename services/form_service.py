"""
Form service for lead-capture forms.

Merchants build forms in the admin; the storefront renders them and
posts submissions. Forms are scoped to a shop.
"""

from datetime import datetime
from typing import Optional
import structlog

from config import get_supabase_client, settings
from models.form import (
    FormCreate,
    FormUpdate,
    FormResponse,
    PublicFormResponse,
)
from exceptions import (
    AppError,
    FormNotFoundError,
    FormLimitReachedError,
    DatabaseError,
)

logger = structlog.get_logger(__name__)


class FormService:
    """
    Form business logic.

    Handles CRUD operations for forms.
    """

    def __init__(self):
        self.db = get_supabase_client()
        self.table = "forms"

    # ===================
    # READ OPERATIONS
    # ===================

    def get_all(self, shop: str) -> list[FormResponse]:
        """
        All forms of a shop, newest first.

        Args:
            shop: Shop domain

        Returns:
            List of FormResponse
        """
        logger.info("getting_forms", shop=shop)

        try:
            result = (
                self.db.table(self.table)
                .select("*")
                .eq("shop", shop)
                .order("created_at", desc=True)
                .execute()
            )

            forms = [FormResponse(**row) for row in result.data]

            logger.info("forms_retrieved", shop=shop, count=len(forms))

            return forms

        except Exception as e:
            logger.error("get_forms_failed", shop=shop, error=str(e))
            raise DatabaseError("select", str(e))

    def get(self, form_id: str, shop: Optional[str] = None) -> FormResponse:
        """
        Get a single form.

        Args:
            form_id: Form UUID
            shop: Restrict to this shop (None for storefront reads)

        Returns:
            FormResponse

        Raises:
            FormNotFoundError: If form doesn't exist for the shop
        """
        logger.debug("getting_form", form_id=form_id, shop=shop)

        try:
            query = self.db.table(self.table).select("*").eq("id", form_id)
            if shop:
                query = query.eq("shop", shop)
            result = query.limit(1).execute()

            if not result.data:
                raise FormNotFoundError(form_id)

            return FormResponse(**result.data[0])

        except AppError:
            raise
        except Exception as e:
            logger.error("get_form_failed", form_id=form_id, error=str(e))
            raise DatabaseError("select", str(e))

    def get_public(self, form_id: str) -> PublicFormResponse:
        """What the storefront needs to render a form."""
        form = self.get(form_id)
        return PublicFormResponse(id=form.id, title=form.title, fields=form.fields)

    def count(self, shop: str) -> int:
        """Number of forms a shop has."""
        try:
            result = (
                self.db.table(self.table)
                .select("id", count="exact")
                .eq("shop", shop)
                .execute()
            )
            return result.count or 0

        except Exception as e:
            logger.error("count_forms_failed", shop=shop, error=str(e))
            raise DatabaseError("count", str(e))

    # ===================
    # WRITE OPERATIONS
    # ===================

    def create(self, shop: str, data: FormCreate) -> FormResponse:
        """
        Create a form.

        Args:
            shop: Shop domain
            data: Form data

        Returns:
            Created FormResponse

        Raises:
            FormLimitReachedError: If the shop is at its form limit
        """
        logger.info("creating_form", shop=shop, title=data.title)

        limit = settings.max_forms_per_shop
        if self.count(shop) >= limit:
            logger.warning("form_limit_reached", shop=shop, limit=limit)
            raise FormLimitReachedError(limit)

        try:
            form_data = {
                "shop": shop,
                "title": data.title,
                "fields": [f.model_dump(mode="json") for f in data.fields],
            }

            result = self.db.table(self.table).insert(form_data).execute()

            form = FormResponse(**result.data[0])

            logger.info("form_created", form_id=form.id, shop=shop)

            return form

        except Exception as e:
            logger.error("create_form_failed", shop=shop, error=str(e))
            raise DatabaseError("insert", str(e))

    def update(self, form_id: str, shop: str, data: FormUpdate) -> FormResponse:
        """
        Update a form.

        Raises:
            FormNotFoundError: If form doesn't exist for the shop
        """
        logger.info("updating_form", form_id=form_id, shop=shop)

        existing = self.get(form_id, shop)

        update_data = {}
        if data.title is not None:
            update_data["title"] = data.title
        if data.fields is not None:
            update_data["fields"] = [f.model_dump(mode="json") for f in data.fields]

        if not update_data:
            return existing

        update_data["updated_at"] = datetime.utcnow().isoformat()

        try:
            result = (
                self.db.table(self.table)
                .update(update_data)
                .eq("id", form_id)
                .eq("shop", shop)
                .execute()
            )

            form = FormResponse(**result.data[0])

            logger.info("form_updated", form_id=form_id, fields=list(update_data.keys()))

            return form

        except Exception as e:
            logger.error("update_form_failed", form_id=form_id, error=str(e))
            raise DatabaseError("update", str(e))

    def delete(self, form_id: str, shop: str) -> bool:
        """
        Delete a form and its submissions.

        Raises:
            FormNotFoundError: If form doesn't exist for the shop
        """
        logger.info("deleting_form", form_id=form_id, shop=shop)

        self.get(form_id, shop)

        try:
            self.db.table("form_submissions").delete().eq("form_id", form_id).execute()
            self.db.table(self.table).delete().eq("id", form_id).eq("shop", shop).execute()

            logger.info("form_deleted", form_id=form_id)

            return True

        except Exception as e:
            logger.error("delete_form_failed", form_id=form_id, error=str(e))
            raise DatabaseError("delete", str(e))


# Singleton instance for convenience
_form_service: Optional[FormService] = None


def get_form_service() -> FormService:
    """Get or create FormService instance."""
    global _form_service
    if _form_service is None:
        _form_service = FormService()
    return _form_service

"""
Form builder API routes (admin).

Forms and their submissions, scoped to the requesting shop.
"""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
import structlog

from integrations.shopify import get_shopify_client
from models.form import (
    ApproveSubmissionRequest,
    FormCreate,
    FormResponse,
    FormUpdate,
    SubmissionResponse,
)
from models.shop import ShopContext
from routes.dependencies import get_shop_context
from services.form_service import get_form_service
from services.submission_service import get_submission_service
from exceptions import AppError

logger = structlog.get_logger(__name__)

router = APIRouter()


# ===================
# EXCEPTION HANDLER
# ===================

def handle_error(e: Exception) -> JSONResponse:
    """Convert exception to JSON response."""
    if isinstance(e, AppError):
        return JSONResponse(
            status_code=e.status_code,
            content=e.to_dict()
        )
    # Unexpected error
    logger.error("unexpected_error", error=str(e), type=type(e).__name__)
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred"
            }
        }
    )


# ===================
# FORMS
# ===================

@router.get("", response_model=list[FormResponse])
async def list_forms(shop: ShopContext = Depends(get_shop_context)):
    """List the shop's forms, newest first."""
    try:
        return get_form_service().get_all(shop.shop)
    except Exception as e:
        return handle_error(e)


@router.post("", response_model=FormResponse, status_code=201)
async def create_form(data: FormCreate, shop: ShopContext = Depends(get_shop_context)):
    """
    Create a form.

    Returns 409 when the shop already has its maximum number of forms.
    """
    try:
        return get_form_service().create(shop.shop, data)
    except Exception as e:
        return handle_error(e)


@router.get("/{form_id}", response_model=FormResponse)
async def get_form(form_id: str, shop: ShopContext = Depends(get_shop_context)):
    """Get a single form."""
    try:
        return get_form_service().get(form_id, shop.shop)
    except Exception as e:
        return handle_error(e)


@router.patch("/{form_id}", response_model=FormResponse)
async def update_form(form_id: str, data: FormUpdate, shop: ShopContext = Depends(get_shop_context)):
    """Update a form's title or fields."""
    try:
        return get_form_service().update(form_id, shop.shop, data)
    except Exception as e:
        return handle_error(e)


@router.delete("/{form_id}")
async def delete_form(form_id: str, shop: ShopContext = Depends(get_shop_context)):
    """Delete a form and its submissions."""
    try:
        get_form_service().delete(form_id, shop.shop)
        return {"success": True, "id": form_id}
    except Exception as e:
        return handle_error(e)


# ===================
# SUBMISSIONS
# ===================

@router.get("/{form_id}/submissions", response_model=list[SubmissionResponse])
async def list_submissions(form_id: str, shop: ShopContext = Depends(get_shop_context)):
    """Submissions of a form, newest first."""
    try:
        return get_submission_service().get_for_form(form_id, shop.shop)
    except Exception as e:
        return handle_error(e)


@router.delete("/{form_id}/submissions/{submission_id}")
async def delete_submission(form_id: str, submission_id: str, shop: ShopContext = Depends(get_shop_context)):
    """Delete a submission."""
    try:
        get_form_service().get(form_id, shop.shop)
        get_submission_service().delete(submission_id)
        return {"success": True, "id": submission_id}
    except Exception as e:
        return handle_error(e)


@router.post("/{form_id}/submissions/{submission_id}/approve", response_model=SubmissionResponse)
async def approve_submission(
    form_id: str,
    submission_id: str,
    data: ApproveSubmissionRequest = ApproveSubmissionRequest(),
    shop: ShopContext = Depends(get_shop_context),
):
    """Approve a submission; by default also creates a B2B-tagged customer."""
    try:
        get_form_service().get(form_id, shop.shop)
        return get_submission_service().approve(
            submission_id,
            get_shopify_client(shop),
            create_customer=data.create_customer
        )
    except Exception as e:
        return handle_error(e)


@router.post("/{form_id}/submissions/{submission_id}/reject", response_model=SubmissionResponse)
async def reject_submission(form_id: str, submission_id: str, shop: ShopContext = Depends(get_shop_context)):
    """Reject a submission."""
    try:
        get_form_service().get(form_id, shop.shop)
        return get_submission_service().reject(submission_id)
    except Exception as e:
        return handle_error(e)

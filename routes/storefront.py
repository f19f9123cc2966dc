"""
Storefront form API routes.

Public endpoints the theme script calls to render a form and post a
submission. No shop credentials are needed.
"""

from fastapi import APIRouter
from fastapi.responses import JSONResponse
import structlog

from models.form import PublicFormResponse, SubmissionCreate
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
# ROUTES
# ===================

@router.get("/forms/{form_id}", response_model=PublicFormResponse)
async def get_public_form(form_id: str):
    """Form definition for the storefront renderer."""
    try:
        return get_form_service().get_public(form_id)
    except Exception as e:
        return handle_error(e)


@router.post("/forms/submit", status_code=201)
async def submit_form(data: SubmissionCreate):
    """Store a storefront submission."""
    try:
        submission = get_submission_service().create(data)
        return {"success": True, "id": submission.id}
    except Exception as e:
        return handle_error(e)

"""
Lead-capture form and submission schemas.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Any, Optional
from enum import Enum

from models.base import BaseSchema, ShopScopedMixin, TimestampMixin


class FieldType(str, Enum):
    """Input types the storefront renderer understands."""
    HEADER = "header"
    TEXT = "text"
    TEXTAREA = "textarea"
    EMAIL = "email"
    NUMBER = "number"
    PHONE = "phone"
    SELECT = "select"
    RADIO = "radio"
    CHECKBOX = "checkbox"
    FILE = "file"


class SubmissionStatus(str, Enum):
    """Review state of a submission."""
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class FormField(BaseSchema):
    """One field of a form. Submissions are keyed by the field label."""

    id: str = Field(..., min_length=1, description="Stable field id")
    type: FieldType = Field(..., description="Input type")
    label: str = Field(..., min_length=1, max_length=200)
    required: bool = False
    options: list[str] = Field(default_factory=list, description="Choices for select/radio/checkbox")
    placeholder: Optional[str] = None


class FormCreate(BaseSchema):
    """
    Create a form.

    Required: title
    Optional: fields
    """

    title: str = Field(..., min_length=1, max_length=200)
    fields: list[FormField] = Field(default_factory=list)

    @field_validator("fields")
    @classmethod
    def unique_field_ids(cls, v: list[FormField]) -> list[FormField]:
        """Field ids must be unique within a form."""
        ids = [f.id for f in v]
        if len(ids) != len(set(ids)):
            raise ValueError("Field ids must be unique")
        return v


class FormUpdate(BaseSchema):
    """
    Update an existing form.

    All fields optional - only provided fields are updated.
    """

    title: Optional[str] = Field(None, min_length=1, max_length=200)
    fields: Optional[list[FormField]] = None


class FormResponse(BaseSchema, ShopScopedMixin, TimestampMixin):
    """Form as stored."""

    id: str
    title: str
    fields: list[FormField] = Field(default_factory=list)


class PublicFormResponse(BaseSchema):
    """What the storefront needs to render a form."""

    id: str
    title: str
    fields: list[FormField]


class SubmissionCreate(BaseModel):
    """Storefront submission."""

    form_id: str = Field(..., min_length=1, alias="formId")
    data: dict[str, Any] = Field(..., description="Values keyed by field label")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("form_id", mode="before")
    @classmethod
    def form_id_to_str(cls, v: Any) -> Any:
        """Storefront scripts may send the id as a number."""
        if isinstance(v, int):
            return str(v)
        return v

    @field_validator("data")
    @classmethod
    def not_empty(cls, v: dict[str, Any]) -> dict[str, Any]:
        if not v:
            raise ValueError("Submission data cannot be empty")
        return v


class SubmissionResponse(BaseSchema, TimestampMixin):
    """Submission as stored."""

    id: str
    form_id: str
    data: dict[str, Any]
    status: SubmissionStatus = SubmissionStatus.PENDING
    customer_id: Optional[str] = None


class ApproveSubmissionRequest(BaseModel):
    """Approve options."""

    create_customer: bool = Field(
        True,
        description="Create a Shopify customer tagged for B2B pricing"
    )

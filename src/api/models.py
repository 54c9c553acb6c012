"""
API request and response models.

Pydantic models for FastAPI endpoint validation and OpenAPI schema generation.
Response models read domain dataclasses directly (from_attributes), so
money fields stay Decimal and serialize as exact strings.
"""

from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from src.domain.ports import ItemStatus, VerificationStatus


class ErrorResponse(BaseModel):
    """Standard error response model."""

    detail: str


# --- Pricing and catalog ---


class PricingResponse(BaseModel):
    """Per-buyer price breakdown; all amounts are rounded to cents."""

    model_config = ConfigDict(from_attributes=True)

    original_price: Decimal
    discount: Decimal
    platform_fee: Decimal
    author_earnings: Decimal
    final_price: Decimal


class EbookResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    author_id: str
    author_name: str
    base_price: Decimal
    currency: str
    file_format: str
    status: ItemStatus
    admin_notes: str | None = None
    reviewed_by: str | None = None
    reviewed_at: datetime | None = None
    total_sales: int
    total_revenue: Decimal
    author_earnings: Decimal
    platform_earnings: Decimal
    created_at: datetime | None = None


class EbookPricing(BaseModel):
    student: PricingResponse
    regular: PricingResponse


class CatalogEntryResponse(BaseModel):
    """A published ebook with both student and regular pricing."""

    ebook: EbookResponse
    pricing: EbookPricing


class CreateEbookRequest(BaseModel):
    """Request model for an author's draft ebook."""

    title: str = Field(..., min_length=1, max_length=255)
    author_id: str = Field(..., min_length=1)
    author_name: str = Field(..., min_length=1, max_length=255)
    base_price: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)
    currency: str = Field("USD", pattern=r"^[A-Za-z]{3}$")
    file_ref: str = Field(..., min_length=1, description="Storage reference of the uploaded file")
    file_format: str = Field(..., min_length=1, max_length=10)


class SubmitEbookRequest(BaseModel):
    author_id: str = Field(..., min_length=1)


class ReviewEbookRequest(BaseModel):
    """Admin decision on a submitted ebook."""

    status: Literal["published", "rejected"]
    admin_notes: str | None = Field(None, max_length=2000)


# --- Purchases ---


class PurchaseRequest(BaseModel):
    email: EmailStr


class DownloadInfo(BaseModel):
    """Everything the buyer needs to fetch the file once payment completes."""

    email: str
    secret: str
    download_url: str


class PurchaseResponse(BaseModel):
    message: str
    purchase_id: str
    order_id: str
    status: str
    currency: str
    pricing: PricingResponse
    download_info: DownloadInfo
    payment_provider: str | None = None
    payment_reference: str | None = None
    payment_redirect_url: str | None = None


class PaymentWebhookRequest(BaseModel):
    """Payment provider callback."""

    purchase_id: str = Field(..., min_length=1)
    transaction_id: str = Field(..., min_length=1, max_length=255)
    status: Literal["completed", "failed"]
    reason: str | None = Field(None, max_length=500)


class PaymentWebhookResponse(BaseModel):
    purchase_id: str
    status: str


# --- Students ---


class StudentRegistrationResponse(BaseModel):
    message: str
    student_id: str


class StudentResponse(BaseModel):
    """Administrator view of a student record (never the password hash)."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    first_name: str
    last_name: str
    country: str
    university_name: str
    academic_branch: str
    year_of_joining: int
    expected_graduation: str | None = None
    document_type: str
    verification_status: VerificationStatus
    admin_notes: str | None = None
    verified_by: str | None = None
    verified_at: datetime | None = None
    is_active: bool
    is_converted: bool
    converted_user_id: str | None = None
    conversion_date: datetime | None = None
    admin_extension_count: int
    last_extension_date: datetime | None = None
    conversion_scheduled_for: datetime | None = None
    graduation_completed: bool
    graduation_completion_date: datetime | None = None
    created_at: datetime | None = None


class VerifyStudentRequest(BaseModel):
    """Admin decision on a pending student application."""

    status: Literal["approved", "rejected"]
    admin_notes: str | None = Field(None, max_length=2000)


class StudentActionResponse(BaseModel):
    message: str
    student: StudentResponse


class ConversionResponse(BaseModel):
    message: str
    student_id: str
    user_id: str


class RunConversionResponse(BaseModel):
    converted_count: int
    errors: list[str]


class StudentStatsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    verified_students: int
    active_students: int
    converted_students: int
    eligible_for_conversion: int
    extensions_granted: int


class SchedulerStatusResponse(BaseModel):
    running: bool
    next_run_at: str | None = None


# --- Platform settings ---


class SettingResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    key: str
    value: str
    setting_type: str
    category: str
    description: str | None = None
    version: int
    updated_by: str | None = None
    updated_at: datetime | None = None


class UpdateSettingRequest(BaseModel):
    value: str = Field(..., min_length=1, max_length=500)


class UpdateSettingResponse(BaseModel):
    message: str
    setting: SettingResponse


# --- Location ---


class LocationResponse(BaseModel):
    country: str
    region: str
    ebooks: bool
    gardening_tools: bool

"""
Domain records - Plain dataclasses passed between services and adapters.

Repositories build these from database rows; services never see rows.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from pathlib import Path

from .ports import ItemStatus, PurchaseStatus, VerificationStatus


@dataclass
class PlatformSetting:
    key: str
    value: str
    setting_type: str
    category: str
    description: str | None = None
    version: int = 1
    updated_by: str | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class PriceBreakdown:
    """Result of pricing one item for one buyer class.

    Invariants: final_price == original_price - discount and
    discount + platform_fee + author_earnings == original_price.
    """

    original_price: Decimal
    discount: Decimal
    platform_fee: Decimal
    author_earnings: Decimal
    final_price: Decimal


@dataclass
class CatalogItem:
    id: str
    title: str
    author_id: str
    author_name: str
    base_price: Decimal
    currency: str
    file_ref: str
    file_format: str
    status: ItemStatus
    admin_notes: str | None = None
    reviewed_by: str | None = None
    reviewed_at: datetime | None = None
    total_sales: int = 0
    total_revenue: Decimal = Decimal("0.00")
    author_earnings: Decimal = Decimal("0.00")
    platform_earnings: Decimal = Decimal("0.00")
    created_at: datetime | None = None


@dataclass
class NewPurchase:
    """Values for a purchase row about to be inserted."""

    order_id: str
    buyer_email: str
    student_id: str | None
    item_id: str
    pricing: PriceBreakdown
    currency: str
    credential: str


@dataclass
class Purchase:
    id: str
    order_id: str
    buyer_email: str
    student_id: str | None
    item_id: str
    list_price: Decimal
    discount: Decimal
    platform_fee: Decimal
    author_earnings: Decimal
    final_price: Decimal
    currency: str
    credential: str
    status: PurchaseStatus
    payment_provider: str | None = None
    payment_reference: str | None = None
    transaction_id: str | None = None
    failure_reason: str | None = None
    created_at: datetime | None = None
    completed_at: datetime | None = None


@dataclass
class PurchaseReceipt:
    """What a buyer receives after checkout starts."""

    purchase: Purchase
    download_url: str
    payment_redirect_url: str | None = None


@dataclass
class StudentRegistration:
    email: str
    password: str
    first_name: str
    last_name: str
    country: str
    university_name: str
    academic_branch: str
    year_of_joining: int
    expected_graduation: str | None = None


@dataclass
class UploadedDocument:
    filename: str
    content_type: str
    content: bytes

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass
class NewStudent:
    """Values for a student row about to be inserted."""

    email: str
    password_hash: str
    first_name: str
    last_name: str
    country: str
    university_name: str
    academic_branch: str
    year_of_joining: int
    expected_graduation: str | None
    document_ref: str
    document_type: str
    conversion_scheduled_for: datetime


@dataclass
class StudentRecord:
    id: str
    email: str
    first_name: str
    last_name: str
    country: str
    password_hash: str
    university_name: str
    academic_branch: str
    year_of_joining: int
    expected_graduation: str | None
    document_ref: str
    document_type: str
    verification_status: VerificationStatus
    admin_notes: str | None = None
    verified_by: str | None = None
    verified_at: datetime | None = None
    is_active: bool = True
    is_converted: bool = False
    converted_user_id: str | None = None
    conversion_date: datetime | None = None
    admin_extension_count: int = 0
    last_extension_date: datetime | None = None
    conversion_scheduled_for: datetime | None = None
    graduation_completed: bool = False
    graduation_completion_date: datetime | None = None
    created_at: datetime | None = None


@dataclass
class UserAccount:
    id: str
    email: str
    first_name: str
    last_name: str
    password_hash: str
    location: str | None = None
    source_student_id: str | None = None
    created_at: datetime | None = None


@dataclass
class StudentStats:
    verified_students: int
    active_students: int
    converted_students: int
    eligible_for_conversion: int
    extensions_granted: int


@dataclass
class SweepResult:
    converted_count: int = 0
    errors: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class PaymentSession:
    """Opaque handle returned by a payment provider for one order."""

    reference: str
    redirect_url: str | None = None


@dataclass(frozen=True)
class BlobHandle:
    """A resolved file ready for delivery."""

    path: Path
    filename: str
    media_type: str = "application/octet-stream"

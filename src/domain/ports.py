"""
Port interfaces - Protocol definitions for infrastructure abstraction.

This module defines the state enums shared by every layer and the
interfaces (ports) that the domain requires from infrastructure.
Adapters implement these protocols via structural subtyping.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from .models import (
        BlobHandle,
        CatalogItem,
        NewPurchase,
        NewStudent,
        PaymentSession,
        PlatformSetting,
        Purchase,
        StudentRecord,
        StudentStats,
        UploadedDocument,
        UserAccount,
    )


class ItemStatus(str, Enum):
    """
    Catalog item lifecycle.

    State Transitions (forward-only):
    - DRAFT -> SUBMITTED (author submits for review)
    - SUBMITTED -> PUBLISHED (admin approves)
    - SUBMITTED -> REJECTED (admin rejects)

    PUBLISHED and REJECTED are terminal; no re-submission path exists.
    """

    DRAFT = "draft"
    SUBMITTED = "submitted"
    PUBLISHED = "published"
    REJECTED = "rejected"


class PurchaseStatus(str, Enum):
    """
    Purchase payment lifecycle.

    State Transitions:
    - PENDING -> COMPLETED (confirmed payment)
    - PENDING -> FAILED (payment failure or timeout)

    REFUNDED has no inbound transition yet; it is reserved for a
    future refund flow.
    """

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class VerificationStatus(str, Enum):
    """
    Student verification lifecycle.

    State Transitions:
    - PENDING -> APPROVED | REJECTED (admin review)
    - APPROVED -> GRADUATED (graduation recorded)

    Conversion into a regular account is tracked by the is_converted
    flag and is allowed from APPROVED or GRADUATED only.
    """

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    GRADUATED = "graduated"


CONVERTIBLE_STATUSES = (VerificationStatus.APPROVED, VerificationStatus.GRADUATED)


class SettingsRepository(Protocol):
    """Port interface for platform settings persistence."""

    def insert_missing(self, settings: list[PlatformSetting]) -> int:
        """Insert settings whose key is absent; return how many were inserted."""
        ...

    def get_setting(self, key: str) -> PlatformSetting | None: ...

    def list_settings(self) -> list[PlatformSetting]: ...

    def update_setting(self, key: str, value: str, updated_by: str) -> PlatformSetting | None:
        """Overwrite a value and bump its version. None if the key is unknown."""
        ...


class CatalogRepository(Protocol):
    """Port interface for catalog item persistence."""

    def create_item(
        self,
        title: str,
        author_id: str,
        author_name: str,
        base_price: Decimal,
        currency: str,
        file_ref: str,
        file_format: str,
    ) -> CatalogItem: ...

    def get_item(self, item_id: str) -> CatalogItem | None: ...

    def list_published(self, limit: int, offset: int) -> list[CatalogItem]: ...

    def transition_item(
        self,
        item_id: str,
        from_status: ItemStatus,
        to_status: ItemStatus,
        reviewed_by: str | None = None,
        notes: str | None = None,
    ) -> CatalogItem | None:
        """
        Conditionally move an item between states.

        Returns the updated item, or None if the item was not in
        from_status (no row affected).
        """
        ...


class PurchaseRepository(Protocol):
    """Port interface for purchase persistence and sales aggregates."""

    def create_purchase(self, purchase: NewPurchase) -> Purchase: ...

    def attach_payment(self, purchase_id: str, provider: str, reference: str) -> None: ...

    def get_purchase(self, purchase_id: str) -> Purchase | None: ...

    def complete_purchase(self, purchase_id: str, transaction_id: str) -> Purchase | None:
        """
        Atomically move a purchase from PENDING to COMPLETED.

        Within the same transaction, recomputes the owning item's
        aggregates from the full set of completed purchases.

        Returns:
            The completed purchase, or None if it was not PENDING
        """
        ...

    def fail_purchase(self, purchase_id: str, reason: str | None) -> Purchase | None:
        """Atomically move a purchase from PENDING to FAILED. None if not PENDING."""
        ...

    def recompute_item_stats(self, item_id: str) -> CatalogItem | None: ...

    def completed_credentials(self, buyer_email: str, item_id: str) -> list[str]:
        """Credentials of completed purchases for exactly this (email, item) pair."""
        ...


class StudentRepository(Protocol):
    """Port interface for student verification persistence."""

    def create_student(self, student: NewStudent) -> StudentRecord | None:
        """Insert a PENDING record. None if the email is already registered."""
        ...

    def get_student(self, student_id: str) -> StudentRecord | None: ...

    def find_privileged(self, email: str) -> StudentRecord | None:
        """Approved, active, unconverted record for this email, if any."""
        ...

    def list_by_status(self, status: VerificationStatus) -> list[StudentRecord]: ...

    def review_student(
        self,
        student_id: str,
        status: VerificationStatus,
        admin_id: str,
        notes: str | None,
    ) -> StudentRecord | None:
        """PENDING -> status. None if the record was not PENDING."""
        ...

    def extend_student(self, student_id: str, years: int) -> StudentRecord | None:
        """Push the conversion date of an APPROVED, unconverted record."""
        ...

    def mark_graduated(self, student_id: str) -> StudentRecord | None:
        """APPROVED -> GRADUATED. None if the record was not APPROVED."""
        ...

    def convert_student(self, student_id: str) -> UserAccount | None:
        """
        Convert a student into a regular account in one transaction.

        The conditional update on is_converted gates the account insert,
        so at most one caller can succeed per record.

        Returns:
            The new account, or None if the guard matched no row

        Raises:
            AccountConflict: If a regular account already owns the email
        """
        ...

    def list_eligible_for_conversion(self, now: datetime) -> list[StudentRecord]: ...

    def student_stats(self, now: datetime) -> StudentStats: ...


class PaymentProvider(Protocol):
    """Port interface for the external payment collaborator."""

    name: str

    def create_payment(
        self, order_id: str, amount: Decimal, currency: str, buyer_email: str
    ) -> PaymentSession: ...


class Notifier(Protocol):
    """Port interface for messages sent to students."""

    def send_registration_received(self, email: str, first_name: str) -> None: ...

    def send_approval(self, email: str, first_name: str) -> None: ...

    def send_rejection(self, email: str, first_name: str, reason: str) -> None: ...

    def send_conversion(self, email: str, first_name: str) -> None: ...


class BlobStore(Protocol):
    """Port interface for file storage."""

    def put(self, key: str, content: bytes) -> str:
        """Store content and return an opaque reference."""
        ...

    def open(self, ref: str, filename: str) -> BlobHandle | None:
        """Resolve a reference into a deliverable handle. None if missing."""
        ...

    def delete(self, ref: str) -> None:
        """Remove stored content. Missing references are ignored."""
        ...


class DocumentValidator(Protocol):
    """Port interface for identity-proof document policy."""

    def validate(self, document: UploadedDocument) -> None:
        """Raise ValidationError if the document breaks policy."""
        ...


class Geolocator(Protocol):
    """Port interface for IP geolocation."""

    def detect_country(self, ip: str | None) -> str: ...

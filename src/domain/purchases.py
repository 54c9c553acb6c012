"""
Purchase domain service - Checkout, payment confirmation and delivery.

Purchase State Machine
======================

States:
- PENDING: Created at checkout, credential issued, awaiting payment
- COMPLETED: Payment confirmed; the credential now unlocks the download
- FAILED: Payment failed or timed out
- REFUNDED: Reserved, no inbound transition yet

Valid Transitions (enforced by conditional updates in the repository):
    PENDING -> COMPLETED
    PENDING -> FAILED

Confirmation is idempotent: payment providers deliver webhooks at
least once, so confirming an already completed purchase is a no-op.
Item sales aggregates are recomputed from every completed purchase
rather than incremented, so a duplicate or missed event cannot make
them drift.
"""

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timezone

from .credentials import CredentialService, normalize_email
from .exceptions import (
    AccessDenied,
    InvalidTransition,
    ItemNotFound,
    ItemUnavailable,
    PurchaseNotFound,
    ValidationError,
)
from .models import BlobHandle, CatalogItem, NewPurchase, Purchase, PurchaseReceipt
from .ports import (
    BlobStore,
    CatalogRepository,
    ItemStatus,
    PaymentProvider,
    PurchaseRepository,
    PurchaseStatus,
    StudentRepository,
)
from .pricing import PricingEngine

logger = logging.getLogger(__name__)


@dataclass
class PurchaseService:
    """
    Domain service for the purchase lifecycle.

    Orchestrates pricing, credential issuance, payment hand-off,
    confirmation and credential-gated delivery.
    """

    purchases: PurchaseRepository
    catalog: CatalogRepository
    students: StudentRepository
    pricing: PricingEngine
    credentials: CredentialService
    payment_provider: PaymentProvider
    blob_store: BlobStore

    def create_purchase(self, item_id: str, buyer_email: str) -> PurchaseReceipt:
        """
        Start checkout for one item.

        Args:
            item_id: Catalog item to buy
            buyer_email: Buyer email (will be normalized)

        Returns:
            PurchaseReceipt with the PENDING purchase and delivery info

        Raises:
            ItemUnavailable: If the item does not exist or is not published
            ValidationError: If the email is empty
            ConfigurationError: If pricing settings cannot be read
        """
        email = normalize_email(buyer_email)
        if not email:
            raise ValidationError("Email is required")

        item = self.catalog.get_item(item_id)
        if item is None or item.status != ItemStatus.PUBLISHED:
            raise ItemUnavailable(item_id)

        student = self.students.find_privileged(email)
        pricing = self.pricing.price(item.base_price, is_privileged=student is not None)
        credential = self.credentials.issue(email, item.id)

        purchase = self.purchases.create_purchase(
            NewPurchase(
                order_id=self._generate_order_id(),
                buyer_email=email,
                student_id=student.id if student is not None else None,
                item_id=item.id,
                pricing=pricing,
                currency=item.currency,
                credential=credential,
            )
        )
        logger.info(
            "Purchase %s (order %s) created for item %s, final price %s %s%s",
            purchase.id,
            purchase.order_id,
            item.id,
            purchase.final_price,
            purchase.currency,
            " with student discount" if student is not None else "",
        )

        try:
            session = self.payment_provider.create_payment(
                purchase.order_id, purchase.final_price, purchase.currency, email
            )
        except Exception:
            logger.error("Payment provider rejected order %s", purchase.order_id)
            self.purchases.fail_purchase(purchase.id, "payment provider error")
            raise

        self.purchases.attach_payment(purchase.id, self.payment_provider.name, session.reference)
        purchase.payment_provider = self.payment_provider.name
        purchase.payment_reference = session.reference

        return PurchaseReceipt(
            purchase=purchase,
            download_url=self.download_url(item.id),
            payment_redirect_url=session.redirect_url,
        )

    def confirm_purchase(self, purchase_id: str, transaction_id: str) -> Purchase:
        """
        Mark a purchase COMPLETED after a confirmed payment.

        Safe to call repeatedly: an already completed purchase is
        returned unchanged and aggregates are not touched again.

        Raises:
            PurchaseNotFound: If the purchase does not exist
            InvalidTransition: If the purchase already FAILED or was REFUNDED
        """
        completed = self.purchases.complete_purchase(purchase_id, transaction_id)
        if completed is not None:
            logger.info(
                "Purchase %s completed (transaction %s), stats recomputed for item %s",
                purchase_id,
                transaction_id,
                completed.item_id,
            )
            return completed

        current = self._get(purchase_id)
        if current.status == PurchaseStatus.COMPLETED:
            if current.transaction_id != transaction_id:
                logger.warning(
                    "Purchase %s already completed by transaction %s, ignoring %s",
                    purchase_id,
                    current.transaction_id,
                    transaction_id,
                )
            else:
                logger.info("Duplicate confirmation for purchase %s ignored", purchase_id)
            return current

        raise InvalidTransition(f"Purchase is {current.status.value}; cannot complete")

    def fail_purchase(self, purchase_id: str, reason: str | None = None) -> Purchase:
        """
        Mark a PENDING purchase FAILED. Repeating the call is a no-op.

        Raises:
            PurchaseNotFound: If the purchase does not exist
            InvalidTransition: If the purchase is already COMPLETED
        """
        failed = self.purchases.fail_purchase(purchase_id, reason)
        if failed is not None:
            logger.info("Purchase %s failed: %s", purchase_id, reason or "no reason given")
            return failed

        current = self._get(purchase_id)
        if current.status == PurchaseStatus.FAILED:
            return current
        raise InvalidTransition(f"Purchase is {current.status.value}; cannot fail")

    def handle_payment_event(
        self,
        purchase_id: str,
        transaction_id: str,
        succeeded: bool,
        reason: str | None = None,
    ) -> Purchase:
        """Entry point for payment provider callbacks."""
        if succeeded:
            return self.confirm_purchase(purchase_id, transaction_id)
        return self.fail_purchase(purchase_id, reason)

    def recompute_item_stats(self, item_id: str) -> CatalogItem:
        """Rebuild an item's sales aggregates from its completed purchases."""
        item = self.purchases.recompute_item_stats(item_id)
        if item is None:
            raise ItemNotFound(item_id)
        return item

    def download(self, item_id: str, email: str, secret: str) -> BlobHandle:
        """
        Resolve the file for a verified buyer.

        Raises:
            AccessDenied: For any credential failure, without saying which
        """
        if not self.credentials.verify(item_id, email, secret):
            raise AccessDenied()

        item = self.catalog.get_item(item_id)
        if item is None:
            raise ItemNotFound(item_id)

        handle = self.blob_store.open(item.file_ref, f"{item.title}.{item.file_format}")
        if handle is None:
            logger.error("File %s for item %s is missing from storage", item.file_ref, item_id)
            raise ItemNotFound(item_id)
        return handle

    def get(self, purchase_id: str) -> Purchase:
        return self._get(purchase_id)

    @staticmethod
    def download_url(item_id: str) -> str:
        return f"/v1/ebooks/{item_id}/download"

    def _get(self, purchase_id: str) -> Purchase:
        purchase = self.purchases.get_purchase(purchase_id)
        if purchase is None:
            raise PurchaseNotFound(purchase_id)
        return purchase

    def _generate_order_id(self) -> str:
        """Human-traceable order id: ORD-YYYYMMDD-XXXXXXXX."""
        today = datetime.now(timezone.utc).strftime("%Y%m%d")
        return f"ORD-{today}-{secrets.token_hex(4).upper()}"

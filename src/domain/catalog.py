"""
Catalog domain service - E-book publication lifecycle.

Authors create drafts and submit them; administrators publish or
reject submissions. Only published items can be sold. Revenue fields
on an item are never written here: they are recomputed from completed
purchases by the purchase repository.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from .exceptions import InvalidTransition, ItemNotFound, ValidationError
from .models import CatalogItem, PriceBreakdown
from .platform_settings import ALLOWED_FILE_FORMATS, PlatformSettingsService
from .ports import CatalogRepository, ItemStatus
from .pricing import PricingEngine, to_cents

logger = logging.getLogger(__name__)

REVIEW_DECISIONS = (ItemStatus.PUBLISHED, ItemStatus.REJECTED)


@dataclass
class CatalogService:
    """Domain service for catalog items."""

    repository: CatalogRepository
    pricing: PricingEngine
    settings: PlatformSettingsService

    def create_item(
        self,
        title: str,
        author_id: str,
        author_name: str,
        base_price: Decimal,
        file_ref: str,
        file_format: str,
        currency: str = "USD",
    ) -> CatalogItem:
        """
        Create a DRAFT item.

        Raises:
            ValidationError: If the price is not positive or the format
                is not in the allowed_file_formats setting
        """
        try:
            price = to_cents(Decimal(base_price))
        except InvalidOperation:
            raise ValidationError("Base price must be a number") from None
        if price <= 0:
            raise ValidationError("Base price must be positive")

        file_format = file_format.strip().lower().lstrip(".")
        allowed = self.settings.get_list(ALLOWED_FILE_FORMATS)
        if file_format not in allowed:
            raise ValidationError(
                f"Invalid file format. Allowed formats: {', '.join(allowed)}"
            )

        item = self.repository.create_item(
            title=title.strip(),
            author_id=author_id,
            author_name=author_name.strip(),
            base_price=price,
            currency=currency.upper(),
            file_ref=file_ref,
            file_format=file_format,
        )
        logger.info("Catalog item %s created by author %s", item.id, author_id)
        return item

    def get(self, item_id: str) -> CatalogItem:
        item = self.repository.get_item(item_id)
        if item is None:
            raise ItemNotFound(item_id)
        return item

    def submit(self, item_id: str, author_id: str) -> CatalogItem:
        """DRAFT -> SUBMITTED, by the owning author only."""
        item = self.get(item_id)
        if item.author_id != author_id:
            raise InvalidTransition("Only the author can submit this item")
        return self._transition(item_id, ItemStatus.DRAFT, ItemStatus.SUBMITTED)

    def review(
        self, item_id: str, decision: ItemStatus, admin_id: str, notes: str | None = None
    ) -> CatalogItem:
        """
        SUBMITTED -> PUBLISHED or REJECTED (admin-only, one-way).

        Raises:
            ValidationError: If decision is neither PUBLISHED nor REJECTED
            InvalidTransition: If the item is not SUBMITTED
        """
        if decision not in REVIEW_DECISIONS:
            raise ValidationError("Decision must be 'published' or 'rejected'")
        item = self._transition(
            item_id, ItemStatus.SUBMITTED, decision, reviewed_by=admin_id, notes=notes
        )
        logger.info("Catalog item %s %s by %s", item_id, decision.value, admin_id)
        return item

    def list_published(
        self, limit: int = 50, offset: int = 0
    ) -> list[tuple[CatalogItem, dict[str, PriceBreakdown]]]:
        """Published items, each with its student and regular pricing."""
        items = self.repository.list_published(limit, offset)
        return [(item, self.pricing.quote(item.base_price)) for item in items]

    def get_published(self, item_id: str) -> tuple[CatalogItem, dict[str, PriceBreakdown]]:
        item = self.get(item_id)
        if item.status != ItemStatus.PUBLISHED:
            raise ItemNotFound(item_id)
        return item, self.pricing.quote(item.base_price)

    def _transition(
        self,
        item_id: str,
        from_status: ItemStatus,
        to_status: ItemStatus,
        reviewed_by: str | None = None,
        notes: str | None = None,
    ) -> CatalogItem:
        updated = self.repository.transition_item(
            item_id, from_status, to_status, reviewed_by=reviewed_by, notes=notes
        )
        if updated is not None:
            return updated

        current = self.get(item_id)
        raise InvalidTransition(
            f"Item is {current.status.value}; expected {from_status.value} "
            f"to move to {to_status.value}"
        )

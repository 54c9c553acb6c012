"""
Pricing engine - Buyer-class aware price breakdown.

Computation order (every amount rounded to cents, ROUND_HALF_UP):
1. discount        = original_price * student_discount_percent / 100 (students only)
2. final_price     = original_price - discount
3. platform_fee    = final_price * platform_fee_value / 100
                     (or a fixed amount, capped at final_price)
4. author_earnings = final_price - platform_fee

Because steps 2 and 4 are subtractions of already-rounded amounts,
discount + platform_fee + author_earnings == original_price exactly.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from .exceptions import ValidationError
from .models import PriceBreakdown
from .platform_settings import (
    FEE_TYPES,
    PLATFORM_FEE_TYPE,
    PLATFORM_FEE_VALUE,
    STUDENT_DISCOUNT_PERCENT,
    PlatformSettingsService,
)

CENT = Decimal("0.01")
HUNDRED = Decimal("100")


def to_cents(amount: Decimal) -> Decimal:
    """Round to two decimal places, halves away from zero."""
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass
class PricingEngine:
    """
    Computes price breakdowns from the current platform settings.

    Configuration errors propagate: a sale is never priced with a
    silently zeroed discount or fee.
    """

    settings: PlatformSettingsService

    def price(self, base_price: Decimal, is_privileged: bool) -> PriceBreakdown:
        """
        Price one item for one buyer.

        Args:
            base_price: Positive list price of the item
            is_privileged: True if the buyer is a verified student

        Returns:
            PriceBreakdown with all amounts rounded to cents

        Raises:
            ValidationError: If base_price is not positive
            ConfigurationError: If a pricing setting cannot be read
        """
        original = to_cents(Decimal(base_price))
        if original <= 0:
            raise ValidationError("Base price must be positive")

        discount = Decimal("0.00")
        if is_privileged:
            percent = self.settings.get_percentage(STUDENT_DISCOUNT_PERCENT)
            discount = to_cents(original * percent / HUNDRED)

        final_price = original - discount
        platform_fee = self._platform_fee(final_price)
        author_earnings = final_price - platform_fee

        return PriceBreakdown(
            original_price=original,
            discount=discount,
            platform_fee=platform_fee,
            author_earnings=author_earnings,
            final_price=final_price,
        )

    def quote(self, base_price: Decimal) -> dict[str, PriceBreakdown]:
        """Student and regular breakdowns side by side, for catalog listings."""
        return {
            "student": self.price(base_price, is_privileged=True),
            "regular": self.price(base_price, is_privileged=False),
        }

    def _platform_fee(self, final_price: Decimal) -> Decimal:
        fee_type = self.settings.get_choice(PLATFORM_FEE_TYPE, FEE_TYPES)
        if fee_type == "fixed":
            fixed = to_cents(self.settings.get_decimal(PLATFORM_FEE_VALUE))
            return min(fixed, final_price)
        percent = self.settings.get_percentage(PLATFORM_FEE_VALUE)
        return to_cents(final_price * percent / HUNDRED)

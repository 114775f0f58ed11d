"""
Discount-related exceptions.
"""

from enums.discount import PromoCodeRejection
from enums.pricing_issue import PricingErrorKind
from .base import StorefrontException


PROMO_REJECTION_MESSAGES = {
    PromoCodeRejection.NOT_FOUND: "Promo code not found.",
    PromoCodeRejection.INACTIVE: "This promo code is no longer active.",
    PromoCodeRejection.ALREADY_USED: "This promo code has already been used.",
    PromoCodeRejection.NOT_STARTED: "This promo code is not valid yet.",
    PromoCodeRejection.EXPIRED: "This promo code has expired.",
    PromoCodeRejection.AMOUNT_OUT_OF_RANGE: "Your order total does not qualify for this promo code.",
    PromoCodeRejection.NOT_APPLICABLE: "This promo code is not applicable to items in your cart.",
}


class DiscountException(StorefrontException):
    """Base exception for discount-related errors."""
    pass


class InvalidPromoCodeException(DiscountException):
    """Raised when a submitted promo code cannot be applied. Checkout proceeds without it."""

    kind = PricingErrorKind.INVALID_PROMO_CODE

    def __init__(self, code: str, reason: PromoCodeRejection):
        super().__init__(
            f"Promo code {code} rejected: {reason.value}",
            details={'code': code, 'reason': reason.value}
        )
        self.code = code
        self.reason = reason
        self.safe_message = PROMO_REJECTION_MESSAGES[reason]


class InvalidDiscountRuleException(DiscountException):
    """Raised when an admin-defined rule violates its invariants."""

    def __init__(self, code: str, reason: str):
        super().__init__(
            f"Discount rule {code} is invalid: {reason}",
            details={'code': code, 'reason': reason}
        )
        self.code = code
        self.reason = reason

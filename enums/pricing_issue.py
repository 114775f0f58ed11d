from enum import Enum


class PricingErrorKind(str, Enum):
    """
    Error taxonomy exposed to callers.

    Rejection and fatal kinds block progression to payment capture.
    Soft kinds are returned alongside valid totals.
    """

    # Rejection (client retries with corrected input)
    TOTAL_MISMATCH = "total_mismatch"
    CONCURRENT_MODIFICATION = "concurrent_modification"
    STORE_UNAVAILABLE = "store_unavailable"

    # Soft-fail (checkout proceeds, feature degrades)
    INVALID_PROMO_CODE = "invalid_promo_code"
    GIFT_CARD_INSUFFICIENT_OR_INVALID = "gift_card_insufficient_or_invalid"
    TAX_PROVIDER_UNAVAILABLE = "tax_provider_unavailable"
    UNSUPPORTED_DISPLAY_CURRENCY = "unsupported_display_currency"

    # Fatal (rejected before computation starts)
    MALFORMED_CART = "malformed_cart"

    @property
    def is_soft(self) -> bool:
        return self in {
            PricingErrorKind.INVALID_PROMO_CODE,
            PricingErrorKind.GIFT_CARD_INSUFFICIENT_OR_INVALID,
            PricingErrorKind.TAX_PROVIDER_UNAVAILABLE,
            PricingErrorKind.UNSUPPORTED_DISPLAY_CURRENCY,
        }


class TaxFallbackAction(str, Enum):
    ZERO_TAX = "zero_tax"
    ZERO_TAX_FLAGGED = "zero_tax_flagged"  # zero tax + back-office review flag

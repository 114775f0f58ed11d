"""
Gift card exceptions.

At checkout these degrade to a soft issue: whatever could be applied is
applied and the remainder goes to payment.
"""

from decimal import Decimal

from enums.pricing_issue import PricingErrorKind
from .base import StorefrontException


class GiftCardException(StorefrontException):
    """Base exception for gift card errors."""

    kind = PricingErrorKind.GIFT_CARD_INSUFFICIENT_OR_INVALID


class InvalidGiftCardException(GiftCardException):
    """Raised when a gift card does not exist or cannot be redeemed."""

    safe_message = "This gift card cannot be used."

    def __init__(self, code: str, reason: str):
        super().__init__(
            f"Gift card {code} is invalid: {reason}",
            details={'code': code, 'reason': reason}
        )
        self.code = code
        self.reason = reason


class InsufficientGiftCardBalanceException(GiftCardException):
    """Raised when a gift card has no balance left to redeem."""

    safe_message = "This gift card has no remaining balance."

    def __init__(self, code: str, balance: Decimal):
        super().__init__(
            f"Gift card {code} has insufficient balance {balance}",
            details={'code': code, 'balance': str(balance)}
        )
        self.code = code
        self.balance = balance

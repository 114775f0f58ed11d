"""
Rejection errors raised by the pricing engine.

None of these return totals: the caller must retry the whole pricing
request after correcting input or waiting for the store.
"""

from decimal import Decimal

from enums.pricing_issue import PricingErrorKind
from .base import StorefrontException


class PricingException(StorefrontException):
    """Base exception for pricing rejections."""
    pass


class TotalMismatchException(PricingException):
    """Raised when a client-declared amount disagrees with the server computation."""

    kind = PricingErrorKind.TOTAL_MISMATCH
    safe_message = "Your cart has changed. Please refresh and review your order total."

    def __init__(self, field: str, declared: Decimal, computed: Decimal):
        super().__init__(
            f"Declared {field} {declared} does not match computed {computed}",
            details={'field': field, 'declared': str(declared), 'computed': str(computed)}
        )
        self.field = field
        self.declared = declared
        self.computed = computed


class ConcurrentModificationException(PricingException):
    """Raised when a shared row kept changing under us after all retries."""

    kind = PricingErrorKind.CONCURRENT_MODIFICATION
    safe_message = "Your order could not be completed because a discount or gift card changed. Please try again."

    def __init__(self, entity: str, entity_id: int | str, attempts: int | None = None):
        message = f"Concurrent modification of {entity} {entity_id}"
        if attempts is not None:
            message += f" after {attempts} attempts"
        super().__init__(
            message,
            details={'entity': entity, 'entity_id': entity_id, 'attempts': attempts}
        )
        self.entity = entity
        self.entity_id = entity_id
        self.attempts = attempts


class StoreUnavailableException(PricingException):
    """Raised when discount/gift card state cannot be read or written in time."""

    kind = PricingErrorKind.STORE_UNAVAILABLE
    safe_message = "We could not price your order right now. Please try again."

    def __init__(self, operation: str, reason: str):
        super().__init__(
            f"Store unavailable during {operation}: {reason}",
            details={'operation': operation, 'reason': reason}
        )
        self.operation = operation
        self.reason = reason

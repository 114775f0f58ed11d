"""
Base exception classes for the storefront pricing engine.
"""

from enums.pricing_issue import PricingErrorKind


class StorefrontException(Exception):
    """
    Base exception for all pricing engine errors.

    All custom exceptions in the engine should inherit from this class.
    This allows catching all engine-specific exceptions with a single handler.

    Attributes:
        message: Internal error message (logged, never shown to shoppers)
        details: Optional dict with additional context (entity IDs, amounts, etc.)
        kind: Taxonomy kind exposed to callers
        safe_message: Message that may be shown to the shopper
    """

    kind: PricingErrorKind = PricingErrorKind.STORE_UNAVAILABLE
    safe_message: str = "We could not price your order right now. Please try again."

    def __init__(self, message: str, details: dict | None = None):
        """
        Initialize base exception.

        Args:
            message: Internal error message
            details: Optional dict with additional context
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return the error message."""
        return self.message

    def __repr__(self) -> str:
        """Return detailed representation with context."""
        if self.details:
            details_str = ', '.join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.__class__.__name__}('{self.message}', {details_str})"
        return f"{self.__class__.__name__}('{self.message}')"

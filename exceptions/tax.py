"""
Tax provider exceptions.
"""

from enums.pricing_issue import PricingErrorKind
from .base import StorefrontException


class TaxProviderUnavailableException(StorefrontException):
    """Raised by tax providers on timeout or error. The calculator falls back to zero tax."""

    kind = PricingErrorKind.TAX_PROVIDER_UNAVAILABLE
    safe_message = "Sales tax could not be calculated and will be reviewed before your order ships."

    def __init__(self, provider: str, reason: str, timed_out: bool = False):
        super().__init__(
            f"Tax provider {provider} unavailable: {reason}",
            details={'provider': provider, 'reason': reason, 'timed_out': timed_out}
        )
        self.provider = provider
        self.reason = reason
        self.timed_out = timed_out

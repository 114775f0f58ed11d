"""
Error Handler Utility

Turns engine exceptions into what a caller may see: the taxonomy kind and a
safe message. Internal details (entity ids, store errors, provider
responses) are logged, never returned.

Usage:
    from utils.error_handler import handle_pricing_error

    try:
        totals = await engine.finalize(request, order_reference)
    except StorefrontException as e:
        error = handle_pricing_error(e)
        return {"error": error.model_dump(mode="json")}
"""

import logging

from enums.pricing_issue import PricingErrorKind
from exceptions import StorefrontException
from models.pricing import PricingErrorDTO, PricingIssueDTO

logger = logging.getLogger(__name__)

UNEXPECTED_ERROR_MESSAGE = StorefrontException.safe_message


def handle_pricing_error(exception: Exception) -> PricingErrorDTO:
    """
    Convert an exception raised by the engine into a PricingErrorDTO.

    Unknown exceptions are reported as STORE_UNAVAILABLE with a generic
    message so callers retry the whole request.
    """
    if isinstance(exception, StorefrontException):
        if exception.kind.is_soft:
            logger.info(f"[Pricing] Soft error handled: {exception!r}")
        else:
            logger.warning(f"[Pricing] Request rejected: {exception!r}")
        return PricingErrorDTO(kind=exception.kind, message=exception.safe_message)

    logger.error(f"[Pricing] Unexpected error: {type(exception).__name__} - {exception}", exc_info=exception)
    return PricingErrorDTO(kind=PricingErrorKind.STORE_UNAVAILABLE, message=UNEXPECTED_ERROR_MESSAGE)


def to_issue(exception: StorefrontException, reference: str | None = None) -> PricingIssueDTO:
    """Soft error as an issue returned alongside valid totals."""
    return PricingIssueDTO(kind=exception.kind, message=exception.safe_message, reference=reference)

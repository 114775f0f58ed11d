"""
Custom exceptions for the storefront pricing engine.

This module provides a hierarchy of custom exceptions for consistent error handling
throughout the engine.

Exception Hierarchy:
--------------------
StorefrontException (base)
├── PricingException                      (rejection: retry with corrected input)
│   ├── TotalMismatchException
│   ├── ConcurrentModificationException
│   └── StoreUnavailableException
├── MalformedCartException                (fatal: rejected before computation)
│   ├── EmptyCartException
│   ├── InvalidQuantityException
│   ├── UnknownProductException
│   ├── InvalidShippingSelectionException
│   └── InvalidAmountException
├── DiscountException
│   ├── InvalidPromoCodeException         (soft)
│   └── InvalidDiscountRuleException
├── GiftCardException                     (soft at checkout)
│   ├── InvalidGiftCardException
│   └── InsufficientGiftCardBalanceException
└── TaxProviderUnavailableException       (soft: zero-tax fallback)

Usage:
------
Services raise specific exceptions:
    raise UnknownProductException(product_id=123)

Callers translate them into the public taxonomy:
    try:
        totals = await engine.compute(request, session)
    except StorefrontException as e:
        error = handle_pricing_error(e)
"""

from .base import StorefrontException
from .cart import (
    MalformedCartException,
    EmptyCartException,
    InvalidQuantityException,
    UnknownProductException,
    InvalidShippingSelectionException,
    InvalidAmountException
)
from .discount import DiscountException, InvalidPromoCodeException, InvalidDiscountRuleException
from .gift_card import GiftCardException, InvalidGiftCardException, InsufficientGiftCardBalanceException
from .pricing import (
    PricingException,
    TotalMismatchException,
    ConcurrentModificationException,
    StoreUnavailableException
)
from .tax import TaxProviderUnavailableException

__all__ = [
    # Base
    'StorefrontException',

    # Rejection
    'PricingException',
    'TotalMismatchException',
    'ConcurrentModificationException',
    'StoreUnavailableException',

    # Cart
    'MalformedCartException',
    'EmptyCartException',
    'InvalidQuantityException',
    'UnknownProductException',
    'InvalidShippingSelectionException',
    'InvalidAmountException',

    # Discount
    'DiscountException',
    'InvalidPromoCodeException',
    'InvalidDiscountRuleException',

    # Gift card
    'GiftCardException',
    'InvalidGiftCardException',
    'InsufficientGiftCardBalanceException',

    # Tax
    'TaxProviderUnavailableException',
]

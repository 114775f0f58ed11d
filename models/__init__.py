"""
Models Package

This file ensures all SQLAlchemy models are imported and registered,
which is required for relationships to work correctly.
"""

from models.base import Base
from models.product import Category, Product
from models.discount_rule import DiscountRule
from models.verification_discount import VerificationDiscount
from models.gift_card import GiftCard, GiftCardTransaction
from models.currency_rate import CurrencyRate
from models.order_totals import OrderTotalsSnapshot, OrderAdjustment

__all__ = [
    'Base',
    'Category',
    'Product',
    'DiscountRule',
    'VerificationDiscount',
    'GiftCard',
    'GiftCardTransaction',
    'CurrencyRate',
    'OrderTotalsSnapshot',
    'OrderAdjustment',
]

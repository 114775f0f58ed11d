"""
Malformed cart errors.

Raised before any computation begins; no totals are produced.
"""

from decimal import Decimal

from enums.pricing_issue import PricingErrorKind
from .base import StorefrontException


class MalformedCartException(StorefrontException):
    """Base exception for carts that cannot be priced at all."""

    kind = PricingErrorKind.MALFORMED_CART
    safe_message = "Your cart could not be priced. Please review its contents."


class EmptyCartException(MalformedCartException):
    """Raised when pricing is requested for a cart without lines."""

    def __init__(self):
        super().__init__("Cart is empty")


class InvalidQuantityException(MalformedCartException):
    """Raised when a cart line has a quantity below one."""

    def __init__(self, product_id: int, quantity: int):
        super().__init__(
            f"Invalid quantity {quantity} for product {product_id}",
            details={'product_id': product_id, 'quantity': quantity}
        )
        self.product_id = product_id
        self.quantity = quantity


class UnknownProductException(MalformedCartException):
    """Raised when a cart line references a product the catalog does not sell."""

    def __init__(self, product_id: int):
        super().__init__(
            f"Product {product_id} not found or not for sale",
            details={'product_id': product_id}
        )
        self.product_id = product_id


class InvalidShippingSelectionException(MalformedCartException):
    """Raised when the selected shipping service is not in the resolved rate list."""

    def __init__(self, carrier: str | None, service_code: str | None):
        super().__init__(
            f"Selected shipping rate {carrier}/{service_code} is not available",
            details={'carrier': carrier, 'service_code': service_code}
        )
        self.carrier = carrier
        self.service_code = service_code


class InvalidAmountException(MalformedCartException):
    """Raised when a request amount (donation, insurance) is negative."""

    def __init__(self, field: str, amount: Decimal):
        super().__init__(
            f"Invalid {field} amount {amount}",
            details={'field': field, 'amount': str(amount)}
        )
        self.field = field
        self.amount = amount

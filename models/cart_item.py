from decimal import Decimal

from pydantic import BaseModel, ConfigDict

from enums.product_type import ProductType
from models.money import Money
from models.product import ProductDTO


class CartLineRequestDTO(BaseModel):
    """
    Cart line as submitted by the client.

    Only product_id and quantity are inputs. declared_unit_price is what the
    shopper saw and is used solely for comparison against the catalog price.
    """
    product_id: int
    quantity: int
    declared_unit_price: Decimal | None = None


class CartItemDTO(BaseModel):
    """Priced cart line built from the authoritative catalog. Immutable."""
    model_config = ConfigDict(frozen=True)

    product_id: int
    unit_price: Money
    quantity: int
    product_type: ProductType
    category_ids: frozenset[int] = frozenset()
    excluded_from_discount: bool = False

    @property
    def line_total(self) -> Money:
        return self.unit_price * self.quantity

    @property
    def discountable(self) -> bool:
        # Gift cards are never discounted, whatever the product flag says
        return not self.excluded_from_discount and self.product_type != ProductType.GIFT_CARD

    @classmethod
    def from_product(cls, product: ProductDTO, quantity: int) -> "CartItemDTO":
        return cls(
            product_id=product.id,
            unit_price=Money.of(product.price),
            quantity=quantity,
            product_type=product.product_type,
            category_ids=frozenset(product.category_ids),
            excluded_from_discount=product.excluded_from_discount,
        )

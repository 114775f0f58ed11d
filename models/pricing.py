import hashlib
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator

import config
from enums.discount import DiscountSource
from enums.pricing_issue import PricingErrorKind
from models.cart_item import CartLineRequestDTO
from models.discount_rule import DiscountCandidateDTO
from models.gift_card import GiftCardRedemptionDTO
from models.money import Money, DisplayAmount
from models.verification_discount import VerifiedDiscountContextDTO


class AddressDTO(BaseModel):
    street: str | None = None
    city: str | None = None
    state: str = ""
    zip: str = ""
    country: str = "US"


class ShippingRateDTO(BaseModel):
    """One entry of the rate list already resolved by the rate-shopping component."""
    carrier: str
    service_code: str
    rate: Decimal


class PricingRequestDTO(BaseModel):
    """
    Everything needed for one pricing computation. Never persisted.

    declared_* fields carry what the client displayed; they are compared
    against the server computation and never used as inputs.
    """
    lines: list[CartLineRequestDTO]
    destination: AddressDTO
    promo_code: str | None = None
    verification: VerifiedDiscountContextDTO | None = None
    gift_card_codes: list[str] = []
    donation_amount: Decimal = Decimal("0")
    insurance_amount: Decimal = Decimal("0")
    shipping_rates: list[ShippingRateDTO] = []
    selected_carrier: str | None = None
    selected_service_code: str | None = None
    display_currency: str | None = None
    declared_subtotal: Decimal | None = None
    declared_total: Decimal | None = None

    @field_validator('promo_code')
    @classmethod
    def normalize_promo_code(cls, v: str | None) -> str | None:
        if v is None or not v.strip():
            return None
        return v.strip().upper()

    def fingerprint(self) -> str:
        """
        SHA-256 of everything that determines the price.

        Declared amounts are left out; they are compared separately.
        """
        payload = self.model_dump_json(exclude={
            'declared_subtotal': True,
            'declared_total': True,
            'lines': {'__all__': {'declared_unit_price'}},
        })
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class TaxResultDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    rate: Decimal = Decimal("0")
    tax_amount: Money = Field(default_factory=Money.zero)
    shipping_taxable: bool = False
    has_nexus: bool = False
    provider_called: bool = False
    fallback_used: bool = False
    review_required: bool = False


class PricingIssueDTO(BaseModel):
    """Soft-fail message returned alongside valid totals."""
    model_config = ConfigDict(frozen=True)

    kind: PricingErrorKind
    message: str
    reference: str | None = None  # promo code, gift card code, currency code


class DisplayTotalsDTO(BaseModel):
    currency: str
    rate: Decimal
    subtotal: DisplayAmount
    discount_amount: DisplayAmount
    shipping_cost: DisplayAmount
    insurance_amount: DisplayAmount
    tax_amount: DisplayAmount
    donation_amount: DisplayAmount
    gift_card_applied: DisplayAmount
    grand_total: DisplayAmount
    total: DisplayAmount


class OrderTotalsDTO(BaseModel):
    """
    Authoritative pricing result. All Money fields are in the base currency.

    grand_total is what the order costs; total is what is left for external
    payment capture after gift cards.
    """
    subtotal: Money
    discount_amount: Money
    discount_source: DiscountSource | None = None
    applied_discounts: list[DiscountCandidateDTO] = []
    free_shipping: bool = False
    shipping_cost: Money
    insurance_amount: Money
    taxable_amount: Money
    tax_rate: Decimal = Decimal("0")
    tax_amount: Money
    shipping_taxable: bool = False
    has_nexus: bool = False
    donation_amount: Money
    grand_total: Money
    gift_card_applied: Money
    gift_cards: list[GiftCardRedemptionDTO] = []
    total: Money
    currency: str = config.BASE_CURRENCY
    display: DisplayTotalsDTO | None = None
    exchange_rate_used: Decimal | None = None
    issues: list[PricingIssueDTO] = []
    tax_review_required: bool = False


class PricingErrorDTO(BaseModel):
    """What a caller may see about a rejected computation: kind and a safe message only."""
    kind: PricingErrorKind
    message: str

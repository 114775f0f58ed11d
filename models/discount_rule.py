from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, field_validator
from sqlalchemy import Column, Integer, String, Boolean, Numeric, Date, DateTime, Text, CheckConstraint

from models.base import Base
from models.money import Money
from enums.discount import DiscountSource, DiscountKind, DiscountTarget, DiscountStatus
from enums.product_type import ProductType


class DiscountRule(Base):
    """
    Discount rule from one of three independent sources.

    - product: applied automatically to matching lines (global/product/category/product_type)
    - order_threshold: applied automatically when the subtotal falls in the cart range
    - promo: applied only when the shopper submits the code

    `version` is bumped on every write so once-only consumption can use
    compare-and-swap instead of holding row locks across the checkout.
    """
    __tablename__ = 'discount_rules'

    id = Column(Integer, primary_key=True, autoincrement=True)
    code = Column(String(64), nullable=False, unique=True)  # Stored uppercase
    source = Column(String(32), nullable=False)
    kind = Column(String(32), nullable=False)
    value = Column(Numeric(12, 2), nullable=False)
    target = Column(String(32), nullable=False, default=DiscountTarget.GLOBAL.value)
    target_id = Column(Integer, nullable=True)  # Product ID or category ID
    target_product_type = Column(String(32), nullable=True)
    min_cart_amount = Column(Numeric(12, 2), nullable=False, default=0)
    max_cart_amount = Column(Numeric(12, 2), nullable=False, default=Decimal("9999.99"))
    valid_from = Column(Date, nullable=False)
    valid_to = Column(Date, nullable=False)
    status = Column(String(16), nullable=False, default=DiscountStatus.ACTIVE.value)
    once_only = Column(Boolean, nullable=False, default=False)
    compoundable = Column(Boolean, nullable=False, default=False)
    free_shipping = Column(Boolean, nullable=False, default=False)
    multiply_by_qty = Column(Boolean, nullable=False, default=False)
    notes = Column(Text, nullable=True)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        CheckConstraint('min_cart_amount <= max_cart_amount', name='check_discount_cart_range'),
        CheckConstraint('value > 0', name='check_discount_value_positive'),
    )


class DiscountRuleDTO(BaseModel):
    id: int | None = None
    code: str
    source: DiscountSource
    kind: DiscountKind
    value: Decimal
    target: DiscountTarget = DiscountTarget.GLOBAL
    target_id: int | None = None
    target_product_type: ProductType | None = None
    min_cart_amount: Decimal = Decimal("0")
    max_cart_amount: Decimal = Decimal("9999.99")
    valid_from: date
    valid_to: date
    status: DiscountStatus = DiscountStatus.ACTIVE
    once_only: bool = False
    compoundable: bool = False
    free_shipping: bool = False
    multiply_by_qty: bool = False
    notes: str | None = None
    version: int = 1

    @field_validator('code')
    @classmethod
    def normalize_code(cls, v: str) -> str:
        return v.strip().upper()

    def invariant_violations(self) -> list[str]:
        """
        Check the rule invariants.

        Returns an empty list for a valid rule. A missing target is not
        reported here: it only makes the rule match nothing.
        """
        violations = []
        if self.min_cart_amount > self.max_cart_amount:
            violations.append("min_cart_amount exceeds max_cart_amount")
        if self.valid_from > self.valid_to:
            violations.append("valid_from is after valid_to")
        if self.kind == DiscountKind.PERCENTAGE:
            if not (Decimal("0") < self.value <= Decimal("100")):
                violations.append("percentage must be in (0, 100]")
        else:
            if self.value <= 0:
                violations.append("fixed amount must be positive")
            elif self.source == DiscountSource.ORDER_THRESHOLD and self.value > self.max_cart_amount:
                violations.append("fixed amount exceeds max_cart_amount")
        return violations

    def has_required_target(self) -> bool:
        if self.target in (DiscountTarget.PRODUCT, DiscountTarget.CATEGORY):
            return self.target_id is not None
        if self.target == DiscountTarget.PRODUCT_TYPE:
            return self.target_product_type is not None
        return True

    def is_within_window(self, today: date) -> bool:
        return self.valid_from <= today <= self.valid_to

    def is_within_cart_range(self, subtotal: Money) -> bool:
        return self.min_cart_amount <= subtotal.amount <= self.max_cart_amount


class DiscountCandidateDTO(BaseModel):
    """A discount that qualified for this cart, with its computed amount."""
    model_config = ConfigDict(frozen=True)

    source: DiscountSource
    rule_id: int | None = None  # None for verification discounts
    code: str
    amount: Money
    compoundable: bool = False
    free_shipping: bool = False
    once_only: bool = False
    rule_version: int | None = None

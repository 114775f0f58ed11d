from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel
from sqlalchemy import Column, Integer, String, Boolean, Numeric, Date, DateTime, CheckConstraint

from models.base import Base
from enums.verification_type import VerificationType


class VerificationDiscount(Base):
    """
    Discount granted to shoppers with a verified group identity.

    Example: military 10% capped at $50 for orders of at least $25.
    One active record per verification type.
    """
    __tablename__ = 'verification_discounts'

    id = Column(Integer, primary_key=True, autoincrement=True)
    verification_type = Column(String(32), nullable=False, unique=True)
    discount_percentage = Column(Numeric(5, 2), nullable=False)
    min_order_amount = Column(Numeric(12, 2), nullable=False, default=0)
    max_discount_amount = Column(Numeric(12, 2), nullable=True)  # NULL = uncapped
    is_active = Column(Boolean, nullable=False, default=True)
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        CheckConstraint('discount_percentage > 0 AND discount_percentage <= 100',
                        name='check_verification_percentage_range'),
    )


class VerificationDiscountDTO(BaseModel):
    id: int | None = None
    verification_type: VerificationType
    discount_percentage: Decimal
    min_order_amount: Decimal = Decimal("0")
    max_discount_amount: Decimal | None = None
    is_active: bool = True
    start_date: date | None = None
    end_date: date | None = None

    def is_within_window(self, today: date) -> bool:
        if self.start_date is not None and today < self.start_date:
            return False
        if self.end_date is not None and today > self.end_date:
            return False
        return True


class VerifiedDiscountContextDTO(BaseModel):
    """Verification already performed by the identity provider for this customer."""
    customer_id: str
    verification_type: VerificationType

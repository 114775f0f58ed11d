from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel
from sqlalchemy import Column, Integer, String, Numeric, DateTime, Text, ForeignKey, Boolean
from sqlalchemy.orm import relationship

from models.base import Base


class OrderTotalsSnapshot(Base):
    """
    Pricing result frozen at checkout.

    Written once, in the same transaction that consumes discounts and
    gift card balances. Never updated: corrections go to OrderAdjustment.
    """
    __tablename__ = 'order_totals_snapshots'

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_reference = Column(String, nullable=False, unique=True)
    subtotal = Column(Numeric(12, 2), nullable=False)
    discount_amount = Column(Numeric(12, 2), nullable=False)
    discount_source = Column(String(32), nullable=True)
    tax_amount = Column(Numeric(12, 2), nullable=False)
    gift_card_applied = Column(Numeric(12, 2), nullable=False)
    total = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False)
    tax_review_required = Column(Boolean, nullable=False, default=False)
    totals_json = Column(Text, nullable=False)  # Full OrderTotalsDTO
    request_hash = Column(String(64), nullable=True)  # PricingRequestDTO.fingerprint()
    created_at = Column(DateTime, default=datetime.utcnow)

    adjustments = relationship("OrderAdjustment", back_populates="snapshot")


class OrderAdjustment(Base):
    """Refund or correction referencing a snapshot. Positive amount = credit to customer."""
    __tablename__ = 'order_adjustments'

    id = Column(Integer, primary_key=True, autoincrement=True)
    snapshot_id = Column(Integer, ForeignKey("order_totals_snapshots.id"), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    reason = Column(String, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    snapshot = relationship("OrderTotalsSnapshot", back_populates="adjustments")


class OrderTotalsSnapshotDTO(BaseModel):
    id: int | None = None
    order_reference: str
    subtotal: Decimal
    discount_amount: Decimal
    discount_source: str | None = None
    tax_amount: Decimal
    gift_card_applied: Decimal
    total: Decimal
    currency: str
    tax_review_required: bool = False
    totals_json: str
    request_hash: str | None = None
    created_at: datetime | None = None


class OrderAdjustmentDTO(BaseModel):
    id: int | None = None
    snapshot_id: int
    amount: Decimal
    reason: str
    created_at: datetime | None = None

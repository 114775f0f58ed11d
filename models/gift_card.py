from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict
from sqlalchemy import Column, Integer, String, Numeric, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship

import config
from models.base import Base
from models.money import Money
from enums.gift_card_status import GiftCardStatus, GiftCardTransactionType


class GiftCard(Base):
    """
    Stored-value gift card in the base currency.

    Balance is only ever decreased by redemption, through a compare-and-swap
    on `version`, so two checkouts can never spend the same balance.
    """
    __tablename__ = 'gift_cards'

    id = Column(Integer, primary_key=True, autoincrement=True)
    code = Column(String(32), nullable=False, unique=True)  # Stored uppercase
    initial_value = Column(Numeric(12, 2), nullable=False)
    balance = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False, default=config.BASE_CURRENCY)
    status = Column(String(32), nullable=False, default=GiftCardStatus.ACTIVE.value)
    version = Column(Integer, nullable=False, default=1)
    last_redeemed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    transactions = relationship("GiftCardTransaction", back_populates="gift_card", cascade="all, delete-orphan")

    __table_args__ = (
        CheckConstraint('balance >= 0', name='check_gift_card_balance_non_negative'),
        CheckConstraint('balance <= initial_value', name='check_gift_card_balance_le_initial'),
    )


class GiftCardTransaction(Base):
    """Append-only ledger entry for every balance change."""
    __tablename__ = 'gift_card_transactions'

    id = Column(Integer, primary_key=True, autoincrement=True)
    gift_card_id = Column(Integer, ForeignKey("gift_cards.id", ondelete="CASCADE"), nullable=False)
    type = Column(String(16), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    balance_after = Column(Numeric(12, 2), nullable=False)
    order_reference = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    gift_card = relationship("GiftCard", back_populates="transactions")


class GiftCardDTO(BaseModel):
    id: int | None = None
    code: str
    initial_value: Decimal
    balance: Decimal
    currency: str = config.BASE_CURRENCY
    status: GiftCardStatus = GiftCardStatus.ACTIVE
    version: int = 1
    last_redeemed_at: datetime | None = None


class GiftCardTransactionDTO(BaseModel):
    id: int | None = None
    gift_card_id: int
    type: GiftCardTransactionType
    amount: Decimal
    balance_after: Decimal
    order_reference: str | None = None
    created_at: datetime | None = None


class GiftCardRedemptionDTO(BaseModel):
    """Result of redeeming (or planning to redeem) one card."""
    model_config = ConfigDict(frozen=True)

    code: str
    applied: Money
    balance_before: Money
    remaining_balance: Money

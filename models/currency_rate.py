from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel
from sqlalchemy import Column, String, Numeric, DateTime, CheckConstraint

from models.base import Base


class CurrencyRate(Base):
    """Exchange rate relative to the base currency. Refreshed out of band."""
    __tablename__ = 'currency_rates'

    code = Column(String(3), primary_key=True)
    name = Column(String, nullable=False)
    symbol = Column(String(8), nullable=False)
    rate = Column(Numeric(18, 6), nullable=False, default=1)
    last_updated = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        CheckConstraint('rate > 0', name='check_currency_rate_positive'),
    )


class CurrencyRateDTO(BaseModel):
    code: str
    name: str
    symbol: str
    rate: Decimal
    last_updated: datetime | None = None

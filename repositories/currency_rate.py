from datetime import datetime
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from db import session_execute, session_flush
from models.currency_rate import CurrencyRate, CurrencyRateDTO


class CurrencyRateRepository:
    """Repository for the exchange-rate table."""

    @staticmethod
    async def get_by_code(code: str, session: AsyncSession | Session) -> CurrencyRateDTO | None:
        stmt = select(CurrencyRate).where(CurrencyRate.code == code.upper())
        result = await session_execute(stmt, session)
        rate = result.scalar()

        if rate is None:
            return None

        return CurrencyRateDTO.model_validate(rate, from_attributes=True)

    @staticmethod
    async def get_all(session: AsyncSession | Session) -> list[CurrencyRateDTO]:
        stmt = select(CurrencyRate).order_by(CurrencyRate.code.asc())
        result = await session_execute(stmt, session)
        return [CurrencyRateDTO.model_validate(rate, from_attributes=True) for rate in result.scalars().all()]

    @staticmethod
    async def upsert(rate_dto: CurrencyRateDTO, session: AsyncSession | Session) -> None:
        """Insert or refresh one rate. Called by the out-of-band rate refresh."""
        stmt = select(CurrencyRate).where(CurrencyRate.code == rate_dto.code.upper())
        result = await session_execute(stmt, session)
        rate = result.scalar()

        if rate is None:
            session.add(CurrencyRate(
                code=rate_dto.code.upper(),
                name=rate_dto.name,
                symbol=rate_dto.symbol,
                rate=rate_dto.rate,
                last_updated=datetime.utcnow()
            ))
        else:
            rate.rate = rate_dto.rate
            rate.last_updated = datetime.utcnow()

        await session_flush(session)

    @staticmethod
    async def update_rates(rates: dict[str, Decimal], session: AsyncSession | Session) -> int:
        """
        Refresh several known currencies at once.

        Args:
            rates: {code: rate relative to base currency}

        Returns:
            Number of currencies updated (unknown codes are skipped)
        """
        updated = 0
        for code, value in rates.items():
            stmt = select(CurrencyRate).where(CurrencyRate.code == code.upper())
            result = await session_execute(stmt, session)
            rate = result.scalar()
            if rate is None:
                continue
            rate.rate = value
            rate.last_updated = datetime.utcnow()
            updated += 1

        await session_flush(session)
        return updated

"""
Currency Conversion Service

Display-only conversion from the base currency into the shopper's currency.
Settlement, tax and persistence always stay in the base currency.
"""

import logging
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

import config
from models.currency_rate import CurrencyRateDTO
from models.money import Money, DisplayAmount, quantize_cents
from repositories.currency_rate import CurrencyRateRepository

logger = logging.getLogger(__name__)

# code -> (name, symbol, countries that typically use it)
SUPPORTED_CURRENCIES: dict[str, tuple[str, str, tuple[str, ...]]] = {
    "USD": ("US Dollar", "$", ("US",)),
    "CAD": ("Canadian Dollar", "CA$", ("CA",)),
    "AUD": ("Australian Dollar", "A$", ("AU",)),
    "EUR": ("Euro", "€", ("AT", "BE", "FR", "DE", "GR", "IE", "IT", "NL", "ES")),
    "GBP": ("British Pound", "£", ("GB", "UK")),
}


class CurrencyConverter:
    """Converts Money into DisplayAmount using the exchange-rate table."""

    @staticmethod
    def is_supported(code: str | None) -> bool:
        return code is not None and code.upper() in SUPPORTED_CURRENCIES

    @staticmethod
    def currency_for_country(country_code: str | None) -> str:
        """
        Currency a shopper from `country_code` most likely expects.

        Falls back to the base currency for unknown countries.
        """
        if not country_code:
            return config.BASE_CURRENCY
        upper_code = country_code.strip().upper()
        for code, (_, _, countries) in SUPPORTED_CURRENCIES.items():
            if upper_code in countries:
                return code
        return config.BASE_CURRENCY

    @staticmethod
    def base_rate() -> CurrencyRateDTO:
        name, symbol, _ = SUPPORTED_CURRENCIES.get(config.BASE_CURRENCY, (config.BASE_CURRENCY, "", ()))
        return CurrencyRateDTO(code=config.BASE_CURRENCY, name=name, symbol=symbol, rate=Decimal("1"))

    @staticmethod
    async def get_rate(code: str | None, session: AsyncSession | Session) -> CurrencyRateDTO | None:
        """
        Current rate for a display currency.

        Args:
            code: ISO currency code (case-insensitive)
            session: Database session

        Returns:
            CurrencyRateDTO (rate 1 for the base currency), or None when the
            currency is unsupported or has no usable rate
        """
        if code is None:
            return None
        code = code.strip().upper()
        if code == config.BASE_CURRENCY:
            return CurrencyConverter.base_rate()
        if code not in SUPPORTED_CURRENCIES:
            logger.info(f"[Currency] Unsupported display currency requested: {code}")
            return None

        rate = await CurrencyRateRepository.get_by_code(code, session)
        if rate is None or rate.rate <= 0:
            logger.warning(f"[Currency] No usable rate stored for {code}")
            return None
        return rate

    @staticmethod
    def convert(money: Money, rate: CurrencyRateDTO) -> DisplayAmount:
        return DisplayAmount(
            amount=quantize_cents(money.amount * rate.rate),
            currency=rate.code,
            symbol=rate.symbol,
            rate=rate.rate
        )

    @staticmethod
    async def to_display(money: Money, currency_code: str | None, session: AsyncSession | Session) -> DisplayAmount:
        """
        Convert a base-currency amount for display.

        Unknown currencies are shown in the base currency. The result is
        presentation-only and must never be fed back into pricing.
        """
        rate = await CurrencyConverter.get_rate(currency_code, session)
        return CurrencyConverter.convert(money, rate or CurrencyConverter.base_rate())

    @staticmethod
    async def seed_supported_currencies(session: AsyncSession | Session) -> int:
        """Insert supported currencies that have no row yet, at rate 1 until the first refresh."""
        created = 0
        for code, (name, symbol, _) in SUPPORTED_CURRENCIES.items():
            if await CurrencyRateRepository.get_by_code(code, session) is None:
                await CurrencyRateRepository.upsert(
                    CurrencyRateDTO(code=code, name=name, symbol=symbol, rate=Decimal("1")), session
                )
                created += 1
        if created:
            logger.info(f"[Currency] Seeded {created} currency rates")
        return created

"""
Sales Tax Calculator

Wraps the external tax-rate provider. No-tax states and destinations
outside the served country are answered locally without a provider call.
Provider failures never block checkout: the fallback policy decides
between plain zero tax and zero tax flagged for back-office review.
"""

import asyncio
import logging
from decimal import Decimal

from pydantic import BaseModel, ConfigDict

import config
from enums.pricing_issue import TaxFallbackAction
from exceptions.tax import TaxProviderUnavailableException
from models.money import Money, quantize_cents
from models.pricing import AddressDTO, TaxResultDTO
from services.tax_provider import TaxRateProvider, TaxJarProvider

logger = logging.getLogger(__name__)

US_STATE_CODES = {
    'alabama': 'AL', 'alaska': 'AK', 'arizona': 'AZ', 'arkansas': 'AR',
    'california': 'CA', 'colorado': 'CO', 'connecticut': 'CT', 'delaware': 'DE',
    'district of columbia': 'DC', 'florida': 'FL', 'georgia': 'GA', 'guam': 'GU',
    'hawaii': 'HI', 'idaho': 'ID', 'illinois': 'IL', 'indiana': 'IN',
    'iowa': 'IA', 'kansas': 'KS', 'kentucky': 'KY', 'louisiana': 'LA',
    'maine': 'ME', 'maryland': 'MD', 'massachusetts': 'MA', 'michigan': 'MI',
    'minnesota': 'MN', 'mississippi': 'MS', 'missouri': 'MO', 'montana': 'MT',
    'nebraska': 'NE', 'nevada': 'NV', 'new hampshire': 'NH', 'new jersey': 'NJ',
    'new mexico': 'NM', 'new york': 'NY', 'north carolina': 'NC', 'north dakota': 'ND',
    'ohio': 'OH', 'oklahoma': 'OK', 'oregon': 'OR', 'pennsylvania': 'PA',
    'puerto rico': 'PR', 'rhode island': 'RI', 'south carolina': 'SC', 'south dakota': 'SD',
    'tennessee': 'TN', 'texas': 'TX', 'utah': 'UT', 'vermont': 'VT',
    'virginia': 'VA', 'washington': 'WA', 'west virginia': 'WV', 'wisconsin': 'WI',
    'wyoming': 'WY',
}

COUNTRY_ALIASES = {
    'USA': 'US',
    'UNITED STATES': 'US',
    'UNITED STATES OF AMERICA': 'US',
}


def normalize_state_code(state: str | None) -> str:
    """'New York' -> 'NY', 'ny' -> 'NY'. Unknown names are uppercased as-is."""
    if not state:
        return ""
    state = state.strip()
    if len(state) == 2:
        return state.upper()
    return US_STATE_CODES.get(state.lower().replace('.', ''), state.upper())


def normalize_country(country: str | None) -> str:
    if not country:
        return config.SERVED_COUNTRY
    country = country.strip().upper()
    return COUNTRY_ALIASES.get(country, country)


class TaxFallbackPolicy(BaseModel):
    """What to do when the provider cannot answer."""
    model_config = ConfigDict(frozen=True)

    on_timeout: TaxFallbackAction = TaxFallbackAction.ZERO_TAX_FLAGGED
    on_error: TaxFallbackAction = TaxFallbackAction.ZERO_TAX_FLAGGED

    def action_for(self, error: TaxProviderUnavailableException) -> TaxFallbackAction:
        return self.on_timeout if error.timed_out else self.on_error

    def apply(self, error: TaxProviderUnavailableException) -> TaxResultDTO:
        action = self.action_for(error)
        logger.error(f"[Tax] Provider unavailable ({error.message}), falling back to {action.value}")
        return TaxResultDTO(
            provider_called=True,
            fallback_used=True,
            review_required=action == TaxFallbackAction.ZERO_TAX_FLAGGED
        )


class TaxCalculator:
    """
    Sales tax for a taxable amount and destination.

    Usage:
        calculator = TaxCalculator()
        result = await calculator.calculate(taxable, shipping, destination)
    """

    def __init__(
        self,
        provider: TaxRateProvider | None = None,
        fallback_policy: TaxFallbackPolicy | None = None,
        timeout: float | None = None
    ):
        self.provider = provider or TaxJarProvider()
        self.fallback_policy = fallback_policy or TaxFallbackPolicy()
        self.timeout = timeout or config.TAX_PROVIDER_TIMEOUT_SECONDS

    @staticmethod
    def is_exempt(destination: AddressDTO) -> bool:
        """True when tax is zero without asking the provider."""
        if normalize_country(destination.country) != config.SERVED_COUNTRY:
            return True
        return normalize_state_code(destination.state) in config.NO_TAX_STATES

    async def calculate(self, taxable_amount: Money, shipping_amount: Money, destination: AddressDTO) -> TaxResultDTO:
        """
        Calculate sales tax.

        Args:
            taxable_amount: Subtotal minus discount (donation and insurance excluded)
            shipping_amount: Shipping cost, taxed only where the jurisdiction says so
            destination: Shipping address

        Returns:
            TaxResultDTO. On provider failure the result carries zero tax with
            fallback_used set (and review_required when the policy flags it).
        """
        if self.is_exempt(destination):
            logger.debug(f"[Tax] Exempt destination {destination.country}/{destination.state}, no provider call")
            return TaxResultDTO()

        if not taxable_amount.is_positive() and not shipping_amount.is_positive():
            return TaxResultDTO()

        address = destination.model_copy(update={
            'state': normalize_state_code(destination.state),
            'country': normalize_country(destination.country),
        })

        try:
            response = await asyncio.wait_for(
                self.provider.tax_for_order(address, taxable_amount.amount, shipping_amount.amount),
                timeout=self.timeout
            )
        except asyncio.TimeoutError:
            return self.fallback_policy.apply(
                TaxProviderUnavailableException(self.provider.name, "timeout", timed_out=True)
            )
        except TaxProviderUnavailableException as e:
            return self.fallback_policy.apply(e)

        tax_amount = quantize_cents(response.amount_to_collect)
        if tax_amount < 0 or response.rate < 0:
            return self.fallback_policy.apply(
                TaxProviderUnavailableException(self.provider.name, f"negative tax {tax_amount}")
            )

        logger.info(f"[Tax] {address.state} rate={response.rate} tax={tax_amount} nexus={response.has_nexus}")
        return TaxResultDTO(
            rate=Decimal(response.rate),
            tax_amount=Money.of(tax_amount),
            shipping_taxable=response.shipping_taxable,
            has_nexus=response.has_nexus,
            provider_called=True
        )

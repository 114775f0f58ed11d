"""
TaxCalculator Unit Tests

The external provider is replaced by an AsyncMock; no network access.

Run with:
    pytest tests/tax/unit/test_tax_calculator.py -v
"""

import asyncio
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from enums.pricing_issue import TaxFallbackAction
from exceptions.tax import TaxProviderUnavailableException
from models.money import Money
from models.pricing import AddressDTO
from services.tax import TaxCalculator, TaxFallbackPolicy, normalize_state_code, normalize_country


def failing_provider(error):
    provider = AsyncMock()
    provider.name = "mock"
    provider.tax_for_order.side_effect = error
    return provider


class TestNormalization:

    @pytest.mark.parametrize("raw, expected", [
        ("tx", "TX"),
        ("Texas", "TX"),
        ("new hampshire", "NH"),
        ("District of Columbia", "DC"),
        ("Ontario", "ONTARIO"),
        ("", ""),
        (None, ""),
    ])
    def test_state_codes(self, raw, expected):
        assert normalize_state_code(raw) == expected

    @pytest.mark.parametrize("raw, expected", [("USA", "US"), ("us", "US"), ("CA", "CA"), (None, "US")])
    def test_country(self, raw, expected):
        assert normalize_country(raw) == expected


class TestTaxCalculator:

    @pytest.mark.asyncio
    async def test_taxed_destination_calls_provider(self, tax_calculator, tax_provider, taxed_address):
        result = await tax_calculator.calculate(Money.of(100), Money.of(10), taxed_address)

        assert result.rate == Decimal("0.0825")
        assert result.tax_amount == Money.of("9.08")
        assert result.shipping_taxable is True
        assert result.has_nexus is True
        assert result.provider_called is True
        assert result.fallback_used is False
        tax_provider.tax_for_order.assert_awaited_once()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("state", ["DE", "MT", "NH", "OR", "Delaware", "oregon"])
    async def test_no_tax_states_skip_provider(self, tax_calculator, tax_provider, state):
        destination = AddressDTO(city="X", state=state, zip="00000", country="US")

        result = await tax_calculator.calculate(Money.of(5000), Money.of(10), destination)

        assert result.tax_amount == Money.zero()
        assert result.provider_called is False
        tax_provider.tax_for_order.assert_not_called()

    @pytest.mark.asyncio
    async def test_foreign_destination_is_not_taxed(self, tax_calculator, tax_provider):
        destination = AddressDTO(city="Toronto", state="ON", zip="M5V", country="CA")

        result = await tax_calculator.calculate(Money.of(100), Money.zero(), destination)

        assert result.tax_amount == Money.zero()
        tax_provider.tax_for_order.assert_not_called()

    @pytest.mark.asyncio
    async def test_usa_alias_and_state_name_are_normalized(self, tax_calculator, tax_provider):
        destination = AddressDTO(city="Austin", state="Texas", zip="78701", country="USA")

        await tax_calculator.calculate(Money.of(100), Money.zero(), destination)

        address = tax_provider.tax_for_order.call_args.args[0]
        assert address.state == "TX"
        assert address.country == "US"

    @pytest.mark.asyncio
    async def test_zero_amount_skips_provider(self, tax_calculator, tax_provider, taxed_address):
        result = await tax_calculator.calculate(Money.zero(), Money.zero(), taxed_address)

        assert result.tax_amount == Money.zero()
        tax_provider.tax_for_order.assert_not_called()

    @pytest.mark.asyncio
    async def test_provider_error_falls_back_to_flagged_zero_tax(self, taxed_address):
        calculator = TaxCalculator(provider=failing_provider(TaxProviderUnavailableException("mock", "HTTP 500")))

        result = await calculator.calculate(Money.of(100), Money.of(10), taxed_address)

        assert result.tax_amount == Money.zero()
        assert result.fallback_used is True
        assert result.review_required is True

    @pytest.mark.asyncio
    async def test_provider_timeout_falls_back_to_flagged_zero_tax(self, taxed_address):
        async def slow(address, amount, shipping):
            await asyncio.sleep(1)

        provider = AsyncMock()
        provider.name = "mock"
        provider.tax_for_order.side_effect = slow
        calculator = TaxCalculator(provider=provider, timeout=0.01)

        result = await calculator.calculate(Money.of(100), Money.of(10), taxed_address)

        assert result.tax_amount == Money.zero()
        assert result.fallback_used is True
        assert result.review_required is True

    @pytest.mark.asyncio
    async def test_custom_policy_can_leave_timeouts_unflagged(self, taxed_address):
        policy = TaxFallbackPolicy(on_timeout=TaxFallbackAction.ZERO_TAX)
        calculator = TaxCalculator(
            provider=failing_provider(TaxProviderUnavailableException("mock", "timeout", timed_out=True)),
            fallback_policy=policy
        )

        result = await calculator.calculate(Money.of(100), Money.zero(), taxed_address)

        assert result.review_required is False
        assert result.fallback_used is True

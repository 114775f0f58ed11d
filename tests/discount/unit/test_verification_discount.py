from datetime import date
from decimal import Decimal

import pytest

from enums.discount import DiscountSource
from enums.verification_type import VerificationType
from models.money import Money
from models.verification_discount import VerificationDiscountDTO, VerifiedDiscountContextDTO
from repositories.verification_discount import VerificationDiscountRepository
from services.verification_discount import VerificationDiscountResolver

TODAY = date(2025, 6, 16)
MILITARY = VerifiedDiscountContextDTO(customer_id="cust-42", verification_type=VerificationType.MILITARY)


async def seed_military(session, **overrides):
    data = dict(
        verification_type=VerificationType.MILITARY,
        discount_percentage=Decimal("10"),
        min_order_amount=Decimal("25"),
        max_discount_amount=Decimal("50"),
    )
    data.update(overrides)
    return await VerificationDiscountRepository.create(VerificationDiscountDTO(**data), session)


class TestVerificationDiscountResolver:

    @pytest.mark.asyncio
    async def test_percentage_of_subtotal(self, test_session):
        await seed_military(test_session)

        candidate = await VerificationDiscountResolver.resolve(MILITARY, Money.of(300), test_session, TODAY)

        assert candidate.source == DiscountSource.VERIFICATION
        assert candidate.amount == Money.of(30)
        assert candidate.rule_id is None
        assert not candidate.compoundable

    @pytest.mark.asyncio
    async def test_amount_is_capped(self, test_session):
        await seed_military(test_session)

        candidate = await VerificationDiscountResolver.resolve(MILITARY, Money.of(800), test_session, TODAY)

        assert candidate.amount == Money.of(50)

    @pytest.mark.asyncio
    async def test_uncapped_record(self, test_session):
        await seed_military(test_session, max_discount_amount=None)

        candidate = await VerificationDiscountResolver.resolve(MILITARY, Money.of(800), test_session, TODAY)

        assert candidate.amount == Money.of(80)

    @pytest.mark.asyncio
    async def test_minimum_order_amount_is_inclusive(self, test_session):
        await seed_military(test_session)

        assert await VerificationDiscountResolver.resolve(MILITARY, Money.of(25), test_session, TODAY) is not None
        assert await VerificationDiscountResolver.resolve(MILITARY, Money.of("24.99"), test_session, TODAY) is None

    @pytest.mark.asyncio
    async def test_inactive_record(self, test_session):
        await seed_military(test_session, is_active=False)

        assert await VerificationDiscountResolver.resolve(MILITARY, Money.of(300), test_session, TODAY) is None

    @pytest.mark.asyncio
    async def test_outside_validity_window(self, test_session):
        await seed_military(test_session, start_date=date(2025, 7, 1))

        assert await VerificationDiscountResolver.resolve(MILITARY, Money.of(300), test_session, TODAY) is None

    @pytest.mark.asyncio
    async def test_other_type_has_no_record(self, test_session):
        await seed_military(test_session)
        nurse = VerifiedDiscountContextDTO(customer_id="cust-7", verification_type=VerificationType.NURSE)

        assert await VerificationDiscountResolver.resolve(nurse, Money.of(300), test_session, TODAY) is None

    @pytest.mark.asyncio
    async def test_no_context(self, test_session):
        assert await VerificationDiscountResolver.resolve(None, Money.of(300), test_session, TODAY) is None

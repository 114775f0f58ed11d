"""
GiftCardLedger Unit Tests

Run with:
    pytest tests/gift_card/unit/test_gift_card_ledger.py -v
"""

import re
from decimal import Decimal
from unittest.mock import patch

import pytest

from enums.gift_card_status import GiftCardStatus, GiftCardTransactionType
from enums.pricing_issue import PricingErrorKind
from exceptions.gift_card import InvalidGiftCardException, InsufficientGiftCardBalanceException
from exceptions.pricing import ConcurrentModificationException
from models.money import Money
from repositories.gift_card import GiftCardRepository
from services.gift_card import GiftCardLedger
from utils.transaction_manager import StaleWriteError


class TestCodes:

    def test_normalize_code(self):
        assert GiftCardLedger.normalize_code("  abcd-efgh ") == "ABCD-EFGH"
        assert GiftCardLedger.normalize_code("abcd efgh") == "ABCDEFGH"

    def test_generated_code_format(self):
        code = GiftCardLedger.generate_code()
        assert re.fullmatch(r"[A-HJ-NP-Z2-9]{4}(-[A-HJ-NP-Z2-9]{4}){3}", code)


class TestRedeem:

    @pytest.mark.asyncio
    async def test_partial_redemption_conserves_balance(self, test_session):
        card = await GiftCardLedger.issue(Money.of(60), test_session, code="GIFT-0001")

        redemption = await GiftCardLedger.redeem("gift-0001", Money.of(40), test_session, "ORDER-1")

        assert redemption.applied == Money.of(40)
        assert redemption.balance_before - redemption.remaining_balance == redemption.applied
        assert redemption.remaining_balance == Money.of(20)

        stored = await GiftCardRepository.get_by_code("GIFT-0001", test_session)
        assert stored.balance == Decimal("20.00")
        assert stored.status == GiftCardStatus.PARTIALLY_REDEEMED
        assert stored.version == card.version + 1

        transactions = await GiftCardRepository.get_transactions(card.id, test_session)
        assert [(t.type, t.amount, t.balance_after) for t in transactions] == [
            (GiftCardTransactionType.ISSUE, Decimal("60.00"), Decimal("60.00")),
            (GiftCardTransactionType.REDEEM, Decimal("40.00"), Decimal("20.00")),
        ]
        assert transactions[1].order_reference == "ORDER-1"

    @pytest.mark.asyncio
    async def test_applied_never_exceeds_balance(self, test_session):
        await GiftCardLedger.issue(Money.of(25), test_session, code="GIFT-0002")

        redemption = await GiftCardLedger.redeem("GIFT-0002", Money.of(100), test_session)

        assert redemption.applied == Money.of(25)
        assert redemption.remaining_balance == Money.zero()
        stored = await GiftCardRepository.get_by_code("GIFT-0002", test_session)
        assert stored.status == GiftCardStatus.REDEEMED

    @pytest.mark.asyncio
    async def test_empty_card(self, test_session):
        await GiftCardLedger.issue(Money.of(25), test_session, code="GIFT-0003")
        await GiftCardLedger.redeem("GIFT-0003", Money.of(25), test_session)

        with pytest.raises(InsufficientGiftCardBalanceException):
            await GiftCardLedger.redeem("GIFT-0003", Money.of(1), test_session)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [GiftCardStatus.VOID, GiftCardStatus.PENDING])
    async def test_unusable_status(self, test_session, status):
        await GiftCardLedger.issue(Money.of(25), test_session, code="GIFT-0004", status=status)

        with pytest.raises(InvalidGiftCardException):
            await GiftCardLedger.redeem("GIFT-0004", Money.of(10), test_session)

    @pytest.mark.asyncio
    async def test_unknown_card(self, test_session):
        with pytest.raises(InvalidGiftCardException) as exc_info:
            await GiftCardLedger.redeem("NOPE-NOPE", Money.of(10), test_session)

        assert exc_info.value.kind == PricingErrorKind.GIFT_CARD_INSUFFICIENT_OR_INVALID

    @pytest.mark.asyncio
    async def test_stale_card_write_is_rejected(self, test_session):
        await GiftCardLedger.issue(Money.of(60), test_session, code="GIFT-0005")
        stale = await GiftCardRepository.get_by_code("GIFT-0005", test_session)
        await GiftCardRepository.debit(stale, Decimal("10"), "ORDER-A", test_session)

        with pytest.raises(StaleWriteError):
            await GiftCardRepository.debit(stale, Decimal("10"), "ORDER-B", test_session)

    @pytest.mark.asyncio
    async def test_redeem_atomically_commits(self, session_maker, test_session):
        await GiftCardLedger.issue(Money.of(60), test_session, code="GIFT-0006")
        await test_session.commit()

        redemption = await GiftCardLedger.redeem_atomically("GIFT-0006", Money.of(15), "ORDER-9", session_maker)

        assert redemption.remaining_balance == Money.of(45)
        async with session_maker() as session:
            assert await GiftCardLedger.get_balance("gift-0006", session) == Money.of(45)

    @pytest.mark.asyncio
    async def test_redeem_atomically_gives_up_after_retries(self, session_maker, test_session):
        await GiftCardLedger.issue(Money.of(60), test_session, code="GIFT-0007")
        await test_session.commit()

        with patch.object(GiftCardRepository, "debit", side_effect=StaleWriteError("gift_card", 1)) as debit:
            with pytest.raises(ConcurrentModificationException) as exc_info:
                await GiftCardLedger.redeem_atomically("GIFT-0007", Money.of(15), "ORDER-9", session_maker)

        assert exc_info.value.attempts == 4
        assert debit.call_count == 4
        async with session_maker() as session:
            assert await GiftCardLedger.get_balance("GIFT-0007", session) == Money.of(60)


class TestPlan:

    @pytest.mark.asyncio
    async def test_largest_balance_first_and_stop_at_zero(self, test_session):
        await GiftCardLedger.issue(Money.of(10), test_session, code="AAAA-0001")
        await GiftCardLedger.issue(Money.of(30), test_session, code="BBBB-0001")
        await GiftCardLedger.issue(Money.of(30), test_session, code="CCCC-0001")

        plan = await GiftCardLedger.plan(["AAAA-0001", "CCCC-0001", "BBBB-0001"], Money.of(45), test_session)

        assert [(r.code, r.applied) for r in plan.redemptions] == [
            ("BBBB-0001", Money.of(30)),
            ("CCCC-0001", Money.of(15)),
        ]
        assert plan.applied == Money.of(45)
        assert plan.errors == []

    @pytest.mark.asyncio
    async def test_plan_does_not_write(self, test_session):
        await GiftCardLedger.issue(Money.of(60), test_session, code="DDDD-0001")

        await GiftCardLedger.plan(["DDDD-0001"], Money.of(40), test_session)

        assert await GiftCardLedger.get_balance("DDDD-0001", test_session) == Money.of(60)

    @pytest.mark.asyncio
    async def test_invalid_cards_are_reported_and_valid_ones_applied(self, test_session):
        await GiftCardLedger.issue(Money.of(20), test_session, code="EEEE-0001")
        await GiftCardLedger.issue(Money.of(20), test_session, code="FFFF-0001", status=GiftCardStatus.VOID)

        plan = await GiftCardLedger.plan(["EEEE-0001", "FFFF-0001", "MISSING"], Money.of(50), test_session)

        assert plan.applied == Money.of(20)
        assert sorted(e.code for e in plan.errors) == ["FFFF-0001", "MISSING"]

    @pytest.mark.asyncio
    async def test_duplicate_codes_are_used_once(self, test_session):
        await GiftCardLedger.issue(Money.of(20), test_session, code="GGGG-0001")

        plan = await GiftCardLedger.plan(["GGGG-0001", "gggg-0001"], Money.of(50), test_session)

        assert plan.applied == Money.of(20)
        assert len(plan.redemptions) == 1

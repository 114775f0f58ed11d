"""
Tests for TransactionManager

Covers bounded store waits, commit/rollback of atomic transactions and
retry of lost compare-and-swap writes.
"""

import asyncio
from decimal import Decimal

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from exceptions.pricing import ConcurrentModificationException, StoreUnavailableException
from models.currency_rate import CurrencyRate, CurrencyRateDTO
from repositories.currency_rate import CurrencyRateRepository
from utils.transaction_manager import TransactionManager, StaleWriteError


def euro(rate: str = "0.92") -> CurrencyRateDTO:
    return CurrencyRateDTO(code="EUR", name="Euro", symbol="€", rate=Decimal(rate))


class TestRunStoreOperation:

    @pytest.mark.asyncio
    async def test_returns_result(self):
        async def read():
            return 42

        assert await TransactionManager.run_store_operation("read", read()) == 42

    @pytest.mark.asyncio
    async def test_timeout_becomes_store_unavailable(self):
        with pytest.raises(StoreUnavailableException) as exc_info:
            await TransactionManager.run_store_operation("slow read", asyncio.sleep(1), timeout=0.01)

        assert exc_info.value.operation == "slow read"
        assert exc_info.value.reason == "timeout"

    @pytest.mark.asyncio
    async def test_store_error_becomes_store_unavailable(self):
        async def broken():
            raise OperationalError("SELECT", {}, Exception("database is locked"))

        with pytest.raises(StoreUnavailableException) as exc_info:
            await TransactionManager.run_store_operation("read", broken())

        assert exc_info.value.reason == "OperationalError"

    @pytest.mark.asyncio
    async def test_other_errors_propagate(self):
        async def broken():
            raise ValueError("bad input")

        with pytest.raises(ValueError):
            await TransactionManager.run_store_operation("read", broken())


class TestAtomicTransaction:

    @pytest.mark.asyncio
    async def test_commits_on_success(self, session_maker, test_session):
        async with TransactionManager.atomic_transaction(maker=session_maker) as session:
            await CurrencyRateRepository.upsert(euro(), session)

        stored = await CurrencyRateRepository.get_by_code("EUR", test_session)
        assert stored.rate == Decimal("0.92")

    @pytest.mark.asyncio
    async def test_rolls_back_on_error(self, session_maker, test_session):
        with pytest.raises(RuntimeError):
            async with TransactionManager.atomic_transaction(maker=session_maker) as session:
                await CurrencyRateRepository.upsert(euro(), session)
                raise RuntimeError("payment capture failed")

        result = await test_session.execute(select(CurrencyRate))
        assert result.scalars().all() == []

    @pytest.mark.asyncio
    async def test_commit_failure_becomes_store_unavailable(self, session_maker):
        with pytest.raises(StoreUnavailableException):
            async with TransactionManager.atomic_transaction(maker=session_maker) as session:
                # Violates check_currency_rate_positive at flush time
                session.add(CurrencyRate(code="EUR", name="Euro", symbol="€", rate=Decimal("-1")))


class TestWithRetry:

    @pytest.mark.asyncio
    async def test_retries_until_success(self):
        attempts = []

        @TransactionManager.with_retry(max_retries=3, delay_base=0.001)
        async def checkout():
            attempts.append(1)
            if len(attempts) < 3:
                raise StaleWriteError("gift_card", 7)
            return "done"

        assert await checkout() == "done"
        assert len(attempts) == 3

    @pytest.mark.asyncio
    async def test_gives_up_with_concurrent_modification(self):
        attempts = []

        @TransactionManager.with_retry(max_retries=2, delay_base=0.001)
        async def checkout():
            attempts.append(1)
            raise StaleWriteError("discount_rule", 3)

        with pytest.raises(ConcurrentModificationException) as exc_info:
            await checkout()

        assert len(attempts) == 3
        assert exc_info.value.entity == "discount_rule"
        assert exc_info.value.entity_id == 3
        assert exc_info.value.attempts == 3

    @pytest.mark.asyncio
    async def test_does_not_retry_other_errors(self):
        attempts = []

        @TransactionManager.with_retry(max_retries=3, delay_base=0.001)
        async def checkout():
            attempts.append(1)
            raise StoreUnavailableException("snapshot write", "timeout")

        with pytest.raises(StoreUnavailableException):
            await checkout()

        assert len(attempts) == 1

"""
Gift Card Repository

Handles database operations for gift cards and their ledger transactions.
"""

import logging
from datetime import datetime
from decimal import Decimal

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

import config
from db import session_execute, session_flush
from enums.gift_card_status import GiftCardStatus, GiftCardTransactionType
from models.gift_card import GiftCard, GiftCardDTO, GiftCardTransaction, GiftCardTransactionDTO
from utils.transaction_manager import StaleWriteError

logger = logging.getLogger(__name__)


class GiftCardRepository:
    """Repository for gift card database operations."""

    @staticmethod
    async def get_by_code(code: str, session: AsyncSession | Session) -> GiftCardDTO | None:
        """
        Get a gift card by its (normalized) code.

        Args:
            code: Uppercase code without surrounding whitespace
            session: Database session

        Returns:
            GiftCardDTO if found, None otherwise
        """
        stmt = select(GiftCard).where(GiftCard.code == code).execution_options(populate_existing=True)
        result = await session_execute(stmt, session)
        card = result.scalar()

        if card is None:
            return None

        return GiftCardDTO.model_validate(card, from_attributes=True)

    @staticmethod
    async def get_by_codes(codes: list[str], session: AsyncSession | Session) -> dict[str, GiftCardDTO]:
        """
        Batch-load gift cards by code.

        Returns:
            dict: {code: GiftCardDTO} for the codes that exist
        """
        if not codes:
            return {}

        stmt = select(GiftCard).where(GiftCard.code.in_(set(codes))).execution_options(populate_existing=True)
        result = await session_execute(stmt, session)
        return {
            card.code: GiftCardDTO.model_validate(card, from_attributes=True)
            for card in result.scalars().all()
        }

    @staticmethod
    async def create(
        code: str,
        amount: Decimal,
        session: AsyncSession | Session,
        status: GiftCardStatus = GiftCardStatus.ACTIVE
    ) -> GiftCardDTO:
        """
        Issue a gift card and record the issue transaction.

        Args:
            code: Normalized card code
            amount: Initial value in base currency
            session: Database session
            status: Initial status (pending until delivered, active otherwise)
        """
        card = GiftCard(
            code=code,
            initial_value=amount,
            balance=amount,
            currency=config.BASE_CURRENCY,
            status=status.value,
            version=1
        )
        session.add(card)
        await session_flush(session)

        session.add(GiftCardTransaction(
            gift_card_id=card.id,
            type=GiftCardTransactionType.ISSUE.value,
            amount=amount,
            balance_after=amount
        ))
        await session_flush(session)

        logger.info(f"[GiftCard] Issued card id={card.id} value={amount} {config.BASE_CURRENCY}")
        return GiftCardDTO.model_validate(card, from_attributes=True)

    @staticmethod
    async def debit(
        card: GiftCardDTO,
        amount: Decimal,
        order_reference: str | None,
        session: AsyncSession | Session
    ) -> Decimal:
        """
        Decrease a balance with compare-and-swap on version.

        Args:
            card: Card as read in this transaction (version is the CAS guard)
            amount: Amount to debit, 0 < amount <= card.balance
            order_reference: Order the redemption belongs to
            session: Database session

        Returns:
            Decimal: New balance

        Raises:
            StaleWriteError: If the card changed since it was read
        """
        new_balance = card.balance - amount
        new_status = GiftCardStatus.REDEEMED if new_balance == 0 else GiftCardStatus.PARTIALLY_REDEEMED
        now = datetime.utcnow()

        stmt = (
            update(GiftCard)
            .where(GiftCard.id == card.id)
            .where(GiftCard.version == card.version)
            .values(
                balance=new_balance,
                status=new_status.value,
                version=GiftCard.version + 1,
                last_redeemed_at=now
            )
            .execution_options(synchronize_session=False)
        )
        result = await session_execute(stmt, session)

        if result.rowcount != 1:
            logger.warning(f"[GiftCard] Lost race debiting card id={card.id} (version {card.version})")
            raise StaleWriteError("gift_card", card.id)

        session.add(GiftCardTransaction(
            gift_card_id=card.id,
            type=GiftCardTransactionType.REDEEM.value,
            amount=amount,
            balance_after=new_balance,
            order_reference=order_reference
        ))
        await session_flush(session)

        return new_balance

    @staticmethod
    async def get_transactions(gift_card_id: int, session: AsyncSession | Session) -> list[GiftCardTransactionDTO]:
        stmt = (
            select(GiftCardTransaction)
            .where(GiftCardTransaction.gift_card_id == gift_card_id)
            .order_by(GiftCardTransaction.id.asc())
        )
        result = await session_execute(stmt, session)
        return [GiftCardTransactionDTO.model_validate(t, from_attributes=True) for t in result.scalars().all()]

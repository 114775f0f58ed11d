"""
Gift Card Ledger

Validates gift cards and debits their balances. Every balance change goes
through a compare-and-swap on the card version and leaves a ledger
transaction row, so balance_before - balance_after always equals the
amount applied.
"""

import logging
import secrets

from pydantic import BaseModel, ConfigDict
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import Session

import config
from enums.gift_card_status import GiftCardStatus
from exceptions.gift_card import GiftCardException, InvalidGiftCardException, InsufficientGiftCardBalanceException
from models.gift_card import GiftCardDTO, GiftCardRedemptionDTO
from models.money import Money
from repositories.gift_card import GiftCardRepository
from utils.transaction_manager import TransactionManager

logger = logging.getLogger(__name__)

# No 0/O or 1/I: codes are read aloud and typed by hand
CODE_CHARSET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
CODE_GROUPS = 4
CODE_GROUP_LENGTH = 4


class GiftCardPlan(BaseModel):
    """Preview of how a set of cards would cover an amount. Nothing is written."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    redemptions: list[GiftCardRedemptionDTO] = []
    errors: list[GiftCardException] = []

    @property
    def applied(self) -> Money:
        return sum((r.applied for r in self.redemptions), Money.zero())


def _masked(code: str) -> str:
    return f"****{code[-4:]}" if len(code) > 4 else "****"


class GiftCardLedger:

    @staticmethod
    def normalize_code(code: str) -> str:
        """' abcd-efgh ' -> 'ABCD-EFGH'"""
        return "".join(code.split()).upper()

    @staticmethod
    def generate_code() -> str:
        groups = [
            "".join(secrets.choice(CODE_CHARSET) for _ in range(CODE_GROUP_LENGTH))
            for _ in range(CODE_GROUPS)
        ]
        return "-".join(groups)

    @staticmethod
    def validate(code: str, card: GiftCardDTO | None) -> GiftCardDTO:
        """
        Ensure a card can be redeemed.

        Raises:
            InvalidGiftCardException: Unknown, void, not yet activated or foreign-currency card
            InsufficientGiftCardBalanceException: Card has no balance left
        """
        if card is None:
            raise InvalidGiftCardException(code, "not found")
        if card.status == GiftCardStatus.VOID:
            raise InvalidGiftCardException(code, "void")
        if card.status == GiftCardStatus.PENDING:
            raise InvalidGiftCardException(code, "not activated")
        if card.currency != config.BASE_CURRENCY:
            raise InvalidGiftCardException(code, f"currency {card.currency} is not {config.BASE_CURRENCY}")
        if card.balance <= 0 or card.status == GiftCardStatus.REDEEMED:
            raise InsufficientGiftCardBalanceException(code, card.balance)
        return card

    @staticmethod
    async def get_balance(code: str, session: AsyncSession | Session) -> Money:
        code = GiftCardLedger.normalize_code(code)
        card = await GiftCardRepository.get_by_code(code, session)
        if card is None:
            raise InvalidGiftCardException(code, "not found")
        return Money.of(card.balance)

    @staticmethod
    async def issue(
        amount: Money,
        session: AsyncSession | Session,
        code: str | None = None,
        status: GiftCardStatus = GiftCardStatus.ACTIVE
    ) -> GiftCardDTO:
        if not amount.is_positive():
            raise InvalidGiftCardException(code or "(new)", f"initial value {amount.amount} must be positive")
        code = GiftCardLedger.normalize_code(code) if code else GiftCardLedger.generate_code()
        return await GiftCardRepository.create(code, amount.amount, session, status=status)

    @staticmethod
    async def plan(codes: list[str], amount_due: Money, session: AsyncSession | Session) -> GiftCardPlan:
        """
        Allocate cards against an amount without writing anything.

        Cards are used largest balance first (ties by code) until the amount
        due reaches zero. Invalid cards are reported in `errors` and skipped.

        Args:
            codes: Codes as submitted (duplicates are ignored)
            amount_due: Amount the cards may cover
            session: Database session
        """
        normalized = list(dict.fromkeys(GiftCardLedger.normalize_code(c) for c in codes if c and c.strip()))
        cards = await GiftCardRepository.get_by_codes(normalized, session)

        usable: list[GiftCardDTO] = []
        errors: list[GiftCardException] = []
        for code in normalized:
            try:
                usable.append(GiftCardLedger.validate(code, cards.get(code)))
            except GiftCardException as e:
                logger.info(f"[GiftCard] Card {_masked(code)} rejected: {e.message}")
                errors.append(e)

        usable.sort(key=lambda card: (-card.balance, card.code))

        redemptions = []
        remaining = amount_due.floor_zero()
        for card in usable:
            if remaining.is_zero():
                break
            balance = Money.of(card.balance)
            applied = min(balance, remaining)
            redemptions.append(GiftCardRedemptionDTO(
                code=card.code,
                applied=applied,
                balance_before=balance,
                remaining_balance=balance - applied
            ))
            remaining = remaining - applied

        return GiftCardPlan(redemptions=redemptions, errors=errors)

    @staticmethod
    async def redeem(
        code: str,
        requested_amount: Money,
        session: AsyncSession | Session,
        order_reference: str | None = None
    ) -> GiftCardRedemptionDTO:
        """
        Debit min(balance, requested_amount) from a card.

        Must run inside the caller's order transaction. A concurrent writer
        makes the compare-and-swap fail with StaleWriteError, which the
        caller's TransactionManager.with_retry turns into a fresh attempt.

        Raises:
            InvalidGiftCardException: Card unknown or not redeemable
            InsufficientGiftCardBalanceException: Card has no balance
            StaleWriteError: Card changed since it was read
        """
        code = GiftCardLedger.normalize_code(code)
        card = GiftCardLedger.validate(code, await GiftCardRepository.get_by_code(code, session))

        balance_before = Money.of(card.balance)
        applied = min(balance_before, requested_amount.floor_zero())
        if applied.is_zero():
            return GiftCardRedemptionDTO(
                code=code, applied=applied, balance_before=balance_before, remaining_balance=balance_before
            )

        new_balance = await GiftCardRepository.debit(card, applied.amount, order_reference, session)

        logger.info(f"[GiftCard] Redeemed {applied} from card {_masked(code)} (order {order_reference})")
        return GiftCardRedemptionDTO(
            code=code,
            applied=applied,
            balance_before=balance_before,
            remaining_balance=Money.of(new_balance)
        )

    @staticmethod
    async def redeem_atomically(
        code: str,
        requested_amount: Money,
        order_reference: str | None = None,
        maker: async_sessionmaker | None = None
    ) -> GiftCardRedemptionDTO:
        """
        Redeem one card in its own transaction.

        Lost races are retried with a fresh read; after the retry budget
        ConcurrentModificationException is raised.
        """

        @TransactionManager.with_retry()
        async def attempt() -> GiftCardRedemptionDTO:
            async with TransactionManager.atomic_transaction(maker=maker) as session:
                return await GiftCardLedger.redeem(code, requested_amount, session, order_reference)

        return await attempt()

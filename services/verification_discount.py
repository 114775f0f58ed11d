import logging
from datetime import date

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from enums.discount import DiscountSource
from models.discount_rule import DiscountCandidateDTO
from models.money import Money
from models.verification_discount import VerifiedDiscountContextDTO
from repositories.verification_discount import VerificationDiscountRepository

logger = logging.getLogger(__name__)


class VerificationDiscountResolver:
    """Turns an already-verified group identity into a capped percentage discount."""

    @staticmethod
    async def resolve(
        context: VerifiedDiscountContextDTO | None,
        subtotal: Money,
        session: AsyncSession | Session,
        today: date
    ) -> DiscountCandidateDTO | None:
        """
        Verification discount candidate for this subtotal.

        amount = min(subtotal x percentage, max_discount_amount)

        Returns None when there is no context, no active record for the type,
        the record is outside its validity window, or the subtotal is below
        the minimum order amount.
        """
        if context is None:
            return None

        discount = await VerificationDiscountRepository.get_active_by_type(context.verification_type, session)
        if discount is None:
            logger.info(f"[Verification] No active discount for {context.verification_type.value}")
            return None

        if not discount.is_within_window(today):
            logger.info(f"[Verification] Discount for {context.verification_type.value} outside validity window")
            return None

        if subtotal.amount < discount.min_order_amount:
            return None

        amount = subtotal.percent(discount.discount_percentage)
        if discount.max_discount_amount is not None:
            amount = min(amount, Money.of(discount.max_discount_amount))

        if not amount.is_positive():
            return None

        return DiscountCandidateDTO(
            source=DiscountSource.VERIFICATION,
            code=context.verification_type.value.upper(),
            amount=amount
        )

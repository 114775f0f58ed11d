from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from db import session_execute, session_flush
from enums.verification_type import VerificationType
from models.verification_discount import VerificationDiscount, VerificationDiscountDTO


class VerificationDiscountRepository:
    """Repository for identity-verification discount configuration."""

    @staticmethod
    async def get_active_by_type(
        verification_type: VerificationType,
        session: Session | AsyncSession
    ) -> VerificationDiscountDTO | None:
        """
        Get the active discount configuration for a verification type.

        Args:
            verification_type: Verified group (military, responder, ...)
            session: Database session

        Returns:
            VerificationDiscountDTO if an active record exists, None otherwise
        """
        stmt = (
            select(VerificationDiscount)
            .where(VerificationDiscount.verification_type == verification_type.value)
            .where(VerificationDiscount.is_active == True)
        )
        result = await session_execute(stmt, session)
        discount = result.scalar()

        if discount is None:
            return None

        return VerificationDiscountDTO.model_validate(discount, from_attributes=True)

    @staticmethod
    async def create(
        discount_dto: VerificationDiscountDTO,
        session: Session | AsyncSession
    ) -> VerificationDiscountDTO:
        discount = VerificationDiscount(
            verification_type=discount_dto.verification_type.value,
            discount_percentage=discount_dto.discount_percentage,
            min_order_amount=discount_dto.min_order_amount,
            max_discount_amount=discount_dto.max_discount_amount,
            is_active=discount_dto.is_active,
            start_date=discount_dto.start_date,
            end_date=discount_dto.end_date,
        )
        session.add(discount)
        await session_flush(session)
        return VerificationDiscountDTO.model_validate(discount, from_attributes=True)

"""
Discount Rule Repository

Handles database operations for product, order-threshold and promo discount rules.
"""

import logging
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from db import session_execute, session_flush
from enums.discount import DiscountSource, DiscountStatus
from exceptions.discount import InvalidDiscountRuleException
from models.discount_rule import DiscountRule, DiscountRuleDTO
from utils.transaction_manager import StaleWriteError

logger = logging.getLogger(__name__)


class DiscountRuleRepository:
    """Repository for discount rule database operations."""

    @staticmethod
    async def get_auto_applicable(
        today: date,
        subtotal: Decimal,
        session: AsyncSession | Session
    ) -> list[DiscountRuleDTO]:
        """
        Get active product and order-threshold rules valid today for this subtotal.

        Promo rules are excluded: they only apply when their code is submitted.
        Date and cart-range bounds are inclusive.

        Args:
            today: Calendar day in the store timezone
            subtotal: Recomputed cart subtotal
            session: Database session

        Returns:
            list[DiscountRuleDTO] ordered by id for deterministic evaluation
        """
        stmt = (
            select(DiscountRule)
            .where(DiscountRule.source.in_([DiscountSource.PRODUCT.value, DiscountSource.ORDER_THRESHOLD.value]))
            .where(DiscountRule.status == DiscountStatus.ACTIVE.value)
            .where(DiscountRule.valid_from <= today)
            .where(DiscountRule.valid_to >= today)
            .where(DiscountRule.min_cart_amount <= subtotal)
            .where(DiscountRule.max_cart_amount >= subtotal)
            .order_by(DiscountRule.id.asc())
            .execution_options(populate_existing=True)
        )
        result = await session_execute(stmt, session)
        return [DiscountRuleDTO.model_validate(rule, from_attributes=True) for rule in result.scalars().all()]

    @staticmethod
    async def get_by_code(code: str, session: AsyncSession | Session) -> DiscountRuleDTO | None:
        """
        Get a rule by code (case-insensitive).

        Args:
            code: Code as typed by the shopper
            session: Database session

        Returns:
            DiscountRuleDTO if found, None otherwise
        """
        stmt = (
            select(DiscountRule)
            .where(DiscountRule.code == code.strip().upper())
            .execution_options(populate_existing=True)
        )
        result = await session_execute(stmt, session)
        rule = result.scalar()

        if rule is None:
            return None

        return DiscountRuleDTO.model_validate(rule, from_attributes=True)

    @staticmethod
    async def get_by_id(rule_id: int, session: AsyncSession | Session) -> DiscountRuleDTO | None:
        stmt = select(DiscountRule).where(DiscountRule.id == rule_id).execution_options(populate_existing=True)
        result = await session_execute(stmt, session)
        rule = result.scalar()

        if rule is None:
            return None

        return DiscountRuleDTO.model_validate(rule, from_attributes=True)

    @staticmethod
    async def create(rule_dto: DiscountRuleDTO, session: AsyncSession | Session) -> DiscountRuleDTO:
        """
        Create a new discount rule.

        Raises:
            InvalidDiscountRuleException: If the rule violates its invariants
        """
        violations = rule_dto.invariant_violations()
        if violations:
            raise InvalidDiscountRuleException(rule_dto.code, "; ".join(violations))

        rule = DiscountRule(
            code=rule_dto.code,
            source=rule_dto.source.value,
            kind=rule_dto.kind.value,
            value=rule_dto.value,
            target=rule_dto.target.value,
            target_id=rule_dto.target_id,
            target_product_type=rule_dto.target_product_type.value if rule_dto.target_product_type else None,
            min_cart_amount=rule_dto.min_cart_amount,
            max_cart_amount=rule_dto.max_cart_amount,
            valid_from=rule_dto.valid_from,
            valid_to=rule_dto.valid_to,
            status=rule_dto.status.value,
            once_only=rule_dto.once_only,
            compoundable=rule_dto.compoundable,
            free_shipping=rule_dto.free_shipping,
            multiply_by_qty=rule_dto.multiply_by_qty,
            notes=rule_dto.notes,
            version=1
        )

        session.add(rule)
        await session_flush(session)

        logger.info(f"Created discount rule: code={rule.code}, source={rule.source}, kind={rule.kind}, "
                    f"value={rule.value}, target={rule.target}")

        return DiscountRuleDTO.model_validate(rule, from_attributes=True)

    @staticmethod
    async def mark_used(
        rule_id: int,
        expected_version: int,
        session: AsyncSession | Session
    ) -> None:
        """
        Consume a once-only rule with compare-and-swap.

        The update only matches if the rule is still active and nobody wrote it
        since we read `expected_version`.

        Raises:
            StaleWriteError: If another checkout consumed or edited the rule first
        """
        stmt = (
            update(DiscountRule)
            .where(DiscountRule.id == rule_id)
            .where(DiscountRule.version == expected_version)
            .where(DiscountRule.status == DiscountStatus.ACTIVE.value)
            .values(
                status=DiscountStatus.USED.value,
                version=DiscountRule.version + 1,
                updated_at=datetime.utcnow()
            )
            .execution_options(synchronize_session=False)
        )
        result = await session_execute(stmt, session)

        if result.rowcount != 1:
            logger.warning(f"[Discount] Lost race consuming once-only rule {rule_id} (version {expected_version})")
            raise StaleWriteError("discount_rule", rule_id)

        logger.info(f"[Discount] Once-only rule {rule_id} marked as used")

    @staticmethod
    async def set_status(
        rule_id: int,
        status: DiscountStatus,
        session: AsyncSession | Session
    ) -> None:
        """Admin status change (activate/deactivate). Bumps version so in-flight CAS writes fail."""
        stmt = (
            update(DiscountRule)
            .where(DiscountRule.id == rule_id)
            .values(status=status.value, version=DiscountRule.version + 1, updated_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        await session_execute(stmt, session)

"""
Discount Catalog

Read-only view over product-scoped, order-threshold and promo discount rules.
Turns each applicable rule into a DiscountCandidateDTO whose amount is
computed over the eligible (discountable) cart lines only.
"""

import logging
from datetime import date
from decimal import Decimal

from pydantic import BaseModel, ConfigDict
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from enums.discount import DiscountKind, DiscountSource, DiscountStatus, DiscountTarget, PromoCodeRejection
from exceptions.discount import InvalidPromoCodeException
from models.cart_item import CartItemDTO
from models.discount_rule import DiscountRuleDTO, DiscountCandidateDTO
from models.money import Money, money_sum
from repositories.discount_rule import DiscountRuleRepository

logger = logging.getLogger(__name__)


class DiscountLookupResult(BaseModel):
    """Candidates for a cart plus the reason a submitted promo code was rejected, if any."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    candidates: list[DiscountCandidateDTO] = []
    promo_error: InvalidPromoCodeException | None = None


class DiscountCatalog:

    @staticmethod
    def matching_lines(rule: DiscountRuleDTO, cart: list[CartItemDTO]) -> list[CartItemDTO]:
        """
        Eligible lines a rule applies to.

        Lines excluded from discount (including gift cards) never match.
        A rule missing its required target matches nothing.
        """
        if not rule.has_required_target():
            return []

        eligible = [line for line in cart if line.discountable]
        match rule.target:
            case DiscountTarget.GLOBAL:
                return eligible
            case DiscountTarget.PRODUCT:
                return [line for line in eligible if line.product_id == rule.target_id]
            case DiscountTarget.CATEGORY:
                return [line for line in eligible if rule.target_id in line.category_ids]
            case DiscountTarget.PRODUCT_TYPE:
                return [line for line in eligible if line.product_type == rule.target_product_type]
        return []

    @staticmethod
    def eligible_total(cart: list[CartItemDTO]) -> Money:
        return money_sum(line.line_total for line in cart if line.discountable)

    @staticmethod
    def calculate_amount(rule: DiscountRuleDTO, cart: list[CartItemDTO]) -> Money:
        """
        Discount a rule yields for this cart.

        Percentage rules apply to the matching lines' total. Fixed-amount rules
        apply per matching line (per unit with multiply_by_qty), each capped at
        its line total; global fixed-amount rules apply once per order (per
        eligible unit with multiply_by_qty). The result never exceeds the
        eligible total.

        Example:
            $5 off product 7 with multiply_by_qty, 3 units at $4 -> min(15, 12) = $12
        """
        lines = DiscountCatalog.matching_lines(rule, cart)
        if not lines:
            return Money.zero()

        matched_total = money_sum(line.line_total for line in lines)

        if rule.kind == DiscountKind.PERCENTAGE:
            amount = matched_total.percent(rule.value)
        elif rule.target == DiscountTarget.GLOBAL:
            units = sum(line.quantity for line in lines) if rule.multiply_by_qty else 1
            amount = Money.of(rule.value) * units
        else:
            amount = Money.zero()
            for line in lines:
                per_line = Money.of(rule.value) * (line.quantity if rule.multiply_by_qty else 1)
                amount = amount + min(per_line, line.line_total)

        return min(amount, DiscountCatalog.eligible_total(cart))

    @staticmethod
    def to_candidate(rule: DiscountRuleDTO, amount: Money) -> DiscountCandidateDTO:
        return DiscountCandidateDTO(
            source=rule.source,
            rule_id=rule.id,
            code=rule.code,
            amount=amount,
            compoundable=rule.compoundable,
            free_shipping=rule.free_shipping,
            once_only=rule.once_only,
            rule_version=rule.version
        )

    @staticmethod
    def check_promo(rule: DiscountRuleDTO | None, subtotal: Money, today: date) -> PromoCodeRejection | None:
        """Return why a promo rule cannot be used today for this subtotal, or None if it can."""
        if rule is None or rule.source != DiscountSource.PROMO:
            return PromoCodeRejection.NOT_FOUND
        if rule.status == DiscountStatus.USED:
            return PromoCodeRejection.ALREADY_USED
        if rule.status != DiscountStatus.ACTIVE or rule.invariant_violations():
            return PromoCodeRejection.INACTIVE
        if today < rule.valid_from:
            return PromoCodeRejection.NOT_STARTED
        if today > rule.valid_to:
            return PromoCodeRejection.EXPIRED
        if not rule.is_within_cart_range(subtotal):
            return PromoCodeRejection.AMOUNT_OUT_OF_RANGE
        return None

    @staticmethod
    async def find_applicable(
        cart: list[CartItemDTO],
        subtotal: Money,
        promo_code: str | None,
        session: AsyncSession | Session,
        today: date
    ) -> DiscountLookupResult:
        """
        Collect every discount candidate for a cart.

        Product and order-threshold rules are applied automatically. A promo
        rule is only considered when its code is submitted; a rejected code
        does not fail the lookup, it is reported in `promo_error`.

        Args:
            cart: Priced cart lines
            subtotal: Recomputed subtotal (used for cart-range checks)
            promo_code: Normalized code submitted by the shopper, if any
            session: Database session
            today: Calendar day in the store timezone

        Returns:
            DiscountLookupResult with candidates ordered by source priority, then rule id
        """
        candidates = []

        rules = await DiscountRuleRepository.get_auto_applicable(today, subtotal.amount, session)
        for rule in rules:
            violations = rule.invariant_violations()
            if violations:
                logger.warning(f"[Discount] Skipping invalid rule {rule.code}: {'; '.join(violations)}")
                continue
            amount = DiscountCatalog.calculate_amount(rule, cart)
            if amount.is_positive():
                candidates.append(DiscountCatalog.to_candidate(rule, amount))

        promo_error = None
        if promo_code:
            rule = await DiscountRuleRepository.get_by_code(promo_code, session)
            rejection = DiscountCatalog.check_promo(rule, subtotal, today)
            if rejection is None:
                amount = DiscountCatalog.calculate_amount(rule, cart)
                if amount.is_positive():
                    candidates.append(DiscountCatalog.to_candidate(rule, amount))
                else:
                    rejection = PromoCodeRejection.NOT_APPLICABLE
            if rejection is not None:
                logger.info(f"[Discount] Promo code {promo_code} rejected: {rejection.value}")
                promo_error = InvalidPromoCodeException(promo_code, rejection)

        candidates.sort(key=lambda c: (c.source.priority, c.rule_id or 0))
        return DiscountLookupResult(candidates=candidates, promo_error=promo_error)

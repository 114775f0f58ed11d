"""
Pricing Engine

Authoritative order pricing. Every amount is recomputed on the server from
catalog prices and stored discount, gift card and exchange-rate state;
client-declared values are only compared against the result.

Stages run in a fixed order:
    1. subtotal from catalog prices (declared values compared, never used)
    2. discount candidates (product, order threshold, promo)
    3. verification discount candidate
    4. winner selection
    5. taxable amount
    6. tax (zero-tax fallback on provider failure)
    7. shipping, insurance and donation
    8. gift cards (planned in compute, debited in finalize)
    9. display conversion
Once-only consumption, gift card debits and the snapshot are written by
finalize in a single transaction.
"""

import logging
from datetime import datetime, timezone
from typing import Callable

from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import Session

import config
from enums.discount import DiscountSource
from enums.pricing_issue import PricingErrorKind
from exceptions.cart import (
    EmptyCartException,
    InvalidQuantityException,
    UnknownProductException,
    InvalidShippingSelectionException,
    InvalidAmountException
)
from exceptions.pricing import TotalMismatchException
from exceptions.tax import TaxProviderUnavailableException
from models.cart_item import CartItemDTO
from models.currency_rate import CurrencyRateDTO
from models.discount_rule import DiscountCandidateDTO
from models.money import Money, money_sum
from models.pricing import (
    PricingRequestDTO,
    OrderTotalsDTO,
    PricingIssueDTO,
    DisplayTotalsDTO,
    ShippingRateDTO
)
from repositories.discount_rule import DiscountRuleRepository
from repositories.order_totals import OrderTotalsRepository
from repositories.product import ProductRepository
from services.currency import CurrencyConverter
from services.discount_catalog import DiscountCatalog
from services.gift_card import GiftCardLedger
from services.tax import TaxCalculator
from services.verification_discount import VerificationDiscountResolver
from utils.error_handler import to_issue
from utils.store_calendar import store_today
from utils.transaction_manager import TransactionManager, StaleWriteError

logger = logging.getLogger(__name__)


class DiscountSelection(BaseModel):
    applied: list[DiscountCandidateDTO] = []
    amount: Money = Field(default_factory=Money.zero)

    @property
    def source(self) -> DiscountSource | None:
        return self.applied[0].source if self.applied else None

    @property
    def free_shipping(self) -> bool:
        return any(candidate.free_shipping for candidate in self.applied)


class PricingEngine:
    """
    Computes OrderTotals for a PricingRequest.

    Usage:
        engine = PricingEngine()
        async with get_db_session() as session:
            preview = await engine.compute(request, session)
        totals = await engine.finalize(request, order_reference="FF-100231")
    """

    def __init__(
        self,
        tax_calculator: TaxCalculator | None = None,
        clock: Callable[[], datetime] | None = None
    ):
        self.tax_calculator = tax_calculator or TaxCalculator()
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    @staticmethod
    def validate_request(request: PricingRequestDTO) -> None:
        """
        Reject malformed requests before any computation.

        Raises:
            EmptyCartException, InvalidQuantityException, InvalidAmountException
        """
        if not request.lines:
            raise EmptyCartException()
        for line in request.lines:
            if line.quantity < 1:
                raise InvalidQuantityException(line.product_id, line.quantity)
        if request.donation_amount < 0:
            raise InvalidAmountException("donation", request.donation_amount)
        if request.insurance_amount < 0:
            raise InvalidAmountException("insurance", request.insurance_amount)

    @staticmethod
    def select_shipping_rate(request: PricingRequestDTO) -> Money:
        """
        Cost of the shipping rate the shopper selected.

        The engine never ranks carriers. No rates means no shipping charge;
        a selection missing from a non-empty list is fatal.
        """
        if not request.shipping_rates:
            return Money.zero()

        selected: ShippingRateDTO | None = None
        for rate in request.shipping_rates:
            if (request.selected_carrier or "").lower() == rate.carrier.lower() \
                    and (request.selected_service_code or "").lower() == rate.service_code.lower():
                selected = rate
                break

        if selected is None:
            raise InvalidShippingSelectionException(request.selected_carrier, request.selected_service_code)
        if selected.rate < 0:
            raise InvalidAmountException("shipping", selected.rate)
        return Money.of(selected.rate)

    @staticmethod
    def check_declared(field: str, declared, computed: Money) -> None:
        if declared is None:
            return
        if abs(Money.of(declared).amount - computed.amount) > config.TOTAL_MISMATCH_TOLERANCE:
            logger.warning(f"[Pricing] Declared {field} {declared} != computed {computed.amount}")
            raise TotalMismatchException(field, declared, computed.amount)

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    @staticmethod
    async def build_cart(request: PricingRequestDTO, session: AsyncSession | Session) -> list[CartItemDTO]:
        """Price every line from the catalog. Declared unit prices are only compared."""
        product_ids = list(dict.fromkeys(line.product_id for line in request.lines))
        products = await TransactionManager.run_store_operation(
            "product lookup", ProductRepository.get_by_ids(product_ids, session)
        )

        cart = []
        for line in request.lines:
            product = products.get(line.product_id)
            if product is None:
                raise UnknownProductException(line.product_id)
            item = CartItemDTO.from_product(product, line.quantity)
            PricingEngine.check_declared(f"unit_price[{line.product_id}]", line.declared_unit_price, item.unit_price)
            cart.append(item)
        return cart

    @staticmethod
    def select_discounts(
        candidates: list[DiscountCandidateDTO],
        verification: DiscountCandidateDTO | None,
        eligible_total: Money
    ) -> DiscountSelection:
        """
        Pick the discounts that apply.

        Catalog side: the largest non-compoundable candidate (ties by source
        priority, then rule id) plus every compoundable candidate. The
        verification discount never combines with catalog discounts; it wins
        only when strictly larger than the whole catalog side. The result is
        capped at the eligible total.

        Example:
            verification 10% of $300 = $30 vs. product $8 fixed -> verification, $30
        """
        non_compoundable = [c for c in candidates if not c.compoundable]
        compoundable = sorted(
            (c for c in candidates if c.compoundable),
            key=lambda c: (-c.amount.amount, c.source.priority, c.rule_id or 0)
        )

        catalog_side = []
        if non_compoundable:
            winner = min(non_compoundable, key=lambda c: (-c.amount.amount, c.source.priority, c.rule_id or 0))
            catalog_side.append(winner)
        catalog_side.extend(compoundable)
        catalog_total = money_sum(c.amount for c in catalog_side)

        if verification is not None and verification.amount > catalog_total:
            applied, amount = [verification], verification.amount
        else:
            applied, amount = catalog_side, catalog_total

        amount = min(amount, eligible_total)
        if amount.is_zero():
            return DiscountSelection()
        return DiscountSelection(applied=applied, amount=amount)

    @staticmethod
    def is_free_shipping(selection: DiscountSelection, subtotal: Money) -> bool:
        if selection.free_shipping:
            return True
        threshold = config.FREE_SHIPPING_THRESHOLD
        return threshold is not None and subtotal.amount >= threshold

    @staticmethod
    async def build_display(
        totals: OrderTotalsDTO,
        display_currency: str | None,
        session: AsyncSession | Session
    ) -> tuple[DisplayTotalsDTO | None, CurrencyRateDTO | None, PricingIssueDTO | None]:
        """Convert the headline amounts for display. Settlement values are untouched."""
        if not display_currency:
            return None, None, None

        rate = await TransactionManager.run_store_operation(
            "exchange rate lookup", CurrencyConverter.get_rate(display_currency, session)
        )
        issue = None
        if rate is None:
            issue = PricingIssueDTO(
                kind=PricingErrorKind.UNSUPPORTED_DISPLAY_CURRENCY,
                message=f"Prices are shown in {config.BASE_CURRENCY}.",
                reference=display_currency.upper()
            )
            rate = CurrencyConverter.base_rate()

        def convert(money: Money):
            return CurrencyConverter.convert(money, rate)

        display = DisplayTotalsDTO(
            currency=rate.code,
            rate=rate.rate,
            subtotal=convert(totals.subtotal),
            discount_amount=convert(totals.discount_amount),
            shipping_cost=convert(totals.shipping_cost),
            insurance_amount=convert(totals.insurance_amount),
            tax_amount=convert(totals.tax_amount),
            donation_amount=convert(totals.donation_amount),
            gift_card_applied=convert(totals.gift_card_applied),
            grand_total=convert(totals.grand_total),
            total=convert(totals.total)
        )
        return display, (rate if rate.code != config.BASE_CURRENCY else None), issue

    async def price(self, request: PricingRequestDTO, session: AsyncSession | Session) -> OrderTotalsDTO:
        """Run every stage and return totals with planned (not yet debited) gift cards."""
        self.validate_request(request)
        shipping_rate = self.select_shipping_rate(request)

        # 1. Subtotal
        cart = await self.build_cart(request, session)
        subtotal = money_sum(item.line_total for item in cart)
        self.check_declared("subtotal", request.declared_subtotal, subtotal)
        eligible_total = DiscountCatalog.eligible_total(cart)
        today = store_today(self.clock())
        issues: list[PricingIssueDTO] = []

        # 2. Catalog candidates
        lookup = await TransactionManager.run_store_operation(
            "discount lookup",
            DiscountCatalog.find_applicable(cart, subtotal, request.promo_code, session, today)
        )
        if lookup.promo_error is not None:
            issues.append(to_issue(lookup.promo_error, reference=lookup.promo_error.code))

        # 3. Verification candidate
        verification = await TransactionManager.run_store_operation(
            "verification discount lookup",
            VerificationDiscountResolver.resolve(request.verification, subtotal, session, today)
        )

        # 4. Winner
        selection = self.select_discounts(lookup.candidates, verification, eligible_total)

        # 5. Taxable amount
        taxable_amount = (subtotal - selection.amount).floor_zero()
        free_shipping = self.is_free_shipping(selection, subtotal)
        shipping_cost = Money.zero() if free_shipping else shipping_rate

        # 6. Tax
        tax = await self.tax_calculator.calculate(taxable_amount, shipping_cost, request.destination)
        if tax.fallback_used:
            issues.append(PricingIssueDTO(
                kind=PricingErrorKind.TAX_PROVIDER_UNAVAILABLE,
                message=TaxProviderUnavailableException.safe_message
            ))

        # 7. Grand total
        insurance = Money.of(request.insurance_amount)
        donation = Money.of(request.donation_amount)
        grand_total = taxable_amount + shipping_cost + insurance + tax.tax_amount + donation

        # 8. Gift cards
        plan = await TransactionManager.run_store_operation(
            "gift card lookup", GiftCardLedger.plan(request.gift_card_codes, grand_total, session)
        )
        for error in plan.errors:
            issues.append(to_issue(error, reference=error.code))
        gift_card_applied = plan.applied
        total = (grand_total - gift_card_applied).floor_zero()

        totals = OrderTotalsDTO(
            subtotal=subtotal,
            discount_amount=selection.amount,
            discount_source=selection.source,
            applied_discounts=selection.applied,
            free_shipping=free_shipping,
            shipping_cost=shipping_cost,
            insurance_amount=insurance,
            taxable_amount=taxable_amount,
            tax_rate=tax.rate,
            tax_amount=tax.tax_amount,
            shipping_taxable=tax.shipping_taxable,
            has_nexus=tax.has_nexus,
            donation_amount=donation,
            grand_total=grand_total,
            gift_card_applied=gift_card_applied,
            gift_cards=plan.redemptions,
            total=total,
            tax_review_required=tax.review_required
        )

        # 9. Display
        display, rate, currency_issue = await self.build_display(totals, request.display_currency, session)
        if currency_issue is not None:
            issues.append(currency_issue)

        totals = totals.model_copy(update={
            'display': display,
            'exchange_rate_used': rate.rate if rate is not None else None,
            'issues': issues
        })

        self.check_declared("total", request.declared_total, totals.total)

        logger.info(
            f"[Pricing] subtotal={subtotal.amount} discount={selection.amount.amount} "
            f"({selection.source.value if selection.source else 'none'}) shipping={shipping_cost.amount} "
            f"tax={tax.tax_amount.amount} gift_cards={gift_card_applied.amount} total={total.amount}"
        )
        return totals

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def compute(self, request: PricingRequestDTO, session: AsyncSession | Session) -> OrderTotalsDTO:
        """
        Checkout preview.

        Nothing is written: once-only rules stay active and gift cards are
        only planned. Identical inputs and state give identical results.

        Raises:
            MalformedCartException: Empty cart, bad quantity, unknown product, bad shipping selection
            TotalMismatchException: Declared amounts disagree with the computation
            StoreUnavailableException: Store read failed or timed out
        """
        return await self.price(request, session)

    async def finalize(
        self,
        request: PricingRequestDTO,
        order_reference: str,
        maker: async_sessionmaker | None = None
    ) -> OrderTotalsDTO:
        """
        Authoritative pricing immediately before payment capture.

        In one transaction: recompute, consume once-only rules, debit gift
        cards and write the snapshot. A lost compare-and-swap restarts the
        whole cycle with fresh reads; after CONCURRENCY_MAX_RETRIES the caller
        gets ConcurrentModificationException. Calling finalize again for an
        order that already has a snapshot returns the stored totals, provided the
        request is the one that was priced; a different cart for the same order
        is rejected with TotalMismatchException.

        Raises:
            Everything compute() raises, plus ConcurrentModificationException
        """

        fingerprint = request.fingerprint()

        @TransactionManager.with_retry()
        async def attempt() -> OrderTotalsDTO:
            async with TransactionManager.atomic_transaction(maker=maker) as session:
                existing = await TransactionManager.run_store_operation(
                    "snapshot lookup", OrderTotalsRepository.get_by_reference(order_reference, session)
                )
                if existing is not None:
                    stored = OrderTotalsDTO.model_validate_json(existing.totals_json)
                    if existing.request_hash is not None and existing.request_hash != fingerprint:
                        repriced = await self.price(request, session)
                        logger.warning(f"[Pricing] Order {order_reference} already finalized with a different cart")
                        raise TotalMismatchException("total", repriced.total.amount, stored.total.amount)
                    self.check_declared("total", request.declared_total, stored.total)
                    logger.info(f"[Pricing] Order {order_reference} already finalized, returning snapshot")
                    return stored

                totals = await self.price(request, session)

                for candidate in totals.applied_discounts:
                    if candidate.once_only and candidate.rule_id is not None:
                        await TransactionManager.run_store_operation(
                            "discount consumption",
                            DiscountRuleRepository.mark_used(candidate.rule_id, candidate.rule_version, session)
                        )

                for planned in totals.gift_cards:
                    redemption = await TransactionManager.run_store_operation(
                        "gift card redemption",
                        GiftCardLedger.redeem(planned.code, planned.applied, session, order_reference)
                    )
                    if redemption.applied != planned.applied:
                        raise StaleWriteError("gift_card", planned.code)

                await TransactionManager.run_store_operation(
                    "snapshot write", OrderTotalsRepository.create_snapshot(
                        order_reference, totals, session, request_hash=fingerprint
                    )
                )
                return totals

        totals = await attempt()
        logger.info(f"[Pricing] Order {order_reference} finalized: total={totals.total}")
        return totals

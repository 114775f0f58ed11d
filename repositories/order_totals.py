"""
Order Totals Repository

Writes the immutable pricing snapshot of an order and its adjustment records.
There is intentionally no update method for snapshots.
"""

import logging
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from db import session_execute, session_flush
from models.order_totals import (
    OrderTotalsSnapshot,
    OrderTotalsSnapshotDTO,
    OrderAdjustment,
    OrderAdjustmentDTO
)
from models.pricing import OrderTotalsDTO

logger = logging.getLogger(__name__)


class OrderTotalsRepository:
    """Repository for order totals snapshots."""

    @staticmethod
    async def create_snapshot(
        order_reference: str,
        totals: OrderTotalsDTO,
        session: AsyncSession | Session,
        request_hash: str | None = None
    ) -> OrderTotalsSnapshotDTO:
        """
        Persist the pricing result of an order.

        Args:
            order_reference: External order identifier (unique)
            totals: Authoritative totals from PricingEngine.finalize
            session: Database session (same transaction as discount/gift card writes)
            request_hash: Fingerprint of the priced request, checked when the order is finalized again
        """
        snapshot = OrderTotalsSnapshot(
            order_reference=order_reference,
            subtotal=totals.subtotal.amount,
            discount_amount=totals.discount_amount.amount,
            discount_source=totals.discount_source.value if totals.discount_source else None,
            tax_amount=totals.tax_amount.amount,
            gift_card_applied=totals.gift_card_applied.amount,
            total=totals.total.amount,
            currency=totals.currency,
            tax_review_required=totals.tax_review_required,
            totals_json=totals.model_dump_json(),
            request_hash=request_hash
        )
        session.add(snapshot)
        await session_flush(session)

        logger.info(f"[Order] Snapshot written for order {order_reference}: total={totals.total}")
        return OrderTotalsSnapshotDTO.model_validate(snapshot, from_attributes=True)

    @staticmethod
    async def get_by_reference(
        order_reference: str,
        session: AsyncSession | Session
    ) -> OrderTotalsSnapshotDTO | None:
        stmt = select(OrderTotalsSnapshot).where(OrderTotalsSnapshot.order_reference == order_reference)
        result = await session_execute(stmt, session)
        snapshot = result.scalar()

        if snapshot is None:
            return None

        return OrderTotalsSnapshotDTO.model_validate(snapshot, from_attributes=True)

    @staticmethod
    async def add_adjustment(
        snapshot_id: int,
        amount: Decimal,
        reason: str,
        session: AsyncSession | Session
    ) -> OrderAdjustmentDTO:
        """Record a refund/correction that references (never edits) the snapshot."""
        adjustment = OrderAdjustment(snapshot_id=snapshot_id, amount=amount, reason=reason)
        session.add(adjustment)
        await session_flush(session)

        logger.info(f"[Order] Adjustment {amount} recorded against snapshot {snapshot_id}: {reason}")
        return OrderAdjustmentDTO.model_validate(adjustment, from_attributes=True)

    @staticmethod
    async def get_adjustments(snapshot_id: int, session: AsyncSession | Session) -> list[OrderAdjustmentDTO]:
        stmt = (
            select(OrderAdjustment)
            .where(OrderAdjustment.snapshot_id == snapshot_id)
            .order_by(OrderAdjustment.id.asc())
        )
        result = await session_execute(stmt, session)
        return [OrderAdjustmentDTO.model_validate(a, from_attributes=True) for a in result.scalars().all()]

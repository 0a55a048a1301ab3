"""
Settlement Service (Domain Logic).

Aggregates an owner's paid obligations for a period into one settlement
and drives the pending <-> settled confirmation flow.
Must be transactional and idempotent: recalculating a pending settlement
overwrites its totals, a settled one is never recomputed.
"""

import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import List, Optional, Union

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import InvalidStateTransitionError, ResourceNotFoundError
from backend.app.db.session import apply_snapshot_isolation
from backend.app.domain.obligations.periods import parse_month, format_month
from backend.app.models.accounting_entry import AccountingEntry
from backend.app.models.apartment import Apartment
from backend.app.models.billing_enums import SettlementStatus, AccountingEntryType
from backend.app.models.obligation import Obligation
from backend.app.models.obligation_enums import ObligationStatus, ObligationType, PaidBy
from backend.app.models.owner import Owner
from backend.app.models.settlement import Settlement
from backend.app.services.audit import log_event, AuditAction

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


class SettlementService:

    @staticmethod
    async def calculate_for_period(
        db: AsyncSession,
        owner_id: int,
        period: Union[str, date],
        actor: Optional[dict] = None,
    ) -> Settlement:
        """
        Create or recompute the owner's settlement for a period.

        Flow:
        1. Pin the transaction to snapshot isolation
        2. Load the owner's PAID obligations for the period
        3. Sum owner impact (net of deductions), commission and collected rent
        4. Create a PENDING settlement or overwrite the pending one
        5. Audit

        A SETTLED settlement is returned untouched.

        Raises:
            DomainValidationError: malformed period
            ResourceNotFoundError: unknown owner
        """
        await apply_snapshot_isolation(db)
        period = parse_month(period, field="period")

        owner = await db.get(Owner, owner_id)
        if owner is None:
            raise ResourceNotFoundError("Owner", owner_id)

        existing = (await db.execute(
            select(Settlement).where(Settlement.owner_id == owner_id, Settlement.period == period)
        )).scalar_one_or_none()

        if existing is not None and existing.status == SettlementStatus.SETTLED:
            logger.info(
                "Settlement %s for owner %s %s is settled; not recomputed",
                existing.id, owner_id, format_month(period)
            )
            return existing

        obligations = (await db.execute(
            select(Obligation)
            .join(Apartment, Apartment.id == Obligation.apartment_id)
            .where(
                Apartment.owner_id == owner_id,
                Obligation.period == period,
                Obligation.status == ObligationStatus.PAID,
            )
        )).scalars().all()

        owner_amount = sum((Decimal(o.owner_impact) for o in obligations), ZERO)
        commission_amount = sum((Decimal(o.commission_amount) for o in obligations), ZERO)
        total_collected = sum(
            (Decimal(o.paid_amount) for o in obligations
             if o.type == ObligationType.RENT and o.paid_by == PaidBy.TENANT),
            ZERO
        )

        settlement = existing
        if settlement is None:
            settlement = Settlement(owner_id=owner_id, period=period, status=SettlementStatus.PENDING)
            db.add(settlement)

        settlement.total_collected = total_collected
        settlement.owner_amount = owner_amount
        settlement.commission_amount = commission_amount
        settlement.obligation_count = len(obligations)
        await db.flush()

        await log_event(
            db,
            AuditAction.SETTLEMENT_CALCULATED,
            actor=actor,
            entity_type="settlement",
            entity_id=settlement.id,
            metadata={
                "owner_id": owner_id,
                "period": format_month(period),
                "owner_amount": str(owner_amount),
                "commission_amount": str(commission_amount),
                "obligation_count": len(obligations),
            },
        )

        logger.info(
            "Calculated settlement %s for owner %s %s: owner_amount=%s commission=%s (%d obligations)",
            settlement.id, owner_id, format_month(period), owner_amount, commission_amount, len(obligations)
        )
        return settlement

    @staticmethod
    async def calculate_all_for_period(
        db: AsyncSession,
        period: Union[str, date],
        actor: Optional[dict] = None,
    ) -> List[Settlement]:
        """Calculate settlements for every owner with paid obligations in the period."""
        await apply_snapshot_isolation(db)
        period = parse_month(period, field="period")

        owner_ids = (await db.execute(
            select(Apartment.owner_id)
            .join(Obligation, Obligation.apartment_id == Apartment.id)
            .where(Obligation.period == period, Obligation.status == ObligationStatus.PAID)
            .distinct()
            .order_by(Apartment.owner_id)
        )).scalars().all()

        return [
            await SettlementService.calculate_for_period(db, owner_id, period, actor)
            for owner_id in owner_ids
        ]

    @staticmethod
    async def get_settlement(db: AsyncSession, settlement_id: int, for_update: bool = False) -> Settlement:
        query = select(Settlement).where(Settlement.id == settlement_id)
        if for_update:
            query = query.with_for_update().execution_options(populate_existing=True)
        settlement = (await db.execute(query)).scalar_one_or_none()
        if settlement is None:
            raise ResourceNotFoundError("Settlement", settlement_id)
        return settlement

    @staticmethod
    async def list_settlements(
        db: AsyncSession,
        owner_id: Optional[int] = None,
        status: Optional[SettlementStatus] = None,
        period: Optional[Union[str, date]] = None,
    ) -> List[Settlement]:
        query = select(Settlement)
        if owner_id:
            query = query.where(Settlement.owner_id == owner_id)
        if status:
            query = query.where(Settlement.status == status)
        if period:
            query = query.where(Settlement.period == parse_month(period, field="period"))

        result = await db.execute(query.order_by(Settlement.period.desc(), Settlement.id.desc()))
        return list(result.scalars().all())

    @staticmethod
    async def mark_as_settled(
        db: AsyncSession,
        settlement_id: int,
        payment_method: Optional[str] = None,
        reference: Optional[str] = None,
        notes: Optional[str] = None,
        actor: Optional[dict] = None,
    ) -> Settlement:
        """
        Confirm a PENDING settlement as paid out to the owner.

        The owner's commission entries for the period that are not yet
        attached to a settlement get linked to this one.

        Raises:
            ResourceNotFoundError: unknown settlement
            InvalidStateTransitionError: settlement is not PENDING
        """
        settlement = await SettlementService.get_settlement(db, settlement_id, for_update=True)

        if settlement.status != SettlementStatus.PENDING:
            raise InvalidStateTransitionError(
                f"Settlement status is {settlement.status.value}, expected pending",
                details={"settlement_id": settlement_id, "status": settlement.status.value}
            )

        settlement.status = SettlementStatus.SETTLED
        settlement.settled_at = datetime.now(timezone.utc)
        settlement.settled_by_admin_id = actor.get("user_id") if actor else None
        settlement.payment_method = payment_method
        settlement.reference = reference
        if notes is not None:
            settlement.notes = notes

        linked = await db.execute(
            update(AccountingEntry)
            .where(
                AccountingEntry.owner_id == settlement.owner_id,
                AccountingEntry.period == settlement.period,
                AccountingEntry.entry_type == AccountingEntryType.COMMISSION,
                AccountingEntry.settlement_id.is_(None),
            )
            .values(settlement_id=settlement.id)
            .execution_options(synchronize_session="fetch")
        )
        await db.flush()

        await log_event(
            db,
            AuditAction.SETTLEMENT_SETTLED,
            actor=actor,
            entity_type="settlement",
            entity_id=settlement.id,
            metadata={
                "owner_amount": str(settlement.owner_amount),
                "payment_method": payment_method,
                "reference": reference,
                "linked_entries": linked.rowcount or 0,
            },
        )

        logger.info("Settlement %s marked settled (%s)", settlement.id, payment_method)
        return settlement

    @staticmethod
    async def mark_as_pending(
        db: AsyncSession,
        settlement_id: int,
        actor: Optional[dict] = None,
    ) -> Settlement:
        """
        Reopen a SETTLED settlement and detach its commission entries.

        Raises:
            ResourceNotFoundError: unknown settlement
            InvalidStateTransitionError: settlement is not SETTLED
        """
        settlement = await SettlementService.get_settlement(db, settlement_id, for_update=True)

        if settlement.status != SettlementStatus.SETTLED:
            raise InvalidStateTransitionError(
                f"Settlement status is {settlement.status.value}, expected settled",
                details={"settlement_id": settlement_id, "status": settlement.status.value}
            )

        settlement.status = SettlementStatus.PENDING
        settlement.settled_at = None
        settlement.settled_by_admin_id = None

        await db.execute(
            update(AccountingEntry)
            .where(AccountingEntry.settlement_id == settlement.id, AccountingEntry.entry_type == AccountingEntryType.COMMISSION)
            .values(settlement_id=None)
            .execution_options(synchronize_session="fetch")
        )
        await db.flush()

        await log_event(
            db,
            AuditAction.SETTLEMENT_REOPENED,
            actor=actor,
            entity_type="settlement",
            entity_id=settlement.id,
        )

        logger.info("Settlement %s reopened", settlement.id)
        return settlement

"""
Obligation Service (Domain Logic).

Standard creation path for obligations (direct entry and generators),
read queries, and the periodic overdue sweep.
"""

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from backend.app.core.exceptions import DomainValidationError, ResourceNotFoundError
from backend.app.domain.obligations import lifecycle
from backend.app.domain.obligations.commission_resolver import CommissionResolver
from backend.app.domain.obligations.distribution import distribute, quantize_money
from backend.app.domain.obligations.payment_registrar import PaymentRegistrar
from backend.app.domain.obligations.periods import first_of_month
from backend.app.models.apartment import Apartment
from backend.app.models.contract import Contract
from backend.app.models.obligation import Obligation
from backend.app.models.obligation_enums import ObligationType, PaidBy, ObligationStatus, PaymentMethod
from backend.app.models.obligation_payment import ObligationPayment
from backend.app.services.audit import log_event, AuditAction

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


@dataclass
class InitialPayment:
    """Payment recorded together with a new obligation (adjustments, credits)."""
    amount: Decimal
    payment_date: date
    method: PaymentMethod = PaymentMethod.OTHER
    reference: Optional[str] = None
    notes: Optional[str] = None


async def find_active_contract(db: AsyncSession, apartment_id: int, on: date) -> Optional[Contract]:
    """Most recent active contract of an apartment covering the given day."""
    result = await db.execute(
        select(Contract).where(
            Contract.apartment_id == apartment_id,
            Contract.is_active == True,
            Contract.start_date <= on,
            Contract.end_date >= on,
        ).order_by(Contract.start_date.desc()).limit(1)
    )
    return result.scalar_one_or_none()


class ObligationService:

    @staticmethod
    async def create_obligation(
        db: AsyncSession,
        obligation_type: ObligationType,
        amount: Decimal,
        period: date,
        due_date: date,
        contract_id: Optional[int] = None,
        apartment_id: Optional[int] = None,
        paid_by: PaidBy = PaidBy.TENANT,
        description: Optional[str] = None,
        commission_rate: Optional[Decimal] = None,
        notes: Optional[str] = None,
        initial_payment: Optional[InitialPayment] = None,
        recurring_obligation_id: Optional[int] = None,
        generation_key: Optional[str] = None,
        is_auto_generated: bool = False,
        actor: Optional[dict] = None,
        today: Optional[date] = None,
    ) -> Obligation:
        """
        Create an obligation with its distribution and initial status.

        Flow:
        1. Validate inputs (amount, payer/type pair, commission rate)
        2. Resolve contract / apartment from the directory
        3. Resolve commission rate (explicit -> contract -> owner -> default)
        4. Distribute
        5. Persist with derived status
        6. Optionally register an initial payment (same transaction)

        Raises:
            DomainValidationError: invalid amount, payer, rate or missing target
            ResourceNotFoundError: unknown contract or apartment
        """
        obligation_type = ObligationType(obligation_type)
        paid_by = PaidBy(paid_by)
        amount = quantize_money(Decimal(amount))

        if amount <= ZERO:
            raise DomainValidationError("Amount must be greater than zero", field="amount")

        if commission_rate is not None and not ZERO <= Decimal(commission_rate) <= Decimal("100"):
            raise DomainValidationError("Commission rate must be between 0 and 100", field="commission_rate")

        if contract_id is None and apartment_id is None:
            raise DomainValidationError("Either contract_id or apartment_id is required", field="contract_id")

        period = first_of_month(period)

        contract = None
        if contract_id is not None:
            contract = await db.get(Contract, contract_id)
            if contract is None:
                raise ResourceNotFoundError("Contract", contract_id)
            if apartment_id is not None and apartment_id != contract.apartment_id:
                raise DomainValidationError(
                    f"Contract {contract_id} does not belong to apartment {apartment_id}",
                    field="apartment_id"
                )
            apartment_id = contract.apartment_id

        apartment = await db.get(Apartment, apartment_id)
        if apartment is None:
            raise ResourceNotFoundError("Apartment", apartment_id)

        if contract is None:
            contract = await find_active_contract(db, apartment.id, due_date)

        rate = None
        if obligation_type == ObligationType.RENT:
            rate = await CommissionResolver.resolve_rate(db, apartment, contract, commission_rate)

        distribution = distribute(obligation_type, amount, paid_by, rate)

        obligation = Obligation(
            contract_id=contract.id if contract else None,
            apartment_id=apartment.id,
            recurring_obligation_id=recurring_obligation_id,
            generation_key=generation_key,
            type=obligation_type,
            description=description or f"{obligation_type.value.capitalize()} {period.month:02d}/{period.year}",
            paid_by=paid_by,
            amount=amount,
            paid_amount=ZERO,
            period=period,
            due_date=due_date,
            commission_rate=rate,
            owner_impact=distribution.owner_impact,
            agency_impact=distribution.agency_impact,
            commission_amount=distribution.commission_amount,
            owner_amount=distribution.owner_amount,
            is_auto_generated=is_auto_generated,
            notes=notes,
        )
        lifecycle.refresh_status(obligation, today)

        db.add(obligation)
        await db.flush()

        await log_event(
            db,
            AuditAction.OBLIGATION_CREATED,
            actor=actor,
            entity_type="obligation",
            entity_id=obligation.id,
            metadata={
                "type": obligation_type.value,
                "amount": str(amount),
                "paid_by": paid_by.value,
                "owner_impact": str(distribution.owner_impact),
                "agency_impact": str(distribution.agency_impact),
                "recurring_obligation_id": recurring_obligation_id,
            },
        )

        if initial_payment is not None:
            await PaymentRegistrar.apply_payment(
                db,
                obligation,
                initial_payment.amount,
                initial_payment.payment_date,
                method=initial_payment.method,
                reference=initial_payment.reference,
                notes=initial_payment.notes,
                actor=actor,
                today=today,
            )

        logger.info(
            "Created %s obligation %s for apartment %s (%s, owner %s, agency %s)",
            obligation_type.value, obligation.id, apartment.id, amount,
            distribution.owner_impact, distribution.agency_impact
        )
        return obligation

    @staticmethod
    async def get_obligation(db: AsyncSession, obligation_id: int, with_payments: bool = False) -> Obligation:
        """
        Raises:
            ResourceNotFoundError: unknown obligation
        """
        query = select(Obligation).where(Obligation.id == obligation_id)
        if with_payments:
            query = query.options(selectinload(Obligation.payments)).execution_options(populate_existing=True)
        result = await db.execute(query)
        obligation = result.scalar_one_or_none()
        if obligation is None:
            raise ResourceNotFoundError("Obligation", obligation_id)
        return obligation

    @staticmethod
    async def list_obligations(
        db: AsyncSession,
        status: Optional[ObligationStatus] = None,
        obligation_type: Optional[ObligationType] = None,
        contract_id: Optional[int] = None,
        apartment_id: Optional[int] = None,
        period: Optional[date] = None,
    ) -> List[Obligation]:
        query = select(Obligation)

        if status:
            query = query.where(Obligation.status == status)
        if obligation_type:
            query = query.where(Obligation.type == obligation_type)
        if contract_id:
            query = query.where(Obligation.contract_id == contract_id)
        if apartment_id:
            query = query.where(Obligation.apartment_id == apartment_id)
        if period:
            query = query.where(Obligation.period == first_of_month(period))

        query = query.order_by(Obligation.due_date.asc(), Obligation.id.asc())
        result = await db.execute(query)
        return list(result.scalars().all())

    @staticmethod
    async def list_pending(db: AsyncSession) -> List[Obligation]:
        """Everything still owed (pending, partial, overdue), oldest due first."""
        result = await db.execute(
            select(Obligation)
            .where(Obligation.status.in_(lifecycle.OPEN_STATUSES))
            .order_by(Obligation.due_date.asc(), Obligation.id.asc())
        )
        return list(result.scalars().all())

    @staticmethod
    async def list_overdue(db: AsyncSession) -> List[Obligation]:
        return await ObligationService.list_obligations(db, status=ObligationStatus.OVERDUE)

    @staticmethod
    async def list_payments(db: AsyncSession, obligation_id: int) -> List[ObligationPayment]:
        await ObligationService.get_obligation(db, obligation_id)
        result = await db.execute(
            select(ObligationPayment)
            .where(ObligationPayment.obligation_id == obligation_id)
            .order_by(ObligationPayment.payment_date.desc(), ObligationPayment.id.desc())
        )
        return list(result.scalars().all())

    @staticmethod
    async def sweep_overdue(db: AsyncSession, today: Optional[date] = None, actor: Optional[dict] = None) -> int:
        """
        Mark open obligations whose due date has passed as overdue.

        Never touches paid obligations; safe to run repeatedly and
        concurrently (a single conditional UPDATE).

        Returns:
            Number of obligations newly marked overdue
        """
        today = today or date.today()
        result = await db.execute(
            update(Obligation)
            .where(
                Obligation.status.in_([ObligationStatus.PENDING, ObligationStatus.PARTIAL]),
                Obligation.paid_amount < Obligation.amount,
                Obligation.due_date < today,
            )
            .values(status=ObligationStatus.OVERDUE)
            .execution_options(synchronize_session="fetch")
        )
        marked = result.rowcount or 0

        if marked:
            await log_event(
                db,
                AuditAction.OBLIGATIONS_MARKED_OVERDUE,
                actor=actor,
                entity_type="obligation",
                metadata={"marked_count": marked, "as_of": today.isoformat()},
            )

        logger.info("Overdue sweep as of %s marked %d obligations", today, marked)
        return marked

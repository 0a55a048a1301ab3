"""
Owner Running Balance.

The balance is the money the agency holds for an owner: the owner's share of
rent collected from tenants, minus payments made on the owner's behalf out of
that balance. Payment registration moves it incrementally; recalculation
rebuilds it from the payment history and must land on the same figure.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import DomainValidationError, ResourceNotFoundError
from backend.app.domain.obligations.distribution import quantize_money
from backend.app.models.apartment import Apartment
from backend.app.models.obligation import Obligation
from backend.app.models.obligation_enums import ObligationStatus, PaidBy
from backend.app.models.obligation_payment import ObligationPayment
from backend.app.models.owner import Owner
from backend.app.services.audit import log_event, AuditAction

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


@dataclass
class OwnerBalanceResult:
    owner_id: int
    owner_name: str
    previous_balance: Decimal
    new_balance: Decimal
    total_income: Decimal = ZERO
    total_deducted: Decimal = ZERO
    payments_processed: int = 0


@dataclass
class OwnerBalanceError:
    owner_id: int
    message: str


@dataclass
class BalanceRecalculation:
    results: List[OwnerBalanceResult] = field(default_factory=list)
    errors: List[OwnerBalanceError] = field(default_factory=list)


def owner_income_share(obligation: Obligation) -> Decimal:
    """
    Owner's share of what has been collected on a tenant-paid obligation:
    owner_amount scaled by paid_amount / amount, exactly owner_amount once paid.
    """
    owner_amount = Decimal(obligation.owner_amount or 0)
    if obligation.paid_by != PaidBy.TENANT or owner_amount <= ZERO:
        return ZERO
    if obligation.status == ObligationStatus.PAID:
        return owner_amount
    return quantize_money(owner_amount * Decimal(obligation.paid_amount) / Decimal(obligation.amount))


async def lock_owner(db: AsyncSession, owner_id: int) -> Owner:
    result = await db.execute(
        select(Owner)
        .where(Owner.id == owner_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    owner = result.scalar_one_or_none()
    if owner is None:
        raise ResourceNotFoundError("Owner", owner_id)
    return owner


async def owner_of(db: AsyncSession, obligation: Obligation) -> Owner:
    apartment = await db.get(Apartment, obligation.apartment_id)
    return await lock_owner(db, apartment.owner_id)


async def check_owner_funds(db: AsyncSession, obligation: Obligation, amount: Decimal) -> Owner:
    """
    Make sure `amount` can be paid on `obligation` out of its owner's balance.

    Raises:
        DomainValidationError: obligation not borne by the owner, or balance too low
    """
    if Decimal(obligation.owner_impact) >= ZERO:
        raise DomainValidationError(
            "Only obligations borne by the owner can be paid from the owner's balance",
            field="applied_to_owner_balance",
            details={"obligation_id": obligation.id}
        )

    owner = await owner_of(db, obligation)
    if Decimal(owner.balance) < amount:
        raise DomainValidationError(
            f"Insufficient owner balance ({owner.balance}) for a payment of {amount}",
            field="amount",
            details={"owner_id": owner.id, "balance": str(owner.balance), "amount": str(amount)}
        )
    return owner


async def move_owner_balance(
    db: AsyncSession,
    obligation: Obligation,
    payment: ObligationPayment,
    income_before: Decimal,
) -> Optional[Decimal]:
    """
    Apply a payment (or reversal) just recorded on `obligation` to its owner's
    balance. Returns the new balance, or None when the balance did not move.
    """
    delta = owner_income_share(obligation) - income_before
    if payment.applied_to_owner_balance:
        delta -= Decimal(payment.amount)
    if delta == ZERO:
        return None

    owner = await owner_of(db, obligation)
    owner.balance = Decimal(owner.balance) + delta
    await db.flush()
    return owner.balance


class OwnerBalanceService:

    @staticmethod
    async def get_owner(db: AsyncSession, owner_id: int) -> Owner:
        owner = await db.get(Owner, owner_id)
        if owner is None:
            raise ResourceNotFoundError("Owner", owner_id)
        return owner

    @staticmethod
    async def recalculate(db: AsyncSession, owner_id: int, actor: Optional[dict] = None) -> OwnerBalanceResult:
        """
        Rebuild an owner's balance from scratch.

        income = owner share of every tenant-paid obligation on the owner's
        apartments; deducted = net of all payments taken from the balance
        (reversals included, they carry negative amounts).

        Raises:
            ResourceNotFoundError: unknown owner
        """
        owner = await lock_owner(db, owner_id)
        previous = Decimal(owner.balance)

        earning = (
            Apartment.owner_id == owner_id,
            Obligation.paid_by == PaidBy.TENANT,
            Obligation.owner_amount > 0,
            Obligation.paid_amount > 0,
        )
        obligations = (await db.execute(
            select(Obligation).join(Apartment, Apartment.id == Obligation.apartment_id).where(*earning)
        )).scalars().all()
        income = sum((owner_income_share(o) for o in obligations), ZERO)
        processed = (await db.execute(
            select(func.count(ObligationPayment.id))
            .join(Obligation, Obligation.id == ObligationPayment.obligation_id)
            .join(Apartment, Apartment.id == Obligation.apartment_id)
            .where(*earning)
        )).scalar_one()

        deductions = (await db.execute(
            select(ObligationPayment.amount)
            .join(Obligation, Obligation.id == ObligationPayment.obligation_id)
            .join(Apartment, Apartment.id == Obligation.apartment_id)
            .where(Apartment.owner_id == owner_id, ObligationPayment.applied_to_owner_balance == True)
        )).scalars().all()
        deducted = sum((Decimal(amount) for amount in deductions), ZERO)
        processed += len(deductions)

        owner.balance = income - deducted
        await db.flush()

        await log_event(
            db,
            AuditAction.OWNER_BALANCE_RECALCULATED,
            actor=actor,
            entity_type="owner",
            entity_id=owner.id,
            metadata={"previous_balance": str(previous), "new_balance": str(owner.balance)},
        )
        if previous != owner.balance:
            logger.warning("Owner %s balance drifted: %s -> %s", owner.id, previous, owner.balance)
        else:
            logger.info("Owner %s balance confirmed at %s", owner.id, owner.balance)

        return OwnerBalanceResult(
            owner_id=owner.id,
            owner_name=owner.name,
            previous_balance=previous,
            new_balance=Decimal(owner.balance),
            total_income=income,
            total_deducted=deducted,
            payments_processed=processed,
        )

    @staticmethod
    async def recalculate_all(db: AsyncSession, actor: Optional[dict] = None) -> BalanceRecalculation:
        """Recalculate every owner; one owner failing does not stop the others."""
        owner_ids = (await db.execute(select(Owner.id).order_by(Owner.id))).scalars().all()

        run = BalanceRecalculation()
        for owner_id in owner_ids:
            try:
                async with db.begin_nested():
                    run.results.append(await OwnerBalanceService.recalculate(db, owner_id, actor))
            except SQLAlchemyError as exc:
                logger.exception("Balance recalculation failed for owner %s", owner_id)
                run.errors.append(OwnerBalanceError(owner_id, str(exc)))

        logger.info("Recalculated %d owner balances (%d failed)", len(run.results), len(run.errors))
        return run

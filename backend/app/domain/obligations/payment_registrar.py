"""
Payment Registrar (Domain Logic).

Records payments against obligations, drives the lifecycle, books the
agency's share of each payment and keeps the owner's running balance. Callers own the transaction: everything
here is flushed, never committed, so the payment, the obligation update,
the accounting entry and the audit record land atomically.
"""

import logging
from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import (
    DomainValidationError, ResourceNotFoundError, InvalidStateTransitionError
)
from backend.app.domain.obligations import lifecycle
from backend.app.domain.obligations.distribution import agency_entry_type, quantize_money
from backend.app.domain.obligations.periods import format_month
from backend.app.domain.settlements.owner_balance import check_owner_funds, move_owner_balance, owner_income_share
from backend.app.models.accounting_entry import AccountingEntry
from backend.app.models.apartment import Apartment
from backend.app.models.obligation import Obligation
from backend.app.models.obligation_enums import ObligationStatus, PaymentMethod
from backend.app.models.obligation_payment import ObligationPayment
from backend.app.services.audit import log_event, AuditAction

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


async def lock_obligation(db: AsyncSession, obligation_id: int) -> Obligation:
    """
    Load an obligation with a row lock so concurrent payments serialize.

    Raises:
        ResourceNotFoundError: unknown obligation
    """
    result = await db.execute(
        select(Obligation)
        .where(Obligation.id == obligation_id)
        .with_for_update(of=Obligation)
        .execution_options(populate_existing=True)
    )
    obligation = result.scalar_one_or_none()
    if obligation is None:
        raise ResourceNotFoundError("Obligation", obligation_id)
    return obligation


class PaymentRegistrar:

    @staticmethod
    async def register_payment(
        db: AsyncSession,
        obligation_id: int,
        amount: Decimal,
        payment_date: date,
        method: PaymentMethod = PaymentMethod.CASH,
        reference: Optional[str] = None,
        notes: Optional[str] = None,
        applied_to_owner_balance: bool = False,
        actor: Optional[dict] = None,
        today: Optional[date] = None,
    ) -> ObligationPayment:
        """
        Register a payment against an obligation.

        Flow:
        1. Validate amount (> 0) before touching storage
        2. Lock the obligation row
        3. Apply the payment through the lifecycle (rejects overpayment)
        4. Persist the payment record
        5. Book the agency's share of the payment
        6. Move the owner's running balance
        7. Audit

        With `applied_to_owner_balance` the payment is taken from the money
        the agency holds for the owner; only owner-borne obligations qualify.

        Raises:
            DomainValidationError: amount <= 0, owner balance too low or not applicable
            ResourceNotFoundError: unknown obligation
            OverpaymentError: amount exceeds what is still owed
            InvalidStateTransitionError: obligation already paid
        """
        amount = quantize_money(Decimal(amount))
        if amount <= ZERO:
            raise DomainValidationError("Payment amount must be greater than zero", field="amount")

        obligation = await lock_obligation(db, obligation_id)
        return await PaymentRegistrar.apply_payment(
            db, obligation, amount, payment_date,
            method=method, reference=reference, notes=notes,
            applied_to_owner_balance=applied_to_owner_balance, actor=actor, today=today,
        )

    @staticmethod
    async def apply_payment(
        db: AsyncSession,
        obligation: Obligation,
        amount: Decimal,
        payment_date: date,
        method: PaymentMethod = PaymentMethod.CASH,
        reference: Optional[str] = None,
        notes: Optional[str] = None,
        applied_to_owner_balance: bool = False,
        actor: Optional[dict] = None,
        today: Optional[date] = None,
    ) -> ObligationPayment:
        """Apply a payment to an obligation already loaded (and locked) in this session."""
        amount = quantize_money(Decimal(amount))
        applied_to_owner_balance = applied_to_owner_balance or method == PaymentMethod.OWNER_BALANCE
        if applied_to_owner_balance:
            await check_owner_funds(db, obligation, amount)
            method = PaymentMethod.OWNER_BALANCE

        income_before = owner_income_share(obligation)
        lifecycle.apply_payment(obligation, amount, today)

        payment = ObligationPayment(
            obligation_id=obligation.id,
            amount=amount,
            payment_date=payment_date,
            method=method,
            applied_to_owner_balance=applied_to_owner_balance,
            reference=reference,
            notes=notes,
            recorded_by_id=actor.get("user_id") if actor else None,
        )
        db.add(payment)
        await db.flush()

        entry = await book_agency_share(db, obligation, payment)
        owner_balance = await move_owner_balance(db, obligation, payment, income_before)

        await log_event(
            db,
            AuditAction.PAYMENT_REGISTERED,
            actor=actor,
            entity_type="obligation",
            entity_id=obligation.id,
            metadata={
                "payment_id": payment.id,
                "amount": str(amount),
                "paid_amount": str(obligation.paid_amount),
                "status": obligation.status.value,
                "accounting_entry_id": entry.id if entry else None,
                "owner_balance": str(owner_balance) if owner_balance is not None else None,
            },
        )

        logger.info(
            "Registered payment %s of %s on obligation %s (paid %s/%s, %s)",
            payment.id, amount, obligation.id, obligation.paid_amount, obligation.amount, obligation.status.value
        )
        return payment

    @staticmethod
    async def reverse_payment(
        db: AsyncSession,
        payment_id: int,
        reason: Optional[str] = None,
        actor: Optional[dict] = None,
        today: Optional[date] = None,
    ) -> ObligationPayment:
        """
        Cancel a payment by appending a compensating negative payment.

        The original row is never edited. Only payments on obligations that
        are not yet paid can be reversed.

        Raises:
            ResourceNotFoundError: unknown payment
            InvalidStateTransitionError: payment is a reversal, was already
                reversed, or its obligation is paid
        """
        today = today or date.today()
        original = await db.get(ObligationPayment, payment_id)
        if original is None:
            raise ResourceNotFoundError("Payment", payment_id)

        if original.is_reversal:
            raise InvalidStateTransitionError(
                f"Payment {payment_id} is itself a reversal",
                details={"payment_id": payment_id}
            )

        already = await db.execute(
            select(ObligationPayment.id).where(ObligationPayment.reverses_payment_id == payment_id)
        )
        if already.scalar_one_or_none() is not None:
            raise InvalidStateTransitionError(
                f"Payment {payment_id} has already been reversed",
                details={"payment_id": payment_id}
            )

        obligation = await lock_obligation(db, original.obligation_id)
        income_before = owner_income_share(obligation)
        lifecycle.apply_reversal(obligation, original.amount, today)

        reversal = ObligationPayment(
            obligation_id=obligation.id,
            reverses_payment_id=original.id,
            amount=-original.amount,
            payment_date=today,
            method=original.method,
            applied_to_owner_balance=original.applied_to_owner_balance,
            reference=original.reference,
            notes=reason,
            recorded_by_id=actor.get("user_id") if actor else None,
        )
        db.add(reversal)
        await db.flush()

        await book_agency_share(db, obligation, reversal)
        await move_owner_balance(db, obligation, reversal, income_before)

        await log_event(
            db,
            AuditAction.PAYMENT_REVERSED,
            actor=actor,
            entity_type="obligation",
            entity_id=obligation.id,
            metadata={
                "payment_id": original.id,
                "reversal_id": reversal.id,
                "amount": str(original.amount),
                "reason": reason,
            },
        )

        logger.info("Reversed payment %s on obligation %s", original.id, obligation.id)
        return reversal


async def book_agency_share(
    db: AsyncSession,
    obligation: Obligation,
    payment: ObligationPayment,
) -> Optional[AccountingEntry]:
    """
    Bring the agency ledger in line with how much of the obligation is paid.

    The booked total for an obligation is its agency impact scaled by
    paid_amount / amount (exactly the impact once fully paid). Each payment
    or reversal books the difference against what is already recorded, so
    the entries of a paid obligation always sum to its agency impact.
    """
    entry_type = agency_entry_type(obligation.type, obligation.paid_by)
    if entry_type is None or obligation.agency_impact == ZERO:
        return None

    if obligation.status == ObligationStatus.PAID:
        target = Decimal(obligation.agency_impact)
    else:
        target = quantize_money(Decimal(obligation.agency_impact) * obligation.paid_amount / obligation.amount)

    result = await db.execute(
        select(AccountingEntry.amount).where(
            AccountingEntry.obligation_id == obligation.id,
            AccountingEntry.payment_id.isnot(None),
        )
    )
    booked = sum((Decimal(value) for value in result.scalars().all()), ZERO)

    delta = target - booked
    if delta == ZERO:
        return None

    apartment = await db.get(Apartment, obligation.apartment_id)
    entry = AccountingEntry(
        entry_type=entry_type,
        description=f"{entry_type.value.replace('_', ' ').capitalize()}: {obligation.description} ({format_month(obligation.period)})",
        amount=delta,
        entry_date=payment.payment_date,
        # Obligation period, not the payment month: settlements collect commission by it
        period=obligation.period,
        obligation_id=obligation.id,
        payment_id=payment.id,
        owner_id=apartment.owner_id if apartment else None,
        contract_id=obligation.contract_id,
        meta_data={"obligation_type": obligation.type.value, "paid_by": obligation.paid_by.value},
    )
    db.add(entry)
    await db.flush()
    return entry

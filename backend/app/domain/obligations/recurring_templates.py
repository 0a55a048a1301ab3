"""
Recurring Obligation template management.

Templates are standing rules (HOA fees, insurance, tax instalments) that
RecurringObligationGenerator turns into one obligation per month. A rent
template replaces its contract's monthly rent, typically to apply an
indexation coefficient or a negotiated commission.
"""

import logging
from datetime import date
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import DomainValidationError, ResourceNotFoundError
from backend.app.domain.obligations.distribution import quantize_money, resolve_rule
from backend.app.models.apartment import Apartment
from backend.app.models.contract import Contract
from backend.app.models.obligation_enums import ObligationType, PaidBy
from backend.app.models.recurring_obligation import RecurringObligation
from backend.app.services.audit import log_event, AuditAction

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = (
    "description", "amount", "paid_by", "day_of_month", "end_date", "is_active", "notes",
    "commission_rate", "update_coefficient",
)


def _validate_template(
    obligation_type: ObligationType,
    amount: Decimal,
    paid_by: PaidBy,
    day_of_month: int,
    start_date: date,
    end_date: Optional[date],
    commission_rate: Optional[Decimal] = None,
    update_coefficient: Optional[Decimal] = None,
) -> None:
    if amount is None or Decimal(amount) <= 0:
        raise DomainValidationError("Amount must be greater than zero", field="amount")
    if not 1 <= day_of_month <= 31:
        raise DomainValidationError("Day of month must be between 1 and 31", field="day_of_month")
    if end_date is not None and end_date < start_date:
        raise DomainValidationError("End date cannot be before start date", field="end_date")
    if commission_rate is not None:
        if obligation_type != ObligationType.RENT:
            raise DomainValidationError("Commission rate applies to rent templates only", field="commission_rate")
        if not 0 <= Decimal(commission_rate) <= 100:
            raise DomainValidationError("Commission rate must be between 0 and 100", field="commission_rate")
    if update_coefficient is not None and Decimal(update_coefficient) <= 0:
        raise DomainValidationError("Update coefficient must be greater than zero", field="update_coefficient")
    # Raises for pairs that are never valid (owner-paid debt)
    resolve_rule(obligation_type, paid_by)


class RecurringObligationService:

    @staticmethod
    async def create_template(
        db: AsyncSession,
        obligation_type: ObligationType,
        description: str,
        amount: Decimal,
        day_of_month: int,
        start_date: date,
        contract_id: Optional[int] = None,
        apartment_id: Optional[int] = None,
        paid_by: PaidBy = PaidBy.TENANT,
        end_date: Optional[date] = None,
        notes: Optional[str] = None,
        commission_rate: Optional[Decimal] = None,
        update_coefficient: Optional[Decimal] = None,
        actor: Optional[dict] = None,
    ) -> RecurringObligation:
        """
        Create a recurring template bound to a contract or an apartment.

        Raises:
            DomainValidationError: bad amount/day/window/rate/coefficient, invalid payer,
                rent template without a contract
            ResourceNotFoundError: unknown contract or apartment
        """
        obligation_type = ObligationType(obligation_type)
        paid_by = PaidBy(paid_by)
        _validate_template(
            obligation_type, amount, paid_by, day_of_month, start_date, end_date,
            commission_rate, update_coefficient
        )

        if contract_id is None and apartment_id is None:
            raise DomainValidationError("Either contract_id or apartment_id is required", field="contract_id")
        if obligation_type == ObligationType.RENT and contract_id is None:
            raise DomainValidationError("Rent templates must be bound to a contract", field="contract_id")

        if contract_id is not None:
            contract = await db.get(Contract, contract_id)
            if contract is None:
                raise ResourceNotFoundError("Contract", contract_id)
            apartment_id = contract.apartment_id
        elif await db.get(Apartment, apartment_id) is None:
            raise ResourceNotFoundError("Apartment", apartment_id)

        template = RecurringObligation(
            contract_id=contract_id,
            apartment_id=apartment_id,
            type=obligation_type,
            description=description,
            amount=quantize_money(Decimal(amount)),
            paid_by=paid_by,
            day_of_month=day_of_month,
            start_date=start_date,
            commission_rate=commission_rate,
            update_coefficient=update_coefficient,
            end_date=end_date,
            is_active=True,
            notes=notes,
        )
        db.add(template)
        await db.flush()

        await log_event(
            db,
            AuditAction.RECURRING_OBLIGATION_CREATED,
            actor=actor,
            entity_type="recurring_obligation",
            entity_id=template.id,
            metadata={"type": obligation_type.value, "amount": str(template.amount), "day_of_month": day_of_month},
        )
        logger.info("Created recurring %s template %s", obligation_type.value, template.id)
        return template

    @staticmethod
    async def get_template(db: AsyncSession, template_id: int) -> RecurringObligation:
        template = await db.get(RecurringObligation, template_id)
        if template is None:
            raise ResourceNotFoundError("RecurringObligation", template_id)
        return template

    @staticmethod
    async def list_templates(
        db: AsyncSession,
        contract_id: Optional[int] = None,
        apartment_id: Optional[int] = None,
        is_active: Optional[bool] = None,
    ) -> List[RecurringObligation]:
        query = select(RecurringObligation)
        if contract_id:
            query = query.where(RecurringObligation.contract_id == contract_id)
        if apartment_id:
            query = query.where(RecurringObligation.apartment_id == apartment_id)
        if is_active is not None:
            query = query.where(RecurringObligation.is_active == is_active)

        result = await db.execute(query.order_by(RecurringObligation.id))
        return list(result.scalars().all())

    @staticmethod
    async def update_template(
        db: AsyncSession,
        template_id: int,
        changes: dict,
        actor: Optional[dict] = None,
    ) -> RecurringObligation:
        """
        Apply a partial update. Type, target and start date are fixed once
        created; already generated obligations are never touched.
        """
        template = await RecurringObligationService.get_template(db, template_id)

        updates = {key: value for key, value in changes.items() if key in UPDATABLE_FIELDS}
        candidate = {
            "amount": updates.get("amount", template.amount),
            "paid_by": PaidBy(updates.get("paid_by", template.paid_by)),
            "day_of_month": updates.get("day_of_month", template.day_of_month),
            "end_date": updates["end_date"] if "end_date" in updates else template.end_date,
            "commission_rate": updates["commission_rate"] if "commission_rate" in updates else template.commission_rate,
            "update_coefficient": (
                updates["update_coefficient"] if "update_coefficient" in updates else template.update_coefficient
            ),
        }
        _validate_template(
            template.type, candidate["amount"], candidate["paid_by"],
            candidate["day_of_month"], template.start_date, candidate["end_date"],
            candidate["commission_rate"], candidate["update_coefficient"]
        )

        for key, value in updates.items():
            if key == "amount":
                value = quantize_money(Decimal(value))
            elif key == "paid_by":
                value = PaidBy(value)
            setattr(template, key, value)
        await db.flush()

        await log_event(
            db,
            AuditAction.RECURRING_OBLIGATION_UPDATED,
            actor=actor,
            entity_type="recurring_obligation",
            entity_id=template.id,
            metadata={"fields": sorted(updates)},
        )
        return template

    @staticmethod
    async def toggle_template(db: AsyncSession, template_id: int, actor: Optional[dict] = None) -> RecurringObligation:
        template = await RecurringObligationService.get_template(db, template_id)
        template.is_active = not template.is_active
        await db.flush()

        await log_event(
            db,
            AuditAction.RECURRING_OBLIGATION_TOGGLED,
            actor=actor,
            entity_type="recurring_obligation",
            entity_id=template.id,
            metadata={"is_active": template.is_active},
        )
        logger.info("Recurring template %s is now %s", template.id, "active" if template.is_active else "inactive")
        return template

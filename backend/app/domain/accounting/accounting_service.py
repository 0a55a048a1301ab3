"""
Agency ledger queries and manual entries.

Commission and expense entries are booked by payment registration (and
linked to settlements on confirmation). Staff may add manual adjustments
and other income on top; only those manual entries can be deleted.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional, Union

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import DomainValidationError, ResourceNotFoundError, InvalidStateTransitionError
from backend.app.domain.obligations.distribution import quantize_money
from backend.app.domain.obligations.periods import parse_month
from backend.app.models.accounting_entry import AccountingEntry
from backend.app.models.billing_enums import AccountingEntryType, SettlementStatus
from backend.app.models.contract import Contract
from backend.app.models.obligation import Obligation
from backend.app.models.owner import Owner
from backend.app.models.settlement import Settlement
from backend.app.services.audit import log_event, AuditAction

logger = logging.getLogger(__name__)

ZERO = Decimal("0")

# Commission is only ever booked from collected rent
MANUAL_ENTRY_TYPES = (AccountingEntryType.EXPENSE, AccountingEntryType.ADJUSTMENT, AccountingEntryType.OTHER_INCOME)


@dataclass
class CommissionSummary:
    start_date: date
    end_date: date
    total_commissions: Decimal = ZERO
    count: int = 0
    by_owner: Dict[int, Decimal] = field(default_factory=dict)
    entries: List[AccountingEntry] = field(default_factory=list)


def _check_range(start_date: Optional[date], end_date: Optional[date]) -> None:
    if start_date and end_date and end_date < start_date:
        raise DomainValidationError("End date cannot be before start date", field="end_date")


def _check_manual_amount(entry_type: AccountingEntryType, amount: Decimal) -> None:
    if amount is None or Decimal(amount) == ZERO:
        raise DomainValidationError("Amount cannot be zero", field="amount")
    if entry_type == AccountingEntryType.EXPENSE and Decimal(amount) > ZERO:
        raise DomainValidationError("Expense entries must be negative", field="amount")
    if entry_type == AccountingEntryType.OTHER_INCOME and Decimal(amount) < ZERO:
        raise DomainValidationError("Income entries must be positive", field="amount")


class AccountingService:

    @staticmethod
    async def create_entry(
        db: AsyncSession,
        entry_type: AccountingEntryType,
        description: str,
        amount: Decimal,
        period: Union[str, date],
        entry_date: Optional[date] = None,
        owner_id: Optional[int] = None,
        contract_id: Optional[int] = None,
        obligation_id: Optional[int] = None,
        settlement_id: Optional[int] = None,
        meta_data: Optional[Dict[str, Any]] = None,
        actor: Optional[dict] = None,
    ) -> AccountingEntry:
        """
        Record a manual ledger entry.

        Amounts are signed like booked entries: income positive, expense
        negative, adjustments either way.

        Raises:
            DomainValidationError: commission type, zero or wrongly signed amount, bad period
            ResourceNotFoundError: unknown owner, contract, obligation or settlement
            InvalidStateTransitionError: linking to a settled settlement
        """
        entry_type = AccountingEntryType(entry_type)
        if entry_type not in MANUAL_ENTRY_TYPES:
            raise DomainValidationError(
                f"{entry_type.value} entries are booked from payments only",
                field="entry_type"
            )
        _check_manual_amount(entry_type, amount)
        period = parse_month(period, field="period")

        for model, key in ((Owner, owner_id), (Contract, contract_id), (Obligation, obligation_id)):
            if key is not None and await db.get(model, key) is None:
                raise ResourceNotFoundError(model.__name__, key)

        if settlement_id is not None:
            settlement = await db.get(Settlement, settlement_id)
            if settlement is None:
                raise ResourceNotFoundError("Settlement", settlement_id)
            if settlement.status == SettlementStatus.SETTLED:
                raise InvalidStateTransitionError(
                    f"Settlement {settlement_id} is already settled",
                    details={"settlement_id": settlement_id}
                )

        entry = AccountingEntry(
            entry_type=entry_type,
            description=description,
            amount=quantize_money(Decimal(amount)),
            entry_date=entry_date or date.today(),
            period=period,
            owner_id=owner_id,
            contract_id=contract_id,
            obligation_id=obligation_id,
            settlement_id=settlement_id,
            meta_data=meta_data,
        )
        db.add(entry)
        await db.flush()

        await log_event(
            db,
            AuditAction.ACCOUNTING_ENTRY_CREATED,
            actor=actor,
            entity_type="accounting_entry",
            entity_id=entry.id,
            metadata={"type": entry_type.value, "amount": str(entry.amount)},
        )
        logger.info("Recorded manual %s entry %s (%s)", entry_type.value, entry.id, entry.amount)
        return entry

    @staticmethod
    async def get_entry(db: AsyncSession, entry_id: int) -> AccountingEntry:
        entry = await db.get(AccountingEntry, entry_id)
        if entry is None:
            raise ResourceNotFoundError("AccountingEntry", entry_id)
        return entry

    @staticmethod
    async def delete_entry(db: AsyncSession, entry_id: int, actor: Optional[dict] = None) -> None:
        """
        Delete a manual entry.

        Raises:
            ResourceNotFoundError: unknown entry
            InvalidStateTransitionError: entry booked by a payment, or part of a settled settlement
        """
        entry = await AccountingService.get_entry(db, entry_id)
        if entry.payment_id is not None:
            raise InvalidStateTransitionError(
                f"Accounting entry {entry_id} was booked by payment {entry.payment_id}; reverse the payment instead",
                details={"entry_id": entry_id, "payment_id": entry.payment_id}
            )
        if entry.settlement_id is not None:
            settlement = await db.get(Settlement, entry.settlement_id)
            if settlement is not None and settlement.status == SettlementStatus.SETTLED:
                raise InvalidStateTransitionError(
                    f"Accounting entry {entry_id} belongs to settled settlement {entry.settlement_id}",
                    details={"entry_id": entry_id, "settlement_id": entry.settlement_id}
                )

        metadata = {"type": entry.entry_type.value, "amount": str(entry.amount)}
        await db.delete(entry)
        await db.flush()

        await log_event(
            db,
            AuditAction.ACCOUNTING_ENTRY_DELETED,
            actor=actor,
            entity_type="accounting_entry",
            entity_id=entry_id,
            metadata=metadata,
        )
        logger.info("Deleted manual accounting entry %s", entry_id)

    @staticmethod
    async def list_entries(
        db: AsyncSession,
        entry_type: Optional[AccountingEntryType] = None,
        owner_id: Optional[int] = None,
        settlement_id: Optional[int] = None,
        obligation_id: Optional[int] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[AccountingEntry]:
        _check_range(start_date, end_date)
        query = select(AccountingEntry)

        if entry_type:
            query = query.where(AccountingEntry.entry_type == entry_type)
        if owner_id:
            query = query.where(AccountingEntry.owner_id == owner_id)
        if settlement_id:
            query = query.where(AccountingEntry.settlement_id == settlement_id)
        if obligation_id:
            query = query.where(AccountingEntry.obligation_id == obligation_id)
        if start_date:
            query = query.where(AccountingEntry.entry_date >= start_date)
        if end_date:
            query = query.where(AccountingEntry.entry_date <= end_date)

        result = await db.execute(query.order_by(AccountingEntry.entry_date.desc(), AccountingEntry.id.desc()))
        return list(result.scalars().all())

    @staticmethod
    async def totals_by_type(db: AsyncSession, start_date: date, end_date: date) -> Dict[str, Decimal]:
        """Signed sum of entry amounts per entry type; every type is present."""
        _check_range(start_date, end_date)
        result = await db.execute(
            select(AccountingEntry.entry_type, func.sum(AccountingEntry.amount))
            .where(AccountingEntry.entry_date >= start_date, AccountingEntry.entry_date <= end_date)
            .group_by(AccountingEntry.entry_type)
        )
        totals = {entry_type.value: ZERO for entry_type in AccountingEntryType}
        for entry_type, total in result.all():
            totals[entry_type.value] = Decimal(total or 0)
        return totals

    @staticmethod
    async def commission_summary(db: AsyncSession, start_date: date, end_date: date) -> CommissionSummary:
        entries = await AccountingService.list_entries(
            db, entry_type=AccountingEntryType.COMMISSION, start_date=start_date, end_date=end_date
        )
        summary = CommissionSummary(start_date=start_date, end_date=end_date, entries=entries, count=len(entries))
        for entry in entries:
            amount = Decimal(entry.amount)
            summary.total_commissions += amount
            if entry.owner_id is not None:
                summary.by_owner[entry.owner_id] = summary.by_owner.get(entry.owner_id, ZERO) + amount
        return summary

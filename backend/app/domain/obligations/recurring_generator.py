"""
Recurring Obligation Generator (Domain Logic).

Materializes concrete obligations for a month from recurring templates and
from active contracts (monthly rent).

Idempotency is enforced by the database, not by a read-then-write check:
template obligations are unique on (recurring_obligation_id, period) and
contract rent on generation_key, which a contract's rent template shares. Each item is inserted inside its own
SAVEPOINT; a uniqueness violation means "already generated" and is counted
as skipped, any other failure is collected and the run continues.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional, Union

from sqlalchemy import select, update, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.config import settings
from backend.app.core.exceptions import AppException
from backend.app.domain.obligations.distribution import quantize_money
from backend.app.domain.obligations.obligation_service import ObligationService
from backend.app.domain.obligations.periods import parse_month, last_of_month, day_in_month, format_month
from backend.app.models.contract import Contract
from backend.app.models.obligation_enums import ObligationType, PaidBy
from backend.app.models.recurring_obligation import RecurringObligation
from backend.app.services.audit import log_event, AuditAction

logger = logging.getLogger(__name__)


def rent_generation_key(contract_id: int, period: date) -> str:
    return f"rent:{contract_id}:{format_month(period)}"


def active_template_filter(period: date, period_end: date):
    return (
        RecurringObligation.is_active == True,
        RecurringObligation.start_date <= period_end,
        or_(RecurringObligation.end_date.is_(None), RecurringObligation.end_date >= period),
    )


DUPLICATE_MARKERS = ("uq_obligation_recurring_period", "recurring_obligation_id, obligations.period", "generation_key")


@dataclass
class GenerationError:
    source: str  # "recurring_obligation" or "contract"
    source_id: int
    message: str


@dataclass
class GenerationResult:
    period: date
    generated_count: int = 0
    skipped_count: int = 0
    errors: List[GenerationError] = field(default_factory=list)

    def merge(self, other: "GenerationResult") -> "GenerationResult":
        self.generated_count += other.generated_count
        self.skipped_count += other.skipped_count
        self.errors.extend(other.errors)
        return self


def is_duplicate_generation(exc: IntegrityError) -> bool:
    message = str(exc.orig)
    return any(marker in message for marker in DUPLICATE_MARKERS)


class RecurringObligationGenerator:

    @staticmethod
    async def generate_for_month(
        db: AsyncSession,
        month: Union[str, date],
        actor: Optional[dict] = None,
        today: Optional[date] = None,
    ) -> GenerationResult:
        """
        Generate obligations from every template active in `month`.

        A template is active in a month when `is_active` is set and
        [start_date, end_date] overlaps the month. The due date is the
        template's day of month, clamped to the month's last day.

        Raises:
            DomainValidationError: malformed month (nothing is generated)
        """
        period = parse_month(month)
        period_end = last_of_month(period)

        # Plain rows: a rolled back savepoint must not leave expired ORM state behind
        templates = (await db.execute(
            select(
                RecurringObligation.id,
                RecurringObligation.type,
                RecurringObligation.amount,
                RecurringObligation.day_of_month,
                RecurringObligation.contract_id,
                RecurringObligation.apartment_id,
                RecurringObligation.paid_by,
                RecurringObligation.description,
                RecurringObligation.notes,
                RecurringObligation.commission_rate,
                RecurringObligation.update_coefficient,
            ).where(*active_template_filter(period, period_end)).order_by(RecurringObligation.id)
        )).all()

        result = GenerationResult(period=period)

        for template in templates:
            template_id = template.id
            amount = template.amount
            if template.update_coefficient is not None:
                amount = quantize_money(amount * template.update_coefficient)
            generation_key = None
            if template.type == ObligationType.RENT and template.contract_id is not None:
                generation_key = rent_generation_key(template.contract_id, period)
            try:
                async with db.begin_nested():
                    await ObligationService.create_obligation(
                        db,
                        template.type,
                        amount,
                        period,
                        day_in_month(period, template.day_of_month),
                        contract_id=template.contract_id,
                        apartment_id=template.apartment_id,
                        paid_by=template.paid_by,
                        description=template.description,
                        notes=template.notes,
                        commission_rate=template.commission_rate,
                        recurring_obligation_id=template_id,
                        generation_key=generation_key,
                        is_auto_generated=True,
                        actor=actor,
                        today=today,
                    )
                    await db.execute(
                        update(RecurringObligation)
                        .where(
                            RecurringObligation.id == template_id,
                            or_(RecurringObligation.last_generated.is_(None),
                                RecurringObligation.last_generated < period),
                        )
                        .values(last_generated=period)
                        .execution_options(synchronize_session=False)
                    )
                result.generated_count += 1
            except IntegrityError as exc:
                if not is_duplicate_generation(exc):
                    logger.warning("Recurring obligation %s failed for %s: %s", template_id, format_month(period), exc)
                    result.errors.append(GenerationError("recurring_obligation", template_id, str(exc.orig)))
                    continue
                result.skipped_count += 1
            except AppException as exc:
                logger.warning("Recurring obligation %s failed for %s: %s", template_id, format_month(period), exc.message)
                result.errors.append(GenerationError("recurring_obligation", template_id, exc.message))
            except SQLAlchemyError as exc:
                logger.exception("Recurring obligation %s failed for %s", template_id, format_month(period))
                result.errors.append(GenerationError("recurring_obligation", template_id, str(exc)))

        await RecurringObligationGenerator._log_run(db, "recurring_obligations", result, actor)
        return result

    @staticmethod
    async def generate_rent_for_month(
        db: AsyncSession,
        month: Union[str, date],
        actor: Optional[dict] = None,
        today: Optional[date] = None,
    ) -> GenerationResult:
        """
        Generate one rent obligation per contract active in `month`.

        Amount is the contract's monthly rent, due on the configured rent
        due day; the commission comes from the contract/owner/default chain.
        Contracts with an active rent template are left to that template.
        """
        period = parse_month(month)
        period_end = last_of_month(period)

        # Contracts billed through an active rent template this month
        templated = select(RecurringObligation.contract_id).where(
            RecurringObligation.type == ObligationType.RENT,
            RecurringObligation.contract_id.isnot(None),
            *active_template_filter(period, period_end),
        )

        contracts = (await db.execute(
            select(Contract.id, Contract.monthly_rent).where(
                Contract.is_active == True,
                Contract.start_date <= period_end,
                Contract.end_date >= period,
                Contract.id.notin_(templated),
            ).order_by(Contract.id)
        )).all()

        result = GenerationResult(period=period)

        for contract in contracts:
            contract_id = contract.id
            try:
                async with db.begin_nested():
                    await ObligationService.create_obligation(
                        db,
                        ObligationType.RENT,
                        contract.monthly_rent,
                        period,
                        day_in_month(period, settings.default_rent_due_day),
                        contract_id=contract_id,
                        paid_by=PaidBy.TENANT,
                        description=f"Rent contract {contract_id} - {period.month:02d}/{period.year}",
                        generation_key=rent_generation_key(contract_id, period),
                        is_auto_generated=True,
                        actor=actor,
                        today=today,
                    )
                result.generated_count += 1
            except IntegrityError as exc:
                if not is_duplicate_generation(exc):
                    logger.warning("Rent generation for contract %s failed: %s", contract_id, exc)
                    result.errors.append(GenerationError("contract", contract_id, str(exc.orig)))
                    continue
                result.skipped_count += 1
            except AppException as exc:
                logger.warning("Rent generation for contract %s failed: %s", contract_id, exc.message)
                result.errors.append(GenerationError("contract", contract_id, exc.message))
            except SQLAlchemyError as exc:
                logger.exception("Rent generation for contract %s failed", contract_id)
                result.errors.append(GenerationError("contract", contract_id, str(exc)))

        await RecurringObligationGenerator._log_run(db, "contracts", result, actor)
        return result

    @staticmethod
    async def generate_all_for_month(
        db: AsyncSession,
        month: Union[str, date],
        actor: Optional[dict] = None,
        today: Optional[date] = None,
    ) -> GenerationResult:
        """Contract rent first, then recurring templates; results merged."""
        result = await RecurringObligationGenerator.generate_rent_for_month(db, month, actor, today)
        return result.merge(await RecurringObligationGenerator.generate_for_month(db, month, actor, today))

    @staticmethod
    async def _log_run(db: AsyncSession, source: str, result: GenerationResult, actor: Optional[dict]) -> None:
        logger.info(
            "Generated obligations from %s for %s: generated=%d skipped=%d errors=%d",
            source, format_month(result.period), result.generated_count, result.skipped_count, len(result.errors)
        )
        await log_event(
            db,
            AuditAction.OBLIGATIONS_GENERATED,
            actor=actor,
            entity_type="obligation",
            metadata={
                "source": source,
                "period": format_month(result.period),
                "generated": result.generated_count,
                "skipped": result.skipped_count,
                "errors": len(result.errors),
            },
        )

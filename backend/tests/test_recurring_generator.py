"""
Recurring template management and monthly generation.
"""

import pytest
from datetime import date
from decimal import Decimal

from sqlalchemy import select

from backend.app.core.exceptions import DomainValidationError, ResourceNotFoundError
from backend.app.domain.obligations.recurring_generator import RecurringObligationGenerator
from backend.app.domain.obligations.recurring_templates import RecurringObligationService
from backend.app.models.obligation import Obligation
from backend.app.models.obligation_enums import ObligationType, PaidBy, ObligationStatus
from backend.app.models.recurring_obligation import RecurringObligation

TODAY = date(2025, 3, 1)


async def add_template(db, directory, **overrides):
    values = dict(
        obligation_type=ObligationType.EXPENSES,
        description="Building expenses",
        amount=Decimal("15000"),
        day_of_month=10,
        start_date=date(2025, 1, 1),
        contract_id=directory.contract_id,
    )
    values.update(overrides)
    template = await RecurringObligationService.create_template(db, **values)
    await db.commit()
    return template


async def obligations_for(db, period):
    result = await db.execute(select(Obligation).where(Obligation.period == period).order_by(Obligation.id))
    return list(result.scalars().all())


@pytest.mark.asyncio
async def test_generation_twice_for_the_same_month(db_session, directory):
    template = await add_template(db_session, directory)

    first = await RecurringObligationGenerator.generate_for_month(db_session, "2025-03", today=TODAY)
    await db_session.commit()
    second = await RecurringObligationGenerator.generate_for_month(db_session, "2025-03", today=TODAY)
    await db_session.commit()

    assert (first.generated_count, first.skipped_count, first.errors) == (1, 0, [])
    assert (second.generated_count, second.skipped_count, second.errors) == (0, 1, [])

    generated = await obligations_for(db_session, date(2025, 3, 1))
    assert len(generated) == 1
    obligation = generated[0]
    assert obligation.recurring_obligation_id == template.id
    assert obligation.is_auto_generated is True
    assert obligation.due_date == date(2025, 3, 10)
    assert obligation.amount == Decimal("15000")
    assert obligation.status == ObligationStatus.PENDING

    stored = (await db_session.execute(
        select(RecurringObligation.last_generated).where(RecurringObligation.id == template.id)
    )).scalar_one()
    assert stored == date(2025, 3, 1)


@pytest.mark.asyncio
async def test_due_day_is_clamped_to_month_end(db_session, directory):
    await add_template(db_session, directory, day_of_month=31)

    await RecurringObligationGenerator.generate_for_month(db_session, "2025-02", today=TODAY)
    await db_session.commit()

    generated = await obligations_for(db_session, date(2025, 2, 1))
    assert generated[0].due_date == date(2025, 2, 28)


@pytest.mark.asyncio
async def test_only_templates_active_in_the_month(db_session, directory):
    await add_template(db_session, directory, description="active")
    await add_template(db_session, directory, description="ended", end_date=date(2025, 2, 28))
    await add_template(db_session, directory, description="future", start_date=date(2025, 4, 1))
    paused = await add_template(db_session, directory, description="paused")
    await add_template(db_session, directory, description="ends mid month", end_date=date(2025, 3, 15))
    await add_template(db_session, directory, description="starts mid month", start_date=date(2025, 3, 20))

    await RecurringObligationService.toggle_template(db_session, paused.id)
    await db_session.commit()

    result = await RecurringObligationGenerator.generate_for_month(db_session, "2025-03", today=TODAY)
    await db_session.commit()

    assert result.generated_count == 3
    descriptions = sorted(o.description for o in await obligations_for(db_session, date(2025, 3, 1)))
    assert descriptions == ["active", "ends mid month", "starts mid month"]


@pytest.mark.asyncio
async def test_one_failing_template_does_not_block_the_others(db_session, directory):
    good = await add_template(db_session, directory, description="good")
    # Written directly: an owner-paid debt never passes template validation
    broken = RecurringObligation(
        contract_id=directory.contract_id,
        apartment_id=directory.apartment_id,
        type=ObligationType.DEBT,
        description="broken",
        amount=Decimal("100"),
        paid_by=PaidBy.OWNER,
        day_of_month=5,
        start_date=date(2025, 1, 1),
        is_active=True,
    )
    db_session.add(broken)
    await db_session.commit()
    broken_id = broken.id
    last = await add_template(db_session, directory, description="also good")

    result = await RecurringObligationGenerator.generate_for_month(db_session, "2025-03", today=TODAY)
    await db_session.commit()

    assert result.generated_count == 2
    assert result.skipped_count == 0
    assert [e.source_id for e in result.errors] == [broken_id]
    generated = await obligations_for(db_session, date(2025, 3, 1))
    assert {o.recurring_obligation_id for o in generated} == {good.id, last.id}


@pytest.mark.asyncio
async def test_malformed_month_is_rejected(db_session, directory):
    await add_template(db_session, directory)

    for month in ["2025-13", "03-2025", "2025/03", ""]:
        with pytest.raises(DomainValidationError):
            await RecurringObligationGenerator.generate_for_month(db_session, month)


@pytest.mark.asyncio
async def test_contract_rent_generation_is_idempotent(db_session, make_directory):
    current = await make_directory(owner_rate=Decimal("7"))
    await make_directory(start_date=date(2023, 1, 1), end_date=date(2024, 12, 31))

    first = await RecurringObligationGenerator.generate_rent_for_month(db_session, "2025-03", today=TODAY)
    await db_session.commit()
    second = await RecurringObligationGenerator.generate_rent_for_month(db_session, "2025-03", today=TODAY)
    await db_session.commit()

    assert (first.generated_count, first.skipped_count) == (1, 0)
    assert (second.generated_count, second.skipped_count) == (0, 1)

    rent = (await obligations_for(db_session, date(2025, 3, 1)))[0]
    assert rent.contract_id == current.contract_id
    assert rent.type == ObligationType.RENT
    assert rent.due_date == date(2025, 3, 10)
    assert rent.commission_amount == Decimal("7000")
    assert rent.owner_impact == Decimal("93000")


@pytest.mark.asyncio
async def test_generate_all_merges_rent_and_templates(db_session, directory):
    await add_template(db_session, directory)

    result = await RecurringObligationGenerator.generate_all_for_month(db_session, "2025-03", today=TODAY)
    await db_session.commit()

    assert result.generated_count == 2
    types = sorted(o.type.value for o in await obligations_for(db_session, date(2025, 3, 1)))
    assert types == ["expenses", "rent"]


@pytest.mark.asyncio
async def test_rent_template_replaces_contract_rent(db_session, make_directory):
    current = await make_directory(owner_rate=Decimal("7"))
    template = await add_template(
        db_session, current, obligation_type=ObligationType.RENT, description="Indexed rent",
        amount=Decimal("100000"), update_coefficient=Decimal("1.05"), commission_rate=Decimal("8"),
    )

    result = await RecurringObligationGenerator.generate_all_for_month(db_session, "2025-03", today=TODAY)
    await db_session.commit()
    again = await RecurringObligationGenerator.generate_all_for_month(db_session, "2025-03", today=TODAY)
    await db_session.commit()

    assert (result.generated_count, result.errors) == (1, [])
    assert again.generated_count == 0

    (rent,) = await obligations_for(db_session, date(2025, 3, 1))
    assert rent.recurring_obligation_id == template.id
    assert rent.amount == Decimal("105000")
    assert rent.commission_amount == Decimal("8400")
    assert rent.owner_impact == Decimal("96600")


@pytest.mark.asyncio
async def test_rent_template_uses_commission_chain(db_session, make_directory):
    current = await make_directory(owner_rate=Decimal("7"))
    await add_template(db_session, current, obligation_type=ObligationType.RENT, amount=Decimal("100000"))

    result = await RecurringObligationGenerator.generate_for_month(db_session, "2025-03", today=TODAY)
    await db_session.commit()
    assert result.generated_count == 1

    (rent,) = await obligations_for(db_session, date(2025, 3, 1))
    assert rent.commission_amount == Decimal("7000")

    # The contract itself is billed through its template
    contract_rent = await RecurringObligationGenerator.generate_rent_for_month(db_session, "2025-03", today=TODAY)
    assert contract_rent.generated_count == 0


@pytest.mark.asyncio
async def test_template_validation(db_session, directory):
    with pytest.raises(DomainValidationError):
        await add_template(
            db_session, directory, obligation_type=ObligationType.RENT,
            contract_id=None, apartment_id=directory.apartment_id,
        )
    with pytest.raises(DomainValidationError):
        await add_template(db_session, directory, commission_rate=Decimal("5"))
    with pytest.raises(DomainValidationError):
        await add_template(db_session, directory, obligation_type=ObligationType.RENT, commission_rate=Decimal("120"))
    with pytest.raises(DomainValidationError):
        await add_template(db_session, directory, update_coefficient=Decimal("0"))
    with pytest.raises(DomainValidationError):
        await add_template(db_session, directory, day_of_month=32)
    with pytest.raises(DomainValidationError):
        await add_template(db_session, directory, end_date=date(2024, 12, 31))
    with pytest.raises(DomainValidationError):
        await add_template(db_session, directory, obligation_type=ObligationType.DEBT, paid_by=PaidBy.OWNER)
    with pytest.raises(ResourceNotFoundError):
        await add_template(db_session, directory, contract_id=999)


@pytest.mark.asyncio
async def test_template_update_and_toggle(db_session, directory):
    template = await add_template(db_session, directory)

    updated = await RecurringObligationService.update_template(
        db_session, template.id, {"amount": Decimal("17500"), "day_of_month": 5, "type": "tax"}
    )
    assert updated.amount == Decimal("17500")
    assert updated.day_of_month == 5
    assert updated.type == ObligationType.EXPENSES

    with pytest.raises(DomainValidationError):
        await RecurringObligationService.update_template(db_session, template.id, {"end_date": date(2024, 1, 1)})

    toggled = await RecurringObligationService.toggle_template(db_session, template.id)
    assert toggled.is_active is False

    listed = await RecurringObligationService.list_templates(db_session, is_active=False)
    assert [t.id for t in listed] == [template.id]

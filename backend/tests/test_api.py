"""
API integration tests.

Main flows through HTTP plus the error envelope and role checks.
"""

import pytest
from datetime import date, timedelta
from decimal import Decimal

from backend.app.models.obligation import Obligation
from backend.app.models.obligation_enums import ObligationType, PaidBy, ObligationStatus

API = "/v1"


def future_due():
    due = date.today() + timedelta(days=40)
    return due, f"{due.year:04d}-{due.month:02d}"


async def create_rent(client, headers, contract_id, amount="100000", period=None, due_date=None):
    if period is None:
        due, period = future_due()
        due_date = due.isoformat()
    response = await client.post(f"{API}/obligations", headers=headers, json={
        "type": "rent",
        "amount": amount,
        "period": period,
        "due_date": due_date,
        "contract_id": contract_id,
    })
    assert response.status_code == 201, response.text
    return response.json()


@pytest.mark.asyncio
async def test_health_and_root(client):
    health = await client.get("/health")
    assert health.status_code == 200
    assert health.json()["status"] == "healthy"

    root = await client.get("/")
    assert root.status_code == 200
    assert "X-Correlation-ID" in root.headers


@pytest.mark.asyncio
async def test_obligation_payment_flow(client, directory, operator_headers):
    obligation = await create_rent(client, operator_headers, directory.contract_id)

    assert obligation["status"] == "pending"
    assert Decimal(obligation["owner_impact"]) == Decimal("90000")
    assert Decimal(obligation["agency_impact"]) == Decimal("10000")
    assert obligation["apartment_id"] == directory.apartment_id

    url = f"{API}/obligations/{obligation['id']}/payments"
    first = await client.post(url, headers=operator_headers, json={
        "amount": "60000", "payment_date": date.today().isoformat(), "method": "transfer"
    })
    assert first.status_code == 201, first.text
    assert first.json()["obligation"]["status"] == "partial"
    assert Decimal(first.json()["obligation"]["paid_amount"]) == Decimal("60000")

    too_much = await client.post(url, headers=operator_headers, json={
        "amount": "50000", "payment_date": date.today().isoformat()
    })
    assert too_much.status_code == 409
    assert too_much.json()["error_code"] == "ERR_OBLIGATION_001"

    second = await client.post(url, headers=operator_headers, json={
        "amount": "40000", "payment_date": date.today().isoformat()
    })
    assert second.status_code == 201
    assert second.json()["obligation"]["status"] == "paid"

    detail = await client.get(f"{API}/obligations/{obligation['id']}", headers=operator_headers)
    assert detail.status_code == 200
    assert [Decimal(p["amount"]) for p in detail.json()["payments"]] == [Decimal("60000"), Decimal("40000")]

    history = await client.get(url, headers=operator_headers)
    assert len(history.json()) == 2

    entries = await client.get(
        f"{API}/accounting/entries", headers=operator_headers, params={"type": "commission"}
    )
    assert entries.status_code == 200
    assert sum(Decimal(e["amount"]) for e in entries.json()) == Decimal("10000")


@pytest.mark.asyncio
async def test_payment_reversal(client, directory, operator_headers):
    obligation = await create_rent(client, operator_headers, directory.contract_id)
    paid = await client.post(f"{API}/obligations/{obligation['id']}/payments", headers=operator_headers, json={
        "amount": "25000", "payment_date": date.today().isoformat()
    })
    payment_id = paid.json()["payment"]["id"]

    reversed_ = await client.post(
        f"{API}/obligations/payments/{payment_id}/reverse", headers=operator_headers, json={"reason": "bounced"}
    )
    assert reversed_.status_code == 201, reversed_.text
    assert Decimal(reversed_.json()["amount"]) == Decimal("-25000")
    assert reversed_.json()["reverses_payment_id"] == payment_id

    detail = await client.get(f"{API}/obligations/{obligation['id']}", headers=operator_headers)
    assert detail.json()["status"] == "pending"
    assert Decimal(detail.json()["paid_amount"]) == Decimal("0")

    again = await client.post(f"{API}/obligations/payments/{payment_id}/reverse", headers=operator_headers)
    assert again.status_code == 409
    assert again.json()["error_code"] == "ERR_STATE_001"


@pytest.mark.asyncio
async def test_initial_payment_on_create(client, directory, operator_headers):
    response = await client.post(f"{API}/obligations", headers=operator_headers, json={
        "type": "debt",
        "amount": "3000",
        "period": "2025-03",
        "due_date": "2025-03-10",
        "contract_id": directory.contract_id,
        "paid_by": "agency",
        "initial_payment": {"amount": "3000", "payment_date": "2025-03-02"},
    })

    assert response.status_code == 201, response.text
    body = response.json()
    assert body["status"] == "paid"
    assert Decimal(body["owner_impact"]) == Decimal("3000")
    assert Decimal(body["agency_impact"]) == Decimal("-3000")


@pytest.mark.asyncio
async def test_validation_errors(client, directory, operator_headers):
    derived_field = await client.post(f"{API}/obligations", headers=operator_headers, json={
        "type": "rent", "amount": "1000", "period": "2025-03", "due_date": "2025-03-10",
        "contract_id": directory.contract_id, "status": "paid",
    })
    assert derived_field.status_code == 422
    assert derived_field.json()["error_code"] == "ERR_VALIDATION"

    owner_debt = await client.post(f"{API}/obligations", headers=operator_headers, json={
        "type": "debt", "amount": "1000", "period": "2025-03", "due_date": "2025-03-10",
        "contract_id": directory.contract_id, "paid_by": "owner",
    })
    assert owner_debt.status_code == 422
    assert owner_debt.json()["error_code"] == "ERR_VALIDATION_001"
    assert owner_debt.json()["details"]["field"] == "paid_by"

    bad_period = await client.post(f"{API}/obligations", headers=operator_headers, json={
        "type": "tax", "amount": "1000", "period": "03/2025", "due_date": "2025-03-10",
        "contract_id": directory.contract_id, "paid_by": "owner",
    })
    assert bad_period.status_code == 422
    assert bad_period.json()["details"]["field"] == "period"

    negative = await client.post(f"{API}/obligations", headers=operator_headers, json={
        "type": "tax", "amount": "-5", "period": "2025-03", "due_date": "2025-03-10",
        "contract_id": directory.contract_id,
    })
    assert negative.status_code == 422

    missing = await client.get(f"{API}/obligations/999", headers=operator_headers)
    assert missing.status_code == 404
    assert missing.json()["error_code"] == "ERR_NOT_FOUND_001"


@pytest.mark.asyncio
async def test_authentication_required(client, admin_headers):
    no_token = await client.get(f"{API}/obligations")
    assert no_token.status_code in (401, 403)

    bad_token = await client.get(f"{API}/obligations", headers={"Authorization": "Bearer not-a-jwt"})
    assert bad_token.status_code == 401
    assert bad_token.json()["error_code"] == "ERR_UNAUTHORIZED"

    ok = await client.get(f"{API}/obligations", headers=admin_headers)
    assert ok.status_code == 200
    assert ok.json() == []


@pytest.mark.asyncio
async def test_monthly_generation(client, directory, operator_headers):
    template = await client.post(f"{API}/recurring-obligations", headers=operator_headers, json={
        "type": "expenses",
        "description": "Building expenses",
        "amount": "15000",
        "day_of_month": 31,
        "start_date": "2025-01-01",
        "contract_id": directory.contract_id,
    })
    assert template.status_code == 201, template.text
    assert template.json()["apartment_id"] == directory.apartment_id

    first = await client.post(f"{API}/obligations/generate", headers=operator_headers, json={"month": "2025-02"})
    assert first.status_code == 200, first.text
    assert (first.json()["generated_count"], first.json()["skipped_count"]) == (2, 0)

    second = await client.post(f"{API}/obligations/generate", headers=operator_headers, json={"month": "2025-02"})
    assert (second.json()["generated_count"], second.json()["skipped_count"]) == (0, 2)

    only_templates = await client.post(
        f"{API}/recurring-obligations/generate", headers=operator_headers, json={"month": "2025-02"}
    )
    assert (only_templates.json()["generated_count"], only_templates.json()["skipped_count"]) == (0, 1)

    listed = await client.get(f"{API}/obligations", headers=operator_headers, params={"period": "2025-02"})
    due_dates = sorted(o["due_date"] for o in listed.json())
    assert due_dates == ["2025-02-10", "2025-02-28"]

    bad = await client.post(f"{API}/obligations/generate", headers=operator_headers, json={"month": "2025-2"})
    assert bad.status_code == 422


@pytest.mark.asyncio
async def test_recurring_template_management(client, directory, operator_headers):
    rent_template = await client.post(f"{API}/recurring-obligations", headers=operator_headers, json={
        "type": "rent", "description": "Rent", "amount": "1000", "day_of_month": 5,
        "start_date": "2025-01-01", "contract_id": directory.contract_id,
    })
    assert rent_template.status_code == 201, rent_template.text
    assert rent_template.json()["type"] == "rent"
    assert rent_template.json()["commission_rate"] is None

    created = await client.post(f"{API}/recurring-obligations", headers=operator_headers, json={
        "type": "insurance", "description": "Home insurance", "amount": "4200", "day_of_month": 15,
        "start_date": "2025-01-01", "apartment_id": directory.apartment_id, "paid_by": "owner",
    })
    template_id = created.json()["id"]

    updated = await client.put(
        f"{API}/recurring-obligations/{template_id}", headers=operator_headers, json={"amount": "4500"}
    )
    assert updated.status_code == 200
    assert Decimal(updated.json()["amount"]) == Decimal("4500")
    assert updated.json()["day_of_month"] == 15

    toggled = await client.post(f"{API}/recurring-obligations/{template_id}/toggle", headers=operator_headers)
    assert toggled.json()["is_active"] is False

    active = await client.get(f"{API}/recurring-obligations", headers=operator_headers, params={"is_active": True})
    assert [t["id"] for t in active.json()] == [rent_template.json()["id"]]

    fetched = await client.get(f"{API}/recurring-obligations/{template_id}", headers=operator_headers)
    assert fetched.json()["description"] == "Home insurance"


@pytest.mark.asyncio
async def test_overdue_sweep(client, directory, session_factory, operator_headers):
    async with session_factory() as session:
        session.add(Obligation(
            apartment_id=directory.apartment_id,
            contract_id=directory.contract_id,
            type=ObligationType.EXPENSES,
            description="Expenses",
            paid_by=PaidBy.TENANT,
            amount=Decimal("1000"),
            paid_amount=Decimal("0"),
            period=date(2025, 1, 1),
            due_date=date(2025, 1, 10),
            status=ObligationStatus.PENDING,
        ))
        await session.commit()

    swept = await client.post(f"{API}/obligations/sweep-overdue", headers=operator_headers)
    assert swept.status_code == 200
    assert swept.json()["marked_count"] == 1

    overdue = await client.get(f"{API}/obligations/overdue", headers=operator_headers)
    assert len(overdue.json()) == 1

    pending = await client.get(f"{API}/obligations/pending", headers=operator_headers)
    assert len(pending.json()) == 1


@pytest.mark.asyncio
async def test_settlement_flow(client, directory, operator_headers, admin_headers):
    obligation = await create_rent(
        client, operator_headers, directory.contract_id, period="2025-03", due_date="2025-03-10"
    )
    await client.post(f"{API}/obligations/{obligation['id']}/payments", headers=operator_headers, json={
        "amount": "100000", "payment_date": "2025-03-08"
    })

    calculated = await client.post(f"{API}/settlements/calculate", headers=operator_headers, json={
        "period": "2025-03", "owner_id": directory.owner_id
    })
    assert calculated.status_code == 200, calculated.text
    settlement = calculated.json()[0]
    assert settlement["status"] == "pending"
    assert Decimal(settlement["owner_amount"]) == Decimal("90000")
    assert Decimal(settlement["commission_amount"]) == Decimal("10000")

    forbidden = await client.post(
        f"{API}/settlements/{settlement['id']}/settle", headers=operator_headers, json={"payment_method": "transfer"}
    )
    assert forbidden.status_code == 403
    assert forbidden.json()["error_code"] == "ERR_FORBIDDEN"

    settled = await client.post(
        f"{API}/settlements/{settlement['id']}/settle", headers=admin_headers,
        json={"payment_method": "transfer", "reference": "TRX-42"}
    )
    assert settled.status_code == 200, settled.text
    assert settled.json()["status"] == "settled"
    assert settled.json()["settled_at"] is not None

    twice = await client.post(f"{API}/settlements/{settlement['id']}/settle", headers=admin_headers, json={})
    assert twice.status_code == 409

    linked = await client.get(
        f"{API}/accounting/entries", headers=admin_headers, params={"settlement_id": settlement["id"]}
    )
    assert len(linked.json()) == 1

    reopened = await client.post(f"{API}/settlements/{settlement['id']}/pending", headers=admin_headers)
    assert reopened.status_code == 200
    assert reopened.json()["status"] == "pending"

    listed = await client.get(f"{API}/settlements", headers=operator_headers, params={"status": "pending"})
    assert [s["id"] for s in listed.json()] == [settlement["id"]]

    all_owners = await client.post(f"{API}/settlements/calculate", headers=operator_headers, json={"period": "2025-03"})
    assert [s["id"] for s in all_owners.json()] == [settlement["id"]]

    totals = await client.get(f"{API}/accounting/totals", headers=operator_headers, params={
        "start_date": "2025-03-01", "end_date": "2025-03-31"
    })
    assert Decimal(totals.json()["totals"]["commission"]) == Decimal("10000")

    summary = await client.get(f"{API}/accounting/commissions/summary", headers=operator_headers, params={
        "start_date": "2025-03-01", "end_date": "2025-03-31"
    })
    assert summary.json()["count"] == 1


@pytest.mark.asyncio
async def test_manual_accounting_entries(client, directory, operator_headers, admin_headers):
    created = await client.post(f"{API}/accounting/entries", headers=operator_headers, json={
        "entry_type": "income_other",
        "description": "Late fee",
        "amount": "1500",
        "period": "2025-03",
        "entry_date": "2025-03-12",
        "owner_id": directory.owner_id,
    })
    assert created.status_code == 201, created.text
    entry = created.json()
    assert entry["period"] == "2025-03-01"
    assert entry["payment_id"] is None

    fetched = await client.get(f"{API}/accounting/entries/{entry['id']}", headers=operator_headers)
    assert fetched.status_code == 200
    assert Decimal(fetched.json()["amount"]) == Decimal("1500")

    commission = await client.post(f"{API}/accounting/entries", headers=operator_headers, json={
        "entry_type": "commission", "description": "Manual", "amount": "100", "period": "2025-03",
    })
    assert commission.status_code == 422
    assert commission.json()["error_code"] == "ERR_VALIDATION_001"

    forbidden = await client.delete(f"{API}/accounting/entries/{entry['id']}", headers=operator_headers)
    assert forbidden.status_code == 403

    deleted = await client.delete(f"{API}/accounting/entries/{entry['id']}", headers=admin_headers)
    assert deleted.status_code == 204

    gone = await client.get(f"{API}/accounting/entries/{entry['id']}", headers=operator_headers)
    assert gone.status_code == 404


@pytest.mark.asyncio
async def test_owner_balance_endpoints(client, directory, operator_headers, admin_headers):
    rent = await create_rent(client, operator_headers, directory.contract_id)
    paid = await client.post(f"{API}/obligations/{rent['id']}/payments", headers=operator_headers, json={
        "amount": "100000", "payment_date": date.today().isoformat()
    })
    assert paid.status_code == 201, paid.text
    assert paid.json()["payment"]["applied_to_owner_balance"] is False

    balance = await client.get(f"{API}/owners/{directory.owner_id}/balance", headers=operator_headers)
    assert balance.status_code == 200
    assert Decimal(balance.json()["balance"]) == Decimal("90000")

    forbidden = await client.post(f"{API}/owners/{directory.owner_id}/balance/recalculate", headers=operator_headers)
    assert forbidden.status_code == 403

    recalculated = await client.post(f"{API}/owners/{directory.owner_id}/balance/recalculate", headers=admin_headers)
    assert recalculated.status_code == 200, recalculated.text
    assert Decimal(recalculated.json()["new_balance"]) == Decimal("90000")
    assert recalculated.json()["payments_processed"] == 1

    everyone = await client.post(f"{API}/owners/balances/recalculate", headers=admin_headers)
    assert everyone.status_code == 200
    assert [r["owner_id"] for r in everyone.json()["results"]] == [directory.owner_id]

    missing = await client.get(f"{API}/owners/999/balance", headers=operator_headers)
    assert missing.status_code == 404

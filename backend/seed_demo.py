"""
Database seeding script for a demo portfolio.

Creates owners, apartments, tenants and contracts, a couple of recurring
templates, then generates one month of obligations, pays the rent and
calculates the owners' settlements.
Run this script after database is set up (tables are created on app startup).
"""

import asyncio
import random
import sys
from datetime import date
from decimal import Decimal
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from backend.app.db.session import AsyncSessionLocal
from backend.app.domain.obligations.payment_registrar import PaymentRegistrar
from backend.app.domain.obligations.recurring_generator import RecurringObligationGenerator
from backend.app.domain.obligations.recurring_templates import RecurringObligationService
from backend.app.domain.settlements.settlement_service import SettlementService
from backend.app.models.apartment import Apartment
from backend.app.models.contract import Contract
from backend.app.models.obligation import Obligation
from backend.app.models.obligation_enums import ObligationType, PaidBy, PaymentMethod
from backend.app.models.owner import Owner
from backend.app.models.tenant import Tenant
from sqlalchemy import select

DEMO_MONTH = "2025-03"
DEFAULT_SEED = 42
SEED_ACTOR = {"sub": "seed", "user_id": 1, "role": "ADMIN"}

PORTFOLIO = [
    # owner, commission override, unit, tenant
    ("Laura Fernandez", None, "4B", "Tomas Ruiz"),
    ("Marcos Diaz", Decimal("8"), "1A", "Ana Lopez"),
    ("Marcos Diaz", Decimal("8"), "2C", "Julian Perez"),
]


async def seed_demo(rng: random.Random):
    """
    Seed the demo portfolio. Rents and payments are drawn from
    `rng`, so the same seed always yields the same ledger.
    """
    async with AsyncSessionLocal() as db:
        print("🌱 Starting demo seeding...")

        result = await db.execute(select(Owner).limit(1))
        if result.scalar_one_or_none():
            print("ℹ️  Owners already exist, skipping seeding")
            return

        owners = {}
        contracts = []
        for owner_name, rate, unit, tenant_name in PORTFOLIO:
            owner = owners.get(owner_name)
            if owner is None:
                owner = Owner(name=owner_name, commission_rate=rate)
                db.add(owner)
                await db.flush()
                owners[owner_name] = owner

            apartment = Apartment(owner_id=owner.id, unit=unit, address="Av. Corrientes 1234")
            tenant = Tenant(name=tenant_name)
            db.add_all([apartment, tenant])
            await db.flush()

            contract = Contract(
                apartment_id=apartment.id,
                tenant_id=tenant.id,
                start_date=date(2025, 1, 1),
                end_date=date(2026, 12, 31),
                monthly_rent=Decimal(rng.randrange(80, 121) * 1000),
                is_active=True,
            )
            db.add(contract)
            await db.flush()
            contracts.append(contract)
        print(f"✅ Created {len(owners)} owners and {len(contracts)} contracts")

        await RecurringObligationService.create_template(
            db, ObligationType.EXPENSES, "Building expenses", Decimal("15000"), 10,
            date(2025, 1, 1), contract_id=contracts[0].id, actor=SEED_ACTOR,
        )
        await RecurringObligationService.create_template(
            db, ObligationType.TAX, "Municipal tax", Decimal("4200"), 20,
            date(2025, 1, 1), contract_id=contracts[1].id, paid_by=PaidBy.OWNER, actor=SEED_ACTOR,
        )
        await db.commit()
        print("✅ Created recurring templates")

        generation = await RecurringObligationGenerator.generate_all_for_month(db, DEMO_MONTH, actor=SEED_ACTOR)
        await db.commit()
        print(f"✅ Generated {generation.generated_count} obligations for {DEMO_MONTH}")

        rows = await db.execute(
            select(Obligation.id, Obligation.amount)
            .where(Obligation.type == ObligationType.RENT)
            .order_by(Obligation.id)
        )
        for obligation_id, amount in rows.all():
            # Roughly one in three tenants pays only part of the rent
            if rng.random() < 0.33:
                amount = (amount * Decimal(rng.randrange(30, 90)) / 100).quantize(Decimal("1"))
            await PaymentRegistrar.register_payment(
                db, obligation_id, amount, date(2025, 3, rng.randrange(1, 11)),
                method=PaymentMethod.TRANSFER, actor=SEED_ACTOR,
            )
        await db.commit()
        print("✅ Registered rent payments")

        settlements = await SettlementService.calculate_all_for_period(db, DEMO_MONTH, actor=SEED_ACTOR)
        await db.commit()

        print("\n🎉 Demo seeding completed successfully!")
        print("\nSettlements:")
        for settlement in settlements:
            print(f"  - owner {settlement.owner_id}: {settlement.owner_amount} "
                  f"(commission {settlement.commission_amount})")


if __name__ == "__main__":
    seed = int(sys.argv[1]) if len(sys.argv) > 1 else DEFAULT_SEED
    asyncio.run(seed_demo(random.Random(seed)))

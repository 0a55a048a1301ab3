"""
Commission Rate Resolver.

Responsible for determining the commission percentage for an obligation.
Follows priority:
1. Rate given explicitly for the obligation
2. Contract specific rate
3. Owner specific rate
4. Agency default (settings.default_commission_rate)
"""

from decimal import Decimal
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.config import settings
from backend.app.models.apartment import Apartment
from backend.app.models.contract import Contract
from backend.app.models.owner import Owner


class CommissionResolver:

    @staticmethod
    async def resolve_rate(
        db: AsyncSession,
        apartment: Apartment,
        contract: Optional[Contract] = None,
        explicit_rate: Optional[Decimal] = None,
    ) -> Decimal:
        if explicit_rate is not None:
            return Decimal(explicit_rate)

        if contract is not None and contract.commission_rate is not None:
            return Decimal(contract.commission_rate)

        owner = await db.get(Owner, apartment.owner_id)
        if owner is not None and owner.commission_rate is not None:
            return Decimal(owner.commission_rate)

        return settings.default_commission_rate

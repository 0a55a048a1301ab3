"""
Owner balance endpoints.

Reading a balance is open to staff; recalculation is ADMIN only.
"""

from fastapi import APIRouter, Depends, Path
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.db.session import get_db
from backend.app.core.guards import require_role
from backend.app.core.reliability import run_in_transaction
from backend.app.domain.settlements.owner_balance import OwnerBalanceService
from backend.app.models.enums import UserRole
from backend.app.schemas.owner import (
    OwnerBalanceResponse, OwnerBalanceRecalculationResponse, BalanceRecalculationResponse
)

router = APIRouter(prefix="/owners", tags=["Owners"])

staff = require_role([UserRole.ADMIN, UserRole.OPERATOR])
admin_only = require_role([UserRole.ADMIN])


@router.post("/balances/recalculate", response_model=BalanceRecalculationResponse)
async def recalculate_all_balances(
    current_user: dict = Depends(admin_only),
    db: AsyncSession = Depends(get_db)
):
    return await run_in_transaction(db, OwnerBalanceService.recalculate_all, actor=current_user)


@router.get("/{owner_id}/balance", response_model=OwnerBalanceResponse)
async def get_owner_balance(
    owner_id: int = Path(..., description="Owner ID"),
    current_user: dict = Depends(staff),
    db: AsyncSession = Depends(get_db)
):
    return await OwnerBalanceService.get_owner(db, owner_id)


@router.post("/{owner_id}/balance/recalculate", response_model=OwnerBalanceRecalculationResponse)
async def recalculate_owner_balance(
    owner_id: int = Path(..., description="Owner ID"),
    current_user: dict = Depends(admin_only),
    db: AsyncSession = Depends(get_db)
):
    """Rebuild the balance from payment history and report any drift."""
    return await run_in_transaction(db, OwnerBalanceService.recalculate, owner_id, actor=current_user)

"""
Settlement API Endpoints.

Calculation is open to staff; confirming or reopening a payout is ADMIN only.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Path
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.db.session import get_db
from backend.app.core.guards import require_role
from backend.app.core.reliability import run_in_transaction
from backend.app.domain.settlements.settlement_service import SettlementService
from backend.app.models.billing_enums import SettlementStatus
from backend.app.models.enums import UserRole
from backend.app.schemas.settlement import (
    SettlementCalculateRequest, SettlementSettleRequest, SettlementResponse
)

router = APIRouter(prefix="/settlements", tags=["Settlements"])

staff = require_role([UserRole.ADMIN, UserRole.OPERATOR])
admin_only = require_role([UserRole.ADMIN])


@router.get("", response_model=List[SettlementResponse])
async def list_settlements(
    owner_id: Optional[int] = Query(None),
    status_filter: Optional[SettlementStatus] = Query(None, alias="status"),
    period: Optional[str] = Query(None, description="YYYY-MM"),
    current_user: dict = Depends(staff),
    db: AsyncSession = Depends(get_db)
):
    return await SettlementService.list_settlements(db, owner_id=owner_id, status=status_filter, period=period)


@router.post("/calculate", response_model=List[SettlementResponse])
async def calculate_settlements(
    data: SettlementCalculateRequest,
    current_user: dict = Depends(staff),
    db: AsyncSession = Depends(get_db)
):
    """
    Calculate (or recompute while pending) settlements for a period.

    With `owner_id` only that owner's settlement is calculated, otherwise
    every owner with paid obligations in the period.
    """
    if data.owner_id is not None:
        settlement = await run_in_transaction(
            db, SettlementService.calculate_for_period, data.owner_id, data.period, actor=current_user
        )
        settlements = [settlement]
    else:
        settlements = await run_in_transaction(
            db, SettlementService.calculate_all_for_period, data.period, actor=current_user
        )

    for settlement in settlements:
        await db.refresh(settlement)
    return settlements


@router.get("/{settlement_id}", response_model=SettlementResponse)
async def get_settlement(
    settlement_id: int = Path(..., description="Settlement ID"),
    current_user: dict = Depends(staff),
    db: AsyncSession = Depends(get_db)
):
    return await SettlementService.get_settlement(db, settlement_id)


@router.post("/{settlement_id}/settle", response_model=SettlementResponse)
async def settle_settlement(
    settlement_id: int = Path(..., description="Settlement ID"),
    data: SettlementSettleRequest = ...,
    current_user: dict = Depends(admin_only),
    db: AsyncSession = Depends(get_db)
):
    """
    Mark a PENDING settlement as paid out to the owner.
    """
    settlement = await run_in_transaction(
        db,
        SettlementService.mark_as_settled,
        settlement_id,
        payment_method=data.payment_method,
        reference=data.reference,
        notes=data.notes,
        actor=current_user,
    )
    await db.refresh(settlement)
    return settlement


@router.post("/{settlement_id}/pending", response_model=SettlementResponse)
async def reopen_settlement(
    settlement_id: int = Path(..., description="Settlement ID"),
    current_user: dict = Depends(admin_only),
    db: AsyncSession = Depends(get_db)
):
    """
    Move a SETTLED settlement back to PENDING.
    """
    settlement = await run_in_transaction(
        db, SettlementService.mark_as_pending, settlement_id, actor=current_user
    )
    await db.refresh(settlement)
    return settlement

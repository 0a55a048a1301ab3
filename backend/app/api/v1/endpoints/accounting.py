"""
Accounting API Endpoints.
"""

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Path, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.db.session import get_db
from backend.app.core.guards import require_role
from backend.app.core.reliability import run_in_transaction
from backend.app.domain.accounting.accounting_service import AccountingService
from backend.app.models.billing_enums import AccountingEntryType
from backend.app.models.enums import UserRole
from backend.app.schemas.accounting import (
    AccountingEntryCreate, AccountingEntryResponse, AccountingTotalsResponse, CommissionSummaryResponse
)

router = APIRouter(prefix="/accounting", tags=["Accounting"])

staff = require_role([UserRole.ADMIN, UserRole.OPERATOR])
admin_only = require_role([UserRole.ADMIN])


@router.post("/entries", response_model=AccountingEntryResponse, status_code=status.HTTP_201_CREATED)
async def create_entry(
    data: AccountingEntryCreate,
    current_user: dict = Depends(staff),
    db: AsyncSession = Depends(get_db)
):
    """Record a manual adjustment, expense or other income."""
    entry = await run_in_transaction(
        db,
        AccountingService.create_entry,
        data.entry_type,
        data.description,
        data.amount,
        data.period,
        entry_date=data.entry_date,
        owner_id=data.owner_id,
        contract_id=data.contract_id,
        obligation_id=data.obligation_id,
        settlement_id=data.settlement_id,
        meta_data=data.meta_data,
        actor=current_user,
    )
    await db.refresh(entry)
    return entry


@router.get("/entries", response_model=List[AccountingEntryResponse])
async def list_entries(
    entry_type: Optional[AccountingEntryType] = Query(None, alias="type"),
    owner_id: Optional[int] = Query(None),
    settlement_id: Optional[int] = Query(None),
    obligation_id: Optional[int] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    current_user: dict = Depends(staff),
    db: AsyncSession = Depends(get_db)
):
    return await AccountingService.list_entries(
        db,
        entry_type=entry_type,
        owner_id=owner_id,
        settlement_id=settlement_id,
        obligation_id=obligation_id,
        start_date=start_date,
        end_date=end_date,
    )


@router.get("/totals", response_model=AccountingTotalsResponse)
async def get_totals(
    start_date: date = Query(...),
    end_date: date = Query(...),
    current_user: dict = Depends(staff),
    db: AsyncSession = Depends(get_db)
):
    """Signed totals per entry type (income positive, expenses negative)."""
    totals = await AccountingService.totals_by_type(db, start_date, end_date)
    return AccountingTotalsResponse(start_date=start_date, end_date=end_date, totals=totals)


@router.get("/commissions/summary", response_model=CommissionSummaryResponse)
async def get_commission_summary(
    start_date: date = Query(...),
    end_date: date = Query(...),
    current_user: dict = Depends(staff),
    db: AsyncSession = Depends(get_db)
):
    return await AccountingService.commission_summary(db, start_date, end_date)


@router.get("/entries/{entry_id}", response_model=AccountingEntryResponse)
async def get_entry(
    entry_id: int = Path(..., description="Accounting entry ID"),
    current_user: dict = Depends(staff),
    db: AsyncSession = Depends(get_db)
):
    return await AccountingService.get_entry(db, entry_id)


@router.delete("/entries/{entry_id}", status_code=status.HTTP_204_NO_CONTENT, response_class=Response)
async def delete_entry(
    entry_id: int = Path(..., description="Accounting entry ID"),
    current_user: dict = Depends(admin_only),
    db: AsyncSession = Depends(get_db)
):
    """Delete a manual entry. Entries booked by payments are removed by reversing the payment."""
    await run_in_transaction(db, AccountingService.delete_entry, entry_id, actor=current_user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

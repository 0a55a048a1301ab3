"""
Recurring Obligation template endpoints.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, status, Query, Path
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.db.session import get_db
from backend.app.core.guards import require_role
from backend.app.core.reliability import run_in_transaction
from backend.app.domain.obligations.recurring_generator import RecurringObligationGenerator
from backend.app.domain.obligations.recurring_templates import RecurringObligationService
from backend.app.models.enums import UserRole
from backend.app.schemas.obligation import GenerationRequest, GenerationResultResponse
from backend.app.schemas.recurring_obligation import (
    RecurringObligationCreate, RecurringObligationUpdate, RecurringObligationResponse
)

router = APIRouter(prefix="/recurring-obligations", tags=["Recurring Obligations"])

staff = require_role([UserRole.ADMIN, UserRole.OPERATOR])


@router.post("", response_model=RecurringObligationResponse, status_code=status.HTTP_201_CREATED)
async def create_recurring_obligation(
    data: RecurringObligationCreate,
    current_user: dict = Depends(staff),
    db: AsyncSession = Depends(get_db)
):
    template = await run_in_transaction(
        db,
        RecurringObligationService.create_template,
        data.type,
        data.description,
        data.amount,
        data.day_of_month,
        data.start_date,
        contract_id=data.contract_id,
        apartment_id=data.apartment_id,
        paid_by=data.paid_by,
        end_date=data.end_date,
        notes=data.notes,
        commission_rate=data.commission_rate,
        update_coefficient=data.update_coefficient,
        actor=current_user,
    )
    await db.refresh(template)
    return template


@router.get("", response_model=List[RecurringObligationResponse])
async def list_recurring_obligations(
    contract_id: Optional[int] = Query(None),
    apartment_id: Optional[int] = Query(None),
    is_active: Optional[bool] = Query(None),
    current_user: dict = Depends(staff),
    db: AsyncSession = Depends(get_db)
):
    return await RecurringObligationService.list_templates(
        db, contract_id=contract_id, apartment_id=apartment_id, is_active=is_active
    )


@router.post("/generate", response_model=GenerationResultResponse)
async def generate_recurring_obligations(
    data: GenerationRequest,
    current_user: dict = Depends(staff),
    db: AsyncSession = Depends(get_db)
):
    """Generate obligations from active templates only (no contract rent)."""
    return await run_in_transaction(
        db, RecurringObligationGenerator.generate_for_month, data.month, actor=current_user
    )


@router.get("/{template_id}", response_model=RecurringObligationResponse)
async def get_recurring_obligation(
    template_id: int = Path(..., description="Recurring obligation ID"),
    current_user: dict = Depends(staff),
    db: AsyncSession = Depends(get_db)
):
    return await RecurringObligationService.get_template(db, template_id)


@router.put("/{template_id}", response_model=RecurringObligationResponse)
async def update_recurring_obligation(
    template_id: int = Path(..., description="Recurring obligation ID"),
    data: RecurringObligationUpdate = ...,
    current_user: dict = Depends(staff),
    db: AsyncSession = Depends(get_db)
):
    """Partial update; affects future generation only."""
    template = await run_in_transaction(
        db,
        RecurringObligationService.update_template,
        template_id,
        data.model_dump(exclude_unset=True),
        actor=current_user,
    )
    await db.refresh(template)
    return template


@router.post("/{template_id}/toggle", response_model=RecurringObligationResponse)
async def toggle_recurring_obligation(
    template_id: int = Path(..., description="Recurring obligation ID"),
    current_user: dict = Depends(staff),
    db: AsyncSession = Depends(get_db)
):
    template = await run_in_transaction(
        db, RecurringObligationService.toggle_template, template_id, actor=current_user
    )
    await db.refresh(template)
    return template

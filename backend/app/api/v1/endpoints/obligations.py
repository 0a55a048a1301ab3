"""
Obligation API Endpoints.

Obligation entry, queries, payments and the periodic jobs (monthly
generation, overdue sweep) that an external scheduler triggers.
"""

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, status, Query, Path
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.db.session import get_db
from backend.app.core.guards import require_role
from backend.app.core.reliability import run_in_transaction
from backend.app.domain.obligations.obligation_service import ObligationService, InitialPayment
from backend.app.domain.obligations.payment_registrar import PaymentRegistrar
from backend.app.domain.obligations.periods import parse_month
from backend.app.domain.obligations.recurring_generator import RecurringObligationGenerator
from backend.app.models.enums import UserRole
from backend.app.models.obligation_enums import ObligationStatus, ObligationType
from backend.app.schemas.obligation import (
    ObligationCreate, ObligationResponse, ObligationDetailResponse,
    PaymentCreate, PaymentReverse, PaymentResponse, PaymentResult,
    GenerationRequest, GenerationResultResponse, OverdueSweepResponse
)

router = APIRouter(prefix="/obligations", tags=["Obligations"])

staff = require_role([UserRole.ADMIN, UserRole.OPERATOR])


@router.post("", response_model=ObligationResponse, status_code=status.HTTP_201_CREATED)
async def create_obligation(
    data: ObligationCreate,
    current_user: dict = Depends(staff),
    db: AsyncSession = Depends(get_db)
):
    """
    Create an obligation against a contract or an apartment.

    Owner/agency impacts and status are derived; an optional initial
    payment is recorded in the same transaction.
    """
    initial_payment = None
    if data.initial_payment:
        initial_payment = InitialPayment(**data.initial_payment.model_dump())

    obligation = await run_in_transaction(
        db,
        ObligationService.create_obligation,
        data.type,
        data.amount,
        parse_month(data.period, field="period"),
        data.due_date,
        contract_id=data.contract_id,
        apartment_id=data.apartment_id,
        paid_by=data.paid_by,
        description=data.description,
        commission_rate=data.commission_rate,
        notes=data.notes,
        initial_payment=initial_payment,
        actor=current_user,
    )
    await db.refresh(obligation)
    return obligation


@router.get("", response_model=List[ObligationResponse])
async def list_obligations(
    status_filter: Optional[ObligationStatus] = Query(None, alias="status"),
    obligation_type: Optional[ObligationType] = Query(None, alias="type"),
    contract_id: Optional[int] = Query(None),
    apartment_id: Optional[int] = Query(None),
    period: Optional[str] = Query(None, description="YYYY-MM"),
    current_user: dict = Depends(staff),
    db: AsyncSession = Depends(get_db)
):
    return await ObligationService.list_obligations(
        db,
        status=status_filter,
        obligation_type=obligation_type,
        contract_id=contract_id,
        apartment_id=apartment_id,
        period=parse_month(period, field="period") if period else None,
    )


@router.get("/pending", response_model=List[ObligationResponse])
async def list_pending_obligations(
    current_user: dict = Depends(staff),
    db: AsyncSession = Depends(get_db)
):
    """Pending, partial and overdue obligations, oldest due first."""
    return await ObligationService.list_pending(db)


@router.get("/overdue", response_model=List[ObligationResponse])
async def list_overdue_obligations(
    current_user: dict = Depends(staff),
    db: AsyncSession = Depends(get_db)
):
    return await ObligationService.list_overdue(db)


@router.post("/generate", response_model=GenerationResultResponse)
async def generate_obligations(
    data: GenerationRequest,
    current_user: dict = Depends(staff),
    db: AsyncSession = Depends(get_db)
):
    """
    Generate the month's rent (from active contracts) and recurring
    obligations. Safe to call repeatedly: existing ones are skipped.
    """
    return await run_in_transaction(
        db, RecurringObligationGenerator.generate_all_for_month, data.month, actor=current_user
    )


@router.post("/sweep-overdue", response_model=OverdueSweepResponse)
async def sweep_overdue(
    current_user: dict = Depends(staff),
    db: AsyncSession = Depends(get_db)
):
    today = date.today()
    marked = await run_in_transaction(db, ObligationService.sweep_overdue, today, actor=current_user)
    return OverdueSweepResponse(as_of=today, marked_count=marked)


@router.post("/payments/{payment_id}/reverse", response_model=PaymentResponse, status_code=status.HTTP_201_CREATED)
async def reverse_payment(
    payment_id: int = Path(..., description="Payment ID"),
    data: Optional[PaymentReverse] = None,
    current_user: dict = Depends(staff),
    db: AsyncSession = Depends(get_db)
):
    """
    Cancel a payment with a compensating negative entry.

    Only allowed while the obligation is not fully paid.
    """
    reversal = await run_in_transaction(
        db, PaymentRegistrar.reverse_payment, payment_id, reason=data.reason if data else None, actor=current_user
    )
    await db.refresh(reversal)
    return reversal


@router.get("/{obligation_id}", response_model=ObligationDetailResponse)
async def get_obligation(
    obligation_id: int = Path(..., description="Obligation ID"),
    current_user: dict = Depends(staff),
    db: AsyncSession = Depends(get_db)
):
    return await ObligationService.get_obligation(db, obligation_id, with_payments=True)


@router.get("/{obligation_id}/payments", response_model=List[PaymentResponse])
async def list_payments(
    obligation_id: int = Path(..., description="Obligation ID"),
    current_user: dict = Depends(staff),
    db: AsyncSession = Depends(get_db)
):
    """Payment history, newest first. Reversals appear as negative amounts."""
    return await ObligationService.list_payments(db, obligation_id)


@router.post("/{obligation_id}/payments", response_model=PaymentResult, status_code=status.HTTP_201_CREATED)
async def register_payment(
    obligation_id: int = Path(..., description="Obligation ID"),
    data: PaymentCreate = ...,
    current_user: dict = Depends(staff),
    db: AsyncSession = Depends(get_db)
):
    """
    Register a payment.

    Returns 409 if the amount exceeds what is still owed or the obligation
    is already paid.
    """
    payment = await run_in_transaction(
        db,
        PaymentRegistrar.register_payment,
        obligation_id,
        data.amount,
        data.payment_date,
        method=data.method,
        reference=data.reference,
        notes=data.notes,
        applied_to_owner_balance=data.applied_to_owner_balance,
        actor=current_user,
    )
    obligation = await ObligationService.get_obligation(db, obligation_id)
    await db.refresh(obligation)
    await db.refresh(payment)
    return PaymentResult(
        payment=PaymentResponse.model_validate(payment),
        obligation=ObligationResponse.model_validate(obligation),
    )

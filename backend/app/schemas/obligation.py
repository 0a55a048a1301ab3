"""
Obligation and payment Pydantic schemas.

Status and ledger impacts are response-only: create requests that carry
them are rejected.
"""

from pydantic import BaseModel, Field
from datetime import datetime, date
from decimal import Decimal
from typing import Optional, List
from backend.app.models.obligation_enums import ObligationType, PaidBy, ObligationStatus, PaymentMethod


class InitialPaymentCreate(BaseModel):
    """Payment recorded in the same transaction as the obligation."""
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    payment_date: date
    method: PaymentMethod = PaymentMethod.OTHER
    reference: Optional[str] = Field(None, max_length=255)
    notes: Optional[str] = None


class ObligationCreate(BaseModel):
    """Schema for creating an obligation."""
    type: ObligationType
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    period: str = Field(..., description="Month the obligation belongs to (YYYY-MM)")
    due_date: date
    contract_id: Optional[int] = None
    apartment_id: Optional[int] = None
    paid_by: PaidBy = PaidBy.TENANT
    description: Optional[str] = Field(None, max_length=500)
    commission_rate: Optional[Decimal] = Field(None, ge=0, le=100, description="Overrides contract/owner/default rate")
    notes: Optional[str] = None
    initial_payment: Optional[InitialPaymentCreate] = None

    class Config:
        extra = "forbid"


class ObligationResponse(BaseModel):
    """Schema for obligation response."""
    id: int
    contract_id: Optional[int]
    apartment_id: int
    recurring_obligation_id: Optional[int]
    type: ObligationType
    description: str
    paid_by: PaidBy
    amount: Decimal
    paid_amount: Decimal
    period: date
    due_date: date
    status: ObligationStatus
    commission_rate: Optional[Decimal]
    owner_impact: Decimal
    agency_impact: Decimal
    commission_amount: Decimal
    owner_amount: Decimal
    is_auto_generated: bool
    notes: Optional[str]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class PaymentCreate(BaseModel):
    """Schema for registering a payment."""
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    payment_date: date
    method: PaymentMethod = PaymentMethod.CASH
    reference: Optional[str] = Field(None, max_length=255)
    notes: Optional[str] = None
    applied_to_owner_balance: bool = Field(False, description="Pay out of the owner's running balance")


class PaymentReverse(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class PaymentResponse(BaseModel):
    """Schema for payment response. Reversals have a negative amount."""
    id: int
    obligation_id: int
    reverses_payment_id: Optional[int]
    amount: Decimal
    payment_date: date
    method: PaymentMethod
    applied_to_owner_balance: bool
    reference: Optional[str]
    notes: Optional[str]
    recorded_by_id: Optional[int]
    created_at: datetime

    class Config:
        from_attributes = True


class ObligationDetailResponse(ObligationResponse):
    """Obligation with its payment history."""
    payments: List[PaymentResponse]


class PaymentResult(BaseModel):
    """Registered payment together with the updated obligation."""
    payment: PaymentResponse
    obligation: ObligationResponse


class GenerationRequest(BaseModel):
    month: str = Field(..., description="Month to generate (YYYY-MM)")


class GenerationErrorResponse(BaseModel):
    source: str
    source_id: int
    message: str

    class Config:
        from_attributes = True


class GenerationResultResponse(BaseModel):
    """Outcome of a generation run."""
    period: date
    generated_count: int
    skipped_count: int
    errors: List[GenerationErrorResponse]

    class Config:
        from_attributes = True


class OverdueSweepResponse(BaseModel):
    as_of: date
    marked_count: int

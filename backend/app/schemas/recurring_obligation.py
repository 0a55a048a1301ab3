"""
Recurring obligation template schemas.
"""

from pydantic import BaseModel, Field
from datetime import datetime, date
from decimal import Decimal
from typing import Optional
from backend.app.models.obligation_enums import ObligationType, PaidBy


class RecurringObligationCreate(BaseModel):
    """Schema for creating a recurring template."""
    type: ObligationType
    description: str = Field(..., min_length=1, max_length=500)
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    day_of_month: int = Field(..., ge=1, le=31, description="Due day; clamped to short months")
    start_date: date
    end_date: Optional[date] = None
    contract_id: Optional[int] = None
    apartment_id: Optional[int] = None
    paid_by: PaidBy = PaidBy.TENANT
    notes: Optional[str] = None
    commission_rate: Optional[Decimal] = Field(None, ge=0, le=100, description="Rent templates only")
    update_coefficient: Optional[Decimal] = Field(None, gt=0, description="Multiplier applied to amount")


class RecurringObligationUpdate(BaseModel):
    """Schema for updating a recurring template. Type, target and start are fixed."""
    description: Optional[str] = Field(None, min_length=1, max_length=500)
    amount: Optional[Decimal] = Field(None, gt=0, decimal_places=2)
    day_of_month: Optional[int] = Field(None, ge=1, le=31)
    end_date: Optional[date] = None
    paid_by: Optional[PaidBy] = None
    is_active: Optional[bool] = None
    notes: Optional[str] = None
    commission_rate: Optional[Decimal] = Field(None, ge=0, le=100)
    update_coefficient: Optional[Decimal] = Field(None, gt=0)


class RecurringObligationResponse(BaseModel):
    id: int
    contract_id: Optional[int]
    apartment_id: Optional[int]
    type: ObligationType
    description: str
    amount: Decimal
    paid_by: PaidBy
    day_of_month: int
    start_date: date
    commission_rate: Optional[Decimal]
    update_coefficient: Optional[Decimal]
    end_date: Optional[date]
    is_active: bool
    last_generated: Optional[date]
    notes: Optional[str]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

"""
Settlement Schemas.
"""

from pydantic import BaseModel, Field
from datetime import datetime, date
from decimal import Decimal
from typing import Optional
from backend.app.models.billing_enums import SettlementStatus


class SettlementCalculateRequest(BaseModel):
    """Calculate one owner's settlement, or every owner's when owner_id is omitted."""
    period: str = Field(..., description="Settlement month (YYYY-MM)")
    owner_id: Optional[int] = None


class SettlementSettleRequest(BaseModel):
    payment_method: Optional[str] = Field(None, max_length=50)
    reference: Optional[str] = Field(None, max_length=255)
    notes: Optional[str] = None


class SettlementResponse(BaseModel):
    """Schema for displaying settlements."""
    id: int
    owner_id: int
    period: date
    total_collected: Decimal
    owner_amount: Decimal
    commission_amount: Decimal
    obligation_count: int
    status: SettlementStatus
    settled_at: Optional[datetime]
    settled_by_admin_id: Optional[int]
    payment_method: Optional[str]
    reference: Optional[str]
    notes: Optional[str]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

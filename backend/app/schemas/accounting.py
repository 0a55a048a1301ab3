"""
Accounting schemas.
"""

from pydantic import BaseModel, Field
from datetime import datetime, date
from decimal import Decimal
from typing import Optional, List, Dict, Any
from backend.app.models.billing_enums import AccountingEntryType


class AccountingEntryCreate(BaseModel):
    """Schema for a manual ledger entry. Amount is signed (income positive)."""
    entry_type: AccountingEntryType
    description: str = Field(..., min_length=1, max_length=255)
    amount: Decimal = Field(..., decimal_places=2)
    period: str = Field(..., description="Month the entry belongs to (YYYY-MM)")
    entry_date: Optional[date] = None
    owner_id: Optional[int] = None
    contract_id: Optional[int] = None
    obligation_id: Optional[int] = None
    settlement_id: Optional[int] = None
    meta_data: Optional[Dict[str, Any]] = None


class AccountingEntryResponse(BaseModel):
    id: int
    entry_type: AccountingEntryType
    description: Optional[str]
    amount: Decimal
    entry_date: date
    period: date
    obligation_id: Optional[int]
    payment_id: Optional[int]
    owner_id: Optional[int]
    contract_id: Optional[int]
    settlement_id: Optional[int]
    meta_data: Optional[Dict[str, Any]]
    created_at: datetime

    class Config:
        from_attributes = True


class AccountingTotalsResponse(BaseModel):
    start_date: date
    end_date: date
    totals: Dict[str, Decimal]


class CommissionSummaryResponse(BaseModel):
    start_date: date
    end_date: date
    total_commissions: Decimal
    count: int
    by_owner: Dict[int, Decimal]
    entries: List[AccountingEntryResponse]

    class Config:
        from_attributes = True

"""
Owner balance schemas.
"""

from pydantic import BaseModel
from decimal import Decimal
from typing import List, Optional


class OwnerBalanceResponse(BaseModel):
    id: int
    name: str
    email: Optional[str]
    commission_rate: Optional[Decimal]
    balance: Decimal

    class Config:
        from_attributes = True


class OwnerBalanceRecalculationResponse(BaseModel):
    owner_id: int
    owner_name: str
    previous_balance: Decimal
    new_balance: Decimal
    total_income: Decimal
    total_deducted: Decimal
    payments_processed: int

    class Config:
        from_attributes = True


class OwnerBalanceErrorResponse(BaseModel):
    owner_id: int
    message: str

    class Config:
        from_attributes = True


class BalanceRecalculationResponse(BaseModel):
    """Outcome of recalculating every owner's balance."""
    results: List[OwnerBalanceRecalculationResponse]
    errors: List[OwnerBalanceErrorResponse]

    class Config:
        from_attributes = True

"""
Recurring Obligation template model.

A standing rule that materializes one obligation per month while active.
"""

from sqlalchemy import Column, Integer, String, Text, Numeric, Date, DateTime, Boolean, Enum, ForeignKey
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.obligation_enums import ObligationType, PaidBy


class RecurringObligation(Base):
    """
    Recurring obligation template.

    Active for every month that overlaps [start_date, end_date] while
    `is_active` is set. `end_date` NULL means open-ended.

    Each generated obligation is `amount * update_coefficient` (when set).
    Rent templates are bound to a contract and replace that contract's
    monthly rent; `commission_rate` overrides the contract/owner/default
    chain for them.
    """
    __tablename__ = "recurring_obligations"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    contract_id = Column(Integer, ForeignKey('contracts.id'), nullable=True, index=True)
    apartment_id = Column(Integer, ForeignKey('apartments.id'), nullable=True, index=True)

    type = Column(Enum(ObligationType), nullable=False)
    description = Column(String(500), nullable=False)
    amount = Column(Numeric(14, 2), nullable=False)
    paid_by = Column(Enum(PaidBy), nullable=False, default=PaidBy.TENANT)
    day_of_month = Column(Integer, nullable=False)

    commission_rate = Column(Numeric(5, 2), nullable=True)  # Rent only
    update_coefficient = Column(Numeric(8, 4), nullable=True)

    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False, index=True)

    last_generated = Column(Date, nullable=True)  # Period of the last generated obligation
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<RecurringObligation(id={self.id}, type='{self.type.value}', amount={self.amount}, active={self.is_active})>"

"""
Accounting Entry database model.

Agency-side bookkeeping records produced by payment registration.
"""

from sqlalchemy import Column, Integer, Numeric, Date, ForeignKey, DateTime, Enum, String, JSON
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.billing_enums import AccountingEntryType


class AccountingEntry(Base):
    """
    Accounting Entry model.

    `amount` is signed like the obligation's agency impact (positive =
    income, negative = expense), so summing the entries an obligation's
    payments booked gives the share of its agency impact that has been paid.
    Payment-booked entries (payment_id set) are never updated or deleted;
    only `settlement_id` is linked later. Manual entries may be deleted.
    """
    __tablename__ = "accounting_entries"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    entry_type = Column(Enum(AccountingEntryType), nullable=False, index=True)
    description = Column(String(255), nullable=True)
    amount = Column(Numeric(14, 2), nullable=False)

    entry_date = Column(Date, nullable=False, index=True)
    period = Column(Date, nullable=False, index=True)

    # Linkage
    obligation_id = Column(Integer, ForeignKey('obligations.id'), nullable=True, index=True)
    payment_id = Column(Integer, ForeignKey('obligation_payments.id'), nullable=True, index=True)
    owner_id = Column(Integer, ForeignKey('owners.id'), nullable=True, index=True)
    contract_id = Column(Integer, ForeignKey('contracts.id'), nullable=True, index=True)
    settlement_id = Column(Integer, ForeignKey('settlements.id'), nullable=True, index=True)

    meta_data = Column(JSON, nullable=True)

    # Timestamps (Immutable - no updated_at)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<AccountingEntry(id={self.id}, type='{self.entry_type.value}', amount={self.amount})>"

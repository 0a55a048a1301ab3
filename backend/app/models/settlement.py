"""
Settlement database model.

Aggregates an owner's paid obligations for one period into a single payout.
"""

from sqlalchemy import Column, Integer, String, Text, Numeric, Date, ForeignKey, DateTime, Enum, UniqueConstraint
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.billing_enums import SettlementStatus


class Settlement(Base):
    """
    Settlement model.

    One row per (owner, period). Recomputed while PENDING; moves to SETTLED
    only through explicit admin confirmation.
    """
    __tablename__ = "settlements"
    __table_args__ = (
        UniqueConstraint("owner_id", "period", name="uq_settlement_owner_period"),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Parties
    owner_id = Column(Integer, ForeignKey('owners.id'), nullable=False, index=True)  # Payee
    period = Column(Date, nullable=False, index=True)

    # Financials
    total_collected = Column(Numeric(14, 2), nullable=False, default=0)
    owner_amount = Column(Numeric(14, 2), nullable=False, default=0)
    commission_amount = Column(Numeric(14, 2), nullable=False, default=0)
    obligation_count = Column(Integer, nullable=False, default=0)

    # Status
    status = Column(Enum(SettlementStatus), default=SettlementStatus.PENDING, nullable=False, index=True)

    # Payment Flow
    settled_at = Column(DateTime(timezone=True), nullable=True)
    settled_by_admin_id = Column(Integer, nullable=True)
    payment_method = Column(String(50), nullable=True)
    reference = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<Settlement(id={self.id}, owner_id={self.owner_id}, status='{self.status.value}', amount={self.owner_amount})>"

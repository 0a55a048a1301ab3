"""
Obligation database model.

A single monetary fact owed against a contract or apartment.
"""

from sqlalchemy import (
    Column, Integer, String, Text, Numeric, Date, DateTime, Boolean, Enum,
    ForeignKey, UniqueConstraint, CheckConstraint
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.obligation_enums import ObligationType, PaidBy, ObligationStatus


class Obligation(Base):
    """
    Obligation model.

    `status`, `owner_impact`, `agency_impact`, `commission_amount` and
    `owner_amount` are cached projections: they are written only by the
    distribution table and the lifecycle functions, never from request data.
    """
    __tablename__ = "obligations"
    __table_args__ = (
        UniqueConstraint("recurring_obligation_id", "period", name="uq_obligation_recurring_period"),
        CheckConstraint("paid_amount >= 0", name="ck_obligation_paid_non_negative"),
        CheckConstraint("paid_amount <= amount", name="ck_obligation_paid_le_amount"),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Linkage
    contract_id = Column(Integer, ForeignKey('contracts.id'), nullable=True, index=True)
    apartment_id = Column(Integer, ForeignKey('apartments.id'), nullable=False, index=True)
    recurring_obligation_id = Column(Integer, ForeignKey('recurring_obligations.id'), nullable=True, index=True)
    generation_key = Column(String(100), nullable=True, unique=True)

    # What is owed
    type = Column(Enum(ObligationType), nullable=False, index=True)
    description = Column(String(500), nullable=False)
    paid_by = Column(Enum(PaidBy), nullable=False, default=PaidBy.TENANT)
    amount = Column(Numeric(14, 2), nullable=False)
    paid_amount = Column(Numeric(14, 2), nullable=False, default=0)

    # When
    period = Column(Date, nullable=False, index=True)  # First day of month
    due_date = Column(Date, nullable=False, index=True)
    status = Column(Enum(ObligationStatus), nullable=False, default=ObligationStatus.PENDING, index=True)

    # Distribution (cached)
    commission_rate = Column(Numeric(5, 2), nullable=True)
    owner_impact = Column(Numeric(14, 2), nullable=False, default=0)
    agency_impact = Column(Numeric(14, 2), nullable=False, default=0)
    commission_amount = Column(Numeric(14, 2), nullable=False, default=0)
    owner_amount = Column(Numeric(14, 2), nullable=False, default=0)

    is_auto_generated = Column(Boolean, default=False, nullable=False)
    notes = Column(Text, nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    payments = relationship(
        "ObligationPayment",
        back_populates="obligation",
        order_by="ObligationPayment.id",
        lazy="selectin",
    )

    def __repr__(self):
        return f"<Obligation(id={self.id}, type='{self.type.value}', amount={self.amount}, status='{self.status.value}')>"

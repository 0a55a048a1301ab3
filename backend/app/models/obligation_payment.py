"""
Obligation Payment database model.

Immutable payment events; corrections are appended as reversal rows.
"""

from sqlalchemy import Column, Integer, String, Text, Numeric, Date, DateTime, Enum, ForeignKey, Boolean
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.obligation_enums import PaymentMethod


class ObligationPayment(Base):
    """
    Obligation Payment model.

    A positive `amount` is a payment. A reversal carries the negated amount
    of the payment it cancels and points at it through `reverses_payment_id`.
    NO updates or deletions allowed.
    """
    __tablename__ = "obligation_payments"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    obligation_id = Column(Integer, ForeignKey('obligations.id'), nullable=False, index=True)
    reverses_payment_id = Column(Integer, ForeignKey('obligation_payments.id'), nullable=True, unique=True)

    amount = Column(Numeric(14, 2), nullable=False)
    payment_date = Column(Date, nullable=False)
    method = Column(Enum(PaymentMethod), nullable=False, default=PaymentMethod.CASH)
    applied_to_owner_balance = Column(Boolean, nullable=False, default=False)  # Paid from the owner's balance
    reference = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)

    # Audit
    recorded_by_id = Column(Integer, nullable=True)

    # Timestamps (Immutable - no updated_at)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    obligation = relationship("Obligation", back_populates="payments")

    @property
    def is_reversal(self) -> bool:
        return self.reverses_payment_id is not None

    def __repr__(self):
        return f"<ObligationPayment(id={self.id}, obligation_id={self.obligation_id}, amount={self.amount})>"

"""
Audit Log Database Model.

Tracks who did what to which financial record.
"""

from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.sql import func
from backend.app.db.session import Base


class AuditLog(Base):
    """
    Audit log model.

    Events logged:
    - OBLIGATION_CREATED / OBLIGATIONS_GENERATED / OBLIGATIONS_MARKED_OVERDUE
    - PAYMENT_REGISTERED / PAYMENT_REVERSED
    - RECURRING_OBLIGATION_CREATED / _UPDATED / _TOGGLED
    - SETTLEMENT_CALCULATED / SETTLEMENT_SETTLED / SETTLEMENT_REOPENED
    - OWNER_BALANCE_RECALCULATED
    - ACCOUNTING_ENTRY_CREATED / ACCOUNTING_ENTRY_DELETED
    """
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Who performed the action (None for system actions)
    actor_id = Column(Integer, index=True, nullable=True)
    actor_username = Column(String(100), nullable=True)

    # What action was performed
    action = Column(String(100), nullable=False, index=True)

    # Which record was affected
    entity_type = Column(String(50), nullable=True, index=True)
    entity_id = Column(Integer, nullable=True, index=True)

    # Additional context (JSON for flexibility)
    meta_data = Column(JSON, nullable=True)

    # Timestamp
    timestamp = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    def __repr__(self):
        return f"<AuditLog(id={self.id}, action='{self.action}', entity={self.entity_type}:{self.entity_id})>"

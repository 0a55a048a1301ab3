"""
Audit logging service for financial actions.

Entries are written inside the caller's transaction so an action and its
audit trail commit (or roll back) together.
"""

from typing import Optional, Dict, Any
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, desc
from backend.app.models.audit_log import AuditLog


# Audit event constants
class AuditAction:
    """Standardized audit action constants."""
    # Obligations
    OBLIGATION_CREATED = "OBLIGATION_CREATED"
    OBLIGATIONS_GENERATED = "OBLIGATIONS_GENERATED"
    OBLIGATIONS_MARKED_OVERDUE = "OBLIGATIONS_MARKED_OVERDUE"

    # Payments
    PAYMENT_REGISTERED = "PAYMENT_REGISTERED"
    PAYMENT_REVERSED = "PAYMENT_REVERSED"

    # Recurring templates
    RECURRING_OBLIGATION_CREATED = "RECURRING_OBLIGATION_CREATED"
    RECURRING_OBLIGATION_UPDATED = "RECURRING_OBLIGATION_UPDATED"
    RECURRING_OBLIGATION_TOGGLED = "RECURRING_OBLIGATION_TOGGLED"

    # Settlements
    SETTLEMENT_CALCULATED = "SETTLEMENT_CALCULATED"
    SETTLEMENT_SETTLED = "SETTLEMENT_SETTLED"
    SETTLEMENT_REOPENED = "SETTLEMENT_REOPENED"
    OWNER_BALANCE_RECALCULATED = "OWNER_BALANCE_RECALCULATED"

    # Accounting
    ACCOUNTING_ENTRY_CREATED = "ACCOUNTING_ENTRY_CREATED"
    ACCOUNTING_ENTRY_DELETED = "ACCOUNTING_ENTRY_DELETED"


async def log_event(
    db: AsyncSession,
    action: str,
    actor: Optional[Dict[str, Any]] = None,
    entity_type: Optional[str] = None,
    entity_id: Optional[int] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> AuditLog:
    """
    Add an audit record to the current transaction.

    Args:
        db: Database session
        action: Action being performed (use AuditAction constants)
        actor: Token payload of the acting user, None for system actions
        entity_type: Kind of record affected ("obligation", "settlement", ...)
        entity_id: ID of the affected record
        metadata: Additional context as JSON

    Returns:
        Created AuditLog instance (flushed, not committed)
    """
    audit_log = AuditLog(
        actor_id=actor.get("user_id") if actor else None,
        actor_username=actor.get("sub") if actor else None,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        meta_data=metadata,
    )

    db.add(audit_log)
    await db.flush()

    return audit_log


async def get_audit_trail(
    db: AsyncSession,
    entity_type: Optional[str] = None,
    entity_id: Optional[int] = None,
    action: Optional[str] = None,
    limit: int = 100
) -> list[AuditLog]:
    """
    Retrieve audit trail with optional filtering, most recent first.
    """
    query = select(AuditLog).order_by(desc(AuditLog.timestamp), desc(AuditLog.id))

    if entity_type:
        query = query.where(AuditLog.entity_type == entity_type)

    if entity_id:
        query = query.where(AuditLog.entity_id == entity_id)

    if action:
        query = query.where(AuditLog.action == action)

    query = query.limit(limit)

    result = await db.execute(query)
    return list(result.scalars().all())

"""
Settlement and accounting enumerations.
"""

import enum


class SettlementStatus(str, enum.Enum):
    """Settlement status enumeration."""
    PENDING = "pending"  # Calculated, not yet paid out to the owner
    SETTLED = "settled"  # Paid out, confirmed by an admin


class AccountingEntryType(str, enum.Enum):
    """Agency ledger entry type."""
    COMMISSION = "commission"  # Agency's cut of collected rent
    EXPENSE = "expense"  # Costs the agency absorbs
    ADJUSTMENT = "adjustment"  # Agency credits paid to an owner
    OTHER_INCOME = "income_other"  # Tenant debts collected by the agency

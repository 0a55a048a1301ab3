"""
Obligation enumerations.
"""

import enum


class ObligationType(str, enum.Enum):
    """What the money is for."""
    RENT = "rent"
    EXPENSES = "expenses"  # Building expenses, tracked only
    SERVICE = "service"  # Utilities
    TAX = "tax"
    INSURANCE = "insurance"
    MAINTENANCE = "maintenance"
    DEBT = "debt"  # Debts and manual adjustments


class PaidBy(str, enum.Enum):
    """Party financially responsible for an obligation's amount."""
    TENANT = "tenant"
    OWNER = "owner"
    AGENCY = "agency"


class ObligationStatus(str, enum.Enum):
    """Derived payment status of an obligation."""
    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"
    OVERDUE = "overdue"


class PaymentMethod(str, enum.Enum):
    """How a payment was made."""
    CASH = "cash"
    TRANSFER = "transfer"
    CHECK = "check"
    CARD = "card"
    OTHER = "other"
    OWNER_BALANCE = "owner_balance"  # Taken from the owner's running balance

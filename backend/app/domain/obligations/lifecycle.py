"""
Obligation Lifecycle.

pending -> partial -> paid. An unpaid obligation is overdue once its due
date has passed; a partial one becomes overdue only when the overdue sweep
marks it. `paid` is terminal.
"""

from datetime import date
from decimal import Decimal
from typing import Optional

from backend.app.core.exceptions import DomainValidationError, OverpaymentError, InvalidStateTransitionError
from backend.app.models.obligation import Obligation
from backend.app.models.obligation_enums import ObligationStatus

ZERO = Decimal("0")

OPEN_STATUSES = (ObligationStatus.PENDING, ObligationStatus.PARTIAL, ObligationStatus.OVERDUE)


def compute_status(amount: Decimal, paid_amount: Decimal, due_date: date, today: Optional[date] = None) -> ObligationStatus:
    """Status as a pure function of (paid_amount, amount, due_date, today)."""
    today = today or date.today()

    if paid_amount >= amount:
        return ObligationStatus.PAID
    # A part-paid obligation only turns overdue through the sweep
    if paid_amount > ZERO:
        return ObligationStatus.PARTIAL
    if due_date < today:
        return ObligationStatus.OVERDUE
    return ObligationStatus.PENDING


def refresh_status(obligation: Obligation, today: Optional[date] = None) -> ObligationStatus:
    obligation.status = compute_status(obligation.amount, obligation.paid_amount, obligation.due_date, today)
    return obligation.status


def apply_payment(obligation: Obligation, amount: Decimal, today: Optional[date] = None) -> ObligationStatus:
    """
    Add a payment to the obligation's paid amount and recompute its status.

    Raises:
        DomainValidationError: amount <= 0
        InvalidStateTransitionError: obligation already paid
        OverpaymentError: payment exceeds the remaining amount
    """
    if amount <= ZERO:
        raise DomainValidationError("Payment amount must be greater than zero", field="amount")

    if obligation.status == ObligationStatus.PAID:
        raise InvalidStateTransitionError(
            f"Obligation {obligation.id} is already paid",
            details={"obligation_id": obligation.id}
        )

    remaining = obligation.amount - obligation.paid_amount
    if amount > remaining:
        raise OverpaymentError(obligation.id, amount, remaining)

    obligation.paid_amount = obligation.paid_amount + amount
    return refresh_status(obligation, today)


def apply_reversal(obligation: Obligation, amount: Decimal, today: Optional[date] = None) -> ObligationStatus:
    """
    Take a previously applied payment amount back off an open obligation.

    Raises:
        InvalidStateTransitionError: obligation is paid (terminal)
        DomainValidationError: reversal larger than what has been paid
    """
    if obligation.status == ObligationStatus.PAID:
        raise InvalidStateTransitionError(
            f"Obligation {obligation.id} is paid; payments on a paid obligation cannot be reversed",
            details={"obligation_id": obligation.id}
        )

    if amount <= ZERO or amount > obligation.paid_amount:
        raise DomainValidationError(
            "Reversal amount must be positive and not exceed the paid amount",
            field="amount",
            details={"paid_amount": str(obligation.paid_amount)}
        )

    obligation.paid_amount = obligation.paid_amount - amount
    return refresh_status(obligation, today)

"""
Obligation lifecycle tests (no database).
"""

import pytest
from datetime import date
from decimal import Decimal

from backend.app.core.exceptions import DomainValidationError, OverpaymentError, InvalidStateTransitionError
from backend.app.domain.obligations import lifecycle
from backend.app.models.obligation import Obligation
from backend.app.models.obligation_enums import ObligationStatus

TODAY = date(2024, 3, 5)


def make_obligation(amount="100000", paid="0", due=date(2024, 3, 10)):
    obligation = Obligation(
        id=1,
        amount=Decimal(amount),
        paid_amount=Decimal(paid),
        due_date=due,
        status=ObligationStatus.PENDING,
    )
    lifecycle.refresh_status(obligation, TODAY)
    return obligation


@pytest.mark.parametrize("paid,due,expected", [
    ("0", date(2024, 3, 10), ObligationStatus.PENDING),
    ("100", date(2024, 3, 10), ObligationStatus.PARTIAL),
    ("0", date(2024, 3, 1), ObligationStatus.OVERDUE),
    ("100", date(2024, 3, 1), ObligationStatus.PARTIAL),
    ("1000", date(2024, 3, 1), ObligationStatus.PAID),
    ("1000", date(2024, 3, 10), ObligationStatus.PAID),
    ("0", TODAY, ObligationStatus.PENDING),
])
def test_compute_status(paid, due, expected):
    assert lifecycle.compute_status(Decimal("1000"), Decimal(paid), due, TODAY) == expected


def test_partial_then_paid():
    obligation = make_obligation()

    assert lifecycle.apply_payment(obligation, Decimal("60000"), TODAY) == ObligationStatus.PARTIAL
    assert obligation.paid_amount == Decimal("60000")

    assert lifecycle.apply_payment(obligation, Decimal("40000"), TODAY) == ObligationStatus.PAID
    assert obligation.paid_amount == Decimal("100000")


def test_overpayment_is_rejected_without_mutation():
    obligation = make_obligation(paid="60000")

    with pytest.raises(OverpaymentError) as exc_info:
        lifecycle.apply_payment(obligation, Decimal("40000.01"), TODAY)

    assert exc_info.value.status_code == 409
    assert obligation.paid_amount == Decimal("60000")
    assert obligation.status == ObligationStatus.PARTIAL


def test_paid_is_terminal():
    obligation = make_obligation(paid="100000")

    with pytest.raises(InvalidStateTransitionError):
        lifecycle.apply_payment(obligation, Decimal("1"), TODAY)
    with pytest.raises(InvalidStateTransitionError):
        lifecycle.apply_reversal(obligation, Decimal("1"), TODAY)


@pytest.mark.parametrize("amount", ["0", "-5"])
def test_non_positive_payment_is_rejected(amount):
    obligation = make_obligation()

    with pytest.raises(DomainValidationError):
        lifecycle.apply_payment(obligation, Decimal(amount), TODAY)


def test_late_partial_payment_is_partial():
    obligation = make_obligation(due=date(2024, 2, 10))
    assert obligation.status == ObligationStatus.OVERDUE

    assert lifecycle.apply_payment(obligation, Decimal("50000"), TODAY) == ObligationStatus.PARTIAL
    assert lifecycle.apply_payment(obligation, Decimal("50000"), TODAY) == ObligationStatus.PAID


def test_reversal_returns_to_pending():
    obligation = make_obligation(paid="60000")

    assert lifecycle.apply_reversal(obligation, Decimal("60000"), TODAY) == ObligationStatus.PENDING
    assert obligation.paid_amount == Decimal("0")


def test_reversal_cannot_exceed_paid_amount():
    obligation = make_obligation(paid="100")

    with pytest.raises(DomainValidationError):
        lifecycle.apply_reversal(obligation, Decimal("101"), TODAY)


def test_paid_amount_stays_within_bounds():
    obligation = make_obligation(amount="1000")
    for payment in ["100", "250", "0.50", "649.50"]:
        lifecycle.apply_payment(obligation, Decimal(payment), TODAY)
        assert Decimal("0") <= obligation.paid_amount <= obligation.amount

    assert obligation.status == ObligationStatus.PAID

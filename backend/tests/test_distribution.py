"""
Distribution table tests.

Every (type, payer) pair must produce the documented signs and magnitudes.
"""

import pytest
from decimal import Decimal

from backend.app.core.exceptions import DomainValidationError
from backend.app.domain.obligations.distribution import (
    DISTRIBUTION_RULES, Rule, distribute, calculate_commission, agency_entry_type, resolve_rule
)
from backend.app.models.billing_enums import AccountingEntryType
from backend.app.models.obligation_enums import ObligationType, PaidBy

T = ObligationType
P = PaidBy

# (type, payer) -> (owner_impact, agency_impact) for amount 1000 (rent at 10%)
EXPECTED = {
    (T.RENT, P.TENANT): ("900", "100"),
    (T.RENT, P.OWNER): ("0", "0"),
    (T.RENT, P.AGENCY): ("0", "0"),
    (T.EXPENSES, P.TENANT): ("0", "0"),
    (T.EXPENSES, P.OWNER): ("0", "0"),
    (T.EXPENSES, P.AGENCY): ("0", "0"),
    (T.SERVICE, P.TENANT): ("0", "0"),
    (T.SERVICE, P.OWNER): ("-1000", "0"),
    (T.SERVICE, P.AGENCY): ("0", "-1000"),
    (T.TAX, P.TENANT): ("-1000", "0"),
    (T.TAX, P.OWNER): ("-1000", "0"),
    (T.TAX, P.AGENCY): ("-1000", "0"),
    (T.INSURANCE, P.TENANT): ("0", "0"),
    (T.INSURANCE, P.OWNER): ("-1000", "0"),
    (T.INSURANCE, P.AGENCY): ("0", "0"),
    (T.MAINTENANCE, P.TENANT): ("0", "0"),
    (T.MAINTENANCE, P.OWNER): ("-1000", "0"),
    (T.MAINTENANCE, P.AGENCY): ("0", "-1000"),
    (T.DEBT, P.TENANT): ("0", "1000"),
    (T.DEBT, P.AGENCY): ("1000", "-1000"),
}


def test_table_covers_every_pair():
    assert len(DISTRIBUTION_RULES) == len(ObligationType) * len(PaidBy)


@pytest.mark.parametrize("pair,impacts", list(EXPECTED.items()), ids=lambda v: str(v))
def test_distribution_table(pair, impacts):
    obligation_type, paid_by = pair
    result = distribute(obligation_type, Decimal("1000"), paid_by, Decimal("10"))

    assert result.owner_impact == Decimal(impacts[0])
    assert result.agency_impact == Decimal(impacts[1])


def test_scenario_rent_commission():
    result = distribute("rent", Decimal("100000"), "tenant", Decimal("10"))

    assert result.as_dict() == {
        "owner_impact": Decimal("90000"),
        "agency_impact": Decimal("10000"),
        "commission_amount": Decimal("10000"),
        "owner_amount": Decimal("90000"),
    }


def test_scenario_tax_paid_by_owner():
    result = distribute("tax", Decimal("5000"), "owner")

    assert result.owner_impact == Decimal("-5000")
    assert result.agency_impact == Decimal("0")


def test_scenario_debts():
    collected = distribute("debt", Decimal("2000"), "tenant")
    credited = distribute("debt", Decimal("3000"), "agency")

    assert (collected.owner_impact, collected.agency_impact) == (Decimal("0"), Decimal("2000"))
    assert (credited.owner_impact, credited.agency_impact) == (Decimal("3000"), Decimal("-3000"))


def test_debt_paid_by_owner_is_rejected():
    with pytest.raises(DomainValidationError) as exc_info:
        distribute("debt", Decimal("1000"), "owner")

    assert exc_info.value.field == "paid_by"


@pytest.mark.parametrize("rate", ["0", "2.5", "7", "10", "12.75", "33.33", "50", "99.99", "100"])
@pytest.mark.parametrize("amount", ["1", "999", "100000", "123457.89"])
def test_rent_owner_impact_plus_commission_is_amount(amount, rate):
    result = distribute(T.RENT, Decimal(amount), P.TENANT, Decimal(rate))

    assert result.owner_impact + result.commission_amount == Decimal(amount)
    assert result.owner_amount == result.owner_impact
    assert result.agency_impact == result.commission_amount


def test_commission_rounds_half_up_to_whole_units():
    assert calculate_commission(Decimal("1005"), Decimal("10")) == Decimal("101")  # 100.5
    assert calculate_commission(Decimal("1004"), Decimal("10")) == Decimal("100")  # 100.4


def test_default_rate_applies_when_none_given():
    result = distribute(T.RENT, Decimal("50000"))

    assert result.commission_amount == Decimal("5000")


def test_zero_amount_has_no_impact():
    result = distribute(T.RENT, Decimal("0"), P.TENANT, Decimal("10"))

    assert result.owner_impact == Decimal("0")
    assert result.agency_impact == Decimal("0")


@pytest.mark.parametrize("rate", ["-1", "100.01"])
def test_rate_out_of_range_is_rejected(rate):
    with pytest.raises(DomainValidationError):
        distribute(T.RENT, Decimal("1000"), P.TENANT, Decimal(rate))


def test_negative_amount_is_rejected():
    with pytest.raises(DomainValidationError):
        distribute(T.SERVICE, Decimal("-1"), P.OWNER)


def test_unknown_values_are_tracking_only():
    assert resolve_rule("parking", "tenant") is Rule.TRACKING_ONLY
    result = distribute("parking", Decimal("1000"), "neighbour")
    assert result.owner_impact == Decimal("0")
    assert result.agency_impact == Decimal("0")


def test_agency_entry_types():
    assert agency_entry_type(T.RENT, P.TENANT) == AccountingEntryType.COMMISSION
    assert agency_entry_type(T.MAINTENANCE, P.AGENCY) == AccountingEntryType.EXPENSE
    assert agency_entry_type(T.DEBT, P.TENANT) == AccountingEntryType.OTHER_INCOME
    assert agency_entry_type(T.DEBT, P.AGENCY) == AccountingEntryType.ADJUSTMENT
    assert agency_entry_type(T.TAX, P.OWNER) is None

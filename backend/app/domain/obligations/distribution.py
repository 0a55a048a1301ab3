"""
Obligation Distribution Calculator.

Maps (type, amount, payer, commission rate) to the ledger effects of an
obligation on the owner's settlement and on the agency's books.

Sign convention: positive = income to that party, negative = expense.

Every (type, payer) pair is listed in DISTRIBUTION_RULES; a type missing
from the table fails at import time, so adding an ObligationType forces a
decision for each payer.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Callable, Dict, Optional, Tuple

from backend.app.core.config import settings
from backend.app.core.exceptions import DomainValidationError
from backend.app.models.billing_enums import AccountingEntryType
from backend.app.models.obligation_enums import ObligationType, PaidBy

ZERO = Decimal("0")
HUNDRED = Decimal("100")


@dataclass(frozen=True)
class Distribution:
    """Ledger impact of one obligation."""
    owner_impact: Decimal
    agency_impact: Decimal
    commission_amount: Decimal
    owner_amount: Decimal

    def as_dict(self) -> Dict[str, Decimal]:
        return {
            "owner_impact": self.owner_impact,
            "agency_impact": self.agency_impact,
            "commission_amount": self.commission_amount,
            "owner_amount": self.owner_amount,
        }


class Rule(Enum):
    """How a (type, payer) pair moves money."""
    RENT_COMMISSION = "rent_commission"  # owner gets amount - commission, agency gets commission
    TRACKING_ONLY = "tracking_only"  # nobody's ledger moves
    OWNER_EXPENSE = "owner_expense"  # deducted from the owner's settlement
    AGENCY_EXPENSE = "agency_expense"  # absorbed by the agency
    AGENCY_INCOME = "agency_income"  # collected by the agency
    AGENCY_CREDITS_OWNER = "agency_credits_owner"  # agency pays the owner
    DISALLOWED = "disallowed"


DISTRIBUTION_RULES: Dict[Tuple[ObligationType, PaidBy], Rule] = {
    (ObligationType.RENT, PaidBy.TENANT): Rule.RENT_COMMISSION,
    (ObligationType.RENT, PaidBy.OWNER): Rule.TRACKING_ONLY,
    (ObligationType.RENT, PaidBy.AGENCY): Rule.TRACKING_ONLY,

    (ObligationType.EXPENSES, PaidBy.TENANT): Rule.TRACKING_ONLY,
    (ObligationType.EXPENSES, PaidBy.OWNER): Rule.TRACKING_ONLY,
    (ObligationType.EXPENSES, PaidBy.AGENCY): Rule.TRACKING_ONLY,

    (ObligationType.SERVICE, PaidBy.TENANT): Rule.TRACKING_ONLY,
    (ObligationType.SERVICE, PaidBy.OWNER): Rule.OWNER_EXPENSE,
    (ObligationType.SERVICE, PaidBy.AGENCY): Rule.AGENCY_EXPENSE,

    # Taxes are always the owner's, whoever is recorded as payer
    (ObligationType.TAX, PaidBy.TENANT): Rule.OWNER_EXPENSE,
    (ObligationType.TAX, PaidBy.OWNER): Rule.OWNER_EXPENSE,
    (ObligationType.TAX, PaidBy.AGENCY): Rule.OWNER_EXPENSE,

    (ObligationType.INSURANCE, PaidBy.TENANT): Rule.TRACKING_ONLY,
    (ObligationType.INSURANCE, PaidBy.OWNER): Rule.OWNER_EXPENSE,
    (ObligationType.INSURANCE, PaidBy.AGENCY): Rule.TRACKING_ONLY,

    (ObligationType.MAINTENANCE, PaidBy.TENANT): Rule.TRACKING_ONLY,
    (ObligationType.MAINTENANCE, PaidBy.OWNER): Rule.OWNER_EXPENSE,
    (ObligationType.MAINTENANCE, PaidBy.AGENCY): Rule.AGENCY_EXPENSE,

    (ObligationType.DEBT, PaidBy.TENANT): Rule.AGENCY_INCOME,
    (ObligationType.DEBT, PaidBy.OWNER): Rule.DISALLOWED,
    (ObligationType.DEBT, PaidBy.AGENCY): Rule.AGENCY_CREDITS_OWNER,
}

_missing = [
    (t.value, p.value)
    for t in ObligationType
    for p in PaidBy
    if (t, p) not in DISTRIBUTION_RULES
]
if _missing:
    raise RuntimeError(f"Distribution rules missing for (type, payer) pairs: {_missing}")

# Agency ledger entry produced when an obligation under a rule gets paid
AGENCY_ENTRY_TYPES: Dict[Rule, AccountingEntryType] = {
    Rule.RENT_COMMISSION: AccountingEntryType.COMMISSION,
    Rule.AGENCY_EXPENSE: AccountingEntryType.EXPENSE,
    Rule.AGENCY_INCOME: AccountingEntryType.OTHER_INCOME,
    Rule.AGENCY_CREDITS_OWNER: AccountingEntryType.ADJUSTMENT,
}


def quantize_money(value: Decimal) -> Decimal:
    return Decimal(value).quantize(settings.money_quantum, rounding=ROUND_HALF_UP)


def calculate_commission(amount: Decimal, rate: Decimal) -> Decimal:
    """round(amount * rate / 100), half-up, to the configured commission quantum."""
    raw = Decimal(amount) * Decimal(rate) / HUNDRED
    return raw.quantize(settings.commission_rounding_quantum, rounding=ROUND_HALF_UP)


def _rent_commission(amount: Decimal, rate: Decimal) -> Distribution:
    commission = calculate_commission(amount, rate)
    owner_amount = amount - commission
    return Distribution(owner_amount, commission, commission, owner_amount)


def _tracking_only(amount: Decimal, rate: Decimal) -> Distribution:
    return Distribution(ZERO, ZERO, ZERO, ZERO)


def _owner_expense(amount: Decimal, rate: Decimal) -> Distribution:
    return Distribution(-amount, ZERO, ZERO, ZERO)


def _agency_expense(amount: Decimal, rate: Decimal) -> Distribution:
    return Distribution(ZERO, -amount, ZERO, ZERO)


def _agency_income(amount: Decimal, rate: Decimal) -> Distribution:
    return Distribution(ZERO, amount, ZERO, ZERO)


def _agency_credits_owner(amount: Decimal, rate: Decimal) -> Distribution:
    return Distribution(amount, -amount, ZERO, ZERO)


_CALCULATORS: Dict[Rule, Callable[[Decimal, Decimal], Distribution]] = {
    Rule.RENT_COMMISSION: _rent_commission,
    Rule.TRACKING_ONLY: _tracking_only,
    Rule.OWNER_EXPENSE: _owner_expense,
    Rule.AGENCY_EXPENSE: _agency_expense,
    Rule.AGENCY_INCOME: _agency_income,
    Rule.AGENCY_CREDITS_OWNER: _agency_credits_owner,
}


def resolve_rule(obligation_type, paid_by) -> Rule:
    """
    Look up the rule for a (type, payer) pair.

    Unknown values are tracking-only; a disallowed pair is a validation error.
    """
    try:
        key = (ObligationType(obligation_type), PaidBy(paid_by))
    except ValueError:
        return Rule.TRACKING_ONLY

    rule = DISTRIBUTION_RULES[key]
    if rule is Rule.DISALLOWED:
        raise DomainValidationError(
            f"Payer '{key[1].value}' is not allowed for obligations of type '{key[0].value}'",
            field="paid_by",
            details={"type": key[0].value, "paid_by": key[1].value},
        )
    return rule


def distribute(
    obligation_type,
    amount,
    paid_by=PaidBy.TENANT,
    commission_rate: Optional[Decimal] = None,
) -> Distribution:
    """
    Compute owner/agency impacts for an obligation. Pure and deterministic.

    Args:
        obligation_type: ObligationType (or its value)
        amount: Non-negative amount
        paid_by: PaidBy (or its value); defaults to tenant
        commission_rate: Percentage in [0, 100]; agency default when None

    Raises:
        DomainValidationError: negative amount, rate out of range, or a
            disallowed (type, payer) pair
    """
    amount = Decimal(amount)
    if amount < ZERO:
        raise DomainValidationError("Amount must be non-negative", field="amount")

    rate = settings.default_commission_rate if commission_rate is None else Decimal(commission_rate)
    if rate < ZERO or rate > HUNDRED:
        raise DomainValidationError("Commission rate must be between 0 and 100", field="commission_rate")

    rule = resolve_rule(obligation_type, paid_by)
    return _CALCULATORS[rule](amount, rate)


def agency_entry_type(obligation_type, paid_by) -> Optional[AccountingEntryType]:
    """Entry type the agency books when this kind of obligation is paid, if any."""
    return AGENCY_ENTRY_TYPES.get(resolve_rule(obligation_type, paid_by))

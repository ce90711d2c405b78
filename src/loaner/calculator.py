"""Core loan calculation functions.

All monetary values use decimal.Decimal — float is forbidden.
Rounding: ROUND_HALF_EVEN (banker's rounding) to 2 decimal places for final
outputs, full precision for all intermediate steps.

Interest rates are nominal annual percentages (5.0 means 5 %).
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import ROUND_HALF_EVEN, Decimal, localcontext

from .config import (
    CALCULATION_PRECISION,
    CENT,
    DAYS_PER_MONTH,
    DAYS_PER_YEAR,
    HUNDRED,
    MAX_CALCULATION_PRECISION,
    MAX_START_DAY,
    MONTHS_PER_YEAR,
    ZERO,
)


class InvalidParameterError(ValueError):
    """Raised when a loan parameter is outside its valid domain.

    The message names the parameter and the offending value and is safe
    to show to end users.
    """

    def __init__(self, parameter: str, value: object, constraint: str) -> None:
        self.parameter = parameter
        self.value = value
        super().__init__(f"invalid parameter {parameter}={value}: {constraint}")


@dataclass(frozen=True)
class Payment:
    date: datetime
    payment_amount: Decimal
    interest: Decimal
    principal: Decimal
    initial_outstanding_principal: Decimal
    remaining_outstanding_principal: Decimal


def _round(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_EVEN)


def _validate(
    total_loan_amount: Decimal,
    annual_interest_rate: Decimal,
    duration_in_months: int,
) -> None:
    if duration_in_months <= 0:
        raise InvalidParameterError(
            "duration_in_months", duration_in_months, "must be greater than zero"
        )
    if total_loan_amount <= ZERO:
        raise InvalidParameterError(
            "total_loan_amount", total_loan_amount, "must be greater than zero"
        )
    if annual_interest_rate <= ZERO:
        raise InvalidParameterError(
            "annual_interest_rate", annual_interest_rate, "must be greater than zero"
        )


def calculate_annuity(
    total_loan_amount: Decimal,
    annual_interest_rate: Decimal,
    duration_in_months: int,
) -> Decimal:
    """Return the fixed monthly payment that fully amortizes the loan.

    Uses the standard annuity payment formula:
        payment = P * r / (1 - (1 + r)^-n)

    where r is the monthly rate derived from the nominal annual percentage.

    Raises InvalidParameterError if the duration, the amount or the rate
    is not strictly positive.
    """
    _validate(total_loan_amount, annual_interest_rate, duration_in_months)

    with localcontext() as ctx:
        ctx.prec = CALCULATION_PRECISION
        r = annual_interest_rate / HUNDRED / MONTHS_PER_YEAR
        # 1 + r must keep CALCULATION_PRECISION significant digits of r.
        ctx.prec = min(
            CALCULATION_PRECISION + max(0, -r.adjusted()),
            MAX_CALCULATION_PRECISION,
        )
        discount = 1 - (1 + r) ** -duration_in_months
        if discount == ZERO:
            # r is negligible even at the widest precision: zero-rate limit.
            payment = total_loan_amount / duration_in_months
        else:
            payment = total_loan_amount * r / discount
    return _round(payment)


def simple_interest(annual_interest_rate: Decimal, outstanding: Decimal) -> Decimal:
    """Interest accrued on *outstanding* over one month, 30/360 day count."""
    with localcontext() as ctx:
        ctx.prec = CALCULATION_PRECISION
        interest = annual_interest_rate / HUNDRED * DAYS_PER_MONTH * outstanding / DAYS_PER_YEAR
    return _round(interest)


def _add_months(start: date, months: int) -> datetime:
    # Only year/month/day of the start are kept; time and offset are dropped.
    index = start.month - 1 + months
    year = start.year + index // MONTHS_PER_YEAR
    month = index % MONTHS_PER_YEAR + 1
    return datetime(year, month, start.day, tzinfo=timezone.utc)


def create_plan(
    total_loan_amount: Decimal,
    annual_interest_rate: Decimal,
    duration_in_months: int,
    start_date: date,
) -> list[Payment]:
    """Build the full month-by-month amortization schedule.

    *start_date* may be a ``date`` or a ``datetime``; payments fall on the
    same day of each following month at 00:00 UTC. The day of month must
    not exceed 28.
    """
    _validate(total_loan_amount, annual_interest_rate, duration_in_months)
    if start_date.day > MAX_START_DAY:
        raise InvalidParameterError(
            "start_date",
            start_date.isoformat(),
            f"day of month must be at most {MAX_START_DAY}",
        )

    annuity = calculate_annuity(total_loan_amount, annual_interest_rate, duration_in_months)

    payments: list[Payment] = []
    # Balances are tracked in whole cents so every row adds up exactly.
    outstanding = _round(total_loan_amount)

    for i in range(duration_in_months):
        interest = simple_interest(annual_interest_rate, outstanding)
        principal = _round(annuity - interest)
        # The last payment absorbs the rounding residue so the balance
        # ends at exactly zero.
        if principal > outstanding or i == duration_in_months - 1:
            principal = outstanding
        remaining = outstanding - principal

        payments.append(
            Payment(
                date=_add_months(start_date, i),
                payment_amount=_round(principal + interest),
                interest=interest,
                principal=principal,
                initial_outstanding_principal=outstanding,
                remaining_outstanding_principal=remaining,
            )
        )
        outstanding = remaining

    return payments

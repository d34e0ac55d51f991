"""
Mortgage amortization and PITI auto-split.

Principal and interest come from a standard fixed-payment amortization
schedule; escrow (taxes and insurance) is either given explicitly or inferred
as whatever remains of the payment.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Iterator, Optional
import logging

import pandas as pd

from ..models.accounts import RealEstateDeal
from ..models.transaction import ZERO, to_cents
from ..utils.exceptions import ValidationError

logger = logging.getLogger(__name__)

SCHEDULE_COLUMNS = ["payment_number", "payment_date", "payment", "principal", "interest", "balance"]


def add_months(start: date, months: int) -> date:
    """Same day-of-month ``months`` later, clamped to the month's length."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    days_in_month = pd.Timestamp(year=year, month=month, day=1).days_in_month
    return date(year, month, min(start.day, days_in_month))


def months_between(start: date, end: date) -> int:
    """Whole months from ``start`` to ``end``; a month is not complete before its day."""
    months = (end.year - start.year) * 12 + (end.month - start.month)
    if end.day < start.day:
        months -= 1
    return months


@dataclass
class MortgageTerms:
    """Fixed-rate loan terms. ``annual_rate`` is a percentage, e.g. 6.5."""

    original_amount: Decimal
    annual_rate: Decimal
    term_months: int
    first_payment_date: date

    @classmethod
    def from_deal(cls, deal: RealEstateDeal) -> "MortgageTerms":
        """
        Read loan terms from a deal.

        Without an explicit first payment date, the first payment is due on
        the first of the second month after closing.

        Raises:
            ValidationError: If the deal lacks amount, rate, term or dates
        """
        missing = [
            name
            for name, value in (
                ("original_loan_amount", deal.original_loan_amount),
                ("interest_rate", deal.interest_rate),
                ("loan_term_months", deal.loan_term_months),
            )
            if value is None
        ]
        if deal.first_payment_date is None and deal.close_date is None:
            missing.append("first_payment_date or close_date")
        if missing:
            raise ValidationError(
                f"Deal '{deal.nickname}' is missing loan terms: {', '.join(missing)}"
            )

        first_payment = deal.first_payment_date
        if first_payment is None:
            first_payment = add_months(deal.close_date.replace(day=1), 2)

        return cls(
            original_amount=Decimal(deal.original_loan_amount),
            annual_rate=Decimal(deal.interest_rate),
            term_months=int(deal.loan_term_months),
            first_payment_date=first_payment,
        )

    @property
    def monthly_rate(self) -> Decimal:
        return self.annual_rate / Decimal(100) / Decimal(12)

    @property
    def monthly_payment(self) -> Decimal:
        """Constant principal-and-interest payment."""
        if self.term_months <= 0:
            raise ValidationError("Loan term must be positive")
        rate = self.monthly_rate
        if rate == ZERO:
            return to_cents(self.original_amount / self.term_months)
        factor = (1 + rate) ** -self.term_months
        return to_cents(self.original_amount * rate / (1 - factor))


def _iter_schedule(terms: MortgageTerms) -> Iterator[dict]:
    payment = terms.monthly_payment
    rate = terms.monthly_rate
    balance = to_cents(terms.original_amount)

    for number in range(1, terms.term_months + 1):
        interest = to_cents(balance * rate)
        principal = to_cents(payment - interest)
        if number == terms.term_months or principal > balance:
            principal = balance
        balance = balance - principal
        yield {
            "payment_number": number,
            "payment_date": add_months(terms.first_payment_date, number - 1),
            "payment": principal + interest,
            "principal": principal,
            "interest": interest,
            "balance": balance,
        }


def amortization_schedule(terms: MortgageTerms) -> pd.DataFrame:
    """
    Build the full amortization schedule.

    Args:
        terms: Loan terms

    Returns:
        DataFrame with one row per payment; money columns hold Decimals
    """
    df = pd.DataFrame(list(_iter_schedule(terms)), columns=SCHEDULE_COLUMNS)
    logger.debug(
        f"Amortization schedule: {len(df)} payments of {terms.monthly_payment} "
        f"on {terms.original_amount} at {terms.annual_rate}%"
    )
    return df


@dataclass
class MortgageSplit:
    """Principal / interest / escrow split of one mortgage payment."""

    principal: Decimal
    interest: Decimal
    escrow: Decimal
    payment_number: Optional[int] = None
    escrow_inferred: bool = False
    warnings: list[str] = field(default_factory=list)

    @property
    def total(self) -> Decimal:
        return self.principal + self.interest + self.escrow


def compute_mortgage_split(
    terms: MortgageTerms,
    payment_date: date,
    total_payment: Decimal,
    taxes: Optional[Decimal] = None,
    insurance: Optional[Decimal] = None,
) -> MortgageSplit:
    """
    Split a mortgage payment using the amortization schedule.

    The payment index is the schedule row covering ``payment_date``. With
    explicit taxes/insurance, the rest of the payment is principal and
    interest: interest comes from the scheduled balance and principal takes
    the remainder. Otherwise escrow is inferred as
    ``total - principal - interest`` and a warning is attached.

    Args:
        terms: Loan terms
        payment_date: Date of the payment being split
        total_payment: Full payment amount (positive)
        taxes: Explicit monthly taxes, if known
        insurance: Explicit monthly insurance, if known

    Returns:
        MortgageSplit

    Raises:
        ValidationError: If the date falls outside the loan term, or the
            payment does not cover escrow plus scheduled interest
    """
    total_payment = to_cents(abs(total_payment))
    number = months_between(terms.first_payment_date, payment_date) + 1
    if number < 1:
        raise ValidationError(
            f"Payment date {payment_date} is before the first payment date "
            f"{terms.first_payment_date}"
        )
    if number > terms.term_months:
        raise ValidationError(
            f"Payment date {payment_date} is beyond the {terms.term_months}-month loan term"
        )

    df = amortization_schedule(terms)
    row = df.iloc[number - 1]
    principal = row["principal"]
    interest = row["interest"]
    warnings: list[str] = []

    if taxes is not None or insurance is not None:
        escrow = to_cents((taxes or ZERO) + (insurance or ZERO))
        actual_pi = total_payment - escrow
        if actual_pi < interest:
            raise ValidationError(
                f"Payment {total_payment} does not cover escrow {escrow} plus "
                f"scheduled interest {interest}"
            )
        if actual_pi != principal + interest:
            logger.debug(
                f"Payment #{number} P&I {actual_pi} differs from scheduled "
                f"{principal + interest}"
            )
        principal = actual_pi - interest
        split = MortgageSplit(principal, interest, escrow, number, False, warnings)
        logger.info(
            f"Mortgage payment #{number}: principal {principal}, interest {interest}, "
            f"escrow {escrow}"
        )
        return split

    escrow = total_payment - principal - interest
    if escrow < ZERO:
        warnings.append(
            f"Scheduled principal and interest ({principal + interest}) exceed the "
            f"payment {total_payment}; escrow set to 0 and principal reduced"
        )
        escrow = ZERO
        principal = total_payment - interest
        if principal < ZERO:
            raise ValidationError(
                f"Payment {total_payment} does not cover scheduled interest {interest}"
            )
    else:
        warnings.append(f"Escrow of {escrow} inferred from payment remainder")

    for warning in warnings:
        logger.warning(warning)

    return MortgageSplit(
        principal=principal,
        interest=interest,
        escrow=escrow,
        payment_number=number,
        escrow_inferred=True,
        warnings=warnings,
    )


def split_deal_payment(
    deal: RealEstateDeal,
    payment_date: date,
    total_payment: Decimal,
    taxes: Optional[Decimal] = None,
    insurance: Optional[Decimal] = None,
) -> MortgageSplit:
    """
    Split a payment on a deal's mortgage.

    Explicit taxes/insurance win. Without them the deal's monthly taxes and
    insurance are the escrow, and escrow is inferred only when both are zero.
    """
    if taxes is None and insurance is None:
        if deal.monthly_taxes > ZERO or deal.monthly_insurance > ZERO:
            taxes, insurance = deal.monthly_taxes, deal.monthly_insurance
            logger.debug(
                f"Using escrow on file for '{deal.nickname}': taxes {taxes}, "
                f"insurance {insurance}"
            )
    return compute_mortgage_split(
        MortgageTerms.from_deal(deal), payment_date, total_payment, taxes, insurance
    )

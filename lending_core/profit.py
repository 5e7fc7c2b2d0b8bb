"""
Profit Calculation Module

Splits loans and payments into profit versus capital return with exact
Decimal arithmetic.

Key business rules:

1. New loan: profit_amount = requested_amount * rate
2. Renewal: profit_amount = profit_base + profit_heredado, where
   profit_heredado = pending_amount_stored * (profit_amount / total_debt_acquired)
   of the previous loan. Only the PROFIT portion of the pending debt is
   inherited, never the full pending debt.
3. Renewal cash handed out: amount_gived = requested_amount - pending debt,
   never negative.
4. Bad debt: once a loan is written off every recovered peso is profit and
   nothing returns to capital.

Worked example (14-week loan renewed after 10 of 14 payments):
    previous loan: pending 1,200, profit 1,200, total debt 4,200
    profit ratio 1200 / 4200 = 0.2857
    profit_heredado = 1,200 * 0.2857... = 342.86
    new loan of 3,000 at 40%: profit_total 1,542.86, amount_gived 1,800,
    total_debt_acquired 4,542.86, expected_weekly_payment 324.49
"""

from decimal import Decimal
from dataclasses import dataclass
from typing import Any, Mapping, Union

from .currency import ZERO, round_money, round_ratio, to_decimal
from .logging_config import get_logger, log_action

Number = Union[Decimal, int, float, str]

logger = get_logger("lending_core.profit")


@dataclass(frozen=True)
class LoanMetricsResult:
    """Base metrics of a loan"""
    profit_amount: Decimal
    total_debt_acquired: Decimal
    expected_weekly_payment: Decimal


@dataclass(frozen=True)
class PaymentProfitResult:
    """Profit / capital split of a single payment"""
    profit_amount: Decimal
    return_to_capital: Decimal


@dataclass(frozen=True)
class ProfitHeredadoResult:
    """Profit inherited by a renewal from the previous loan"""
    profit_heredado: Decimal
    profit_ratio: Decimal  # 4 decimal places, for reference only


@dataclass(frozen=True)
class PreviousLoanData:
    """Previous loan figures needed to price a renewal"""
    pending_amount_stored: Decimal  # Remaining debt (profit + capital)
    profit_amount: Decimal          # Original total profit
    total_debt_acquired: Decimal    # Original total debt

    def __post_init__(self):
        for name in ('pending_amount_stored', 'profit_amount', 'total_debt_acquired'):
            object.__setattr__(self, name, to_decimal(getattr(self, name)))

    @classmethod
    def from_value(cls, value: Union["PreviousLoanData", Mapping[str, Any]]) -> "PreviousLoanData":
        """Accept either a PreviousLoanData or a mapping with the same keys"""
        if isinstance(value, cls):
            return value
        return cls(
            pending_amount_stored=value['pending_amount_stored'],
            profit_amount=value['profit_amount'],
            total_debt_acquired=value['total_debt_acquired']
        )


@dataclass(frozen=True)
class RenewalMetricsResult:
    """All figures of a renewal"""
    profit_base: Decimal
    profit_heredado: Decimal
    profit_total: Decimal
    return_to_capital: Decimal
    total_debt_acquired: Decimal
    amount_gived: Decimal
    expected_weekly_payment: Decimal


def calculate_profit(requested_amount: Number, rate: Number) -> Decimal:
    """
    Calculate the profit of a loan

    Args:
        requested_amount: Requested loan amount
        rate: Profit rate (0.40 = 40%)

    Returns:
        requested_amount * rate rounded to 2 decimals
    """
    return round_money(to_decimal(requested_amount) * to_decimal(rate))


def calculate_loan_metrics(
    requested_amount: Number,
    rate: Number,
    week_duration: int
) -> LoanMetricsResult:
    """
    Calculate the BASE metrics of a loan

    For renewals calculate_renewal_metrics adds the inherited profit on top.
    A 3,000 loan at 40% over 14 weeks yields 1,200 profit, 4,200 total debt
    and a 300 weekly payment.

    Args:
        requested_amount: Requested loan amount
        rate: Profit rate
        week_duration: Loan duration in weeks

    Returns:
        LoanMetricsResult, each figure rounded to 2 decimals
    """
    requested = to_decimal(requested_amount)
    profit_amount = calculate_profit(requested, rate)
    total_debt_acquired = round_money(requested + profit_amount)
    expected_weekly_payment = round_money(total_debt_acquired / Decimal(week_duration))

    return LoanMetricsResult(
        profit_amount=profit_amount,
        total_debt_acquired=total_debt_acquired,
        expected_weekly_payment=expected_weekly_payment
    )


def calculate_payment_profit(
    payment_amount: Number,
    total_profit: Number,
    total_debt_acquired: Number,
    is_bad_debt: bool = False
) -> PaymentProfitResult:
    """
    Split a payment proportionally into profit and capital return

    profit = payment * total_profit / total_debt_acquired, and capital is
    the payment minus the ROUNDED profit, so both parts always add up to
    the payment exactly.

    Args:
        payment_amount: Amount received
        total_profit: Loan's total profit
        total_debt_acquired: Loan's total debt (capital + profit)
        is_bad_debt: Loan has been written off

    Returns:
        PaymentProfitResult
    """
    payment = to_decimal(payment_amount)
    debt = to_decimal(total_debt_acquired)

    if is_bad_debt:
        return PaymentProfitResult(profit_amount=payment, return_to_capital=ZERO)

    if debt.is_zero():
        return PaymentProfitResult(profit_amount=ZERO, return_to_capital=payment)

    profit_amount = round_money(payment * to_decimal(total_profit) / debt)

    # Profit can never exceed the payment itself (corrupt profit > debt data)
    if profit_amount > payment:
        profit_amount = payment

    return_to_capital = round_money(payment - profit_amount)
    return PaymentProfitResult(profit_amount=profit_amount, return_to_capital=return_to_capital)


def calculate_amount_to_give(requested_amount: Number, pending_debt: Number) -> Decimal:
    """
    Cash physically handed to the client on a renewal

    A client requesting 3,000 with 1,200 pending receives 1,800. Never
    negative.
    """
    amount_gived = to_decimal(requested_amount) - to_decimal(pending_debt)
    if amount_gived < ZERO:
        return ZERO
    return round_money(amount_gived)


def calculate_profit_heredado(
    pending_amount_stored: Number,
    previous_profit_amount: Number,
    previous_total_debt: Number
) -> ProfitHeredadoResult:
    """
    Calculate the profit a renewal inherits from the previous loan

    Only the profit share of the pending debt is inherited:
    profit_heredado = pending_amount_stored * (profit / total_debt).

    Args:
        pending_amount_stored: Previous loan's remaining debt
        previous_profit_amount: Previous loan's total profit
        previous_total_debt: Previous loan's total debt

    Returns:
        ProfitHeredadoResult; zeros when previous_total_debt is 0
    """
    previous_total = to_decimal(previous_total_debt)
    if previous_total.is_zero():
        return ProfitHeredadoResult(profit_heredado=ZERO, profit_ratio=ZERO)

    profit_ratio = to_decimal(previous_profit_amount) / previous_total
    profit_heredado = round_money(to_decimal(pending_amount_stored) * profit_ratio)

    return ProfitHeredadoResult(
        profit_heredado=profit_heredado,
        profit_ratio=round_ratio(profit_ratio)
    )


def calculate_renewal_metrics(
    requested_amount: Number,
    rate: Number,
    week_duration: int,
    previous_loan: Union[PreviousLoanData, Mapping[str, Any]]
) -> RenewalMetricsResult:
    """
    Calculate every figure of a loan renewal

    Args:
        requested_amount: Amount requested for the new loan
        rate: Profit rate of the new loan
        week_duration: Duration of the new loan in weeks
        previous_loan: PreviousLoanData or mapping with pending_amount_stored,
            profit_amount and total_debt_acquired

    Returns:
        RenewalMetricsResult
    """
    previous = PreviousLoanData.from_value(previous_loan)
    requested = to_decimal(requested_amount)

    profit_base = calculate_profit(requested, rate)
    profit_heredado = calculate_profit_heredado(
        previous.pending_amount_stored,
        previous.profit_amount,
        previous.total_debt_acquired
    ).profit_heredado

    profit_total = round_money(profit_base + profit_heredado)
    return_to_capital = requested  # The new principal returns entirely as capital
    total_debt_acquired = round_money(return_to_capital + profit_total)
    amount_gived = calculate_amount_to_give(requested, previous.pending_amount_stored)
    expected_weekly_payment = round_money(total_debt_acquired / Decimal(week_duration))

    log_action(
        logger, "debug", "Renewal priced",
        action="calculate_renewal_metrics",
        extra={
            "requested_amount": str(requested),
            "profit_heredado": str(profit_heredado),
            "amount_gived": str(amount_gived),
            "total_debt_acquired": str(total_debt_acquired)
        }
    )

    return RenewalMetricsResult(
        profit_base=profit_base,
        profit_heredado=profit_heredado,
        profit_total=profit_total,
        return_to_capital=return_to_capital,
        total_debt_acquired=total_debt_acquired,
        amount_gived=amount_gived,
        expected_weekly_payment=expected_weekly_payment
    )

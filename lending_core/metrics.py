"""
Portfolio Metrics Module

Recovery rate and average ticket across a set of loans.
"""

from decimal import Decimal
from typing import Union

from .currency import ZERO, HUNDRED, round_money, to_decimal

Number = Union[Decimal, int, float, str]


def calculate_recovery_rate(total_expected: Number, total_collected: Number) -> Decimal:
    """
    Calculate the recovery rate of a portfolio

    Args:
        total_expected: Total expected to be collected
        total_collected: Total actually collected

    Returns:
        Recovery rate as a percentage, 0 when nothing was expected
    """
    expected = to_decimal(total_expected)
    if expected.is_zero():
        return ZERO
    return round_money(to_decimal(total_collected) / expected * HUNDRED)


def calculate_average_ticket(total_amount: Number, loan_count: int) -> Decimal:
    """Average loan amount, 0 for an empty portfolio"""
    if loan_count == 0:
        return ZERO
    return round_money(to_decimal(total_amount) / Decimal(loan_count))

"""
Payment Balance Module

Pending balance and repayment progress of a loan.
"""

from decimal import Decimal
from typing import Union

from .currency import ZERO, HUNDRED, round_money, to_decimal

Number = Union[Decimal, int, float, str]


def calculate_pending_amount(total_debt_acquired: Number, total_paid: Number) -> Decimal:
    """Remaining debt of a loan, never negative"""
    pending = to_decimal(total_debt_acquired) - to_decimal(total_paid)
    if pending < ZERO:
        return ZERO
    return round_money(pending)


def is_loan_fully_paid(total_debt_acquired: Number, total_paid: Number) -> bool:
    """Check if payments cover the whole debt"""
    return to_decimal(total_paid) >= to_decimal(total_debt_acquired)


def calculate_payment_progress(total_debt_acquired: Number, total_paid: Number) -> Decimal:
    """
    Repayment progress as a percentage

    Args:
        total_debt_acquired: Total debt of the loan
        total_paid: Amount paid so far

    Returns:
        0 when there is no debt, exactly 100 once paid >= debt,
        otherwise paid / debt * 100 rounded to 2 decimals
    """
    debt = to_decimal(total_debt_acquired)
    paid = to_decimal(total_paid)

    if debt.is_zero():
        return ZERO
    if paid >= debt:
        return round_money(HUNDRED)

    return round_money(paid / debt * HUNDRED)

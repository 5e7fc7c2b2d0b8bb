"""
Loan Engine Module

Single entry point for loan creation, renewal pricing and payment
processing. Every method is a pure function over plain values so the same
rules can be replicated bit-for-bit by the mobile client.
"""

from decimal import Decimal
from datetime import datetime, date
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Union
from enum import Enum

from .currency import ZERO, round_money, round_ratio, to_decimal
from .logging_config import get_logger, log_action
from .profit import (
    PreviousLoanData, calculate_amount_to_give, calculate_payment_profit,
    calculate_profit, calculate_profit_heredado
)
from .validators import validate_positive_amount

Number = Union[Decimal, int, float, str]

# Pending balances at or below one cent count as paid off
PAID_OFF_TOLERANCE = Decimal('0.01')


class LoanStatus(Enum):
    """Loan status derived from its balance"""
    ACTIVE = "ACTIVE"
    FINISHED = "FINISHED"
    BAD_DEBT = "BAD_DEBT"


@dataclass(frozen=True)
class LoanResult:
    """Figures of a newly created loan or renewal"""
    requested_amount: Decimal
    amount_gived: Decimal           # Cash handed to the client
    profit_base: Decimal            # requested_amount * rate
    profit_heredado: Decimal        # Inherited profit, 0 for new loans
    profit_amount: Decimal          # profit_base + profit_heredado
    return_to_capital: Decimal      # = requested_amount
    total_debt_acquired: Decimal
    pending_amount_stored: Decimal  # = total_debt_acquired at creation
    expected_weekly_payment: Decimal
    profit_ratio: Decimal           # profit_amount / total_debt_acquired, 4 decimals


@dataclass(frozen=True)
class PaymentResult:
    """Outcome of applying a payment to a loan"""
    amount: Decimal
    profit_amount: Decimal
    return_to_capital: Decimal
    new_pending_amount: Decimal
    is_fully_paid: bool


class LoanEngine:
    """
    Centralized business logic for loans

    Example:
        LoanEngine.create_loan(3000, Decimal('0.40'), 14)
        -> profit 1200, total debt 4200, weekly payment 300

        LoanEngine.create_loan(3000, Decimal('0.40'), 14,
                               {'pending_amount_stored': 1200,
                                'profit_amount': 1200,
                                'total_debt_acquired': 4200})
        -> amount_gived 1800, profit_heredado 342.86, total debt 4542.86
    """

    logger = get_logger("lending_core.loan_engine")

    @staticmethod
    def create_loan(
        requested_amount: Number,
        rate: Number,
        week_duration: int,
        previous_loan: Optional[Union[PreviousLoanData, Mapping[str, Any]]] = None
    ) -> LoanResult:
        """
        Create a new loan or a renewal

        Args:
            requested_amount: Amount requested by the client
            rate: Profit rate (0.40 = 40%)
            week_duration: Loan duration in weeks
            previous_loan: Previous loan figures, only for renewals

        Returns:
            LoanResult

        Raises:
            LoanValidationError: If amount or duration are not positive
        """
        validate_positive_amount(requested_amount, "requested_amount")
        validate_positive_amount(week_duration, "week_duration")

        requested = to_decimal(requested_amount)
        profit_base = calculate_profit(requested, rate)

        profit_heredado = ZERO
        pending_debt = ZERO
        if previous_loan is not None:
            previous = PreviousLoanData.from_value(previous_loan)
            profit_heredado = calculate_profit_heredado(
                previous.pending_amount_stored,
                previous.profit_amount,
                previous.total_debt_acquired
            ).profit_heredado
            pending_debt = previous.pending_amount_stored

        profit_amount = round_money(profit_base + profit_heredado)
        total_debt_acquired = round_money(requested + profit_amount)
        amount_gived = calculate_amount_to_give(requested, pending_debt)
        expected_weekly_payment = round_money(total_debt_acquired / Decimal(week_duration))

        result = LoanResult(
            requested_amount=requested,
            amount_gived=amount_gived,
            profit_base=profit_base,
            profit_heredado=profit_heredado,
            profit_amount=profit_amount,
            return_to_capital=requested,
            total_debt_acquired=total_debt_acquired,
            pending_amount_stored=total_debt_acquired,
            expected_weekly_payment=expected_weekly_payment,
            profit_ratio=LoanEngine.calculate_profit_ratio(profit_amount, total_debt_acquired)
        )

        log_action(
            LoanEngine.logger, "info",
            "Renewal created" if previous_loan is not None else "Loan created",
            action="create_loan",
            extra={
                "requested_amount": str(requested),
                "amount_gived": str(amount_gived),
                "total_debt_acquired": str(total_debt_acquired),
                "week_duration": week_duration
            }
        )

        return result

    @staticmethod
    def process_payment(
        amount: Number,
        loan_profit_amount: Number,
        loan_total_debt: Number,
        loan_pending_amount: Number,
        is_bad_debt: bool = False,
        loan_id: Optional[str] = None
    ) -> PaymentResult:
        """
        Apply a payment to a loan

        The payment is split proportionally between profit and capital
        (100% profit for bad debt) and the pending amount is reduced, never
        below zero.

        Args:
            amount: Payment amount
            loan_profit_amount: Loan's total profit
            loan_total_debt: Loan's total debt
            loan_pending_amount: Pending amount before this payment
            is_bad_debt: Loan is written off
            loan_id: Optional loan id used for logging only

        Returns:
            PaymentResult
        """
        validate_positive_amount(amount, "amount")

        payment = to_decimal(amount)
        split = calculate_payment_profit(
            payment, loan_profit_amount, loan_total_debt, is_bad_debt
        )

        new_pending = to_decimal(loan_pending_amount) - payment
        new_pending = ZERO if new_pending < ZERO else round_money(new_pending)

        log_action(
            LoanEngine.logger, "debug", "Payment processed",
            loan_id=loan_id, action="process_payment",
            extra={
                "amount": str(payment),
                "profit_amount": str(split.profit_amount),
                "return_to_capital": str(split.return_to_capital),
                "new_pending_amount": str(new_pending)
            }
        )

        return PaymentResult(
            amount=payment,
            profit_amount=split.profit_amount,
            return_to_capital=split.return_to_capital,
            new_pending_amount=new_pending,
            is_fully_paid=new_pending <= PAID_OFF_TOLERANCE
        )

    @staticmethod
    def calculate_profit_ratio(profit_amount: Number, total_debt: Number) -> Decimal:
        """Profit share of every peso of debt, 4 decimals; 0 without debt"""
        debt = to_decimal(total_debt)
        if debt.is_zero():
            return ZERO
        return round_ratio(to_decimal(profit_amount) / debt)

    @staticmethod
    def calculate_payment_distribution(payment_amount: Number, profit_ratio: Number):
        """
        Split any amount using an already known profit ratio

        Returns:
            Tuple of (profit, return_to_capital)
        """
        payment = to_decimal(payment_amount)
        profit = round_money(payment * to_decimal(profit_ratio))
        return profit, round_money(payment - profit)

    @staticmethod
    def calculate_profit_heredado(
        pending_amount: Number,
        loan_profit_amount: Number,
        loan_total_debt: Number
    ) -> Decimal:
        """Preview the profit a renewal of this loan would inherit"""
        return calculate_profit_heredado(
            pending_amount, loan_profit_amount, loan_total_debt
        ).profit_heredado

    @staticmethod
    def get_loan_status(
        pending_amount: Number,
        bad_debt_date: Optional[Union[datetime, date]] = None
    ) -> LoanStatus:
        """
        Derive the loan status from its balance

        A paid-off loan is FINISHED even if it had been written off.
        """
        if to_decimal(pending_amount) <= PAID_OFF_TOLERANCE:
            return LoanStatus.FINISHED
        if bad_debt_date:
            return LoanStatus.BAD_DEBT
        return LoanStatus.ACTIVE

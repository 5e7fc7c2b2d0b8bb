"""
Test suite for loan engine

Tests loan creation, renewals, payment processing and status derivation.
"""

import pytest
from decimal import Decimal
from datetime import date

from lending_core.loan_engine import LoanEngine, LoanStatus
from lending_core.profit import PreviousLoanData
from lending_core.validators import LoanValidationError


class TestCreateLoan:
    """Test loan and renewal creation"""

    def test_new_loan(self):
        """Test figures of a brand new loan"""
        loan = LoanEngine.create_loan(3000, Decimal('0.40'), 14)

        assert loan.requested_amount == Decimal('3000')
        assert loan.amount_gived == Decimal('3000')
        assert loan.profit_base == Decimal('1200.00')
        assert loan.profit_heredado == Decimal('0')
        assert loan.profit_amount == Decimal('1200.00')
        assert loan.return_to_capital == Decimal('3000')
        assert loan.total_debt_acquired == Decimal('4200.00')
        assert loan.pending_amount_stored == loan.total_debt_acquired
        assert loan.expected_weekly_payment == Decimal('300.00')
        assert loan.profit_ratio == Decimal('0.2857')

    def test_renewal(self):
        """Test a renewal inherits only the profit share of the pending debt"""
        loan = LoanEngine.create_loan(
            3000, Decimal('0.40'), 14,
            PreviousLoanData(pending_amount_stored=1200, profit_amount=1200, total_debt_acquired=4200)
        )

        assert loan.amount_gived == Decimal('1800.00')
        assert loan.profit_heredado == Decimal('342.86')
        assert loan.profit_amount == Decimal('1542.86')
        assert loan.total_debt_acquired == Decimal('4542.86')
        assert loan.expected_weekly_payment == Decimal('324.49')
        assert loan.profit_ratio == Decimal('0.3396')

    def test_invalid_inputs(self):
        """Test non-positive amount or duration is rejected"""
        with pytest.raises(LoanValidationError, match="requested_amount"):
            LoanEngine.create_loan(0, Decimal('0.40'), 14)
        with pytest.raises(LoanValidationError, match="week_duration"):
            LoanEngine.create_loan(3000, Decimal('0.40'), 0)


class TestProcessPayment:
    """Test applying payments"""

    def test_regular_payment(self):
        """Test a weekly payment is split and reduces the pending amount"""
        result = LoanEngine.process_payment(300, 1200, 4200, 4200)

        assert result.amount == Decimal('300')
        assert result.profit_amount == Decimal('85.71')
        assert result.return_to_capital == Decimal('214.29')
        assert result.new_pending_amount == Decimal('3900.00')
        assert not result.is_fully_paid

    def test_overpayment_clamps_pending(self):
        """Test pending amount never goes below zero"""
        result = LoanEngine.process_payment(500, 1200, 4200, 300)
        assert result.new_pending_amount == Decimal('0')
        assert result.is_fully_paid

    def test_one_cent_left_is_paid_off(self):
        """Test a remaining cent counts as fully paid"""
        result = LoanEngine.process_payment(Decimal('299.99'), 1200, 4200, 300)
        assert result.new_pending_amount == Decimal('0.01')
        assert result.is_fully_paid

    def test_bad_debt_payment(self):
        """Test written off loans book the whole payment as profit"""
        result = LoanEngine.process_payment(100, 1200, 4200, 1000, is_bad_debt=True)
        assert result.profit_amount == Decimal('100')
        assert result.return_to_capital == Decimal('0')
        assert result.new_pending_amount == Decimal('900.00')

    def test_zero_payment_rejected(self):
        """Test a zero payment is rejected"""
        with pytest.raises(LoanValidationError):
            LoanEngine.process_payment(0, 1200, 4200, 4200)


class TestEngineHelpers:
    """Test ratio, distribution and status helpers"""

    def test_profit_ratio(self):
        """Test the profit ratio and its zero-debt fallback"""
        assert LoanEngine.calculate_profit_ratio(1200, 4200) == Decimal('0.2857')
        assert LoanEngine.calculate_profit_ratio(0, 0) == Decimal('0')

    def test_payment_distribution(self):
        """Test splitting with a known ratio"""
        profit, capital = LoanEngine.calculate_payment_distribution(300, Decimal('0.2857'))
        assert profit == Decimal('85.71')
        assert capital == Decimal('214.29')

    def test_profit_heredado_preview(self):
        """Test the inherited profit preview"""
        assert LoanEngine.calculate_profit_heredado(1200, 1200, 4200) == Decimal('342.86')

    def test_loan_status(self):
        """Test status derivation and FINISHED precedence"""
        assert LoanEngine.get_loan_status(Decimal('100')) == LoanStatus.ACTIVE
        assert LoanEngine.get_loan_status(Decimal('100'), date(2024, 12, 1)) == LoanStatus.BAD_DEBT
        assert LoanEngine.get_loan_status(Decimal('0')) == LoanStatus.FINISHED
        assert LoanEngine.get_loan_status(Decimal('0.01'), date(2024, 12, 1)) == LoanStatus.FINISHED

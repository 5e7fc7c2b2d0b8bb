"""
Test suite for loan validators

Validators must refuse bad input, never clamp it.
"""

import logging
import pytest
from datetime import datetime, timezone

from lending_core.validators import (
    LoanValidationError, validate_positive_amount, validate_past_date,
    validate_loan_amounts
)


class TestValidatePositiveAmount:
    """Test positive amount validation"""

    def test_positive_amount_passes(self):
        """Test positive values are accepted"""
        validate_positive_amount("0.01", "amount")
        validate_positive_amount(3000, "requestedAmount")

    def test_zero_and_negative_rejected(self):
        """Test zero and negative values raise with the field name"""
        with pytest.raises(LoanValidationError, match="requestedAmount must be greater than 0"):
            validate_positive_amount(0, "requestedAmount")
        with pytest.raises(LoanValidationError):
            validate_positive_amount(-5, "amount")

    def test_error_is_value_error(self):
        """Test callers can catch ValueError"""
        with pytest.raises(ValueError):
            validate_positive_amount(0, "amount")

    def test_rejection_is_logged(self, caplog):
        """Test a warning is logged before raising"""
        with caplog.at_level(logging.WARNING, logger="lending_core.validators"):
            with pytest.raises(LoanValidationError):
                validate_positive_amount(0, "amount")
        assert "not positive" in caplog.text


class TestValidatePastDate:
    """Test future date validation"""

    def test_past_date_passes(self):
        """Test dates before now are accepted"""
        validate_past_date(datetime(2024, 11, 1), "signDate", now=datetime(2024, 12, 1))

    def test_future_date_rejected(self):
        """Test dates after now raise"""
        with pytest.raises(LoanValidationError, match="signDate cannot be in the future"):
            validate_past_date(datetime(2024, 12, 2), "signDate", now=datetime(2024, 12, 1))

    def test_aware_string_against_naive_now(self):
        """Test ISO strings with offsets are compared in UTC"""
        validate_past_date("2024-11-30T23:00:00Z", "signDate", now=datetime(2024, 12, 1))
        with pytest.raises(LoanValidationError):
            validate_past_date(
                "2024-12-01T10:00:00+00:00", "signDate",
                now=datetime(2024, 12, 1, 9, tzinfo=timezone.utc)
            )


class TestValidateLoanAmounts:
    """Test requested vs given validation"""

    def test_amount_gived_within_requested(self):
        """Test equal or lower given amounts pass"""
        validate_loan_amounts(3000, 3000)
        validate_loan_amounts(3000, 1800)

    def test_amount_gived_above_requested(self):
        """Test handing out more than requested raises"""
        with pytest.raises(LoanValidationError, match="Amount given cannot exceed requested amount"):
            validate_loan_amounts(3000, "3000.01")

"""
Test suite for VDO module

Tests weekly arrears replay: grace signing week, surplus carry-forward,
non-compounding deficits and the arrears cap.
"""

import pytest
from decimal import Decimal
from datetime import datetime, timezone

from lending_core.vdo import (
    LoanLike, LoanTypeTerms, VDOPayment, WeekMode, to_number,
    compute_expected_weekly_payment, calculate_vdo_for_loan,
    calculate_abono_parcial_for_loan
)

# Wednesday; the current week starts Monday Nov 25 2024
NOW = datetime(2024, 11, 27, 12, 0)


def make_loan(payments, **overrides):
    data = dict(
        id="loan-1",
        sign_date=datetime(2024, 11, 1, 10, 0),  # Friday, week of Oct 28
        expected_weekly_payment=300,
        requested_amount=3000,
        loantype=LoanTypeTerms(week_duration=14, rate="0.40"),
        payments=[VDOPayment(amount=amount, received_at=at) for at, amount in payments]
    )
    data.update(overrides)
    return LoanLike(**data)


class TestToNumber:
    """Test lenient numeric coercion"""

    def test_to_number(self):
        """Test numbers, strings and missing values"""
        assert to_number(None) == 0
        assert to_number("") == 0
        assert to_number("abc") == 0
        assert to_number("12.5") == 12.5
        assert to_number(Decimal('3')) == 3.0
        assert to_number(7) == 7.0

    def test_nan_is_zero(self):
        """Test NaN strings and floats degrade to 0"""
        assert to_number("NaN") == 0
        assert to_number(" nan ") == 0
        assert to_number(float("nan")) == 0
        assert to_number(Decimal("NaN")) == 0


class TestExpectedWeeklyPayment:
    """Test expected weekly payment resolution"""

    def test_direct_value_wins(self):
        """Test an explicit positive weekly payment is used"""
        assert compute_expected_weekly_payment(make_loan([])) == 300

    def test_derived_from_loan_type(self):
        """Test derivation from principal, rate and duration"""
        loan = make_loan([], expected_weekly_payment=None, requested_amount="3000")
        assert compute_expected_weekly_payment(loan) == pytest.approx(300.0)

    def test_missing_terms(self):
        """Test missing data degrades to 0"""
        loan = make_loan([], expected_weekly_payment="0", loantype=None)
        assert compute_expected_weekly_payment(loan) == 0


class TestCalculateVDO:
    """Test the weekly arrears replay"""

    def test_one_missed_week(self):
        """Test a single unpaid week in the middle"""
        loan = make_loan([
            (datetime(2024, 11, 5), 300),
            (datetime(2024, 11, 19), 300),
        ])
        result = calculate_vdo_for_loan(loan, NOW, WeekMode.CURRENT)

        assert result.expected_weekly_payment == 300
        assert result.weeks_without_payment == 1
        assert result.arrears_amount == pytest.approx(300)
        assert result.partial_payment == 0

    def test_next_mode_includes_current_week(self):
        """Test NEXT mode also evaluates the running week"""
        loan = make_loan([
            (datetime(2024, 11, 5), 300),
            (datetime(2024, 11, 19), 300),
        ])
        result = calculate_vdo_for_loan(loan, NOW, "next")

        assert result.weeks_without_payment == 2
        assert result.arrears_amount == pytest.approx(600)

    def test_surplus_carries_forward(self):
        """Test a double payment covers the following week"""
        loan = make_loan([(datetime(2024, 11, 5), 600)])
        result = calculate_vdo_for_loan(loan, NOW)

        # Nov 11 week covered by surplus, Nov 18 week missed
        assert result.weeks_without_payment == 1
        assert result.partial_payment == 0

    def test_deficit_does_not_compound(self):
        """Test a short week does not make the next full week short"""
        loan = make_loan([
            (datetime(2024, 11, 5), 100),
            (datetime(2024, 11, 12), 300),
            (datetime(2024, 11, 19), 300),
        ])
        result = calculate_vdo_for_loan(loan, NOW)
        assert result.weeks_without_payment == 1

    def test_signing_week_payment_is_surplus(self):
        """Test a payment in the signing week counts toward later weeks"""
        loan = make_loan([
            (datetime(2024, 11, 1, 18, 0), 300),
            (datetime(2024, 11, 19), 300),
        ])
        result = calculate_vdo_for_loan(loan, NOW)

        # Nov 4 week covered by the signing week payment, Nov 11 missed
        assert result.weeks_without_payment == 1

    def test_remaining_surplus_is_reported(self):
        """Test overpayment left after the last evaluated week"""
        loan = make_loan([
            (datetime(2024, 11, 5), 300),
            (datetime(2024, 11, 12), 300),
            (datetime(2024, 11, 19), 450),
        ])
        result = calculate_vdo_for_loan(loan, NOW)

        assert result.weeks_without_payment == 0
        assert result.arrears_amount == 0
        assert result.partial_payment == pytest.approx(150)

    def test_arrears_capped_at_pending(self):
        """Test arrears never exceed what is still owed"""
        loan = make_loan([], requested_amount=500, loantype=LoanTypeTerms(week_duration=2, rate=0.2))
        result = calculate_vdo_for_loan(loan, NOW)

        assert result.weeks_without_payment == 3
        assert result.arrears_amount == pytest.approx(600)

    def test_created_at_fallback(self):
        """Test payments without received_at use created_at"""
        loan = make_loan([(datetime(2024, 11, 5), 300), (datetime(2024, 11, 19), 300)])
        loan.payments.append(VDOPayment(amount="300", created_at=datetime(2024, 11, 12)))
        result = calculate_vdo_for_loan(loan, NOW)
        assert result.weeks_without_payment == 0

    def test_loan_signed_this_week(self):
        """Test a loan signed in the running week has nothing to evaluate"""
        loan = make_loan([], sign_date=datetime(2024, 11, 26))
        result = calculate_vdo_for_loan(loan, NOW)
        assert result.weeks_without_payment == 0
        assert result.arrears_amount == 0

    def test_iso_string_dates(self):
        """Test ISO strings with offsets against a naive now"""
        loan = make_loan(
            [("2024-11-05T15:00:00Z", 300), ("2024-11-19T15:00:00Z", 300)],
            sign_date="2024-11-01T10:00:00Z"
        )
        result = calculate_vdo_for_loan(loan, NOW)
        assert result.weeks_without_payment == 1

    def test_payment_offset_uses_now_timezone(self):
        """Test a payment made Monday in UTC+6 counts for the Sunday UTC week"""
        loan = make_loan(
            [
                ("2024-11-11T04:00:00+06:00", 300),
                ("2024-11-12T00:00:00Z", 300),
                ("2024-11-19T00:00:00Z", 300),
            ],
            sign_date="2024-11-01T10:00:00Z"
        )
        result = calculate_vdo_for_loan(loan, datetime(2024, 11, 27, 12, 0, tzinfo=timezone.utc))
        assert result.weeks_without_payment == 0
        assert result.arrears_amount == 0

    def test_unknown_week_mode(self):
        """Test an unknown mode string is rejected"""
        with pytest.raises(ValueError, match="Unknown week mode"):
            calculate_vdo_for_loan(make_loan([]), NOW, "previous")


class TestAbonoParcial:
    """Test overpayment within the current week"""

    def test_overpayment_this_week(self):
        """Test the excess over the weekly quota"""
        loan = make_loan([
            (datetime(2024, 11, 19), 300),
            (datetime(2024, 11, 25, 9, 0), 300),
            (datetime(2024, 11, 26, 9, 0), 150),
        ])
        result = calculate_abono_parcial_for_loan(loan, NOW)

        assert result.expected_weekly_payment == 300
        assert result.total_paid_in_current_week == 450
        assert result.abono_parcial_amount == 150

    def test_underpayment_is_zero(self):
        """Test a short week gives no abono"""
        loan = make_loan([(datetime(2024, 11, 25, 9, 0), 200)])
        assert calculate_abono_parcial_for_loan(loan, NOW).abono_parcial_amount == 0


class TestLoanLikeFromMapping:
    """Test building loans from data layer mappings"""

    def test_camel_case_keys(self):
        """Test camelCase keys are understood"""
        loan = LoanLike.from_mapping({
            "id": "loan-9",
            "signDate": "2024-11-01T10:00:00",
            "requestedAmount": "3000",
            "loantype": {"weekDuration": 14, "rate": "0.40"},
            "payments": [
                {"amount": "300", "receivedAt": "2024-11-05T10:00:00"},
                {"amount": "300", "createdAt": "2024-11-19T10:00:00"},
            ],
        })

        assert loan.loantype.week_duration == 14
        assert loan.payments[1].timestamp == "2024-11-19T10:00:00"

        result = calculate_vdo_for_loan(loan, NOW)
        assert result.expected_weekly_payment == pytest.approx(300.0)
        assert result.weeks_without_payment == 1

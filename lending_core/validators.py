"""
Loan Input Validation Module

Validators refuse to let a possibly-wrong financial number through: they
raise instead of clamping.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional, Union

from .active_week import DateLike, align_datetime
from .currency import ZERO, to_decimal
from .logging_config import get_logger

Number = Union[Decimal, int, float, str]

logger = get_logger("lending_core.validators")


class LoanValidationError(ValueError):
    """Raised when loan input data is rejected"""


def validate_positive_amount(amount: Number, field_name: str) -> None:
    """
    Validate that an amount is greater than zero

    Raises:
        LoanValidationError: If amount <= 0
    """
    if to_decimal(amount) <= ZERO:
        logger.warning(f"Rejected {field_name}={amount}: not positive")
        raise LoanValidationError(f"{field_name} must be greater than 0")


def validate_past_date(value: DateLike, field_name: str, now: Optional[datetime] = None) -> None:
    """
    Validate that a date is not in the future

    Args:
        value: Date to check
        field_name: Name used in the error message
        now: Reference time; the wall clock is read only when omitted

    Raises:
        LoanValidationError: If value is after now
    """
    if now is None:
        now = datetime.now()
    if align_datetime(value, now) > now:
        logger.warning(f"Rejected {field_name}={value}: in the future")
        raise LoanValidationError(f"{field_name} cannot be in the future")


def validate_loan_amounts(requested_amount: Number, amount_gived: Number) -> None:
    """
    Validate that the amount handed out does not exceed the requested amount

    Raises:
        LoanValidationError: If amount_gived > requested_amount
    """
    if to_decimal(amount_gived) > to_decimal(requested_amount):
        logger.warning(f"Rejected amount_gived={amount_gived} > requested_amount={requested_amount}")
        raise LoanValidationError("Amount given cannot exceed requested amount")

"""
VDO (Valor de Deuda Observada) Module

Replays a loan's payment history week by week to find how many weeks went
unpaid and how much overpayment ("abono parcial") is carried forward.

Rules:
- The signing week (week 0) never counts as unpaid; anything paid in it
  becomes surplus.
- Surplus carries forward from week to week; a deficit never does, so a
  missed week does not compound into the next one.
- The arrears amount never exceeds what is still owed.

Figures here are plain floats: they drive collection lists, while exact
Decimal money math lives in the profit module.
"""

import math
from datetime import datetime
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, List, Mapping, Optional, Union
from enum import Enum

from .active_week import (
    DateLike, WEEK, align_datetime, get_week_end, get_week_start
)
from .logging_config import get_logger, log_action
from .week_buckets import WeekBuckets

logger = get_logger("lending_core.vdo")


class WeekMode(Enum):
    """How far the simulation looks"""
    CURRENT = "current"  # Up to the end of last week (last completed week)
    NEXT = "next"        # Up to the end of the current week


@dataclass
class LoanTypeTerms:
    """Loan product terms"""
    week_duration: Optional[int] = None
    rate: Any = None


@dataclass
class VDOPayment:
    """Payment as seen by the simulator"""
    amount: Any
    received_at: Optional[DateLike] = None
    created_at: Optional[DateLike] = None

    @property
    def timestamp(self) -> Optional[DateLike]:
        """received_at, falling back to created_at"""
        return self.received_at or self.created_at


@dataclass
class LoanLike:
    """Loan as seen by the simulator; numeric fields may be strings or None"""
    sign_date: DateLike
    expected_weekly_payment: Any = None
    requested_amount: Any = None
    loantype: Optional[LoanTypeTerms] = None
    payments: List[VDOPayment] = field(default_factory=list)
    id: Optional[str] = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "LoanLike":
        """
        Build from a plain mapping as produced by the data layer

        Both snake_case and camelCase keys are accepted.
        """
        def pick(mapping, *keys):
            for key in keys:
                if key in mapping and mapping[key] is not None:
                    return mapping[key]
            return None

        loantype_data = pick(data, 'loantype')
        loantype = None
        if loantype_data is not None:
            loantype = LoanTypeTerms(
                week_duration=pick(loantype_data, 'week_duration', 'weekDuration'),
                rate=pick(loantype_data, 'rate')
            )

        payments = [
            VDOPayment(
                amount=pick(p, 'amount'),
                received_at=pick(p, 'received_at', 'receivedAt'),
                created_at=pick(p, 'created_at', 'createdAt')
            )
            for p in (pick(data, 'payments') or [])
        ]

        return cls(
            id=pick(data, 'id'),
            sign_date=pick(data, 'sign_date', 'signDate'),
            expected_weekly_payment=pick(data, 'expected_weekly_payment', 'expectedWeeklyPayment'),
            requested_amount=pick(data, 'requested_amount', 'requestedAmount'),
            loantype=loantype,
            payments=payments
        )


@dataclass(frozen=True)
class VDOResult:
    """Arrears simulation outcome"""
    expected_weekly_payment: float
    weeks_without_payment: int
    arrears_amount: float   # Amount owed right now (PAGO VDO)
    partial_payment: float  # Overpayment available for future weeks


@dataclass(frozen=True)
class AbonoParcialResult:
    """Overpayment within the current week"""
    expected_weekly_payment: float
    total_paid_in_current_week: float
    abono_parcial_amount: float


def to_number(value: Union[int, float, Decimal, str, None]) -> float:
    """
    Convert a value to float, degrading missing or malformed input to 0

    Args:
        value: Number, numeric string or None

    Returns:
        float value, 0.0 for None, NaN, empty or non-numeric strings
    """
    if value is None:
        return 0.0
    if isinstance(value, (int, float, Decimal)):
        number = float(value)
    else:
        try:
            number = float(str(value).strip())
        except (TypeError, ValueError):
            return 0.0
    return 0.0 if math.isnan(number) else number


def compute_expected_weekly_payment(loan: LoanLike) -> float:
    """
    Expected weekly payment of a loan

    Uses expected_weekly_payment when present and positive, otherwise
    requested_amount * (1 + rate) / week_duration, otherwise 0.
    """
    direct = to_number(loan.expected_weekly_payment)
    if direct > 0:
        return direct

    rate = to_number(loan.loantype.rate) if loan.loantype else 0.0
    duration = (loan.loantype.week_duration if loan.loantype else None) or 0
    principal = to_number(loan.requested_amount)

    if duration and principal:
        return principal * (1 + rate) / duration

    return 0.0


def _coerce_week_mode(week_mode: Union[WeekMode, str]) -> WeekMode:
    if isinstance(week_mode, WeekMode):
        return week_mode
    try:
        return WeekMode(week_mode)
    except ValueError:
        raise ValueError(f"Unknown week mode '{week_mode}', expected 'current' or 'next'")


def calculate_vdo_for_loan(
    loan: LoanLike,
    now: datetime,
    week_mode: Union[WeekMode, str] = WeekMode.CURRENT
) -> VDOResult:
    """
    Calculate the VDO of a loan

    Args:
        loan: Loan data with its payments
        now: Reference time
        week_mode: CURRENT evaluates through last Sunday, NEXT through the
            coming Sunday

    Returns:
        VDOResult
    """
    mode = _coerce_week_mode(week_mode)
    expected_weekly_payment = compute_expected_weekly_payment(loan)
    payments = loan.payments or []

    current_week_start = get_week_start(now)
    if mode == WeekMode.CURRENT:
        evaluation_end = get_week_end(current_week_start - WEEK)
    else:
        evaluation_end = get_week_end(current_week_start)

    # Only whole weeks whose Sunday is within the evaluation window
    weeks = []
    monday = get_week_start(align_datetime(loan.sign_date, now))
    while monday <= evaluation_end:
        sunday = get_week_end(monday)
        if sunday <= evaluation_end:
            weeks.append(monday)
        monday = monday + WEEK

    buckets = WeekBuckets(payments, lambda p: p.timestamp, reference=now)
    amount_of = lambda p: to_number(p.amount)

    surplus_accumulated = 0.0
    weeks_without_payment = 0

    for index, week_start in enumerate(weeks):
        weekly_paid = buckets.total_in_week(week_start, amount_of)

        # Signing week is a grace week: whatever was paid is pure surplus
        if index == 0:
            if weekly_paid > 0:
                surplus_accumulated = weekly_paid
            continue

        total_available = surplus_accumulated + weekly_paid
        if total_available < expected_weekly_payment:
            weeks_without_payment += 1

        # Only positive surplus carries forward, never a deficit
        surplus_accumulated = max(0.0, total_available - expected_weekly_payment)

    rate = to_number(loan.loantype.rate) if loan.loantype else 0.0
    total_debt = to_number(loan.requested_amount) * (1 + rate)
    total_paid = sum(amount_of(p) for p in payments)
    pending_amount = max(0.0, total_debt - total_paid)

    arrears_amount = min(weeks_without_payment * expected_weekly_payment, pending_amount)

    log_action(
        logger, "debug", "VDO calculated",
        loan_id=loan.id, action="calculate_vdo",
        extra={
            "week_mode": mode.value,
            "weeks_evaluated": len(weeks),
            "weeks_without_payment": weeks_without_payment,
            "arrears_amount": arrears_amount,
            "partial_payment": surplus_accumulated
        }
    )

    return VDOResult(
        expected_weekly_payment=expected_weekly_payment,
        weeks_without_payment=weeks_without_payment,
        arrears_amount=arrears_amount,
        partial_payment=max(0.0, surplus_accumulated)
    )


def calculate_abono_parcial_for_loan(loan: LoanLike, now: datetime) -> AbonoParcialResult:
    """
    Overpayment made during the week containing now

    Args:
        loan: Loan data with its payments
        now: Reference time

    Returns:
        AbonoParcialResult with max(0, paid this week - expected)
    """
    expected_weekly_payment = compute_expected_weekly_payment(loan)
    buckets = WeekBuckets(loan.payments or [], lambda p: p.timestamp, reference=now)
    total_paid = buckets.total_in_week(now, lambda p: to_number(p.amount))

    return AbonoParcialResult(
        expected_weekly_payment=expected_weekly_payment,
        total_paid_in_current_week=total_paid,
        abono_parcial_amount=max(0.0, total_paid - expected_weekly_payment)
    )

"""
Payment Chronology Module

Builds the human-readable payment timeline shown on client history screens
and PDF statements: one entry per payment plus a "Sin pago" entry for every
elapsed week without payments.

Unlike the VDO simulator the running surplus here is NOT clamped at zero:
a negative surplus_before shows how far behind the client was going into a
week, which is what collectors want to see on the statement.
"""

from datetime import datetime
from dataclasses import dataclass, field
from typing import Any, List, Optional
from enum import Enum
import math

from .active_week import DateLike, WEEK, align_datetime, as_datetime, get_week_end, get_week_start
from .config import get_config
from .logging_config import get_logger, log_action
from .vdo import to_number
from .week_buckets import WeekBuckets

logger = get_logger("lending_core.chronology")

# Loan statuses whose finished_date closes the timeline
CLOSED_STATUSES = ("FINISHED", "RENOVATED")


class ChronologyItemType(Enum):
    PAYMENT = "PAYMENT"
    NO_PAYMENT = "NO_PAYMENT"


class CoverageType(Enum):
    """How a week's quota was met"""
    FULL = "FULL"                                # Paid the quota within the week
    COVERED_BY_SURPLUS = "COVERED_BY_SURPLUS"    # Earlier overpayment makes up the gap
    PARTIAL = "PARTIAL"                          # Something paid, not enough
    MISS = "MISS"


@dataclass
class ChronologyPayment:
    """Payment record as delivered by the client history query"""
    id: str
    received_at: Optional[DateLike]
    amount: Any = 0
    payment_method: Optional[str] = None
    balance_before_payment: Any = None
    balance_after_payment: Any = None
    payment_number: Optional[int] = None
    received_at_formatted: Optional[str] = None


@dataclass
class ChronologyLoan:
    """Loan record as delivered by the client history query"""
    id: str
    sign_date: Optional[DateLike]
    week_duration: Optional[int] = None
    status: Optional[str] = None
    finished_date: Optional[DateLike] = None
    bad_debt_date: Optional[DateLike] = None
    amount_gived: Any = None
    profit_amount: Any = None
    # Alternative names used by older history queries
    amount_requested: Any = None
    interest_amount: Any = None
    total_amount_due: Any = None
    payments: List[ChronologyPayment] = field(default_factory=list)

    @property
    def is_closed(self) -> bool:
        return bool(self.finished_date) and self.status in CLOSED_STATUSES


@dataclass
class PaymentChronologyItem:
    """Single timeline entry"""
    id: str
    date: datetime
    date_formatted: str
    type: ChronologyItemType
    description: str
    amount: Optional[float] = None
    payment_method: Optional[str] = None
    balance_before: Any = None
    balance_after: Any = None
    payment_number: Optional[int] = None
    week_count: Optional[int] = None
    # Per-week enrichment used to color the timeline
    week_index: Optional[int] = None
    weekly_expected: Optional[float] = None
    weekly_paid: Optional[float] = None
    surplus_before: Optional[float] = None
    surplus_after: Optional[float] = None
    coverage_type: Optional[CoverageType] = None


def format_date(value: DateLike) -> str:
    """Format a date as dd/mm/yyyy"""
    return as_datetime(value).strftime("%d/%m/%Y")


def is_loan_fully_paid(loan: ChronologyLoan) -> bool:
    """
    Whether the timeline should stop at the current date as fully paid

    Always False: closing is driven only by finished_date and bad_debt_date,
    so elapsed weeks keep getting their entries.
    """
    return False


def _weeks_between(start: datetime, end: datetime) -> int:
    return math.ceil((end - start).total_seconds() / WEEK.total_seconds())


def _max_weeks(loan: ChronologyLoan) -> int:
    settings = get_config()
    amount = to_number(loan.amount_gived) or to_number(loan.amount_requested)
    return max(
        loan.week_duration or settings.chronology_fallback_max_weeks,
        math.ceil(amount / settings.chronology_amount_per_week)
    )


def _expected_weekly(loan: ChronologyLoan) -> float:
    if loan.total_amount_due is not None:
        total_due = to_number(loan.total_amount_due)
    else:
        total_due = to_number(loan.amount_gived) + to_number(loan.profit_amount)
    duration = loan.week_duration or get_config().chronology_default_week_duration
    return total_due / duration if duration > 0 else 0.0


def _classify(weekly_paid: float, surplus_before: float, expected: float) -> CoverageType:
    covers_with_surplus = surplus_before + weekly_paid >= expected and expected > 0
    if weekly_paid >= expected:
        return CoverageType.FULL
    if covers_with_surplus:
        return CoverageType.COVERED_BY_SURPLUS
    if weekly_paid > 0:
        return CoverageType.PARTIAL
    return CoverageType.MISS


def generate_payment_chronology(loan: ChronologyLoan, now: datetime) -> List[PaymentChronologyItem]:
    """
    Generate the payment timeline of a loan

    Weeks are numbered from the signing date: week w is centered on
    sign_date + 7w days and spans that date's Monday through Sunday. Every
    payment inside that window is listed under week w; an elapsed week
    with no payments gets a NO_PAYMENT entry unless it falls after the
    loan was finished or written off. Payments outside every regular week
    are appended at the end, and the whole list is sorted by date.

    Args:
        loan: Loan with its payments
        now: Reference time

    Returns:
        List of PaymentChronologyItem sorted by date
    """
    chronology: List[PaymentChronologyItem] = []

    if not loan.sign_date:
        return chronology

    sign_date = align_datetime(loan.sign_date, now)
    finished_date = align_datetime(loan.finished_date, now) if loan.finished_date else None
    bad_debt_date = align_datetime(loan.bad_debt_date, now) if loan.bad_debt_date else None

    if loan.is_closed:
        end_date = finished_date
        total_weeks = _weeks_between(sign_date, finished_date)
    elif bad_debt_date:
        end_date = bad_debt_date
        total_weeks = _weeks_between(sign_date, bad_debt_date)
    elif is_loan_fully_paid(loan):
        end_date = now
        total_weeks = min(_max_weeks(loan), _weeks_between(sign_date, end_date))
    else:
        max_weeks = _max_weeks(loan)
        end_date = min(now, sign_date + max_weeks * WEEK)
        total_weeks = min(max_weeks, _weeks_between(sign_date, end_date))

    dated_payments = [p for p in (loan.payments or []) if p.received_at]
    sorted_payments = sorted(dated_payments, key=lambda p: align_datetime(p.received_at, now))
    buckets = WeekBuckets(sorted_payments, lambda p: p.received_at, reference=now)
    amount_of = lambda p: to_number(p.amount)

    expected_weekly = _expected_weekly(loan)
    fully_paid = is_loan_fully_paid(loan)

    for week in range(1, total_weeks + 1):
        week_payment_date = sign_date + week * WEEK
        week_monday = get_week_start(week_payment_date)
        week_sunday = get_week_end(week_monday)

        payments_in_week = buckets.records_in_week(week_monday)
        paid_before_week = buckets.total_before(week_monday, amount_of)
        weekly_paid = buckets.total_in_week(week_monday, amount_of)
        surplus_before = paid_before_week - (week - 1) * expected_weekly

        if payments_in_week:
            coverage = _classify(weekly_paid, surplus_before, expected_weekly)
            count = len(payments_in_week)
            for index, payment in enumerate(payments_in_week, start=1):
                if count > 1:
                    description = f"Pago #{index} ({index}/{count})"
                else:
                    description = f"Pago #{payment.payment_number or index}"
                payment_date = align_datetime(payment.received_at, now)
                chronology.append(PaymentChronologyItem(
                    id=f"payment-{payment.id}",
                    date=payment_date,
                    date_formatted=payment.received_at_formatted or format_date(payment_date),
                    type=ChronologyItemType.PAYMENT,
                    description=description,
                    amount=amount_of(payment),
                    payment_method=payment.payment_method,
                    balance_before=payment.balance_before_payment,
                    balance_after=payment.balance_after_payment,
                    payment_number=payment.payment_number or index,
                    week_index=week,
                    weekly_expected=expected_weekly,
                    weekly_paid=weekly_paid,
                    surplus_before=surplus_before,
                    surplus_after=surplus_before + weekly_paid - expected_weekly,
                    coverage_type=coverage
                ))
            continue

        before_finish = finished_date is None or week_payment_date <= finished_date
        before_bad_debt = bad_debt_date is None or week_payment_date <= bad_debt_date

        if now > week_sunday and before_finish and before_bad_debt and not fully_paid:
            if surplus_before >= expected_weekly and expected_weekly > 0:
                coverage = CoverageType.COVERED_BY_SURPLUS
                description = "Sin pago (cubierto por sobrepago)"
            else:
                coverage = CoverageType.MISS
                description = "Sin pago"
            chronology.append(PaymentChronologyItem(
                id=f"no-payment-{week}",
                date=week_payment_date,
                date_formatted=format_date(week_payment_date),
                type=ChronologyItemType.NO_PAYMENT,
                description=description,
                week_count=1,
                week_index=week,
                weekly_expected=expected_weekly,
                weekly_paid=0.0,
                surplus_before=surplus_before,
                surplus_after=surplus_before - expected_weekly,
                coverage_type=coverage
            ))

    # Payments not attributed to any regular week
    listed = {item.id for item in chronology if item.type == ChronologyItemType.PAYMENT}
    for payment in sorted_payments:
        item_id = f"payment-{payment.id}"
        if item_id in listed:
            continue
        payment_date = align_datetime(payment.received_at, now)
        if loan.is_closed:
            in_range = sign_date <= payment_date <= end_date
        else:
            in_range = payment_date >= sign_date
        if not in_range:
            continue
        chronology.append(PaymentChronologyItem(
            id=item_id,
            date=payment_date,
            date_formatted=payment.received_at_formatted or format_date(payment_date),
            type=ChronologyItemType.PAYMENT,
            description=f"Pago #{payment.payment_number or 'adicional'}",
            amount=amount_of(payment),
            payment_method=payment.payment_method,
            balance_before=payment.balance_before_payment,
            balance_after=payment.balance_after_payment,
            payment_number=payment.payment_number
        ))

    chronology.sort(key=lambda item: item.date)

    log_action(
        logger, "debug", "Payment chronology generated",
        loan_id=loan.id, action="generate_payment_chronology",
        extra={"total_weeks": total_weeks, "items": len(chronology)}
    )

    return chronology

"""
Portfolio Reporting Module

Assembles the weekly and monthly portfolio report figures from the
per-loan classifications in the portfolio module. The data layer supplies
loans and payments already loaded; nothing here touches storage.

Monthly CV is the AVERAGE of the month's completed weeks only. A week is
completed once now is past its Sunday 23:59:59.999; weeks still running
show zero CV so a half-elapsed week never inflates the figure.
"""

from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from dataclasses import dataclass
from typing import List, Mapping, Optional, Sequence

from .active_week import WeekRange, get_weeks_in_month
from .logging_config import get_logger, log_action
from .portfolio import (
    ClientBalanceResult, ClientsStatusCount, LoanForPortfolio, PaymentForCV,
    calculate_client_balance, count_clients_status, is_active_loan
)

logger = get_logger("lending_core.reporting")

PaymentsMap = Mapping[str, List[PaymentForCV]]


@dataclass(frozen=True)
class WeeklyPortfolioData:
    """One week of a monthly report"""
    week_range: WeekRange
    clientes_activos: int
    clientes_en_cv: int  # 0 until the week is completed
    balance: int
    is_completed: bool


@dataclass(frozen=True)
class PeriodComparison:
    """Change against the previous period"""
    previous_clientes_activos: int
    previous_clientes_en_cv: int
    previous_balance: int
    cv_change: int
    balance_change: int


@dataclass(frozen=True)
class PortfolioSummary:
    """Headline figures of a report"""
    total_clientes_activos: int
    clientes_al_corriente: int
    clientes_en_cv: int
    client_balance: ClientBalanceResult
    comparison: Optional[PeriodComparison] = None
    # Monthly reports only
    promedio_cv: Optional[int] = None
    semanas_completadas: Optional[int] = None
    total_semanas: Optional[int] = None


@dataclass(frozen=True)
class MonthlyCVSummary:
    weeks: List[WeeklyPortfolioData]
    promedio_cv: int
    semanas_completadas: int
    total_semanas: int
    summary: PortfolioSummary


@dataclass
class PreviousPeriodData:
    """Loans and bounds of the period a report is compared against"""
    loans: Sequence[LoanForPortfolio]
    payments_map: PaymentsMap
    period_start: datetime
    period_end: datetime


def is_week_completed(week: WeekRange, now: datetime) -> bool:
    """A week is completed once now is past its Sunday 23:59:59.999"""
    return now > week.end


def get_completed_weeks(weeks: Sequence[WeekRange], now: datetime) -> List[WeekRange]:
    return [week for week in weeks if is_week_completed(week, now)]


def get_last_completed_week(weeks: Sequence[WeekRange], now: datetime) -> Optional[WeekRange]:
    """Last completed week, or None if no week is completed yet"""
    completed = get_completed_weeks(weeks, now)
    return completed[-1] if completed else None


def build_period_comparison(
    current_status: ClientsStatusCount,
    current_balance: ClientBalanceResult,
    previous_status: ClientsStatusCount,
    previous_balance: ClientBalanceResult,
    cv_value: Optional[int] = None
) -> PeriodComparison:
    """
    Compare a report against the previous period

    Args:
        current_status: Client counts of the current period
        current_balance: Client balance of the current period
        previous_status: Client counts of the previous period
        previous_balance: Client balance of the previous period
        cv_value: CV figure to compare instead of current_status.en_cv
            (monthly reports compare their CV average)

    Returns:
        PeriodComparison
    """
    current_cv = cv_value if cv_value is not None else current_status.en_cv
    return PeriodComparison(
        previous_clientes_activos=previous_status.total_activos,
        previous_clientes_en_cv=previous_status.en_cv,
        previous_balance=previous_balance.balance,
        cv_change=current_cv - previous_status.en_cv,
        balance_change=current_balance.balance - previous_balance.balance
    )


def _compare_with_previous(
    previous: Optional[PreviousPeriodData],
    previous_week: Optional[WeekRange],
    status: ClientsStatusCount,
    balance: ClientBalanceResult,
    cv_value: Optional[int] = None
) -> Optional[PeriodComparison]:
    if previous is None or previous_week is None:
        return None

    previous_status = count_clients_status(previous.loans, previous.payments_map, previous_week)
    previous_balance = calculate_client_balance(
        previous.loans, previous.period_start, previous.period_end
    )
    return build_period_comparison(status, balance, previous_status, previous_balance, cv_value)


def build_weekly_summary(
    loans: Sequence[LoanForPortfolio],
    payments_map: PaymentsMap,
    active_week: WeekRange,
    previous_week: Optional[WeekRange],
    period_start: datetime,
    period_end: datetime,
    previous: Optional[PreviousPeriodData] = None
) -> PortfolioSummary:
    """
    Build the summary of a weekly report

    Args:
        loans: Loans of the report
        payments_map: Payments keyed by loan id
        active_week: Week the CV is evaluated on
        previous_week: Week the comparison's CV is evaluated on
        period_start: Start of the balance period
        period_end: End of the balance period
        previous: Previous period data; no comparison without it

    Returns:
        PortfolioSummary
    """
    status = count_clients_status(loans, payments_map, active_week)
    client_balance = calculate_client_balance(loans, period_start, period_end)

    return PortfolioSummary(
        total_clientes_activos=status.total_activos,
        clientes_al_corriente=status.al_corriente,
        clientes_en_cv=status.en_cv,
        client_balance=client_balance,
        comparison=_compare_with_previous(previous, previous_week, status, client_balance)
    )


def build_monthly_cv_summary(
    year: int,
    month: int,
    loans: Sequence[LoanForPortfolio],
    payments_map: PaymentsMap,
    now: datetime,
    previous: Optional[PreviousPeriodData] = None
) -> MonthlyCVSummary:
    """
    Build the weekly breakdown and summary of a monthly report

    Args:
        year: Report year
        month: Report month, 1-12
        loans: Loans of the report
        payments_map: Payments keyed by loan id
        now: Reference time deciding which weeks are completed
        previous: Previous month data for the comparison

    Returns:
        MonthlyCVSummary

    Raises:
        ValueError: If the month has no weeks
    """
    weeks = get_weeks_in_month(year, month)
    if not weeks:
        raise ValueError(f"No weeks found for {year}-{month}")

    period_start = weeks[0].start
    period_end = weeks[-1].end

    completed_weeks = get_completed_weeks(weeks, now)
    last_completed = completed_weeks[-1] if completed_weeks else None
    previous_week = completed_weeks[-2] if len(completed_weeks) > 1 else None

    weekly_data = []
    total_cv = 0
    for week in weeks:
        completed = is_week_completed(week, now)
        week_status = count_clients_status(loans, payments_map, week)
        week_balance = calculate_client_balance(loans, week.start, week.end)
        if completed:
            total_cv += week_status.en_cv
        weekly_data.append(WeeklyPortfolioData(
            week_range=week,
            clientes_activos=week_status.total_activos,
            clientes_en_cv=week_status.en_cv if completed else 0,
            balance=week_balance.balance,
            is_completed=completed
        ))

    promedio_cv = 0
    if completed_weeks:
        average = Decimal(total_cv) / Decimal(len(completed_weeks))
        promedio_cv = int(average.quantize(Decimal('1'), rounding=ROUND_HALF_UP))

    if last_completed is not None:
        status = count_clients_status(loans, payments_map, last_completed)
    else:
        # CV cannot be measured yet, so every active loan is al corriente
        active = sum(1 for loan in loans if is_active_loan(loan))
        status = ClientsStatusCount(total_activos=active, en_cv=0, al_corriente=active)

    client_balance = calculate_client_balance(loans, period_start, period_end)

    summary = PortfolioSummary(
        total_clientes_activos=status.total_activos,
        clientes_al_corriente=status.al_corriente,
        clientes_en_cv=promedio_cv,
        client_balance=client_balance,
        comparison=_compare_with_previous(
            previous, previous_week, status, client_balance, cv_value=promedio_cv
        ),
        promedio_cv=promedio_cv,
        semanas_completadas=len(completed_weeks),
        total_semanas=len(weeks)
    )

    log_action(
        logger, "info", "Monthly CV summary built",
        action="build_monthly_cv_summary",
        extra={
            "year": year,
            "month": month,
            "promedio_cv": promedio_cv,
            "semanas_completadas": len(completed_weeks),
            "total_semanas": len(weeks)
        }
    )

    return MonthlyCVSummary(
        weeks=weekly_data,
        promedio_cv=promedio_cv,
        semanas_completadas=len(completed_weeks),
        total_semanas=len(weeks),
        summary=summary
    )

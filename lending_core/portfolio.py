"""
Portfolio Calculation Module

Per-loan classification for the portfolio report (Reporte de Cartera):

- CV (Cartera Vencida): an active loan with NO payment in the active week.
  Loans signed during the active week get a grace week. Leaving CV takes a
  double payment (2+ payments in one week right after a week without any).
  CV is always derived from payments, never stored.
- Active loan: pending_amount_stored > 0, no bad_debt_date and not
  excluded by a portfolio cleanup.
- Client balance: +1 per new client, -1 per client who finished without
  renewing; renewals are neutral.

Period bounds are inclusive on both ends.
"""

from datetime import datetime
from decimal import Decimal
from dataclasses import dataclass
from typing import Iterable, List, Mapping, Optional, Sequence, Union
from enum import Enum

from .active_week import DateLike, WeekRange, align_datetime, is_date_in_week
from .config import get_config
from .currency import ZERO, round_ratio, to_decimal
from .logging_config import get_logger, log_action

logger = get_logger("lending_core.portfolio")

RENOVATED = "RENOVATED"


class CVStatus(Enum):
    AL_CORRIENTE = "AL_CORRIENTE"
    EN_CV = "EN_CV"
    EXCLUIDO = "EXCLUIDO"


class ExclusionReason(Enum):
    BAD_DEBT = "BAD_DEBT"
    CLEANUP = "CLEANUP"
    NOT_ACTIVE = "NOT_ACTIVE"


class Trend(Enum):
    UP = "UP"
    DOWN = "DOWN"
    STABLE = "STABLE"


@dataclass
class LoanForPortfolio:
    """Minimal loan data needed by the portfolio report"""
    id: str
    pending_amount_stored: Decimal
    sign_date: DateLike
    finished_date: Optional[DateLike] = None
    renewed_date: Optional[DateLike] = None
    bad_debt_date: Optional[DateLike] = None
    excluded_by_cleanup: Optional[str] = None  # Cleanup id
    previous_loan: Optional[str] = None        # Previous loan id, None for a first loan
    status: Optional[str] = None

    def __post_init__(self):
        self.pending_amount_stored = to_decimal(self.pending_amount_stored)


@dataclass
class PaymentForCV:
    """Minimal payment data needed for CV"""
    id: str
    received_at: DateLike
    amount: Decimal = ZERO

    def __post_init__(self):
        self.amount = to_decimal(self.amount)


@dataclass(frozen=True)
class CVCalculationResult:
    loan_id: str
    status: CVStatus
    payments_in_week: int
    exited_cv_this_week: bool
    exclusion_reason: Optional[ExclusionReason] = None


@dataclass(frozen=True)
class ClientBalanceResult:
    nuevos: int
    terminados_sin_renovar: int
    renovados: int
    balance: int  # nuevos - terminados_sin_renovar
    trend: Trend


@dataclass(frozen=True)
class RenovationKPIs:
    total_renovaciones: int
    total_cierres_sin_renovar: int
    tasa_renovacion: Decimal  # 0-1, 4 decimal places
    tendencia: Trend


@dataclass(frozen=True)
class ClientsStatusCount:
    total_activos: int
    en_cv: int
    al_corriente: int


def _in_period(value: DateLike, period_start: datetime, period_end: datetime) -> bool:
    moment = align_datetime(value, period_start)
    return period_start <= moment <= align_datetime(period_end, period_start)


def is_active_loan(loan: LoanForPortfolio) -> bool:
    """Check if a loan counts as an active client"""
    return (
        loan.pending_amount_stored > ZERO
        and loan.bad_debt_date is None
        and loan.excluded_by_cleanup is None
    )


def count_payments_in_week(payments: Iterable[PaymentForCV], week: WeekRange) -> int:
    """Count payments received within a week range"""
    return sum(1 for payment in payments if is_date_in_week(payment.received_at, week))


def is_in_cartera_vencida(
    loan: LoanForPortfolio,
    payments: Sequence[PaymentForCV],
    active_week: WeekRange
) -> bool:
    """
    Check if a loan is in Cartera Vencida

    Args:
        loan: Loan to check
        payments: Payments of this loan
        active_week: The active week range

    Returns:
        True if the loan is active, was signed before the active week and
        received no payments in it
    """
    if not is_active_loan(loan):
        return False

    # New loans get a grace week
    if is_date_in_week(loan.sign_date, active_week):
        return False

    return count_payments_in_week(payments, active_week) == 0


def exited_cartera_vencida(
    payments: Sequence[PaymentForCV],
    previous_week: WeekRange,
    current_week: WeekRange,
    min_payments: Optional[int] = None
) -> bool:
    """
    Check if a loan left CV this week

    A loan with payments in previous_week was never in CV, so it cannot
    exit. Otherwise it exits with at least min_payments payments (2 by
    default) in current_week; a single catch-up payment is not enough.

    Args:
        payments: Payments of this loan
        previous_week: Week the loan was in CV
        current_week: Week to check for the exit
        min_payments: Overrides the configured minimum

    Returns:
        True if the loan exited CV
    """
    if count_payments_in_week(payments, previous_week) > 0:
        return False

    required = min_payments if min_payments is not None else get_config().cv_exit_min_payments
    return count_payments_in_week(payments, current_week) >= required


def calculate_cv_status(
    loan: LoanForPortfolio,
    payments: Sequence[PaymentForCV],
    active_week: WeekRange,
    previous_week: Optional[WeekRange] = None
) -> CVCalculationResult:
    """
    Calculate the complete CV status of a loan

    Exclusions are checked first in the order BAD_DEBT, CLEANUP,
    NOT_ACTIVE; the first match wins.

    Args:
        loan: Loan to check
        payments: All payments of this loan
        active_week: The active week range
        previous_week: Previous week, needed to detect a CV exit

    Returns:
        CVCalculationResult
    """
    exclusion = None
    if loan.bad_debt_date is not None:
        exclusion = ExclusionReason.BAD_DEBT
    elif loan.excluded_by_cleanup is not None:
        exclusion = ExclusionReason.CLEANUP
    elif loan.pending_amount_stored <= ZERO:
        exclusion = ExclusionReason.NOT_ACTIVE

    if exclusion is not None:
        return CVCalculationResult(
            loan_id=loan.id,
            status=CVStatus.EXCLUIDO,
            payments_in_week=0,
            exited_cv_this_week=False,
            exclusion_reason=exclusion
        )

    payments_in_week = count_payments_in_week(payments, active_week)
    in_cv = is_in_cartera_vencida(loan, payments, active_week)

    exited = False
    if previous_week is not None and not in_cv:
        exited = exited_cartera_vencida(payments, previous_week, active_week)

    return CVCalculationResult(
        loan_id=loan.id,
        status=CVStatus.EN_CV if in_cv else CVStatus.AL_CORRIENTE,
        payments_in_week=payments_in_week,
        exited_cv_this_week=exited
    )


def is_new_client(loan: LoanForPortfolio) -> bool:
    """A loan without a previous loan is the client's first"""
    return loan.previous_loan is None


def is_finished_without_renewal(
    loan: LoanForPortfolio,
    period_start: datetime,
    period_end: datetime
) -> bool:
    """
    Check if a loan finished in the period and was not renewed

    A loan counts as renewed if it has a renewed_date or its status is
    RENOVATED.
    """
    if loan.finished_date is None:
        return False

    was_renewed = loan.renewed_date is not None or loan.status == RENOVATED
    return _in_period(loan.finished_date, period_start, period_end) and not was_renewed


def is_renewal_in_period(
    loan: LoanForPortfolio,
    period_start: datetime,
    period_end: datetime
) -> bool:
    """
    Check if a loan was renewed in the period

    renewed_date is used when present. A RENOVATED loan without one falls
    back to its finished_date.
    """
    if loan.renewed_date is not None:
        return _in_period(loan.renewed_date, period_start, period_end)

    if loan.status == RENOVATED and loan.finished_date is not None:
        return _in_period(loan.finished_date, period_start, period_end)

    return False


def is_new_client_in_period(
    loan: LoanForPortfolio,
    period_start: datetime,
    period_end: datetime
) -> bool:
    """Check if a first loan was signed in the period"""
    if not is_new_client(loan):
        return False
    return _in_period(loan.sign_date, period_start, period_end)


def calculate_trend(current: Union[int, float, Decimal], previous: Union[int, float, Decimal]) -> Trend:
    if current > previous:
        return Trend.UP
    if current < previous:
        return Trend.DOWN
    return Trend.STABLE


def calculate_client_balance(
    loans: Iterable[LoanForPortfolio],
    period_start: datetime,
    period_end: datetime,
    previous_balance: Optional[int] = None
) -> ClientBalanceResult:
    """
    Calculate the client balance of a period

    balance = new clients - clients who finished without renewing

    Args:
        loans: Loans to analyze
        period_start: Start of the period
        period_end: End of the period
        previous_balance: Previous period balance, used for the trend

    Returns:
        ClientBalanceResult; trend is STABLE without a previous balance
    """
    nuevos = 0
    terminados_sin_renovar = 0
    renovados = 0

    for loan in loans:
        if is_new_client_in_period(loan, period_start, period_end):
            nuevos += 1
        if is_finished_without_renewal(loan, period_start, period_end):
            terminados_sin_renovar += 1
        if is_renewal_in_period(loan, period_start, period_end):
            renovados += 1

    balance = nuevos - terminados_sin_renovar
    trend = calculate_trend(balance, previous_balance) if previous_balance is not None else Trend.STABLE

    return ClientBalanceResult(
        nuevos=nuevos,
        terminados_sin_renovar=terminados_sin_renovar,
        renovados=renovados,
        balance=balance,
        trend=trend
    )


def calculate_renovation_kpis(
    loans: Iterable[LoanForPortfolio],
    period_start: datetime,
    period_end: datetime,
    previous_tasa: Optional[Union[float, Decimal]] = None
) -> RenovationKPIs:
    """
    Calculate renewal KPIs of a period

    tasa_renovacion = renewals / (renewals + closes without renewal),
    0 when there were neither. The trend compares the unrounded rate.
    """
    total_renovaciones = 0
    total_cierres_sin_renovar = 0

    for loan in loans:
        if is_renewal_in_period(loan, period_start, period_end):
            total_renovaciones += 1
        if is_finished_without_renewal(loan, period_start, period_end):
            total_cierres_sin_renovar += 1

    total = total_renovaciones + total_cierres_sin_renovar
    tasa = Decimal(total_renovaciones) / Decimal(total) if total > 0 else ZERO

    tendencia = Trend.STABLE
    if previous_tasa is not None:
        tendencia = calculate_trend(tasa, to_decimal(previous_tasa))

    return RenovationKPIs(
        total_renovaciones=total_renovaciones,
        total_cierres_sin_renovar=total_cierres_sin_renovar,
        tasa_renovacion=round_ratio(tasa),
        tendencia=tendencia
    )


def count_clients_status(
    loans: Iterable[LoanForPortfolio],
    payments_map: Mapping[str, List[PaymentForCV]],
    active_week: WeekRange
) -> ClientsStatusCount:
    """
    Count active clients and how many of them are in CV

    Args:
        loans: Loans to analyze
        payments_map: Payments keyed by loan id
        active_week: The active week range

    Returns:
        ClientsStatusCount
    """
    total_activos = 0
    en_cv = 0

    for loan in loans:
        if not is_active_loan(loan):
            continue
        total_activos += 1
        if is_in_cartera_vencida(loan, payments_map.get(loan.id) or [], active_week):
            en_cv += 1

    log_action(
        logger, "info", "Client status counted",
        action="count_clients_status",
        extra={
            "week_start": active_week.start.isoformat(),
            "total_activos": total_activos,
            "en_cv": en_cv
        }
    )

    return ClientsStatusCount(
        total_activos=total_activos,
        en_cv=en_cv,
        al_corriente=total_activos - en_cv
    )

"""Weeks-out streak, time-off accrual and escrow.

The streak and the time-off balance for a pay date depend on the driver's
entire pay history, so they are derived by replaying every earlier pay week
in order. The replay is a fold over AccrualState:

    state = AccrualState()
    for week in history:            # chronological, one entry per pay date
        evaluation = evaluate(state, week, rules)   # policy specific
        state = settle(state, evaluation, week, rules)  # shared ledger

Two streak policies exist:

- fullWeeksOnly: the streak counts weeks. A week qualifies when no day was
  taken off and no reset override occurred.
- dailyAccrual: the streak counts consecutive working days and is read as
  fractional weeks (days / 7).

Days are earned as the streak passes whole weeks: reaching
``time_off_start_after_weeks`` grants ``time_off_base_days``, and every week
after that grants ``1 / time_off_weeks_per_day``. Days taken are charged
against the balance; days beyond the balance are not carried as debt, they
are paid through escrow instead. A reset override anywhere in a week
(NOT_STARTED, or CONTRACT_ENDED on a non-TPOG contract) wipes the streak
and the ledger.
"""

import logging
import math
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Sequence, Set

from .pay_week import WeekWindow, day_status, override_for, week_window
from .records import DriverWeek
from .schemas import RuleConfig

logger = logging.getLogger(__name__)


FULL_WEEKS_ONLY = "fullWeeksOnly"
DAILY_ACCRUAL = "dailyAccrual"
DAYS_PER_WEEK = 7


@dataclass(frozen=True)
class AccrualState:
    """Carried between pay weeks.

    Attributes:
        streak: Whole weeks (fullWeeksOnly) or consecutive days (dailyAccrual)
        earned_days: Days off earned since the last reset
        taken_days: Days off charged against earned_days (never exceeds it)
    """

    streak: int = 0
    earned_days: float = 0
    taken_days: float = 0

    @property
    def balance(self) -> float:
        return self.earned_days - self.taken_days


@dataclass(frozen=True)
class WeekObservation:
    """What happened on each day of one pay week (Tuesday..Monday)."""

    pay_date: str
    window: WeekWindow
    off: tuple  # bool per day
    resets: tuple  # bool per day

    @property
    def days_off(self) -> int:
        return sum(1 for o in self.off if o)

    @property
    def reset(self) -> bool:
        return any(self.resets)


@dataclass(frozen=True)
class WeekEvaluation:
    """Streak movement over one week, before the ledger is touched."""

    streak: int
    whole_weeks_before: int
    whole_weeks_after: int
    peak_whole_weeks: int
    weeks_out: float
    peak_weeks_out: float
    streak_at_start: float
    reset: bool


@dataclass(frozen=True)
class AccrualSnapshot:
    """Accrual values for the selected pay date."""

    weeks_out: float
    peak_weeks_out: float
    streak_at_start_of_week: float
    balance_at_start_of_week: float
    days_taken: int
    reset: bool


@dataclass(frozen=True)
class TimeOffSummary:
    """Off-day ledger shown on a report."""

    days_taken: int
    balance_at_start_of_week: float
    newly_earned: float
    available_off_days: float
    escrow_deduct: float
    escrow_overridden: bool = False


def observe_week(
    pay_date: str,
    pay_delay_wks: int,
    driver_name: str,
    days_off: Set[str],
    overrides: Dict[str, str],
    contract_type: str = "",
) -> WeekObservation:
    """Build the per-day picture of one pay week.

    Args:
        pay_date: Pay date of the week
        pay_delay_wks: Driver's pay delay for that record
        driver_name: Driver name (override keys use names)
        days_off: The driver's resolved day-off dates
        overrides: Dispatcher overrides
        contract_type: Driver contract type (TPOG ignores CONTRACT_ENDED)
    """
    window = week_window(pay_date, pay_delay_wks)
    off = []
    resets = []
    for day in window.days():
        day_str = day.isoformat()
        off.append(day_str in days_off)
        resets.append(day_status(override_for(driver_name, day_str, overrides), (), contract_type).resets)
    return WeekObservation(pay_date=pay_date, window=window, off=tuple(off), resets=tuple(resets))


def earned_between(whole_before: int, whole_after: int, rules: RuleConfig) -> float:
    """Days earned as the streak moves from one whole-week count to another."""
    start = rules.time_off_start_after_weeks
    per_week = 1 / rules.time_off_weeks_per_day
    earned = 0.0
    for week_number in range(whole_before + 1, whole_after + 1):
        if week_number == start:
            earned += rules.time_off_base_days
        elif week_number > start:
            earned += per_week
    return earned


def evaluate_full_weeks(state: AccrualState, week: WeekObservation, rules: RuleConfig) -> WeekEvaluation:
    """Full-weeks policy: +1 for a clean week, optional reset otherwise."""
    streak = state.streak
    qualifies = week.days_off == 0 and not week.reset

    if rules.weeks_out_reset_on_days_off and not qualifies:
        streak = 0
    start = streak

    if week.reset:
        after = 0
    elif qualifies:
        after = streak + 1
    else:
        after = streak

    return WeekEvaluation(
        streak=after,
        whole_weeks_before=start,
        whole_weeks_after=after,
        peak_whole_weeks=after,
        weeks_out=after,
        peak_weeks_out=after,
        streak_at_start=start,
        reset=week.reset,
    )


def evaluate_daily(state: AccrualState, week: WeekObservation, rules: RuleConfig) -> WeekEvaluation:
    """Daily policy: walk the seven days, tracking the peak day count."""
    days = state.streak
    before = days // DAYS_PER_WEEK
    peak = days

    for is_off, resets in zip(week.off, week.resets):
        if resets or (rules.weeks_out_reset_on_days_off and is_off):
            days = 0
        elif not is_off:
            days += 1
        peak = max(peak, days)

    return WeekEvaluation(
        streak=days,
        whole_weeks_before=before,
        whole_weeks_after=days // DAYS_PER_WEEK,
        peak_whole_weeks=peak // DAYS_PER_WEEK,
        weeks_out=days / DAYS_PER_WEEK,
        peak_weeks_out=peak / DAYS_PER_WEEK,
        streak_at_start=before,
        reset=week.reset,
    )


def evaluator_for(rules: RuleConfig) -> Callable[[AccrualState, WeekObservation, RuleConfig], WeekEvaluation]:
    if rules.weeks_out_method == DAILY_ACCRUAL:
        return evaluate_daily
    return evaluate_full_weeks


def settle(state: AccrualState, evaluation: WeekEvaluation, week: WeekObservation,
           rules: RuleConfig) -> AccrualState:
    """Apply a finished week to the ledger."""
    if evaluation.reset:
        return AccrualState(streak=evaluation.streak, earned_days=0, taken_days=0)

    earned = state.earned_days + earned_between(
        evaluation.whole_weeks_before, evaluation.whole_weeks_after, rules
    )
    taken = min(state.taken_days + week.days_off, earned)
    return AccrualState(streak=evaluation.streak, earned_days=earned, taken_days=taken)


def replay(history: Iterable[WeekObservation], selected_pay_date: str, rules: RuleConfig) -> AccrualSnapshot:
    """Fold a driver's pay history up to and including the selected week.

    Weeks after the selected pay date are ignored; a pay date that appears
    twice is processed once.

    Returns:
        AccrualSnapshot for the selected week (all zero if it isn't in history)
    """
    evaluate = evaluator_for(rules)
    state = AccrualState()
    seen: Set[str] = set()

    for week in sorted(history, key=lambda w: w.pay_date):
        if week.pay_date in seen:
            continue
        seen.add(week.pay_date)

        evaluation = evaluate(state, week, rules)

        if week.pay_date == selected_pay_date:
            return AccrualSnapshot(
                weeks_out=evaluation.weeks_out,
                peak_weeks_out=evaluation.peak_weeks_out,
                streak_at_start_of_week=0 if week.reset else evaluation.streak_at_start,
                balance_at_start_of_week=0 if week.reset else state.balance,
                days_taken=week.days_off,
                reset=week.reset,
            )

        state = settle(state, evaluation, week, rules)

    logger.debug(f"Pay date {selected_pay_date} not in history, returning empty snapshot")
    return AccrualSnapshot(
        weeks_out=0,
        peak_weeks_out=0,
        streak_at_start_of_week=0,
        balance_at_start_of_week=0,
        days_taken=0,
        reset=False,
    )


def replay_driver(
    driver: DriverWeek,
    history: Sequence[DriverWeek],
    days_off: Set[str],
    overrides: Dict[str, str],
    rules: RuleConfig,
) -> AccrualSnapshot:
    """Replay one driver's records (matched by name) up to driver.pay_date."""
    weeks = [
        observe_week(r.pay_date, r.pay_delay_wks, driver.name, days_off, overrides, r.contract_type)
        for r in history
        if r.name == driver.name and r.pay_date and r.pay_date <= driver.pay_date
    ]
    if not any(w.pay_date == driver.pay_date for w in weeks):
        weeks.append(observe_week(
            driver.pay_date, driver.pay_delay_wks, driver.name, days_off, overrides, driver.contract_type
        ))
    return replay(weeks, driver.pay_date, rules)


def compute_time_off(driver: DriverWeek, rules: RuleConfig) -> TimeOffSummary:
    """Off-day balance and escrow for the driver's selected week.

    Uses the accrual fields already on the record (weeks_out,
    peak_weeks_out, streak/balance at start of week, off_days). Manual
    ``available_off_days`` and ``escrow_deduct`` overrides are returned
    verbatim.
    """
    days_taken = driver.off_days
    balance_at_start = driver.balance_at_start_of_week
    streak_at_start = driver.streak_at_start_of_week
    current = driver.peak_weeks_out if driver.peak_weeks_out is not None else driver.weeks_out

    newly_earned = earned_between(math.floor(streak_at_start), math.floor(current), rules)

    if driver.available_off_days is not None:
        available = driver.available_off_days
    else:
        available = max(0, balance_at_start + newly_earned)

    if driver.escrow_deduct is not None:
        escrow = driver.escrow_deduct
    else:
        excess_days = max(0, days_taken - max(0, balance_at_start))
        escrow = excess_days * rules.escrow_deduction_amount

    return TimeOffSummary(
        days_taken=days_taken,
        balance_at_start_of_week=balance_at_start,
        newly_earned=newly_earned,
        available_off_days=available,
        escrow_deduct=escrow,
        escrow_overridden=driver.escrow_deduct is not None,
    )

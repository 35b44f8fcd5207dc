"""Pay weeks and per-day status resolution.

A pay week runs Tuesday through Monday. It is anchored to the pay date: the
week ends on the Monday on or before the performance date, which is the pay
date itself, or the pay date minus 7 days for drivers on a two-week pay
delay.

Day status comes from two sources. A dispatcher override (keyed
``driverName_YYYY-MM-DD``) always wins:

- DAY_OFF: the day is off
- NOT_STARTED / CONTRACT_ENDED: not off, but resets the streak and balance
- CORRECT: confirms the system status, which is then used
- anything else: not off

Without an override, the day is off if the activity log has a DAY_OFF
status for that date.
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

from .records import DayActivity, normalize_date, to_float


DAY_OFF = "DAY_OFF"
NOT_STARTED = "NOT_STARTED"
CONTRACT_ENDED = "CONTRACT_ENDED"
CORRECT = "CORRECT"

TPOG_CONTRACT = "TPOG"

DISQUALIFYING_STATUSES = (NOT_STARTED, CONTRACT_ENDED)

DAY_SHORT_LABELS = ("T", "W", "T", "F", "S", "S", "M")


def parse_date(date_str: Any) -> date:
    """Parse a date string in YYYY-MM-DD format (time part ignored)."""
    if isinstance(date_str, datetime):
        return date_str.date()
    if isinstance(date_str, date):
        return date_str
    return datetime.strptime(normalize_date(date_str), "%Y-%m-%d").date()


@dataclass(frozen=True)
class WeekWindow:
    """The Tuesday-Monday performance week behind a pay date."""

    performance_date: date
    start: date  # Tuesday
    end: date  # Monday

    def days(self) -> Iterator[date]:
        for offset in range(7):
            yield self.start + timedelta(days=offset)

    def contains(self, day: Any) -> bool:
        return self.start.isoformat() <= normalize_date(day) <= self.end.isoformat()


def week_window(pay_date: Any, pay_delay_wks: int = 0) -> WeekWindow:
    """Performance week for a pay date.

    Args:
        pay_date: Pay date (date or YYYY-MM-DD string)
        pay_delay_wks: Driver's pay delay; 2 shifts the week back 7 days

    Returns:
        WeekWindow ending on the Monday on/before the performance date
    """
    performance_date = parse_date(pay_date)
    if pay_delay_wks == 2:
        performance_date -= timedelta(days=7)

    monday = performance_date - timedelta(days=performance_date.weekday())
    tuesday = monday - timedelta(days=6)
    return WeekWindow(performance_date=performance_date, start=tuesday, end=monday)


def override_key(driver_name: str, day: Any) -> str:
    """Dispatcher override key for a driver and date."""
    return f"{driver_name}_{normalize_date(day)}"


def override_for(driver_name: str, day: Any, overrides: Dict[str, str]) -> Optional[str]:
    return overrides.get(override_key(driver_name, day))


def driver_override_dates(driver_name: str, overrides: Dict[str, str]) -> List[str]:
    """Dates that carry an override for this driver.

    The date is split off the right so driver names containing
    underscores still match.
    """
    dates = []
    for key in overrides:
        name, _, day = key.rpartition("_")
        if name == driver_name and day:
            dates.append(day)
    return dates


def index_statuses(log_entries: Iterable[Dict[str, Any]]) -> Dict[str, List[str]]:
    """Activity log statuses per date (unique, first-seen order)."""
    by_date: Dict[str, List[str]] = {}
    for entry in log_entries:
        day = normalize_date(entry.get("date"))
        if not day:
            continue
        status = entry.get("activity_status")
        statuses = by_date.setdefault(day, [])
        if status and status not in statuses:
            statuses.append(status)
    return by_date


@dataclass(frozen=True)
class DayStatus:
    """Resolved status of one day."""

    is_off: bool
    resets: bool  # NOT_STARTED, or CONTRACT_ENDED on a non-TPOG contract


def day_status(override: Optional[str], system_statuses: Iterable[str],
               contract_type: str = "") -> DayStatus:
    """Resolve whether a day is off and whether it resets accrual.

    CONTRACT_ENDED does not reset a TPOG contract.
    """
    if override == DAY_OFF:
        return DayStatus(is_off=True, resets=False)
    if override in DISQUALIFYING_STATUSES:
        resets = not (override == CONTRACT_ENDED and contract_type == TPOG_CONTRACT)
        return DayStatus(is_off=False, resets=resets)
    if override is not None and override != CORRECT:
        return DayStatus(is_off=False, resets=False)
    return DayStatus(is_off=DAY_OFF in system_statuses, resets=False)


def days_off_history(
    driver_name: str,
    log_entries: Iterable[Dict[str, Any]],
    overrides: Dict[str, str],
) -> Tuple[str, ...]:
    """Every date the driver was off, across all known dates.

    Known dates are the union of the driver's activity log dates and the
    dates the dispatcher overrode.

    Returns:
        Sorted, de-duplicated YYYY-MM-DD strings
    """
    statuses = index_statuses(log_entries)
    candidates = set(statuses) | set(driver_override_dates(driver_name, overrides))

    off = []
    for day in candidates:
        status = day_status(override_for(driver_name, day, overrides), statuses.get(day, []))
        if status.is_off:
            off.append(day)
    return tuple(sorted(off))


def count_days_in(days: Iterable[str], window: WeekWindow) -> int:
    return sum(1 for d in days if window.contains(d))


def weekly_activity(
    driver_name: str,
    window: WeekWindow,
    mileage_records: Iterable[Dict[str, Any]],
    log_entries: Iterable[Dict[str, Any]],
    overrides: Dict[str, str],
) -> Tuple[DayActivity, ...]:
    """Seven-day activity strip (Tuesday..Monday) for the dispatcher view."""
    mileage: Dict[str, float] = {}
    for record in mileage_records:
        day = normalize_date(record.get("date"))
        if day and window.contains(day):
            mileage[day] = mileage.get(day, 0) + to_float(record.get("movement"))

    statuses = index_statuses(log_entries)

    strip = []
    for label, day in zip(DAY_SHORT_LABELS, window.days()):
        day_str = day.isoformat()
        system = ", ".join(statuses.get(day_str, [])) or "No Data"
        override = override_for(driver_name, day_str, overrides)
        changed = bool(override) and override != CORRECT
        strip.append(DayActivity(
            date=day_str,
            day=label,
            mileage=mileage.get(day_str, 0),
            statuses=override if changed else system,
            system_status=system,
            override_status=override,
            is_overridden=bool(override),
            is_changed=changed,
        ))
    return tuple(strip)


def is_dispatcher_reviewed(driver_name: str, window: WeekWindow, overrides: Dict[str, str]) -> bool:
    """True when every day of the week has a dispatcher override."""
    return all(override_for(driver_name, day, overrides) for day in window.days())



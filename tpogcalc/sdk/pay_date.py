"""Per-pay-date processing pass.

Takes the raw records of one pay date and fills in everything the reports
need: weekly miles, Samsara distance, the day-off ledger, the activity
strip, the accrual replay, MPG and its source, cohort percentiles and the
underperformer flag.

Percentiles rank drivers against each other, so a pay date is always
processed as a whole. Records are never mutated; the pass returns new
DriverWeek copies.
"""

import logging
from dataclasses import replace
from typing import Dict, List, Optional, Sequence

from .accrual import replay_driver
from .pay_week import (
    WeekWindow,
    count_days_in,
    days_off_history,
    is_dispatcher_reviewed,
    week_window,
    weekly_activity,
)
from .percentile import assign_percentiles
from .records import DriverWeek, PayDateInputs, index_by_driver, normalize_date, to_float
from .schemas import RuleConfig
from .underperformer import detect_underperformer

logger = logging.getLogger(__name__)


DISTANCE_SOURCES = ("milesWeek", "samsaraDistance")
MPG_SOURCES = ("mpg", "stubMpg")


def source_key(driver: DriverWeek) -> str:
    """Key of distance/MPG source overrides: ``driverId_payDate``."""
    return f"{driver.id}_{normalize_date(driver.pay_date)}"


def _weekly_miles(records: Sequence[Dict], window: WeekWindow) -> List[Dict]:
    return [r for r in records if normalize_date(r.get("date")) and window.contains(r.get("date"))]


def _safety_record(records: Sequence[Dict], window: WeekWindow) -> Optional[Dict]:
    target = window.performance_date.isoformat()
    return next((r for r in records if normalize_date(r.get("date")) == target), None)


def resolve_mpg(driver: DriverWeek, distance_source: str, mpg_override: Optional[str]) -> DriverWeek:
    """Pick the distance source and the MPG value used for ranking.

    Calculated MPG is distance / gallons when both are positive. It is the
    default source when available, stub MPG otherwise; an override forces
    either.
    """
    if distance_source not in DISTANCE_SOURCES:
        logger.warning(f"{driver.name}: unknown distance source {distance_source!r}, using milesWeek")
        distance_source = "milesWeek"
    driver = replace(driver, distance_source=distance_source)

    distance = driver.distance
    calculated = distance / driver.gallons if driver.gallons > 0 and distance > 0 else 0

    source = "mpg" if calculated > 0 else "stubMpg"
    if mpg_override in MPG_SOURCES:
        source = mpg_override

    mpg = calculated if source == "mpg" else to_float(driver.stub_mpg)
    return replace(driver, mpg_source=source, mpg=mpg)


def process_driver(
    driver: DriverWeek,
    rules: RuleConfig,
    inputs: PayDateInputs,
    history: Sequence[DriverWeek],
    mileage_index: Dict[str, List[Dict]],
    safety_index: Dict[str, List[Dict]],
    activity_index: Dict[str, List[Dict]],
) -> DriverWeek:
    """Everything except percentiles and the underperformer check."""
    window = week_window(driver.pay_date, driver.pay_delay_wks)
    overrides = inputs.dispatcher_overrides
    log_entries = activity_index.get(driver.name, [])

    # Miles and Samsara distance
    week_records = _weekly_miles(mileage_index.get(driver.name, []), window)
    miles_week = round(sum(to_float(r.get("movement")) for r in week_records))

    samsara_distance = driver.samsara_distance
    safety_record = _safety_record(safety_index.get(driver.name, []), window)
    if safety_record and to_float(safety_record.get("totalDistance")):
        samsara_distance = round(to_float(safety_record.get("totalDistance")))

    # Day-off ledger
    days_off = days_off_history(driver.name, log_entries, overrides)
    previously = sum(1 for day in days_off if day < window.start.isoformat())

    # Accrual replay
    snapshot = replay_driver(driver, history, set(days_off), overrides, rules)

    driver = replace(
        driver,
        miles_week=miles_week,
        has_prologs_data=bool(week_records),
        samsara_distance=samsara_distance,
        has_samsara_data=safety_record is not None,
        days_off_history=days_off,
        off_days=count_days_in(days_off, window),
        total_days_taken_previously=previously,
        weekly_activity=weekly_activity(
            driver.name, window, mileage_index.get(driver.name, []), log_entries, overrides
        ),
        is_dispatcher_reviewed=is_dispatcher_reviewed(driver.name, window, overrides),
        weeks_out=snapshot.weeks_out,
        peak_weeks_out=snapshot.peak_weeks_out,
        streak_at_start_of_week=snapshot.streak_at_start_of_week,
        balance_at_start_of_week=snapshot.balance_at_start_of_week,
    )

    key = source_key(driver)
    return resolve_mpg(
        driver,
        inputs.distance_overrides.get(key, "milesWeek"),
        inputs.mpg_overrides.get(key),
    )


def process_pay_date(
    drivers_for_date: Sequence[DriverWeek],
    rules: RuleConfig,
    inputs: Optional[PayDateInputs] = None,
    all_drivers: Optional[Sequence[DriverWeek]] = None,
) -> List[DriverWeek]:
    """Process every driver of one pay date.

    Args:
        drivers_for_date: All driver records of the pay date
        rules: Rule configuration
        inputs: Mileage, safety, activity log and override data
        all_drivers: Every known record across pay dates, used for the
            accrual replay and the underperformer history (defaults to
            drivers_for_date)

    Returns:
        Processed copies, in input order
    """
    if not drivers_for_date:
        return []

    inputs = inputs or PayDateInputs()
    history = list(all_drivers) if all_drivers is not None else list(drivers_for_date)

    mileage_index = index_by_driver(inputs.mileage)
    safety_index = index_by_driver(inputs.safety)
    activity_index = index_by_driver(inputs.activity_log)

    logger.debug(
        f"Processing {len(drivers_for_date)} driver(s) for {drivers_for_date[0].pay_date} "
        f"against {len(history)} historical record(s)"
    )

    processed = [
        process_driver(d, rules, inputs, history, mileage_index, safety_index, activity_index)
        for d in drivers_for_date
    ]
    processed = assign_percentiles(processed, rules.include_zeros_in_speeding_calc)

    if inputs.locked_snapshots:
        flagged = []
        for driver in processed:
            check = detect_underperformer(driver, history, inputs.locked_snapshots)
            flagged.append(replace(
                driver,
                is_underperformer=check.is_underperformer,
                underperformer_reason=check.reason_text,
            ))
        processed = flagged

    return processed

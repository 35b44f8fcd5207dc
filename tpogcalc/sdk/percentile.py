"""Cohort-relative percentile ranking.

A driver's percentile is the share of the cohort strictly below them:

    percentile = round(100 * rank / max(cohort_size - 1, 1))

Two entry points exist with deliberately different edge cases:

- ``assign_percentiles`` is the per-pay-date batch pass. The driver being
  ranked is always a member of the cohort, and an empty cohort gives 0.
- ``calculate_mpg_percentile`` / ``calculate_speeding_percentile`` probe a
  single hypothetical value against a cohort (e.g. "what if this driver
  had 7.2 MPG"). Here the value need not be a member; an empty MPG cohort
  gives 100 (the probe is the only driver with MPG) and anything at or
  above the cohort maximum gives 100.
"""

import logging
import math
from dataclasses import replace
from typing import Iterable, List, Sequence

from .records import DriverWeek, to_float

logger = logging.getLogger(__name__)


def round_half_up(value: float) -> int:
    """Round .5 upwards, as dashboards expect (not banker's rounding)."""
    return int(math.floor(value + 0.5))


def rank_percentile(value: float, population: Sequence[float]) -> int:
    """Percentile of value within population, clamped to [0, 100].

    Args:
        value: The value being ranked
        population: Cohort values (the value itself may or may not be included)

    Returns:
        Integer percentile in [0, 100]
    """
    rank = sum(1 for v in population if v < value)
    denominator = max(len(population) - 1, 1)
    percentile = round_half_up(100 * rank / denominator)
    return max(0, min(100, percentile))


def mpg_cohort(drivers: Iterable[DriverWeek]) -> List[float]:
    """MPG values of the drivers that have MPG data."""
    return [d.mpg for d in drivers if d.mpg > 0]


def speeding_cohort(drivers: Iterable[DriverWeek], include_zeros: bool) -> List[int]:
    """Speeding alert counts forming the ranking population."""
    if include_zeros:
        return [d.speeding_alerts for d in drivers]
    return [d.speeding_alerts for d in drivers if d.speeding_alerts > 0]


def assign_percentiles(drivers: Sequence[DriverWeek], include_zeros: bool = False) -> List[DriverWeek]:
    """Compute MPG and speeding percentiles for every driver of a pay date.

    The whole pay date must be passed at once; ranking a partial cohort gives
    inconsistent percentiles.

    Args:
        drivers: All drivers of one pay date
        include_zeros: Rank drivers with zero speeding alerts too

    Returns:
        Copies of the drivers with mpg_percentile and speeding_percentile set
    """
    mpgs = mpg_cohort(drivers)
    alerts = speeding_cohort(drivers, include_zeros)
    logger.debug(
        f"Ranking {len(drivers)} driver(s): mpg cohort={len(mpgs)}, speeding cohort={len(alerts)}"
    )

    result = []
    for driver in drivers:
        if driver.mpg > 0 and mpgs:
            mpg_pct = rank_percentile(driver.mpg, mpgs)
        else:
            mpg_pct = 0

        if not alerts:
            speeding_pct = 0
        elif not include_zeros and driver.speeding_alerts == 0:
            speeding_pct = 0
        else:
            speeding_pct = rank_percentile(driver.speeding_alerts, alerts)

        result.append(replace(driver, mpg_percentile=mpg_pct, speeding_percentile=speeding_pct))

    return result


def calculate_mpg_percentile(mpg_value: float, drivers: Iterable[DriverWeek]) -> int:
    """Percentile a hypothetical MPG value would have within a cohort.

    Returns:
        0 for a missing or non-positive value, 100 when nobody else has MPG
        data or the value ties/beats the best, else the rank percentile
    """
    mpg_value = to_float(mpg_value)
    if mpg_value <= 0:
        return 0

    cohort = mpg_cohort(drivers)
    if not cohort:
        return 100
    if mpg_value >= max(cohort):
        return 100

    return rank_percentile(mpg_value, cohort)


def calculate_speeding_percentile(
    speeding_value: float,
    drivers: Iterable[DriverWeek],
    include_zeros: bool = False,
) -> int:
    """Percentile a hypothetical speeding alert count would have within a cohort.

    Returns:
        0 for a missing value, an empty cohort, or an excluded zero; 100 at
        or above the cohort maximum; else the rank percentile
    """
    try:
        speeding_value = float(speeding_value)
    except (TypeError, ValueError):
        return 0
    if math.isnan(speeding_value):
        return 0

    cohort = speeding_cohort(drivers, include_zeros)
    if not cohort:
        return 0
    if not include_zeros and speeding_value == 0:
        return 0
    if speeding_value >= max(cohort):
        return 100

    return rank_percentile(speeding_value, cohort)

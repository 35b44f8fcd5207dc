"""Per-metric bonus and penalty calculators.

Each calculator takes a driver week and the rule configuration and returns a
MetricResult with a signed percentage. Disabled metrics return 0. If the
driver is excluded from a metric (``ignore_*`` flags on the record), the
computed amount is reported as ``potential_bonus`` and ``bonus`` is 0.
"""

import math
from dataclasses import dataclass
from typing import Optional, Sequence

from .records import DriverWeek
from .schemas import RuleConfig
from .tiers import (
    resolve_range,
    resolve_threshold,
    sorted_threshold_tiers,
    sum_milestones,
)


@dataclass(frozen=True)
class MetricResult:
    """One report line item."""

    bonus: float = 0
    info_text: Optional[str] = None
    potential_bonus: Optional[float] = None
    ignored: bool = False

    def to_dict(self) -> dict:
        data = {"bonus": self.bonus}
        if self.info_text is not None:
            data["info_text"] = self.info_text
        if self.ignored:
            data["potential_bonus"] = self.potential_bonus
            data["ignored"] = True
        return data


def _result(amount: float, excluded: bool, info_text: Optional[str] = None) -> MetricResult:
    if excluded:
        return MetricResult(bonus=0, info_text=info_text, potential_bonus=amount, ignored=True)
    return MetricResult(bonus=amount, info_text=info_text)


def weeks_out_bonus(driver: DriverWeek, rules: RuleConfig) -> MetricResult:
    """Threshold tier bonus for the consecutive weeks-out streak."""
    if not rules.enabled_metrics.weeks_out:
        return MetricResult()
    amount = resolve_threshold(driver.weeks_out, rules.weeks_out_tiers)
    return _result(amount, driver.excluded("weeks_out"))


def safety_bonus(driver: DriverWeek, rules: RuleConfig) -> MetricResult:
    """Flat bonus for a safety score and mileage both at threshold.

    Forfeited entirely when the rules say so and the driver had any
    speeding alert that week.
    """
    if not rules.enabled_metrics.safety:
        return MetricResult()

    score_met = driver.safety_score >= rules.safety_score_threshold
    miles_met = driver.stub_miles >= rules.safety_score_mileage_threshold
    forfeited = rules.safety_bonus_forfeited_on_speeding and driver.speeding_alerts > 0

    amount = rules.safety_score_bonus if (score_met and miles_met and not forfeited) else 0
    return _result(amount, driver.excluded("safety"))


def speeding_penalty(driver: DriverWeek, rules: RuleConfig) -> MetricResult:
    """Speeding penalty under the configured method.

    - percentile: tier lookup on the speeding percentile, from 2 alerts up
    - perEvent: fixed penalty per alert beyond (minimum - 1)
    - range: range tier lookup on the alert count
    """
    if not rules.enabled_metrics.safety:
        return MetricResult()

    alerts = driver.speeding_alerts
    method = rules.speeding_penalty_method
    amount = 0.0

    if method == "percentile":
        if alerts >= 2:
            amount = resolve_threshold(driver.speeding_percentile, rules.speeding_percentile_tiers)
    elif method == "perEvent":
        minimum = rules.speeding_per_event_minimum or 2
        if alerts >= minimum:
            per_event = rules.speeding_per_event_penalty or -1.0
            amount = (alerts - (minimum - 1)) * per_event
    elif method == "range":
        amount = resolve_range(alerts, rules.speeding_range_tiers, key="penalty")

    return _result(amount, driver.excluded("safety"))


def target_mpg(percentile: float, cohort_mpgs: Sequence[float]) -> float:
    """MPG a driver needs to reach a percentile, by nearest rank.

    Args:
        percentile: Target percentile (a tier threshold)
        cohort_mpgs: MPG values of the pay date's drivers

    Returns:
        The cohort MPG at that rank, or 0 when nobody has MPG data
    """
    values = sorted(m for m in cohort_mpgs if m > 0)
    if len(values) > 1:
        index = math.ceil((percentile / 100) * (len(values) - 1))
        index = max(0, min(len(values) - 1, index))
        return values[index]
    if len(values) == 1:
        return values[0]
    return 0


def _fuel_info_text(driver: DriverWeek, rules: RuleConfig, bonus: float,
                    cohort: Sequence[DriverWeek]) -> str:
    tiers = sorted_threshold_tiers(rules.mpg_percentile_tiers)

    if bonus < 0:
        target = next((t for t in tiers if t[1] >= 0), None)
    else:
        target = next((t for t in tiers if t[1] > bonus), None)

    if target is None:
        return "Maximum fuel bonus reached."

    target_threshold, target_bonus = target

    if not cohort:
        if bonus < 0:
            return "Improve MPG to remove penalty."
        return f"Reach the Top {100 - target_threshold:g}% of the fleet for the next bonus."

    goal = target_mpg(target_threshold, [d.mpg for d in cohort])
    if goal > 0 and goal > driver.mpg:
        if bonus < 0:
            return f"Reach {goal:.1f} MPG to remove the penalty."
        return f"Reach {goal:.1f} MPG for a +{target_bonus:.1f}% bonus."
    return "Keep up the great work!"


def fuel_bonus(driver: DriverWeek, rules: RuleConfig,
               cohort: Sequence[DriverWeek] = ()) -> MetricResult:
    """MPG percentile tier bonus plus an advisory MPG target.

    Args:
        driver: Driver week (mpg and mpg_percentile already computed)
        rules: Rule configuration
        cohort: Drivers of the same pay date, used for the MPG target
    """
    if not rules.enabled_metrics.fuel:
        return MetricResult(info_text="Fuel metric disabled.")

    threshold = rules.fuel_mileage_threshold or 0
    amount = 0.0

    if driver.stub_miles >= threshold and driver.mpg > 0:
        amount = resolve_threshold(driver.mpg_percentile, rules.mpg_percentile_tiers)
        info_text = _fuel_info_text(driver, rules, amount, cohort)
    elif driver.stub_miles < threshold:
        info_text = f"Drive {threshold:g} miles to qualify for fuel bonus."
    else:
        info_text = "No MPG data available to calculate bonus."

    return _result(amount, driver.excluded("fuel"), info_text)


def tenure_bonus(driver: DriverWeek, rules: RuleConfig) -> MetricResult:
    """Cumulative tenure bonus: every milestone reached adds its bonus."""
    if not rules.enabled_metrics.tenure:
        return MetricResult()
    amount = sum_milestones(driver.tenure, rules.tenure_milestones)
    return _result(amount, driver.excluded("tenure"))


def gross_target_bonus(driver: DriverWeek, rules: RuleConfig) -> MetricResult:
    """Range tier bonus on weekly gross pay."""
    if not rules.enabled_metrics.gross_target:
        return MetricResult()
    amount = resolve_range(driver.gross, rules.gross_target_tiers, key="bonus")
    return _result(amount, driver.excluded("gross_bonus"))

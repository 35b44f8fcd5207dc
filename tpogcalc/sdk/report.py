"""Weekly TPOG report.

Combines the six metric calculators into one report:

    total_tpog    = base_rate + sum(metric bonuses)
    estimated_net = total_tpog / 100 * gross

A driver with no gross pay gets the base rate and a zero net without any
metric being evaluated; the time-off ledger is still filled in.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Sequence

from .accrual import TimeOffSummary, compute_time_off
from .metrics import (
    MetricResult,
    fuel_bonus,
    gross_target_bonus,
    safety_bonus,
    speeding_penalty,
    tenure_bonus,
    weeks_out_bonus,
)
from .records import DriverWeek
from .schemas import RuleConfig

logger = logging.getLogger(__name__)


LINE_ITEMS = (
    "Weeks Out",
    "Safety Score",
    "Speeding Penalty",
    "Fuel Efficiency",
    "Tenure",
    "Gross Target",
)


@dataclass
class Report:
    """TPOG report for one driver week."""

    driver_name: str
    pay_date: str
    gross: float
    base_rate: float
    bonuses: Dict[str, MetricResult] = field(default_factory=dict)
    total_bonus: float = 0
    total_positive_bonuses: float = 0
    total_penalties: float = 0
    bonuses_in_dollars: float = 0
    penalties_in_dollars: float = 0
    total_tpog: float = 0
    estimated_net: float = 0
    time_off: Optional[TimeOffSummary] = None

    @property
    def available_off_days(self) -> float:
        return self.time_off.available_off_days

    @property
    def escrow_deduct(self) -> float:
        return self.time_off.escrow_deduct

    @property
    def days_taken(self) -> int:
        return self.time_off.days_taken

    def to_dict(self) -> Dict[str, Any]:
        return {
            "driver_name": self.driver_name,
            "pay_date": self.pay_date,
            "gross": self.gross,
            "base_rate": self.base_rate,
            "bonuses": {name: result.to_dict() for name, result in self.bonuses.items()},
            "total_bonus": self.total_bonus,
            "total_positive_bonuses": self.total_positive_bonuses,
            "total_penalties": self.total_penalties,
            "bonuses_in_dollars": self.bonuses_in_dollars,
            "penalties_in_dollars": self.penalties_in_dollars,
            "total_tpog": self.total_tpog,
            "estimated_net": self.estimated_net,
            "available_off_days": self.available_off_days,
            "escrow_deduct": self.escrow_deduct,
            "days_taken": self.days_taken,
        }


def _line_items(driver: DriverWeek, rules: RuleConfig,
                cohort: Sequence[DriverWeek]) -> Dict[str, MetricResult]:
    return {
        "Weeks Out": weeks_out_bonus(driver, rules),
        "Safety Score": safety_bonus(driver, rules),
        "Speeding Penalty": speeding_penalty(driver, rules),
        "Fuel Efficiency": fuel_bonus(driver, rules, cohort),
        "Tenure": tenure_bonus(driver, rules),
        "Gross Target": gross_target_bonus(driver, rules),
    }


def calculate_report(driver: DriverWeek, rules: RuleConfig,
                     cohort: Sequence[DriverWeek] = ()) -> Report:
    """Build the TPOG report for a driver week.

    Args:
        driver: Driver week, already through the pay-date pass (percentiles
            and accrual fields set)
        rules: Rule configuration
        cohort: Drivers of the same pay date, only used for the fuel MPG target

    Returns:
        Report with line items, totals and the time-off ledger
    """
    time_off = compute_time_off(driver, rules)
    report = Report(
        driver_name=driver.name,
        pay_date=driver.pay_date,
        gross=driver.gross,
        base_rate=rules.base_rate,
        time_off=time_off,
    )

    if driver.gross <= 0:
        logger.debug(f"{driver.name} {driver.pay_date}: no gross pay, base rate only")
        report.bonuses = {name: MetricResult() for name in LINE_ITEMS}
        report.total_tpog = rules.base_rate
        report.estimated_net = 0
        return report

    report.bonuses = _line_items(driver, rules, cohort)
    amounts = [result.bonus for result in report.bonuses.values()]

    report.total_bonus = sum(amounts)
    report.total_positive_bonuses = sum(a for a in amounts if a > 0)
    report.total_penalties = sum(a for a in amounts if a < 0)
    report.bonuses_in_dollars = (report.total_positive_bonuses / 100) * driver.gross
    report.penalties_in_dollars = (report.total_penalties / 100) * driver.gross
    report.total_tpog = rules.base_rate + report.total_bonus
    report.estimated_net = (report.total_tpog / 100) * driver.gross

    logger.debug(
        f"{driver.name} {driver.pay_date}: TPOG {report.total_tpog:.2f}% "
        f"(bonus {report.total_bonus:+.2f}), net ${report.estimated_net:,.2f}"
    )
    return report


def calculate_tpog(driver: DriverWeek, rules: RuleConfig) -> float:
    """Just the final TPOG percentage for a driver week."""
    return calculate_report(driver, rules).total_tpog

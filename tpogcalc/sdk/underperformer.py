"""Underperformer detection from locked weekly snapshots.

Only locked weeks count, since those are the figures the driver was actually
paid on. A driver is flagged when the most recent weeks fail both checks:

- sum check: total gross or total stub miles below the tier minimum
- median check: median gross <= 6000 or median stub miles <= 2500

The tier depends on how many usable snapshots exist (at least 4 are needed).
"""

import json
import logging
import statistics
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .pay_week import DISQUALIFYING_STATUSES, TPOG_CONTRACT
from .records import DriverWeek, normalize_date, to_float

logger = logging.getLogger(__name__)


MIN_SNAPSHOTS = 4
MEDIAN_GROSS_FLOOR = 6000
MEDIAN_MILES_FLOOR = 2500

# (snapshots available, weeks checked, min gross sum, min miles sum),
# most demanding first.
SUM_TIERS: Tuple[Tuple[int, int, float, float], ...] = (
    (6, 6, 30000, 12000),
    (5, 5, 25000, 10000),
    (4, 4, 20000, 8000),
)


@dataclass(frozen=True)
class WeekSnapshot:
    pay_date: str
    gross: float
    stub_miles: float


@dataclass
class UnderperformerCheck:
    """Outcome of the underperformer check for one driver."""

    is_underperformer: bool = False
    weeks_checked: int = 0
    sum_gross: float = 0
    sum_miles: float = 0
    median_gross: float = 0
    median_miles: float = 0
    reasons: List[str] = field(default_factory=list)

    @property
    def reason_text(self) -> str:
        if not self.is_underperformer:
            return ""
        return "Underperformer:\n" + "\n".join(self.reasons)


def _parse_snapshot(raw: Any) -> Optional[Dict[str, Any]]:
    if isinstance(raw, dict):
        return raw
    if isinstance(raw, str):
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning(f"Skipping unreadable locked snapshot: {e}")
            return None
        return parsed if isinstance(parsed, dict) else None
    return None


def is_fully_inactive(snapshot: Dict[str, Any]) -> bool:
    """True when every day of the snapshot week is NOT_STARTED/CONTRACT_ENDED."""
    days = snapshot.get("weeklyActivity") or snapshot.get("weekly_activity") or []
    for day in days:
        status = str(day.get("statuses") or "").upper()
        if not any(s in status for s in DISQUALIFYING_STATUSES):
            return False
    return True


def collect_snapshots(
    driver: DriverWeek,
    history: Sequence[DriverWeek],
    locked_snapshots: Dict[str, Any],
) -> List[WeekSnapshot]:
    """Usable locked snapshots for the driver, newest first.

    Only TPOG records up to the driver's pay date count, and snapshots
    without an activity strip or with a fully inactive week are skipped.
    """
    snapshots = []
    for record in history:
        if record.name != driver.name or record.contract_type != TPOG_CONTRACT:
            continue
        pay_date = normalize_date(record.pay_date)
        if pay_date > driver.pay_date:
            continue

        snapshot = _parse_snapshot(locked_snapshots.get(f"{record.id}_{pay_date}"))
        if snapshot is None:
            continue
        activity = snapshot.get("weeklyActivity", snapshot.get("weekly_activity"))
        if not isinstance(activity, list) or is_fully_inactive(snapshot):
            continue

        snapshots.append(WeekSnapshot(
            pay_date=pay_date,
            gross=to_float(snapshot.get("gross")),
            stub_miles=to_float(snapshot.get("stubMiles", snapshot.get("stub_miles"))),
        ))

    return sorted(snapshots, key=lambda s: s.pay_date, reverse=True)


def evaluate_snapshots(snapshots: Sequence[WeekSnapshot]) -> UnderperformerCheck:
    """Run the sum and median checks over snapshots sorted newest first."""
    count = len(snapshots)
    if count < MIN_SNAPSHOTS:
        return UnderperformerCheck()

    weeks, min_gross, min_miles = next(
        (weeks, gross, miles) for needed, weeks, gross, miles in SUM_TIERS if count >= needed
    )
    recent = snapshots[:weeks]

    check = UnderperformerCheck(weeks_checked=weeks)
    check.sum_gross = sum(s.gross for s in recent)
    check.sum_miles = sum(s.stub_miles for s in recent)
    check.median_gross = statistics.median(s.gross for s in recent)
    check.median_miles = statistics.median(s.stub_miles for s in recent)

    sum_failing = check.sum_gross < min_gross or check.sum_miles < min_miles
    median_failing = (
        check.median_gross <= MEDIAN_GROSS_FLOOR or check.median_miles <= MEDIAN_MILES_FLOOR
    )
    if not (sum_failing and median_failing):
        return check

    check.is_underperformer = True
    check.reasons.append(f"(Last {weeks} wks)")
    if check.sum_gross < min_gross:
        check.reasons.append(f"Sum Gross ${round(check.sum_gross)} < ${min_gross}")
    if check.sum_miles < min_miles:
        check.reasons.append(f"Sum Miles {round(check.sum_miles)} < {min_miles}")
    if check.median_gross <= MEDIAN_GROSS_FLOOR:
        check.reasons.append(f"Median Gross ${round(check.median_gross)} <= ${MEDIAN_GROSS_FLOOR}")
    if check.median_miles <= MEDIAN_MILES_FLOOR:
        check.reasons.append(f"Median Miles {round(check.median_miles)} <= {MEDIAN_MILES_FLOOR}")
    return check


def detect_underperformer(
    driver: DriverWeek,
    history: Sequence[DriverWeek],
    locked_snapshots: Dict[str, Any],
) -> UnderperformerCheck:
    """Check one driver against their locked history."""
    check = evaluate_snapshots(collect_snapshots(driver, history, locked_snapshots))
    if check.is_underperformer:
        logger.debug(f"{driver.name} flagged as underperformer over {check.weeks_checked} weeks")
    return check

"""Driver week records and pay-date input bundles.

Raw records come from the ingestion side as loosely typed dicts, usually
with the camelCase keys of the dispatch sheets (``safetyScore``,
``pay_delayWks``, ``gallons_fictive``...). ``DriverWeek.from_dict`` turns
them into a typed, frozen record: every numeric field that is missing, NaN
or unparseable becomes 0, so the calculators never have to guard against
bad input.

Calculation passes never mutate a DriverWeek. They return augmented copies
via ``dataclasses.replace``.
"""

import json
import logging
import math
from dataclasses import dataclass, field, asdict
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

logger = logging.getLogger(__name__)


def to_float(value: Any) -> float:
    """Coerce to float; None, NaN, infinities and junk become 0."""
    if isinstance(value, bool):
        return float(value)
    try:
        result = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(result) or math.isinf(result):
        return 0.0
    return result


def to_int(value: Any) -> int:
    """Coerce to int via to_float (truncating)."""
    return int(to_float(value))


def to_bool(value: Any) -> bool:
    """Exclusion flags arrive as booleans or the strings 'true'/'false'."""
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return value is True


def normalize_date(value: Any) -> str:
    """Reduce a date, datetime or ISO string to YYYY-MM-DD."""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if value is None:
        return ""
    return str(value).split("T")[0].strip()


@dataclass(frozen=True)
class DayActivity:
    """One day of the Tuesday-Monday activity strip."""

    date: str
    day: str  # short label, "T" for Tuesday ... "M" for Monday
    mileage: float
    statuses: str  # final status shown to the dispatcher
    system_status: str  # activity log statuses, or "No Data"
    override_status: Optional[str] = None
    is_overridden: bool = False
    is_changed: bool = False


# Raw keys accepted for each DriverWeek field, first match wins.
_FIELD_KEYS: Dict[str, Tuple[str, ...]] = {
    "id": ("id", "driver_id", "driverId"),
    "name": ("name", "driver_name", "driverName"),
    "pay_date": ("pay_date", "payDate"),
    "contract_type": ("contract_type", "contractType"),
    "pay_delay_wks": ("pay_delay_wks", "pay_delayWks", "payDelayWks"),
    "gross": ("gross",),
    "rpm": ("rpm",),
    "safety_score": ("safety_score", "safetyScore"),
    "stub_miles": ("stub_miles", "stubMiles"),
    "speeding_alerts": ("speeding_alerts", "speedingAlerts"),
    "miles_week": ("miles_week", "milesWeek"),
    "samsara_distance": ("samsara_distance", "samsaraDistance"),
    "gallons": ("gallons", "gallons_fictive"),
    "stub_mpg": ("stub_mpg", "stubMpg"),
    "mpg": ("mpg",),
    "tenure": ("tenure",),
    "mpg_percentile": ("mpg_percentile", "mpgPercentile"),
    "speeding_percentile": ("speeding_percentile", "speedingPercentile"),
    "off_days": ("off_days", "offDays"),
    "total_days_taken_previously": ("total_days_taken_previously", "totalDaysTakenPreviously"),
    "balance_at_start_of_week": ("balance_at_start_of_week", "balanceAtStartOfWeek"),
    "streak_at_start_of_week": ("streak_at_start_of_week", "streakAtStartOfWeek"),
    "weeks_out": ("weeks_out", "weeksOut"),
    "peak_weeks_out": ("peak_weeks_out", "peakWeeksOut"),
    "escrow_deduct": ("escrow_deduct", "escrowDeduct"),
    "available_off_days": ("available_off_days", "availableOffDays"),
    "ignore_all": ("ignore_all", "ignoreAll"),
    "ignore_weeks_out": ("ignore_weeks_out", "ignoreWeeksOut"),
    "ignore_safety": ("ignore_safety", "ignoreSafety"),
    "ignore_fuel": ("ignore_fuel", "ignoreFuel"),
    "ignore_tenure": ("ignore_tenure", "ignoreTenure"),
    "ignore_gross_bonus": ("ignore_gross_bonus", "ignoreGrossBonus"),
}

_STR_FIELDS = {"id", "name", "contract_type"}
_INT_FIELDS = {
    "pay_delay_wks", "speeding_alerts", "mpg_percentile",
    "speeding_percentile", "off_days", "total_days_taken_previously",
}
_BOOL_FIELDS = {
    "ignore_all", "ignore_weeks_out", "ignore_safety",
    "ignore_fuel", "ignore_tenure", "ignore_gross_bonus",
}
# None means "not supplied"; these stay None rather than defaulting to 0.
_OPTIONAL_FIELDS = {"peak_weeks_out", "escrow_deduct", "available_off_days"}


@dataclass(frozen=True)
class DriverWeek:
    """One driver's record for one pay date."""

    name: str
    pay_date: str
    id: str = ""
    contract_type: str = ""
    pay_delay_wks: int = 0

    # Financials
    gross: float = 0.0
    rpm: float = 0.0

    # Performance metrics
    safety_score: float = 0.0
    stub_miles: float = 0.0
    speeding_alerts: int = 0
    miles_week: float = 0.0
    samsara_distance: float = 0.0
    gallons: float = 0.0
    stub_mpg: float = 0.0
    mpg: float = 0.0
    tenure: float = 0.0
    mpg_percentile: int = 0
    speeding_percentile: int = 0

    # Time off
    off_days: int = 0
    total_days_taken_previously: int = 0
    balance_at_start_of_week: float = 0.0
    streak_at_start_of_week: float = 0.0
    weeks_out: float = 0.0
    peak_weeks_out: Optional[float] = None

    # Manual overrides
    escrow_deduct: Optional[float] = None
    available_off_days: Optional[float] = None

    # Exclusions
    ignore_all: bool = False
    ignore_weeks_out: bool = False
    ignore_safety: bool = False
    ignore_fuel: bool = False
    ignore_tenure: bool = False
    ignore_gross_bonus: bool = False

    # Filled in by the pay-date pass
    distance_source: str = "milesWeek"
    mpg_source: str = ""
    has_prologs_data: bool = False
    has_samsara_data: bool = False
    is_dispatcher_reviewed: bool = False
    weekly_activity: Tuple[DayActivity, ...] = ()
    days_off_history: Tuple[str, ...] = ()
    is_underperformer: bool = False
    underperformer_reason: str = ""

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "DriverWeek":
        """Build a record from an ingestion dict, coercing every field."""
        values: Dict[str, Any] = {}

        for name, keys in _FIELD_KEYS.items():
            present = [k for k in keys if k in raw]
            if not present:
                continue
            value = raw[present[0]]

            if name == "pay_date":
                values[name] = normalize_date(value)
            elif name in _STR_FIELDS:
                values[name] = "" if value is None else str(value)
            elif name in _BOOL_FIELDS:
                values[name] = to_bool(value)
            elif name in _INT_FIELDS:
                values[name] = to_int(value)
            elif name == "escrow_deduct" and value is None:
                # a present escrow key is an override, even when empty
                values[name] = 0.0
            elif name in _OPTIONAL_FIELDS and value is None:
                continue
            else:
                values[name] = to_float(value)

        values.setdefault("name", "")
        values.setdefault("pay_date", "")
        return cls(**values)

    @property
    def distance(self) -> float:
        """Weekly distance from the selected distance source."""
        if self.distance_source == "samsaraDistance":
            return self.samsara_distance
        return self.miles_week

    def excluded(self, metric: str) -> bool:
        """True if the driver is excluded from a metric (or from all)."""
        return self.ignore_all or getattr(self, f"ignore_{metric}", False)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["weekly_activity"] = [asdict(d) for d in self.weekly_activity]
        data["days_off_history"] = list(self.days_off_history)
        return data


@dataclass
class PayDateInputs:
    """Everything besides the driver records that a pay-date pass reads.

    Attributes:
        mileage: Mileage records ``{driver_name, date, movement}``
        safety: Safety records ``{driver_name, date, totalDistance}``
        activity_log: Status change log ``{driver_name, date, activity_status}``
        dispatcher_overrides: ``driverName_YYYY-MM-DD`` -> day status
        distance_overrides: ``driverId_payDate`` -> ``milesWeek|samsaraDistance``
        mpg_overrides: ``driverId_payDate`` -> ``mpg|stubMpg``
        locked_snapshots: ``driverId_payDate`` -> locked snapshot (dict or JSON)
    """

    mileage: List[Dict[str, Any]] = field(default_factory=list)
    safety: List[Dict[str, Any]] = field(default_factory=list)
    activity_log: List[Dict[str, Any]] = field(default_factory=list)
    dispatcher_overrides: Dict[str, str] = field(default_factory=dict)
    distance_overrides: Dict[str, str] = field(default_factory=dict)
    mpg_overrides: Dict[str, str] = field(default_factory=dict)
    locked_snapshots: Dict[str, Any] = field(default_factory=dict)


def record_driver_name(record: Dict[str, Any]) -> str:
    """Driver name of a mileage/safety/activity record."""
    for key in ("driver_name", "driverName", "name", "driver"):
        if record.get(key):
            return str(record[key])
    return ""


def index_by_driver(records: List[Dict[str, Any]]) -> Dict[str, List[Dict[str, Any]]]:
    """Group side records by driver name."""
    index: Dict[str, List[Dict[str, Any]]] = {}
    for record in records or []:
        index.setdefault(record_driver_name(record), []).append(record)
    return index


def drivers_for_pay_date(drivers: List[DriverWeek], pay_date: Any) -> List[DriverWeek]:
    """Records whose pay date matches (date part only)."""
    target = normalize_date(pay_date)
    return [d for d in drivers if d.pay_date == target]


def load_bundle(path: Path) -> Tuple[List[DriverWeek], PayDateInputs]:
    """Load a JSON or YAML input bundle.

    Bundle keys: drivers, mileage, safety, activity_log, dispatcher_overrides,
    distance_overrides, mpg_overrides, locked_snapshots. Only ``drivers`` is
    required.

    Raises:
        FileNotFoundError: If the bundle doesn't exist
        ValueError: If the bundle can't be parsed or has no drivers list
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Bundle not found: {path}")

    text = path.read_text()
    try:
        if path.suffix in (".yaml", ".yml"):
            data = yaml.safe_load(text)
        else:
            data = json.loads(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ValueError(f"Could not parse bundle {path}: {e}")

    if not isinstance(data, dict) or not isinstance(data.get("drivers"), list):
        raise ValueError(f"Bundle {path} must be a mapping with a 'drivers' list")

    drivers = [DriverWeek.from_dict(d) for d in data["drivers"] if isinstance(d, dict)]
    skipped = len(data["drivers"]) - len(drivers)
    if skipped:
        logger.warning(f"{path.name}: skipped {skipped} non-mapping driver entries")

    inputs = PayDateInputs(
        mileage=data.get("mileage") or [],
        safety=data.get("safety") or [],
        activity_log=data.get("activity_log") or [],
        dispatcher_overrides=data.get("dispatcher_overrides") or {},
        distance_overrides=data.get("distance_overrides") or {},
        mpg_overrides=data.get("mpg_overrides") or {},
        locked_snapshots=data.get("locked_snapshots") or {},
    )
    logger.debug(f"Loaded {len(drivers)} driver record(s) from {path.name}")
    return drivers, inputs

"""TPOG Calc SDK - Core functionality for driver compensation reports."""

from .config import (
    get_config_dir,
    get_settings_path,
    load_settings,
    save_settings,
    get_setting,
    set_setting,
    get_rules_path,
    load_rules,
    load_rules_dict,
    save_rules,
    get_rule_value,
    set_rule_value,
    validate_rules,
    RulesNotFoundError,
    RulesValidationError,
    DEFAULT_RULES,
)

from .schemas import (
    RuleConfig,
    EnabledMetrics,
    ThresholdTier,
    RangeTier,
)

from .records import (
    DriverWeek,
    DayActivity,
    PayDateInputs,
    drivers_for_pay_date,
    load_bundle,
)

from .tiers import (
    resolve_threshold,
    resolve_threshold_details,
    resolve_range,
    sum_milestones,
)

from .percentile import (
    assign_percentiles,
    calculate_mpg_percentile,
    calculate_speeding_percentile,
)

from .metrics import MetricResult

from .accrual import (
    AccrualState,
    TimeOffSummary,
    compute_time_off,
    replay,
)

from .report import (
    Report,
    calculate_report,
    calculate_tpog,
)

from .pay_week import week_window

from .pay_date import process_pay_date

from .underperformer import (
    UnderperformerCheck,
    detect_underperformer,
)

__all__ = [
    # Config
    "get_config_dir",
    "get_settings_path",
    "load_settings",
    "save_settings",
    "get_setting",
    "set_setting",
    "get_rules_path",
    "load_rules",
    "load_rules_dict",
    "save_rules",
    "get_rule_value",
    "set_rule_value",
    "validate_rules",
    "RulesNotFoundError",
    "RulesValidationError",
    "DEFAULT_RULES",
    # Schemas
    "RuleConfig",
    "EnabledMetrics",
    "ThresholdTier",
    "RangeTier",
    # Records
    "DriverWeek",
    "DayActivity",
    "PayDateInputs",
    "drivers_for_pay_date",
    "load_bundle",
    # Tiers
    "resolve_threshold",
    "resolve_threshold_details",
    "resolve_range",
    "sum_milestones",
    # Percentiles
    "assign_percentiles",
    "calculate_mpg_percentile",
    "calculate_speeding_percentile",
    # Metrics and reports
    "MetricResult",
    "Report",
    "calculate_report",
    "calculate_tpog",
    # Accrual
    "AccrualState",
    "TimeOffSummary",
    "compute_time_off",
    "replay",
    "week_window",
    # Pay-date pass
    "process_pay_date",
    "UnderperformerCheck",
    "detect_underperformer",
]

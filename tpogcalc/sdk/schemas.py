"""Pydantic schemas for the rule configuration.

The rule configuration is read-only during a calculation pass, so every
model here is frozen and tier tables are stored as tuples.

Field names are snake_case. The camelCase keys used by the settings panel
(``baseRate``, ``weeksOutTiers``, ...) are accepted as validation aliases so
exported settings load unchanged.
"""

import logging
import math
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

logger = logging.getLogger(__name__)


SpeedingPenaltyMethod = Literal["percentile", "perEvent", "range"]
WeeksOutMethod = Literal["fullWeeksOnly", "dailyAccrual"]


def _is_number(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    try:
        return not math.isnan(float(value))
    except (TypeError, ValueError):
        return False


def _drop_malformed(value: Any, required: tuple, any_of: tuple = ()) -> list:
    """Keep only tier entries that carry the numeric fields they need.

    A missing or non-list table becomes an empty table. Dropped entries are
    logged rather than raised: a broken tier row means "no bonus", not a
    failed calculation.
    """
    if value is None:
        return []
    if not isinstance(value, (list, tuple)):
        logger.warning(f"Tier table is not a list ({type(value).__name__}), treating as empty")
        return []

    kept = []
    for entry in value:
        if isinstance(entry, BaseModel):
            kept.append(entry)
            continue
        if not isinstance(entry, dict):
            logger.warning(f"Dropping malformed tier entry: {entry!r}")
            continue
        if not all(_is_number(entry.get(k)) for k in required):
            logger.warning(f"Dropping tier entry missing {required}: {entry!r}")
            continue
        if any_of and not any(_is_number(entry.get(k)) for k in any_of):
            logger.warning(f"Dropping tier entry missing one of {any_of}: {entry!r}")
            continue
        kept.append(entry)
    return kept


class ThresholdTier(BaseModel):
    """A ``{threshold, bonus}`` tier. Negative bonuses are penalties."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    threshold: float = Field(..., description="Minimum value that qualifies")
    bonus: float = Field(..., description="Signed percentage awarded")


class RangeTier(BaseModel):
    """A ``{from, to, bonus|penalty}`` tier.

    ``to`` left empty means the range is open-ended.
    """

    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)

    from_: float = Field(..., alias="from", description="Inclusive lower bound")
    to: Optional[float] = Field(default=None, description="Inclusive upper bound")
    bonus: float = Field(default=0, description="Signed percentage (gross target)")
    penalty: float = Field(default=0, description="Signed percentage (speeding)")

    @field_validator("to", mode="before")
    @classmethod
    def blank_to_is_open(cls, v):
        if v is None or v == "":
            return None
        return v if _is_number(v) else None


class EnabledMetrics(BaseModel):
    """Per-metric on/off switches. Speeding shares the ``safety`` switch."""

    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)

    weeks_out: bool = Field(default=True, validation_alias="weeksOut")
    safety: bool = True
    fuel: bool = True
    tenure: bool = True
    gross_target: bool = Field(default=True, validation_alias="grossTarget")


class RuleConfig(BaseModel):
    """Complete rule configuration for one calculation pass."""

    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)

    base_rate: float = Field(default=0, validation_alias="baseRate")
    enabled_metrics: EnabledMetrics = Field(
        default_factory=EnabledMetrics, validation_alias="enabledMetrics"
    )

    # Weeks out / time off
    weeks_out_method: WeeksOutMethod = Field(
        default="fullWeeksOnly", validation_alias="weeksOutMethod"
    )
    weeks_out_reset_on_days_off: bool = Field(
        default=True, validation_alias="weeksOutResetOnDaysOff"
    )
    weeks_out_tiers: tuple[ThresholdTier, ...] = Field(
        default=(), validation_alias="weeksOutTiers"
    )
    time_off_base_days: float = Field(default=3, ge=0, validation_alias="timeOffBaseDays")
    time_off_start_after_weeks: int = Field(
        default=3, ge=1, validation_alias="timeOffStartAfterWeeks"
    )
    time_off_weeks_per_day: float = Field(
        default=1, gt=0, validation_alias="timeOffWeeksPerDay"
    )
    escrow_deduction_amount: float = Field(
        default=0, ge=0, validation_alias="escrowDeductionAmount"
    )

    # Safety and speeding
    safety_score_threshold: float = Field(default=0, validation_alias="safetyScoreThreshold")
    safety_score_mileage_threshold: float = Field(
        default=0, validation_alias="safetyScoreMileageThreshold"
    )
    safety_score_bonus: float = Field(default=0, validation_alias="safetyScoreBonus")
    safety_bonus_forfeited_on_speeding: bool = Field(
        default=False, validation_alias="safetyBonusForfeitedOnSpeeding"
    )
    speeding_penalty_method: SpeedingPenaltyMethod = Field(
        default="percentile", validation_alias="speedingPenaltyMethod"
    )
    include_zeros_in_speeding_calc: bool = Field(
        default=False, validation_alias="includeZerosInSpeedingCalc"
    )
    speeding_percentile_tiers: tuple[ThresholdTier, ...] = Field(
        default=(), validation_alias="speedingPercentileTiers"
    )
    speeding_per_event_minimum: int = Field(
        default=2, validation_alias="speedingPerEventMinimum"
    )
    speeding_per_event_penalty: float = Field(
        default=-1.0, validation_alias="speedingPerEventPenalty"
    )
    speeding_range_tiers: tuple[RangeTier, ...] = Field(
        default=(), validation_alias="speedingRangeTiers"
    )

    # Fuel, tenure, gross
    fuel_mileage_threshold: float = Field(default=0, validation_alias="fuelMileageThreshold")
    mpg_percentile_tiers: tuple[ThresholdTier, ...] = Field(
        default=(), validation_alias="mpgPercentileTiers"
    )
    tenure_milestones: tuple[ThresholdTier, ...] = Field(
        default=(), validation_alias="tenureMilestones"
    )
    gross_target_tiers: tuple[RangeTier, ...] = Field(
        default=(), validation_alias="grossTargetTiers"
    )

    @field_validator("weeks_out_method", mode="before")
    @classmethod
    def legacy_days_off_method(cls, v):
        # "daysOff" was the earlier name of the full-weeks policy
        return "fullWeeksOnly" if v == "daysOff" else v

    @field_validator("time_off_start_after_weeks", mode="before")
    @classmethod
    def default_start_after_weeks(cls, v):
        # unset or 0 falls back to the default of 3 weeks
        return 3 if v in (None, "", 0) else v

    @field_validator(
        "weeks_out_tiers",
        "speeding_percentile_tiers",
        "mpg_percentile_tiers",
        "tenure_milestones",
        mode="before",
    )
    @classmethod
    def clean_threshold_tiers(cls, v):
        return _drop_malformed(v, ("threshold", "bonus"))

    @field_validator("speeding_range_tiers", mode="before")
    @classmethod
    def clean_speeding_range_tiers(cls, v):
        return _drop_malformed(v, ("from",), any_of=("penalty", "bonus"))

    @field_validator("gross_target_tiers", mode="before")
    @classmethod
    def clean_gross_range_tiers(cls, v):
        return _drop_malformed(v, ("from",), any_of=("bonus",))

    def to_dict(self) -> dict:
        """Snake_case dict suitable for rules.yaml (range tiers keep ``from``)."""
        return self.model_dump(by_alias=True)

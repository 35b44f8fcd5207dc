"""Tier resolution.

Two tier shapes are in use:

- threshold tiers ``{threshold, bonus}``: the tier with the greatest
  threshold not above the value wins (weeks out, MPG and speeding
  percentiles). Tenure milestones use the same shape but stack.
- range tiers ``{from, to, bonus|penalty}``: the first range, in ascending
  ``from`` order, that contains the value wins (gross target, speeding
  event counts). Both bounds are inclusive; an empty ``to`` is open-ended.

Resolution is pure. Tiers may be schema models or plain dicts, and any
entry without usable numbers is skipped, so a broken table yields 0.
"""

import math
from dataclasses import dataclass
from typing import Any, Iterable, List, Optional, Tuple


@dataclass(frozen=True)
class TierMatch:
    """Result of a threshold lookup."""

    bonus: float
    threshold: Optional[float]  # None when no tier qualified


def _get(tier: Any, key: str) -> Any:
    if isinstance(tier, dict):
        return tier.get(key)
    if key == "from":
        return getattr(tier, "from_", None)
    return getattr(tier, key, None)


def _num(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    return None if math.isnan(result) else result


def _threshold_pairs(tiers: Any) -> List[Tuple[float, float]]:
    """(threshold, bonus) pairs in input order, malformed entries skipped."""
    if not isinstance(tiers, (list, tuple)):
        return []
    pairs = []
    for tier in tiers:
        threshold = _num(_get(tier, "threshold"))
        bonus = _num(_get(tier, "bonus"))
        if threshold is not None and bonus is not None:
            pairs.append((threshold, bonus))
    return pairs


def resolve_threshold_details(value: float, tiers: Iterable[Any]) -> TierMatch:
    """Find the highest qualifying threshold tier.

    When several tiers share the winning threshold, the first one in input
    order wins.

    Args:
        value: Metric value (weeks out, percentile, ...)
        tiers: Threshold tiers

    Returns:
        TierMatch with the bonus and the threshold met (0 / None if none)
    """
    value = _num(value)
    if value is None:
        return TierMatch(bonus=0, threshold=None)

    best: Optional[Tuple[float, float]] = None
    for threshold, bonus in _threshold_pairs(tiers):
        if value >= threshold and (best is None or threshold > best[0]):
            best = (threshold, bonus)

    if best is None:
        return TierMatch(bonus=0, threshold=None)
    return TierMatch(bonus=best[1], threshold=best[0])


def resolve_threshold(value: float, tiers: Iterable[Any]) -> float:
    """Bonus of the highest qualifying threshold tier, or 0."""
    return resolve_threshold_details(value, tiers).bonus


def sum_milestones(value: float, tiers: Iterable[Any]) -> float:
    """Sum the bonus of every threshold tier the value has reached."""
    value = _num(value)
    if value is None:
        return 0
    return sum(bonus for threshold, bonus in _threshold_pairs(tiers) if value >= threshold)


def sorted_threshold_tiers(tiers: Iterable[Any]) -> List[Tuple[float, float]]:
    """(threshold, bonus) pairs sorted ascending by threshold (stable)."""
    return sorted(_threshold_pairs(tiers), key=lambda p: p[0])


def resolve_range(value: float, tiers: Iterable[Any], key: str = "bonus") -> float:
    """Resolve a value against range tiers.

    Tiers are sorted ascending by ``from`` (stable, so equal starts keep
    input order) and the first tier with ``from <= value <= to`` wins. A
    missing, empty or zero ``to`` means no upper bound.

    Args:
        value: Metric value (gross pay, speeding alert count)
        tiers: Range tiers
        key: Which amount to return, "bonus" or "penalty"

    Returns:
        The matching tier's amount, or 0 if no range contains the value
    """
    value = _num(value)
    if value is None or not isinstance(tiers, (list, tuple)):
        return 0

    ranges = []
    for tier in tiers:
        start = _num(_get(tier, "from"))
        amount = _num(_get(tier, key))
        if start is None or amount is None:
            continue
        end = _num(_get(tier, "to"))
        if not end:
            end = math.inf
        ranges.append((start, end, amount))

    for start, end, amount in sorted(ranges, key=lambda r: r[0]):
        if start <= value <= end:
            return amount

    return 0

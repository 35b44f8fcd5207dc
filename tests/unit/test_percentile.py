"""Tests for cohort percentile ranking."""

from tpogcalc.sdk.percentile import (
    assign_percentiles,
    calculate_mpg_percentile,
    calculate_speeding_percentile,
    rank_percentile,
    round_half_up,
)
from tpogcalc.sdk.records import DriverWeek


def driver(name, mpg=0.0, alerts=0):
    return DriverWeek(name=name, pay_date="2024-06-11", mpg=mpg, speeding_alerts=alerts)


class TestRankPercentile:
    def test_lowest_and_highest(self):
        population = [5.0, 6.0, 7.0]
        assert rank_percentile(5.0, population) == 0
        assert rank_percentile(7.0, population) == 100

    def test_middle_rounds_half_up(self):
        # 1 of 2 below -> 50
        assert rank_percentile(6.0, [5.0, 6.0, 7.0]) == 50
        assert round_half_up(2.5) == 3
        assert round_half_up(0.5) == 1

    def test_single_member_denominator(self):
        assert rank_percentile(5.0, [5.0]) == 0

    def test_result_is_clamped(self):
        assert rank_percentile(10.0, [1.0, 2.0]) == 100

    def test_monotonic_in_value(self):
        population = [3.0, 4.5, 5.0, 6.2, 7.1]
        results = [rank_percentile(v, population) for v in (1, 3, 4, 5, 6, 7, 8)]
        assert results == sorted(results)
        assert all(0 <= r <= 100 for r in results)


class TestAssignPercentiles:
    """Batch pass over one pay date."""

    def test_mpg_percentiles_skip_drivers_without_mpg(self):
        drivers = [driver("a", mpg=5), driver("b", mpg=6), driver("c", mpg=7), driver("d", mpg=0)]
        result = {d.name: d.mpg_percentile for d in assign_percentiles(drivers)}
        assert result == {"a": 0, "b": 50, "c": 100, "d": 0}

    def test_speeding_excludes_zeros_by_default(self):
        drivers = [driver("a", alerts=0), driver("b", alerts=2), driver("c", alerts=4)]
        result = {d.name: d.speeding_percentile for d in assign_percentiles(drivers)}
        assert result == {"a": 0, "b": 0, "c": 100}

    def test_speeding_includes_zeros_when_asked(self):
        drivers = [driver("a", alerts=0), driver("b", alerts=2), driver("c", alerts=4)]
        result = {d.name: d.speeding_percentile for d in assign_percentiles(drivers, include_zeros=True)}
        assert result == {"a": 0, "b": 50, "c": 100}

    def test_empty_cohorts_give_zero(self):
        drivers = [driver("a"), driver("b")]
        for d in assign_percentiles(drivers):
            assert d.mpg_percentile == 0
            assert d.speeding_percentile == 0

    def test_returns_copies(self):
        original = driver("a", mpg=5)
        [updated] = assign_percentiles([original])
        assert updated is not original
        assert original.mpg_percentile == 0


class TestProbes:
    """Hypothetical-value probes."""

    def test_mpg_probe_empty_cohort_is_100(self):
        assert calculate_mpg_percentile(6.5, []) == 100

    def test_mpg_probe_at_or_above_max_is_100(self):
        cohort = [driver("a", mpg=5), driver("b", mpg=7)]
        assert calculate_mpg_percentile(7, cohort) == 100
        assert calculate_mpg_percentile(9, cohort) == 100

    def test_mpg_probe_missing_value_is_zero(self):
        assert calculate_mpg_percentile(None, [driver("a", mpg=5)]) == 0
        assert calculate_mpg_percentile(0, [driver("a", mpg=5)]) == 0

    def test_mpg_probe_ranks_non_member(self):
        cohort = [driver("a", mpg=5), driver("b", mpg=6), driver("c", mpg=7)]
        assert calculate_mpg_percentile(6.5, cohort) == 100

    def test_speeding_probe(self):
        cohort = [driver("a", alerts=1), driver("b", alerts=3), driver("c", alerts=5)]
        assert calculate_speeding_percentile(0, cohort) == 0
        assert calculate_speeding_percentile(2, cohort) == 50
        assert calculate_speeding_percentile(5, cohort) == 100
        assert calculate_speeding_percentile("junk", cohort) == 0

    def test_speeding_probe_empty_cohort(self):
        assert calculate_speeding_percentile(3, []) == 0

"""Tests for underperformer detection from locked snapshots."""

import json

import pytest

from tpogcalc.sdk.pay_date import process_pay_date
from tpogcalc.sdk.records import DriverWeek, PayDateInputs
from tpogcalc.sdk.schemas import RuleConfig
from tpogcalc.sdk.underperformer import (
    WeekSnapshot,
    collect_snapshots,
    detect_underperformer,
    evaluate_snapshots,
    is_fully_inactive,
)


PAY_DATES = ["2024-05-07", "2024-05-14", "2024-05-21", "2024-05-28", "2024-06-04", "2024-06-11"]
ACTIVE_WEEK = [{"statuses": "No Data"}] * 7
INACTIVE_WEEK = [{"statuses": "NOT_STARTED"}] * 3 + [{"statuses": "contract_ended"}] * 4


def history(contract_type="TPOG"):
    return [DriverWeek(id="D1", name="Jane Doe", pay_date=d, contract_type=contract_type) for d in PAY_DATES]


def snapshots(gross, miles, activity=ACTIVE_WEEK, as_json=True):
    locked = {}
    for pay_date, g, m in zip(PAY_DATES, gross, miles):
        snapshot = {"weeklyActivity": activity, "gross": g, "stubMiles": m}
        locked[f"D1_{pay_date}"] = json.dumps(snapshot) if as_json else snapshot
    return locked


def weeks(values):
    return [WeekSnapshot(pay_date=f"2024-0{i + 1}-01", gross=g, stub_miles=m) for i, (g, m) in enumerate(values)]


class TestEvaluateSnapshots:
    def test_needs_four_weeks(self):
        check = evaluate_snapshots(weeks([(100, 100)] * 3))
        assert check.is_underperformer is False
        assert check.weeks_checked == 0

    def test_four_week_tier_flags_low_performer(self):
        check = evaluate_snapshots(weeks([(4000, 1500)] * 4))
        assert check.is_underperformer is True
        assert check.weeks_checked == 4
        assert check.reasons == [
            "(Last 4 wks)",
            "Sum Gross $16000 < $20000",
            "Sum Miles 6000 < 8000",
            "Median Gross $4000 <= $6000",
            "Median Miles 1500 <= 2500",
        ]
        assert check.reason_text.startswith("Underperformer:\n(Last 4 wks)")

    def test_sum_failing_but_median_fine_is_not_flagged(self):
        check = evaluate_snapshots(weeks([(7000, 3000)] * 4 + [(0, 0)] * 2))
        assert check.weeks_checked == 6
        assert check.sum_gross < 30000
        assert check.median_gross == 7000
        assert check.is_underperformer is False

    def test_uses_most_recent_weeks(self):
        values = weeks([(0, 0)] * 3 + [(7000, 3000)] * 6)
        newest_first = sorted(values, key=lambda s: s.pay_date, reverse=True)
        check = evaluate_snapshots(newest_first)
        assert check.weeks_checked == 6
        assert check.is_underperformer is False

    def test_five_week_tier(self):
        check = evaluate_snapshots(weeks([(4900, 2000)] * 5))
        assert check.weeks_checked == 5
        assert check.is_underperformer is True
        assert "Sum Gross $24500 < $25000" in check.reasons
        assert not any(r.startswith("Sum Miles") for r in check.reasons)


class TestCollectSnapshots:
    def test_skips_future_and_inactive_weeks(self):
        locked = snapshots([3000] * 6, [1000] * 6)
        locked["D1_2024-05-07"] = json.dumps({"weeklyActivity": INACTIVE_WEEK, "gross": 1, "stubMiles": 1})
        driver = history()[4]

        collected = collect_snapshots(driver, history(), locked)
        assert [s.pay_date for s in collected] == ["2024-06-04", "2024-05-28", "2024-05-21", "2024-05-14"]

    def test_only_tpog_contracts(self):
        driver = history("LEASE")[5]
        assert collect_snapshots(driver, history("LEASE"), snapshots([1] * 6, [1] * 6)) == []

    def test_accepts_dict_snapshots_and_skips_bad_json(self):
        locked = snapshots([3000] * 6, [1000] * 6, as_json=False)
        locked["D1_2024-06-11"] = "{not json"
        collected = collect_snapshots(history()[5], history(), locked)
        assert len(collected) == 5

    def test_snapshot_without_activity_is_skipped(self):
        locked = {"D1_2024-06-11": {"gross": 1, "stubMiles": 1}}
        assert collect_snapshots(history()[5], history(), locked) == []

    def test_fully_inactive(self):
        assert is_fully_inactive({"weeklyActivity": INACTIVE_WEEK}) is True
        assert is_fully_inactive({"weeklyActivity": ACTIVE_WEEK}) is False


class TestDetectUnderperformer:
    def test_flags_driver(self):
        locked = snapshots([2000] * 6, [800] * 6)
        check = detect_underperformer(history()[5], history(), locked)
        assert check.is_underperformer is True
        assert check.weeks_checked == 6

    def test_pay_date_pass_sets_flag(self):
        rules = RuleConfig()
        drivers = history()
        inputs = PayDateInputs(locked_snapshots=snapshots([2000] * 6, [800] * 6))

        [processed] = process_pay_date([drivers[5]], rules, inputs, all_drivers=drivers)
        assert processed.is_underperformer is True
        assert processed.underperformer_reason.startswith("Underperformer:")

    @pytest.mark.parametrize("gross,miles", [([7000] * 6, [3000] * 6)])
    def test_good_driver_not_flagged(self, gross, miles):
        check = detect_underperformer(history()[5], history(), snapshots(gross, miles))
        assert check.is_underperformer is False
        assert check.reason_text == ""

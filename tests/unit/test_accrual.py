"""Tests for the weeks-out / time-off / escrow history fold.

Pay dates used here are consecutive Tuesdays, so each week window is the
Tuesday-Monday ending the day before the pay date.
"""

import pytest

from tpogcalc.sdk.accrual import (
    AccrualState,
    WeekObservation,
    compute_time_off,
    earned_between,
    observe_week,
    replay,
    replay_driver,
)
from tpogcalc.sdk.pay_week import week_window
from tpogcalc.sdk.records import DriverWeek
from tpogcalc.sdk.schemas import RuleConfig


PAY_DATES = [
    "2024-05-07", "2024-05-14", "2024-05-21", "2024-05-28",
    "2024-06-04", "2024-06-11", "2024-06-18",
]


def make_rules(**overrides):
    base = {
        "timeOffBaseDays": 3,
        "timeOffStartAfterWeeks": 3,
        "timeOffWeeksPerDay": 1,
        "escrowDeductionAmount": 300,
    }
    base.update(overrides)
    return RuleConfig.model_validate(base)


def week(pay_date, off_days=(), reset_days=()):
    """WeekObservation with the given day indexes (0 = Tuesday) off/resetting."""
    return WeekObservation(
        pay_date=pay_date,
        window=week_window(pay_date),
        off=tuple(i in off_days for i in range(7)),
        resets=tuple(i in reset_days for i in range(7)),
    )


def clean_weeks(count):
    return [week(d) for d in PAY_DATES[:count]]


class TestEarnedBetween:
    def test_base_days_when_reaching_start(self):
        assert earned_between(0, 3, make_rules()) == 3

    def test_one_day_per_week_after_start(self):
        assert earned_between(3, 5, make_rules()) == 2

    def test_weeks_per_day(self):
        assert earned_between(3, 5, make_rules(timeOffWeeksPerDay=2)) == 1.0

    def test_no_movement(self):
        assert earned_between(4, 4, make_rules()) == 0


class TestFullWeeksOnly:
    def test_clean_history(self):
        snapshot = replay(clean_weeks(5), PAY_DATES[4], make_rules())
        assert snapshot.weeks_out == 5
        assert snapshot.streak_at_start_of_week == 4
        # week 3 grants 3 base days, week 4 one more
        assert snapshot.balance_at_start_of_week == 4

    def test_day_off_resets_streak_and_spends_balance(self):
        history = clean_weeks(4) + [week(PAY_DATES[4], off_days=(1, 2)), week(PAY_DATES[5])]
        snapshot = replay(history, PAY_DATES[5], make_rules())
        assert snapshot.weeks_out == 1
        assert snapshot.balance_at_start_of_week == 2

    def test_day_off_without_reset_keeps_streak(self):
        history = clean_weeks(3) + [week(PAY_DATES[3], off_days=(0,))]
        snapshot = replay(history, PAY_DATES[3], make_rules(weeksOutResetOnDaysOff=False))
        assert snapshot.weeks_out == 3
        assert snapshot.days_taken == 1

    def test_excess_days_are_not_carried_as_debt(self):
        history = clean_weeks(3) + [week(PAY_DATES[3], off_days=(0, 1, 2, 3, 4)), week(PAY_DATES[4])]
        snapshot = replay(history, PAY_DATES[4], make_rules())
        assert snapshot.balance_at_start_of_week == 0

    def test_disqualifying_week_wipes_ledger(self):
        history = clean_weeks(4) + [week(PAY_DATES[4], reset_days=(6,)), week(PAY_DATES[5])]
        snapshot = replay(history, PAY_DATES[5], make_rules())
        assert snapshot.weeks_out == 1
        assert snapshot.balance_at_start_of_week == 0

    def test_selected_disqualifying_week(self):
        history = clean_weeks(4) + [week(PAY_DATES[4], reset_days=(2,))]
        snapshot = replay(history, PAY_DATES[4], make_rules())
        assert snapshot.weeks_out == 0
        assert snapshot.balance_at_start_of_week == 0
        assert snapshot.streak_at_start_of_week == 0
        assert snapshot.reset is True

    def test_later_weeks_are_ignored(self):
        snapshot = replay(clean_weeks(7), PAY_DATES[2], make_rules())
        assert snapshot.weeks_out == 3

    def test_duplicate_pay_dates_processed_once(self):
        history = clean_weeks(4) + [week(PAY_DATES[1])]
        assert replay(history, PAY_DATES[3], make_rules()) == replay(clean_weeks(4), PAY_DATES[3], make_rules())

    def test_replay_is_idempotent(self):
        history = clean_weeks(3) + [week(PAY_DATES[3], off_days=(4,)), week(PAY_DATES[4])]
        rules = make_rules()
        assert replay(history, PAY_DATES[4], rules) == replay(list(history), PAY_DATES[4], rules)

    def test_missing_selected_week(self):
        snapshot = replay(clean_weeks(2), "2030-01-01", make_rules())
        assert snapshot.weeks_out == 0
        assert snapshot.balance_at_start_of_week == 0


class TestDailyAccrual:
    def test_partial_week_after_day_off(self):
        rules = make_rules(weeksOutMethod="dailyAccrual")
        history = clean_weeks(3) + [week(PAY_DATES[3], off_days=(3,))]
        snapshot = replay(history, PAY_DATES[3], rules)

        assert snapshot.weeks_out == pytest.approx(3 / 7)
        assert snapshot.peak_weeks_out == pytest.approx(24 / 7)
        assert snapshot.streak_at_start_of_week == 3
        assert snapshot.balance_at_start_of_week == 3

    def test_day_off_without_reset_pauses_streak(self):
        rules = make_rules(weeksOutMethod="dailyAccrual", weeksOutResetOnDaysOff=False)
        history = [week(PAY_DATES[0], off_days=(0, 1))]
        snapshot = replay(history, PAY_DATES[0], rules)
        assert snapshot.weeks_out == pytest.approx(5 / 7)

    def test_disqualifying_day_resets_mid_week(self):
        rules = make_rules(weeksOutMethod="dailyAccrual")
        history = clean_weeks(2) + [week(PAY_DATES[2], reset_days=(4,))]
        snapshot = replay(history, PAY_DATES[2], rules)
        # day 4 resets to 0, days 5 and 6 count again
        assert snapshot.weeks_out == pytest.approx(2 / 7)
        assert snapshot.balance_at_start_of_week == 0

    def test_legacy_days_off_method_name(self):
        rules = make_rules(weeksOutMethod="daysOff")
        assert rules.weeks_out_method == "fullWeeksOnly"

    @pytest.mark.parametrize("start", [0, None])
    def test_unset_start_week_falls_back_to_three(self, start):
        rules = make_rules(timeOffStartAfterWeeks=start)
        assert rules.time_off_start_after_weeks == 3
        assert earned_between(0, 4, rules) == 4

    def test_negative_start_week_rejected(self):
        with pytest.raises(ValueError):
            make_rules(timeOffStartAfterWeeks=-1)


class TestObserveWeek:
    def test_days_off_and_resets_from_overrides(self):
        overrides = {"Jane Doe_2024-06-06": "NOT_STARTED"}
        observation = observe_week("2024-06-11", 0, "Jane Doe", {"2024-06-04", "2024-06-10", "2024-06-11"}, overrides)

        assert observation.window.start.isoformat() == "2024-06-04"
        assert observation.days_off == 2
        assert observation.reset is True
        assert observation.resets[2] is True

    def test_two_week_pay_delay_shifts_window(self):
        observation = observe_week("2024-06-11", 2, "Jane Doe", set(), {})
        assert observation.window.start.isoformat() == "2024-05-28"
        assert observation.window.end.isoformat() == "2024-06-03"


class TestReplayDriver:
    def test_uses_only_this_drivers_earlier_records(self):
        history = [DriverWeek(name="Jane Doe", pay_date=d) for d in PAY_DATES]
        history.append(DriverWeek(name="Someone Else", pay_date="2024-04-30"))
        selected = history[4]

        snapshot = replay_driver(selected, history, set(), {}, make_rules())
        assert snapshot.weeks_out == 5

    def test_selected_record_missing_from_history(self):
        selected = DriverWeek(name="Jane Doe", pay_date=PAY_DATES[0])
        snapshot = replay_driver(selected, [], set(), {}, make_rules())
        assert snapshot.weeks_out == 1

    def test_contract_ended_keeps_tpog_streak_and_balance(self):
        history = [DriverWeek(name="Jane Doe", pay_date=d, contract_type="TPOG") for d in PAY_DATES[:5]]
        overrides = {"Jane Doe_2024-05-30": "CONTRACT_ENDED"}

        snapshot = replay_driver(history[4], history, set(), overrides, make_rules())
        assert snapshot.weeks_out == 5
        assert snapshot.balance_at_start_of_week == 4
        assert snapshot.reset is False

    def test_contract_ended_resets_other_contracts(self):
        history = [DriverWeek(name="Jane Doe", pay_date=d, contract_type="LEASE") for d in PAY_DATES[:5]]
        overrides = {"Jane Doe_2024-05-30": "CONTRACT_ENDED"}

        snapshot = replay_driver(history[4], history, set(), overrides, make_rules())
        assert snapshot.weeks_out == 0
        assert snapshot.balance_at_start_of_week == 0
        assert snapshot.reset is True

    def test_not_started_resets_tpog(self):
        history = [DriverWeek(name="Jane Doe", pay_date=d, contract_type="TPOG") for d in PAY_DATES[:5]]
        overrides = {"Jane Doe_2024-05-30": "NOT_STARTED"}

        snapshot = replay_driver(history[4], history, set(), overrides, make_rules(weeksOutMethod="dailyAccrual"))
        assert snapshot.reset is True
        assert snapshot.balance_at_start_of_week == 0


class TestComputeTimeOff:
    def test_newly_earned_added_to_balance(self):
        driver = DriverWeek(
            name="Jane Doe", pay_date=PAY_DATES[3],
            weeks_out=4, streak_at_start_of_week=3, balance_at_start_of_week=3,
        )
        summary = compute_time_off(driver, make_rules())
        assert summary.newly_earned == 1
        assert summary.available_off_days == 4
        assert summary.escrow_deduct == 0

    def test_escrow_for_days_beyond_balance(self):
        driver = DriverWeek(name="Jane Doe", pay_date=PAY_DATES[3], off_days=3, balance_at_start_of_week=1)
        summary = compute_time_off(driver, make_rules())
        assert summary.escrow_deduct == 600
        assert summary.escrow_overridden is False

    def test_negative_balance_counts_as_zero(self):
        driver = DriverWeek(name="Jane Doe", pay_date=PAY_DATES[3], off_days=1, balance_at_start_of_week=-2)
        summary = compute_time_off(driver, make_rules())
        assert summary.escrow_deduct == 300
        assert summary.available_off_days == 0

    def test_overrides_returned_verbatim(self):
        driver = DriverWeek(
            name="Jane Doe", pay_date=PAY_DATES[3], off_days=3,
            escrow_deduct=123.45, available_off_days=7,
        )
        summary = compute_time_off(driver, make_rules())
        assert summary.escrow_deduct == 123.45
        assert summary.available_off_days == 7
        assert summary.escrow_overridden is True

    def test_daily_peak_drives_earning(self):
        driver = DriverWeek(
            name="Jane Doe", pay_date=PAY_DATES[3],
            weeks_out=3 / 7, peak_weeks_out=24 / 7, streak_at_start_of_week=2,
        )
        summary = compute_time_off(driver, make_rules())
        assert summary.newly_earned == 3


def test_initial_state_has_zero_balance():
    assert AccrualState().balance == 0

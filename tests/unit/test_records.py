"""Tests for driver record coercion and bundle loading."""

import json

import pytest
import yaml

from tpogcalc.sdk.accrual import compute_time_off
from tpogcalc.sdk.records import (
    DriverWeek,
    drivers_for_pay_date,
    load_bundle,
    to_bool,
    to_float,
)
from tpogcalc.sdk.schemas import RuleConfig


class TestCoercion:
    @pytest.mark.parametrize("raw,expected", [
        (None, 0.0), ("abc", 0.0), (float("nan"), 0.0), (float("inf"), 0.0), ("12.5", 12.5), (3, 3.0),
    ])
    def test_to_float(self, raw, expected):
        assert to_float(raw) == expected

    def test_to_bool_accepts_strings(self):
        assert to_bool("true") is True
        assert to_bool("TRUE ") is True
        assert to_bool("false") is False
        assert to_bool(True) is True
        assert to_bool(1) is False


class TestFromDict:
    def test_camel_case_keys(self):
        driver = DriverWeek.from_dict({
            "driverName": "Jane Doe",
            "payDate": "2024-06-11T00:00:00.000Z",
            "safetyScore": "97",
            "speedingAlerts": "3",
            "gallons_fictive": 120,
            "pay_delayWks": 2,
            "ignoreFuel": "true",
        })
        assert driver.name == "Jane Doe"
        assert driver.pay_date == "2024-06-11"
        assert driver.safety_score == 97.0
        assert driver.speeding_alerts == 3
        assert driver.gallons == 120.0
        assert driver.pay_delay_wks == 2
        assert driver.ignore_fuel is True
        assert driver.excluded("fuel") is True
        assert driver.excluded("safety") is False

    def test_junk_numbers_become_zero(self):
        driver = DriverWeek.from_dict({"name": "x", "pay_date": "2024-06-11", "gross": "n/a", "mpg": None})
        assert driver.gross == 0
        assert driver.mpg == 0

    def test_optional_overrides_stay_none(self):
        driver = DriverWeek.from_dict({"name": "x", "pay_date": "2024-06-11", "availableOffDays": None})
        assert driver.available_off_days is None
        assert driver.escrow_deduct is None

        driver = DriverWeek.from_dict({"name": "x", "pay_date": "2024-06-11", "escrowDeduct": 0})
        assert driver.escrow_deduct == 0

    def test_null_escrow_key_is_a_zero_override(self):
        driver = DriverWeek.from_dict({"name": "x", "pay_date": "2024-06-11", "offDays": 2, "escrowDeduct": None})
        assert driver.escrow_deduct == 0.0

        rules = RuleConfig(escrow_deduction_amount=300)
        assert compute_time_off(driver, rules).escrow_deduct == 0.0

    def test_to_dict_round_trips_activity(self):
        driver = DriverWeek(name="x", pay_date="2024-06-11", days_off_history=("2024-06-05",))
        data = driver.to_dict()
        assert data["days_off_history"] == ["2024-06-05"]
        assert data["weekly_activity"] == []


class TestBundle:
    BUNDLE = {
        "drivers": [
            {"id": "D1", "name": "Jane Doe", "pay_date": "2024-06-11", "gross": 6000},
            {"id": "D1", "name": "Jane Doe", "pay_date": "2024-06-04", "gross": 5500},
            "not a record",
        ],
        "mileage": [{"driver_name": "Jane Doe", "date": "2024-06-05", "movement": 300}],
        "dispatcher_overrides": {"Jane Doe_2024-06-05": "DAY_OFF"},
    }

    def test_load_json(self, tmp_path):
        path = tmp_path / "bundle.json"
        path.write_text(json.dumps(self.BUNDLE))

        drivers, inputs = load_bundle(path)
        assert len(drivers) == 2
        assert inputs.mileage[0]["movement"] == 300
        assert inputs.dispatcher_overrides == {"Jane Doe_2024-06-05": "DAY_OFF"}
        assert inputs.safety == []

    def test_load_yaml(self, tmp_path):
        path = tmp_path / "bundle.yaml"
        path.write_text(yaml.safe_dump(self.BUNDLE))
        drivers, _ = load_bundle(path)
        assert [d.pay_date for d in drivers] == ["2024-06-11", "2024-06-04"]

    def test_missing_bundle(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_bundle(tmp_path / "missing.json")

    def test_bundle_without_drivers(self, tmp_path):
        path = tmp_path / "bundle.json"
        path.write_text(json.dumps({"mileage": []}))
        with pytest.raises(ValueError, match="drivers"):
            load_bundle(path)

    def test_unparseable_bundle(self, tmp_path):
        path = tmp_path / "bundle.json"
        path.write_text("{oops")
        with pytest.raises(ValueError, match="Could not parse"):
            load_bundle(path)

    def test_drivers_for_pay_date(self, tmp_path):
        path = tmp_path / "bundle.json"
        path.write_text(json.dumps(self.BUNDLE))
        drivers, _ = load_bundle(path)
        selected = drivers_for_pay_date(drivers, "2024-06-11T00:00:00")
        assert [d.gross for d in selected] == [6000]

"""Configuration management for TPOG Calc.

Configuration is split into two files:

1. settings.json - Machine-specific, ephemeral settings
   - rules: path to rules.yaml (optional, if not colocated)
   - default_output_format: "text" or "json" for CLI output

2. rules.yaml - The pay rule configuration
   - base rate, metric toggles, tier tables
   - time-off and escrow policy

Config directory resolution:
1. TPOG_CALC_CONFIG_PATH environment variable (if set)
2. ~/.config/tpog-calc/ (XDG_CONFIG_HOME fallback)

Rules resolution:
1. settings.json "rules" key (if set via CLI)
2. rules.yaml in the config directory
3. Built-in DEFAULT_RULES
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Optional, Union

import yaml
from pydantic import ValidationError

from .schemas import RuleConfig

logger = logging.getLogger(__name__)


APP_NAME = "tpog-calc"
SETTINGS_FILENAME = "settings.json"
RULES_FILENAME = "rules.yaml"


# Starting point written by `tpog-calc rules init`.
DEFAULT_RULES = {
    "base_rate": 65.0,
    "enabled_metrics": {
        "weeks_out": True,
        "safety": True,
        "fuel": True,
        "tenure": True,
        "gross_target": True,
    },
    "weeks_out_method": "fullWeeksOnly",
    "weeks_out_reset_on_days_off": True,
    "weeks_out_tiers": [
        {"threshold": 4, "bonus": 1.0},
        {"threshold": 8, "bonus": 2.0},
    ],
    "time_off_base_days": 3,
    "time_off_start_after_weeks": 3,
    "time_off_weeks_per_day": 1,
    "escrow_deduction_amount": 300.0,
    "safety_score_threshold": 90.0,
    "safety_score_mileage_threshold": 2000.0,
    "safety_score_bonus": 1.0,
    "safety_bonus_forfeited_on_speeding": False,
    "speeding_penalty_method": "percentile",
    "include_zeros_in_speeding_calc": False,
    "speeding_percentile_tiers": [
        {"threshold": 75, "bonus": -0.5},
        {"threshold": 90, "bonus": -1.0},
    ],
    "speeding_per_event_minimum": 2,
    "speeding_per_event_penalty": -1.0,
    "speeding_range_tiers": [
        {"from": 2, "to": 4, "penalty": -0.5},
        {"from": 5, "to": None, "penalty": -1.0},
    ],
    "fuel_mileage_threshold": 2000.0,
    "mpg_percentile_tiers": [
        {"threshold": 0, "bonus": -1.0},
        {"threshold": 25, "bonus": 0.0},
        {"threshold": 50, "bonus": 0.5},
        {"threshold": 75, "bonus": 1.0},
    ],
    "tenure_milestones": [
        {"threshold": 26, "bonus": 0.5},
        {"threshold": 52, "bonus": 0.5},
    ],
    "gross_target_tiers": [
        {"from": 0, "to": 5000, "bonus": 0.0},
        {"from": 5000, "to": None, "bonus": 1.0},
    ],
}


class RulesNotFoundError(Exception):
    """Raised when a rules file is required but none is found."""
    pass


class RulesValidationError(Exception):
    """Raised when a rules file does not match the RuleConfig schema."""
    pass


def get_config_dir() -> Path:
    """Get the configuration directory path.

    Resolution order:
    1. TPOG_CALC_CONFIG_PATH environment variable
    2. ~/.config/tpog-calc/ (XDG_CONFIG_HOME)

    Returns:
        Path to the configuration directory
    """
    env_path = os.environ.get("TPOG_CALC_CONFIG_PATH")
    if env_path:
        return Path(env_path)

    xdg_config_home = os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config")
    return Path(xdg_config_home) / APP_NAME


def get_settings_path() -> Path:
    """Get the path to settings.json (may not exist yet)."""
    return get_config_dir() / SETTINGS_FILENAME


def load_settings() -> dict:
    """Load machine-specific settings from settings.json.

    Returns:
        Settings dictionary (empty dict if file doesn't exist)
    """
    settings_file = get_settings_path()

    if not settings_file.exists():
        return {}

    with open(settings_file, "r") as f:
        return json.load(f)


def save_settings(settings: dict) -> Path:
    """Save machine-specific settings to settings.json.

    Returns:
        Path to the saved settings file
    """
    config_dir = get_config_dir()
    config_dir.mkdir(parents=True, exist_ok=True)

    settings_file = config_dir / SETTINGS_FILENAME

    with open(settings_file, "w") as f:
        json.dump(settings, f, indent=2)

    return settings_file


def get_setting(key: str, default: Any = None) -> Any:
    """Get a setting value from settings.json."""
    settings = load_settings()
    return settings.get(key, default)


def set_setting(key: str, value: Any) -> Path:
    """Set a setting value in settings.json."""
    settings = load_settings()
    settings[key] = value
    return save_settings(settings)


def get_rules_path(require_exists: bool = False) -> Path:
    """Get the path to the rules.yaml file.

    Resolution order:
    1. settings.json "rules" key (if set)
    2. rules.yaml in config directory

    Args:
        require_exists: If True, raises RulesNotFoundError if not found

    Returns:
        Path to rules.yaml

    Raises:
        RulesNotFoundError: If require_exists=True and no rules file found
    """
    custom_rules = get_setting("rules")
    if custom_rules:
        rules_path = Path(custom_rules)
        if require_exists and not rules_path.exists():
            raise RulesNotFoundError(
                f"Rules not found at configured path: {rules_path}\n\n"
                f"Update with: tpog-calc rules use /path/to/rules.yaml"
            )
        return rules_path

    rules_path = get_config_dir() / RULES_FILENAME
    if require_exists and not rules_path.exists():
        raise RulesNotFoundError(
            f"No rules found. Checked:\n"
            f"  1. settings.json 'rules' key (not set)\n"
            f"  2. {rules_path} (not found)\n\n"
            f"Create one with: tpog-calc rules init"
        )

    return rules_path


def validate_rules(data: Any, source: Optional[Union[str, Path]] = None) -> RuleConfig:
    """Validate a rules dict against the RuleConfig schema.

    Args:
        data: Parsed rules dictionary
        source: Optional file path, used in the error message

    Returns:
        Frozen RuleConfig

    Raises:
        RulesValidationError: If the data is not a mapping or fails validation
    """
    where = f" in {source}" if source else ""

    if not isinstance(data, dict):
        raise RulesValidationError(
            f"Rules must be a YAML dictionary{where}, got {type(data).__name__}"
        )

    try:
        return RuleConfig.model_validate(data)
    except ValidationError as e:
        problems = []
        for err in e.errors():
            loc = ".".join(str(p) for p in err["loc"]) or "root"
            problems.append(f"{loc}: {err['msg']}")
        problem_str = "\n  ! ".join(problems)
        raise RulesValidationError(f"Invalid rules{where}:\n\n  ! {problem_str}")


def load_rules_dict(path: Optional[Path] = None, require_exists: bool = False) -> dict:
    """Load the raw rules dictionary.

    Falls back to a copy of DEFAULT_RULES when no file exists and
    require_exists is False.
    """
    if path is None:
        path = get_rules_path(require_exists=require_exists)
    elif require_exists and not Path(path).exists():
        raise RulesNotFoundError(f"Rules file not found: {path}")

    path = Path(path)
    if not path.exists():
        logger.debug(f"No rules at {path}, using built-in defaults")
        return json.loads(json.dumps(DEFAULT_RULES))

    with open(path, "r") as f:
        try:
            return yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise RulesValidationError(f"Invalid YAML in {path}: {e}")


def load_rules(path: Optional[Path] = None, require_exists: bool = False) -> RuleConfig:
    """Load and validate the rule configuration.

    Args:
        path: Optional explicit rules file (overrides resolution)
        require_exists: If True, a missing file raises instead of using defaults

    Returns:
        Frozen RuleConfig

    Raises:
        RulesNotFoundError: If require_exists=True and no file is found
        RulesValidationError: If the file fails schema validation
    """
    data = load_rules_dict(path, require_exists=require_exists)
    return validate_rules(data, source=path or get_rules_path())


def save_rules(rules: Union[RuleConfig, dict], path: Optional[Path] = None) -> Path:
    """Save the rule configuration to rules.yaml.

    Dicts are validated first so an invalid file is never written.

    Returns:
        Path to the saved rules file
    """
    if isinstance(rules, dict):
        rules = validate_rules(rules)

    if path is None:
        path = get_rules_path(require_exists=False)

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, "w") as f:
        yaml.safe_dump(rules.to_dict(), f, default_flow_style=False, sort_keys=False)

    return path


def get_rule_value(key: str, default: Any = None) -> Any:
    """Get a rules value by dot-notation key (e.g., "enabled_metrics.fuel")."""
    value: Any = load_rules().to_dict()

    for part in key.split("."):
        if isinstance(value, dict) and part in value:
            value = value[part]
        else:
            return default

    return value


def set_rule_value(key: str, value: Any) -> Path:
    """Set a rules value by dot-notation key and save.

    The result is validated before writing.

    Raises:
        RulesValidationError: If the new value makes the rules invalid
    """
    parts = key.split(".")
    if parts[0] not in RuleConfig.model_fields:
        valid_keys = ", ".join(RuleConfig.model_fields)
        raise RulesValidationError(f"Unknown rules key '{parts[0]}'. Valid keys: {valid_keys}")

    rules = load_rules().to_dict()
    current = rules

    for part in parts[:-1]:
        if not isinstance(current.get(part), dict):
            current[part] = {}
        current = current[part]

    current[parts[-1]] = value

    return save_rules(validate_rules(rules))

"""Rules CLI commands for TPOG Calc.

Manages the rule configuration (rules.yaml) - base rate, metric switches,
tier tables, time-off policy.
"""

from pathlib import Path

import click
import yaml

from tpogcalc.sdk import (
    get_config_dir,
    get_rules_path,
    load_settings,
    set_setting,
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


def _validate_rules_file(path):
    """Validate a rules file at the given path.

    Returns:
        RuleConfig if valid

    Raises:
        click.ClickException: If the file is missing, not YAML, or invalid
    """
    path = Path(path)

    if not path.exists():
        raise click.ClickException(f"Rules file not found: {path}")

    if path.suffix not in (".yaml", ".yml"):
        raise click.ClickException(f"Rules must be a YAML file: {path}")

    try:
        data = load_rules_dict(path, require_exists=True)
        return validate_rules(data, source=path)
    except (RulesNotFoundError, RulesValidationError) as e:
        raise click.ClickException(str(e))


def _location_label(rules_path):
    if load_settings().get("rules"):
        return "custom"
    if rules_path.exists():
        return "central (default)"
    return "built-in defaults"


# =============================================================================
# RULES commands - rule configuration (rules.yaml)
# =============================================================================

@click.group()
def rules():
    """Manage the rule configuration (rules.yaml).

    Rules hold the pay policy:
    - base_rate and enabled_metrics
    - tier tables for weeks out, MPG, speeding, tenure and gross
    - time-off accrual and escrow settings

    Keys may be written in snake_case or camelCase.
    """
    pass


@rules.command("show")
def rules_show():
    """Show the active rules and where they come from."""
    rules_path = get_rules_path(require_exists=False)

    click.echo(f"Rules: {rules_path}")
    click.echo(f"Location: {_location_label(rules_path)}")

    try:
        config = load_rules()
    except (RulesNotFoundError, RulesValidationError) as e:
        raise click.ClickException(str(e))

    click.echo()
    click.echo("---")
    click.echo(yaml.safe_dump(config.to_dict(), default_flow_style=False, sort_keys=False))


@rules.command("path")
def rules_path_cmd():
    """Print the path of the active rules file."""
    click.echo(get_rules_path(require_exists=False))


@rules.command("get")
@click.argument("key")
def rules_get(key):
    """Get a rules value.

    KEY is a dot-notation path like 'enabled_metrics.fuel'
    """
    try:
        value = get_rule_value(key)
    except (RulesNotFoundError, RulesValidationError) as e:
        raise click.ClickException(str(e))

    if value is None:
        raise click.ClickException(f"Key '{key}' not found in rules")

    if isinstance(value, (dict, list)):
        click.echo(yaml.safe_dump(value, default_flow_style=False, sort_keys=False).rstrip())
    else:
        click.echo(value)


@rules.command("set")
@click.argument("key")
@click.argument("value")
def rules_set(key, value):
    """Set a rules value.

    KEY is a dot-notation path like 'enabled_metrics.fuel'
    VALUE is parsed as YAML, so numbers, booleans and lists work

    Examples:
        tpog-calc rules set base_rate 66
        tpog-calc rules set enabled_metrics.fuel false
        tpog-calc rules set weeks_out_tiers "[{threshold: 4, bonus: 2}]"
    """
    try:
        parsed_value = yaml.safe_load(value)
    except yaml.YAMLError:
        parsed_value = value

    try:
        rules_file = set_rule_value(key, parsed_value)
    except (RulesNotFoundError, RulesValidationError) as e:
        raise click.ClickException(str(e))

    click.echo(f"Set {key} = {parsed_value}")
    click.echo(f"Saved to: {rules_file}")


@rules.command("init")
@click.option("--force", is_flag=True, help="Overwrite existing rules file")
def rules_init(force):
    """Write the built-in default rules to the central rules.yaml."""
    target = get_config_dir() / "rules.yaml"

    if target.exists() and not force:
        raise click.ClickException(
            f"Rules already exist: {target}\n"
            f"Use --force to overwrite."
        )

    path = save_rules(dict(DEFAULT_RULES), target)
    click.echo(f"Created: {path}")


@rules.command("use")
@click.argument("rules_path", type=click.Path(exists=True))
def rules_use(rules_path):
    """Set the active rules to an external file.

    RULES_PATH is the path to a rules.yaml file, typically kept in a
    repo you manage separately. The file is validated before being set.

    Examples:
        tpog-calc rules use ~/repos/fleet-config/rules.yaml
    """
    path = Path(rules_path).expanduser().resolve()
    _validate_rules_file(path)

    settings_file = set_setting("rules", str(path))
    click.echo(f"Active rules set to: {path}")
    click.echo(f"Saved to: {settings_file}")


@rules.command("validate")
@click.argument("rules_path", type=click.Path())
def rules_validate(rules_path):
    """Validate a rules file without activating it."""
    config = _validate_rules_file(rules_path)
    enabled = [name for name, on in config.enabled_metrics.model_dump().items() if on]

    click.echo(f"Valid: {rules_path}")
    click.echo(f"  base_rate: {config.base_rate:g}")
    click.echo(f"  weeks_out_method: {config.weeks_out_method}")
    click.echo(f"  speeding_penalty_method: {config.speeding_penalty_method}")
    click.echo(f"  enabled metrics: {', '.join(enabled) or 'none'}")

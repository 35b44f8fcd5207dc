"""Settings CLI commands for TPOG Calc.

Manages settings.json - rules path, output preferences.
"""

import click

from tpogcalc.sdk import (
    load_settings,
    save_settings,
    set_setting,
    get_settings_path,
    get_rules_path,
)


@click.group()
def settings():
    """Manage settings (settings.json).

    Available settings:
    - rules: path to rules.yaml (set via 'rules use')
    - default_output_format: text or json for 'report'
    """
    pass


@settings.command("show")
def settings_show():
    """Show current settings and their values."""
    settings_path = get_settings_path()
    current = load_settings()

    click.echo(f"Settings file: {settings_path}")
    click.echo(f"File exists: {settings_path.exists()}")
    click.echo()

    if not current:
        click.echo("No settings configured (using defaults).")
    else:
        click.echo("Current settings:")
        for key, value in current.items():
            click.echo(f"  {key}: {value}")

    click.echo()
    click.echo("Effective paths:")
    click.echo(f"  rules: {get_rules_path()}")


@settings.command("output-format")
@click.argument("fmt", required=False, type=click.Choice(["text", "json"]))
@click.option("--clear", is_flag=True, help="Clear the setting, revert to text")
def settings_output_format(fmt, clear):
    """Set or clear the default output format of 'report'.

    Examples:
        tpog-calc settings output-format json
        tpog-calc settings output-format --clear
    """
    if clear:
        current = load_settings()
        if "default_output_format" in current:
            del current["default_output_format"]
            save_settings(current)
            click.echo("Cleared default_output_format setting.")
        else:
            click.echo("default_output_format was not set.")
        return

    if not fmt:
        click.echo(f"default_output_format: {load_settings().get('default_output_format', 'text')}")
        return

    settings_file = set_setting("default_output_format", fmt)
    click.echo(f"Set default_output_format: {fmt}")
    click.echo(f"Saved to: {settings_file}")

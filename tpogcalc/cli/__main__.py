"""TPOG Calc CLI - Command-line interface for driver compensation reports."""

import json
import logging
import os
from pathlib import Path

import click
from rich.console import Console

from tpogcalc import __version__
from tpogcalc.sdk import (
    RulesNotFoundError,
    RulesValidationError,
    calculate_report,
    drivers_for_pay_date,
    get_setting,
    load_bundle,
    load_rules,
    process_pay_date,
)

from .renderers import render_report
from .rules_commands import rules as rules_group
from .settings_commands import settings as settings_group

logger = logging.getLogger(__name__)


def _configure_logging():
    """Configure logging based on LOG_LEVEL environment variable."""
    level = os.environ.get("LOG_LEVEL", "WARNING").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.WARNING),
        format="%(asctime)s.%(msecs)03d %(levelname)s: %(message)s",
        datefmt="%H:%M:%S",
    )


@click.group()
@click.version_option(version=__version__, prog_name="tpog-calc")
def cli():
    """TPOG Calc - Weekly driver compensation reports.

    Computes each driver's TPOG (base rate plus performance bonuses and
    penalties), off-day balance and escrow deduction for a pay date.

    Rules are loaded from (in order):

    \b
    1. --rules option
    2. settings.json 'rules' key (set via 'rules use')
    3. ~/.config/tpog-calc/rules.yaml (XDG default)
    4. Built-in defaults

    Set TPOG_CALC_CONFIG_PATH to use a different config directory.
    """
    _configure_logging()


cli.add_command(rules_group)
cli.add_command(settings_group)


def _load_rules(rules_path):
    try:
        return load_rules(Path(rules_path) if rules_path else None)
    except (RulesNotFoundError, RulesValidationError) as e:
        raise click.ClickException(str(e))


def _process_bundle(bundle, pay_date, rules):
    """Load a bundle and run the pay-date pass for one date."""
    try:
        all_drivers, inputs = load_bundle(Path(bundle))
    except (FileNotFoundError, ValueError) as e:
        raise click.ClickException(str(e))

    drivers = drivers_for_pay_date(all_drivers, pay_date)
    if not drivers:
        raise click.ClickException(f"No driver records for pay date {pay_date} in {bundle}")

    return process_pay_date(drivers, rules, inputs, all_drivers=all_drivers)


@cli.command("report")
@click.argument("bundle", type=click.Path(exists=True))
@click.option("--pay-date", required=True, help="Pay date (YYYY-MM-DD)")
@click.option("--driver", "driver_name", help="Only report this driver")
@click.option("--rules", "rules_path", type=click.Path(exists=True),
              help="Rules file (default: active rules)")
@click.option("--format", "output_format", type=click.Choice(["text", "json"]), default=None,
              help="Output format (default: settings 'default_output_format' or text)")
def report(bundle, pay_date, driver_name, rules_path, output_format):
    """Print TPOG reports for every driver of a pay date.

    BUNDLE is a JSON or YAML file with driver records and the mileage,
    safety, activity log and override data for the period.

    \b
    Examples:
      tpog-calc report week.json --pay-date 2024-06-11
      tpog-calc report week.json --pay-date 2024-06-11 --driver "Jane Doe"
      tpog-calc report week.yaml --pay-date 2024-06-11 --format json
    """
    output_format = output_format or get_setting("default_output_format", "text")
    rules = _load_rules(rules_path)
    processed = _process_bundle(bundle, pay_date, rules)

    selected = processed
    if driver_name:
        selected = [d for d in processed if d.name == driver_name]
        if not selected:
            raise click.ClickException(f"Driver '{driver_name}' not found for pay date {pay_date}")

    reports = [(d, calculate_report(d, rules, processed)) for d in selected]

    if output_format == "json":
        click.echo(json.dumps([r.to_dict() for _, r in reports], indent=2, default=str))
        return

    console = Console(width=120)
    for driver, result in reports:
        render_report(console, result.to_dict(), driver.to_dict())
        console.print()


@cli.command("process")
@click.argument("bundle", type=click.Path(exists=True))
@click.option("--pay-date", required=True, help="Pay date (YYYY-MM-DD)")
@click.option("--rules", "rules_path", type=click.Path(exists=True),
              help="Rules file (default: active rules)")
def process(bundle, pay_date, rules_path):
    """Run the pay-date pass and print the processed records as JSON.

    Fills in weekly miles, MPG, percentiles, weeks out, off-day balances
    and underperformer flags for every driver of the pay date.
    """
    rules = _load_rules(rules_path)
    processed = _process_bundle(bundle, pay_date, rules)
    click.echo(json.dumps([d.to_dict() for d in processed], indent=2, default=str))


def main():
    """Entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()

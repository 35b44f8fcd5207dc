"""Rich renderer for TPOG reports.

Transforms Report.to_dict() output into formatted Rich tables.
"""

from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich import box


def render_report(console: Console, data: dict, driver: dict | None = None) -> None:
    """Render one driver's TPOG report.

    Args:
        console: Rich Console instance
        data: Report.to_dict() output
        driver: Optional processed DriverWeek.to_dict(), for the activity strip
    """
    if driver and driver.get("is_underperformer"):
        console.print(Panel(
            f"[yellow]{driver.get('underperformer_reason', '')}[/yellow]",
            title="Note",
            border_style="yellow"
        ))

    _render_bonus_table(console, data)
    _render_time_off(console, data)

    if driver and driver.get("weekly_activity"):
        _render_activity(console, driver)


def _render_bonus_table(console: Console, data: dict) -> None:
    """Render line items and totals."""
    table = Table(
        title=f"TPOG Report: {data.get('driver_name', '?')} - {data.get('pay_date', '?')}",
        box=box.ROUNDED,
    )
    table.add_column("", style="bold", min_width=20)
    table.add_column("Bonus", justify="right", min_width=10)
    table.add_column("Details", min_width=30)

    table.add_row("Base Rate", _pct(data.get("base_rate")), "")
    table.add_row("", "", "")

    for name, item in data.get("bonuses", {}).items():
        bonus = item.get("bonus", 0)
        details = item.get("info_text") or ""
        if item.get("ignored"):
            details = f"[dim]excluded (would be {_pct(item.get('potential_bonus'))})[/dim]"
        table.add_row(f"  {name}", _signed(bonus), details)

    table.add_row("", "", "")
    table.add_row(
        "Bonuses",
        _signed(data.get("total_positive_bonuses")),
        _fmt(data.get("bonuses_in_dollars")),
    )
    table.add_row(
        "Penalties",
        _signed(data.get("total_penalties")),
        _fmt(data.get("penalties_in_dollars")),
    )
    table.add_row("", "", "")
    table.add_row(
        "[bold green]TOTAL TPOG[/bold green]",
        f"[bold green]{_pct(data.get('total_tpog'))}[/bold green]",
        f"Gross {_fmt(data.get('gross'))} -> est. net [bold]{_fmt(data.get('estimated_net'))}[/bold]",
    )

    console.print(table)


def _render_time_off(console: Console, data: dict) -> None:
    """Render the off-day ledger panel."""
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("key", style="dim")
    table.add_column("value")

    table.add_row("Days Taken", str(data.get("days_taken", 0)))
    table.add_row("Available Off Days", f"{data.get('available_off_days', 0):.2f}")
    escrow = data.get("escrow_deduct", 0)
    escrow_text = f"[red]{_fmt(escrow)}[/red]" if escrow else _fmt(escrow)
    table.add_row("Escrow Deduction", escrow_text)

    console.print(Panel(table, title="Time Off", border_style="dim"))


def _render_activity(console: Console, driver: dict) -> None:
    """Render the Tuesday-Monday activity strip."""
    title = "Weekly Activity"
    if driver.get("is_dispatcher_reviewed"):
        title += " (reviewed)"

    table = Table(title=title, box=box.SIMPLE)
    table.add_column("Day")
    table.add_column("Date")
    table.add_column("Miles", justify="right")
    table.add_column("Status")

    for day in driver["weekly_activity"]:
        status = day.get("statuses", "")
        if day.get("is_changed"):
            status = f"[magenta]{status}[/magenta] [dim](system: {day.get('system_status')})[/dim]"
        elif day.get("is_overridden"):
            status = f"{status} [dim](confirmed)[/dim]"
        table.add_row(day.get("day", ""), day.get("date", ""), f"{day.get('mileage', 0):,.0f}", status)

    console.print(table)


def _fmt(amount: float | None) -> str:
    """Format currency amount."""
    if amount is None:
        return "-"
    return f"${amount:,.2f}"


def _pct(value: float | None) -> str:
    if value is None:
        return "-"
    return f"{value:.2f}%"


def _signed(value: float | None) -> str:
    if value is None:
        return "-"
    if value < 0:
        return f"[red]{value:+.2f}%[/red]"
    return f"{value:+.2f}%"

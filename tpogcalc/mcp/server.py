"""TPOG Calc MCP Server - FastMCP implementation for compensation tools."""

import json
import logging
from pathlib import Path
from typing import Any

from mcp.server.fastmcp import FastMCP
from pydantic import Field

from tpogcalc.sdk import (
    DriverWeek,
    RulesNotFoundError,
    RulesValidationError,
    calculate_report as sdk_calculate_report,
    drivers_for_pay_date,
    load_bundle,
    load_rules,
    process_pay_date as sdk_process_pay_date,
    validate_rules,
)

logger = logging.getLogger(__name__)

# Initialize FastMCP server
mcp = FastMCP("tpog-calc")


def _rules(rules: dict | None):
    if rules:
        return validate_rules(rules, source="tool arguments")
    return load_rules()


# --- Tools ---

@mcp.tool()
async def calculate_report(
    driver: dict[str, Any] = Field(description="Driver week record (camelCase or snake_case keys)"),
    cohort: list[dict[str, Any]] | None = Field(
        default=None, description="Other driver records of the same pay date, for the MPG target"
    ),
    rules: dict[str, Any] | None = Field(
        default=None, description="Rule configuration to use instead of the active rules"
    ),
) -> dict[str, Any]:
    """Calculate the TPOG report for one already-processed driver week. Returns line items, TPOG, estimated net, off-day balance and escrow."""
    try:
        config = _rules(rules)
        record = DriverWeek.from_dict(driver)
        others = [DriverWeek.from_dict(d) for d in (cohort or [])]
        return sdk_calculate_report(record, config, others).to_dict()

    except (RulesNotFoundError, RulesValidationError) as e:
        return {"error": str(e), "report": None}
    except Exception as e:
        logger.error(f"Error calculating report: {e}")
        return {"error": str(e), "report": None}


@mcp.tool()
async def process_pay_date(
    bundle_path: str = Field(description="Path to a JSON or YAML input bundle"),
    pay_date: str = Field(description="Pay date (YYYY-MM-DD)"),
    include_reports: bool = Field(default=True, description="Also return a report per driver"),
) -> dict[str, Any]:
    """Run the pay-date pass over a bundle: weekly miles, MPG, percentiles, weeks out, off days and underperformer flags for every driver of the date."""
    try:
        config = load_rules()
        all_drivers, inputs = load_bundle(Path(bundle_path).expanduser())
        drivers = drivers_for_pay_date(all_drivers, pay_date)
        processed = sdk_process_pay_date(drivers, config, inputs, all_drivers=all_drivers)

        result = {
            "pay_date": pay_date,
            "count": len(processed),
            "drivers": [d.to_dict() for d in processed],
        }
        if include_reports:
            result["reports"] = [sdk_calculate_report(d, config, processed).to_dict() for d in processed]
        return result

    except (FileNotFoundError, ValueError) as e:
        return {"error": str(e), "drivers": []}
    except Exception as e:
        logger.error(f"Error processing pay date {pay_date}: {e}")
        return {"error": str(e), "drivers": []}


# --- Resources ---

@mcp.resource("tpogcalc://rules")
async def rules_resource() -> str:
    """The active rule configuration."""
    try:
        return json.dumps(load_rules().to_dict(), indent=2)
    except Exception as e:
        return json.dumps({"error": str(e)})


# --- Server Entry Point ---

def run_server():
    """Run the MCP server in stdio mode."""
    mcp.run(transport="stdio")


if __name__ == "__main__":
    run_server()

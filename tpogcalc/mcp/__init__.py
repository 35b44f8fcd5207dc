"""TPOG Calc MCP server."""

"""Rich renderers for CLI output."""

from .report_renderer import render_report

__all__ = ["render_report"]

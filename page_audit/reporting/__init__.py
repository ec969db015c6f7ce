"""Reporting module for audit verdicts and recorded events."""

from .aggregator import ReportAggregator, summarize_reports
from .report_writer import ReportWriter

__all__ = ["ReportAggregator", "ReportWriter", "summarize_reports"]

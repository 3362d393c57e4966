"""Reporting of backup run results."""

from .summary_reporter import SummaryReporter

__all__ = ["SummaryReporter"]

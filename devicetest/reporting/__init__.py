"""Reporting: JSON and YAML reports of test results."""

from devicetest.reporting.reporter import Reporter

__all__ = [
    "Reporter",
]

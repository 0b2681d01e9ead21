"""Execution reporting: scope tracking, outcomes and the output parser."""

from devicetest.execution.annotations import (
    annotate_device_initialization,
    annotate_missing_configuration,
)
from devicetest.execution.lifecycle import LifecycleTracker
from devicetest.execution.outcome import Outcome, TestResult, format_elapsed
from devicetest.execution.output_parser import UnitTestsOutputParser

__all__ = [
    "LifecycleTracker",
    "Outcome",
    "TestResult",
    "UnitTestsOutputParser",
    "annotate_device_initialization",
    "annotate_missing_configuration",
    "format_elapsed",
]

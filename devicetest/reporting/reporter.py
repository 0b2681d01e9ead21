"""Report generation for test execution results.

Generates JSON or YAML reports from the results of one or more test runs,
using the four-outcome model: passed, failed, skipped and none (the test
was not run or did not complete).
"""

from __future__ import annotations

import datetime
import json
from pathlib import Path
from typing import Any

import yaml

from devicetest.execution.outcome import Outcome, TestResult
from devicetest.protocol.records import TICKS_PER_MILLISECOND

# Ticks (100 ns) in a second
TICKS_PER_SECOND = TICKS_PER_MILLISECOND * 1000


class Reporter:
    """Collects test results and generates reports.

    The reporter accepts TestResult objects and produces a structured
    report containing all results with timing, outcome and messages.
    """

    def __init__(self) -> None:
        self.results: list[TestResult] = []
        self.report_prefix: str | None = None

    def set_report_prefix(self, report_prefix: str) -> None:
        """Record the control record prefix of the run in the report.

        Args:
            report_prefix: Prefix the agent used for its control records.
        """
        self.report_prefix = report_prefix

    def add_result(self, result: TestResult) -> None:
        self.results.append(result)

    def add_results(self, results: list[TestResult]) -> None:
        """Add multiple test results to the report.

        Signature matches the parser's result callback, so the reporter can
        collect results directly while output is being parsed.

        Args:
            results: List of TestResult objects.
        """
        self.results.extend(results)

    def generate_report(self) -> dict[str, Any]:
        """Generate the report data structure.

        Returns:
            Dictionary representing the full report, suitable for
            JSON or YAML serialization.
        """
        now = datetime.datetime.now(tz=datetime.timezone.utc).isoformat()

        report: dict[str, Any] = {
            "generated_at": now,
            "summary": self._compute_summary(),
        }
        if self.report_prefix:
            report["report_prefix"] = self.report_prefix
        report["tests"] = [self._format_result(r) for r in self.results]

        return {"report": report}

    def write_report(self, path: Path) -> None:
        """Write the report as a JSON file.

        Args:
            path: File path to write the JSON report to.
        """
        report = self.generate_report()
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(report, f, indent=2)

    def write_yaml(self, path: Path) -> None:
        """Write the report as a YAML file.

        Args:
            path: File path to write the YAML report to.
        """
        report = self.generate_report()
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            yaml.safe_dump(report, f, sort_keys=False, allow_unicode=True)

    def _compute_summary(self) -> dict[str, Any]:
        """Compute summary statistics from results.

        Returns:
            Dictionary with counts per outcome and total duration.
        """
        outcomes = [r.outcome for r in self.results]
        total_ticks = sum(r.duration for r in self.results)
        return {
            "total": len(self.results),
            "passed": outcomes.count(Outcome.PASSED),
            "failed": outcomes.count(Outcome.FAILED),
            "skipped": outcomes.count(Outcome.SKIPPED),
            "not_run": outcomes.count(Outcome.NONE),
            "total_duration_seconds": round(total_ticks / TICKS_PER_SECOND, 3),
        }

    def _format_result(self, result: TestResult) -> dict[str, Any]:
        """Format a single test result for the report.

        Args:
            result: TestResult to format.

        Returns:
            Dictionary representing one test entry in the report.
        """
        test_case = result.test_case
        entry: dict[str, Any] = {
            "id": test_case.test_case_id,
            "name": test_case.fully_qualified_name,
            "display_name": result.display_name,
            "assembly": test_case.assembly_file_path,
            "device_type": test_case.device_type.value,
            "outcome": result.outcome.value,
            "duration_ticks": result.duration,
            "duration_seconds": round(result.duration / TICKS_PER_SECOND, 3),
        }

        if result.selection_index >= 0:
            entry["selection_index"] = result.selection_index
        if test_case.categories:
            entry["categories"] = sorted(test_case.categories)
        if result.error_message:
            entry["error_message"] = result.error_message
        if result.messages:
            entry["messages"] = result.messages

        return entry

"""Post-processing of results with information from outside the output stream."""

from __future__ import annotations

from typing import Iterable

from devicetest.execution.outcome import TestResult
from devicetest.model.test_case import TestCase


def missing_configuration_keys(test_case: TestCase, available_keys: Iterable[str]) -> list[str]:
    """Deployment configuration keys the test case needs but cannot get, sorted."""
    required = set(test_case.group.required_configuration_keys)
    required.update(test_case.required_configuration_keys)
    return sorted(required - set(available_keys))


def annotate_missing_configuration(
    results: Iterable[TestResult], available_keys: Iterable[str],
) -> list[TestResult]:
    """Tell which deployment configuration was not available to a test.

    Args:
        results: Results as emitted by the parser.
        available_keys: Keys present in the run's deployment configuration.

    Returns:
        The results, with a ``Deployment configuration`` section added to
        those whose test case requires a key that is not available.
    """
    available = set(available_keys)
    annotated = []
    for result in results:
        missing = missing_configuration_keys(result.test_case, available)
        if missing:
            keys = ", ".join(f"'{key}'" for key in missing)
            result = result.with_section(
                "Deployment configuration", f"No data available for keys: {keys}",
            )
        annotated.append(result)
    return annotated


def annotate_device_initialization(
    results: Iterable[TestResult], log_lines: list[str],
) -> list[TestResult]:
    """Add the log of the device initialization to every result, if there is any."""
    if not log_lines:
        return list(results)
    text = "\n".join(log_lines)
    return [result.with_section("Device initialization", text) for result in results]

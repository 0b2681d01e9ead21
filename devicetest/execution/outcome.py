"""Test results and the rules that turn lifecycle events into them.

Every selected test case ends up with exactly one ``TestResult``.  While
the agent's output is parsed, a mutable ``TestRun`` collects what happened
to a test case; ``build_result`` freezes it, adding the text of the shared
setup/cleanup sections and of the run-wide deployment buffer.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field, replace

from devicetest.model.test_case import TestCase
from devicetest.protocol.records import TICKS_PER_MILLISECOND

NOT_RUN = "Test has not been run"
NOT_COMPLETED = "Test has not been completed"
TEST_FAILED = "Test failed"
TEST_SKIPPED = "Test skipped"
SETUP_FAILED = "Setup failed"
CLEANUP_FAILED = "Cleanup failed"
METHOD_NOT_FOUND = "Method not found"


class Outcome(enum.Enum):
    NONE = "none"
    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"


class SubPhase(enum.Enum):
    """Last lifecycle step the agent announced for a scope."""

    NONE = "none"
    INSTANTIATED = "instantiated"
    SETUP_RUNNING = "setup_running"
    CLEANUP_RUNNING = "cleanup_running"
    DISPOSED = "disposed"


@dataclass(frozen=True)
class TestResult:
    """Final result of one selected test case.

    ``duration`` is in ticks of 100 ns.  ``messages`` holds the composed
    text: the test's own output first, followed by ``*** Section ***``
    blocks.
    """

    test_case: TestCase
    selection_index: int
    display_name: str
    duration: int
    outcome: Outcome
    error_message: str
    messages: str

    def with_section(self, title: str, text: str) -> TestResult:
        """Copy of the result with an extra section appended to the messages."""
        return replace(self, messages=f"{self.messages}{format_section(title, text)}")


def format_elapsed(ticks: int) -> str:
    """Whole milliseconds of an elapsed time, ``"< 1"`` below one millisecond."""
    milliseconds = ticks // TICKS_PER_MILLISECOND
    return "< 1" if milliseconds == 0 else str(milliseconds)


def format_section(title: str, text: str) -> str:
    return f"\n\n*** {title} ***\n{text}"


def _with_reason(text: str, reason: str | None) -> str:
    return text if reason is None else f"{text}: {reason}"


def passed_line(elapsed: int) -> str:
    return f"Test passed after {format_elapsed(elapsed)} ms"


def failed_line(elapsed: int, reason: str | None) -> str:
    return _with_reason(f"Test failed after {format_elapsed(elapsed)} ms", reason)


def skipped_line(elapsed: int, reason: str | None) -> str:
    return _with_reason(
        f"Execution of the test is aborted after {format_elapsed(elapsed)} ms", reason,
    )


def setup_completed_line(elapsed: int) -> str:
    return f"Setup completed after {format_elapsed(elapsed)} ms"


def cleanup_completed_line(elapsed: int) -> str:
    return f"Cleanup completed after {format_elapsed(elapsed)} ms"


def setup_failed_line(elapsed: int, reason: str | None, phase: SubPhase | None = None) -> str:
    """Describe a setup failure.

    Args:
        elapsed: Elapsed ticks reported with the failure.
        reason: Reason reported by the agent, if any.
        phase: Last sub-phase of the class scope that failed, or None
            for a failure inside a test method's scope.
    """
    if phase is SubPhase.INSTANTIATED:
        what = "Constructor of test class"
    elif phase is SubPhase.SETUP_RUNNING:
        what = "Execution of setup method"
    else:
        what = "Setup for the test"
    return _with_reason(f"{what} failed after {format_elapsed(elapsed)} ms", reason)


def cleanup_failed_line(elapsed: int, reason: str | None, phase: SubPhase | None = None) -> str:
    """Describe a cleanup failure; ``phase`` as for ``setup_failed_line``."""
    if phase is SubPhase.CLEANUP_RUNNING:
        what = "Execution of cleanup method"
    elif phase is SubPhase.DISPOSED:
        what = "IDisposable.Dispose of test class"
    else:
        what = "Cleanup for the test"
    return _with_reason(f"{what} failed after {format_elapsed(elapsed)} ms", reason)


@dataclass
class TestRun:
    """What has been observed so far for one selected test case.

    ``body`` holds the lines that make up the start of the result's
    messages, in the order they were seen.  ``opened`` is set once the
    agent opened a scope for the test case.
    """

    test_case: TestCase
    selection_index: int
    outcome: Outcome = Outcome.NONE
    error_message: str = NOT_RUN
    duration: int = 0
    opened: bool = False
    body: list[str] = field(default_factory=list)

    @property
    def resolved(self) -> bool:
        return self.outcome is not Outcome.NONE

    def passed(self, elapsed: int) -> None:
        self.body.append(passed_line(elapsed))
        self._resolve(Outcome.PASSED, "", elapsed)

    def failed(self, elapsed: int, reason: str | None) -> None:
        self.body.append(failed_line(elapsed, reason))
        self._resolve(Outcome.FAILED, TEST_FAILED, elapsed)

    def skipped(self, elapsed: int, reason: str | None) -> None:
        self.body.append(skipped_line(elapsed, reason))
        self._resolve(Outcome.SKIPPED, TEST_SKIPPED, elapsed)

    def setup_failed(self, elapsed: int, reason: str | None) -> None:
        self.body.append(setup_failed_line(elapsed, reason))
        self._resolve(Outcome.FAILED, SETUP_FAILED, elapsed)

    def cleanup_failed(self, elapsed: int, reason: str | None) -> None:
        """A failing cleanup of the test's own scope overrides any outcome."""
        self.body.append(cleanup_failed_line(elapsed, reason))
        self._resolve(Outcome.FAILED, CLEANUP_FAILED, elapsed)

    def method_not_found(self, reason: str | None) -> None:
        if reason:
            self.body.append(reason)
        self._resolve(Outcome.FAILED, METHOD_NOT_FOUND, 0)

    def class_setup_failed(self) -> None:
        """The test class could not be set up, so the test never ran."""
        self._resolve(Outcome.FAILED, SETUP_FAILED, 0)

    def class_skipped(self, elapsed: int, reason: str | None) -> None:
        self.body.append(skipped_line(elapsed, reason))
        self._resolve(Outcome.SKIPPED, TEST_SKIPPED, 0)

    def class_cleanup_failed(self) -> None:
        """Only a passed test is turned into a failure by the class cleanup."""
        if self.outcome is Outcome.PASSED:
            self.outcome = Outcome.FAILED
            self.error_message = CLEANUP_FAILED

    def _resolve(self, outcome: Outcome, error_message: str, duration: int) -> None:
        self.outcome = outcome
        self.error_message = error_message
        self.duration = duration


def build_result(
    run: TestRun,
    setup_lines: list[str] | None = None,
    cleanup_lines: list[str] | None = None,
    deployment_lines: list[str] | None = None,
) -> TestResult:
    """Freeze a test run into its final result.

    Args:
        run: The observations for the test case.
        setup_lines: Text of the class's shared setup section.
        cleanup_lines: Text of the class's shared cleanup section.
        deployment_lines: Run-wide text seen before the first test class.
            The section is added if any line was captured, even an empty one.

    Returns:
        The result; sections without content are left out.
    """
    error_message = run.error_message
    body = list(run.body)
    if not run.resolved:
        if run.opened:
            error_message = NOT_COMPLETED
            body.append(f"{NOT_COMPLETED}.")
        else:
            error_message = NOT_RUN
            body = [f"{NOT_RUN}."]
    elif not body:
        body = [f"{NOT_RUN}."]

    messages = "\n".join(body)
    setup = "\n".join(setup_lines or []).strip()
    if setup:
        messages += format_section("Setup", setup)
    cleanup = "\n".join(cleanup_lines or []).strip()
    if cleanup:
        messages += format_section("Cleanup", cleanup)
    if deployment_lines:
        messages += format_section("Deployment", "\n".join(deployment_lines))

    return TestResult(
        test_case=run.test_case,
        selection_index=run.selection_index,
        display_name=f"{run.test_case.display_name} - {error_message or 'Passed'}",
        duration=run.duration,
        outcome=run.outcome,
        error_message=error_message,
        messages=messages,
    )

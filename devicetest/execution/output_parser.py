"""Streaming parser for the output of a test execution agent."""

from __future__ import annotations

import logging
from typing import Callable

from devicetest.execution.lifecycle import LifecycleTracker
from devicetest.execution.outcome import TestResult
from devicetest.model.selection import TestCaseSelection
from devicetest.protocol.records import decode_record

logger = logging.getLogger(__name__)


class UnitTestsOutputParser:
    """Turns the agent's output into one ``TestResult`` per selected test case.

    Output can be offered in chunks of any size; only complete lines are
    interpreted.  Results are passed to ``on_results`` in batches as soon
    as they are final.  After ``flush`` every test case of the selection
    has been reported exactly once.

    Args:
        selection: The test cases the agent was asked to run.
        report_prefix: Prefix of the control records in the output.
        on_results: Receives each batch of results.
        communicate_by_names: Whether the agent sends lifecycle codes by
            name instead of by ordinal.

    Raises:
        ValueError: If ``report_prefix`` is empty.
    """

    def __init__(
        self,
        selection: TestCaseSelection,
        report_prefix: str,
        on_results: Callable[[list[TestResult]], None],
        communicate_by_names: bool = False,
    ) -> None:
        if not report_prefix:
            raise ValueError("report prefix must not be empty")
        self.selection = selection
        self.report_prefix = report_prefix
        self.communicate_by_names = communicate_by_names
        self._on_results = on_results
        self._tracker = LifecycleTracker(selection)
        self._pending: list[str] = []
        self._flushed = False

    def add_output(self, output: str) -> None:
        """Offer the next chunk of output."""
        if self._flushed:
            logger.warning("Output received after the parser was flushed is ignored")
            return
        if "\n" not in output:
            # Unterminated text is joined once its line is complete
            if output:
                self._pending.append(output)
            return
        self._pending.append(output)
        lines = "".join(self._pending).split("\n")
        self._pending = [lines.pop()]
        for line in lines:
            self._process_line(line)
        self._deliver()

    def flush(self) -> None:
        """Signal the end of the output and report all remaining test cases."""
        if self._flushed:
            return
        self._flushed = True
        partial = "".join(self._pending)
        self._pending = []
        if partial:
            self._process_line(partial)
        self._tracker.finish()
        self._deliver()

    def _process_line(self, line: str) -> None:
        if line.endswith("\r"):
            line = line[:-1]
        record = decode_record(line, self.report_prefix, self.communicate_by_names)
        if record is None:
            self._tracker.text(line)
        else:
            self._tracker.record(record)

    def _deliver(self) -> None:
        results = self._tracker.take_results()
        if results:
            self._on_results(results)

"""Scope tracking for the agent's output stream.

The tracker keeps the scope the agent is currently in as one explicit
state value:

* ``Idle`` - no class scope is open.
* ``InIgnoredClass`` - the agent runs a class that is not in the selection.
* ``InClass`` - a selected test class is open, no test is running.
* ``InClassAndMethod`` - a test method or data row of the class is open.
* ``InClassIgnoredMethod`` - the agent runs an unknown member of the class.

Control records move the tracker from state to state and update the
``TestRun`` of the affected test cases.  Plain text goes to the capture
buffer that belongs to the current state; text that belongs to no scope
is dropped.

Whether setup and cleanup are reported at class scope or inside every
test method's scope depends on the group.  Records in the wrong place are
ignored.  Results of a group with shared setup/cleanup are held back until
the class scope closes, because a failing class cleanup still changes
them.  Results of a group with setup/cleanup per test method are final as
soon as the method's scope closes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Union

from devicetest.execution.outcome import (
    SubPhase,
    TestResult,
    TestRun,
    build_result,
    cleanup_completed_line,
    cleanup_failed_line,
    setup_completed_line,
    setup_failed_line,
)
from devicetest.model.group import TestCaseGroup
from devicetest.model.selection import TestCaseSelection
from devicetest.protocol.records import Communication, ProtocolRecord, Scope

logger = logging.getLogger(__name__)

# Codes that end a test's scope in a group with shared setup/cleanup
_TEST_TERMINAL_CODES = frozenset({
    Communication.PASS,
    Communication.FAIL,
    Communication.SKIPPED,
    Communication.SETUP_FAIL,
    Communication.CLEANUP_FAIL,
    Communication.METHOD_ERROR,
})

# Codes that end a test's scope in a group with setup/cleanup per test method
_PER_METHOD_CLOSING_CODES = frozenset({
    Communication.CLEANUP_COMPLETE,
    Communication.CLEANUP_FAIL,
    Communication.METHOD_ERROR,
})

_LIFECYCLE_PHASES = {
    Communication.INSTANTIATE: SubPhase.INSTANTIATED,
    Communication.SETUP: SubPhase.SETUP_RUNNING,
    Communication.CLEANUP: SubPhase.CLEANUP_RUNNING,
    Communication.DISPOSE: SubPhase.DISPOSED,
}

_NO_EFFECT_CODES = frozenset({
    Communication.TESTS_COMPLETE,
    Communication.ALL_TESTS_DONE,
})


@dataclass
class ClassScope:
    """An open test class and the shared setup/cleanup text of its tests."""

    group: TestCaseGroup
    runs: list[TestRun]
    phase: SubPhase = SubPhase.NONE
    setup_completed: bool = False
    setup_failed: bool = False
    cleanup_finished: bool = False
    tests_started: bool = False
    setup_lines: list[str] = field(default_factory=list)
    cleanup_lines: list[str] = field(default_factory=list)

    @property
    def per_test_method(self) -> bool:
        return self.group.setup_cleanup_per_test_method

    @property
    def in_setup(self) -> bool:
        """True while the class is still being prepared for its tests."""
        return not (
            self.setup_completed
            or self.setup_failed
            or self.tests_started
            or self.cleanup_finished
        )

    @property
    def in_cleanup(self) -> bool:
        return not self.cleanup_finished and self.phase in (
            SubPhase.CLEANUP_RUNNING, SubPhase.DISPOSED,
        )


@dataclass
class MethodScope:
    """An open test method or data row scope."""

    identifier: str
    runs: list[TestRun]
    phase: SubPhase = SubPhase.NONE


@dataclass
class Idle:
    pass


@dataclass
class InIgnoredClass:
    identifier: str


@dataclass
class InClass:
    scope: ClassScope


@dataclass
class InClassAndMethod:
    scope: ClassScope
    method: MethodScope


@dataclass
class InClassIgnoredMethod:
    scope: ClassScope
    identifier: str


ScopeState = Union[Idle, InIgnoredClass, InClass, InClassAndMethod, InClassIgnoredMethod]


class LifecycleTracker:
    """Follows the agent through the scopes of one selection.

    Results become available through ``take_results`` as soon as they are
    final.  After ``finish`` every test case of the selection has exactly
    one result.
    """

    def __init__(self, selection: TestCaseSelection) -> None:
        self.selection = selection
        self.state: ScopeState = Idle()
        self.deployment_lines: list[str] = []
        self._class_seen = False
        self._runs: dict[int, TestRun] = {
            id(entry.test_case): TestRun(entry.test_case, entry.selection_index)
            for entry in selection.entries
        }
        self._emitted: set[int] = set()
        self._ready: list[TestResult] = []

    # ------------------------------------------------------------------
    # Input
    # ------------------------------------------------------------------

    def text(self, line: str) -> None:
        """Attribute a plain text line to the current scope."""
        state = self.state
        if isinstance(state, InClassAndMethod):
            for run in state.method.runs:
                run.body.append(line)
        elif isinstance(state, InClass):
            scope = state.scope
            if scope.in_setup:
                scope.setup_lines.append(line)
            elif scope.in_cleanup:
                scope.cleanup_lines.append(line)
            else:
                logger.debug("Dropped output between scopes of %s: %r",
                             scope.group.fully_qualified_name, line)
        elif isinstance(state, Idle) and not self._class_seen:
            self.deployment_lines.append(line)
        else:
            logger.debug("Dropped output outside of a selected scope: %r", line)

    def record(self, record: ProtocolRecord) -> None:
        """Apply a control record."""
        if record.scope is Scope.CLASS:
            self._class_record(record)
        else:
            self._test_record(record)

    def finish(self) -> None:
        """Close all open scopes and resolve every test case not yet reported."""
        if not isinstance(self.state, (Idle, InIgnoredClass)):
            self._close_class()
        self.state = Idle()
        for run in self._runs.values():
            self._emit(run)

    def take_results(self) -> list[TestResult]:
        """Results that became final since the previous call."""
        ready, self._ready = self._ready, []
        return ready

    # ------------------------------------------------------------------
    # Class scope
    # ------------------------------------------------------------------

    def _class_record(self, record: ProtocolRecord) -> None:
        code = record.code
        if code is Communication.START:
            self._open_class(record.identifier)
            return

        state = self.state
        if isinstance(state, InIgnoredClass):
            if code is Communication.DONE and record.identifier == state.identifier:
                self.state = Idle()
            return
        if isinstance(state, Idle):
            logger.debug("Ignored %s for class %s that is not running",
                         code.wire_name, record.identifier)
            return
        scope = state.scope
        if record.identifier != scope.group.fully_qualified_name:
            logger.debug("Ignored %s for class %s while %s is running",
                         code.wire_name, record.identifier, scope.group.fully_qualified_name)
            return
        if not isinstance(state, InClass):
            self._close_method()

        if code is Communication.DONE:
            self._close_class()
        elif code in _NO_EFFECT_CODES:
            pass
        elif code in _LIFECYCLE_PHASES:
            if self._misplaced(scope, record, at_class_scope=True):
                return
            scope.phase = _LIFECYCLE_PHASES[code]
        elif code is Communication.SETUP_COMPLETE:
            if self._misplaced(scope, record, at_class_scope=True):
                return
            scope.setup_lines.append(setup_completed_line(record.elapsed))
            scope.setup_completed = True
            scope.phase = SubPhase.NONE
        elif code is Communication.CLEANUP_COMPLETE:
            if self._misplaced(scope, record, at_class_scope=True):
                return
            scope.cleanup_lines.append(cleanup_completed_line(record.elapsed))
            scope.cleanup_finished = True
            scope.phase = SubPhase.NONE
        elif code is Communication.SETUP_FAIL:
            self._class_setup_failed(
                scope, setup_failed_line(record.elapsed, record.reason, scope.phase),
            )
        elif code is Communication.CLEANUP_FAIL:
            if self._misplaced(scope, record, at_class_scope=True):
                return
            self._class_cleanup_failed(
                scope, cleanup_failed_line(record.elapsed, record.reason, scope.phase),
            )
        elif code is Communication.METHOD_ERROR:
            # The missing method is the cleanup method once tests could run
            if scope.setup_completed or scope.tests_started or scope.in_cleanup:
                if self._misplaced(scope, record, at_class_scope=True):
                    return
                self._class_cleanup_failed(scope, record.reason or "")
            else:
                self._class_setup_failed(scope, record.reason or "")
        elif code is Communication.SKIPPED:
            for run in scope.runs:
                if not run.resolved:
                    run.class_skipped(record.elapsed, record.reason)
            scope.setup_failed = True
        else:
            logger.debug("Ignored %s at class scope of %s",
                         code.wire_name, scope.group.fully_qualified_name)

    def _open_class(self, identifier: str) -> None:
        if not isinstance(self.state, (Idle, InIgnoredClass)):
            self._close_class()
        self._class_seen = True

        group = self.selection.find_group(identifier)
        if group is None:
            logger.debug("Class %s is not part of the selection", identifier)
            self.state = InIgnoredClass(identifier)
            return
        runs = [self._runs[id(tc)] for tc in self.selection.test_cases_of(group)]
        self.state = InClass(ClassScope(group, runs))

    def _close_class(self) -> None:
        state = self.state
        if isinstance(state, (Idle, InIgnoredClass)):
            return
        self._close_method()
        scope = state.scope
        for run in scope.runs:
            self._emit(run, scope.setup_lines, scope.cleanup_lines)
        self.state = Idle()

    @staticmethod
    def _class_setup_failed(scope: ClassScope, line: str) -> None:
        if line:
            scope.setup_lines.append(line)
        scope.setup_failed = True
        scope.phase = SubPhase.NONE
        for run in scope.runs:
            if not run.resolved:
                run.class_setup_failed()

    @staticmethod
    def _class_cleanup_failed(scope: ClassScope, line: str) -> None:
        if line:
            scope.cleanup_lines.append(line)
        scope.cleanup_finished = True
        scope.phase = SubPhase.NONE
        for run in scope.runs:
            run.class_cleanup_failed()

    # ------------------------------------------------------------------
    # Method / data row scope
    # ------------------------------------------------------------------

    def _test_record(self, record: ProtocolRecord) -> None:
        state = self.state
        if isinstance(state, (Idle, InIgnoredClass)):
            logger.debug("Ignored %s for %s outside of a selected class",
                         record.code.wire_name, record.identifier)
            return

        if isinstance(state, InClassAndMethod) and state.method.identifier == record.identifier:
            method = state.method
        elif isinstance(state, InClassIgnoredMethod) and state.identifier == record.identifier:
            return
        else:
            self._close_method()
            method = self._open_method(state.scope, record)
            if method is None:
                return

        scope = state.scope
        code = record.code
        if code is Communication.START:
            method.phase = SubPhase.NONE
        elif code in _LIFECYCLE_PHASES:
            if self._misplaced(scope, record, at_class_scope=False):
                return
            method.phase = _LIFECYCLE_PHASES[code]
        elif code is Communication.SETUP_COMPLETE:
            if self._misplaced(scope, record, at_class_scope=False):
                return
            for run in method.runs:
                run.body.append(setup_completed_line(record.elapsed))
        elif code is Communication.CLEANUP_COMPLETE:
            if self._misplaced(scope, record, at_class_scope=False):
                return
            for run in method.runs:
                run.body.append(cleanup_completed_line(record.elapsed))
        elif code is Communication.PASS:
            for run in method.runs:
                run.passed(record.elapsed)
        elif code is Communication.FAIL:
            for run in method.runs:
                run.failed(record.elapsed, record.reason)
        elif code is Communication.SKIPPED:
            for run in method.runs:
                run.skipped(record.elapsed, record.reason)
        elif code is Communication.SETUP_FAIL:
            for run in method.runs:
                run.setup_failed(record.elapsed, record.reason)
        elif code is Communication.CLEANUP_FAIL:
            for run in method.runs:
                run.cleanup_failed(record.elapsed, record.reason)
        elif code is Communication.METHOD_ERROR:
            for run in method.runs:
                run.method_not_found(record.reason)
        else:
            logger.debug("Ignored %s at test scope of %s", code.wire_name, record.identifier)
            return

        closing = _PER_METHOD_CLOSING_CODES if scope.per_test_method else _TEST_TERMINAL_CODES
        if code in closing:
            self._close_method()

    def _open_method(self, scope: ClassScope, record: ProtocolRecord) -> MethodScope | None:
        test_cases = self.selection.find_test_cases(
            record.name, record.data_row_index, group=scope.group,
        )
        runs = [self._runs[id(tc)] for tc in test_cases]
        runs = [run for run in runs if id(run) not in self._emitted]
        # Any member running means the class got past its setup
        scope.tests_started = True
        if not runs:
            logger.debug("Test %s is not part of the selection", record.identifier)
            self.state = InClassIgnoredMethod(scope, record.identifier)
            return None

        for run in runs:
            run.opened = True
        method = MethodScope(record.identifier, runs)
        self.state = InClassAndMethod(scope, method)
        return method

    def _close_method(self) -> None:
        state = self.state
        if not isinstance(state, (InClassAndMethod, InClassIgnoredMethod)):
            return
        scope = state.scope
        if isinstance(state, InClassAndMethod) and scope.per_test_method:
            for run in state.method.runs:
                self._emit(run, scope.setup_lines)
        self.state = InClass(scope)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _misplaced(scope: ClassScope, record: ProtocolRecord, at_class_scope: bool) -> bool:
        """True (and logged) if the group reports this record at the other scope."""
        if scope.per_test_method != at_class_scope:
            return False
        logger.debug(
            "Ignored %s of %s: %s reports setup and cleanup %s",
            record.code.wire_name, record.identifier,
            scope.group.fully_qualified_name,
            "per test method" if scope.per_test_method else "for the whole class",
        )
        return True

    def _emit(
        self,
        run: TestRun,
        setup_lines: list[str] | None = None,
        cleanup_lines: list[str] | None = None,
    ) -> None:
        if id(run) in self._emitted:
            return
        self._emitted.add(id(run))
        self._ready.append(
            build_result(run, setup_lines, cleanup_lines, self.deployment_lines)
        )

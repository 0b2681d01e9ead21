"""Control records embedded in the execution agent's output.

The agent interleaves plain output lines with control records of the form::

    {prefix}:{C|M|D}:{identifier}:{elapsed}:{code}[:{reason}]

``prefix`` is chosen per run so that test output cannot be mistaken for a
record.  ``C`` records refer to a test class, ``M`` records to a test
method and ``D`` records to one data row of a test method, in which case
the identifier ends in ``#{data row index}``.  ``elapsed`` is measured in
ticks of 100 ns since the scope's ``Start``.  ``code`` is a
``Communication`` name or its ordinal, depending on how the run was
configured.  The reason is everything after the fifth colon and may
itself contain colons.

Lines that start with the prefix but do not follow the grammar are plain
text; decoding never raises.
"""

from __future__ import annotations

import enum
import sys
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Generator

# Number of elapsed-time ticks in a millisecond
TICKS_PER_MILLISECOND = 10_000


class Scope(enum.Enum):
    """Scope a control record refers to; the value is the wire character."""

    CLASS = "C"
    METHOD = "M"
    DATA_ROW = "D"


class Communication(enum.IntEnum):
    """Lifecycle codes; the integer value is the wire ordinal."""

    METHOD_ERROR = 0
    START = 1
    INSTANTIATE = 2
    SETUP = 3
    SETUP_COMPLETE = 4
    SETUP_FAIL = 5
    SKIPPED = 6
    PASS = 7
    FAIL = 8
    TESTS_COMPLETE = 9
    CLEANUP = 10
    DISPOSE = 11
    CLEANUP_FAIL = 12
    CLEANUP_COMPLETE = 13
    DONE = 14
    ALL_TESTS_DONE = 15

    @property
    def wire_name(self) -> str:
        return WIRE_NAMES[self]


WIRE_NAMES: dict[Communication, str] = {
    Communication.METHOD_ERROR: "MethodError",
    Communication.START: "Start",
    Communication.INSTANTIATE: "Instantiate",
    Communication.SETUP: "Setup",
    Communication.SETUP_COMPLETE: "SetupComplete",
    Communication.SETUP_FAIL: "SetupFail",
    Communication.SKIPPED: "Skipped",
    Communication.PASS: "Pass",
    Communication.FAIL: "Fail",
    Communication.TESTS_COMPLETE: "TestsComplete",
    Communication.CLEANUP: "Cleanup",
    Communication.DISPOSE: "Dispose",
    Communication.CLEANUP_FAIL: "CleanupFail",
    Communication.CLEANUP_COMPLETE: "CleanUpComplete",
    Communication.DONE: "Done",
    Communication.ALL_TESTS_DONE: "AllTestsDone",
}

_BY_WIRE_NAME = {name: code for code, name in WIRE_NAMES.items()}
_SCOPES = {s.value: s for s in Scope}


@dataclass(frozen=True)
class ProtocolRecord:
    """A decoded control record."""

    scope: Scope
    identifier: str
    elapsed: int
    code: Communication
    reason: str | None = None

    @property
    def name(self) -> str:
        """Identifier without the ``#{index}`` suffix of a data row record."""
        if self.scope is Scope.DATA_ROW:
            return self.identifier.rsplit("#", 1)[0]
        return self.identifier

    @property
    def data_row_index(self) -> int:
        """Data row index of a ``D`` record, -1 for other scopes."""
        if self.scope is Scope.DATA_ROW:
            return int(self.identifier.rsplit("#", 1)[1])
        return -1


def _decode_code(raw: str, communicate_by_names: bool) -> Communication | None:
    if communicate_by_names:
        return _BY_WIRE_NAME.get(raw)
    if not raw.isascii() or not raw.isdigit():
        return None
    try:
        return Communication(int(raw))
    except ValueError:
        return None


def decode_record(
    line: str, prefix: str, communicate_by_names: bool = False,
) -> ProtocolRecord | None:
    """Decode one output line.

    Args:
        line: A complete line without its line terminator.
        prefix: The run's record prefix.
        communicate_by_names: Whether codes are sent as names (``Pass``)
            rather than ordinals (``7``).

    Returns:
        The record, or None if the line is plain text.
    """
    lead = f"{prefix}:"
    if not line.startswith(lead):
        return None
    parts = line[len(lead):].split(":", 4)
    if len(parts) < 4:
        return None
    scope_char, identifier, elapsed, raw_code = parts[:4]

    scope = _SCOPES.get(scope_char)
    if scope is None or not identifier:
        return None
    if scope is Scope.DATA_ROW:
        name, sep, index = identifier.rpartition("#")
        if not sep or not name or not index.isascii() or not index.isdigit():
            return None
    if not elapsed.isascii() or not elapsed.isdigit():
        return None
    code = _decode_code(raw_code, communicate_by_names)
    if code is None:
        return None

    return ProtocolRecord(
        scope=scope,
        identifier=identifier,
        elapsed=int(elapsed),
        code=code,
        reason=parts[4] if len(parts) == 5 else None,
    )


def format_record(
    prefix: str,
    scope: Scope,
    identifier: str,
    code: Communication,
    elapsed: int = 0,
    reason: str | None = None,
    communicate_by_names: bool = False,
) -> str:
    """Encode a control record as a line (without line terminator)."""
    raw_code = code.wire_name if communicate_by_names else str(int(code))
    line = f"{prefix}:{scope.value}:{identifier}:{elapsed}:{raw_code}"
    if reason is not None:
        line += f":{reason}"
    return line


def _print_line(line: str) -> None:
    sys.stdout.write(line + "\n")


class RecordWriter:
    """Emits control records and plain text the way an execution agent does.

    Every line goes to ``emit`` (standard output by default), so a list's
    ``append`` can be passed to capture a stream.
    """

    def __init__(
        self,
        prefix: str,
        communicate_by_names: bool = False,
        emit: Callable[[str], None] | None = None,
    ) -> None:
        if not prefix:
            raise ValueError("record prefix must not be empty")
        self.prefix = prefix
        self.communicate_by_names = communicate_by_names
        self._emit = emit if emit is not None else _print_line

    def text(self, line: str) -> None:
        self._emit(line)

    def record(
        self,
        scope: Scope,
        identifier: str,
        code: Communication,
        elapsed: int = 0,
        reason: str | None = None,
    ) -> str:
        line = format_record(
            self.prefix, scope, identifier, code, elapsed, reason,
            self.communicate_by_names,
        )
        self._emit(line)
        return line

    def class_record(
        self, identifier: str, code: Communication, elapsed: int = 0, reason: str | None = None,
    ) -> str:
        return self.record(Scope.CLASS, identifier, code, elapsed, reason)

    def method_record(
        self, identifier: str, code: Communication, elapsed: int = 0, reason: str | None = None,
    ) -> str:
        return self.record(Scope.METHOD, identifier, code, elapsed, reason)

    def data_row_record(
        self,
        identifier: str,
        data_row_index: int,
        code: Communication,
        elapsed: int = 0,
        reason: str | None = None,
    ) -> str:
        return self.record(
            Scope.DATA_ROW, f"{identifier}#{data_row_index}", code, elapsed, reason,
        )

    @contextmanager
    def class_scope(self, identifier: str) -> Generator[RecordWriter, None, None]:
        """Bracket the records of one test class with ``Start`` and ``Done``."""
        self.class_record(identifier, Communication.START)
        try:
            yield self
        finally:
            self.class_record(identifier, Communication.DONE)

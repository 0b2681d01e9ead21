"""Test case groups.

A group corresponds to one discovered test class.  It fixes how the class
is instantiated and whether the setup/cleanup lifecycle runs once for the
whole class or around every test method, which in turn decides where the
execution agent reports those lifecycle steps.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass


class InstantiationType(enum.Enum):
    """How the execution agent creates instances of the test class."""

    NO_INSTANTIATION = "no_instantiation"
    INSTANTIATE_PER_TEST_METHOD = "instantiate_per_test_method"
    INSTANTIATE_FOR_ALL_METHODS = "instantiate_for_all_methods"


@dataclass(frozen=True)
class SourceLocation:
    """Position of a declaration in the test project's source code."""

    path: str
    line: int = 0

    def for_message(self) -> str:
        """Format as ``path(line)`` for diagnostics."""
        if self.line > 0:
            return f"{self.path}({self.line})"
        return self.path


@dataclass(frozen=True)
class LifecycleMethod:
    """A setup or cleanup method of a test class."""

    name: str
    member_index: int
    source_location: SourceLocation | None = None
    required_configuration_keys: tuple[str, ...] = ()


@dataclass(frozen=True, eq=False)
class TestCaseGroup:
    """One test class, shared by reference by all of its test cases.

    Only the first declared setup method and the first declared cleanup
    method are used by the agent; any later declarations are kept for
    reference but have no effect.
    """

    group_index: int
    fully_qualified_name: str
    instantiation: InstantiationType = InstantiationType.NO_INSTANTIATION
    setup_cleanup_per_test_method: bool = False
    setup_methods: tuple[LifecycleMethod, ...] = ()
    cleanup_methods: tuple[LifecycleMethod, ...] = ()

    @property
    def setup_method(self) -> LifecycleMethod | None:
        return self.setup_methods[0] if self.setup_methods else None

    @property
    def cleanup_method(self) -> LifecycleMethod | None:
        return self.cleanup_methods[0] if self.cleanup_methods else None

    @property
    def setup_method_index(self) -> int:
        """Member index of the setup method, or -1 if there is none."""
        method = self.setup_method
        return -1 if method is None else method.member_index

    @property
    def cleanup_method_index(self) -> int:
        """Member index of the cleanup method, or -1 if there is none."""
        method = self.cleanup_method
        return -1 if method is None else method.member_index

    @property
    def required_configuration_keys(self) -> frozenset[str]:
        """Deployment configuration keys the setup method asks for."""
        method = self.setup_method
        if method is None:
            return frozenset()
        return frozenset(method.required_configuration_keys)

    @property
    def is_static(self) -> bool:
        return self.instantiation is InstantiationType.NO_INSTANTIATION

    def __repr__(self) -> str:
        return f"TestCaseGroup(G{self.group_index}, {self.fully_qualified_name!r})"

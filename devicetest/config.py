"""Test run configuration file management.

Reads and writes the JSON file with the settings that are shared by the
host and the execution agent for a test run: how control records are
recognised and encoded, which devices may be used and the deployment
configuration the tests can ask for.
"""

from __future__ import annotations

import json
import logging
import uuid
from pathlib import Path
from typing import Any, Callable

from devicetest.execution.outcome import TestResult
from devicetest.execution.output_parser import UnitTestsOutputParser
from devicetest.model.selection import TestCaseSelection

# Default configuration values
DEFAULT_CONFIG: dict[str, Any] = {
    "report_prefix": None,
    "communicate_by_names": False,
    "logging": "WARNING",
    "allow_real_hardware": True,
    "deployment_configuration": {},
}


class RunConfig:
    """Manages the test run JSON configuration file."""

    def __init__(self, path: Path | None = None) -> None:
        self.path = path
        self._data: dict[str, Any] = dict(DEFAULT_CONFIG)
        self._generated_prefix: str | None = None
        if path is not None and path.exists():
            self._load()

    def _load(self) -> None:
        """Load config from the file."""
        assert self.path is not None
        try:
            text = self.path.read_text()
            data = json.loads(text)
            if isinstance(data, dict):
                self._data = {**DEFAULT_CONFIG, **data}
        except (json.JSONDecodeError, OSError):
            self._data = dict(DEFAULT_CONFIG)

    def save(self) -> None:
        """Write config to the file."""
        if self.path is None:
            raise ValueError("No config file path specified")
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w") as f:
            json.dump(self._data, f, indent=2)
            f.write("\n")

    @property
    def config(self) -> dict[str, Any]:
        """Get the full configuration dict."""
        return dict(self._data)

    @property
    def report_prefix(self) -> str:
        """Get the control record prefix.

        Without a configured prefix a random one is generated, once per
        configuration object, so that test output cannot imitate records.
        """
        value = self._data.get("report_prefix")
        if value:
            return str(value)
        if self._generated_prefix is None:
            self._generated_prefix = uuid.uuid4().hex
        return self._generated_prefix

    @property
    def communicate_by_names(self) -> bool:
        """Get whether lifecycle codes are sent by name instead of ordinal."""
        return bool(
            self._data.get(
                "communicate_by_names", DEFAULT_CONFIG["communicate_by_names"],
            )
        )

    @property
    def logging_level(self) -> int:
        """Get the level of the ``devicetest`` loggers (WARNING if unknown)."""
        name = str(self._data.get("logging", DEFAULT_CONFIG["logging"]))
        level = getattr(logging, name.upper(), None)
        return level if isinstance(level, int) else logging.WARNING

    @property
    def allow_real_hardware(self) -> bool:
        """Get whether test cases may be selected for real hardware."""
        return bool(
            self._data.get(
                "allow_real_hardware", DEFAULT_CONFIG["allow_real_hardware"],
            )
        )

    @property
    def deployment_configuration(self) -> dict[str, Any]:
        """Get the deployment configuration values by key."""
        value = self._data.get("deployment_configuration")
        return dict(value) if isinstance(value, dict) else {}

    def set_config(
        self,
        report_prefix: str | None = None,
        communicate_by_names: bool | None = None,
        logging_level: str | None = None,
        allow_real_hardware: bool | None = None,
        deployment_configuration: dict[str, Any] | None = None,
    ) -> None:
        """Update configuration values."""
        if report_prefix is not None:
            self._data["report_prefix"] = report_prefix
        if communicate_by_names is not None:
            self._data["communicate_by_names"] = communicate_by_names
        if logging_level is not None:
            self._data["logging"] = logging_level
        if allow_real_hardware is not None:
            self._data["allow_real_hardware"] = allow_real_hardware
        if deployment_configuration is not None:
            self._data["deployment_configuration"] = dict(deployment_configuration)

    def apply_logging(self) -> None:
        """Set the level of the ``devicetest`` loggers."""
        logging.getLogger("devicetest").setLevel(self.logging_level)

    def create_parser(
        self,
        selection: TestCaseSelection,
        on_results: Callable[[list[TestResult]], None],
    ) -> UnitTestsOutputParser:
        """Create an output parser for a selection with this run's settings."""
        return UnitTestsOutputParser(
            selection,
            self.report_prefix,
            on_results,
            communicate_by_names=self.communicate_by_names,
        )

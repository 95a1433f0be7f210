"""List command - prints the configured checks."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import BaseModel

from smokegate.checks.loader import load_checks, resolve_checks_file
from smokegate.command.run import EXIT_CONFIG_ERROR
from smokegate.core.errors import ConfigurationError
from smokegate.report import Reporter

if TYPE_CHECKING:
    from smokegate.core.config import State


class ListCommand(BaseModel):
    """List configured checks in declaration order and exit."""

    def run_command(self, state: "State") -> int:
        reporter = Reporter()
        try:
            suite = load_checks(resolve_checks_file(state.config.checks))
        except ConfigurationError as e:
            reporter.config_error(str(e))
            return EXIT_CONFIG_ERROR

        reporter.list_checks(suite.checks)
        return 0

"""Run command - executes the configured smoke checks."""

from __future__ import annotations

import contextlib
import signal
import threading
from typing import TYPE_CHECKING

from pydantic import BaseModel

from smokegate.checks.loader import load_checks, resolve_checks_file
from smokegate.core.errors import ConfigurationError
from smokegate.core.log import logger
from smokegate.report import Reporter
from smokegate.runner.check import CheckRunner

if TYPE_CHECKING:
    from smokegate.core.config import State

# Exit code for configuration and startup failures
EXIT_CONFIG_ERROR = 2


@contextlib.contextmanager
def cancel_on_signals(cancel: threading.Event):
    """Set cancel on SIGINT/SIGTERM for the duration of the block.

    The first signal stops the in-flight check; the previous handlers
    are restored on exit.
    """
    # Only sets the event; logging from a signal handler can deadlock
    def _handler(signum, frame):  # noqa: ARG001
        cancel.set()

    previous = {}
    for signum in (signal.SIGINT, signal.SIGTERM):
        previous[signum] = signal.signal(signum, _handler)
    try:
        yield cancel
    finally:
        for signum, handler in previous.items():
            signal.signal(signum, handler)


class RunCommand(BaseModel):
    """Run the smoke checks and exit with the aggregate result.

    Exit codes: 0 all checks passed (or only non-gating failures),
    1 one or more gating checks failed, 2 configuration error or
    any check produced ERROR.
    """

    def run_command(self, state: "State") -> int:
        """Load checks, run them, print the summary.

        Returns:
            Process exit code
        """
        config = state.config
        reporter = Reporter(verbose=config.verbose)

        try:
            checks_path = resolve_checks_file(config.checks)
            suite = load_checks(checks_path)
        except ConfigurationError as e:
            logger.error("Configuration error", error=str(e))
            reporter.config_error(str(e))
            return EXIT_CONFIG_ERROR

        reporter.header(config.vars, len(suite.checks))
        runner = CheckRunner.from_config(
            config, suite, checks_path.parent, reporter
        )

        with cancel_on_signals(threading.Event()) as cancel:
            result = runner.run(cancel)

        reporter.summary(result)
        logger.info(
            "Run complete",
            interrupted=result.interrupted,
            exit_code=result.exit_code,
            executed=len(result.executions),
            total=result.total_count,
        )
        return result.exit_code

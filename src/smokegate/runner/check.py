"""Check runner: sequences a batch of smoke checks."""

from __future__ import annotations

import threading
import time
from collections.abc import Sequence
from pathlib import Path

from rich.console import Console

from smokegate.checks.model import CheckDefinition, CheckSuite
from smokegate.checks.template import TemplateVars, render_check
from smokegate.core.config import Config
from smokegate.core.errors import (
    CancelledError,
    ScriptNotFoundError,
    TemplateError,
)
from smokegate.core.log import logger
from smokegate.core.logdir import RunLogDir
from smokegate.core.result import CheckResult, RunResult
from smokegate.core.runner import DEFAULT_RETRY_DELAY, DEFAULT_TIMEOUT, Runner
from smokegate.engine.classify import classify
from smokegate.engine.outcome import EXIT_PASS, EXIT_UNKNOWN
from smokegate.engine.validate import validate_output
from smokegate.report import Reporter


class CheckRunner:
    """Run checks in layer order and stop at the first blocking result.

    Foundational checks belong in low layers: a gating failure there
    stops the run before dependent checks in higher layers execute.
    """

    def __init__(
        self,
        checks: Sequence[CheckDefinition],
        checks_dir: Path,
        variables: TemplateVars | None = None,
        default_timeout: float = DEFAULT_TIMEOUT,
        max_retries: int = 3,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        runner: Runner | None = None,
        reporter: Reporter | None = None,
        log_dir: RunLogDir | None = None,
    ):
        """Initialize check runner.

        Args:
            checks: Check definitions in declaration order
            checks_dir: Directory relative script paths resolve against
            variables: Values substituted into commands and script args
            default_timeout: Timeout for checks without an override
            max_retries: Retries for checks with retry enabled
            retry_delay: Seconds between retry attempts
            runner: Command executor (a default Runner if None)
            reporter: Terminal output (silent if None)
            log_dir: Where to save each check's output, if anywhere
        """
        self.checks = list(checks)
        self.checks_dir = Path(checks_dir)
        self.variables = variables or TemplateVars()
        self.default_timeout = default_timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.runner = runner or Runner()
        self.reporter = reporter or Reporter(Console(quiet=True))
        self.log_dir = log_dir

    @classmethod
    def from_config(
        cls,
        config: Config,
        suite: CheckSuite,
        checks_dir: Path,
        reporter: Reporter | None = None,
    ) -> "CheckRunner":
        log_dir = None
        if config.output_dir:
            log_dir = RunLogDir(config.output_dir, config.vars.cluster)

        return cls(
            checks=suite.checks,
            checks_dir=checks_dir,
            variables=config.vars,
            default_timeout=config.timeout,
            max_retries=config.max_retries,
            retry_delay=config.retry_delay,
            runner=Runner(shell=config.shell),
            reporter=reporter,
            log_dir=log_dir,
        )

    def sorted_checks(self) -> list[CheckDefinition]:
        """Checks by ascending layer; ties keep declaration order."""
        return sorted(self.checks, key=lambda check: check.layer)

    def run(self, cancel: threading.Event | None = None) -> RunResult:
        """Execute checks once, in order, with fail-fast.

        Args:
            cancel: Event that stops the in-flight check and prevents
                any further checks from starting

        Returns:
            RunResult with every executed check. total_count is the
            full number of declared checks even when the run stopped
            early.
        """
        run = RunResult(total_count=len(self.checks))
        started = time.monotonic()
        current_layer = None

        with logger.span("Smoke run", checks=run.total_count):
            for index, check in enumerate(self.sorted_checks(), start=1):
                if cancel is not None and cancel.is_set():
                    run.interrupted = True
                    self.reporter.interrupted()
                    break

                if check.layer != current_layer and check.layer > 0:
                    self.reporter.layer(check.layer)
                current_layer = check.layer

                self.reporter.progress(index, run.total_count, check)
                log_file = None
                if self.log_dir:
                    log_file = self.log_dir.check_log(index, check.name)

                with logger.span("Check {name}", name=check.name):
                    result = self.execute_check(check, cancel, log_file)

                self.reporter.result(result)
                run.record(check, result)
                logger.debug(
                    "Check finished",
                    check=check.name,
                    outcome=result.outcome.value,
                    reason=result.reason,
                )

                if isinstance(result.error, CancelledError):
                    run.interrupted = True
                    self.reporter.interrupted()
                    break

                if result.is_blocking:
                    logger.warn(
                        "Blocking result, stopping execution",
                        check=check.name,
                        outcome=result.outcome.value,
                    )
                    self.reporter.fail_fast()
                    break

        return run.finish(time.monotonic() - started)

    def execute_check(
        self,
        check: CheckDefinition,
        cancel: threading.Event | None = None,
        log_file: Path | None = None,
    ) -> CheckResult:
        """Render, execute, validate and classify one check.

        Problems confined to this check (undefined variable, missing
        script, timeout) come back as an ERROR result; they never
        raise.
        """
        gating = check.gating

        try:
            rendered = render_check(check, self.variables)
        except TemplateError as e:
            return classify(EXIT_UNKNOWN, e, None, gating)

        if rendered.script is not None:
            try:
                command = self.runner.script_command(
                    rendered.script.path,
                    rendered.script.args,
                    self.checks_dir,
                )
            except ScriptNotFoundError as e:
                return classify(EXIT_UNKNOWN, e, None, gating)
        else:
            command = rendered.command

        timeout = check.get_timeout(self.default_timeout)

        if check.retry:
            execution, attempts = self.runner.execute_with_retry(
                command,
                timeout=timeout,
                max_retries=self.max_retries,
                retry_delay=self.retry_delay,
                cancel=cancel,
                log_file=log_file,
            )
        else:
            execution = self.runner.execute(
                command, timeout=timeout, cancel=cancel, log_file=log_file
            )
            attempts = 1

        violations = []
        if (
            execution.exit_code == EXIT_PASS
            and execution.error is None
            and check.validation is not None
        ):
            violations = validate_output(execution.output, check.validation)

        result = classify(
            execution.exit_code, execution.error, violations, gating
        )
        return result.model_copy(update={
            "output": execution.output,
            "retry_count": attempts - 1,
        })

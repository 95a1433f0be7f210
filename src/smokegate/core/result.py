"""Result types for check execution."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

from smokegate.checks.model import CheckDefinition
from smokegate.core.base import BaseState
from smokegate.engine.outcome import EXIT_UNKNOWN, Outcome, should_retry
from smokegate.engine.validate import Violation


class ExecutionResult(BaseModel):
    """Raw result of one command attempt."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    output: str = ""
    exit_code: int = EXIT_UNKNOWN
    error: Exception | None = None


class CheckResult(BaseModel):
    """Classified result of a single check."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    output: str = ""
    exit_code: int
    error: Exception | None = None
    violations: list[Violation] = Field(default_factory=list)
    retry_count: int = 0
    outcome: Outcome
    gating: bool = True
    reason: str

    @property
    def is_pass(self) -> bool:
        return self.outcome is Outcome.PASS

    @property
    def is_blocking(self) -> bool:
        """FAIL on a gating check, or any ERROR."""
        return self.outcome.is_blocking(self.gating)

    def should_retry(self) -> bool:
        """Only execution errors and exit code 1 are worth retrying.

        A validation failure has exit code 0 and is never retried.
        """
        return should_retry(self.exit_code, self.error)

    def all_errors(self) -> list[Exception | Violation]:
        errors: list[Exception | Violation] = []
        if self.error is not None:
            errors.append(self.error)
        errors.extend(self.violations)
        return errors


class CheckExecution(BaseModel):
    """A check definition paired with the result it produced."""

    check: CheckDefinition
    result: CheckResult


class RunResult(BaseState):
    """Aggregate of one run.

    Mutable while the run is in progress; finish() seals it, after which
    any assignment or record() raises AttributeError.
    """

    executions: list[CheckExecution] = Field(
        default_factory=list,
        description="Checks actually executed, in execution order",
    )
    pass_count: int = 0
    fail_count: int = 0
    warn_count: int = 0
    skip_count: int = 0
    error_count: int = 0
    gating_fails: int = Field(
        default=0,
        description="FAIL outcomes on gating checks",
    )
    total_count: int = Field(
        default=0,
        description="Checks declared, including ones never reached",
    )
    interrupted: bool = Field(
        default=False,
        description="Whether cancellation stopped the run",
    )
    duration: float = Field(
        default=0.0,
        description="Wall-clock duration of the run in seconds",
    )

    _finished: bool = PrivateAttr(default=False)

    def __setattr__(self, name, value):
        if not name.startswith("_") and self._finished:
            raise AttributeError(f"run is finished; cannot set {name}")
        super().__setattr__(name, value)

    @property
    def finished(self) -> bool:
        return self._finished

    def finish(self, duration: float) -> "RunResult":
        """Record the wall-clock duration and seal the result."""
        self.duration = duration
        self._finished = True
        return self

    def record(self, check: CheckDefinition, result: CheckResult) -> None:
        if self._finished:
            raise AttributeError("run is finished; cannot record checks")
        self.executions.append(CheckExecution(check=check, result=result))

        if result.outcome is Outcome.PASS:
            self.pass_count += 1
        elif result.outcome is Outcome.FAIL:
            self.fail_count += 1
            if result.gating:
                self.gating_fails += 1
        elif result.outcome is Outcome.WARN:
            self.warn_count += 1
        elif result.outcome is Outcome.SKIP:
            self.skip_count += 1
        else:
            self.error_count += 1

    @property
    def exit_code(self) -> int:
        """Process exit code: errors outweigh gating failures.

        0 = clean or only non-gating failures
        1 = gating failures, no errors
        2 = at least one ERROR, or the run was interrupted
        """
        if self.error_count > 0 or self.interrupted:
            return 2
        if self.gating_fails > 0:
            return 1
        return 0

"""Outcome classification for check results."""

from __future__ import annotations

from collections.abc import Sequence

from smokegate.core.result import CheckResult
from smokegate.engine.outcome import (
    EXIT_ERROR,
    EXIT_PASS,
    Outcome,
    outcome_from_exit_code,
    should_retry,
)
from smokegate.engine.validate import Violation

_REASONS = {
    Outcome.PASS: "check passed",
    Outcome.FAIL: "check failed (exit code 1)",
    Outcome.SKIP: "check skipped (not applicable)",
    Outcome.WARN: "warning (non-blocking)",
}


def classify(
    exit_code: int,
    error: Exception | None,
    violations: Sequence[Violation] | None,
    gating: bool,
) -> CheckResult:
    """Decide the Outcome of a check.

    Rules, in priority order:
    1. An execution error (timeout, launch failure, cancellation)
       is ERROR whatever the exit code.
    2. Exit code 0 with validation violations is FAIL.
    3. Exit codes 0-4 map to PASS, FAIL, ERROR, SKIP, WARN.
    4. Any other exit code is ERROR.

    Args:
        exit_code: Raw process exit code (-1 if unknown)
        error: Execution error from the executor, if any
        violations: Output postcondition violations (exit 0 only)
        gating: Whether a FAIL on this check blocks the run

    Returns:
        CheckResult with outcome and reason set; callers fill in
        output and retry_count.
    """
    violations = list(violations or [])

    if error is not None:
        outcome = Outcome.ERROR
        reason = f"execution failed: {error}"
    elif exit_code == EXIT_PASS and violations:
        outcome = Outcome.FAIL
        reason = "validation failed: " + "; ".join(
            str(v) for v in violations
        )
    else:
        outcome = outcome_from_exit_code(exit_code)
        if outcome is not Outcome.ERROR:
            reason = _REASONS[outcome]
        elif exit_code == EXIT_ERROR:
            reason = "script error (exit code 2)"
        else:
            reason = f"unexpected exit code {exit_code} (treated as ERROR)"

    return CheckResult(
        exit_code=exit_code,
        error=error,
        violations=violations,
        outcome=outcome,
        gating=gating,
        reason=reason,
    )


__all__ = ["classify", "should_retry"]

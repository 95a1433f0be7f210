"""Outcome taxonomy for smoke checks."""

from __future__ import annotations

from enum import Enum
from typing import NamedTuple

# Exit-code contract between smokegate and every check script
EXIT_PASS = 0
EXIT_FAIL = 1
EXIT_ERROR = 2
EXIT_SKIP = 3
EXIT_WARN = 4

# Exit code used when a command could not be run to completion
EXIT_UNKNOWN = -1


class Outcome(str, Enum):
    """Classified result of one check."""

    PASS = "PASS"
    FAIL = "FAIL"
    ERROR = "ERROR"
    SKIP = "SKIP"
    WARN = "WARN"

    def is_blocking(self, gating: bool) -> bool:
        """Whether this outcome blocks the run.

        ERROR always blocks, FAIL only for gating checks. PASS, SKIP
        and WARN never block.
        """
        if self is Outcome.ERROR:
            return True
        if self is Outcome.FAIL:
            return gating
        return False

    def __str__(self) -> str:
        return self.value


_EXIT_CODE_OUTCOMES = {
    EXIT_PASS: Outcome.PASS,
    EXIT_FAIL: Outcome.FAIL,
    EXIT_ERROR: Outcome.ERROR,
    EXIT_SKIP: Outcome.SKIP,
    EXIT_WARN: Outcome.WARN,
}


def outcome_from_exit_code(code: int) -> Outcome:
    """Map any exit code to an Outcome.

    Total over the integers: codes 0-4 map to their canonical outcome,
    every other code (negative sentinels and signals included) is ERROR.
    """
    return _EXIT_CODE_OUTCOMES.get(code, Outcome.ERROR)


def should_retry(exit_code: int, error: Exception | None) -> bool:
    """Retry recommendation from a raw attempt.

    True for execution errors and exit code 1 only. The executor asks
    before any output validation has happened, so a validation FAIL
    (exit code 0) is never retried.
    """
    return error is not None or exit_code == EXIT_FAIL


class Display(NamedTuple):
    """How an outcome is drawn in the terminal."""

    symbol: str
    style: str


_DISPLAY = {
    Outcome.PASS: Display("✓", "green"),
    Outcome.FAIL: Display("✗", "red"),
    Outcome.ERROR: Display("!", "bold red"),
    Outcome.SKIP: Display("⊘", "bright_black"),
    Outcome.WARN: Display("⚠", "yellow"),
}


def display_for(outcome: Outcome) -> Display:
    """Symbol and rich style for an outcome."""
    return _DISPLAY[outcome]

"""Tests for the outcome taxonomy."""

import pytest

from smokegate.core.errors import CommandTimedOutError
from smokegate.engine.outcome import (
    Outcome,
    display_for,
    outcome_from_exit_code,
    should_retry,
)


def test_outcome_from_exit_code_is_total():
    """Every integer maps to some outcome."""
    expected = {
        0: Outcome.PASS,
        1: Outcome.FAIL,
        2: Outcome.ERROR,
        3: Outcome.SKIP,
        4: Outcome.WARN,
    }
    for code in range(-300, 300):
        assert outcome_from_exit_code(code) is expected.get(
            code, Outcome.ERROR
        )


@pytest.mark.parametrize(
    ("exit_code", "error", "expected"),
    [
        (0, None, False),
        (1, None, True),
        (2, None, False),
        (3, None, False),
        (4, None, False),
        (127, None, False),
        (-1, CommandTimedOutError(1), True),
        (0, CommandTimedOutError(1), True),
    ],
)
def test_should_retry(exit_code, error, expected):
    """Only exit code 1 and execution errors are retried."""
    assert should_retry(exit_code, error) is expected


def test_outcome_str_is_value():
    assert str(Outcome.WARN) == "WARN"


def test_display_for_every_outcome():
    """Each outcome has its own symbol and a style."""
    symbols = {display_for(outcome).symbol for outcome in Outcome}

    assert len(symbols) == len(Outcome)
    assert display_for(Outcome.PASS).symbol == "✓"
    assert display_for(Outcome.FAIL).symbol == "✗"
    assert display_for(Outcome.SKIP).symbol == "⊘"
    assert display_for(Outcome.WARN).symbol == "⚠"
    assert "red" in display_for(Outcome.ERROR).style
    assert display_for(Outcome.PASS).style == "green"

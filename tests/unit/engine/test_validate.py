"""Tests for output postconditions."""

from smokegate.engine.validate import (
    ValidationSpec,
    ViolationKind,
    validate_output,
)


def test_no_spec_no_violations():
    assert validate_output("anything", None) == []
    assert validate_output("anything", ValidationSpec()) == []
    assert ValidationSpec().is_empty()


def test_contains_satisfied():
    spec = ValidationSpec(contains="Ready")
    assert validate_output("node-1 Ready\n", spec) == []


def test_contains_missing():
    """Missing required text is reported with the text quoted."""
    violations = validate_output("NotReady", ValidationSpec(contains="OK"))

    assert [v.kind for v in violations] == [ViolationKind.MISSING]
    assert str(violations[0]) == "output missing required text: 'OK'"


def test_not_contains_present():
    violations = validate_output(
        "level=error something broke",
        ValidationSpec(not_contains="error"),
    )

    assert [v.kind for v in violations] == [ViolationKind.FORBIDDEN]
    assert "forbidden text: 'error'" in str(violations[0])


def test_regex_searches_anywhere():
    """A regex only has to match somewhere in the output."""
    spec = ValidationSpec(regex=r"\d+ pods? running")
    assert validate_output("status: 3 pods running, ok", spec) == []


def test_regex_mismatch():
    violations = validate_output(
        "0 pods", ValidationSpec(regex=r"^[1-9]\d* pods$")
    )

    assert [v.kind for v in violations] == [ViolationKind.MISMATCH]


def test_regex_does_not_compile():
    """A bad pattern is a violation, not an exception."""
    violations = validate_output("x", ValidationSpec(regex="(unclosed"))

    assert [v.kind for v in violations] == [ViolationKind.BAD_PATTERN]
    assert str(violations[0]).startswith("invalid regex '(unclosed'")


def test_violations_accumulate_in_order():
    """Every failing condition is reported, not just the first."""
    spec = ValidationSpec(
        contains="healthy",
        not_contains="panic",
        regex=r"version \d+",
    )

    violations = validate_output("panic: runtime error", spec)

    assert [v.kind for v in violations] == [
        ViolationKind.MISSING,
        ViolationKind.FORBIDDEN,
        ViolationKind.MISMATCH,
    ]


def test_empty_output_with_not_contains_passes():
    assert validate_output("", ValidationSpec(not_contains="error")) == []

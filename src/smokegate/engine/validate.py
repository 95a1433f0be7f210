"""Output postconditions evaluated on canonical success."""

from __future__ import annotations

import re
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class ValidationSpec(BaseModel):
    """Postconditions asserted against a check's captured output.

    All three are optional and independent of each other.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    contains: str | None = Field(
        default=None,
        description="Output must contain this literal text",
    )
    not_contains: str | None = Field(
        default=None,
        description="Output must not contain this literal text",
    )
    regex: str | None = Field(
        default=None,
        description="Output must match this regular expression",
    )

    def is_empty(self) -> bool:
        return not (self.contains or self.not_contains or self.regex)


class ViolationKind(str, Enum):
    MISSING = "missing"
    FORBIDDEN = "forbidden"
    MISMATCH = "mismatch"
    BAD_PATTERN = "bad_pattern"


class Violation(BaseModel):
    """One failed postcondition."""

    model_config = ConfigDict(frozen=True)

    kind: ViolationKind
    message: str

    def __str__(self) -> str:
        return self.message


def validate_output(
    output: str, spec: ValidationSpec | None
) -> list[Violation]:
    """Check output against every configured postcondition.

    Violations accumulate rather than short-circuit so a report can
    show every failing condition at once. An empty list means the
    output satisfied the spec.
    """
    if spec is None:
        return []

    violations = []

    if spec.contains and spec.contains not in output:
        violations.append(Violation(
            kind=ViolationKind.MISSING,
            message=f"output missing required text: {spec.contains!r}",
        ))

    if spec.not_contains and spec.not_contains in output:
        violations.append(Violation(
            kind=ViolationKind.FORBIDDEN,
            message=f"output contains forbidden text: {spec.not_contains!r}",
        ))

    if spec.regex:
        try:
            pattern = re.compile(spec.regex)
        except re.error as e:
            violations.append(Violation(
                kind=ViolationKind.BAD_PATTERN,
                message=f"invalid regex {spec.regex!r}: {e}",
            ))
        else:
            if not pattern.search(output):
                violations.append(Violation(
                    kind=ViolationKind.MISMATCH,
                    message=f"output does not match regex: {spec.regex!r}",
                ))

    return violations

"""Check definitions loaded from the checks document."""

from __future__ import annotations

import re
from typing import Annotated

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

from smokegate.engine.validate import ValidationSpec

_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")
_UNIT_SECONDS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}


def parse_duration(value) -> float:
    """Parse a duration into seconds.

    Accepts numbers (seconds) and strings such as "30s", "1m30s",
    "500ms" or "2h". An empty string is zero.

    Raises:
        ValueError: If the string is not a valid duration
    """
    if value is None or isinstance(value, (int, float)):
        return value
    text = str(value).strip()
    if not text:
        return 0.0
    try:
        return float(text)
    except ValueError:
        pass

    total = 0.0
    pos = 0
    for match in _DURATION_PART.finditer(text):
        if match.start() != pos:
            break
        total += float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
        pos = match.end()
    if pos != len(text) or pos == 0:
        raise ValueError(f"invalid duration {text!r}")
    return total


# Seconds, written in YAML/CLI as "30s", "1m30s" or a plain number
Duration = Annotated[float, BeforeValidator(parse_duration)]


class ScriptAction(BaseModel):
    """An external script with positional arguments."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    path: str = Field(
        description="Script path, absolute or relative to the checks directory"
    )
    args: list[str] = Field(
        default_factory=list,
        description="Arguments (variables are substituted before quoting)",
    )

    @field_validator("path")
    @classmethod
    def _path_not_empty(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("script missing path")
        return value


class Expectation(BaseModel):
    """Expectations about a check's result."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    gating: bool | None = Field(
        default=None,
        description="Whether FAIL blocks the run (default: true)",
    )


class CheckDefinition(BaseModel):
    """A single smoke check.

    Exactly one of `command` or `script` must be set. Instances are
    frozen: the runner renders variables into a copy and never
    modifies the definition it was given.
    """

    model_config = ConfigDict(
        frozen=True, extra="forbid", populate_by_name=True
    )

    name: str = Field(description="Display name for the check")
    description: str = Field(
        default="",
        description="Additional context shown by `smokegate list`",
    )
    layer: int = Field(
        default=0,
        description="Execution order; lower layers run first",
    )
    command: str | None = Field(
        default=None,
        description="Inline shell command",
    )
    script: ScriptAction | None = Field(
        default=None,
        description="External script to run instead of a command",
    )
    validation: ValidationSpec | None = Field(
        default=None,
        alias="validate",
        description="Postconditions on the output (checked on exit 0 only)",
    )
    expect: Expectation | None = None
    retry: bool = Field(
        default=False,
        description="Retry on FAIL or execution error",
    )
    timeout: Duration | None = Field(
        default=None,
        description="Per-check timeout overriding the run default",
    )

    @field_validator("name")
    @classmethod
    def _name_not_empty(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("missing name")
        return value

    @field_validator("validation")
    @classmethod
    def _regex_compiles(cls, value: ValidationSpec | None):
        if value is not None and value.regex:
            try:
                re.compile(value.regex)
            except re.error as e:
                raise ValueError(
                    f"invalid regex {value.regex!r}: {e}"
                ) from e
        return value

    @model_validator(mode="after")
    def _one_action(self) -> "CheckDefinition":
        if not self.command and self.script is None:
            raise ValueError("must have command or script")
        if self.command and self.script is not None:
            raise ValueError("must not have both command and script")
        return self

    @property
    def gating(self) -> bool:
        if self.expect is None or self.expect.gating is None:
            return True
        return self.expect.gating

    def get_timeout(self, default: float) -> float:
        if self.timeout and self.timeout > 0:
            return self.timeout
        return default


class CheckSuite(BaseModel):
    """The full checks document."""

    checks: list[CheckDefinition] = Field(
        description="Checks in declaration order",
    )

    @field_validator("checks")
    @classmethod
    def _not_empty(cls, value: list[CheckDefinition]):
        if not value:
            raise ValueError("no checks defined")
        return value

"""Terminal output for smoke runs.

The runner never formats strings itself; it calls the Reporter.
Colours come from display_for(), so there is no global colour state.
"""

from __future__ import annotations

from collections.abc import Sequence

from rich.console import Console
from rich.rule import Rule
from rich.text import Text

from smokegate.checks.model import CheckDefinition
from smokegate.checks.template import TemplateVars
from smokegate.core.result import CheckResult, RunResult
from smokegate.engine.outcome import Outcome, display_for


def format_duration(seconds: float) -> str:
    """Short human duration: 850ms, 12.3s, 2m05s."""
    if seconds < 1:
        return f"{seconds * 1000:.0f}ms"
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes, secs = divmod(int(round(seconds)), 60)
    return f"{minutes}m{secs:02d}s"


def outcome_text(outcome: Outcome) -> Text:
    display = display_for(outcome)
    return Text(f"{display.symbol} {outcome.value}", style=display.style)


class Reporter:
    """Renders progress, results and summaries with rich."""

    def __init__(self, console: Console | None = None, verbose: bool = False):
        self.console = console or Console(highlight=False)
        self.verbose = verbose

    def _line(self, *parts, end: str = "\n") -> None:
        self.console.print(Text.assemble(*parts), end=end)

    def header(self, variables: TemplateVars, count: int) -> None:
        self._line(("Smoke Tests", "bold"))
        self._line(f"  Cluster:   {variables.cluster}")
        if variables.namespace:
            self._line(f"  Namespace: {variables.namespace}")
        if variables.context:
            self._line(f"  Context:   {variables.context}")
        self._line(f"  Checks:    {count}")
        self._line("")

    def layer(self, layer: int) -> None:
        self._line("")
        self._line((f"--- Layer {layer} ---", "cyan"))

    def progress(self, index: int, total: int, check: CheckDefinition) -> None:
        self._line(f"[{index}/{total}] {check.name}... ", end="")

    def result(self, result: CheckResult) -> None:
        self._line(outcome_text(result.outcome))

        if self.verbose or result.outcome in (Outcome.ERROR, Outcome.FAIL):
            if result.reason:
                self._line(f"  Reason: {result.reason}")
            if result.retry_count > 0:
                self._line(f"  Retries: {result.retry_count}")

        if self.verbose and result.output.strip():
            self._line("  Output:")
            for line in result.output.strip().splitlines():
                self._line(("    " + line, "dim"))

    def fail_fast(self) -> None:
        self._line("")
        self._line(
            ("[!] Gating check failed - stopping execution", "bold red")
        )

    def interrupted(self) -> None:
        self._line("")
        self._line(("Interrupted - stopping...", "yellow"))

    def summary(self, run: RunResult) -> None:
        self._line("")
        self.console.print(Rule(style="dim"))
        self._line(
            f"Summary: {run.pass_count} passed, {run.fail_count} failed, "
            f"{run.warn_count} warnings, {run.skip_count} skipped, "
            f"{run.error_count} errors (out of {run.total_count} total)"
        )
        if run.duration:
            self._line(f"Total time: {format_duration(run.duration)}")
        if run.gating_fails > 0:
            self._line("")
            self._line((
                f"{run.gating_fails} gating check(s) failed - "
                "deployment blocked",
                display_for(Outcome.FAIL).style,
            ))
        self.console.print(Rule(style="dim"))

    def list_checks(self, checks: Sequence[CheckDefinition]) -> None:
        self._line(f"Configured Checks ({len(checks)} total):")
        self._line("")
        for index, check in enumerate(checks, start=1):
            gating = "gating" if check.gating else "non-gating"
            layer = f"[Layer {check.layer}] " if check.layer > 0 else ""
            self._line(f"{index:2d}. {layer}{check.name} ({gating})")
            if check.description:
                self._line(("    " + check.description, "dim"))

    def config_error(self, message: str) -> None:
        self._line((f"Invalid config: {message}", "bold red"))

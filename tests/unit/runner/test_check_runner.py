"""Tests for CheckRunner sequencing, fail-fast and aggregation."""

import io
import threading

import pytest
from rich.console import Console

from smokegate.checks.model import CheckDefinition, CheckSuite
from smokegate.checks.template import TemplateVars
from smokegate.core.config import Config
from smokegate.core.errors import CancelledError
from smokegate.core.logdir import RunLogDir
from smokegate.core.runner import Runner
from smokegate.engine.outcome import Outcome
from smokegate.report import Reporter
from smokegate.runner.check import CheckRunner


def _check(name, command="true", **kwargs):
    return CheckDefinition(name=name, command=command, **kwargs)


def _nongating(name, command):
    return _check(name, command, expect={"gating": False})


@pytest.fixture
def delays():
    return []


@pytest.fixture
def make_runner(tmp_path, delays):
    """Build a CheckRunner whose retry waits are recorded, not slept."""
    def _sleep(delay, cancel):  # noqa: ARG001
        delays.append(delay)
        return False

    def _make(checks, **kwargs):
        kwargs.setdefault("runner", Runner(sleep=_sleep))
        return CheckRunner(checks, tmp_path, **kwargs)

    return _make


def _names(run):
    return [execution.check.name for execution in run.executions]


def test_all_pass(make_runner):
    run = make_runner([_check("a"), _check("b"), _check("c")]).run()

    assert _names(run) == ["a", "b", "c"]
    assert run.pass_count == 3
    assert run.exit_code == 0
    assert run.duration > 0
    assert run.finished is True


def test_gating_fail_stops_run(make_runner):
    """A gating FAIL is blocking: later checks never start."""
    checks = [_check("a"), _check("b", "exit 1"), _check("c")]

    run = make_runner(checks).run()

    assert _names(run) == ["a", "b"]
    assert run.total_count == 3
    assert run.pass_count == 1
    assert run.fail_count == 1
    assert run.gating_fails == 1
    assert run.exit_code == 1


@pytest.mark.parametrize(
    ("gating", "names", "fails", "gating_fails", "exit_code"),
    [
        (True, ["A", "B"], 1, 1, 1),
        (False, ["A", "B", "C"], 1, 0, 0),
    ],
)
def test_layered_scenario(
    make_runner, gating, names, fails, gating_fails, exit_code
):
    """A foundational failure in layer 2 decides whether layer 3 runs."""
    checks = [
        _check("C", "echo later", layer=3),
        _check("A", "echo hi", layer=1),
        _check("B", "exit 1", layer=2, expect={"gating": gating}),
    ]

    run = make_runner(checks).run()

    assert _names(run) == names
    assert run.pass_count == len(names) - 1
    assert run.fail_count == fails
    assert run.gating_fails == gating_fails
    assert run.total_count == 3
    assert run.exit_code == exit_code


def test_nongating_fail_continues(make_runner):
    checks = [_check("a"), _nongating("b", "exit 1"), _check("c")]

    run = make_runner(checks).run()

    assert _names(run) == ["a", "b", "c"]
    assert run.fail_count == 1
    assert run.gating_fails == 0
    assert run.exit_code == 0


def test_error_stops_even_when_nongating(make_runner):
    checks = [_nongating("a", "exit 2"), _check("b")]

    run = make_runner(checks).run()

    assert _names(run) == ["a"]
    assert run.error_count == 1
    assert run.exit_code == 2


def test_skip_and_warn_do_not_stop(make_runner):
    checks = [_check("a", "exit 3"), _check("b", "exit 4"), _check("c")]

    run = make_runner(checks).run()

    assert _names(run) == ["a", "b", "c"]
    assert run.skip_count == 1
    assert run.warn_count == 1
    assert run.exit_code == 0


def test_stable_sort_by_layer(make_runner):
    """Lower layers first; equal layers keep declaration order."""
    checks = [
        _check("late", layer=2),
        _check("first-of-1", layer=1),
        _check("default"),
        _check("second-of-1", layer=1),
        _check("also-default"),
    ]

    run = make_runner(checks).run()

    assert _names(run) == [
        "default", "also-default", "first-of-1", "second-of-1", "late"
    ]


def test_failure_in_low_layer_skips_higher_layers(make_runner):
    checks = [
        _check("app", layer=3),
        _check("network", "exit 1", layer=1),
    ]

    run = make_runner(checks).run()

    assert _names(run) == ["network"]


def test_template_error_is_check_error(make_runner):
    """An undefined variable fails that check only, as ERROR."""
    checks = [_check("bad", "echo {{ undefined_thing }}")]

    run = make_runner(checks).run()

    result = run.executions[0].result
    assert result.outcome is Outcome.ERROR
    assert result.reason.startswith(
        "execution failed: failed to render command:"
    )


def test_variables_substituted(make_runner):
    checks = [_check(
        "echo", "echo {{ cluster }}/{{ .Namespace }}",
        validate={"contains": "prod/web"},
    )]

    run = make_runner(
        checks, variables=TemplateVars(cluster="prod", namespace="web")
    ).run()

    assert run.executions[0].result.outcome is Outcome.PASS


def test_missing_script_is_error(make_runner):
    checks = [CheckDefinition(name="s", script={"path": "missing.sh"})]

    run = make_runner(checks).run()

    result = run.executions[0].result
    assert result.outcome is Outcome.ERROR
    assert "script not found" in result.reason


def test_script_check_gets_rendered_args(make_runner, write_script):
    write_script("check.sh", '[ "$1" = "home" ] && exit 0; exit 1')
    checks = [CheckDefinition(
        name="s",
        script={"path": "check.sh", "args": ["{{ cluster }}"]},
    )]

    run = make_runner(checks).run()

    assert run.executions[0].result.outcome is Outcome.PASS


def test_validation_failure_is_fail_and_not_retried(make_runner, delays):
    checks = [_check(
        "ready", "echo not yet",
        validate={"contains": "healthy"},
        retry=True,
    )]

    run = make_runner(checks).run()

    result = run.executions[0].result
    assert result.outcome is Outcome.FAIL
    assert result.reason == (
        "validation failed: output missing required text: 'healthy'"
    )
    assert result.retry_count == 0
    assert delays == []


def test_validation_skipped_on_nonzero_exit(make_runner):
    checks = [_check(
        "warn", "echo nothing useful; exit 4",
        validate={"contains": "healthy"},
    )]

    run = make_runner(checks).run()

    assert run.executions[0].result.outcome is Outcome.WARN


def test_retry_count_recorded(make_runner, delays):
    checks = [_check("flaky", "exit 1", retry=True)]

    run = make_runner(checks, max_retries=2, retry_delay=0.5).run()

    result = run.executions[0].result
    assert result.retry_count == 2
    assert delays == [0.5, 0.5]


def test_no_retry_without_flag(make_runner, delays):
    checks = [_check("once", "exit 1")]

    run = make_runner(checks, max_retries=5).run()

    assert run.executions[0].result.retry_count == 0
    assert delays == []


def test_per_check_timeout(make_runner):
    checks = [_check("slow", "sleep 10", timeout="300ms")]

    run = make_runner(checks, default_timeout=60).run()

    result = run.executions[0].result
    assert result.outcome is Outcome.ERROR
    assert "timed out" in result.reason


def test_cancel_before_run(make_runner):
    cancel = threading.Event()
    cancel.set()

    run = make_runner([_check("a"), _check("b")]).run(cancel)

    assert run.executions == []
    assert run.interrupted is True
    assert run.exit_code == 2


def test_cancel_during_check(make_runner):
    """Cancellation kills the running check and nothing else starts."""
    cancel = threading.Event()
    timer = threading.Timer(0.2, cancel.set)
    timer.start()
    try:
        run = make_runner(
            [_check("slow", "sleep 10"), _check("never")]
        ).run(cancel)
    finally:
        timer.cancel()

    assert _names(run) == ["slow"]
    assert isinstance(run.executions[0].result.error, CancelledError)
    assert run.interrupted is True
    assert run.exit_code == 2


def test_output_captured_per_check(make_runner, tmp_path):
    log_dir = RunLogDir(tmp_path / "logs")
    checks = [_check("first check", "echo one"), _check("second", "echo two")]

    run = make_runner(checks, log_dir=log_dir).run()

    assert run.executions[0].result.output == "one\n"
    assert (log_dir.run_dir / "01-first-check.log").read_text() == "one\n"
    assert (log_dir.run_dir / "02-second.log").read_text() == "two\n"


def test_from_config(tmp_path):
    config = Config(
        timeout="5s",
        max_retries=1,
        retry_delay="1s",
        vars={"cluster": "staging"},
        output_dir=tmp_path / "out",
    )
    suite = CheckSuite(checks=[_check("a")])

    runner = CheckRunner.from_config(config, suite, tmp_path)

    assert runner.default_timeout == 5.0
    assert runner.max_retries == 1
    assert runner.retry_delay == 1.0
    assert runner.variables.cluster == "staging"
    assert runner.log_dir.run_dir.parent == tmp_path / "out" / "staging"


def test_reporter_sees_progress_and_fail_fast(make_runner):
    buffer = io.StringIO()
    reporter = Reporter(Console(file=buffer, width=200, highlight=False))
    checks = [
        _check("base", layer=1),
        _check("broken", "echo nope; exit 1", layer=2),
        _check("unreached", layer=3),
    ]

    make_runner(checks, reporter=reporter).run()

    text = buffer.getvalue()
    assert "--- Layer 1 ---" in text
    assert "[1/3] base... ✓ PASS" in text
    assert "[2/3] broken... ✗ FAIL" in text
    assert "Reason: check failed (exit code 1)" in text
    assert "Gating check failed - stopping execution" in text
    assert "unreached" not in text

"""Command execution using the invoke library.

Each check command runs through the shell in its own process
session. Termination (timeout or cancellation) kills the whole
process group, so pipelines and background children of the shell
do not outlive the check.
"""

from __future__ import annotations

import contextlib
import io
import os
import signal
import threading
import time
from collections.abc import Callable, Sequence
from pathlib import Path
from subprocess import PIPE, Popen

from invoke import Config, Context
from invoke.exceptions import CommandTimedOut, ThreadException
from invoke.runners import Local

from smokegate.core.errors import (
    CancelledError,
    CommandTimedOutError,
    LaunchError,
    ScriptNotFoundError,
)
from smokegate.core.log import logger
from smokegate.core.result import ExecutionResult
from smokegate.engine.outcome import should_retry

DEFAULT_TIMEOUT = 30.0
DEFAULT_RETRY_DELAY = 2.0
DEFAULT_SHELL = "/bin/sh"

# How often a running command checks for cancellation
POLL_INTERVAL = 0.05

# Characters that force a token into single quotes
_SHELL_SPECIAL = frozenset(" \t\n'\"\\$`!*?[]{}|<>&;()#~")

# sleep(delay, cancel) -> True if cancel fired before delay elapsed
Sleep = Callable[[float, "threading.Event | None"], bool]


def wait_for_retry(delay: float, cancel: threading.Event | None) -> bool:
    """Sleep between retry attempts unless cancelled first."""
    if cancel is None:
        time.sleep(delay)
        return False
    return cancel.wait(delay)


def shell_quote(token: str) -> str:
    """Quote a token for safe reinterpretation by the shell.

    Empty strings become '', tokens without shell metacharacters pass
    through unchanged, anything else is wrapped in single quotes with
    embedded single quotes spliced in as '"'"'.
    """
    if token == "":
        return "''"
    if not any(char in _SHELL_SPECIAL for char in token):
        return token
    return "'" + token.replace("'", "'\"'\"'") + "'"


class SessionLocal(Local):
    """invoke Local runner that starts each command in a new session.

    Local.kill() only signals the shell's own pid. That leaves any
    children the shell forked still holding the output pipes, and
    invoke then waits for them to exit. Starting the shell as a
    session leader lets kill() take down the whole process group.

    Platforms without os.killpg (Windows) fall back to invoke's
    behaviour.
    """

    def start(self, command: str, shell: str, env: dict) -> None:
        if self.using_pty or not hasattr(os, "killpg"):
            super().start(command, shell, env)
            return

        self.process = Popen(
            command,
            shell=True,
            executable=shell,
            env=env,
            stdout=PIPE,
            stderr=PIPE,
            stdin=PIPE,
            start_new_session=True,
        )

    def kill(self) -> None:
        if self.using_pty or not hasattr(os, "killpg"):
            super().kill()
            return

        with contextlib.suppress(ProcessLookupError):
            os.killpg(self.process.pid, signal.SIGKILL)


class Runner:
    """Runs check commands under a deadline with optional retry.

    Args:
        shell: Shell used to interpret commands
        sleep: Wait between retry attempts; injectable so tests can
            observe delays without real timers
    """

    def __init__(
        self,
        shell: str = DEFAULT_SHELL,
        sleep: Sleep | None = None,
    ):
        self.shell = shell
        self.sleep = sleep or wait_for_retry
        self.context = Context(
            config=Config(
                overrides={
                    "runners": {"local": SessionLocal},
                    "run": {"shell": shell},
                },
                lazy=True,
            )
        )

    def execute(
        self,
        command: str,
        timeout: float | None = None,
        cancel: threading.Event | None = None,
        log_file: Path | None = None,
    ) -> ExecutionResult:
        """Run one attempt of a shell command.

        stdout and stderr are written into a single buffer in the
        order they arrive. Failures that are not an exit code become
        an execution error with exit code -1; any real exit code is
        returned verbatim for the classifier to judge.

        Args:
            command: Shell command to execute
            timeout: Deadline in seconds (<= 0 or None uses the default)
            cancel: Event that aborts the command when set
            log_file: Optional path to write the captured output to

        Returns:
            ExecutionResult for this attempt
        """
        if timeout is None or timeout <= 0:
            timeout = DEFAULT_TIMEOUT

        if cancel is not None and cancel.is_set():
            return ExecutionResult(
                error=CancelledError("command cancelled before start")
            )

        output = io.StringIO()
        logger.debug("Running command", command=command, timeout=timeout)

        try:
            promise = self.context.run(
                command,
                asynchronous=True,
                hide=False,
                warn=True,
                in_stream=False,
                out_stream=output,
                err_stream=output,
                timeout=timeout,
            )
        except OSError as e:
            logger.error("Command could not start", command=command)
            return ExecutionResult(
                error=LaunchError(f"command execution failed: {e}")
            )

        cancelled = self._wait(promise.runner, cancel)

        try:
            invoke_result = promise.join()
        except CommandTimedOut:
            logger.warn("Command timed out", command=command, timeout=timeout)
            result = ExecutionResult(
                output=output.getvalue(),
                error=CommandTimedOutError(timeout),
            )
        except ThreadException as e:
            result = ExecutionResult(
                output=output.getvalue(),
                error=LaunchError(f"command execution failed: {e}"),
            )
        else:
            if cancelled:
                result = ExecutionResult(
                    output=output.getvalue(),
                    error=CancelledError("command cancelled"),
                )
            else:
                result = ExecutionResult(
                    output=output.getvalue(),
                    exit_code=invoke_result.exited,
                )

        if log_file:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            log_file.write_text(result.output, encoding="utf-8")

        return result

    def _wait(self, runner: Local, cancel: threading.Event | None) -> bool:
        """Wait for the process, killing it if cancel fires first.

        Returns:
            True if the process was killed because of cancellation
        """
        if cancel is None:
            return False
        while not runner.process_is_finished:
            if cancel.wait(POLL_INTERVAL):
                logger.warn("Cancelling running command")
                runner.kill()
                return True
        return False

    def execute_with_retry(
        self,
        command: str,
        timeout: float | None = None,
        max_retries: int = 0,
        retry_delay: float | None = None,
        cancel: threading.Event | None = None,
        log_file: Path | None = None,
    ) -> tuple[ExecutionResult, int]:
        """Run a command, retrying on FAIL (exit 1) or execution errors.

        Each attempt alternates between two states: running the
        command, then waiting retry_delay before the next attempt.
        Both states stop early when cancel is set. There is no wait
        after the final attempt.

        Args:
            command: Shell command to execute
            timeout: Per-attempt deadline in seconds
            max_retries: Retries after the first attempt (< 0 means 0)
            retry_delay: Seconds between attempts (<= 0 uses default)
            cancel: Event that aborts the command and any further retry
            log_file: Optional path for the last attempt's output

        Returns:
            (result of the last attempt, number of attempts made)
        """
        max_retries = max(max_retries, 0)
        if retry_delay is None or retry_delay <= 0:
            retry_delay = DEFAULT_RETRY_DELAY

        attempts = 0
        while True:
            attempts += 1
            result = self.execute(command, timeout, cancel, log_file)

            if not should_retry(result.exit_code, result.error):
                return result, attempts
            if isinstance(result.error, CancelledError):
                return result, attempts
            if attempts > max_retries:
                return result, attempts

            logger.warn(
                "Attempt failed, retrying",
                command=command,
                attempt=attempts,
                max_retries=max_retries,
                delay=retry_delay,
            )
            if self.sleep(retry_delay, cancel):
                return result.model_copy(update={
                    "error": CancelledError("cancelled while waiting to retry")
                }), attempts

    @staticmethod
    def script_command(
        path: str, args: Sequence[str], checks_dir: Path
    ) -> str:
        """Build the shell command line for a script check.

        Args:
            path: Script path, absolute or relative to checks_dir
            args: Positional arguments, quoted for the shell
            checks_dir: Directory relative paths are resolved against

        Raises:
            ScriptNotFoundError: If the script is missing or a directory
        """
        script = Path(path)
        if not script.is_absolute():
            script = Path(checks_dir) / script

        if not script.exists():
            raise ScriptNotFoundError(f"script not found: {script}")
        if script.is_dir():
            raise ScriptNotFoundError(
                f"script path is a directory: {script}"
            )

        return " ".join(
            [shell_quote(str(script)), *(shell_quote(a) for a in args)]
        )

    def execute_script(
        self,
        path: str,
        args: Sequence[str],
        checks_dir: Path,
        timeout: float | None = None,
        cancel: threading.Event | None = None,
    ) -> ExecutionResult:
        """Run a script check once.

        A missing script produces an execution error without
        spawning a process.
        """
        try:
            command = self.script_command(path, args, checks_dir)
        except ScriptNotFoundError as e:
            return ExecutionResult(error=e)
        return self.execute(command, timeout, cancel)

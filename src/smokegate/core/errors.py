"""Error taxonomy.

Configuration errors are fatal and raised before any check runs.
Execution errors are scoped to one check: they are never raised past
the check runner, they travel on ExecutionResult.error and are always
classified as ERROR.
"""


class SmokegateError(Exception):
    """Base class for all smokegate errors."""


class ConfigurationError(SmokegateError):
    """The checks document or settings are unusable."""


class ExecutionError(SmokegateError):
    """A check command could not be run to completion."""


class CommandTimedOutError(ExecutionError):
    """The command exceeded its deadline and was killed."""

    def __init__(self, timeout: float):
        self.timeout = timeout
        super().__init__(f"command timed out after {timeout:g}s")


class LaunchError(ExecutionError):
    """The shell could not be started or its I/O failed."""


class CancelledError(ExecutionError):
    """The run was cancelled while this check was in flight."""


class ScriptNotFoundError(ExecutionError):
    """A script check points at a missing file or a directory."""


class TemplateError(ExecutionError):
    """A command references a variable that is not defined."""

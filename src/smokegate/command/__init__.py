"""CLI command modules for smokegate."""

from smokegate.command.list import ListCommand
from smokegate.command.run import RunCommand
from smokegate.command.version import VersionCommand

__all__ = ["ListCommand", "RunCommand", "VersionCommand"]

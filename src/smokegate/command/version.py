"""Version command."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import BaseModel
from rich.console import Console

from smokegate import __version__

if TYPE_CHECKING:
    from smokegate.core.config import State


class VersionCommand(BaseModel):
    """Print version information and exit."""

    def run_command(self, state: "State") -> int:  # noqa: ARG002
        Console(highlight=False).print(f"smokegate {__version__}")
        return 0

#!/usr/bin/env python3
"""smokegate CLI - layered smoke checks that gate deployments."""

import sys

from pydantic import ValidationError
from pydantic_settings import (
    CliApp,
    CliSubCommand,
    SettingsConfigDict,
    get_subcommand,
)
from rich.console import Console

from smokegate.command import ListCommand, RunCommand, VersionCommand
from smokegate.command.run import EXIT_CONFIG_ERROR
from smokegate.core.config import State
from smokegate.core.errors import ConfigurationError
from smokegate.core.log import logger


class CliState(State):
    """Run a declarative list of smoke checks against an environment.

    Checks run in layer order; the first gating failure stops the run.
    Commands may reference {{ cluster }}, {{ namespace }},
    {{ context }} and any key in --config.vars.extra.

    Configuration sources (in priority order):
    1. Command-line arguments (--config.timeout 45s)
    2. Environment variables (SMOKEGATE_CONFIG__TIMEOUT=45s)
    3. .env file
    4. smokegate.yaml in the current directory, plus --include files

    Exit codes: 0 passed (or only non-gating failures), 1 gating
    failure, 2 configuration error or ERROR outcome.
    """

    run: CliSubCommand[RunCommand]
    list: CliSubCommand[ListCommand]
    version: CliSubCommand[VersionCommand]

    model_config = SettingsConfigDict(
        cli_prog_name="smokegate",
        cli_implicit_flags=True,
        cli_use_class_docs_for_groups=True,
    )

    def cli_cmd(self):
        """Dispatch to the active subcommand, or show help."""
        subcommand = get_subcommand(self, is_required=False)

        if subcommand is None:
            CliApp.run(CliState, cli_args=['--help'])
            sys.exit(1)

        # Closes log files on the way out
        with logger:
            exit_code = subcommand.run_command(self)
        raise SystemExit(exit_code)


def main():
    """Main entry point for CLI."""
    try:
        CliApp.run(CliState)
    except (ValidationError, ConfigurationError) as e:
        Console(stderr=True, highlight=False).print(
            f"Invalid settings: {e}", style="bold red", markup=False
        )
        sys.exit(EXIT_CONFIG_ERROR)


if __name__ == "__main__":
    main()

"""Loading and validating the checks document."""

from __future__ import annotations

from pathlib import Path

import yaml
from pydantic import ValidationError

from smokegate.checks.model import CheckDefinition, CheckSuite
from smokegate.core.errors import ConfigurationError
from smokegate.core.log import logger

# Searched in order when no checks file is given
CHECKS_FILE_CANDIDATES = (
    Path("checks.yaml"),
    Path("tools/smoke/checks.yaml"),
)


def find_checks_file(base: Path | None = None) -> Path | None:
    """Return the first existing default checks file, or None."""
    base = base or Path.cwd()
    for candidate in CHECKS_FILE_CANDIDATES:
        path = base / candidate
        if path.is_file():
            return path
    return None


def resolve_checks_file(explicit: Path | None) -> Path:
    """The checks file to use: explicit path, else the first default.

    Raises:
        ConfigurationError: If no path was given and no default exists
    """
    if explicit is not None:
        return Path(explicit)
    found = find_checks_file()
    if found is None:
        tried = ", ".join(str(c) for c in CHECKS_FILE_CANDIDATES)
        raise ConfigurationError(f"checks.yaml not found (tried: {tried})")
    return found


def _describe(error: ValidationError) -> str:
    messages = []
    for err in error.errors():
        loc = ".".join(str(part) for part in err["loc"])
        msg = err["msg"].removeprefix("Value error, ")
        messages.append(f"{loc}: {msg}" if loc else msg)
    return "; ".join(messages)


def parse_checks(data) -> CheckSuite:
    """Validate an already-parsed checks document.

    Raises:
        ConfigurationError: If the document or any check is invalid.
            The message names the offending check by index and name.
    """
    if not isinstance(data, dict) or "checks" not in data:
        raise ConfigurationError("checks document must have a 'checks' list")

    raw_checks = data["checks"]
    if not isinstance(raw_checks, list):
        raise ConfigurationError("'checks' must be a list")
    if not raw_checks:
        raise ConfigurationError("no checks defined")

    checks = []
    for index, entry in enumerate(raw_checks):
        name = entry.get("name") if isinstance(entry, dict) else None
        label = f"check {index} ({name})" if name else f"check {index}"
        try:
            checks.append(CheckDefinition.model_validate(entry))
        except ValidationError as e:
            raise ConfigurationError(f"{label}: {_describe(e)}") from e

    return CheckSuite(checks=checks)


def load_checks(path: Path) -> CheckSuite:
    """Load a checks document from a YAML file.

    Args:
        path: Path to the checks YAML file

    Returns:
        Validated CheckSuite

    Raises:
        ConfigurationError: If the file is missing, is not valid YAML,
            or describes an invalid check
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigurationError(
            f"failed to read config file {path}: {e}"
        ) from e

    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigurationError(
            f"failed to parse config file {path}: {e}"
        ) from e

    suite = parse_checks(data)
    logger.debug(
        "Loaded checks", file=str(path), count=len(suite.checks)
    )
    return suite

"""Per-run directory for captured check output."""

import re
from datetime import datetime
from pathlib import Path


class RunLogDir:
    """One directory per run, one log file per executed check."""

    def __init__(self, base_dir: Path, cluster: str | None = None):
        """Create a new log directory for this run.

        Args:
            base_dir: Base directory for all run logs
            cluster: Optional cluster name for subdirectory
                organization
        """
        timestamp = datetime.now().strftime('%Y%m%d-%H%M%S')

        if cluster:
            base_dir = base_dir / cluster

        self.run_dir = base_dir / f"smoke-{timestamp}"
        self.run_dir.mkdir(parents=True, exist_ok=True)

    def check_log(self, index: int, name: str) -> Path:
        """Log file path for the index-th executed check."""
        slug = re.sub(r"[^A-Za-z0-9._-]+", "-", name).strip("-") or "check"
        return self.run_dir / f"{index:02d}-{slug}.log"

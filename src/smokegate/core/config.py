"""Application settings."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

import platformdirs
from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from smokegate.checks.model import Duration
from smokegate.checks.template import TemplateVars
from smokegate.core.base import BaseConfig
from smokegate.core.log import LEVELS, Logger, check_level
from smokegate.core.yaml_settings import YamlWithIncludesSettingsSource

# Modules a settings value may reference, e.g. {platformdirs.user_log_dir}
TEMPLATE_NAMESPACE = {
    "os": os,
    "platformdirs": platformdirs,
}

# {config.log_root}, {platformdirs.user_cache_dir}
_SETTINGS_REFERENCE = re.compile(r"\{([a-z_]+(?:\.[a-z_]+)*)\}")


class Config(BaseConfig):
    """Run configuration loaded from YAML/env/CLI."""

    logger: Logger = Field(
        default=None,
        description="Logger configuration and runtime instance"
    )
    checks: Path | None = Field(
        default=None,
        description=(
            "Path to the checks YAML file "
            "(default: ./checks.yaml or tools/smoke/checks.yaml)"
        ),
    )
    timeout: Duration = Field(
        default=30.0,
        description="Default timeout for checks (e.g. 30s, 1m)",
    )
    max_retries: int = Field(
        default=3,
        description="Maximum retries for checks with retry enabled",
    )
    retry_delay: Duration = Field(
        default=2.0,
        description="Delay between retries (e.g. 2s)",
    )
    verbose: bool = Field(
        default=False,
        description="Show every check's reason and output",
    )
    shell: str = Field(
        default="/bin/sh",
        description="Shell used to interpret check commands",
    )
    vars: TemplateVars = Field(
        default_factory=TemplateVars,
        description=(
            "Template variables: {{ cluster }}, {{ namespace }}, "
            "{{ context }}, plus any key in extra"
        ),
    )
    output_dir: Path | None = Field(
        default=None,
        description="Directory to save each check's output in (optional)",
    )
    log_level: str = Field(
        default="warn",
        description="Console log level: " + ", ".join(LEVELS),
    )
    log_root: Path = Field(
        default_factory=(
            lambda: Path(platformdirs.user_state_dir()) / "smokegate"
        ),
        description=(
            "Root directory for log files "
            "(supports {platformdirs.*} templates)"
        ),
    )

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        return check_level(value)

    @model_validator(mode='after')
    def _setup_logger(self) -> 'Config':
        """Initialize the global logger singleton after settings load."""
        from smokegate.core.log import setup_logger

        if self.logger is None:
            self.logger = Logger()

        self.logger.console.level = "debug" if self.verbose else self.log_level

        setup_logger(
            log_root=self.log_root,
            run_name=self.vars.cluster or "smoke",
            console=self.logger.console,
            otlp=self.logger.otlp,
            file=self.logger.file,
            logfire=self.logger.logfire,
        )
        return self

    def close(self):
        """Close config and the global logger singleton."""
        from smokegate.core.log import logger
        logger.close()

        super().close()


class State(BaseSettings):
    """Complete application state loaded from all settings sources."""

    config: Config = Field(
        default_factory=Config,
        description="Run configuration (from YAML/env/CLI)",
    )
    include: list[str] | None = Field(
        default=None,
        description=(
            "Additional YAML files to include and merge. "
            "Use --include on CLI or include: in YAML files."
        ),
    )

    model_config = SettingsConfigDict(
        yaml_file="smokegate.yaml",
        env_file=".env",
        env_prefix="SMOKEGATE_",
        env_nested_delimiter="__",
        arbitrary_types_allowed=True,
        extra='ignore'
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Source priority, highest first: init args (CLI), environment,
        .env, YAML files, secrets."""
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlWithIncludesSettingsSource(settings_cls),
            file_secret_settings,
        )

    @model_validator(mode="after")
    def substitute_templates(self) -> "State":
        """Resolve {config.*} and {platformdirs.*} references.

        Lets one setting build on another, e.g.
        output_dir: "{config.log_root}/runs". References that do not
        resolve are left as written.
        """
        self._resolve_fields(self.config)
        return self

    def _resolve_fields(self, model: BaseModel) -> None:
        for name in type(model).model_fields:
            value = getattr(model, name)
            resolved = self._resolve(value)
            if resolved is not value:
                setattr(model, name, resolved)

    def _resolve(self, value: Any) -> Any:
        if isinstance(value, BaseModel):
            self._resolve_fields(value)
        elif isinstance(value, str):
            text = _SETTINGS_REFERENCE.sub(self._lookup, value)
            if text != value:
                return text
        elif isinstance(value, Path):
            text = _SETTINGS_REFERENCE.sub(self._lookup, str(value))
            if text != str(value):
                return Path(text)
        elif isinstance(value, dict):
            return {key: self._resolve(item) for key, item in value.items()}
        elif isinstance(value, list):
            return [self._resolve(item) for item in value]
        return value

    def _lookup(self, match: re.Match) -> str:
        """Value for one {dotted.name} reference.

            {config.log_root}             -> ~/.local/state/smokegate
            {platformdirs.user_cache_dir} -> ~/.cache/smokegate
        """
        head, *rest = match.group(1).split(".")
        obj = TEMPLATE_NAMESPACE.get(head)
        if obj is None:
            obj, rest = self, [head, *rest]

        try:
            for part in rest:
                obj = getattr(obj, part)
            if callable(obj):
                obj = obj("smokegate", appauthor=False)
        except (AttributeError, TypeError):
            return match.group(0)
        return str(obj)


__all__ = ["Config", "State"]

"""Diagnostic logging through logfire.

Every module logs through the `logger` proxy. `setup_logger()` builds a
Logger from its sinks and points the proxy at it:

    console  logfire's own console exporter (stderr-style diagnostics)
    file     formatted lines appended to a file, one span per line
    otlp     OpenTelemetry export over gRPC
    logfire  logfire.dev, off unless a token is configured

Sinks below their level are filtered by LevelFilteringExporter before
anything is written.
"""

from __future__ import annotations

import contextlib
import os
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import logfire
from opentelemetry.proto.logs.v1 import logs_pb2
from opentelemetry.sdk.trace import ReadableSpan
from opentelemetry.sdk.trace.export import (
    ConsoleSpanExporter,
    SimpleSpanProcessor,
    SpanExporter,
    SpanExportResult,
)
from pydantic import Field, PrivateAttr, field_validator, model_validator

from smokegate.core.base import BaseConfig

# Level names and their OpenTelemetry severity numbers, least severe first
LEVELS = {
    "trace": logs_pb2.SEVERITY_NUMBER_TRACE,
    "debug": logs_pb2.SEVERITY_NUMBER_DEBUG,
    "info": logs_pb2.SEVERITY_NUMBER_INFO,
    "warn": logs_pb2.SEVERITY_NUMBER_WARN,
    "error": logs_pb2.SEVERITY_NUMBER_ERROR,
    "fatal": logs_pb2.SEVERITY_NUMBER_FATAL,
}

# Span attributes that are telemetry bookkeeping rather than log fields
_INTERNAL_PREFIXES = (
    "code.", "logfire.", "otel.", "process.", "service.", "telemetry.",
)

_ESCAPES = str.maketrans({
    "\\": "\\\\",
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
})


def check_level(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.lower()
    if value not in LEVELS:
        raise ValueError(
            f"unknown log level {value!r} "
            f"(expected one of {', '.join(LEVELS)})"
        )
    return value


def level_name(severity: int) -> str:
    """The most severe level name at or below a severity number."""
    name = "trace"
    for candidate, number in LEVELS.items():
        if severity >= number:
            name = candidate
    return name


def _severity(span: ReadableSpan) -> int:
    attributes = span.attributes or {}
    return attributes.get("logfire.level_num", LEVELS["info"])


class LevelFilteringExporter(SpanExporter):
    """Wraps an exporter and drops spans less severe than min_level."""

    def __init__(self, exporter: SpanExporter, min_level: str | None):
        self._exporter = exporter
        self._threshold = LEVELS.get(min_level or "info", LEVELS["info"])

    def export(self, spans) -> SpanExportResult:
        kept = [span for span in spans if _severity(span) >= self._threshold]
        if not kept:
            return SpanExportResult.SUCCESS
        return self._exporter.export(kept)

    def shutdown(self) -> None:
        self._exporter.shutdown()

    def force_flush(self, timeout_millis: int = 30000) -> bool:
        return self._exporter.force_flush(timeout_millis)


class Sink(BaseConfig):
    """One log destination. Disabled sinks create no processor."""

    enabled: bool = True
    level: str | None = Field(
        default=None,
        description="Minimum level for this sink (inherits Logger.level)",
    )
    escape_special_characters: bool = Field(
        default=False,
        description="Write newlines and tabs in messages as \\n and \\t",
    )
    format_template: str | None = Field(
        default="{timestamp:%Y-%m-%d %H:%M:%S} {level:<5} {message}",
        description=(
            "str.format template over timestamp, level, message and "
            "function; None writes raw JSON spans"
        ),
    )

    _processor: Any = PrivateAttr(default=None)

    @field_validator("level")
    @classmethod
    def _known_level(cls, value: str | None) -> str | None:
        return check_level(value)

    def create_processor(self, log_root: Path, run_name: str):
        """Span processor for this sink, or None if logfire drives it."""
        return None

    def render(self, span: ReadableSpan) -> str:
        """One output line for a span, keyword fields appended."""
        if self.format_template is None:
            return span.to_json() + os.linesep

        attributes = dict(span.attributes or {})
        message = str(attributes.get("logfire.msg", span.name))
        if self.escape_special_characters:
            message = message.translate(_ESCAPES)

        try:
            line = self.format_template.format(
                timestamp=datetime.fromtimestamp(
                    span.start_time / 1e9, tz=UTC
                ),
                level=level_name(_severity(span)),
                message=message,
                function=attributes.get("code.function", ""),
            )
        except KeyError as e:
            return f"ERROR: Invalid template field {e}\n"

        fields = sorted(
            (key, value) for key, value in attributes.items()
            if not key.startswith(_INTERNAL_PREFIXES)
        )
        if fields:
            line += " │ " + " ".join(f"{k}={v!r}" for k, v in fields)
        return line + "\n"

    def close(self):
        if self._processor is not None:
            with contextlib.suppress(Exception):
                self._processor.shutdown()
            self._processor = None


class ConsoleSink(Sink):
    """Diagnostics on the terminal via logfire's console exporter."""

    verbose: bool = Field(
        default=False,
        description="Show span attributes on the console",
    )
    colors: str = Field(
        default="auto",
        description="Color mode: auto, always, never",
    )

    def options(self):
        if not self.enabled:
            return False
        return logfire.ConsoleOptions(
            min_log_level=self.level or "info",
            verbose=self.verbose,
            colors=self.colors,
            include_timestamps=True,
        )


class FileSink(Sink):
    """Formatted lines appended to a file for the duration of a run."""

    enabled: bool = False
    path: str = Field(
        default="{log_root}/{run_name}/smokegate.log",
        description="Log file; {log_root} and {run_name} are filled in",
    )

    _file: Any = PrivateAttr(default=None)

    def create_processor(self, log_root: Path, run_name: str):
        log_path = Path(self.path.format(log_root=log_root, run_name=run_name))
        log_path.parent.mkdir(parents=True, exist_ok=True)

        # Line buffered so a killed run still leaves complete lines
        self._file = open(  # noqa: SIM115
            log_path, "a", buffering=1, encoding="utf-8"
        )
        exporter = ConsoleSpanExporter(out=self._file, formatter=self.render)
        return SimpleSpanProcessor(
            LevelFilteringExporter(exporter, self.level)
        )

    def close(self):
        # Processor first, so pending spans reach the file
        super().close()
        if self._file is not None and not self._file.closed:
            self._file.close()


class OTLPSink(Sink):
    """Export spans to an OpenTelemetry collector over gRPC."""

    enabled: bool = False
    endpoint: str = "http://localhost:4317"
    insecure: bool = Field(
        default=True,
        description="Plaintext gRPC (no TLS)",
    )
    headers: dict[str, str] = Field(
        default_factory=dict,
        description="Extra request headers, e.g. for authentication",
    )

    def create_processor(self, log_root: Path, run_name: str):
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import (
            OTLPSpanExporter,
        )
        from opentelemetry.sdk.trace.export import BatchSpanProcessor

        exporter = OTLPSpanExporter(
            endpoint=self.endpoint,
            insecure=self.insecure,
            headers=self.headers or None,
        )
        return BatchSpanProcessor(LevelFilteringExporter(exporter, self.level))


class LogfireSink(Sink):
    """Send spans to logfire.dev."""

    enabled: bool = False
    token: str | None = Field(
        default=None,
        description="Write token (LOGFIRE_TOKEN is used when unset)",
    )


class Logger(BaseConfig):
    """Sinks plus the logging calls used throughout smokegate.

    Closing the Logger closes its sinks (BaseCloseable cascade), so
    `with logger:` releases any open log file.
    """

    level: str = Field(
        default="info",
        description="Default level for sinks that do not set their own",
    )
    console: ConsoleSink = Field(default_factory=ConsoleSink)
    file: FileSink = Field(default_factory=FileSink)
    otlp: OTLPSink = Field(default_factory=OTLPSink)
    logfire: LogfireSink = Field(default_factory=LogfireSink)

    @field_validator("level")
    @classmethod
    def _known_level(cls, value: str | None) -> str | None:
        return check_level(value)

    @model_validator(mode="after")
    def _inherit_level(self) -> "Logger":
        for sink in (self.console, self.file, self.otlp):
            if sink.level is None:
                sink.level = self.level
        return self

    def setup(self, log_root: Path, run_name: str):
        """Create sink processors and (re)configure logfire."""
        processors = []
        for sink in (self.file, self.otlp):
            if sink.enabled:
                sink._processor = sink.create_processor(log_root, run_name)
                processors.append(sink._processor)

        logfire.configure(
            service_name=f"smokegate-{run_name}",
            send_to_logfire=self.logfire.enabled,
            token=self.logfire.token if self.logfire.enabled else None,
            console=self.console.options(),
            additional_span_processors=processors or None,
        )

    def log(self, level: str, msg: str, **attributes):
        """Log msg at level; msg may use {name} fields from attributes."""
        logfire.log(level, msg, attributes=attributes or None)

    def trace(self, msg: str, **attributes):
        self.log("trace", msg, **attributes)

    def debug(self, msg: str, **attributes):
        self.log("debug", msg, **attributes)

    def info(self, msg: str, **attributes):
        self.log("info", msg, **attributes)

    def warn(self, msg: str, **attributes):
        self.log("warn", msg, **attributes)

    warning = warn

    def error(self, msg: str, **attributes):
        self.log("error", msg, **attributes)

    def span(self, msg: str, **attributes):
        """Context manager timing a block:

            with logger.span("Check {name}", name=check.name):
                ...
        """
        return logfire.span(msg, **attributes)


_current_logger: Logger | None = None


class _LoggerProxy:
    """Stands in for whichever Logger setup_logger() created last.

    Until then every call is a no-op, so library code and tests can log
    without configuring anything.
    """

    def __getattr__(self, name):
        if _current_logger is None:
            return lambda *args, **kwargs: None
        return getattr(_current_logger, name)

    def __enter__(self):
        if _current_logger is not None:
            _current_logger.__enter__()
        return self

    def __exit__(self, *exc_info):
        if _current_logger is not None:
            return _current_logger.__exit__(*exc_info)
        return False


logger = _LoggerProxy()


def setup_logger(
    log_root: Path,
    run_name: str,
    console: ConsoleSink | None = None,
    otlp: OTLPSink | None = None,
    file: FileSink | None = None,
    logfire: LogfireSink | None = None,
) -> Logger:
    """Build the process-wide Logger and route `logger` to it.

    Config calls this once settings are loaded; tests call it directly.
    """
    global _current_logger

    _current_logger = Logger(
        console=console or ConsoleSink(),
        otlp=otlp or OTLPSink(),
        file=file or FileSink(),
        logfire=logfire or LogfireSink(),
    )
    _current_logger.setup(log_root, run_name)
    return _current_logger

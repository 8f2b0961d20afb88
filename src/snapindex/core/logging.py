"""Structured logging for sync and query runs.

structlog events are rendered through stdlib handlers, one per configured
output. Each sync binds a run id (and any extra context) with
``set_run_id``; every event logged in that context carries it.

Console handlers go quiet while a Rich live display (spinner, progress bar)
owns the terminal. File handlers always receive everything, and the first
file destination is remembered so the CLI can point at it after a failure.
"""

from __future__ import annotations

import logging
import sys
from contextvars import ContextVar
from pathlib import Path
from typing import TYPE_CHECKING, Any
from uuid import uuid4

import structlog

if TYPE_CHECKING:
    from snapindex.config.models import LoggingConfig, LogOutputConfig

_log_file_path: Path | None = None

# Keys bound by the current set_run_id
_run_keys: ContextVar[tuple[str, ...]] = ContextVar("snapindex_run_keys", default=())

_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARN": logging.WARNING,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

# Third-party loggers that are chatty at INFO
_NOISY_LOGGERS = ("httpx", "httpcore", "fastembed", "onnxruntime", "huggingface_hub", "urllib3")

_SHARED_PROCESSORS: list[structlog.types.Processor] = [
    structlog.contextvars.merge_contextvars,
    structlog.processors.add_log_level,
    structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S", key="timestamp"),
]


def set_run_id(run_id: str | None = None, **context: Any) -> str:
    """Bind a run id (generated when omitted) plus extra context to the current context."""
    rid = run_id or uuid4().hex[:12]
    structlog.contextvars.bind_contextvars(run_id=rid, **context)
    _run_keys.set(("run_id", *context))
    return rid


def get_run_id() -> str | None:
    return structlog.contextvars.get_contextvars().get("run_id")


def clear_run_id() -> None:
    """Drop the run id and the keys bound with it; other context is kept."""
    structlog.contextvars.unbind_contextvars(*_run_keys.get())
    _run_keys.set(())


def get_log_file_path() -> Path | None:
    """First file destination of the current configuration, if any."""
    return _log_file_path


class ConsoleSuppressingFilter(logging.Filter):
    """Drop console records while a Rich live display owns the terminal."""

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: ARG002
        from snapindex.core.progress import is_console_suppressed

        return not is_console_suppressed()


def _level(name: str | None, default: int) -> int:
    if name is None:
        return default
    return _LEVELS.get(name.upper(), default)


def _build_handler(output: LogOutputConfig) -> logging.Handler:
    handler: logging.Handler
    if output.destination == "stderr":
        handler = logging.StreamHandler(sys.stderr)
    elif output.destination == "stdout":
        handler = logging.StreamHandler(sys.stdout)
    else:
        path = Path(output.destination)
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(path, mode="a")
        return handler
    handler.addFilter(ConsoleSuppressingFilter())
    return handler


def _build_formatter(output: LogOutputConfig) -> logging.Formatter:
    renderer: structlog.types.Processor
    if output.format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        is_console = output.destination in ("stderr", "stdout")
        renderer = structlog.dev.ConsoleRenderer(
            colors=is_console and sys.stderr.isatty(),
            pad_level=False,
        )
    return structlog.stdlib.ProcessorFormatter(
        processor=renderer,
        foreign_pre_chain=_SHARED_PROCESSORS,
    )


def configure_logging(
    *,
    config: LoggingConfig | None = None,
    json_format: bool = False,
    level: str = "INFO",
) -> None:
    """Configure structlog and the root logger's handlers.

    Args:
        config: Logging configuration with outputs. Takes precedence over
            the simple parameters.
        json_format: Single stderr output rendered as JSON
        level: Root log level for the simple setup
    """
    global _log_file_path
    from snapindex.config.models import LoggingConfig, LogOutputConfig

    if config is None:
        config = LoggingConfig(
            level=level,  # type: ignore[arg-type]
            outputs=[LogOutputConfig(format="json" if json_format else "console")],
        )

    root_level = _level(config.level, logging.INFO)
    structlog.configure(
        processors=[*_SHARED_PROCESSORS, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.make_filtering_bound_logger(root_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        # Reconfigured per CLI invocation, so loggers must not cache
        cache_logger_on_first_use=False,
    )

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
        existing.close()
    root.setLevel(root_level)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    _log_file_path = None
    for output in config.outputs:
        if output.destination not in ("stderr", "stdout") and _log_file_path is None:
            _log_file_path = Path(output.destination)
        handler = _build_handler(output)
        handler.setLevel(_level(output.level, root_level))
        handler.setFormatter(_build_formatter(output))
        root.addHandler(handler)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    logger = structlog.get_logger()
    if name:
        logger = logger.bind(logger=name)
    return logger  # type: ignore[no-any-return]

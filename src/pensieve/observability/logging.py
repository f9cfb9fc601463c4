"""Structured logging for the validation engine.

Every event is a structlog event dict. Two sinks render it:

- the console (Rich, stderr), filtered by CLI verbosity
- ``validation.jsonl`` in a caller-chosen directory, one JSON object per line

Validation identifiers are bound with :func:`validation_context`. The
pipeline binds ``fandom_id`` for the whole call and ``phase`` around each
phase, so a phase's log lines carry both without passing them explicitly.
The bindings live in contextvars and follow phases into worker threads.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path  # noqa: TC003 - Used at runtime for path operations
from typing import TYPE_CHECKING, Any

import structlog
from rich.console import Console
from rich.logging import RichHandler

if TYPE_CHECKING:
    from collections.abc import Iterator, MutableMapping

    from structlog.typing import Processor

LOG_FILE_NAME = "validation.jsonl"

# Module-level state
_configured = False
_file_handler: logging.FileHandler | None = None
_logs_dir: Path | None = None


def _round_durations(
    _logger: Any, _method: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """Round ``*_ms`` float fields to microsecond precision."""
    for key, value in event_dict.items():
        if key.endswith("_ms") and isinstance(value, float):
            event_dict[key] = round(value, 3)
    return event_dict


def _drop_console_fields(
    _logger: Any, _method: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    # Rich prints its own time and level columns
    event_dict.pop("timestamp", None)
    event_dict.pop("level", None)
    return event_dict


def _shared_processors() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        _round_durations,
    ]


@contextmanager
def validation_context(**bindings: Any) -> Iterator[None]:
    """Bind identifiers to every event logged inside the block.

    ``None`` values are skipped. Bindings nest: an inner block adds to the
    outer one and restores it on exit.

    Example::

        with validation_context(fandom_id="hp"):
            with validation_context(phase="constraints"):
                log.info("rule_checked")  # carries fandom_id and phase
    """
    present = {key: value for key, value in bindings.items() if value is not None}
    with structlog.contextvars.bound_contextvars(**present):
        yield


def configure_logging(
    verbosity: int = 0,
    log_to_file: bool = False,
    log_dir: Path | None = None,
) -> None:
    """Configure logging for the engine and CLI.

    Args:
        verbosity: 0=WARNING (default), 1=INFO, 2+=DEBUG on the console.
        log_to_file: If True, append every DEBUG+ event to ``log_dir``.
        log_dir: Directory for ``validation.jsonl``. Required if log_to_file=True.

    Raises:
        ValueError: If log_to_file=True but log_dir is not provided.
    """
    global _configured, _file_handler, _logs_dir

    if log_to_file and log_dir is None:
        raise ValueError("log_dir is required when log_to_file=True")

    if _file_handler is not None:
        _file_handler.close()
        _file_handler = None
    _logs_dir = None

    levels = {0: logging.WARNING, 1: logging.INFO}
    console_level = levels.get(verbosity, logging.DEBUG)
    shared = _shared_processors()

    console_handler = RichHandler(
        console=Console(stderr=True),
        rich_tracebacks=True,
        tracebacks_show_locals=verbosity >= 2,
        show_time=verbosity >= 1,
        show_path=False,
        markup=False,
        level=console_level,
    )
    console_handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                _drop_console_fields,
                structlog.dev.ConsoleRenderer(colors=False),
            ],
        )
    )
    handlers: list[logging.Handler] = [console_handler]

    if log_to_file and log_dir:
        _logs_dir = log_dir
        _logs_dir.mkdir(parents=True, exist_ok=True)
        _file_handler = logging.FileHandler(_logs_dir / LOG_FILE_NAME, mode="a", encoding="utf-8")
        _file_handler.setLevel(logging.DEBUG)
        _file_handler.setFormatter(
            structlog.stdlib.ProcessorFormatter(
                foreign_pre_chain=shared,
                processors=[
                    structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                    structlog.processors.JSONRenderer(default=str),
                ],
            )
        )
        handlers.append(_file_handler)

    root_level = logging.DEBUG if (verbosity > 0 or log_to_file) else logging.WARNING
    logging.basicConfig(level=root_level, handlers=handlers, force=True)
    logging.getLogger("asyncio").setLevel(logging.WARNING)

    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(root_level),
        # Module-level loggers must pick up a later reconfiguration
        cache_logger_on_first_use=False,
    )

    _configured = True


def get_logger(name: str | None = None) -> structlog.typing.FilteringBoundLogger:
    """Get a structured logger, configuring defaults on first use.

    Args:
        name: Logger name (typically __name__).
    """
    if not _configured:
        configure_logging()

    logger: structlog.typing.FilteringBoundLogger = structlog.get_logger(name)
    return logger


def get_logs_dir() -> Path | None:
    """Directory receiving ``validation.jsonl``, or None if file logging is off."""
    return _logs_dir


def close_file_logging() -> None:
    """Flush and close the JSONL file handler, if any."""
    global _file_handler
    if _file_handler is not None:
        logging.getLogger().removeHandler(_file_handler)
        _file_handler.close()
        _file_handler = None

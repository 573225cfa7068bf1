"""Structured logging setup built on structlog and the stdlib logging module."""

import logging
import os
from typing import Optional

import structlog

PACKAGE_LOGGER = "lifecycle_orchestrator"
_DESTINATIONS = ("file", "stdout", "both")


def setup_logging(
    log_level: str = "INFO",
    log_destination: str = "stdout",
    log_dir: Optional[str] = None,
    log_filename: str = "lifecycle_orchestrator.log",
    json_format: bool = False,
) -> logging.Logger:
    """
    Set up structured logging for the package using structlog.

    Records emitted through stdlib loggers (``get_logger``) are rendered by
    structlog's ``ProcessorFormatter``, so ``extra={...}`` context is kept.

    :param log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
    :param log_destination: Where to send logs ("file", "stdout" or "both").
    :param log_dir: Directory for the log file, required for file output.
    :param log_filename: Name of the log file.
    :param json_format: Render JSON lines instead of console key/value output.
    :return: The package root logger.
    """
    if log_destination not in _DESTINATIONS:
        raise ValueError(f"log_destination must be one of {_DESTINATIONS}, got {log_destination!r}")

    shared_processors = [
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.ExtraAdder(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]
    renderer = (
        structlog.processors.JSONRenderer()
        if json_format
        else structlog.dev.ConsoleRenderer(colors=False)
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *shared_processors,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            renderer,
        ],
    )

    handlers: list[logging.Handler] = []
    if log_destination in ("file", "both"):
        if not log_dir:
            raise ValueError("log_dir is required when logging to a file")
        os.makedirs(log_dir, exist_ok=True)
        handlers.append(logging.FileHandler(os.path.join(log_dir, log_filename)))
    if log_destination in ("stdout", "both"):
        handlers.append(logging.StreamHandler())

    root = logging.getLogger(PACKAGE_LOGGER)
    for existing in list(root.handlers):
        root.removeHandler(existing)
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)
    root.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    root.propagate = False

    return root


def get_logger(name: str) -> logging.Logger:
    """Get a module logger. Use ``%s`` arguments and ``extra={...}`` for context."""
    return logging.getLogger(name)

"""Structured logging singleton.

Reads os.environ directly so logging works before Settings is loaded
(config validation errors are themselves logged through here).
"""

from __future__ import annotations

import logging
import os
import sys

import structlog


def _level_from_env() -> int:
    level_name = os.environ.get("DOCKWORK_LOG_LEVEL") or os.environ.get("LOG_LEVEL", "INFO")
    return getattr(logging, level_name.upper(), logging.INFO)


def _setup_logging() -> structlog.stdlib.BoundLogger:
    # Configure stdlib root logger first so structlog's filter_by_level works
    logging.basicConfig(level=_level_from_env(), format="%(message)s", stream=sys.stderr)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    return structlog.get_logger("dockwork")


logger = _setup_logging()


def set_level(level_name: str) -> None:
    """Apply a level from config (e.g. ``[logging] level``) after startup."""
    logging.getLogger().setLevel(getattr(logging, level_name.upper(), logging.INFO))


def install_excepthook() -> None:
    """Route uncaught exceptions through structlog. Only the CLI calls this."""

    def _uncaught_exception_handler(
        exc_type: type[BaseException],
        exc_value: BaseException,
        exc_tb: object,
    ) -> None:
        if issubclass(exc_type, KeyboardInterrupt):
            sys.__excepthook__(exc_type, exc_value, exc_tb)  # type: ignore[arg-type]
            return
        logger.critical("Uncaught exception", exc_info=(exc_type, exc_value, exc_tb))
        sys.exit(1)

    sys.excepthook = _uncaught_exception_handler

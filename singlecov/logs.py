"""Structured logging setup."""

import logging
import os
import sys

import structlog


def configure_logging(verbose: bool = False, stream_handler: bool = True) -> None:
    """
    Route structlog events through the stdlib `singlecov` logger.

    The level comes from `verbose` or SINGLECOV_LOG_LEVEL and defaults to
    WARNING so audits stay quiet inside test runs.

    Args:
        verbose: Force debug output
        stream_handler: Attach a stderr handler to the `singlecov` logger
    """
    env_level = os.environ.get("SINGLECOV_LOG_LEVEL", "").strip().lower()
    if verbose or env_level in {"debug", "trace"}:
        level = logging.DEBUG
    elif env_level == "info":
        level = logging.INFO
    elif env_level == "error":
        level = logging.ERROR
    else:
        level = logging.WARNING

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logger = logging.getLogger("singlecov")
    logger.setLevel(level)
    if stream_handler and not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)

"""
Centralised logging configuration - powered by **loguru**.

Usage (any module)::

    from loguru import logger
    logger.info("Route: {} (conf={})", category_id, confidence)

Usage (entry-points - the chat CLI, one-off scripts)::

    from infrastructure.log import setup_logging
    setup_logging()                       # defaults: INFO, stderr
    setup_logging("DEBUG")                # more verbose
    setup_logging(log_file="data/chat.log")

The chat REPL prints model output on stdout, so every sink here goes
to stderr or a file and never interleaves with streamed tokens.
"""

from __future__ import annotations

import logging
import sys
from typing import Iterable, Optional

from loguru import logger


#  Format strings

_FMT_FULL = (
    "<green>{time:HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)

_FMT_CONSOLE = "<level>{level: <8}</level> <level>{message}</level>"

# Chatty third-party loggers that only matter when debugging
_NOISY_LOGGERS = ("httpx", "httpcore", "openai", "urllib3")


#  Intercept handler

class _InterceptHandler(logging.Handler):
    """Route stdlib ``logging`` records into **loguru**.

    Attached to the root logger so httpx, the OpenAI client and
    LangChain emit through loguru's sinks.
    """

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find the caller frame that originated the log call
        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


#  Public API

def setup_logging(
    level: str = "INFO",
    *,
    compact: bool = False,
    intercept_stdlib: bool = True,
    log_file: Optional[str] = None,
    quiet: Iterable[str] = _NOISY_LOGGERS,
) -> None:
    """
    Configure loguru for the current process.

    Call this **once** at your entry-point.

    Args:
        level: Minimum log level (``DEBUG``, ``INFO``, ``WARNING``, …).
        compact: Use a short ``LEVEL message`` format (interactive chat).
        intercept_stdlib: Route stdlib ``logging`` through loguru.
        log_file: Optional path to a rotating log file.
        quiet: stdlib logger names raised to WARNING unless ``level``
               is DEBUG.
    """
    logger.remove()

    logger.add(
        sys.stderr,
        format=_FMT_CONSOLE if compact else _FMT_FULL,
        level=level.upper(),
        colorize=True,
        backtrace=True,
        diagnose=False,
    )

    if log_file:
        logger.add(
            log_file,
            format=_FMT_FULL,
            level=level.upper(),
            rotation="10 MB",
            retention="7 days",
            compression="gz",
        )

    if intercept_stdlib:
        logging.basicConfig(
            handlers=[_InterceptHandler()], level=0, force=True)
        if level.upper() != "DEBUG":
            for name in quiet:
                logging.getLogger(name).setLevel(logging.WARNING)

    logger.debug("Loguru configured - level={}, file={}", level, log_file)

"""Structured logging setup using structlog over stdlib logging."""

import logging
import sys

import structlog
from rich.console import Console
from rich.logging import RichHandler


def setup_logging(level: str = "INFO", fmt: str = "console") -> None:
    """Configure structlog and the root logger. Safe to call more than once."""
    log_level: int = getattr(logging, level.upper(), logging.INFO)

    renderer: structlog.types.Processor
    if fmt == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="ISO"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler: logging.Handler
    if fmt == "json":
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter("%(message)s"))
    else:
        handler = RichHandler(
            console=Console(file=sys.stderr),
            show_time=False,
            show_level=False,
            show_path=False,
            rich_tracebacks=True,
        )
    handler.setLevel(log_level)

    logging.basicConfig(level=log_level, handlers=[handler], force=True)

    # starknet-py and aiohttp are chatty at INFO
    for noisy in ("uvicorn", "aiohttp", "starknet_py"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

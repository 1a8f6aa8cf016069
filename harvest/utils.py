from __future__ import annotations

import logging
from typing import Optional

import structlog

logger = structlog.get_logger(__name__)


async def configure_logging_async(log_file: Optional[str], level: str = "INFO") -> None:
    """
    Configure structlog with a JSON renderer to the console and, when given, a log file.
    """
    from pythonjsonlogger import jsonlogger

    log_level = getattr(logging, (level or "INFO").upper(), logging.INFO)
    logger_ = logging.getLogger()
    logger_.setLevel(log_level)

    formatter = jsonlogger.JsonFormatter("%(asctime)s %(levelname)s %(name)s %(message)s")

    # Console
    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    handlers: list[logging.Handler] = [console_handler]

    # File
    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    logger_.handlers = handlers

    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            structlog.stdlib.render_to_log_kwargs,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
    )


def profile_label(item: dict) -> str:
    return str(item.get("linkedinUrl") or item.get("publicIdentifier") or item.get("id") or "")

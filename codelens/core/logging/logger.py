"""Structured logging: terminal renderer + JSON lines in the log file"""

import structlog
import logging
import sys
from pathlib import Path
from typing import Optional

DEFAULT_LOG_FILE = "logs/codelens.log"

NOISY_LOGGERS = ["httpx", "httpcore", "openai", "asyncio", "urllib3"]

# Applied to structlog events and to foreign stdlib records alike
SHARED_PROCESSORS = [
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_logger_name,
    structlog.stdlib.add_log_level,
    structlog.processors.TimeStamper(fmt="iso"),
]


def _level(name: str, fallback: int) -> int:
    return getattr(logging, name.upper(), fallback)


def setup_logging(
    mode: str = "production",
    file_level: str = "DEBUG",
    log_file: str = DEFAULT_LOG_FILE,
    console_level: Optional[str] = None
):
    """
    Setup dual logging:
    - Terminal: ConsoleRenderer (ERROR+ in production, DEBUG+ in dev)
    - File: one JSON object per line (DEBUG+), request context included

    Context bound with structlog.contextvars (e.g. batch_id) is merged
    into every line emitted from the same task.
    """
    Path(log_file).parent.mkdir(parents=True, exist_ok=True)

    development = mode == "development"
    if console_level is None:
        console_level = "DEBUG" if development else "ERROR"

    # ===== FILE HANDLER =====
    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(_level(file_level, logging.DEBUG))
    file_handler.setFormatter(structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        foreign_pre_chain=SHARED_PROCESSORS,
    ))

    # ===== CONSOLE HANDLER =====
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(_level(console_level, logging.ERROR))
    console_handler.setFormatter(structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.dev.ConsoleRenderer(colors=development),
        ],
        foreign_pre_chain=SHARED_PROCESSORS,
    ))

    # ===== ROOT LOGGER =====
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.handlers.clear()
    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)

    # ===== STRUCTLOG =====
    structlog.configure(
        processors=[
            *SHARED_PROCESSORS,
            structlog.processors.StackInfoRenderer(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.DEBUG if development else logging.INFO
        ),
        cache_logger_on_first_use=True,
    )

    for logger_name in NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(logging.ERROR)

    return root_logger


def setup_production_logging(log_file: str = DEFAULT_LOG_FILE):
    """Production mode - quiet terminal, full JSON log file"""
    return setup_logging(mode="production", log_file=log_file)


def setup_dev_logging(log_file: str = DEFAULT_LOG_FILE):
    """Development mode - verbose terminal"""
    return setup_logging(mode="development", log_file=log_file)

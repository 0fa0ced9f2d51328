"""
Logging Configuration
Structured logging with loguru; records carry the claim they concern
Source: https://github.com/Delgan/loguru
"""

import sys
from pathlib import Path

from loguru import logger

# Shown for records not bound to a claim
NO_CLAIM = "-"

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<magenta>claim={extra[claim_id]}</magenta> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)
FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | claim={extra[claim_id]} | "
    "{name}:{function}:{line} - {message}"
)


def setup_logging(
    level: str = "INFO",
    log_file: str | None = None,
    json_logs: bool = False,
) -> None:
    """
    Configure pipeline logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional rotating log file
        json_logs: Serialize records as JSON, bound claim id included
    """
    logger.remove()
    logger.configure(extra={"claim_id": NO_CLAIM})

    if json_logs:
        logger.add(sys.stderr, format="{message}", level=level, serialize=True)
    else:
        logger.add(sys.stderr, format=CONSOLE_FORMAT, level=level, colorize=True)

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_file,
            rotation="100 MB",
            retention="30 days",
            compression="zip",
            format=FILE_FORMAT,
            level=level,
            serialize=json_logs,
        )

    get_logger(__name__).info(f"Logging configured: level={level}, json_logs={json_logs}")


def setup_logging_from_settings(settings=None) -> None:  # type: ignore[no-untyped-def]
    """Configure logging from ``ClaimflowSettings``."""
    from claimflow.core.config import get_settings

    settings = settings or get_settings()
    setup_logging(
        level=settings.LOG_LEVEL,
        log_file=settings.LOG_FILE,
        json_logs=settings.LOG_JSON,
    )


def get_logger(name: str = __name__, claim_id: str | None = None):  # type: ignore[no-untyped-def]
    """
    Get a logger, optionally bound to a claim.

    Example:
        >>> log = get_logger(__name__, claim_id="CLM-1")
        >>> log.info("Claim received")
    """
    return logger.bind(name=name, claim_id=claim_id or NO_CLAIM)

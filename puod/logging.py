import logging
import sys
from typing import Optional

DEFAULT_LOG_LEVEL = logging.INFO
DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

LOG_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}

# Modules that log every remote request; kept at WARNING unless verbose
TECHNICAL_MODULES = [
    "puod.connectors.airflow.connector",
    "puod.connectors.databricks.connector",
    "puod.connectors.glue.connector",
    "puod.connectors.warehouse.connector",
    "puod.query.schema_cache",
]


def get_logger(name: str) -> logging.Logger:
    """Return a logger with the specified name.

    Args:
        name: The name for the logger, typically __name__

    Returns:
        Logger instance
    """
    logger = logging.getLogger(name)

    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter(DEFAULT_FORMAT)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

        # Don't propagate to root logger to avoid duplicate logging
        logger.propagate = False

    return logger


def configure_logging(
    verbose: bool = False,
    quiet: bool = False,
    level: Optional[str] = None,
) -> None:
    """Configure logging settings based on command line flags.

    Args:
        verbose: Whether to enable verbose mode (shows all debug logs)
        quiet: Whether to enable quiet mode (only shows warnings and errors)
        level: Explicit level name from settings, used when no flag is given
    """
    if quiet:
        root_level = logging.WARNING
    elif verbose:
        root_level = logging.DEBUG
    elif level:
        root_level = LOG_LEVELS.get(level.lower(), DEFAULT_LOG_LEVEL)
    else:
        root_level = DEFAULT_LOG_LEVEL

    root_logger = logging.getLogger()
    root_logger.setLevel(root_level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    formatter = logging.Formatter(DEFAULT_FORMAT)
    handler.setFormatter(formatter)
    root_logger.addHandler(handler)

    for module_name in TECHNICAL_MODULES:
        module_logger = logging.getLogger(module_name)

        if verbose:
            module_logger.setLevel(logging.DEBUG)
        else:
            module_logger.setLevel(logging.WARNING)

        if not module_logger.handlers:
            module_logger.addHandler(handler)
            module_logger.propagate = False


def suppress_third_party_loggers():
    """Suppress noisy third-party loggers."""
    noisy_loggers = [
        "boto3",
        "botocore",
        "urllib3",
        "s3transfer",
        "sqlalchemy.engine",
        "requests",
    ]

    for logger_name in noisy_loggers:
        logging.getLogger(logger_name).setLevel(logging.WARNING)


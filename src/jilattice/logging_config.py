"""
Logging Configuration
Sets up the 'jilattice' logger shared by the CLI and GUI hosts.

Lattices are generated on worker threads, so every line carries the thread
name next to the module name.
"""
import logging
import sys
from typing import Dict, Optional, Union

# Names accepted by `--log-level`
LOG_LEVELS: Dict[str, int] = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
}

LOG_FORMAT = '%(asctime)s - %(threadName)s - %(name)s - %(levelname)s - %(message)s'


def resolve_level(level: Union[int, str]) -> int:
    """Accept a numeric level or one of the LOG_LEVELS names (case-insensitive)."""
    if isinstance(level, int):
        return level
    try:
        return LOG_LEVELS[level.upper()]
    except KeyError:
        raise ValueError(f"Unknown log level '{level}', expected one of {', '.join(LOG_LEVELS)}") from None


def setup_logging(level: Union[int, str] = logging.INFO, log_file: Optional[str] = None) -> None:
    """
    Configures the logger for the 'jilattice' namespace.

    Args:
        level: Logging level, numeric or by name ("DEBUG", "INFO", ...)
        log_file: Optional path to save logs to a file.
    """
    level = resolve_level(level)
    logger = logging.getLogger("jilattice")
    logger.setLevel(level)

    # A host app and the CLI may both call this; keep a single set of handlers
    if logger.hasHandlers():
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()

    formatter = logging.Formatter(LOG_FORMAT, datefmt='%H:%M:%S')

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, mode='w', encoding='utf-8')
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.debug(f"Logging initialized at {logging.getLevelName(level)}"
                 + (f", writing to '{log_file}'" if log_file else ""))

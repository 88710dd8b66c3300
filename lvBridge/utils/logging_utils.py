"""
Logging utilities for the lvBridge sync engine
"""

import logging
from pathlib import Path
from typing import Optional, Union, Iterable

LOGGER_NAME = 'lvBridge'
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
MASK = '********'


class SecretFilter(logging.Filter):
    """Masks credentials (passwords, device tokens, API secrets) in log records"""

    def __init__(self, secrets: Iterable[Optional[str]] = ()):
        super().__init__()
        self.secrets = set()
        self.add(*secrets)

    def add(self, *secrets: Optional[str]):
        # Very short values would mask unrelated text
        self.secrets.update(s for s in secrets if s and len(s) >= 4)

    def filter(self, record: logging.LogRecord) -> bool:
        if not self.secrets:
            return True
        message = record.getMessage()
        masked = message
        for secret in self.secrets:
            masked = masked.replace(secret, MASK)
        if masked != message:
            record.msg = masked
            record.args = None
        return True


def resolve_level(level: Union[int, str, None], default: int = logging.INFO) -> int:
    """
    Turn a level name such as "debug" (or a number) into a logging level

    Unknown names fall back to default.
    """
    if level is None or level == '':
        return default
    if isinstance(level, int):
        return level
    value = logging.getLevelName(str(level).strip().upper())
    return value if isinstance(value, int) else default


def setup_logger(name: str = LOGGER_NAME,
                level: Union[int, str] = logging.INFO,
                log_file: Optional[Path] = None,
                console_output: bool = True) -> logging.Logger:
    """
    Set up a logger with file and console handlers

    Every handler carries a SecretFilter; register credentials with
    mask_secrets() once they are known.

    Args:
        name: Logger name
        level: Logging level, or its name
        log_file: Path to log file (optional)
        console_output: Whether to output to console

    Returns:
        Configured logger
    """
    level = resolve_level(level)
    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Handlers from an earlier setup would duplicate every line
    logger.handlers.clear()

    formatter = logging.Formatter(LOG_FORMAT)
    secret_filter = _secret_filter(name)

    handlers = []
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))
    if console_output:
        handlers.append(logging.StreamHandler())

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        handler.addFilter(secret_filter)
        logger.addHandler(handler)

    return logger


_filters = {}


def _secret_filter(name: str) -> SecretFilter:
    if name not in _filters:
        _filters[name] = SecretFilter()
    return _filters[name]


def mask_secrets(*secrets: Optional[str], name: str = LOGGER_NAME):
    """Keep the given values out of everything logged through setup_logger() handlers"""
    _secret_filter(name).add(*secrets)


def get_logger(name: str = LOGGER_NAME) -> logging.Logger:
    """Get a logger instance"""
    return logging.getLogger(name)


def set_log_level(level: Union[int, str]):
    """Set the log level for all lvBridge loggers"""
    level = resolve_level(level)
    logging.getLogger(LOGGER_NAME).setLevel(level)
    for handler in logging.getLogger(LOGGER_NAME).handlers:
        handler.setLevel(level)

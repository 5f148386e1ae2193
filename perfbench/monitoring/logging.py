"""
Structured Logging Configuration for the Benchmarking Engine

Configures structlog for the load generator, resource monitor, analyzer and
report generators. Every log entry is a key-value event; the active benchmark
session id is attached automatically so that concurrent workers, the sampler
thread and analyzer calls can be correlated in one log stream.

Key Features:
- structlog processor chain with ISO timestamps and logger names
- JSON or console rendering selected by LOG_FORMAT
- Optional rotating file handler selected by LOG_FILE_PATH
- Session id propagation through a context variable
"""

import logging
import logging.config
import os
from contextlib import contextmanager
from contextvars import ContextVar
from pathlib import Path
from typing import Callable, Iterator, Optional

import structlog


session_id_context: ContextVar[Optional[str]] = ContextVar('session_id', default=None)


class LoggingConfig:
    """Environment-driven logging configuration."""

    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO').upper()
    LOG_FORMAT = os.getenv('LOG_FORMAT', 'console')  # json, console
    LOG_FILE_PATH = os.getenv('LOG_FILE_PATH', '')
    LOG_FILE_MAX_SIZE = int(os.getenv('LOG_FILE_MAX_SIZE', '50')) * 1024 * 1024
    LOG_FILE_BACKUP_COUNT = int(os.getenv('LOG_FILE_BACKUP_COUNT', '3'))
    COLORED_CONSOLE_OUTPUT = os.getenv('COLORED_CONSOLE_OUTPUT', 'false').lower() == 'true'
    APPLICATION_NAME = os.getenv('APPLICATION_NAME', 'perfbench')


def create_session_processor() -> Callable:
    """
    Create structlog processor attaching the active benchmark session id.

    Returns:
        Processor function for structlog
    """
    def processor(logger, method_name, event_dict):
        session_id = session_id_context.get()
        if session_id and 'session_id' not in event_dict:
            event_dict['session_id'] = session_id
        return event_dict

    return processor


@contextmanager
def bind_session(session_id: str) -> Iterator[str]:
    """Bind a session id to log entries emitted inside the block."""
    token = session_id_context.set(session_id)
    try:
        yield session_id
    finally:
        session_id_context.reset(token)


def setup_structured_logging(
    level: Optional[str] = None,
    log_format: Optional[str] = None,
    log_file: Optional[str] = None
) -> structlog.stdlib.BoundLogger:
    """
    Setup structured logging for CLI and library use.

    Args:
        level: Log level override, defaults to LOG_LEVEL
        log_format: 'json' or 'console', defaults to LOG_FORMAT
        log_file: Optional rotating log file path, defaults to LOG_FILE_PATH

    Returns:
        Configured structured logger instance
    """
    level = (level or LoggingConfig.LOG_LEVEL).upper()
    log_format = log_format or LoggingConfig.LOG_FORMAT
    log_file = log_file if log_file is not None else LoggingConfig.LOG_FILE_PATH

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="ISO"),
        create_session_processor(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if log_format == 'json':
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=LoggingConfig.COLORED_CONSOLE_OUTPUT))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )

    logging_config = {
        'version': 1,
        'disable_existing_loggers': False,
        'formatters': {
            'plain': {'format': '%(message)s'},
        },
        'handlers': {
            'console': {
                'class': 'logging.StreamHandler',
                'formatter': 'plain',
                'stream': 'ext://sys.stderr',
            },
        },
        'loggers': {
            '': {
                'handlers': ['console'],
                'level': level,
                'propagate': False,
            },
        },
    }

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        logging_config['handlers']['file'] = {
            'class': 'logging.handlers.RotatingFileHandler',
            'formatter': 'plain',
            'filename': log_file,
            'maxBytes': LoggingConfig.LOG_FILE_MAX_SIZE,
            'backupCount': LoggingConfig.LOG_FILE_BACKUP_COUNT,
            'encoding': 'utf-8',
        }
        logging_config['loggers']['']['handlers'].append('file')

    logging.config.dictConfig(logging_config)

    logger = structlog.get_logger(LoggingConfig.APPLICATION_NAME)
    logger.debug(
        "Structured logging initialized",
        log_level=level,
        log_format=log_format,
        file_logging=bool(log_file)
    )
    return logger


def get_logger(name: Optional[str] = None) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance with optional name.

    Args:
        name: Logger name, defaults to application name

    Returns:
        Configured structured logger
    """
    return structlog.get_logger(name or LoggingConfig.APPLICATION_NAME)

import logging
import logging.config
import sys
from typing import Any, Dict, List

import sentry_sdk
import structlog

from app.core.config import Settings, settings


def _library_levels(config: Settings) -> Dict[str, str]:
    return {
        "uvicorn": config.UVICORN_LOG_LEVEL,
        "uvicorn.error": config.UVICORN_LOG_LEVEL,
        "uvicorn.access": config.UVICORN_ACCESS_LOG_LEVEL,
        "pymongo": config.PYMONGO_LOG_LEVEL,
    }


def build_logging_config(
    config: Settings, shared_processors: List[structlog.types.Processor]
) -> Dict[str, Any]:
    """dictConfig payload: one stdout handler, rendered by structlog."""
    renderer: structlog.types.Processor = (
        structlog.dev.ConsoleRenderer()
        if config.ENVIRONMENT in ["local", "dev"]
        else structlog.processors.JSONRenderer()
    )
    loggers: Dict[str, Any] = {
        "": {"handlers": ["default"], "level": config.LOG_LEVEL, "propagate": True},
    }
    for name, level in _library_levels(config).items():
        loggers[name] = {"handlers": ["default"], "level": level.upper(), "propagate": False}

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "()": structlog.stdlib.ProcessorFormatter,
                "processor": renderer,
                "foreign_pre_chain": shared_processors,
            },
        },
        "handlers": {
            "default": {
                "level": config.LOG_LEVEL,
                "class": "logging.StreamHandler",
                "stream": sys.stdout,
                "formatter": "default",
            },
        },
        "loggers": loggers,
    }


def setup_logging(config: Settings = settings) -> None:
    """
    Route structlog and stdlib records (uvicorn, pymongo) through one formatter.
    Console output for local/dev, JSON lines elsewhere. Sentry starts only with a DSN.
    """
    shared_processors: List[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]

    if config.SENTRY_DSN:
        sentry_sdk.init(
            dsn=config.SENTRY_DSN,
            environment=config.ENVIRONMENT,
            traces_sample_rate=1.0 if config.ENVIRONMENT == "local" else 0.1,
        )

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.config.dictConfig(build_logging_config(config, shared_processors))

"""Structured logging configuration using dictConfig."""
import logging
import logging.config
import sys
from typing import Dict, Any, Optional

from .settings import Settings, get_settings

# Third-party loggers kept quiet unless something goes wrong
QUIET_LOGGERS = ("uvicorn.access", "httpx", "httpcore")


def _logger_entry(level: str) -> Dict[str, Any]:
    return {"level": level, "handlers": ["console"], "propagate": False}


def get_logging_config(service_name: Optional[str] = None, settings: Optional[Settings] = None) -> Dict[str, Any]:
    """
    Build the dictConfig for one digestbot process.

    JSON lines in production, readable console lines elsewhere. The
    service name ("api", "pipeline") is stamped into every record format.
    SQL statements are logged only when ``db_echo`` is on.
    """
    settings = settings or get_settings()
    production = settings.environment == "production"
    tag = f" {service_name}" if service_name else ""
    console_tag = f" [{service_name}]" if service_name else ""

    loggers = {
        "digestbot": _logger_entry(settings.log_level),
        "uvicorn": _logger_entry("INFO"),
        "sqlalchemy.engine": _logger_entry("INFO" if settings.db_echo else "WARNING"),
    }
    for name in QUIET_LOGGERS:
        loggers[name] = _logger_entry("WARNING")

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {
                "format": f"%(asctime)s %(levelname)s{tag} %(name)s %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
                "class": "pythonjsonlogger.jsonlogger.JsonFormatter"
            },
            "console": {
                "format": f"%(asctime)s{console_tag} [%(levelname)s] %(name)s: %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S"
            }
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": settings.log_level,
                "formatter": "json" if production else "console",
                "stream": sys.stdout
            }
        },
        "loggers": loggers,
        "root": {
            "level": settings.log_level,
            "handlers": ["console"]
        }
    }


def setup_logging(service_name: Optional[str] = None) -> None:
    """Configure structured logging using dictConfig."""
    logging.config.dictConfig(get_logging_config(service_name))


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)

"""
Custom logging configuration to suppress health check logs
"""

import logging
import logging.config
from typing import Any, Dict


class HealthCheckFilter(logging.Filter):
    """Filter to suppress health check endpoint logs."""

    def filter(self, record: logging.LogRecord) -> bool:
        """Filter out health check requests from uvicorn access logs."""
        if record.name == "uvicorn.access":
            message = record.getMessage()
            if "/healthz" in message and "GET" in message:
                return False
        return True


def get_logging_config(level: str = "INFO") -> Dict[str, Any]:
    """Get logging configuration with health check suppression."""
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {
            "health_check_filter": {
                "()": HealthCheckFilter
            }
        },
        "formatters": {
            "default": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
            },
            "access": {
                "format": "%(message)s"
            }
        },
        "handlers": {
            "default": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "stream": "ext://sys.stdout"
            },
            "access": {
                "class": "logging.StreamHandler",
                "formatter": "access",
                "stream": "ext://sys.stdout",
                "filters": ["health_check_filter"]
            }
        },
        "loggers": {
            "uvicorn": {
                "handlers": ["default"],
                "level": level,
                "propagate": False
            },
            "uvicorn.error": {
                "handlers": ["default"],
                "level": level,
                "propagate": False
            },
            "uvicorn.access": {
                "handlers": ["access"],
                "level": level,
                "propagate": False
            },
            "kubedeploy": {
                "handlers": ["default"],
                "level": level,
                "propagate": False
            },
            "sse_starlette": {
                "handlers": ["default"],
                "level": "WARNING",
                "propagate": False
            }
        },
        "root": {
            "level": level,
            "handlers": ["default"]
        }
    }


def configure_logging(level: str = "INFO") -> None:
    """Apply the logging configuration to the running process."""
    logging.config.dictConfig(get_logging_config(level))

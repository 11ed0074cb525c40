"""JSON logging for the API process and its background tasks.

Records go to stdout as one JSON object per line, with ``severity``,
``timestamp`` and ``logger`` keys. Whatever a module passes through ``extra=``
(organization, channel, thread, candidate ids) becomes a top-level key, which
is what makes a failed background task traceable after Slack was acked.
"""

import logging.config

SERVICE_NAME = "decision-hub"

# Chatty at INFO: one line per HTTP request / SQL statement.
NOISY_LOGGERS = ("httpx", "httpcore", "slack_sdk", "sqlalchemy.engine", "openai", "anthropic")


def build_logging_config(level: str = "INFO") -> dict:
    level = level.upper()
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {
                "()": "pythonjsonlogger.json.JsonFormatter",
                "format": "%(asctime)s %(levelname)s %(name)s %(funcName)s %(message)s",
                "rename_fields": {
                    "levelname": "severity",
                    "asctime": "timestamp",
                    "name": "logger",
                },
                "static_fields": {"service": SERVICE_NAME},
            },
        },
        "handlers": {
            "stdout": {
                "class": "logging.StreamHandler",
                "formatter": "json",
                "stream": "ext://sys.stdout",
            },
        },
        "loggers": {name: {"level": "WARNING"} for name in NOISY_LOGGERS if level != "DEBUG"},
        "root": {"level": level, "handlers": ["stdout"]},
    }


def configure_logging(level: str = "INFO") -> None:
    """Install the JSON handler on the root logger. Called once from the app lifespan."""
    logging.config.dictConfig(build_logging_config(level))

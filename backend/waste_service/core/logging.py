import logging
import logging.config
from typing import Any, Dict

from pythonjsonlogger import jsonlogger

from waste_service.middleware.request_id import current_request_id

PLAIN_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(request_id)s | %(message)s"
JSON_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s %(request_id)s"


class RequestIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = current_request_id()  # type: ignore[attr-defined]
        return True


def configure_logging(level: str = "INFO", json_output: bool = True) -> None:
    """Route every logger through one console handler.

    JSON lines are the default so log shippers can index the ``extra`` fields
    the services attach (schedule_id, report_id, ...). ``json_output=False``
    gives a readable line format for local runs.
    """
    logging_config: Dict[str, Any] = {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {
            "request_id": {
                "()": RequestIdFilter,
            }
        },
        "formatters": {
            "json": {
                "()": jsonlogger.JsonFormatter,
                "fmt": JSON_FORMAT,
            },
            "plain": {
                "format": PLAIN_FORMAT,
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "json" if json_output else "plain",
                "filters": ["request_id"],
            }
        },
        "loggers": {
            "sqlalchemy.engine": {"level": "WARNING"},
            "httpx": {"level": "WARNING"},
        },
        "root": {
            "level": level.upper(),
            "handlers": ["console"],
        },
    }
    logging.config.dictConfig(logging_config)

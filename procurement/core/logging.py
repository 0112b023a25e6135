import logging
import sys

from pythonjsonlogger import jsonlogger

from procurement.core.config import Settings

_NOISY = ("sqlalchemy.engine", "multipart", "passlib")


class _ServiceContextFilter(logging.Filter):
    """Stamps every record with the service name and environment."""

    def __init__(self, app_name: str, environment: str):
        super().__init__()
        self.app_name = app_name
        self.environment = environment

    def filter(self, record: logging.LogRecord) -> bool:
        record.service = self.app_name
        record.environment = getattr(record, "environment", self.environment)
        return True


def configure_logging(settings: Settings) -> None:
    """
    One JSON object per line on stdout.

    Keys given through ``extra=`` (ids, statuses, request_id) are emitted
    as top-level fields next to level/logger/message.
    """
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(_ServiceContextFilter(settings.app_name, settings.environment))
    handler.setFormatter(
        jsonlogger.JsonFormatter(
            "%(asctime)s %(levelname)s %(name)s %(service)s %(environment)s %(message)s",
            rename_fields={"levelname": "level", "name": "logger", "asctime": "ts"},
        )
    )

    root = logging.getLogger()
    root.setLevel(level)
    # replace, never stack, on repeated create_app() calls
    root.handlers = [handler]

    for name in ("uvicorn.access", "uvicorn.error"):
        logging.getLogger(name).setLevel(level)
    for name in _NOISY:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

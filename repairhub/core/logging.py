import logging
import sys
from contextvars import ContextVar
from typing import Optional

from pythonjsonlogger import jsonlogger
from repairhub.core.config import Settings

# set per request by RequestIdMiddleware; "-" outside a request
request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(request_id)s %(message)s"


class RequestContextFilter(logging.Filter):
    """
    Stamps every record with the current request id and the service identity,
    so lifecycle logs from the services can be joined to the HTTP request.
    """

    def __init__(self, service: str, environment: str):
        super().__init__()
        self.service = service
        self.environment = environment

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get() or "-"
        record.service = self.service
        record.environment = self.environment
        return True


def configure_logging(settings: Settings) -> None:
    """
    JSON logs to stdout, one handler on the root logger.

    Fields: time, level, logger, request_id, service, environment, message,
    plus anything passed through `extra=`.
    """
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    root = logging.getLogger()
    root.setLevel(level)

    # clear handlers if reloaded
    root.handlers = []

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(RequestContextFilter(settings.app_name, settings.environment))
    handler.setFormatter(
        jsonlogger.JsonFormatter(
            LOG_FORMAT,
            rename_fields={"levelname": "level", "name": "logger", "asctime": "time"},
        )
    )
    root.addHandler(handler)

    # uvicorn's own access log is replaced by the middleware's request line
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.error").setLevel(level)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

"""Structured JSON logging plus a plain Common Log Format access log."""

import logging
import sys
from contextvars import ContextVar

from pythonjsonlogger.json import JsonFormatter

from paysim.common.config import settings


request_id_ctx: ContextVar[str] = ContextVar("request_id", default="")


class ContextFilter(logging.Filter):
    """Inject service name and request identifier into every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.service_name = settings.service_name
        record.request_id = request_id_ctx.get()
        return True


def configure_logging() -> None:
    """Configure the root and access loggers once per process."""

    handler = logging.StreamHandler(sys.stdout)
    context_filter = ContextFilter()
    handler.addFilter(context_filter)
    handler.setFormatter(JsonFormatter("%(asctime)s %(levelname)s %(service_name)s %(request_id)s %(message)s"))

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(settings.log_level)
    root.addFilter(context_filter)

    # Access lines are already formatted; keep them out of the JSON stream.
    access_handler = logging.StreamHandler(sys.stdout)
    access_handler.setFormatter(logging.Formatter("%(message)s"))
    access_logger.handlers = [access_handler]
    access_logger.setLevel(logging.INFO)
    access_logger.propagate = False


logger = logging.getLogger("paysim")
access_logger = logging.getLogger("paysim.access")

"""Request-id logging context.

Every log record carries the id of the HTTP request that produced it, so
the lines of one booking attempt can be followed across modules::

    set_request_id("req-abc123")
    logger.info("Booking created")  # -> ... [req-abc123] Booking created
"""

import logging
import sys
from contextvars import ContextVar

_request_id: ContextVar[str] = ContextVar("request_id", default="-")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s [%(request_id)s] %(message)s"


def set_request_id(request_id: str):
    """Set the id for the current context; returns a token for ``reset_request_id``."""
    return _request_id.set(request_id)


def reset_request_id(token) -> None:
    _request_id.reset(token)


class RequestIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = _request_id.get()
        return True


def configure_logging(level: str = "INFO") -> None:
    root = logging.getLogger()
    handler = next(
        (h for h in root.handlers if any(isinstance(f, RequestIdFilter) for f in h.filters)),
        None,
    )
    if handler is None:
        handler = logging.StreamHandler(sys.stdout)
        handler.addFilter(RequestIdFilter())
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
    root.setLevel(level)

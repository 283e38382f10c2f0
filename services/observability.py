from __future__ import annotations

import logging
from contextvars import ContextVar


_request_id: ContextVar[str | None] = ContextVar("request_id", default=None)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def set_request_id(value: str | None) -> None:
    _request_id.set(value)


def get_request_id() -> str | None:
    return _request_id.get()


class RequestIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = get_request_id() or "-"
        return True


def configure_logging(level: str = "INFO") -> None:
    root = logging.getLogger("klinikpay")
    root.setLevel((level or "INFO").upper())
    if any(getattr(h, "_klinikpay", False) for h in root.handlers):
        return
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT + " request_id=%(request_id)s"))
    handler.addFilter(RequestIdFilter())
    handler._klinikpay = True  # type: ignore[attr-defined]
    root.addHandler(handler)

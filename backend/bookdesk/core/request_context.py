"""
Request correlation id.

The ASGI middleware sets the id for each HTTP request; log records, error
envelopes and internal-error responses read it from here.
"""

from __future__ import annotations

from contextvars import ContextVar, Token
import logging
from typing import Optional

from ulid import ULID

REQUEST_ID_HEADER = "X-Request-ID"
MAX_REQUEST_ID_LENGTH = 128

_current_request_id: ContextVar[Optional[str]] = ContextVar("bookdesk_request_id", default=None)


def new_request_id() -> str:
    return str(ULID())


def normalize_request_id(incoming: Optional[str]) -> str:
    """Reuse a caller-supplied id (trimmed and length-capped) or mint a new one."""
    value = (incoming or "").strip()[:MAX_REQUEST_ID_LENGTH]
    return value or new_request_id()


def set_request_id(request_id: Optional[str]) -> Token[Optional[str]]:
    return _current_request_id.set(request_id or None)


def reset_request_id(token: Token[Optional[str]]) -> None:
    _current_request_id.reset(token)


def get_request_id(default: Optional[str] = None) -> Optional[str]:
    return _current_request_id.get() or default


class RequestIdFilter(logging.Filter):
    """Stamp ``record.request_id`` so formats can always reference it."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, "request_id", None):
            record.request_id = get_request_id("-")
        return True


def install_request_id_filter(logger: Optional[logging.Logger] = None) -> None:
    """Add the filter once to every handler of ``logger`` (root by default)."""
    for handler in (logger or logging.getLogger()).handlers:
        if not any(isinstance(f, RequestIdFilter) for f in handler.filters):
            handler.addFilter(RequestIdFilter())

"""Request-scoped logging helpers for classification runs.

Every event carries the active request id, so a classification can be
followed from the HTTP middleware through the resolver chain and the
oracle call.
"""

from __future__ import annotations

import logging
import time
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Dict, Iterator, Optional

logger = logging.getLogger(__name__)

_request_id_ctx: ContextVar[Optional[str]] = ContextVar("request_id", default=None)


def new_request_id() -> str:
    """Generate a new request identifier and bind it to the current context."""

    value = str(uuid.uuid4())
    _request_id_ctx.set(value)
    return value


def bind_request_id(value: Optional[str]) -> ContextVar.Token | None:
    """Bind a request id for the current context and return the reset token."""

    if value is None:
        return None
    return _request_id_ctx.set(value)


def reset_request_id(token: Optional[ContextVar.Token]) -> None:
    if token is None:
        return
    _request_id_ctx.reset(token)


def current_request_id() -> Optional[str]:
    return _request_id_ctx.get()


def redact_secret(raw: Optional[str]) -> str:
    """Return a redacted representation of a key for safe logging."""

    if not raw:
        return "<missing>"
    if len(raw) <= 3:
        return "***"
    return f"{raw[:4]}***"


def log_event(message: str, **extra: object) -> None:
    """Log an event with the active request id attached as ``record.payload``."""

    payload = {"request_id": current_request_id(), **extra}
    logger.info(message, extra={"payload": payload})


@contextmanager
def timed_event(message: str, **extra: object) -> Iterator[Dict[str, object]]:
    """Log ``message`` once the block exits, with ``duration_ms`` and ``outcome``.

    The yielded dict collects fields learned inside the block.  Exceptions
    are logged as ``outcome="error"`` and re-raised.
    """

    fields: Dict[str, object] = dict(extra)
    started = time.perf_counter()
    try:
        yield fields
    except Exception as exc:
        fields["outcome"] = "error"
        fields["error"] = type(exc).__name__
        raise
    else:
        fields.setdefault("outcome", "ok")
    finally:
        fields["duration_ms"] = round((time.perf_counter() - started) * 1000, 2)
        log_event(message, **fields)

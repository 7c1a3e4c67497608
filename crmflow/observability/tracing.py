"""Trace ids for trigger invocations, propagated through structlog context."""

import uuid
from contextvars import ContextVar, Token
from typing import Any

import structlog

_trace_id: ContextVar[str] = ContextVar("trace_id", default="")


def new_trace_id() -> str:
    return uuid.uuid4().hex[:16]


def get_trace_id() -> str:
    """Current trace ID, or "" outside a TraceContext."""
    return _trace_id.get()


class TraceContext:
    """Scope a trace id, plus any extra log context, to one unit of work.

    A nested context without an explicit id joins the enclosing trace, so an
    event keeps one id from dequeue through its last action. Extra keyword
    bindings (``trigger=...``, ``event_id=...``) appear on every log entry
    inside the block and are removed on exit.
    """

    def __init__(self, trace_id: str | None = None, **bindings: Any):
        self._trace_id = trace_id or get_trace_id() or new_trace_id()
        self._bindings = bindings
        self._token: Token[str] | None = None
        self._log_tokens: dict[str, Any] = {}

    @property
    def trace_id(self) -> str:
        return self._trace_id

    def __enter__(self) -> str:
        self._token = _trace_id.set(self._trace_id)
        self._log_tokens = dict(
            structlog.contextvars.bind_contextvars(trace_id=self._trace_id, **self._bindings)
        )
        return self._trace_id

    def __exit__(self, *args: Any) -> None:
        structlog.contextvars.reset_contextvars(**self._log_tokens)
        if self._token is not None:
            _trace_id.reset(self._token)
            self._token = None

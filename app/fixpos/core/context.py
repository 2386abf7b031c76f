from __future__ import annotations

from contextvars import ContextVar

_trace_id: ContextVar[str] = ContextVar("trace_id", default="")


def bind_trace_id(trace_id: str) -> object:
    return _trace_id.set(trace_id)


def reset_trace_id(token: object) -> None:
    _trace_id.reset(token)


def current_trace_id() -> str:
    return _trace_id.get()

"""Per-task logging context carried through ContextVars.

HTTP requests bind ``request_id`` and ``user_id``; background batch runs bind
``batch_id``. Every bound key is copied onto log records by
``RequestContextFilter`` so the JSON formatter can emit it.
"""

from __future__ import annotations

import logging
from contextvars import ContextVar, Token
from typing import Any

import sentry_sdk

_log_context: ContextVar[dict[str, Any] | None] = ContextVar("log_context", default=None)

_ALWAYS_PRESENT = ("request_id", "user_id")


class RequestContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        context = _log_context.get() or {}
        for key in _ALWAYS_PRESENT:
            setattr(record, key, context.get(key))
        for key, value in context.items():
            if key not in _ALWAYS_PRESENT:
                setattr(record, key, value)
        return True


def bind_log_context(**fields: Any) -> Token:
    """Layer ``fields`` over the current context; undo with ``reset_log_context``."""
    merged = dict(_log_context.get() or {})
    merged.update(fields)
    return _log_context.set(merged)


def reset_log_context(token: Token) -> None:
    _log_context.reset(token)


def current_log_context() -> dict[str, Any]:
    return dict(_log_context.get() or {})


def push_request_context(request_id: str) -> Token:
    return bind_log_context(request_id=request_id, user_id=None)


def set_user_context(user_id: str | None) -> None:
    context = _log_context.get()
    if context is not None:
        context["user_id"] = user_id
    else:
        _log_context.set({"request_id": None, "user_id": user_id})
    sentry_sdk.set_user({"id": user_id} if user_id else None)


__all__ = [
    "RequestContextFilter",
    "bind_log_context",
    "reset_log_context",
    "current_log_context",
    "push_request_context",
    "set_user_context",
]

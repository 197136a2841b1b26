from __future__ import annotations

import logging
import time
import uuid

import sentry_sdk
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from ..logging_context import push_request_context, reset_log_context

logger = logging.getLogger("academy.access")

REQUEST_ID_HEADER = "X-Request-ID"


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Tag each request with an id, echo it back and log one access line."""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        token = push_request_context(request_id)
        request.state.request_id = request_id
        sentry_sdk.get_current_scope().set_tag("request_id", request_id)
        started = time.perf_counter()
        try:
            response: Response = await call_next(request)
            logger.info(
                "%s %s -> %s",
                request.method,
                request.url.path,
                response.status_code,
                extra={"duration_ms": round((time.perf_counter() - started) * 1000, 1)},
            )
        finally:
            reset_log_context(token)
        response.headers.setdefault(REQUEST_ID_HEADER, request_id)
        return response

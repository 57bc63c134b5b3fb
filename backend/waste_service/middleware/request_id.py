from __future__ import annotations

import re
import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"

# Ids echoed from callers end up in log lines; keep them short and printable
_ACCEPTED_ID = re.compile(r"^[A-Za-z0-9._:-]{1,64}$")

request_id_ctx_var: ContextVar[str | None] = ContextVar("request_id", default=None)


def current_request_id() -> str:
    return request_id_ctx_var.get() or "-"


def _incoming_id(request: Request) -> str:
    supplied = request.headers.get(REQUEST_ID_HEADER, "")
    return supplied if _ACCEPTED_ID.match(supplied) else uuid.uuid4().hex


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Tag each HTTP request with an id for log correlation and echo it back."""

    async def dispatch(self, request: Request, call_next):
        request_id = _incoming_id(request)
        request.state.request_id = request_id
        token = request_id_ctx_var.set(request_id)
        try:
            response: Response = await call_next(request)
        finally:
            request_id_ctx_var.reset(token)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response

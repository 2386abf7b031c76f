import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from app.fixpos.core.context import bind_trace_id, reset_trace_id


class TraceIdMiddleware(BaseHTTPMiddleware):
    """Accepts or mints an ``X-Trace-ID`` and exposes it to service-layer logs."""

    async def dispatch(self, request: Request, call_next):
        trace_id = request.headers.get("X-Trace-ID") or str(uuid.uuid4())
        request.state.trace_id = trace_id
        token = bind_trace_id(trace_id)
        try:
            response: Response = await call_next(request)
        finally:
            reset_trace_id(token)
        response.headers["X-Trace-ID"] = trace_id
        return response

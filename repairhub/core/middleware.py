import logging
import time
import uuid
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from repairhub.core.logging import request_id_var

logger = logging.getLogger("repairhub.http")


class RequestIdMiddleware(BaseHTTPMiddleware):
    """
    Accepts the caller's request id (or mints one), exposes it on
    request.state and to every log record, echoes it in the response,
    and writes one access line per request.
    """

    def __init__(self, app, header_name: str = "X-Request-Id"):
        super().__init__(app)
        self.header_name = header_name

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        rid = request.headers.get(self.header_name) or str(uuid.uuid4())
        request.state.request_id = rid
        token = request_id_var.set(rid)
        started = time.perf_counter()
        try:
            try:
                response = await call_next(request)
            except Exception:
                logger.exception("%s %s failed", request.method, request.url.path)
                raise

            principal = getattr(request.state, "principal", None)
            logger.info(
                "%s %s -> %d",
                request.method,
                request.url.path,
                response.status_code,
                extra={
                    "status_code": response.status_code,
                    "duration_ms": round((time.perf_counter() - started) * 1000, 1),
                    "user_id": str(principal.user_id) if principal else None,
                },
            )
            response.headers[self.header_name] = rid
            return response
        finally:
            request_id_var.reset(token)

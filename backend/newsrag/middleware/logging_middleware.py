"""Request/response logging middleware."""
import time

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = structlog.get_logger()

CHAT_PATH_PREFIX = "/api/chat/"


def _session_id(request: Request) -> str | None:
    """Chat session a request addresses by path, if any."""
    path = request.url.path
    if path.startswith(CHAT_PATH_PREFIX):
        return path[len(CHAT_PATH_PREFIX):].strip("/") or None
    return None


class LoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        start = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = round((time.perf_counter() - start) * 1000, 2)

        log = logger.warning if response.status_code >= 500 else logger.info
        log(
            "request",
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            duration_ms=elapsed_ms,
            session_id=_session_id(request),
            client=request.client.host if request.client else None,
        )
        return response

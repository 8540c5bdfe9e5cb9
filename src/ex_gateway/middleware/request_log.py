"""Access log for the trading API on the ``ex.request`` logger.

Tags every request with ``req_<12 hex>``. The id is kept on request.state so
the ApiResponse envelope (including the error envelope) can echo it, and is
returned in the X-Request-ID header so a client report can be matched to the
log line and to the trade or funding request it touched.

Server errors log at WARNING so they stand out from routine 4xx rejections:

    INFO [POST] /api/v1/trades -> 201 (18ms) req_a1b2c3d4e5f6
    WARNING [POST] /api/v1/admin/deposits/5/status -> 500 (7ms) req_0f1e2d3c4b5a
"""

import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("ex.request")

REQUEST_ID_HEADER = "X-Request-ID"


class RequestLogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = f"req_{uuid.uuid4().hex[:12]}"
        request.state.request_id = request_id

        start = time.perf_counter()
        try:
            response: Response = await call_next(request)
        except Exception:
            logger.exception(
                "[%s] %s -> unhandled error (%.0fms) %s",
                request.method,
                request.url.path,
                (time.perf_counter() - start) * 1000,
                request_id,
            )
            raise
        elapsed_ms = (time.perf_counter() - start) * 1000

        logger.log(
            logging.WARNING if response.status_code >= 500 else logging.INFO,
            "[%s] %s -> %d (%.0fms) %s",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
            request_id,
        )
        response.headers[REQUEST_ID_HEADER] = request_id
        return response

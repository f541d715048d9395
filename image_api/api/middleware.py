import time

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from image_api.logging.logger import Log

SLOW_THRESHOLD_MS = 500


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs method, path, client, status and duration of every request.

    Requests slower than SLOW_THRESHOLD_MS are logged at WARNING.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        start = time.perf_counter()

        response = await call_next(request)

        elapsed_ms = (time.perf_counter() - start) * 1000
        client_ip = request.client.host if request.client else "unknown"
        line = (
            f"{request.method} {request.url.path} | {client_ip} | "
            f"{response.status_code} | {elapsed_ms:.0f}ms"
        )
        if elapsed_ms > SLOW_THRESHOLD_MS:
            Log.warning(f"{line} (slow)")
        else:
            Log.info(line)

        return response

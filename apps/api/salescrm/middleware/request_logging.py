from __future__ import annotations

import logging
import time
from typing import Any

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from salescrm.core.auth import peek_token_subject
from salescrm.metrics import observe_http_request, resolve_http_path_label


logger = logging.getLogger("salescrm.request")


def _observe(request: Request, status_code: int, started: float) -> dict[str, Any]:
    duration_ms = round((time.perf_counter() - started) * 1000, 2)
    # the route template is only on the scope after routing ran
    path = resolve_http_path_label(request)
    observe_http_request(method=request.method, path=path, status=status_code, duration=duration_ms / 1000)
    return {
        "method": request.method,
        "path": path,
        "status_code": status_code,
        "duration_ms": duration_ms,
        "actor_id": peek_token_subject(request),
    }


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):  # type: ignore[no-untyped-def]
        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            logger.error("http.error", exc_info=True, extra=_observe(request, 500, started))
            raise

        level = logging.WARNING if response.status_code >= 500 else logging.INFO
        logger.log(level, "http.request", extra=_observe(request, response.status_code, started))
        return response

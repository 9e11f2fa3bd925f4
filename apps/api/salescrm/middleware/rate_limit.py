from __future__ import annotations

import logging
import math
import threading
import time
from dataclasses import dataclass

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from salescrm.api.errors import error_response
from salescrm.core.auth import peek_token_subject
from salescrm.core.config import get_settings
from salescrm.metrics import observe_rate_limited


API_PREFIX = "/api/v1"
MUTATING_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})
WINDOW_SECONDS = 60.0

logger = logging.getLogger("salescrm.rate_limit")


@dataclass
class MutationBucket:
    capacity: int
    tokens: float
    updated_at: float

    def consume(self, now: float) -> int:
        """Takes one token. Returns 0 when granted, otherwise the seconds until a token refills."""
        refill_per_second = self.capacity / WINDOW_SECONDS
        elapsed = max(0.0, now - self.updated_at)
        self.tokens = min(float(self.capacity), self.tokens + elapsed * refill_per_second)
        self.updated_at = now
        if self.tokens >= 1.0:
            self.tokens -= 1.0
            return 0
        return max(1, math.ceil((1.0 - self.tokens) / refill_per_second))


_buckets: dict[tuple[str, str], MutationBucket] = {}
_buckets_lock = threading.Lock()


def consume_mutation_token(caller: str, route_group: str, capacity: int) -> int:
    if capacity <= 0:
        return int(WINDOW_SECONDS)

    now = time.monotonic()
    key = (caller, route_group)
    with _buckets_lock:
        bucket = _buckets.get(key)
        # a changed limit starts a fresh bucket
        if bucket is None or bucket.capacity != capacity:
            bucket = MutationBucket(capacity=capacity, tokens=float(capacity), updated_at=now)
            _buckets[key] = bucket
        return bucket.consume(now)


def reset_rate_limiter() -> None:
    with _buckets_lock:
        _buckets.clear()


def route_group_for(path: str) -> str:
    segments = [segment for segment in path[len(API_PREFIX) :].split("/") if segment]
    return segments[0] if segments else "api"


def _caller_key(request: Request) -> str:
    subject = peek_token_subject(request)
    if subject is not None:
        return subject
    # signup and login are keyed by client address
    host = request.client.host if request.client else "unknown"
    return f"anonymous:{host}"


class MutationRateLimitMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):  # type: ignore[no-untyped-def]
        settings = get_settings()
        path = request.url.path
        if (
            settings.rate_limit_disabled
            or request.method.upper() not in MUTATING_METHODS
            or not path.startswith(API_PREFIX)
        ):
            return await call_next(request)

        route_group = route_group_for(path)
        caller = _caller_key(request)
        retry_after = consume_mutation_token(caller, route_group, settings.rate_limit_mutations_per_minute)
        if retry_after == 0:
            return await call_next(request)

        observe_rate_limited(route_group)
        logger.warning(
            "rate_limit.exceeded",
            extra={"actor_id": caller, "route_group": route_group, "retry_after": retry_after},
        )
        response = error_response(request, status_code=429, code="rate_limited", message="Too many requests")
        response.headers["Retry-After"] = str(retry_after)
        return response

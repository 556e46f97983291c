"""Prometheus metrics and request instrumentation."""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, ClassVar

from prometheus_client import Counter, Histogram

if TYPE_CHECKING:
    from starlette.types import ASGIApp, Message, Receive, Scope, Send

logger = logging.getLogger(__name__)

SEQUENCE_ALLOCATIONS = Counter(
    "sequence_allocations_total",
    "Sequence values handed out by the allocator",
    ["strategy", "status"],  # status: allocated, created, conflict, error
)

SEQUENCE_ALLOCATION_TIME = Histogram(
    "sequence_allocation_seconds",
    "Time spent allocating a sequence value",
    ["strategy"],
)

UNIT_OF_WORK_OUTCOMES = Counter(
    "unit_of_work_outcomes_total",
    "Finished units of work",
    ["outcome"],  # outcome: committed, rolled_back
)

UNIT_OF_WORK_RETRIES = Counter(
    "unit_of_work_retries_total",
    "Units of work re-run after a retryable failure",
    ["code"],
)

HTTP_REQUEST_TIME = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "status"],
)


class ObservabilityMiddleware:
    """Records request latency and logs failed requests."""

    SKIP_PATHS: ClassVar[set[str]] = {"/health", "/metrics"}

    def __init__(self, app: ASGIApp):
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send):
        if scope["type"] != "http" or scope.get("path") in self.SKIP_PATHS:
            await self.app(scope, receive, send)
            return

        started = time.perf_counter()
        status_holder = {"status": 500}

        async def _send(message: Message):
            if message["type"] == "http.response.start":
                status_holder["status"] = message["status"]
            await send(message)

        try:
            await self.app(scope, receive, _send)
        finally:
            elapsed = time.perf_counter() - started
            status = status_holder["status"]
            HTTP_REQUEST_TIME.labels(method=scope.get("method", ""), status=str(status)).observe(elapsed)
            if status >= 500:
                logger.warning(
                    "http_request_failed method=%s path=%s status=%s duration_ms=%.1f",
                    scope.get("method"),
                    scope.get("path"),
                    status,
                    elapsed * 1000,
                )

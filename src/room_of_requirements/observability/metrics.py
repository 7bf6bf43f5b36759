from __future__ import annotations

"""Prometheus metrics for the Room of Requirements backend.

Adds an HTTP middleware that records request latency per method/path/status
and exposes counters for gateway calls and stream fallbacks.
"""

import logging
import time
from typing import Awaitable, Callable

from prometheus_client import Counter, Histogram
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger(__name__)

REQUEST_LATENCY = Histogram(
    "ror_request_latency_seconds",
    "HTTP request latency in seconds",
    labelnames=("method", "path", "status"),
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0),
)

LLM_REQUESTS = Counter(
    "ror_llm_requests_total",
    "Completion requests sent to the LLM gateway",
    labelnames=("use_case", "stream", "outcome"),
)

STREAM_FALLBACKS = Counter(
    "ror_stream_fallbacks_total",
    "Streaming replies that fell back to a non-streaming completion",
)


def sanitize_path(path: str) -> str:
    """Reduce high-cardinality paths (e.g. /api/v1/tasks/{id}) to a coarse label.

    Keeps at most the first three static segments.
    """
    if not path:
        return "/"
    segs = [s for s in path.split("?")[0].split("/") if s]
    if not segs:
        return "/"
    return "/" + "/".join(segs[:3])


def metrics_middleware_factory() -> Callable[[Request, Callable[[Request], Awaitable[Response]]], Awaitable[Response]]:
    async def middleware(request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        if request.url.path.startswith("/metrics"):
            return await call_next(request)
        start = time.perf_counter()
        response = await call_next(request)
        elapsed = time.perf_counter() - start
        try:
            REQUEST_LATENCY.labels(
                method=request.method,
                path=sanitize_path(request.url.path),
                status=str(response.status_code),
            ).observe(elapsed)
        except Exception as exc:
            # metrics never fail the request
            logger.debug("metrics_observe_failed: %s", exc)
        return response

    return middleware

"""Request latency logging middleware for performance monitoring."""

import logging
import re
import time
from collections import defaultdict
from typing import Callable

from fastapi import Request, Response

logger = logging.getLogger(__name__)

# Thresholds for log levels (in milliseconds)
SLOW_REQUEST_THRESHOLD_MS = 1000
VERY_SLOW_REQUEST_THRESHOLD_MS = 3000

# Artwork uploads stream files to storage, so they get a looser threshold
SLOW_UPLOAD_THRESHOLD_MS = 10000

HEALTH_PATHS = ("/health", "/health/ready")

_UUID_PATTERN = re.compile(r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}", re.IGNORECASE)
_NUMERIC_SEGMENT_PATTERN = re.compile(r"/\d+(?=/|$)")
_GUEST_TOKEN_PATTERN = re.compile(r"/guest/[^/]+")


def redact_access_tokens(path: str) -> str:
    """Hide order access tokens so they never reach logs or stats."""
    return _GUEST_TOKEN_PATTERN.sub("/guest/{token}", path)


def normalize_path(path: str) -> str:
    """Replace UUID and numeric path segments with {id}.

    /api/v1/orders/42/items/7/artwork becomes
    /api/v1/orders/{id}/items/{id}/artwork.
    """
    path = _UUID_PATTERN.sub("{id}", redact_access_tokens(path))
    return _NUMERIC_SEGMENT_PATTERN.sub("/{id}", path)


class LatencyStats:
    """Simple in-memory stats tracker for request latencies."""

    def __init__(self, max_samples: int = 1000):
        self._samples: list[tuple[str, float]] = []  # (normalized path, latency_ms)
        self._max_samples = max_samples

    def record(self, path: str, latency_ms: float) -> None:
        """Record a latency sample."""
        self._samples.append((normalize_path(path), latency_ms))
        if len(self._samples) > self._max_samples:
            self._samples = self._samples[-self._max_samples:]

    def get_stats(self) -> dict:
        """Get aggregated stats."""
        if not self._samples:
            return {
                "total_requests": 0,
                "avg_latency_ms": 0,
                "p50_latency_ms": 0,
                "p95_latency_ms": 0,
                "p99_latency_ms": 0,
            }

        latencies = sorted(s[1] for s in self._samples)
        total = len(latencies)

        return {
            "total_requests": total,
            "avg_latency_ms": round(sum(latencies) / total, 2),
            "p50_latency_ms": round(latencies[int(total * 0.5)], 2),
            "p95_latency_ms": round(latencies[min(int(total * 0.95), total - 1)], 2),
            "p99_latency_ms": round(latencies[min(int(total * 0.99), total - 1)], 2),
        }

    def get_stats_by_path(self) -> dict:
        """Get stats grouped by normalized path."""
        by_path: dict[str, list[float]] = defaultdict(list)
        for path, latency in self._samples:
            by_path[path].append(latency)

        result = {}
        for path, latencies in by_path.items():
            sorted_latencies = sorted(latencies)
            total = len(sorted_latencies)
            result[path] = {
                "count": total,
                "avg_ms": round(sum(sorted_latencies) / total, 2),
                "p95_ms": round(sorted_latencies[min(int(total * 0.95), total - 1)], 2),
            }

        return result


# Global stats instance
_latency_stats: LatencyStats | None = None


def get_latency_stats() -> LatencyStats:
    """Get or create the global latency stats instance."""
    global _latency_stats
    if _latency_stats is None:
        _latency_stats = LatencyStats()
    return _latency_stats


def _slow_threshold_ms(method: str, path: str) -> float:
    if method == "POST" and path.endswith("/artwork"):
        return SLOW_UPLOAD_THRESHOLD_MS
    return SLOW_REQUEST_THRESHOLD_MS


async def latency_logging_middleware(request: Request, call_next: Callable) -> Response:
    """Middleware to log request latency and record stats.

    Logs timing information for every request, with elevated log levels
    for slow requests to help identify performance issues.

    Args:
        request: The incoming request.
        call_next: The next middleware/handler in the chain.

    Returns:
        Response: The response from the handler.
    """
    start_time = time.perf_counter()

    method = request.method
    path = redact_access_tokens(request.url.path)
    is_health_check = path in HEALTH_PATHS

    response = None
    error_occurred = False

    try:
        response = await call_next(request)
        return response
    except Exception:
        error_occurred = True
        raise
    finally:
        latency_ms = (time.perf_counter() - start_time) * 1000

        # Health checks are too noisy for stats
        if not is_health_check:
            get_latency_stats().record(path, latency_ms)

        status_code = response.status_code if response else 500
        log_msg = f"{method} {path} - {status_code} - {latency_ms:.2f}ms"
        slow_ms = _slow_threshold_ms(method, path)

        if is_health_check:
            if latency_ms > 100:
                logger.debug(log_msg)
        elif error_occurred or status_code >= 500:
            logger.error(log_msg)
        elif latency_ms > max(slow_ms, VERY_SLOW_REQUEST_THRESHOLD_MS):
            logger.error(f"VERY SLOW REQUEST: {log_msg}")
        elif latency_ms > slow_ms:
            logger.warning(f"SLOW REQUEST: {log_msg}")
        elif status_code >= 400:
            logger.warning(log_msg)
        else:
            logger.info(log_msg)

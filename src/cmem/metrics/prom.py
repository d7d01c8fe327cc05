from __future__ import annotations
from prometheus_client import Counter, Histogram

REQS = Counter("cmem_requests_total", "Total requests", ["operation"])
PATHS = Counter("cmem_store_path_total", "Operations by store path", ["operation", "path"])
LAT = Histogram("cmem_latency_ms", "Latency ms", ["operation"])


def mark(operation: str) -> None:
    REQS.labels(operation=operation).inc()


def mark_path(operation: str, path: str) -> None:
    PATHS.labels(operation=operation, path=path).inc()

"""Prometheus-style metrics for the shared data registry.

Module purpose and system role:
    - Count container lifecycle events, admission rejections and backend
      failures.
    - Provide an HTTP ``/metrics`` endpoint consumable by Prometheus.

Integration points and dependencies:
    - ``prometheus_client`` counters live in a dedicated registry so that
      several registries in one process never collide.
    - The registry and containers call the ``record_*`` helpers.

Test hooks:
    - ``snapshot`` and ``reset`` expose the in-process counters.
    - Lightweight server can be started and stopped in tests.
"""

from __future__ import annotations

import os
import threading
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Any, Dict, cast

from prometheus_client import CollectorRegistry, Counter, generate_latest

_COUNTER_NAMES = (
    "containers_created",
    "containers_discarded",
    "containers_removed",
    "cluster_downgrades",
    "rejections",
    "backend_failures",
    "handler_failures",
)

_METRICS: Dict[str, Any] = {name: 0 for name in _COUNTER_NAMES}
_METRICS["namespaces"] = {}
_LOCK = threading.Lock()

REGISTRY = CollectorRegistry(auto_describe=True)
PROM_CREATED = Counter(
    "shared_data_containers_created",
    "Containers created by the registry",
    ["namespace"],
    registry=REGISTRY,
)
PROM_DISCARDED = Counter(
    "shared_data_containers_discarded",
    "Containers built but discarded after losing a creation race",
    ["namespace"],
    registry=REGISTRY,
)
PROM_REMOVED = Counter(
    "shared_data_containers_removed",
    "Containers removed from the registry",
    ["namespace"],
    registry=REGISTRY,
)
PROM_DOWNGRADES = Counter(
    "shared_data_cluster_downgrades",
    "Cluster requests served by a local container",
    registry=REGISTRY,
)
PROM_REJECTIONS = Counter(
    "shared_data_rejections", "Values refused by the admission policy", registry=REGISTRY
)
PROM_BACKEND_FAILURES = Counter(
    "shared_data_backend_failures", "Cluster backend errors", registry=REGISTRY
)


# ----------------------------------------------------------------------
# Metric update helpers
# ----------------------------------------------------------------------

def _bump(key: str, namespace: str | None = None) -> None:
    with _LOCK:
        _METRICS[key] = cast(int, _METRICS.get(key, 0)) + 1
        if namespace is not None:
            per_ns = cast(Dict[str, Dict[str, int]], _METRICS.setdefault("namespaces", {}))
            counts = per_ns.setdefault(namespace, {})
            counts[key] = counts.get(key, 0) + 1


def record_container_created(namespace: str) -> None:
    _bump("containers_created", namespace)
    PROM_CREATED.labels(namespace=namespace).inc()


def record_container_discarded(namespace: str) -> None:
    _bump("containers_discarded", namespace)
    PROM_DISCARDED.labels(namespace=namespace).inc()


def record_container_removed(namespace: str) -> None:
    _bump("containers_removed", namespace)
    PROM_REMOVED.labels(namespace=namespace).inc()


def record_cluster_downgrade() -> None:
    _bump("cluster_downgrades")
    PROM_DOWNGRADES.inc()


def record_rejection() -> None:
    """Record a value refused by the admission policy."""
    _bump("rejections")
    PROM_REJECTIONS.inc()


def record_backend_failure() -> None:
    _bump("backend_failures")
    PROM_BACKEND_FAILURES.inc()


def record_handler_failure() -> None:
    _bump("handler_failures")


def snapshot() -> Dict[str, Any]:
    """Return a copy of the in-process counters."""
    with _LOCK:
        data = dict(_METRICS)
        per_ns = cast(Dict[str, Dict[str, int]], _METRICS["namespaces"])
        data["namespaces"] = {ns: dict(c) for ns, c in per_ns.items()}
        return data


def reset() -> None:
    """Zero the in-process counters. Prometheus counters are monotonic and stay."""
    with _LOCK:
        for name in _COUNTER_NAMES:
            _METRICS[name] = 0
        _METRICS["namespaces"] = {}


# ----------------------------------------------------------------------
# Metrics server
# ----------------------------------------------------------------------

class _Handler(BaseHTTPRequestHandler):
    """Serve metrics data for Prometheus scraping."""

    def do_GET(self) -> None:  # pragma: no cover - trivial
        token = os.getenv("METRICS_TOKEN")
        if token:
            auth = self.headers.get("Authorization")
            if auth != f"Bearer {token}":
                self.send_response(401)
                self.end_headers()
                return
        if self.path != "/metrics":
            self.send_response(404)
            self.end_headers()
            return
        data = snapshot()
        custom = "".join(f"{name}_total {data[name]}\n" for name in _COUNTER_NAMES)
        body = generate_latest(REGISTRY) + custom.encode()
        self.send_response(200)
        self.send_header("Content-Type", "text/plain")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format: str, *args: Any) -> None:  # noqa: A002
        pass


class MetricsServer:
    """Background metrics HTTP server."""

    def __init__(self, host: str = "127.0.0.1", port: int | None = None) -> None:
        if port is None:
            port = int(os.getenv("METRICS_PORT", "8000"))
        try:
            self.server = HTTPServer((host, port), _Handler)
        except OSError as exc:  # pragma: no cover - runtime check
            if "Address already in use" in str(exc):
                raise OSError(
                    f"Port {port} already in use. Set METRICS_PORT or pass port."
                ) from exc
            raise
        self.thread = threading.Thread(target=self.server.serve_forever, daemon=True)

    def start(self) -> None:
        self.thread.start()

    def stop(self) -> None:
        self.server.shutdown()
        self.thread.join()
        self.server.server_close()

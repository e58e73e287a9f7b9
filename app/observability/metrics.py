"""Counters, timings, and gauges for lead services.

Every metric is logged at DEBUG under ``gtm.metric``. With
``METRICS_BACKEND=statsd`` it is also sent to a StatsD daemon over UDP.
"""

from __future__ import annotations

import logging
import secrets
import time
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from statsd import StatsClient

from app.config import settings

logger = logging.getLogger("app.metrics")

_SAMPLED_TYPES = frozenset({"counter", "timing"})


class MetricsReporter:
    """Emits metrics to the log and, when configured, to StatsD."""

    def __init__(
        self,
        *,
        namespace: str = "gtm",
        backend: str = "stdout",
        sample_rate: float = 1.0,
        disabled: bool = False,
        statsd_client: StatsClient | None = None,
    ) -> None:
        self.namespace = namespace.strip(". ") or "gtm"
        self.backend = backend.lower()
        self.sample_rate = max(0.0, min(sample_rate, 1.0))
        self.disabled = disabled
        self._statsd = statsd_client

    @classmethod
    def from_settings(cls) -> MetricsReporter:
        backend = (settings.metrics_backend or "stdout").lower()
        statsd_client = None
        if backend == "statsd" and not settings.metrics_disable:
            try:
                statsd_client = StatsClient(
                    host=settings.metrics_statsd_host,
                    port=settings.metrics_statsd_port,
                    prefix="",
                )
            except OSError as exc:  # pragma: no cover - resolver failure
                logger.warning(
                    "metrics.backend_error",
                    extra={"metric": "statsd.init", "backend": backend, "error": type(exc).__name__},
                )
        return cls(
            namespace=settings.metrics_namespace,
            backend=backend,
            sample_rate=settings.metrics_sample_rate,
            disabled=settings.metrics_disable,
            statsd_client=statsd_client,
        )

    def increment(self, metric: str, value: float = 1.0, *, tags: dict[str, Any] | None = None) -> None:
        self._emit("counter", metric, value, tags)

    def timing(self, metric: str, value_ms: float, *, tags: dict[str, Any] | None = None) -> None:
        self._emit("timing", metric, value_ms, tags)

    def gauge(self, metric: str, value: float, *, tags: dict[str, Any] | None = None) -> None:
        self._emit("gauge", metric, value, tags)

    @contextmanager
    def timer(self, metric: str, *, tags: dict[str, Any] | None = None) -> Iterator[dict[str, Any]]:
        """Report the wall time of the block in milliseconds.

        The yielded dict holds the tags; entries added inside the block are
        reported with the timing.
        """
        block_tags = dict(tags or {})
        start = time.perf_counter()
        try:
            yield block_tags
        finally:
            self.timing(metric, (time.perf_counter() - start) * 1000, tags=block_tags)

    def qualify(self, metric: str) -> str:
        name = (metric or "").strip()
        if not name:
            return self.namespace
        if name.startswith(f"{self.namespace}."):
            return name
        return f"{self.namespace}.{name}"

    def _sampled_in(self, metric_type: str) -> bool:
        if metric_type not in _SAMPLED_TYPES or self.sample_rate >= 1.0:
            return True
        return secrets.randbelow(1_000_000) < self.sample_rate * 1_000_000

    def _emit(self, metric_type: str, metric: str, value: float, tags: dict[str, Any] | None) -> None:
        if self.disabled or value is None or not self._sampled_in(metric_type):
            return
        name = self.qualify(metric)
        rate = self.sample_rate if metric_type in _SAMPLED_TYPES else 1.0
        logger.debug(
            "gtm.metric",
            extra={
                "metrics": {
                    "metric": name,
                    "type": metric_type,
                    "value": round(float(value), 4),
                    "sample_rate": rate,
                    "tags": tags or {},
                }
            },
        )
        if self._statsd is None:
            return
        try:
            if metric_type == "timing":
                self._statsd.timing(name, value, rate=rate)
            elif metric_type == "gauge":
                self._statsd.gauge(name, value)
            else:
                self._statsd.incr(name, value, rate=rate)
        except OSError as exc:  # pragma: no cover - UDP send failure
            logger.warning(
                "metrics.backend_error",
                extra={"metric": name, "backend": self.backend, "error": type(exc).__name__},
            )


metrics = MetricsReporter.from_settings()

"""Analyzer failure-count gauge.

`analyzer_errors{analyzer_name, object_name, namespace}` holds the number of failures found for an
object in the latest run. Each analyzer resets its own series before scanning so objects that healed
since the previous run disappear from the export.
"""

from __future__ import annotations

import logging
import threading
from typing import Dict, Optional, Set, Tuple

from prometheus_client import CollectorRegistry, Gauge

logger = logging.getLogger(__name__)

LabelValues = Tuple[str, str, str]


class AnalyzerErrorsMetric:
    def __init__(self, registry: Optional[CollectorRegistry] = None) -> None:
        self.registry = registry if registry is not None else CollectorRegistry()
        self.gauge = Gauge(
            "analyzer_errors",
            "Number of errors detected by analyzer",
            ["analyzer_name", "object_name", "namespace"],
            registry=self.registry,
        )
        self._series: Dict[str, Set[LabelValues]] = {}
        self._lock = threading.Lock()

    def reset(self, kind: str) -> None:
        """Drop every series previously exported for `kind`."""
        with self._lock:
            for labels in self._series.pop(kind, set()):
                try:
                    self.gauge.remove(*labels)
                except KeyError:
                    pass

    def set(self, kind: str, object_name: str, namespace: str, count: int) -> None:
        labels = (kind, object_name, namespace)
        try:
            with self._lock:
                self.gauge.labels(*labels).set(float(count))
                self._series.setdefault(kind, set()).add(labels)
        except Exception as e:
            logger.warning("analyzer_errors update failed for %s %s/%s: %s", kind, namespace, object_name, e)

    def value(self, kind: str, object_name: str, namespace: str) -> Optional[float]:
        return self.registry.get_sample_value(
            "analyzer_errors",
            {"analyzer_name": kind, "object_name": object_name, "namespace": namespace},
        )

"""In-process counters for the entry service.

Counters in use:

* ``entries_list_http_total``, ``entries_create_total``,
  ``entries_update_total``, ``entries_delete_total`` and
  ``entries_not_found_total`` from the HTTP routes.
* ``entry_number_conflicts_total`` each time a store retries a create or
  re-date after losing an entry-number race.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import DefaultDict, Dict

from .logging import get_logger

logger = get_logger(__name__)


class MetricsClient:  # pragma: no cover - interface
    def increment(self, metric: str, value: int = 1) -> None:
        raise NotImplementedError

    def count(self, metric: str) -> int:
        raise NotImplementedError


@dataclass
class InMemoryMetricsClient(MetricsClient):
    counters: DefaultDict[str, int] = field(default_factory=lambda: defaultdict(int))

    def increment(self, metric: str, value: int = 1) -> None:
        self.counters[metric] += value
        logger.debug("metrics_increment", extra={"metric": metric, "value": value})

    def count(self, metric: str) -> int:
        return self.counters.get(metric, 0)

    def snapshot(self) -> Dict[str, int]:
        return dict(self.counters)


_metrics_singleton: InMemoryMetricsClient | None = None


def get_metrics_client() -> InMemoryMetricsClient:
    """Return the process-wide counters."""

    global _metrics_singleton
    if _metrics_singleton is None:
        _metrics_singleton = InMemoryMetricsClient()
    return _metrics_singleton

"""Running aggregate of probe results."""

import math
from bisect import insort
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from .models import ByteMetrics, LatencyMetrics, MetricsView, Result
from .utils import ns_to_timedelta


def nearest_rank(sorted_values: List[int], quantile: float) -> int:
    """Nearest-rank quantile of an ascending list, quantile in [0, 1]."""
    if not sorted_values:
        return 0
    rank = math.ceil(quantile * len(sorted_values))
    return sorted_values[min(max(rank, 1), len(sorted_values)) - 1]


class Metrics:
    """Folds Results one at a time and produces MetricsView snapshots.

    All latencies are kept in a sorted list so that percentiles can be
    answered exactly at any snapshot. Memory grows with the number of
    results; a bounded quantile sketch could replace the list behind
    snapshot() for very long runs.
    """

    def __init__(self):
        self.requests = 0
        self.successes = 0
        self.bytes_in_total = 0
        self.bytes_out_total = 0
        self.latency_total_ns = 0
        self.latencies_ns: List[int] = []
        self.status_codes: Dict[int, int] = {}
        # Insertion-ordered set of error strings
        self._errors: Dict[str, None] = {}
        self.earliest: Optional[datetime] = None
        self.latest: Optional[datetime] = None
        self.end: Optional[datetime] = None

    def update(self, result: Result) -> None:
        """Fold one result. A result counts as a success when its error is empty, whatever its status code."""
        self.requests += 1
        self.bytes_in_total += result.bytes_in
        self.bytes_out_total += result.bytes_out
        self.status_codes[result.code] = self.status_codes.get(result.code, 0) + 1

        if result.error:
            self._errors.setdefault(result.error, None)
        else:
            self.successes += 1

        latency_ns = result.latency_ns
        self.latency_total_ns += latency_ns
        insort(self.latencies_ns, latency_ns)

        if self.earliest is None or result.timestamp < self.earliest:
            self.earliest = result.timestamp
        if self.latest is None or result.timestamp > self.latest:
            self.latest = result.timestamp
        completed = result.timestamp + result.latency
        if self.end is None or completed > self.end:
            self.end = completed

    @property
    def errors(self) -> List[str]:
        return list(self._errors)

    def snapshot(self) -> MetricsView:
        """Compute derived metrics without changing accumulated state."""
        requests = self.requests
        duration = timedelta(0)
        wait = timedelta(0)
        if self.earliest is not None and self.latest is not None and self.end is not None:
            duration = self.latest - self.earliest
            wait = self.end - self.latest

        seconds = duration / timedelta(seconds=1)
        rate = requests / seconds if seconds > 0 else 0.0

        if requests:
            latencies = LatencyMetrics(
                total=ns_to_timedelta(self.latency_total_ns),
                mean=ns_to_timedelta(self.latency_total_ns // requests),
                p50=ns_to_timedelta(nearest_rank(self.latencies_ns, 0.50)),
                p95=ns_to_timedelta(nearest_rank(self.latencies_ns, 0.95)),
                p99=ns_to_timedelta(nearest_rank(self.latencies_ns, 0.99)),
                max=ns_to_timedelta(self.latencies_ns[-1]),
            )
            bytes_in = ByteMetrics(self.bytes_in_total, self.bytes_in_total / requests)
            bytes_out = ByteMetrics(self.bytes_out_total, self.bytes_out_total / requests)
            success = self.successes / requests
        else:
            latencies = LatencyMetrics()
            bytes_in = ByteMetrics()
            bytes_out = ByteMetrics()
            success = 0.0

        return MetricsView(
            requests=requests,
            rate=rate,
            duration=duration,
            wait=wait,
            latencies=latencies,
            bytes_in=bytes_in,
            bytes_out=bytes_out,
            success=success,
            earliest=self.earliest,
            latest=self.latest,
            end=self.end,
            status_codes=dict(self.status_codes),
            errors=self.errors,
        )

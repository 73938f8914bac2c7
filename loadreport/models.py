"""Data models for probe results and aggregated metrics."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from .utils import datetime_to_ns, format_timestamp, timedelta_to_ns


@dataclass(frozen=True)
class Result:
    """Outcome of a single HTTP probe."""
    timestamp: datetime  # When the probe was issued (UTC)
    code: int  # Status code, 0 if no response was received
    latency: timedelta
    bytes_out: int = 0
    bytes_in: int = 0
    error: str = ""  # Empty on success

    @property
    def timestamp_ns(self) -> int:
        return datetime_to_ns(self.timestamp)

    @property
    def latency_ns(self) -> int:
        return timedelta_to_ns(self.latency)

    def to_dict(self) -> Dict[str, Any]:
        """Return the JSON dump representation of this result."""
        return {
            'timestamp': format_timestamp(self.timestamp),
            'code': self.code,
            'latency': self.latency_ns,
            'bytes_out': self.bytes_out,
            'bytes_in': self.bytes_in,
            'error': self.error,
        }


@dataclass(frozen=True)
class LatencyMetrics:
    """Latency distribution at the time of a snapshot."""
    total: timedelta = timedelta(0)
    mean: timedelta = timedelta(0)
    p50: timedelta = timedelta(0)
    p95: timedelta = timedelta(0)
    p99: timedelta = timedelta(0)
    max: timedelta = timedelta(0)


@dataclass(frozen=True)
class ByteMetrics:
    total: int = 0
    mean: float = 0.0


@dataclass(frozen=True)
class MetricsView:
    """Read-only view of a Metrics accumulator at a point in time."""
    requests: int
    rate: float  # Requests per second over the attack duration
    duration: timedelta  # Latest minus earliest timestamp
    wait: timedelta  # Latest completion minus latest timestamp
    latencies: LatencyMetrics
    bytes_in: ByteMetrics
    bytes_out: ByteMetrics
    success: float  # Ratio in [0, 1]
    earliest: Optional[datetime] = None
    latest: Optional[datetime] = None
    end: Optional[datetime] = None
    status_codes: Dict[int, int] = field(default_factory=dict)
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Return the JSON report representation.

        Durations are integer nanoseconds, timestamps RFC 3339 strings and
        status codes are keyed by their string form.
        """
        return {
            'latencies': {
                'total': timedelta_to_ns(self.latencies.total),
                'mean': timedelta_to_ns(self.latencies.mean),
                '50th': timedelta_to_ns(self.latencies.p50),
                '95th': timedelta_to_ns(self.latencies.p95),
                '99th': timedelta_to_ns(self.latencies.p99),
                'max': timedelta_to_ns(self.latencies.max),
            },
            'bytes_in': {'total': self.bytes_in.total, 'mean': self.bytes_in.mean},
            'bytes_out': {'total': self.bytes_out.total, 'mean': self.bytes_out.mean},
            'earliest': format_timestamp(self.earliest) if self.earliest else None,
            'latest': format_timestamp(self.latest) if self.latest else None,
            'end': format_timestamp(self.end) if self.end else None,
            'duration': timedelta_to_ns(self.duration),
            'wait': timedelta_to_ns(self.wait),
            'requests': self.requests,
            'rate': self.rate,
            'success': self.success,
            'status_codes': {str(code): count for code, count in self.status_codes.items()},
            'errors': list(self.errors),
        }

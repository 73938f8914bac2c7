"""Fixed-bucket latency histogram."""

from bisect import bisect_right
from datetime import timedelta
from typing import Iterable, List, Tuple, Union

from .errors import InvalidBuckets
from .models import Result
from .utils import format_duration, ns_to_timedelta, parse_duration_ns, timedelta_to_ns


class Buckets:
    """Strictly increasing latency boundaries.

    Bucket i covers [bounds[i], bounds[i+1]); the last bucket is open ended.
    Boundaries may be given as timedeltas or as integer nanoseconds.
    """

    def __init__(self, bounds: Iterable[Union[timedelta, int]]):
        self._bounds_ns: List[int] = [
            timedelta_to_ns(bound) if isinstance(bound, timedelta) else int(bound)
            for bound in bounds
        ]
        if not self._bounds_ns:
            raise InvalidBuckets("bad buckets: at least one bucket boundary is required")
        for lower, upper in zip(self._bounds_ns, self._bounds_ns[1:]):
            if upper <= lower:
                raise InvalidBuckets(
                    f"bad buckets: boundaries must be strictly increasing "
                    f"({format_duration(lower)} >= {format_duration(upper)})"
                )

    @classmethod
    def parse(cls, text: str) -> 'Buckets':
        """Parse a bucket list such as '[0,100ms,200ms,500ms]'."""
        value = text.strip()
        if len(value) < 2 or value[0] != '[' or value[-1] != ']':
            raise InvalidBuckets(f"bad buckets: {text}")
        inner = value[1:-1].strip()
        if not inner:
            raise InvalidBuckets(f"bad buckets: {text}")

        bounds = []
        for item in inner.split(','):
            try:
                bounds.append(parse_duration_ns(item))
            except ValueError as e:
                raise InvalidBuckets(f"bad buckets: {text}: {e}") from e
        return cls(bounds)

    def __len__(self) -> int:
        return len(self._bounds_ns)

    def __eq__(self, other) -> bool:
        return isinstance(other, Buckets) and self._bounds_ns == other._bounds_ns

    def __repr__(self) -> str:
        return f"Buckets({self})"

    def __str__(self) -> str:
        return '[' + ','.join(format_duration(ns) for ns in self._bounds_ns) + ']'

    @property
    def bounds(self) -> List[timedelta]:
        return [ns_to_timedelta(ns) for ns in self._bounds_ns]

    @property
    def bounds_ns(self) -> List[int]:
        return list(self._bounds_ns)

    def index(self, latency_ns: int) -> int:
        """Index of the last boundary <= latency, or 0 below the first boundary."""
        return max(bisect_right(self._bounds_ns, latency_ns) - 1, 0)

    def nth(self, i: int) -> Tuple[str, str]:
        """Human-readable (low, high) bounds of bucket i."""
        low = format_duration(self._bounds_ns[i])
        if i >= len(self._bounds_ns) - 1:
            return low, '+Inf'
        return low, format_duration(self._bounds_ns[i + 1])


class Histogram:
    """Counts results per latency bucket."""

    def __init__(self, buckets: Buckets):
        self.buckets = buckets
        self.counts: List[int] = [0] * len(buckets)
        self.total = 0

    def update(self, result: Result) -> None:
        self.counts[self.buckets.index(result.latency_ns)] += 1
        self.total += 1

    def describe(self, i: int) -> Tuple[str, str]:
        return self.buckets.nth(i)

    def ratios(self) -> List[float]:
        if not self.total:
            return [0.0] * len(self.counts)
        return [count / self.total for count in self.counts]

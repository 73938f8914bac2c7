"""Property tests for histogram bucketing and metrics aggregation."""

from datetime import timedelta

from hypothesis import given, settings
from hypothesis import strategies as st

from loadreport.histogram import Buckets, Histogram
from loadreport.metrics import Metrics

from .strategies import bucket_bounds_us, latencies_us, results

# =============================================================================
# HISTOGRAM
# =============================================================================


@given(bounds=bucket_bounds_us(), batch=st.lists(results(), max_size=50))
@settings(max_examples=200)
def test_histogram_counts_every_result_once(bounds, batch):
    """Property: bucket counts always sum to the number of results."""
    histogram = Histogram(Buckets([timedelta(microseconds=us) for us in bounds]))
    for result in batch:
        histogram.update(result)

    assert sum(histogram.counts) == histogram.total == len(batch)


@given(bounds=bucket_bounds_us(), latency=latencies_us)
@settings(max_examples=300)
def test_histogram_bucket_contains_latency(bounds, latency):
    """Property: a latency lands in the last bucket whose lower bound it reaches."""
    buckets = Buckets([timedelta(microseconds=us) for us in bounds])
    i = buckets.index(latency * 1000)

    if latency < bounds[0]:
        assert i == 0
    else:
        assert bounds[i] <= latency
        assert i == len(bounds) - 1 or latency < bounds[i + 1]


@given(bounds=bucket_bounds_us(), pick=st.integers(min_value=0))
def test_boundary_latency_starts_its_bucket(bounds, pick):
    """Property: a latency equal to a boundary is counted in that boundary's bucket."""
    i = pick % len(bounds)
    buckets = Buckets([timedelta(microseconds=us) for us in bounds])

    assert buckets.index(bounds[i] * 1000) == i


# =============================================================================
# METRICS
# =============================================================================


@given(ok=st.lists(results(error=st.just('')), max_size=30),
       failed=st.lists(results(error=st.just('timeout')), max_size=30))
@settings(max_examples=200)
def test_success_is_share_without_error(ok, failed):
    """Property: success is the share of results with an empty error."""
    metrics = Metrics()
    for result in ok + failed:
        metrics.update(result)
    view = metrics.snapshot()

    total = len(ok) + len(failed)
    assert view.requests == total
    assert view.success == (len(ok) / total if total else 0.0)
    assert view.errors == (['timeout'] if failed else [])


@given(batch=st.lists(results(), min_size=1, max_size=50))
@settings(max_examples=200)
def test_percentiles_are_ordered(batch):
    """Property: mean and percentiles never exceed the max, and percentiles are monotonic."""
    metrics = Metrics()
    for result in batch:
        metrics.update(result)
    lat = metrics.snapshot().latencies

    assert lat.p50 <= lat.p95 <= lat.p99 <= lat.max
    assert lat.mean <= lat.max
    assert lat.max == max(result.latency for result in batch)


@given(batch=st.lists(results(), min_size=1, max_size=50))
@settings(max_examples=100)
def test_status_codes_account_for_every_result(batch):
    """Property: status code counts sum to the number of requests."""
    metrics = Metrics()
    for result in batch:
        metrics.update(result)
    view = metrics.snapshot()

    assert sum(view.status_codes.values()) == view.requests
    assert view.earliest <= view.latest <= view.end

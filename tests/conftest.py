"""Pytest configuration and fixtures for the loadreport tests."""

import io
from datetime import datetime, timedelta, timezone

import pytest

from loadreport.codec import Encoder
from loadreport.models import Result

T0 = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


def _make_result(latency_ms: float = 10.0, code: int = 200, error: str = '', offset_s: float = 0.0,
                 bytes_out: int = 0, bytes_in: int = 0) -> Result:
    return Result(
        timestamp=T0 + timedelta(seconds=offset_s),
        code=code,
        latency=timedelta(milliseconds=latency_ms),
        bytes_out=bytes_out,
        bytes_in=bytes_in,
        error=error,
    )


def _encode(results) -> bytes:
    buf = io.BytesIO()
    encoder = Encoder(buf)
    for result in results:
        encoder.encode(result)
    return buf.getvalue()


@pytest.fixture
def t0():
    return T0


@pytest.fixture
def make_result():
    """Factory for Results relative to a fixed start time."""
    return _make_result


@pytest.fixture
def encode():
    """Encode an iterable of Results into a binary stream."""
    return _encode


@pytest.fixture
def mixed_results():
    """Three probes: two successes and one failure."""
    return [
        _make_result(latency_ms=50, code=200, offset_s=0, bytes_out=10, bytes_in=100),
        _make_result(latency_ms=150, code=200, offset_s=1, bytes_out=10, bytes_in=300),
        _make_result(latency_ms=250, code=500, error='boom', offset_s=2, bytes_out=10, bytes_in=0),
    ]

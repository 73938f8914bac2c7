"""Streaming aggregation and windowed reporting over load-test results."""

from .models import Result, MetricsView
from .errors import DecodeError, EndOfStream, InvalidBuckets, UnsupportedMode
from .reader import RoundRobinReader
from .codec import Decoder, Encoder
from .histogram import Buckets, Histogram
from .metrics import Metrics
from .reporters import WindowedReporter, PlotReporter, build_reporter
from .exporter import PrometheusMetricsExporter

__all__ = [
    'Result',
    'MetricsView',
    'DecodeError',
    'EndOfStream',
    'InvalidBuckets',
    'UnsupportedMode',
    'RoundRobinReader',
    'Decoder',
    'Encoder',
    'Buckets',
    'Histogram',
    'Metrics',
    'WindowedReporter',
    'PlotReporter',
    'build_reporter',
    'PrometheusMetricsExporter',
]

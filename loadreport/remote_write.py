"""Client for pushing report snapshots via Prometheus remote write."""

import sys
from typing import Dict, Optional

import requests
import snappy
from google.protobuf.json_format import MessageToJson

from prometheus_remote_writer.proto import remote_pb2 as prompb_pb2
from prometheus_remote_writer.proto import types_pb2

from .exporter import LATENCY_QUANTILES
from .histogram import Histogram
from .models import MetricsView
from .utils import NANOS_PER_SECOND, format_bound_for_label


def format_series(name: str, labels: Dict[str, str]) -> str:
    """Render a series as name{k="v",...} with labels sorted by name."""
    if not labels:
        return name
    label_str = ','.join(f'{k}="{v}"' for k, v in sorted(labels.items()))
    return f'{name}{{{label_str}}}'


class RemoteWriteClient:
    """Client for sending snapshots to a Prometheus remote write endpoint.

    Every window becomes one WriteRequest holding a single sample per
    series, all stamped with the flush time.
    """

    def __init__(self, remote_write_url: str, headers: Optional[Dict[str, str]] = None,
                 instance_label: str = 'loadreport', verbose: bool = False, timeout: float = 30,
                 namespace: str = 'loadreport'):
        self.remote_write_url = remote_write_url
        self.headers = dict(headers or {})
        self.headers.setdefault('Content-Type', 'application/x-protobuf')
        self.headers.setdefault('Content-Encoding', 'snappy')
        self.headers.setdefault('X-Prometheus-Remote-Write-Version', '0.1.0')
        self.instance_label = instance_label  # Value for the instance label
        self.verbose = verbose
        self.timeout = timeout
        self.namespace = namespace

    def _append(self, write_request, name: str, labels: Dict[str, str], value: float, timestamp_ms: int) -> None:
        """Append one single-sample series named <namespace>_<name>."""
        metric_name = f'{self.namespace}_{name}'
        labels = dict(labels, instance=self.instance_label)

        series = write_request.timeseries.add()
        series.labels.add(name='__name__', value=metric_name)
        for label_name, label_value in sorted(labels.items()):
            series.labels.add(name=label_name, value=str(label_value))
        series.samples.add(value=value, timestamp=timestamp_ms)

        if self.verbose:
            print(f"{format_series(metric_name, labels)} {value}", file=sys.stderr)

    def build_metrics_request(self, view: MetricsView, timestamp_ms: int):
        """Convert a metrics snapshot to a remote write request."""
        write_request = prompb_pb2.WriteRequest()  # type: ignore

        def add(name: str, value: float, **labels: str) -> None:
            self._append(write_request, name, labels, value, timestamp_ms)

        # Counts are cumulative over the whole run
        add('requests_total', view.requests)
        add('requests_per_second', view.rate)
        add('success_ratio', view.success)
        for code, count in sorted(view.status_codes.items()):
            add('status_codes_total', count, code=str(code))

        add('duration_seconds', view.duration.total_seconds())
        add('wait_seconds', view.wait.total_seconds())

        for quantile, attribute in LATENCY_QUANTILES.items():
            add('latency_seconds', getattr(view.latencies, attribute).total_seconds(), quantile=quantile)
        add('latency_seconds_sum', view.latencies.total.total_seconds())
        add('latency_seconds_count', view.requests)
        add('latency_seconds_mean', view.latencies.mean.total_seconds())
        add('latency_seconds_max', view.latencies.max.total_seconds())

        add('bytes_in_total', view.bytes_in.total)
        add('bytes_out_total', view.bytes_out.total)
        return write_request

    def build_histogram_request(self, histogram: Histogram, timestamp_ms: int):
        """Convert a latency histogram to a remote write request.

        Buckets are emitted cumulatively with the upper bound of each bucket
        (in seconds) as the 'le' label, followed by the +Inf bucket.
        """
        write_request = prompb_pb2.WriteRequest()  # type: ignore
        upper_bounds = histogram.buckets.bounds_ns[1:]

        cumulative = 0
        for upper_ns, count in zip(upper_bounds, histogram.counts):
            cumulative += count
            le = format_bound_for_label(upper_ns / NANOS_PER_SECOND)
            self._append(write_request, 'latency_bucket', {'le': le}, cumulative, timestamp_ms)

        # +Inf bucket (required for histogram_quantile)
        self._append(write_request, 'latency_bucket', {'le': '+Inf'}, histogram.total, timestamp_ms)
        self._append(write_request, 'latency_count', {}, histogram.total, timestamp_ms)
        return write_request

    def send(self, write_request, dry_run: bool = False, debug_file: Optional[str] = None) -> bool:
        """Serialize, compress and send a write request.

        Args:
            write_request: prompb WriteRequest to send
            dry_run: If True, build the payload but skip sending it
            debug_file: Optional path to save the uncompressed payload as JSON

        Returns:
            True if the endpoint accepted the payload (or on a dry run)
        """
        data = write_request.SerializeToString()
        if debug_file:
            with open(debug_file, 'w', encoding='utf-8') as f:
                f.write(MessageToJson(write_request))
            print(f"Saved remote write payload as JSON to {debug_file}", file=sys.stderr)

        if dry_run:
            print(f"Dry run: {len(write_request.timeseries)} series not sent", file=sys.stderr)
            return True

        compressed = snappy.compress(data)
        try:
            response = requests.post(
                self.remote_write_url,
                data=compressed,
                headers=self.headers,
                timeout=self.timeout
            )
        except requests.exceptions.ConnectionError:
            print(f"Could not connect to {self.remote_write_url}; is the remote write receiver enabled?",
                  file=sys.stderr)
            return False
        except requests.exceptions.RequestException as e:
            print(f"Remote write to {self.remote_write_url} failed: {e}", file=sys.stderr)
            return False

        if response.status_code not in (200, 204):
            print(f"Remote write rejected with {response.status_code}: {response.text}", file=sys.stderr)
            return False

        print(f"Pushed {len(write_request.timeseries)} series ({len(compressed)} bytes)", file=sys.stderr)
        return True

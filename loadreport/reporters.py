"""Windowed reporters over a stream of Results."""

import json
import time
from datetime import timedelta
from enum import Enum
from typing import Callable, List, Optional, Sequence, TextIO, Union

from .codec import Decoder
from .errors import DecodeError, EndOfStream, InvalidBuckets, UnsupportedMode
from .exporter import PrometheusMetricsExporter
from .histogram import Buckets, Histogram
from .metrics import Metrics
from .utils import format_duration

REPORTER_MODES = ('text', 'json', 'plot', 'prometheus', 'hist[...]')

# Width of a 100% bar in the histogram report
HISTOGRAM_BAR_WIDTH = 75

Aggregate = Union[Histogram, Metrics]
Formatter = Callable[[Aggregate, TextIO], None]
FlushHook = Callable[[Aggregate], None]


class ReporterState(Enum):
    CONSUMING = 'consuming'
    FLUSHING = 'flushing'


class WindowedReporter:
    """Folds decoded Results into an aggregate and flushes it every window.

    Before each decode the loop checks the time left until the next flush.
    Once the window has elapsed it formats the aggregate to the output and
    runs the flush hooks, then goes back to consuming. A flush therefore
    reflects exactly the records folded before it. Ticks missed while a
    decode was blocked are coalesced into a single flush.

    The loop ends on EndOfStream or DecodeError. With final_flush enabled
    it flushes once more before returning (or before re-raising the
    DecodeError) so the last partial window is not lost.
    """

    def __init__(self, decoder: Decoder, aggregate: Aggregate, formatter: Formatter,
                 window: Union[float, timedelta], clock: Callable[[], float] = time.monotonic,
                 final_flush: bool = True, hooks: Sequence[FlushHook] = ()):
        if isinstance(window, timedelta):
            window = window.total_seconds()
        if window <= 0:
            raise ValueError(f"window must be positive, got {window}")
        self.decoder = decoder
        self.aggregate = aggregate
        self.formatter = formatter
        self.window = float(window)
        self.clock = clock
        self.final_flush = final_flush
        self.hooks: List[FlushHook] = list(hooks)
        self.state = ReporterState.CONSUMING
        self.flushes = 0

    def _flush(self, out: TextIO) -> None:
        self.state = ReporterState.FLUSHING
        self.formatter(self.aggregate, out)
        out.flush()
        for hook in self.hooks:
            hook(self.aggregate)
        self.flushes += 1
        self.state = ReporterState.CONSUMING

    def run(self, out: TextIO) -> int:
        """Run until the stream ends. Returns the number of flushes."""
        self.state = ReporterState.CONSUMING
        deadline = self.clock() + self.window

        while True:
            if deadline - self.clock() <= 0:
                self._flush(out)
                deadline += self.window
                now = self.clock()
                if deadline <= now:
                    deadline = now + self.window
                continue

            try:
                result = self.decoder.decode()
            except EndOfStream:
                if self.final_flush:
                    self._flush(out)
                return self.flushes
            except DecodeError:
                if self.final_flush:
                    self._flush(out)
                raise
            self.aggregate.update(result)


def _write_table(rows: List[List[str]], out: TextIO, padding: int = 2) -> None:
    """Write rows as left-aligned columns. The last cell is never padded."""
    widths: List[int] = []
    for row in rows:
        for i, cell in enumerate(row[:-1]):
            if i >= len(widths):
                widths.append(0)
            widths[i] = max(widths[i], len(cell))
    for row in rows:
        cells = [cell.ljust(widths[i] + padding) for i, cell in enumerate(row[:-1])]
        out.write(''.join(cells) + (row[-1] if row else '') + '\n')


def write_text_report(metrics: Metrics, out: TextIO) -> None:
    """Write a metrics block as aligned text."""
    m = metrics.snapshot()
    lat = m.latencies
    status_codes = '  '.join(f"{code}:{count}" for code, count in sorted(m.status_codes.items()))
    _write_table([
        ['Requests', '[total, rate]', f"{m.requests}, {m.rate:.2f}"],
        ['Duration', '[total, attack, wait]',
         f"{format_duration(m.duration + m.wait)}, {format_duration(m.duration)}, {format_duration(m.wait)}"],
        ['Latencies', '[mean, 50, 95, 99, max]',
         ', '.join(format_duration(value) for value in (lat.mean, lat.p50, lat.p95, lat.p99, lat.max))],
        ['Bytes In', '[total, mean]', f"{m.bytes_in.total}, {m.bytes_in.mean:.2f}"],
        ['Bytes Out', '[total, mean]', f"{m.bytes_out.total}, {m.bytes_out.mean:.2f}"],
        ['Success', '[ratio]', f"{m.success * 100:.2f}%"],
        ['Status Codes', '[code:count]', status_codes],
    ], out)
    out.write('Error Set:\n')
    for error in m.errors:
        out.write(f"{error}\n")


def write_json_report(metrics: Metrics, out: TextIO) -> None:
    """Write one JSON object per line."""
    out.write(json.dumps(metrics.snapshot().to_dict()) + '\n')


def write_histogram(histogram: Histogram, out: TextIO) -> None:
    """Write bucket counts, percentages and a bar chart."""
    rows = [['Bucket', '', '#', '%', 'Histogram']]
    for i, (count, ratio) in enumerate(zip(histogram.counts, histogram.ratios())):
        low, high = histogram.describe(i)
        rows.append([
            f"[{low},",
            f"{high}]",
            str(count),
            f"{ratio * 100:.2f}%",
            '#' * int(ratio * HISTOGRAM_BAR_WIDTH),
        ])
    _write_table(rows, out)


class PrometheusFormatter:
    """Writes each window as a Prometheus text exposition block."""

    def __init__(self, exporter: Optional[PrometheusMetricsExporter] = None):
        self.exporter = exporter or PrometheusMetricsExporter()

    def __call__(self, metrics: Metrics, out: TextIO) -> None:
        self.exporter.export(metrics.snapshot())
        out.write(self.exporter.render())


def text_reporter(decoder: Decoder, window, **kwargs) -> WindowedReporter:
    return WindowedReporter(decoder, Metrics(), write_text_report, window, **kwargs)


def json_reporter(decoder: Decoder, window, **kwargs) -> WindowedReporter:
    return WindowedReporter(decoder, Metrics(), write_json_report, window, **kwargs)


def prometheus_reporter(decoder: Decoder, window, **kwargs) -> WindowedReporter:
    return WindowedReporter(decoder, Metrics(), PrometheusFormatter(), window, **kwargs)


def histogram_reporter(decoder: Decoder, buckets: Buckets, window, **kwargs) -> WindowedReporter:
    return WindowedReporter(decoder, Histogram(buckets), write_histogram, window, **kwargs)


class PlotReporter:
    """Writes a self-contained HTML page plotting the latency of every result.

    There is no windowing and no aggregation: each result becomes one point
    ``[seconds_elapsed, error_latency_ms, ok_latency_ms]`` where the column
    that does not apply is NaN.
    """

    def __init__(self, decoder: Decoder, title: str = 'Load Test Plot'):
        self.decoder = decoder
        self.title = title

    def run(self, out: TextIO) -> int:
        """Write the page. Returns the number of points plotted."""
        out.write(PLOT_TEMPLATE_HEAD % {'title': self.title, 'dygraphs': DYGRAPHS_URL, 'html2canvas': HTML2CANVAS_URL})

        first = None
        count = 0
        for result in self.decoder:
            if first is None:
                first = result.timestamp
            elapsed = (result.timestamp - first).total_seconds()
            latency = f"{result.latency_ns / 1e6:.3f}"
            if result.error:
                point = f"[{elapsed:.6f},{latency},NaN]"
            else:
                point = f"[{elapsed:.6f},NaN,{latency}]"
            out.write((',\n' if count else '') + point)
            count += 1

        out.write(PLOT_TEMPLATE_TAIL % {'title': self.title})
        return count


def build_reporter(mode: str, decoder: Decoder, window, final_flush: bool = True,
                   clock: Callable[[], float] = time.monotonic, hooks: Sequence[FlushHook] = ()):
    """Build the reporter selected by mode.

    Modes: text, json, prometheus, plot and hist[<buckets>], for example
    'hist[0,100ms,200ms,500ms]'.

    Raises:
        UnsupportedMode: for an unknown mode
        InvalidBuckets: for a hist mode with a bad bucket list
    """
    mode = mode.strip()
    kwargs = {'clock': clock, 'final_flush': final_flush, 'hooks': hooks}
    if mode == 'text':
        return text_reporter(decoder, window, **kwargs)
    if mode == 'json':
        return json_reporter(decoder, window, **kwargs)
    if mode == 'prometheus':
        return prometheus_reporter(decoder, window, **kwargs)
    if mode == 'plot':
        return PlotReporter(decoder)
    if mode.startswith('hist'):
        bucket_text = mode[4:]
        if not bucket_text:
            raise InvalidBuckets(f"bad buckets: '{bucket_text}'")
        return histogram_reporter(decoder, Buckets.parse(bucket_text), window, **kwargs)
    raise UnsupportedMode(f"unsupported reporter: {mode} (expected one of {', '.join(REPORTER_MODES)})")


DYGRAPHS_URL = 'https://cdnjs.cloudflare.com/ajax/libs/dygraph/2.2.1/dygraph.min.js'
HTML2CANVAS_URL = 'https://cdnjs.cloudflare.com/ajax/libs/html2canvas/1.4.1/html2canvas.min.js'

PLOT_TEMPLATE_HEAD = """<!doctype html>
<html>
<head>
  <title>%(title)s</title>
  <script src="%(dygraphs)s"></script>
  <script src="%(html2canvas)s"></script>
</head>
<body>
  <div id="latencies" style="font-family: Courier; width: 100%%; height: 600px"></div>
  <button id="download">Download as PNG</button>
  <script>
  new Dygraph(
    document.getElementById("latencies"),
    [
"""

PLOT_TEMPLATE_TAIL = """
    ],
    {
      title: '%(title)s',
      labels: ['Seconds', 'ERR', 'OK'],
      ylabel: 'Latency (ms)',
      xlabel: 'Seconds elapsed',
      showRoller: true,
      colors: ['#FA7878', '#8AE234'],
      legend: 'always',
      logscale: true,
      strokeWidth: 1.3
    }
  );
  document.getElementById("download").addEventListener("click", function(e) {
    html2canvas(document.body, {background: "#fff"}).then(function(canvas) {
      var url = canvas.toDataURL('image/png').replace(/^data:image\\/[^;]/, 'data:application/octet-stream');
      var a = document.createElement("a");
      a.setAttribute("download", "latency-plot.png");
      a.setAttribute("href", url);
      a.click();
    });
  });
  </script>
</body>
</html>
"""

#!/usr/bin/env python3
"""
Report on, dump and re-encode streams of load-test results.

  loadreport report --reporter text --window 5s --inputs results.bin
  loadreport report --reporter 'hist[0,10ms,50ms,100ms]' --inputs a.bin,b.bin
  loadreport dump --dumper csv --inputs results.bin --output results.csv
  loadreport encode --from json --inputs results.json --output results.bin
"""

import argparse
import sys
import time
from contextlib import ExitStack
from datetime import timedelta
from typing import BinaryIO, List, Optional, TextIO

from .codec import Decoder, Encoder
from .dumpers import DUMPERS, encode_dump, get_dumper
from .errors import LoadReportError, RemoteWriteError, UnsupportedMode
from .histogram import Histogram
from .reader import RoundRobinReader
from .reporters import REPORTER_MODES, PlotReporter, build_reporter
from .utils import parse_duration, prepare_headers


def open_inputs(stack: ExitStack, inputs: str) -> List[BinaryIO]:
    """Open comma separated input files; 'stdin' reads standard input."""
    sources = []
    for name in inputs.split(','):
        name = name.strip()
        if name == 'stdin':
            sources.append(sys.stdin.buffer)
        else:
            sources.append(stack.enter_context(open(name, 'rb')))
    return sources


def open_text_output(stack: ExitStack, output: str) -> TextIO:
    if output == 'stdout':
        return sys.stdout
    return stack.enter_context(open(output, 'w', encoding='utf-8'))


def open_binary_output(stack: ExitStack, output: str) -> BinaryIO:
    if output == 'stdout':
        return sys.stdout.buffer
    return stack.enter_context(open(output, 'wb'))


def remote_write_hook(client, dry_run: bool = False, debug_file: Optional[str] = None):
    """Build a flush hook that pushes every window snapshot via remote write."""
    def push(aggregate) -> None:
        timestamp_ms = int(time.time() * 1000)
        if isinstance(aggregate, Histogram):
            write_request = client.build_histogram_request(aggregate, timestamp_ms)
        else:
            write_request = client.build_metrics_request(aggregate.snapshot(), timestamp_ms)
        if not client.send(write_request, dry_run=dry_run, debug_file=debug_file):
            raise RemoteWriteError(f"failed to push snapshot to {client.remote_write_url}")
    return push


def report(reporter: str, inputs: str, output: str, window: timedelta, final_flush: bool = True,
           skip_exhausted: bool = False, remote_write_url: Optional[str] = None,
           remote_write_headers: Optional[List[str]] = None, instance_label: str = 'loadreport',
           dry_run: bool = False, debug_file: Optional[str] = None, verbose: bool = False) -> int:
    """Run a reporter over the inputs until they are exhausted.

    Returns the number of flushes written (or points plotted).
    """
    hooks = []
    if remote_write_url:
        if reporter.strip() == 'plot':
            raise UnsupportedMode("remote write is not available for the plot reporter")
        # Import here so the protobuf stubs are only needed for remote write
        from .remote_write import RemoteWriteClient
        client = RemoteWriteClient(remote_write_url, prepare_headers(remote_write_headers), instance_label, verbose)
        hooks.append(remote_write_hook(client, dry_run=dry_run, debug_file=debug_file))
        print(f"Pushing every window to {remote_write_url}{' (dry run)' if dry_run else ''}", file=sys.stderr)

    with ExitStack() as stack:
        sources = open_inputs(stack, inputs)
        decoder = Decoder(RoundRobinReader(*sources, skip_exhausted=skip_exhausted))
        runner = build_reporter(reporter, decoder, window, final_flush=final_flush, hooks=hooks)
        out = open_text_output(stack, output)
        print(f"Reporting on {len(sources)} input(s) with the {reporter} reporter", file=sys.stderr)
        count = runner.run(out)

    if isinstance(runner, PlotReporter):
        print(f"Plotted {count} result(s)", file=sys.stderr)
    else:
        print(f"Wrote {count} report(s)", file=sys.stderr)
    return count


def dump(dumper: str, inputs: str, output: str, skip_exhausted: bool = False) -> int:
    """Dump every result in the inputs. Returns the number of results."""
    dump_results = get_dumper(dumper)
    with ExitStack() as stack:
        sources = open_inputs(stack, inputs)
        decoder = Decoder(RoundRobinReader(*sources, skip_exhausted=skip_exhausted))
        out = open_text_output(stack, output)
        count = dump_results(decoder, out)
    print(f"Dumped {count} result(s) as {dumper}", file=sys.stderr)
    return count


def encode(kind: str, inputs: str, output: str) -> int:
    """Encode CSV or JSON dumps back into the binary result stream."""
    if kind not in DUMPERS:
        raise UnsupportedMode(f"unsupported dump format: {kind}")
    count = 0
    with ExitStack() as stack:
        # Open every input before truncating the output
        dumps = []
        for name in inputs.split(','):
            name = name.strip()
            if name == 'stdin':
                dumps.append(sys.stdin)
            else:
                dumps.append(stack.enter_context(open(name, 'r', encoding='utf-8', newline='')))
        out = open_binary_output(stack, output)
        encoder = Encoder(out)
        for lines in dumps:
            count += encode_dump(kind, lines, encoder)
        out.flush()
    print(f"Encoded {count} result(s)", file=sys.stderr)
    return count


def _window(value: str) -> timedelta:
    try:
        window = parse_duration(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from e
    if window <= timedelta(0):
        raise argparse.ArgumentTypeError(f"window must be positive: {value}")
    return window


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='loadreport',
        description='Report on, dump and re-encode streams of load-test results'
    )
    subparsers = parser.add_subparsers(dest='command', required=True)

    report_parser = subparsers.add_parser('report', help='Aggregate results and report every window')
    report_parser.add_argument(
        '--reporter',
        default='text',
        help=f"Reporter [{', '.join(REPORTER_MODES)}] (default: text)"
    )
    report_parser.add_argument(
        '--window',
        type=_window,
        default=timedelta(seconds=1),
        help='Reporting window, e.g. 500ms, 5s, 1m (default: 1s)'
    )
    report_parser.add_argument(
        '--final-flush',
        action=argparse.BooleanOptionalAction,
        default=True,
        help='Report the last partial window when the input ends (default: on)'
    )
    report_parser.add_argument(
        '--remote-write-url',
        help='Prometheus remote write endpoint URL; every window is also pushed there'
    )
    report_parser.add_argument(
        '--remote-write-header',
        action='append',
        help='Additional header for remote write (format: Key=Value)'
    )
    report_parser.add_argument(
        '--instance-label',
        default='loadreport',
        help='Value for the instance label added to all pushed metrics (default: loadreport)'
    )
    report_parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Build remote write payloads without sending them'
    )
    report_parser.add_argument(
        '--debug-file',
        help='Save the uncompressed remote write payload as JSON to the specified file'
    )
    report_parser.add_argument(
        '--verbose',
        action='store_true',
        help='Print every pushed sample to stderr'
    )

    dump_parser = subparsers.add_parser('dump', help='Dump every result as CSV or JSON')
    dump_parser.add_argument(
        '--dumper',
        default='json',
        help=f"Dumper [{', '.join(DUMPERS)}] (default: json)"
    )

    for sub in (report_parser, dump_parser):
        sub.add_argument('--inputs', default='stdin', help='Input files, comma separated (default: stdin)')
        sub.add_argument('--output', default='stdout', help='Output file (default: stdout)')
        sub.add_argument(
            '--skip-exhausted',
            action='store_true',
            help='Keep reading the other inputs when one of them ends. Inputs are merged per read, '
                 'so a merge only decodes cleanly when every read returns whole records'
        )

    encode_parser = subparsers.add_parser('encode', help='Encode CSV or JSON dumps into a result stream')
    encode_parser.add_argument(
        '--from',
        dest='kind',
        default='json',
        help=f"Dump format [{', '.join(DUMPERS)}] (default: json)"
    )
    encode_parser.add_argument('--inputs', default='stdin', help='Dump files, comma separated (default: stdin)')
    encode_parser.add_argument('--output', default='stdout', help='Output file (default: stdout)')

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        if args.command == 'report':
            report(
                args.reporter, args.inputs, args.output, args.window,
                final_flush=args.final_flush,
                skip_exhausted=args.skip_exhausted,
                remote_write_url=args.remote_write_url,
                remote_write_headers=args.remote_write_header,
                instance_label=args.instance_label,
                dry_run=args.dry_run,
                debug_file=args.debug_file,
                verbose=args.verbose,
            )
        elif args.command == 'dump':
            dump(args.dumper, args.inputs, args.output, skip_exhausted=args.skip_exhausted)
        else:
            encode(args.kind, args.inputs, args.output)
    except (LoadReportError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())

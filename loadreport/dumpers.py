"""Dump every Result verbatim as CSV or JSON, and read dumps back."""

import csv
import json
from typing import Callable, Dict, Iterable, List, TextIO

from .codec import Decoder, Encoder
from .errors import DecodeError, UnsupportedMode
from .models import Result
from .utils import ns_to_datetime, ns_to_timedelta, parse_timestamp

CSV_COLUMNS = ['timestamp', 'code', 'latency', 'bytes_out', 'bytes_in', 'error']


def dump_csv(decoder: Decoder, out: TextIO) -> int:
    """Write one CSV row per Result.

    Columns: unix timestamp in ns, status code, latency in ns, bytes out,
    bytes in and the error, which is always quoted.

    Returns the number of rows written once the stream ends.
    """
    writer = csv.writer(out, quoting=csv.QUOTE_NONNUMERIC, lineterminator='\n')
    count = 0
    for result in decoder:
        writer.writerow([
            result.timestamp_ns,
            result.code,
            result.latency_ns,
            result.bytes_out,
            result.bytes_in,
            result.error,
        ])
        count += 1
    return count


def dump_json(decoder: Decoder, out: TextIO) -> int:
    """Write one JSON object per line per Result."""
    count = 0
    for result in decoder:
        out.write(json.dumps(result.to_dict()) + '\n')
        count += 1
    return count


DUMPERS: Dict[str, Callable[[Decoder, TextIO], int]] = {
    'csv': dump_csv,
    'json': dump_json,
}


def get_dumper(name: str) -> Callable[[Decoder, TextIO], int]:
    try:
        return DUMPERS[name]
    except KeyError:
        raise UnsupportedMode(f"unsupported dumper: {name}") from None


def parse_csv_row(row: List[str]) -> Result:
    """Parse a row produced by dump_csv (as split by csv.reader)."""
    if len(row) != len(CSV_COLUMNS):
        raise DecodeError(f"expected {len(CSV_COLUMNS)} CSV columns, got {len(row)}")
    try:
        timestamp, code, latency, bytes_out, bytes_in = (int(value) for value in row[:5])
    except ValueError as e:
        raise DecodeError(f"bad CSV row {row!r}: {e}") from e
    return Result(
        timestamp=ns_to_datetime(timestamp),
        code=code,
        latency=ns_to_timedelta(latency),
        bytes_out=bytes_out,
        bytes_in=bytes_in,
        error=row[5],
    )


def parse_json_line(line: str) -> Result:
    """Parse a line produced by dump_json."""
    try:
        obj = json.loads(line)
        return Result(
            timestamp=parse_timestamp(obj['timestamp']),
            code=int(obj['code']),
            latency=ns_to_timedelta(int(obj['latency'])),
            bytes_out=int(obj.get('bytes_out', 0)),
            bytes_in=int(obj.get('bytes_in', 0)),
            error=str(obj.get('error') or ''),
        )
    except (ValueError, KeyError, TypeError) as e:
        raise DecodeError(f"bad JSON record {line.strip()!r}: {e}") from e


def read_dump(kind: str, lines: Iterable[str]) -> Iterable[Result]:
    """Yield Results from a CSV or JSON dump, skipping blank lines."""
    if kind == 'csv':
        for row in csv.reader(lines):
            if row:
                yield parse_csv_row(row)
    elif kind == 'json':
        for line in lines:
            if line.strip():
                yield parse_json_line(line)
    else:
        raise UnsupportedMode(f"unsupported dump format: {kind}")


def encode_dump(kind: str, lines: Iterable[str], encoder: Encoder) -> int:
    """Re-encode a CSV or JSON dump into the binary result stream."""
    count = 0
    for result in read_dump(kind, lines):
        encoder.encode(result)
        count += 1
    return count

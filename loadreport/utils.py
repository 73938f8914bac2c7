"""Utility functions for durations, timestamps and label formatting."""

import re
from datetime import datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from typing import Dict, List, Optional, Union

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

NANOS_PER_MICRO = 1_000
NANOS_PER_MILLI = 1_000_000
NANOS_PER_SECOND = 1_000_000_000

# Longer unit names first so 'ms' wins over 'm'
DURATION_UNITS = {
    'ns': 1,
    'us': NANOS_PER_MICRO,
    'µs': NANOS_PER_MICRO,  # U+00B5 micro sign
    'μs': NANOS_PER_MICRO,  # U+03BC greek mu
    'ms': NANOS_PER_MILLI,
    's': NANOS_PER_SECOND,
    'm': 60 * NANOS_PER_SECOND,
    'h': 3600 * NANOS_PER_SECOND,
}
DURATION_PART_PATTERN = re.compile(
    r'(\d+(?:\.\d*)?|\.\d+)(' + '|'.join(re.escape(unit) for unit in DURATION_UNITS) + r')'
)


def timedelta_to_ns(value: timedelta) -> int:
    """Convert a timedelta to integer nanoseconds without float rounding."""
    return (value.days * 86400 + value.seconds) * NANOS_PER_SECOND + value.microseconds * NANOS_PER_MICRO


def ns_to_timedelta(ns: int) -> timedelta:
    """Convert integer nanoseconds to a timedelta, truncating toward zero."""
    micros = abs(ns) // NANOS_PER_MICRO
    return timedelta(microseconds=micros if ns >= 0 else -micros)


def datetime_to_ns(value: datetime) -> int:
    """Nanoseconds since the Unix epoch. Naive datetimes are taken as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return timedelta_to_ns(value - EPOCH)


def ns_to_datetime(ns: int) -> datetime:
    return EPOCH + ns_to_timedelta(ns)


def format_timestamp(value: datetime) -> str:
    """Format a datetime as RFC 3339 in UTC with a 'Z' suffix."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace('+00:00', 'Z')


def parse_timestamp(text: str) -> datetime:
    """Parse an RFC 3339 timestamp. Digits beyond microseconds are dropped."""
    value = datetime.fromisoformat(text.strip())
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_duration_ns(text: str) -> int:
    """Parse a duration literal such as '100ms', '1.5s' or '1m30s' into nanoseconds.

    Supported units: ns, us (or µs), ms, s, m, h. A bare '0' is accepted.

    Raises:
        ValueError: if the text is not a valid duration.
    """
    value = text.strip()
    sign = 1
    if value[:1] in ('+', '-'):
        sign = -1 if value[0] == '-' else 1
        value = value[1:]
    if value == '0':
        return 0
    if not value:
        raise ValueError(f"invalid duration: {text!r}")

    total = Decimal(0)
    pos = 0
    while pos < len(value):
        match = DURATION_PART_PATTERN.match(value, pos)
        if not match:
            raise ValueError(f"invalid duration: {text!r}")
        try:
            total += Decimal(match.group(1)) * DURATION_UNITS[match.group(2)]
        except InvalidOperation as e:
            raise ValueError(f"invalid duration: {text!r}") from e
        pos = match.end()
    return sign * int(total)


def parse_duration(text: str) -> timedelta:
    return ns_to_timedelta(parse_duration_ns(text))


def _format_fraction(ns: int, unit: int) -> str:
    whole, rest = divmod(ns, unit)
    if not rest:
        return str(whole)
    digits = len(str(unit)) - 1
    return f"{whole}.{str(rest).rjust(digits, '0').rstrip('0')}"


def format_duration(value: Union[timedelta, int]) -> str:
    """Format a duration (timedelta or integer nanoseconds) compactly.

    Examples: 0s, 850ns, 1.5µs, 100ms, 2.25s, 1m30s, 1h0m0s.
    """
    ns = value if isinstance(value, int) else timedelta_to_ns(value)
    if ns == 0:
        return '0s'
    sign = '-' if ns < 0 else ''
    ns = abs(ns)

    if ns < NANOS_PER_MICRO:
        return f"{sign}{ns}ns"
    if ns < NANOS_PER_MILLI:
        return f"{sign}{_format_fraction(ns, NANOS_PER_MICRO)}µs"
    if ns < NANOS_PER_SECOND:
        return f"{sign}{_format_fraction(ns, NANOS_PER_MILLI)}ms"

    hours, rest = divmod(ns, 3600 * NANOS_PER_SECOND)
    minutes, rest = divmod(rest, 60 * NANOS_PER_SECOND)
    text = sign
    if hours:
        text += f"{hours}h"
    if hours or minutes:
        text += f"{minutes}m"
    return text + f"{_format_fraction(rest, NANOS_PER_SECOND)}s"


def format_bound_for_label(value: float) -> str:
    """Format a bucket bound in seconds for a Prometheus 'le' label.

    Always uses decimal notation (not scientific), with enough precision
    for nanosecond bounds.
    """
    return f"{value:.9f}".rstrip('0').rstrip('.')


def prepare_headers(remote_write_headers: Optional[List[str]]) -> Dict[str, str]:
    """Prepare headers dictionary from 'Key=Value' command-line arguments."""
    headers: Dict[str, str] = {}
    if remote_write_headers:
        for header in remote_write_headers:
            if '=' in header:
                key, value = header.split('=', 1)
                headers[key.strip()] = value.strip()
    return headers

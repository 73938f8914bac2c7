"""Exceptions raised while reading, aggregating and reporting results."""


class LoadReportError(Exception):
    """Base class for every error raised by loadreport."""


class EndOfStream(LoadReportError):
    """The result stream has no more records.

    Not a failure: reporters treat it as the signal for a clean shutdown.
    """


class DecodeError(LoadReportError):
    """A record in the stream is truncated or corrupt."""


class InvalidBuckets(LoadReportError, ValueError):
    """A histogram bucket list could not be parsed."""


class UnsupportedMode(LoadReportError, ValueError):
    """An unknown reporter or dumper was requested."""


class RemoteWriteError(LoadReportError):
    """A snapshot could not be pushed to the remote write endpoint."""

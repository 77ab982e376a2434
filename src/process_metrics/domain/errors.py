"""Metric store errors.

I/O failures are raised with the underlying ``OSError`` chained as
``__cause__``.  Decode failures carry the offending line so callers can report
it without re-reading the file.
"""

from __future__ import annotations

from typing import Optional


class MetricsError(Exception):
    """Base for metric store errors."""
    pass


class DirectoryCreationFailed(MetricsError):
    """The directory holding a metric file could not be created."""
    pass


class WriteFailed(MetricsError):
    """Appending an encoded record to a metric file failed."""
    pass


class ReadFailed(MetricsError):
    """A metric file exists but could not be read."""
    pass


class InvalidFieldValue(MetricsError, ValueError):
    """A value cannot be stored in a metric line (embedded delimiter, newline, bad id)."""
    pass


class MetricDecodeError(MetricsError):
    """Base for failures turning a stored line back into a record."""

    def __init__(self, message: str, line: Optional[str] = None):
        super().__init__(message)
        self.line = line


class MalformedRecord(MetricDecodeError):
    """Unknown variant tag or wrong number of fields."""
    pass


class MalformedTimestamp(MetricDecodeError):
    """The timestamp field is not ISO-8601."""
    pass


class UnknownMetricType(MetricDecodeError):
    """The metric type is not a member of ``MetricType``."""
    pass


class MalformedPayload(MetricDecodeError):
    """The payload/token or error field is not valid JSON, or cannot be serialised."""
    pass

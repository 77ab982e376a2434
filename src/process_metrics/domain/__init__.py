"""Domain layer: metric records and errors. No I/O."""

from .models import FlowNodeMetric, Metric, MetricType, ProcessModelMetric, as_utc, error_to_dict
from .errors import (
    DirectoryCreationFailed,
    InvalidFieldValue,
    MalformedPayload,
    MalformedRecord,
    MalformedTimestamp,
    MetricDecodeError,
    MetricsError,
    ReadFailed,
    UnknownMetricType,
    WriteFailed,
)

__all__ = [
    "FlowNodeMetric",
    "Metric",
    "MetricType",
    "ProcessModelMetric",
    "as_utc",
    "error_to_dict",
    "DirectoryCreationFailed",
    "InvalidFieldValue",
    "MalformedPayload",
    "MalformedRecord",
    "MalformedTimestamp",
    "MetricDecodeError",
    "MetricsError",
    "ReadFailed",
    "UnknownMetricType",
    "WriteFailed",
]

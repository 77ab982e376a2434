"""Domain models: MetricType and the two metric record variants. Pure data, no I/O."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, ClassVar, Dict, Optional, Union

from .errors import InvalidFieldValue, UnknownMetricType


class MetricType(str, Enum):
    """Measurement point an event was recorded at."""
    PROCESS_STARTED = "ProcessStarted"
    PROCESS_FINISHED = "ProcessFinished"
    PROCESS_ERROR = "ProcessError"
    PROCESS_TERMINATED = "ProcessTerminated"
    ON_ENTER = "OnEnter"
    ON_EXIT = "OnExit"
    ON_SUSPEND = "OnSuspend"
    ON_RESUME = "OnResume"
    ERROR = "Error"

    @classmethod
    def parse(cls, value: Union["MetricType", str]) -> "MetricType":
        """Return the member for *value*; raise ``UnknownMetricType`` for anything else."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise UnknownMetricType(f"Unknown metric type: {value!r}") from None


def as_utc(timestamp: datetime) -> datetime:
    """Attach UTC to naive timestamps and convert aware ones to UTC."""
    if timestamp.tzinfo is None:
        return timestamp.replace(tzinfo=timezone.utc)
    return timestamp.astimezone(timezone.utc)


def error_to_dict(error: Any) -> Optional[Dict[str, Any]]:
    """Normalise an exception, message or non-empty mapping to the stored error shape.

    Raises:
        InvalidFieldValue: *error* is empty or of any other type.
    """
    if error is None:
        return None
    if isinstance(error, BaseException):
        return {"name": type(error).__name__, "message": str(error)}
    if isinstance(error, str) and error:
        return {"message": error}
    if isinstance(error, Mapping) and error:
        return dict(error)
    raise InvalidFieldValue(f"error must be an exception, a message or a non-empty mapping: {error!r}")


@dataclass(frozen=True)
class ProcessModelMetric:
    """Event about a whole process model execution (started, finished, errored)."""
    kind: ClassVar[str] = "ProcessModel"

    timestamp: datetime
    correlation_id: str
    process_model_id: str
    metric_type: MetricType
    payload: Any = field(default_factory=dict)
    error: Optional[Dict[str, Any]] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "timestamp", as_utc(self.timestamp))
        object.__setattr__(self, "metric_type", MetricType.parse(self.metric_type))

    @property
    def flow_node_instance_id(self) -> str:
        return ""

    @property
    def flow_node_id(self) -> str:
        return ""


@dataclass(frozen=True)
class FlowNodeMetric:
    """Event about one flow node instance, carrying a snapshot of the process token."""
    kind: ClassVar[str] = "FlowNodeInstance"

    timestamp: datetime
    correlation_id: str
    process_model_id: str
    flow_node_instance_id: str
    flow_node_id: str
    metric_type: MetricType
    payload: Any = field(default_factory=dict)
    error: Optional[Dict[str, Any]] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "timestamp", as_utc(self.timestamp))
        object.__setattr__(self, "metric_type", MetricType.parse(self.metric_type))

    @property
    def token(self) -> Any:
        return self.payload


Metric = Union[ProcessModelMetric, FlowNodeMetric]

"""Metric line codec: one record <-> one ``;``-delimited line.

Line layout (fixed per variant, field 0 is the variant tag)::

    ProcessModel;<ts>;<correlation>;<process model>;;;<metric type>;<payload>[;<error>]
    FlowNodeInstance;<ts>;<correlation>;<process model>;<fni>;<fn>;<metric type>;<token>[;<error>]

The variant is chosen from the tag only; field count is then checked against
that variant's layout.  Payload, token and error are compact JSON with ``;``
written as the JSON escape ``\\u003b``, so they never contain the delimiter and
decode with a plain ``json.loads``.
"""

from __future__ import annotations

import json
from dataclasses import asdict, is_dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from process_metrics.config.constants import (
    FIELD_DELIMITER,
    FLOW_NODE_INSTANCE_TAG,
    PROCESS_MODEL_TAG,
    RECORD_FIELD_COUNT,
    RECORD_FIELD_COUNT_WITH_ERROR,
)
from process_metrics.domain import (
    FlowNodeMetric,
    InvalidFieldValue,
    MalformedPayload,
    MalformedRecord,
    MalformedTimestamp,
    Metric,
    MetricType,
    ProcessModelMetric,
    UnknownMetricType,
    as_utc,
)

_ESCAPED_DELIMITER = "\\u003b"


# ---------------------------------------------------------------------------
# Field helpers
# ---------------------------------------------------------------------------

def format_timestamp(timestamp: datetime) -> str:
    """UTC ISO-8601 with microseconds and a ``Z`` suffix."""
    return as_utc(timestamp).isoformat(timespec="microseconds").replace("+00:00", "Z")


def parse_timestamp(raw: str, line: Optional[str] = None) -> datetime:
    value = raw.strip()
    if value.endswith(("Z", "z")):
        value = value[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        raise MalformedTimestamp(f"Malformed timestamp: {raw!r}", line) from None
    return as_utc(parsed)


def _text_field(name: str, value: str) -> str:
    if not isinstance(value, str):
        raise InvalidFieldValue(f"{name} must be a string, got {type(value).__name__}")
    if FIELD_DELIMITER in value or "\n" in value or "\r" in value:
        raise InvalidFieldValue(f"{name} must not contain {FIELD_DELIMITER!r} or line breaks: {value!r}")
    return value


def _to_jsonable(value: Any) -> Any:
    """Turn pydantic models and dataclasses into plain JSON-compatible data."""
    if hasattr(value, "model_dump"):
        return value.model_dump(mode="json")
    if is_dataclass(value) and not isinstance(value, type):
        return asdict(value)
    return value


def _json_field(name: str, value: Any) -> str:
    try:
        text = json.dumps(_to_jsonable(value), ensure_ascii=False, separators=(",", ":"))
    except (TypeError, ValueError) as exc:
        raise MalformedPayload(f"{name} is not JSON-serialisable: {exc}") from exc
    # ';' can only occur inside JSON strings, where the escape is equivalent.
    # Raw line breaks never occur: json.dumps escapes them inside strings.
    return text.replace(FIELD_DELIMITER, _ESCAPED_DELIMITER)


def _parse_json_field(name: str, raw: str, line: Optional[str]) -> Any:
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        raise MalformedPayload(f"Malformed {name}: {exc.msg} at position {exc.pos}", line) from None


# ---------------------------------------------------------------------------
# Encode
# ---------------------------------------------------------------------------

def encode_fields(metric: Metric) -> List[str]:
    """Return the ordered fields of *metric* (without delimiter or newline)."""
    if isinstance(metric, FlowNodeMetric):
        tag = FLOW_NODE_INSTANCE_TAG
        flow_node_instance_id = _text_field("flow_node_instance_id", metric.flow_node_instance_id)
        flow_node_id = _text_field("flow_node_id", metric.flow_node_id)
    elif isinstance(metric, ProcessModelMetric):
        tag = PROCESS_MODEL_TAG
        flow_node_instance_id = flow_node_id = ""
    else:
        raise TypeError(f"Not a metric record: {type(metric).__name__}")

    payload = _json_field("payload", metric.payload)
    fields = [
        tag,
        format_timestamp(metric.timestamp),
        _text_field("correlation_id", metric.correlation_id),
        _text_field("process_model_id", metric.process_model_id),
        flow_node_instance_id,
        flow_node_id,
        metric.metric_type.value,
        payload,
    ]
    if metric.error is not None:
        fields.append(_json_field("error", metric.error))
    return fields


def encode_metric(metric: Metric) -> str:
    """Encode *metric* as one newline-terminated line."""
    return FIELD_DELIMITER.join(encode_fields(metric)) + "\n"


# ---------------------------------------------------------------------------
# Decode
# ---------------------------------------------------------------------------

def decode_metric(line: str) -> Metric:
    """Decode one stored line into a ``ProcessModelMetric`` or ``FlowNodeMetric``.

    Raises:
        MalformedRecord: Unknown tag, wrong number of fields, or bytes that were
            not valid UTF-8 (read with ``surrogateescape``).
        MalformedTimestamp: Timestamp is not ISO-8601.
        UnknownMetricType: Metric type is not a ``MetricType`` value.
        MalformedPayload: Payload/token or error is not valid JSON.
    """
    raw = line.rstrip("\r\n")
    try:
        raw.encode("utf-8")
    except UnicodeEncodeError:
        raise MalformedRecord("Record is not valid UTF-8", line) from None
    parts = raw.split(FIELD_DELIMITER)
    tag = parts[0]

    if tag not in (PROCESS_MODEL_TAG, FLOW_NODE_INSTANCE_TAG):
        raise MalformedRecord(f"Unknown record tag: {tag!r}", line)
    if len(parts) not in (RECORD_FIELD_COUNT, RECORD_FIELD_COUNT_WITH_ERROR):
        raise MalformedRecord(
            f"{tag} record has {len(parts)} fields, expected "
            f"{RECORD_FIELD_COUNT} or {RECORD_FIELD_COUNT_WITH_ERROR}",
            line,
        )

    (_, raw_ts, correlation_id, process_model_id,
     flow_node_instance_id, flow_node_id, raw_type, raw_payload) = parts[:RECORD_FIELD_COUNT]

    if tag == PROCESS_MODEL_TAG and (flow_node_instance_id or flow_node_id):
        raise MalformedRecord(f"{tag} record carries flow node fields", line)

    timestamp = parse_timestamp(raw_ts, line)
    try:
        metric_type = MetricType.parse(raw_type)
    except UnknownMetricType as exc:
        raise UnknownMetricType(str(exc), line) from None
    payload = _parse_json_field("payload", raw_payload, line)

    error: Optional[Dict[str, Any]] = None
    if len(parts) == RECORD_FIELD_COUNT_WITH_ERROR:
        error = _parse_json_field("error", parts[RECORD_FIELD_COUNT], line)

    if tag == FLOW_NODE_INSTANCE_TAG:
        return FlowNodeMetric(
            timestamp=timestamp,
            correlation_id=correlation_id,
            process_model_id=process_model_id,
            flow_node_instance_id=flow_node_instance_id,
            flow_node_id=flow_node_id,
            metric_type=metric_type,
            payload=payload,
            error=error,
        )
    return ProcessModelMetric(
        timestamp=timestamp,
        correlation_id=correlation_id,
        process_model_id=process_model_id,
        metric_type=metric_type,
        payload=payload,
        error=error,
    )

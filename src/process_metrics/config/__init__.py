"""Configuration: schema, loading from env/file, and file format constants."""

from .schema import DEFAULT_CONFIG, MetricsConfig
from .loader import load_config
from .constants import (
    METRIC_FILE_EXTENSION,
    FIELD_DELIMITER,
    PROCESS_MODEL_TAG,
    FLOW_NODE_INSTANCE_TAG,
    RECORD_FIELD_COUNT,
    RECORD_FIELD_COUNT_WITH_ERROR,
    LOG_FILE_NAME,
)

__all__ = [
    "DEFAULT_CONFIG", "MetricsConfig", "load_config",
    "METRIC_FILE_EXTENSION", "FIELD_DELIMITER",
    "PROCESS_MODEL_TAG", "FLOW_NODE_INSTANCE_TAG",
    "RECORD_FIELD_COUNT", "RECORD_FIELD_COUNT_WITH_ERROR",
    "LOG_FILE_NAME",
]

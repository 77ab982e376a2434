"""Named constants of the metric file format.

These values are part of the on-disk format: changing any of them makes
existing ``.met`` files unreadable.
"""

from __future__ import annotations

# One file per process model id: ``{output_path}/{process_model_id}.met``.
METRIC_FILE_EXTENSION: str = ".met"

# Separates fields within a line.  JSON fields escape it as \u003b.
FIELD_DELIMITER: str = ";"

# First field of every line; selects the field layout of the rest.
PROCESS_MODEL_TAG: str = "ProcessModel"
FLOW_NODE_INSTANCE_TAG: str = "FlowNodeInstance"

# Fields per line without / with the trailing error field.
RECORD_FIELD_COUNT: int = 8
RECORD_FIELD_COUNT_WITH_ERROR: int = 9

# File name used by the CLI when log_output_path is configured.
LOG_FILE_NAME: str = "process-metrics.log"

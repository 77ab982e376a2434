"""File-system metrics repository: one append-only ``.met`` file per process model.

Implements the ``MetricsRepository`` port.  Every write opens, appends and
releases the file within the call, so sequential awaited writes to one process
model land in the order they were issued.  Concurrent un-awaited writes to the
same file are not serialised here.  Nothing is cached: each read re-parses the
file from disk.
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, List, Optional, Union

from process_metrics.application.ports import FileSystem
from process_metrics.config import DEFAULT_CONFIG, METRIC_FILE_EXTENSION, MetricsConfig
from process_metrics.domain import (
    DirectoryCreationFailed,
    FlowNodeMetric,
    InvalidFieldValue,
    Metric,
    MetricDecodeError,
    MetricType,
    ProcessModelMetric,
    ReadFailed,
    WriteFailed,
    error_to_dict,
)

from .codec import decode_metric, encode_metric
from .file_system import LocalFileSystem

logger = logging.getLogger(__name__)


def _usable_as_file_name(process_model_id: str) -> bool:
    if not process_model_id or process_model_id in (".", ".."):
        return False
    return not any(ch in process_model_id for ch in ("/", "\\", "\x00"))


class FileSystemMetricsRepository:
    """Appends metric lines to ``{output_path}/{process_model_id}.met`` and reads them back."""

    def __init__(self, config: MetricsConfig = DEFAULT_CONFIG, file_system: Optional[FileSystem] = None):
        self._config = config
        self._output_root = config.resolved_output_path()
        self._fs: FileSystem = file_system or LocalFileSystem()

    @property
    def config(self) -> MetricsConfig:
        return self._config

    @property
    def output_root(self) -> Path:
        return self._output_root

    def metric_file_path(self, process_model_id: str) -> Path:
        """Path of the metric file for *process_model_id*.

        Raises:
            InvalidFieldValue: The id cannot be used as a single file name.
        """
        if not _usable_as_file_name(process_model_id):
            raise InvalidFieldValue(f"process_model_id cannot be used as a file name: {process_model_id!r}")
        return self._output_root / f"{process_model_id}{METRIC_FILE_EXTENSION}"

    # ------------------------------------------------------------------
    # Write path
    # ------------------------------------------------------------------

    async def write_metric_for_process_model(
        self,
        correlation_id: str,
        process_model_id: str,
        metric_type: Union[MetricType, str],
        timestamp: datetime,
        error: Optional[Any] = None,
    ) -> None:
        metric = ProcessModelMetric(
            timestamp=timestamp,
            correlation_id=correlation_id,
            process_model_id=process_model_id,
            metric_type=MetricType.parse(metric_type),
            error=error_to_dict(error),
        )
        await self.append_metric(metric)

    async def write_metric_for_flow_node(
        self,
        correlation_id: str,
        process_model_id: str,
        flow_node_instance_id: str,
        flow_node_id: str,
        metric_type: Union[MetricType, str],
        token: Any,
        timestamp: datetime,
        error: Optional[Any] = None,
    ) -> None:
        metric = FlowNodeMetric(
            timestamp=timestamp,
            correlation_id=correlation_id,
            process_model_id=process_model_id,
            flow_node_instance_id=flow_node_instance_id,
            flow_node_id=flow_node_id,
            metric_type=MetricType.parse(metric_type),
            payload=token,
            error=error_to_dict(error),
        )
        await self.append_metric(metric)

    async def append_metric(self, metric: Metric) -> None:
        """Encode *metric* and append it to its process model's file.

        Encoding happens before any I/O, so a record that cannot be encoded
        leaves the file untouched.

        Raises:
            DirectoryCreationFailed: The output directory could not be created.
            WriteFailed: The append itself failed.
        """
        target = self.metric_file_path(metric.process_model_id)
        line = encode_metric(metric)

        try:
            await self._fs.ensure_directory(target.parent)
        except OSError as exc:
            raise DirectoryCreationFailed(f"Cannot create metrics directory {target.parent}: {exc}") from exc

        try:
            await self._fs.append_line(target, line)
        except OSError as exc:
            raise WriteFailed(f"Cannot append metric to {target}: {exc}") from exc

        logger.debug(
            "Appended %s metric %s for process model %s (correlation %s)",
            metric.kind, metric.metric_type.value, metric.process_model_id, metric.correlation_id,
        )

    # ------------------------------------------------------------------
    # Read path
    # ------------------------------------------------------------------

    async def read_metrics_for_process_model(self, process_model_id: str) -> List[Metric]:
        """Return all records for *process_model_id* in write order.

        Returns ``[]`` when the process model has no metric file yet.

        Raises:
            ReadFailed: The file exists but cannot be read.
            MetricDecodeError: A line cannot be decoded and
                ``on_malformed_line`` is ``"fail"``.
        """
        path = self.metric_file_path(process_model_id)
        if not await self._fs.exists(path):
            return []
        return await self._read_file(path)

    async def list_process_models(self) -> List[str]:
        """Ids of all process models that have a metric file, sorted.

        Stray files whose stem is not a usable id (``..met``, ``...met``) are ignored.
        """
        try:
            names = await self._fs.list_directory(self._output_root)
        except OSError as exc:
            raise ReadFailed(f"Cannot list metrics directory {self._output_root}: {exc}") from exc
        stems = [name[: -len(METRIC_FILE_EXTENSION)] for name in names if name.endswith(METRIC_FILE_EXTENSION)]
        return [stem for stem in stems if _usable_as_file_name(stem)]

    async def read_all_metrics(self) -> List[Metric]:
        """Every record in every metric file: file name order, then line order."""
        metrics: List[Metric] = []
        for process_model_id in await self.list_process_models():
            metrics.extend(await self._read_file(self.metric_file_path(process_model_id)))
        return metrics

    async def _read_file(self, path: Path) -> List[Metric]:
        try:
            content = await self._fs.read_whole_file(path)
        except (OSError, UnicodeDecodeError) as exc:
            raise ReadFailed(f"Cannot read metric file {path}: {exc}") from exc

        skip_malformed = self._config.on_malformed_line == "skip"
        metrics: List[Metric] = []
        # Split on "\n" only: JSON fields may legitimately hold other Unicode line separators.
        for line_no, line in enumerate(content.split("\n"), start=1):
            if not line.strip():
                continue
            try:
                metrics.append(decode_metric(line))
            except MetricDecodeError as exc:
                if not skip_malformed:
                    raise
                logger.warning("Skipping malformed metric in %s line %d: %s", path, line_no, exc)

        logger.debug("Read %d metrics from %s", len(metrics), path)
        return metrics

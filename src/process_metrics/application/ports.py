"""Ports (abstract interfaces) between the workflow engine and the metric store.

Each port is a ``Protocol`` so callers depend only on the *shape* of the
collaborator.  ``FileSystemMetricsRepository`` satisfies ``MetricsRepository``;
``LocalFileSystem`` satisfies ``FileSystem``.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Any, List, Optional, Protocol, Union

from process_metrics.domain import Metric, MetricType


class MetricsRepository(Protocol):
    """Append metrics for process models and flow nodes; read them back per process model."""

    async def write_metric_for_process_model(
        self,
        correlation_id: str,
        process_model_id: str,
        metric_type: Union[MetricType, str],
        timestamp: datetime,
        error: Optional[Any] = None,
    ) -> None: ...

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
    ) -> None: ...

    async def read_metrics_for_process_model(self, process_model_id: str) -> List[Metric]:
        """Return every record for *process_model_id* in write order; ``[]`` when none exist."""
        ...


class FileSystem(Protocol):
    """Directory and file primitives the metric store is built on.

    Implementations raise ``OSError`` on failure; the repository translates
    those into ``MetricsError`` subclasses.
    """

    async def exists(self, path: Path) -> bool: ...

    async def ensure_directory(self, path: Path) -> None:
        """Create *path* and any missing parents; no-op when it exists."""
        ...

    async def append_line(self, path: Path, text: str) -> None:
        """Append *text* (newline-terminated) to *path* in a single write."""
        ...

    async def read_whole_file(self, path: Path) -> str: ...

    async def list_directory(self, path: Path) -> List[str]:
        """Sorted entry names in *path*; ``[]`` when the directory does not exist."""
        ...

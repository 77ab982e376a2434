"""Summarise stored metrics per process model.

Read-only view over the repository used by the ``list`` CLI command; it never
writes and holds no state between calls.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Sequence

from process_metrics.domain import FlowNodeMetric, Metric

from .repository import FileSystemMetricsRepository


@dataclass
class ProcessModelSummary:
    """Lightweight summary of one process model's metric file."""
    process_model_id: str
    metric_count: int
    flow_node_metric_count: int
    error_count: int
    first_timestamp: Optional[datetime]
    last_timestamp: Optional[datetime]
    correlation_ids: List[str] = field(default_factory=list)  # in first-seen order


def summarise_metrics(process_model_id: str, metrics: Sequence[Metric]) -> ProcessModelSummary:
    """Build a ``ProcessModelSummary`` from records already read from disk."""
    correlation_ids: List[str] = []
    for metric in metrics:
        if metric.correlation_id not in correlation_ids:
            correlation_ids.append(metric.correlation_id)

    timestamps = [m.timestamp for m in metrics]
    return ProcessModelSummary(
        process_model_id=process_model_id,
        metric_count=len(metrics),
        flow_node_metric_count=sum(1 for m in metrics if isinstance(m, FlowNodeMetric)),
        error_count=sum(1 for m in metrics if m.error is not None),
        first_timestamp=min(timestamps) if timestamps else None,
        last_timestamp=max(timestamps) if timestamps else None,
        correlation_ids=correlation_ids,
    )


async def list_process_model_summaries(repository: FileSystemMetricsRepository) -> List[ProcessModelSummary]:
    """One summary per process model with a metric file, sorted by id."""
    summaries: List[ProcessModelSummary] = []
    for process_model_id in await repository.list_process_models():
        metrics = await repository.read_metrics_for_process_model(process_model_id)
        summaries.append(summarise_metrics(process_model_id, metrics))
    return summaries

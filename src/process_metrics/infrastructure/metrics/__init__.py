from .codec import decode_metric, encode_metric
from .file_system import LocalFileSystem
from .reader import ProcessModelSummary, list_process_model_summaries, summarise_metrics
from .repository import FileSystemMetricsRepository

__all__ = [
    "decode_metric",
    "encode_metric",
    "LocalFileSystem",
    "FileSystemMetricsRepository",
    "ProcessModelSummary",
    "list_process_model_summaries",
    "summarise_metrics",
]

"""Pytest fixtures and helpers for process-metrics tests."""
from __future__ import annotations

import pytest

from process_metrics.config import MetricsConfig
from process_metrics.config import loader as config_loader
from process_metrics.infrastructure.metrics import FileSystemMetricsRepository


@pytest.fixture
def metrics_dir(tmp_path):
    return tmp_path / "metrics"


@pytest.fixture
def repository(metrics_dir):
    return FileSystemMetricsRepository(MetricsConfig(output_path=str(metrics_dir)))


@pytest.fixture(autouse=True)
def _fresh_config(monkeypatch):
    """Each test sees its own PROCESS_METRICS_* environment."""
    monkeypatch.delenv("PROCESS_METRICS_CONFIG_PATH", raising=False)
    monkeypatch.setattr(config_loader, "_env", None)
    config_loader.load_config.cache_clear()
    yield
    config_loader.load_config.cache_clear()

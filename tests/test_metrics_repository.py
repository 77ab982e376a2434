"""Tests for FileSystemMetricsRepository (write path, read path, failure mapping)."""
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import List

import pytest

from process_metrics.config import MetricsConfig
from process_metrics.domain import (
    DirectoryCreationFailed,
    FlowNodeMetric,
    InvalidFieldValue,
    MalformedPayload,
    MalformedRecord,
    MetricType,
    ProcessModelMetric,
    ReadFailed,
    UnknownMetricType,
    WriteFailed,
)
from process_metrics.infrastructure.metrics import FileSystemMetricsRepository, LocalFileSystem

T0 = datetime(2024, 5, 1, 12, 30, 15, 123456, tzinfo=timezone.utc)

VALID_LINE = "ProcessModel;2024-05-01T12:30:15Z;corr-1;pm-1;;;ProcessStarted;{}"


class _FailingFileSystem(LocalFileSystem):
    """LocalFileSystem with one primitive replaced by an OSError."""

    def __init__(self, failing: str):
        self._failing = failing

    async def ensure_directory(self, path: Path) -> None:
        if self._failing == "mkdir":
            raise PermissionError(13, "Permission denied", str(path))
        await super().ensure_directory(path)

    async def append_line(self, path: Path, text: str) -> None:
        if self._failing == "append":
            raise OSError(28, "No space left on device", str(path))
        await super().append_line(path, text)

    async def read_whole_file(self, path: Path) -> str:
        if self._failing == "read":
            raise PermissionError(13, "Permission denied", str(path))
        if self._failing == "decode":
            raise UnicodeDecodeError("utf-8", b"\xff", 0, 1, "invalid start byte")
        return await super().read_whole_file(path)


def _repo(metrics_dir: Path, **config) -> FileSystemMetricsRepository:
    return FileSystemMetricsRepository(MetricsConfig(output_path=str(metrics_dir), **config))


# ---------------------------------------------------------------------------
# read: absent file
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_read_without_writes_returns_empty(repository):
    assert await repository.read_metrics_for_process_model("never-written") == []


@pytest.mark.asyncio
async def test_read_without_output_directory_returns_empty(repository, metrics_dir):
    assert not metrics_dir.exists()
    assert await repository.read_metrics_for_process_model("pm-1") == []


# ---------------------------------------------------------------------------
# write + read
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_write_process_model_metric_then_read(repository):
    await repository.write_metric_for_process_model("corr-1", "pm-1", "ProcessStarted", T0)

    metrics = await repository.read_metrics_for_process_model("pm-1")
    assert len(metrics) == 1
    metric = metrics[0]
    assert isinstance(metric, ProcessModelMetric)
    assert metric.process_model_id == "pm-1"
    assert metric.correlation_id == "corr-1"
    assert metric.metric_type is MetricType.PROCESS_STARTED
    assert metric.flow_node_id == ""
    assert metric.payload == {}
    assert metric.error is None
    assert metric.timestamp == T0


@pytest.mark.asyncio
async def test_write_creates_directory_and_met_file(repository, metrics_dir):
    await repository.write_metric_for_process_model("corr-1", "pm-1", MetricType.PROCESS_STARTED, T0)
    path = metrics_dir / "pm-1.met"
    assert path.is_file()
    assert path.read_text(encoding="utf-8") == (
        "ProcessModel;2024-05-01T12:30:15.123456Z;corr-1;pm-1;;;ProcessStarted;{}\n"
    )


@pytest.mark.asyncio
async def test_n_writes_are_read_back_in_write_order(repository):
    for i in range(10):
        await repository.write_metric_for_flow_node(
            "corr-1", "pm-1", f"fni-{i}", f"Task_{i}", MetricType.ON_ENTER,
            {"step": i}, T0 + timedelta(seconds=i),
        )

    metrics = await repository.read_metrics_for_process_model("pm-1")
    assert [m.flow_node_instance_id for m in metrics] == [f"fni-{i}" for i in range(10)]
    assert [m.payload for m in metrics] == [{"step": i} for i in range(10)]


@pytest.mark.asyncio
async def test_interleaved_variants_keep_order_and_type(repository):
    await repository.write_metric_for_process_model("corr-1", "pm-1", MetricType.PROCESS_STARTED, T0)
    await repository.write_metric_for_flow_node(
        "corr-1", "pm-1", "fni-1", "StartEvent_1", MetricType.ON_EXIT,
        {"current": None}, T0 + timedelta(milliseconds=5),
    )

    first, second = await repository.read_metrics_for_process_model("pm-1")
    assert isinstance(first, ProcessModelMetric)
    assert isinstance(second, FlowNodeMetric)
    assert second.flow_node_id == "StartEvent_1"
    assert second.token == {"current": None}


@pytest.mark.asyncio
async def test_write_with_exception_stores_error(repository):
    await repository.write_metric_for_process_model(
        "corr-1", "pm-1", MetricType.PROCESS_ERROR, T0, error=RuntimeError("gateway timed out"),
    )
    await repository.write_metric_for_process_model("corr-2", "pm-1", MetricType.PROCESS_FINISHED, T0)

    errored, finished = await repository.read_metrics_for_process_model("pm-1")
    assert errored.error == {"name": "RuntimeError", "message": "gateway timed out"}
    assert finished.error is None


@pytest.mark.asyncio
async def test_write_flow_node_with_mapping_error(repository):
    await repository.write_metric_for_flow_node(
        "corr-1", "pm-1", "fni-1", "Task_1", "Error", {}, T0, error={"code": 500, "message": "x"},
    )
    (metric,) = await repository.read_metrics_for_process_model("pm-1")
    assert metric.metric_type is MetricType.ERROR
    assert metric.error == {"code": 500, "message": "x"}


@pytest.mark.parametrize("error", [{}, "", 42, ["boom"]])
@pytest.mark.asyncio
async def test_empty_or_unsupported_error_is_rejected(repository, metrics_dir, error):
    with pytest.raises(InvalidFieldValue):
        await repository.write_metric_for_process_model(
            "corr-1", "pm-1", MetricType.PROCESS_ERROR, T0, error=error,
        )
    assert not (metrics_dir / "pm-1.met").exists()


@pytest.mark.asyncio
async def test_process_models_are_stored_separately(repository, metrics_dir):
    await repository.write_metric_for_process_model("corr-1", "pm-a", MetricType.PROCESS_STARTED, T0)
    await repository.write_metric_for_process_model("corr-1", "pm-b", MetricType.PROCESS_STARTED, T0)

    assert sorted(p.name for p in metrics_dir.iterdir()) == ["pm-a.met", "pm-b.met"]
    assert len(await repository.read_metrics_for_process_model("pm-a")) == 1


@pytest.mark.asyncio
async def test_reads_are_not_cached(repository):
    await repository.write_metric_for_process_model("corr-1", "pm-1", MetricType.PROCESS_STARTED, T0)
    assert len(await repository.read_metrics_for_process_model("pm-1")) == 1
    await repository.write_metric_for_process_model("corr-1", "pm-1", MetricType.PROCESS_FINISHED, T0)
    assert len(await repository.read_metrics_for_process_model("pm-1")) == 2


@pytest.mark.asyncio
async def test_read_ignores_blank_lines(repository, metrics_dir):
    metrics_dir.mkdir(parents=True)
    (metrics_dir / "pm-1.met").write_text(f"\n{VALID_LINE}\n\n   \n{VALID_LINE}\n", encoding="utf-8")
    assert len(await repository.read_metrics_for_process_model("pm-1")) == 2


# ---------------------------------------------------------------------------
# write validation
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_unknown_metric_type_string_is_rejected(repository, metrics_dir):
    with pytest.raises(UnknownMetricType):
        await repository.write_metric_for_process_model("corr-1", "pm-1", "ProcessExploded", T0)
    assert not (metrics_dir / "pm-1.met").exists()


@pytest.mark.parametrize("process_model_id", ["", ".", "..", "a/b", "..\\escape"])
@pytest.mark.asyncio
async def test_unusable_process_model_ids_are_rejected(repository, process_model_id):
    with pytest.raises(InvalidFieldValue):
        await repository.write_metric_for_process_model("corr-1", process_model_id, "ProcessStarted", T0)


@pytest.mark.asyncio
async def test_unencodable_record_leaves_file_untouched(repository, metrics_dir):
    await repository.write_metric_for_process_model("corr-1", "pm-1", MetricType.PROCESS_STARTED, T0)
    before = (metrics_dir / "pm-1.met").read_text(encoding="utf-8")

    with pytest.raises(MalformedPayload):
        await repository.write_metric_for_flow_node(
            "corr-1", "pm-1", "fni", "fn", MetricType.ON_ENTER, {"bad": {1, 2}}, T0,
        )
    with pytest.raises(InvalidFieldValue):
        await repository.write_metric_for_process_model("corr;1", "pm-1", MetricType.PROCESS_STARTED, T0)

    assert (metrics_dir / "pm-1.met").read_text(encoding="utf-8") == before


# ---------------------------------------------------------------------------
# I/O failures
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_directory_creation_failure(metrics_dir):
    repo = FileSystemMetricsRepository(
        MetricsConfig(output_path=str(metrics_dir)), file_system=_FailingFileSystem("mkdir"),
    )
    with pytest.raises(DirectoryCreationFailed) as excinfo:
        await repo.write_metric_for_process_model("corr-1", "pm-1", MetricType.PROCESS_STARTED, T0)
    assert isinstance(excinfo.value.__cause__, PermissionError)


@pytest.mark.asyncio
async def test_append_failure_does_not_corrupt_previous_lines(metrics_dir):
    good = _repo(metrics_dir)
    await good.write_metric_for_process_model("corr-1", "pm-1", MetricType.PROCESS_STARTED, T0)

    failing = FileSystemMetricsRepository(good.config, file_system=_FailingFileSystem("append"))
    with pytest.raises(WriteFailed) as excinfo:
        await failing.write_metric_for_process_model("corr-1", "pm-1", MetricType.PROCESS_FINISHED, T0)
    assert isinstance(excinfo.value.__cause__, OSError)

    metrics = await good.read_metrics_for_process_model("pm-1")
    assert [m.metric_type for m in metrics] == [MetricType.PROCESS_STARTED]


@pytest.mark.asyncio
async def test_unreadable_file_raises_read_failed(metrics_dir):
    good = _repo(metrics_dir)
    await good.write_metric_for_process_model("corr-1", "pm-1", MetricType.PROCESS_STARTED, T0)

    failing = FileSystemMetricsRepository(good.config, file_system=_FailingFileSystem("read"))
    with pytest.raises(ReadFailed):
        await failing.read_metrics_for_process_model("pm-1")


@pytest.mark.asyncio
async def test_output_path_that_is_a_file_raises_directory_creation_failed(tmp_path):
    blocker = tmp_path / "metrics"
    blocker.write_text("not a directory", encoding="utf-8")
    repo = _repo(blocker)
    with pytest.raises(DirectoryCreationFailed) as excinfo:
        await repo.write_metric_for_process_model("corr-1", "pm-1", MetricType.PROCESS_STARTED, T0)
    assert isinstance(excinfo.value.__cause__, FileExistsError)
    assert blocker.read_text(encoding="utf-8") == "not a directory"


@pytest.mark.asyncio
async def test_undecodable_content_raises_read_failed(metrics_dir):
    good = _repo(metrics_dir)
    await good.write_metric_for_process_model("corr-1", "pm-1", MetricType.PROCESS_STARTED, T0)

    failing = FileSystemMetricsRepository(good.config, file_system=_FailingFileSystem("decode"))
    with pytest.raises(ReadFailed) as excinfo:
        await failing.read_metrics_for_process_model("pm-1")
    assert isinstance(excinfo.value.__cause__, UnicodeDecodeError)


# ---------------------------------------------------------------------------
# malformed lines: fail vs skip
# ---------------------------------------------------------------------------

def _write_mixed_file(metrics_dir: Path) -> None:
    metrics_dir.mkdir(parents=True, exist_ok=True)
    lines: List[str] = [
        VALID_LINE,
        "ProcessModel;2024-05-01T12:30:15Z;corr-1;pm-1;;;NoSuchType;{}",
        VALID_LINE.replace("ProcessStarted", "ProcessFinished"),
    ]
    (metrics_dir / "pm-1.met").write_text("\n".join(lines) + "\n", encoding="utf-8")


@pytest.mark.asyncio
async def test_fail_policy_aborts_on_first_malformed_line(repository, metrics_dir):
    _write_mixed_file(metrics_dir)
    with pytest.raises(UnknownMetricType):
        await repository.read_metrics_for_process_model("pm-1")


@pytest.mark.asyncio
async def test_skip_policy_returns_valid_records_and_warns(metrics_dir, caplog):
    _write_mixed_file(metrics_dir)
    repo = _repo(metrics_dir, on_malformed_line="skip")

    with caplog.at_level(logging.WARNING, logger="process_metrics"):
        metrics = await repo.read_metrics_for_process_model("pm-1")

    assert [m.metric_type for m in metrics] == [MetricType.PROCESS_STARTED, MetricType.PROCESS_FINISHED]
    assert any("line 2" in r.getMessage() for r in caplog.records)


def _write_file_with_invalid_utf8(metrics_dir: Path) -> None:
    metrics_dir.mkdir(parents=True, exist_ok=True)
    line = VALID_LINE.encode("utf-8") + b"\n"
    (metrics_dir / "pm-1.met").write_bytes(line + b"\xff\xfe garbage\n" + line)


@pytest.mark.asyncio
async def test_fail_policy_rejects_invalid_utf8_line(repository, metrics_dir):
    _write_file_with_invalid_utf8(metrics_dir)
    with pytest.raises(MalformedRecord, match="UTF-8"):
        await repository.read_metrics_for_process_model("pm-1")


@pytest.mark.asyncio
async def test_skip_policy_drops_only_the_invalid_utf8_line(metrics_dir, caplog):
    _write_file_with_invalid_utf8(metrics_dir)
    repo = _repo(metrics_dir, on_malformed_line="skip")

    with caplog.at_level(logging.WARNING, logger="process_metrics"):
        metrics = await repo.read_metrics_for_process_model("pm-1")

    assert [m.metric_type for m in metrics] == [MetricType.PROCESS_STARTED, MetricType.PROCESS_STARTED]
    assert any("line 2" in r.getMessage() for r in caplog.records)


# ---------------------------------------------------------------------------
# directory-wide reads
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_list_process_models(repository, metrics_dir):
    assert await repository.list_process_models() == []
    await repository.write_metric_for_process_model("c", "zeta", MetricType.PROCESS_STARTED, T0)
    await repository.write_metric_for_process_model("c", "alpha", MetricType.PROCESS_STARTED, T0)
    (metrics_dir / "notes.txt").write_text("ignored", encoding="utf-8")

    assert await repository.list_process_models() == ["alpha", "zeta"]


@pytest.mark.asyncio
async def test_stray_dot_met_files_are_ignored(repository, metrics_dir):
    await repository.write_metric_for_process_model("c", "pm-1", MetricType.PROCESS_STARTED, T0)
    (metrics_dir / "..met").write_text("", encoding="utf-8")
    (metrics_dir / "...met").write_text("", encoding="utf-8")
    (metrics_dir / ".met").write_text("", encoding="utf-8")

    assert await repository.list_process_models() == ["pm-1"]
    metrics = await repository.read_all_metrics()
    assert [m.process_model_id for m in metrics] == ["pm-1"]


@pytest.mark.asyncio
async def test_read_all_metrics_orders_by_file_then_line(repository):
    await repository.write_metric_for_process_model("c", "b", MetricType.PROCESS_STARTED, T0)
    await repository.write_metric_for_process_model("c", "a", MetricType.PROCESS_STARTED, T0)
    await repository.write_metric_for_process_model("c", "a", MetricType.PROCESS_FINISHED, T0)

    metrics = await repository.read_all_metrics()
    assert [(m.process_model_id, m.metric_type.value) for m in metrics] == [
        ("a", "ProcessStarted"), ("a", "ProcessFinished"), ("b", "ProcessStarted"),
    ]


def test_relative_output_path_resolves_against_cwd(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    repo = FileSystemMetricsRepository(MetricsConfig(output_path="out/metrics"))
    assert repo.metric_file_path("pm-1") == tmp_path / "out" / "metrics" / "pm-1.met"

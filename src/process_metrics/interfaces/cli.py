"""CLI: Typer app over FileSystemMetricsRepository."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import typer
from rich import print as rprint
from rich.console import Console
from rich.table import Table

from process_metrics.config import LOG_FILE_NAME, MetricsConfig, load_config
from process_metrics.domain import MetricsError, MetricType
from process_metrics.infrastructure.metrics import FileSystemMetricsRepository, list_process_model_summaries

app = typer.Typer(help="process-metrics: inspect and append workflow engine metric logs (.met files).")

_METRIC_TYPES = ", ".join(m.value for m in MetricType)


def _configure_logging(config: MetricsConfig, verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    if config.log_output_path:
        log_dir = Path(config.log_output_path).expanduser()
        log_dir.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(log_dir / LOG_FILE_NAME, encoding="utf-8")
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
        handler.setLevel(logging.DEBUG if verbose else logging.INFO)
        logging.getLogger("process_metrics").addHandler(handler)


def _repository(output: str, verbose: bool) -> FileSystemMetricsRepository:
    config = load_config()
    if output:
        config = config.model_copy(update={"output_path": output})
    _configure_logging(config, verbose)
    return FileSystemMetricsRepository(config)


def _format_ts(ts: Optional[datetime]) -> str:
    return ts.strftime("%Y-%m-%d %H:%M:%S") if ts is not None else "—"


_OUTPUT_OPTION = typer.Option("", "--output", "-o", help="Metrics directory (default: output_path from config).")
_VERBOSE_OPTION = typer.Option(False, "--verbose", "-v", help="Enable verbose (DEBUG) logging to stderr.")


@app.command("list")
def list_cmd(output: str = _OUTPUT_OPTION, verbose: bool = _VERBOSE_OPTION) -> None:
    """List process models that have metrics."""
    repository = _repository(output, verbose)
    try:
        summaries = asyncio.run(list_process_model_summaries(repository))
    except MetricsError as e:
        rprint(f"[red]{e}[/red]")
        sys.exit(1)

    if not summaries:
        rprint(f"[dim]No metrics found in {repository.output_root}[/dim]")
        return

    table = Table(title=f"Process models ({repository.output_root})", show_header=True, header_style="bold")
    table.add_column("Process model", style="cyan", no_wrap=True)
    table.add_column("Metrics", justify="right")
    table.add_column("Flow node", justify="right")
    table.add_column("Errors", justify="right", style="red")
    table.add_column("First", style="dim")
    table.add_column("Last", style="dim")
    table.add_column("Correlations", justify="right")

    for s in summaries:
        table.add_row(
            s.process_model_id,
            str(s.metric_count),
            str(s.flow_node_metric_count),
            str(s.error_count),
            _format_ts(s.first_timestamp),
            _format_ts(s.last_timestamp),
            str(len(s.correlation_ids)),
        )
    Console().print(table)


@app.command("show")
def show_cmd(
    process_model_id: str = typer.Argument(..., help="Process model whose metrics to show."),
    types: str = typer.Option(
        "", "--types", "-t",
        help="Comma-separated metric types to show (e.g. 'OnEnter,OnExit'). Shows all if empty.",
    ),
    output: str = _OUTPUT_OPTION,
    verbose: bool = _VERBOSE_OPTION,
) -> None:
    """Show the metrics of one process model in write order."""
    repository = _repository(output, verbose)
    try:
        metrics = asyncio.run(repository.read_metrics_for_process_model(process_model_id))
        filter_types = {MetricType.parse(t.strip()) for t in types.split(",") if t.strip()} if types else None
    except MetricsError as e:
        rprint(f"[red]{e}[/red]")
        sys.exit(1)

    shown = [m for m in metrics if filter_types is None or m.metric_type in filter_types]
    rprint(f"[bold]Process model:[/bold] {process_model_id}  [dim]({len(shown)}/{len(metrics)} metrics)[/dim]")
    if not shown:
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Timestamp", style="dim", no_wrap=True)
    table.add_column("Type", style="cyan", no_wrap=True)
    table.add_column("Correlation")
    table.add_column("Flow node")
    table.add_column("Instance", style="dim")
    table.add_column("Error", style="red", overflow="fold")

    for m in shown:
        error = m.error.get("message", "") if m.error else ""
        table.add_row(
            m.timestamp.strftime("%Y-%m-%d %H:%M:%S.%f")[:-3],
            m.metric_type.value,
            m.correlation_id,
            m.flow_node_id,
            m.flow_node_instance_id,
            str(error),
        )
    Console().print(table)


@app.command("record-process")
def record_process_cmd(
    correlation_id: str = typer.Argument(..., help="Correlation id of the execution."),
    process_model_id: str = typer.Argument(..., help="Process model id."),
    metric_type: str = typer.Argument(..., help=f"One of: {_METRIC_TYPES}."),
    error: str = typer.Option("", "--error", help="Error message to attach."),
    output: str = _OUTPUT_OPTION,
    verbose: bool = _VERBOSE_OPTION,
) -> None:
    """Append a process model metric stamped with the current time."""
    repository = _repository(output, verbose)
    try:
        asyncio.run(
            repository.write_metric_for_process_model(
                correlation_id,
                process_model_id,
                metric_type,
                datetime.now(timezone.utc),
                error={"message": error} if error else None,
            )
        )
    except MetricsError as e:
        rprint(f"[red]{e}[/red]")
        sys.exit(1)
    rprint(f"[green]Recorded[/green] {metric_type} for {process_model_id}")


@app.command("record-flow-node")
def record_flow_node_cmd(
    correlation_id: str = typer.Argument(..., help="Correlation id of the execution."),
    process_model_id: str = typer.Argument(..., help="Process model id."),
    flow_node_instance_id: str = typer.Argument(..., help="Flow node instance id."),
    flow_node_id: str = typer.Argument(..., help="Flow node id."),
    metric_type: str = typer.Argument(..., help=f"One of: {_METRIC_TYPES}."),
    token: str = typer.Option("{}", "--token", help="Token snapshot as JSON."),
    error: str = typer.Option("", "--error", help="Error message to attach."),
    output: str = _OUTPUT_OPTION,
    verbose: bool = _VERBOSE_OPTION,
) -> None:
    """Append a flow node metric stamped with the current time."""
    try:
        token_data = json.loads(token)
    except json.JSONDecodeError as e:
        rprint(f"[red]--token is not valid JSON: {e}[/red]")
        sys.exit(1)

    repository = _repository(output, verbose)
    try:
        asyncio.run(
            repository.write_metric_for_flow_node(
                correlation_id,
                process_model_id,
                flow_node_instance_id,
                flow_node_id,
                metric_type,
                token_data,
                datetime.now(timezone.utc),
                error={"message": error} if error else None,
            )
        )
    except MetricsError as e:
        rprint(f"[red]{e}[/red]")
        sys.exit(1)
    rprint(f"[green]Recorded[/green] {metric_type} for {process_model_id}/{flow_node_id}")


if __name__ == "__main__":
    app()

"""Command-line interface for llm-file-ops."""

import asyncio
import dataclasses
import json
import logging
from collections.abc import Iterator
from typing import Any, TextIO

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from llm_file_ops.cli.config_loader import load_runtime_config
from llm_file_ops.config.runtime_config import RuntimeConfig
from llm_file_ops.core.models import OperationBatch, RiskLevel
from llm_file_ops.exceptions import FileOpsError, WorkspaceError
from llm_file_ops.parsing.stream_parser import TextBlockParser
from llm_file_ops.pipeline.coordinator import PipelineCoordinator

console = Console()
logger = logging.getLogger(__name__)

_RISK_STYLES = {
    RiskLevel.LOW: "green",
    RiskLevel.MEDIUM: "yellow",
    RiskLevel.HIGH: "red",
}


@click.group()
@click.version_option(version="0.1.0")
def cli() -> None:
    """Turn LLM responses into reviewed file operations.

    Defines the top-level `cli` command group with a version option and
    registers the `analyze` and `blocks` subcommands.
    """


def _configure_logging(runtime_config: RuntimeConfig) -> None:
    log_handler = (
        logging.FileHandler(runtime_config.log_file)
        if runtime_config.log_file
        else logging.StreamHandler()
    )
    logging.basicConfig(
        level=getattr(logging, runtime_config.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[log_handler],
        force=True,
    )


def _chunks(text: str, size: int) -> Iterator[str]:
    for start in range(0, len(text), size):
        yield text[start : start + size]


def batch_to_dict(batch: OperationBatch) -> dict[str, Any]:
    """Convert a batch to JSON-serializable primitives."""
    return {
        "operations": [dataclasses.asdict(operation) for operation in batch.operations],
        "conflicts": [dataclasses.asdict(conflict) for conflict in batch.conflicts],
        "analyses": {
            operation_id: {
                "risk": str(result.risk),
                "requires_review": result.requires_review,
                "inconclusive": result.inconclusive,
                "impacts": [dataclasses.asdict(impact) for impact in result.impacts],
                "suggestions": list(result.suggestions),
                "alternatives": [dataclasses.asdict(alt) for alt in result.alternatives],
            }
            for operation_id, result in batch.analyses.items()
        },
        "diagnostics": [dataclasses.asdict(diagnostic) for diagnostic in batch.diagnostics],
        "conflict_checks": list(batch.conflict_checks),
        "requires_review": batch.requires_review,
    }


def _display_batch(batch: OperationBatch) -> None:
    """Print operations, conflicts and diagnostics of a batch."""
    table = Table(title="File Operations")
    table.add_column("#", style="dim", justify="right")
    table.add_column("Type", style="cyan")
    table.add_column("Target", style="white")
    table.add_column("Risk")
    table.add_column("Review", justify="center")
    table.add_column("Impacts", style="magenta", justify="right")

    for index, operation in enumerate(batch.operations, start=1):
        result = batch.analyses[operation.id]
        target = operation.target_path
        if operation.source_path:
            target = f"{operation.source_path} → {operation.target_path}"
        style = _RISK_STYLES[result.risk]
        risk = f"[{style}]{result.risk}[/{style}]"
        if result.inconclusive:
            risk += " [dim](inconclusive)[/dim]"
        table.add_row(
            str(index),
            str(operation.type),
            target,
            risk,
            "⚠" if result.requires_review else "",
            str(len(result.impacts)),
        )
    console.print(table)

    if batch.conflicts:
        conflicts = Table(title="Conflicts")
        conflicts.add_column("Type", style="yellow")
        conflicts.add_column("Description", style="white")
        conflicts.add_column("Resolution", style="green")
        for conflict in batch.conflicts:
            conflicts.add_row(str(conflict.type), conflict.description, conflict.resolution or "")
        console.print(conflicts)

    if batch.diagnostics:
        grid = Table.grid(padding=(0, 2))
        grid.add_column(style="cyan")
        grid.add_column(style="white")
        for diagnostic in batch.diagnostics:
            grid.add_row(f"{diagnostic.stage}/{diagnostic.kind}", diagnostic.message)
        console.print()
        console.print(Panel(grid, title="Diagnostics", border_style="yellow", padding=(1, 2)))

    summary = f"\n📊 {len(batch.operations)} operations, {len(batch.conflicts)} conflicts"
    if batch.requires_review:
        summary += " - [bold yellow]review required[/bold yellow]"
    console.print(summary)
    console.print(f"[dim]Conflict checks: {', '.join(batch.conflict_checks) or 'none'}[/dim]")


@cli.command()
@click.argument("response_file", type=click.File("r", encoding="utf-8"))
@click.option(
    "--workspace",
    "-w",
    type=click.Path(exists=True, file_okay=False),
    default=".",
    show_default=True,
    help="Workspace directory the operations apply to",
)
@click.option(
    "--chunk-size",
    type=click.IntRange(min=1),
    help="Feed the response in chunks of this many characters to simulate streaming",
)
@click.option(
    "--config",
    type=click.Path(exists=True, dir_okay=False),
    help="Path to configuration file (YAML/TOML)",
)
@click.option(
    "--derive-moves/--no-derive-moves",
    default=None,
    help="Derive move operations from prose instructions (default: disabled)",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False),
    help="Logging level (default: INFO)",
)
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False),
    help="Path to log file (default: stderr only)",
)
@click.option("--json", "as_json", is_flag=True, help="Print the batch as JSON")
@click.option(
    "--fail-on-review",
    is_flag=True,
    help="Exit with status 1 when the batch requires review",
)
def analyze(
    response_file: TextIO,
    workspace: str,
    chunk_size: int | None,
    config: str | None,
    derive_moves: bool | None,
    log_level: str | None,
    log_file: str | None,
    as_json: bool,
    fail_on_review: bool,
) -> None:
    """Analyze a model response and print the resulting operation batch.

    Configuration precedence: CLI flags > environment variables > config file > defaults

    Args:
        response_file: File holding the model response ("-" for stdin).
        workspace: Workspace directory the operations apply to.
        chunk_size: Optional chunk size used to feed the response incrementally.
        config: Path to configuration file (YAML/TOML).
        derive_moves: Enable (True) or disable (False) prose move derivation.
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Path to log file for output.
        as_json: Print JSON instead of tables.
        fail_on_review: Exit non-zero when review is required.

    Raises:
        click.Abort: If configuration or the workspace is invalid, or the
            pipeline fails.
    """
    try:
        runtime_config = load_runtime_config(
            config_path=config,
            cli_overrides={
                "log_level": log_level.upper() if log_level else None,
                "log_file": str(log_file) if log_file else None,
                "derive_move_instructions": derive_moves,
            },
        )
        _configure_logging(runtime_config)
    except Exception as e:
        console.print(f"[red]❌ Configuration error: {e}[/red]")
        raise click.Abort() from e

    text = response_file.read()

    try:
        coordinator = PipelineCoordinator(workspace, config=runtime_config)
    except WorkspaceError as e:
        console.print(f"[red]❌ Invalid workspace: {e}[/red]")
        raise click.Abort() from e

    try:
        if chunk_size:
            batch = asyncio.run(coordinator.run_stream(_chunks(text, chunk_size)))
        else:
            batch = asyncio.run(coordinator.run_complete(text))
    except FileOpsError as e:
        console.print(f"❌ Error analyzing response: {e}")
        logger.exception("Failed to analyze response")
        raise click.Abort() from e

    if as_json:
        click.echo(json.dumps(batch_to_dict(batch), indent=2, default=str))
    elif not batch.operations:
        console.print("✅ No file operations found")
    else:
        _display_batch(batch)

    if fail_on_review and batch.requires_review:
        raise click.exceptions.Exit(1)


@cli.command()
@click.argument("response_file", type=click.File("r", encoding="utf-8"))
def blocks(response_file: TextIO) -> None:
    """List the fenced code blocks found in a model response."""
    parser = TextBlockParser()
    parser.process(response_file.read())
    found = parser.complete()

    if not found:
        console.print("No code blocks found")
        return

    table = Table(title="Code Blocks")
    table.add_column("#", style="dim", justify="right")
    table.add_column("Language", style="cyan")
    table.add_column("Path", style="white")
    table.add_column("Hint", style="yellow")
    table.add_column("Lines", style="blue", justify="right")
    for index, block in enumerate(found, start=1):
        table.add_row(
            str(index),
            block.language,
            block.file_path or "-",
            str(block.operation_hint),
            str(len(block.code.split("\n"))),
        )
    console.print(table)

    for diagnostic in parser.get_diagnostics():
        console.print(f"[yellow]⚠ {diagnostic.message}[/yellow]")


if __name__ == "__main__":
    cli()

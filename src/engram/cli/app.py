"""Main CLI application."""

import asyncio
import json
from pathlib import Path
from typing import Any, Optional

import typer
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table

from engram import __version__
from engram.config.logging import configure_logging
from engram.config.settings import settings
from engram.errors import CorruptSnapshotError
from engram.memory.layer import MemoryLayer
from engram.memory.operations import OperationResult
from engram.memory.persistence import parse_snapshot

app = typer.Typer(
    name="engram",
    help="engram - tiered memory with consolidation and forgetting",
    no_args_is_help=True,
)
console = Console()


def format_result(outcome: OperationResult) -> Panel:
    """Format a processed operation for display."""
    if not outcome.success:
        return Panel(
            f"[red]{outcome.error}[/red]",
            title="[red]Error[/red]",
            border_style="red",
        )

    body = json.dumps(outcome.result, indent=2, default=str)
    if len(body) > 2000:
        body = body[:2000] + "\n... (truncated)"
    return Panel(
        body,
        title=f"[green]OK[/green] [dim]{outcome.processing_time:.1f} ms[/dim]",
        border_style="green",
    )


def stats_table(stats: dict[str, Any]) -> Table:
    """Tier distribution and counters as a table."""
    table = Table(title="Memory")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")

    for tier, count in stats["memoryDistribution"].items():
        table.add_row(f"tier:{tier}", str(count))
    for key, value in stats.items():
        if key != "memoryDistribution":
            table.add_row(key, str(value))
    return table


def _apply_memory_file(memory_file: Optional[Path]) -> None:
    if memory_file:
        settings.memory.memory_file = memory_file
    settings.ensure_directories()


@app.command()
def repl(
    memory_file: Optional[Path] = typer.Option(
        None, "--memory-file", "-f",
        help="Snapshot file to load at start and write on exit",
    ),
) -> None:
    """Feed lines through the memory layer interactively."""
    configure_logging(settings)
    _apply_memory_file(memory_file)

    console.print(f"Snapshot: [cyan]{settings.memory.memory_file}[/cyan]")
    console.print("[dim]Type '/help' for commands, '/exit' to quit[/dim]")
    console.print()

    async def run_repl() -> None:
        async with MemoryLayer(settings.memory) as layer:
            while True:
                try:
                    user_input = Prompt.ask("[bold cyan]memory[/bold cyan]")
                except (KeyboardInterrupt, EOFError):
                    console.print()
                    break

                command = user_input.strip().lower()
                if command in ("exit", "quit", "/exit", "/quit"):
                    break
                if command == "/help":
                    show_help()
                    continue
                if command == "/stats":
                    console.print(stats_table(layer.get_memory_stats()))
                    continue
                if command == "/consolidate":
                    result = await layer.consolidate()
                    console.print(result.to_dict())
                    continue
                if not command:
                    continue

                outcome = await layer.process(user_input)
                console.print(format_result(outcome))

        console.print("[yellow]Snapshot saved. Goodbye![/yellow]")

    asyncio.run(run_repl())


@app.command()
def stats(
    memory_file: Optional[Path] = typer.Option(
        None, "--memory-file", "-f",
        help="Snapshot file to load",
    ),
) -> None:
    """Load the snapshot and show tier counts."""
    configure_logging(settings)
    _apply_memory_file(memory_file)

    async def collect() -> dict[str, Any]:
        layer = MemoryLayer(settings.memory)
        await layer.initialize()
        try:
            return layer.get_memory_stats()
        finally:
            await layer.shutdown()

    console.print(stats_table(asyncio.run(collect())))


@app.command()
def inspect(
    path: Path = typer.Argument(..., help="Snapshot file to decode"),
    limit: int = typer.Option(20, "--limit", "-n", help="Rows per tier"),
) -> None:
    """Decode a snapshot file and list its durable tiers."""
    if not path.exists():
        console.print(f"[yellow]No snapshot at {path}[/yellow]")
        raise typer.Exit(code=1)

    try:
        record = parse_snapshot(path.read_bytes())
    except CorruptSnapshotError as e:
        console.print(f"[red][X] Corrupt snapshot:[/red] {e}")
        raise typer.Exit(code=2)

    console.print(f"Snapshot taken: [cyan]{record.timestamp.isoformat()}[/cyan]")

    sections = [
        ("long_term", [entry for _, entry in record.long_term_memory]),
        ("semantic", [entry for _, entry in record.semantic_memory]),
        ("episodic", record.episodic_memory),
    ]
    for name, entries in sections:
        table = Table(title=f"{name} ({len(entries)})")
        table.add_column("ID", style="dim")
        table.add_column("Importance", justify="right")
        table.add_column("Accesses", justify="right")
        table.add_column("Content")
        for entry in entries[:limit]:
            content = entry.content if isinstance(entry.content, str) else json.dumps(entry.content)
            table.add_row(
                entry.id,
                f"{entry.importance:.2f}",
                str(entry.access_count),
                content[:80],
            )
        console.print(table)


@app.command()
def version() -> None:
    """Show version information."""
    console.print(f"engram v{__version__}")


def show_help() -> None:
    """Show help for REPL commands."""
    help_text = """
## REPL Commands

| Command | Description |
|---------|-------------|
| `/help` | Show this help |
| `/stats` | Show tier counts and counters |
| `/consolidate` | Run a consolidation sweep now |
| `/exit` | Save snapshot and exit |

## Routing

- Lines containing *remember* or *store* are stored
- *recall* / *retrieve* run a relevance query
- *search* / *find* run an index lookup
- Anything else is recorded as an episode and related memories are recalled
"""
    console.print(Markdown(help_text))


def main() -> None:
    """Entry point."""
    app()


if __name__ == "__main__":
    main()

"""Command-line interface for subtitle-index.

Uses Typer for commands and Rich for output.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.table import Table

from subtitle_index import __version__
from subtitle_index.config import IndexerConfig, load_config
from subtitle_index.errors import SubtitleIndexError, format_error_for_display
from subtitle_index.ffmpeg_binary import get_dependency_report
from subtitle_index.logging import LogConfig, LogLevel, configure_logging
from subtitle_index.pipeline import perform_scans
from subtitle_index.store import SubtitleStore

app = typer.Typer(
    name="subtitle-index",
    help="Index the subtitle dialogue of a media library for full-text search.",
    add_completion=False,
    rich_markup_mode="rich",
)

console = Console()

# Options shared by every command, set by the callback
_state: dict = {"env_file": None}


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"subtitle-index version {__version__}")
        raise typer.Exit()


def _load_config() -> IndexerConfig:
    try:
        return load_config(_state["env_file"])
    except SubtitleIndexError as e:
        console.print(f"[red]Error:[/red] {format_error_for_display(e)}")
        raise typer.Exit(1)


def _open_store(config: IndexerConfig) -> SubtitleStore:
    try:
        store = SubtitleStore(config.database_path)
    except SubtitleIndexError as e:
        console.print(f"[red]Error:[/red] {format_error_for_display(e)}")
        raise typer.Exit(1)

    try:
        store.initialize()
    except SubtitleIndexError as e:
        store.close()
        console.print(f"[red]Error:[/red] {format_error_for_display(e)}")
        raise typer.Exit(1)
    return store


def _format_ms(ms: int) -> str:
    seconds, millis = divmod(ms, 1000)
    minutes, seconds = divmod(seconds, 60)
    hours, minutes = divmod(minutes, 60)
    return f"{hours}:{minutes:02d}:{seconds:02d}.{millis:03d}"


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
    verbose: Annotated[
        int, typer.Option("--verbose", "-v", count=True, help="More output (repeat for debug).")
    ] = 0,
    quiet: Annotated[
        bool, typer.Option("--quiet", "-q", help="Only report errors.")
    ] = False,
    log_file: Annotated[
        Optional[Path], typer.Option("--log-file", help="Also write a full log to this file.")
    ] = None,
    json_logs: Annotated[
        bool, typer.Option("--json-logs", help="Emit logs as JSON lines.")
    ] = False,
    env_file: Annotated[
        Optional[Path], typer.Option("--env-file", help="Read settings from this dotenv file.")
    ] = None,
) -> None:
    """Subtitle Index - searchable dialogue for a media library.

    Settings are read from the environment: [bold]ROOT_DIRECTORY[/bold],
    [bold]DEFAULT_LIBRARIES[/bold], [bold]NONDEFAULT_LIBRARIES[/bold],
    [bold]SKIP_SETUP[/bold], [bold]DATABASE_PATH[/bold] and friends.
    """
    if quiet:
        level = LogLevel.QUIET
    else:
        level = LogLevel(min(LogLevel.NORMAL + verbose, LogLevel.DEBUG))
    configure_logging(LogConfig(level=level, log_file=log_file, json_format=json_logs))
    _state["env_file"] = env_file


@app.command()
def scan() -> None:
    """Sync libraries, scan for changed files and index new dialogue."""
    config = _load_config()
    store = _open_store(config)

    try:
        with console.status("[cyan]Indexing...[/cyan]"):
            result = perform_scans(config, store)
    except SubtitleIndexError as e:
        console.print(f"[red]Error:[/red] {format_error_for_display(e)}")
        raise typer.Exit(1)
    finally:
        store.close()

    table = Table(title="Scan Summary")
    table.add_column("Step", style="cyan")
    table.add_column("Result", style="white")
    present = sum(1 for exists in result.libraries.values() if exists)
    table.add_row("Libraries", f"{present} present, {len(result.libraries) - present} missing")
    table.add_row(
        "Files",
        f"{result.scan.added} new, {result.scan.changed} changed, "
        f"{result.scan.revived} restored, {result.scan.removed} removed",
    )
    table.add_row(
        "Indexed",
        f"{result.index.files} files, {result.index.tracks} tracks, "
        f"{result.index.conversations} conversations, {result.index.lines} lines",
    )
    if result.scan.errors or result.index.failed_tracks or result.index.failed_files:
        table.add_row(
            "Problems",
            f"[yellow]{len(result.scan.errors)} unreadable, "
            f"{result.index.failed_tracks} failed tracks, "
            f"{len(result.index.failed_files)} failed files[/yellow]",
        )
    table.add_row("Duration", f"{result.duration:.1f}s")
    console.print(table)


@app.command()
def libraries() -> None:
    """List libraries and their file counts."""
    config = _load_config()
    store = _open_store(config)
    try:
        rows = store.list_libraries()
        if not rows:
            console.print("[yellow]No libraries registered. Run 'subtitle-index scan' first.[/yellow]")
            return

        table = Table(title="Libraries")
        table.add_column("Path", style="cyan")
        table.add_column("Searched by default", style="white")
        table.add_column("Exists", style="white")
        table.add_column("Files", style="green", justify="right")
        table.add_column("Indexed", style="green", justify="right")

        for library in rows:
            files = [f for f in store.list_files(library.id) if f.still_exists]
            table.add_row(
                library.path,
                "yes" if library.search_by_default else "no",
                "yes" if library.still_exists else "[red]no[/red]",
                str(len(files)),
                str(sum(1 for f in files if f.indexed)),
            )
        console.print(table)
    finally:
        store.close()


@app.command()
def search(
    query: Annotated[str, typer.Argument(help="Words to search for")],
    include_all: Annotated[
        bool, typer.Option("--all", "-a", help="Include libraries not searched by default")
    ] = False,
    limit: Annotated[int, typer.Option("--limit", "-n", help="Maximum results")] = 20,
) -> None:
    """Search indexed conversations."""
    config = _load_config()
    store = _open_store(config)
    try:
        hits = store.search_conversations(query, include_all=include_all, limit=limit)
    finally:
        store.close()

    if not hits:
        console.print(f"[yellow]No conversations found for '{query}'[/yellow]")
        return

    table = Table(title=f"Search Results for '{query}' ({len(hits)} matches)")
    table.add_column("#", style="dim", width=3)
    table.add_column("File", style="cyan", max_width=40)
    table.add_column("Track", style="white")
    table.add_column("Time", style="white")
    table.add_column("Dialogue", style="dim", max_width=60)

    for i, hit in enumerate(hits, 1):
        track = str(hit.track_number) + (f" ({hit.language})" if hit.language else "")
        table.add_row(
            str(i),
            f"{hit.library_path}/{hit.file_path}",
            track,
            f"{_format_ms(hit.start_ms)} - {_format_ms(hit.end_ms)}",
            hit.indexed_text.replace("\n", " / "),
        )
    console.print(table)


@app.command()
def doctor() -> None:
    """Check that FFmpeg and FFprobe are available."""
    config = _load_config()
    report = get_dependency_report(config.ffmpeg)

    table = Table(title="Dependency Status")
    table.add_column("Component", style="cyan")
    table.add_column("Status", style="white")
    table.add_column("Details", style="dim")

    missing = False
    for name in ("ffmpeg", "ffprobe"):
        info = report[name]
        if info["available"]:
            table.add_row(
                name,
                f"[green]Available[/green] (v{info['version']})",
                f"Source: {info['source']}\n{info['path']}",
            )
        else:
            missing = True
            table.add_row(name, "[red]Not Found[/red]", f"Install FFmpeg or set {name.upper()}_PATH")

    platform_info = report["platform"]
    table.add_row(
        "Platform",
        str(platform_info["system"]),
        f"{platform_info['machine']}, Python {platform_info['python']}",
    )
    console.print(table)

    if missing:
        raise typer.Exit(1)


if __name__ == "__main__":
    app()

"""Typer-based CLI for building and inspecting module dependency graphs."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, NoReturn, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TextColumn
from rich.table import Table

from . import __version__, config
from .config_manager import AnalysisSettings, load_settings, load_tsconfig_aliases
from .errors import DepGraphError
from .graph_export import export_graph, load_document, to_dot, to_json
from .models import Graph, SourceRoot
from .pipeline import GraphBuilder, project_root_for
from .resolver import merge_aliases, parse_alias
from .validation import DocumentValidator

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    help="🕸️  depgraph: module-level dependency graphs for TS/JS monorepos.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

FORMATS = ("json", "dot")


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        typer.echo(f"depgraph v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    )
):
    """depgraph: aggregate file imports into an app/lib module graph."""
    pass


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def _fail(message: str) -> NoReturn:
    err_console.print(f"[red]Error:[/red] {message}")
    raise typer.Exit(code=1)


def _check_root(path: Path, name: str) -> Path:
    resolved = path.expanduser().resolve()
    if not resolved.exists():
        _fail(f"{name} directory does not exist: {resolved}")
    if not resolved.is_dir():
        _fail(f"{name} path is not a directory: {resolved}")
    return resolved


def _build_settings(
    project_root: Path,
    config_file: Optional[Path],
    aliases: Optional[List[str]],
    tsconfig: Optional[Path],
    exclude_dirs: Optional[List[str]],
    workers: Optional[int],
    exclude_type_only: bool,
) -> AnalysisSettings:
    settings = load_settings(config_file, project_root)
    # Command-line aliases replace same-pattern ones from the settings file.
    settings.aliases = merge_aliases(
        settings.aliases,
        load_tsconfig_aliases(tsconfig) if tsconfig is not None else [],
        [parse_alias(option, Path.cwd()) for option in aliases or []],
    )
    if exclude_dirs:
        settings.skip_dirs = sorted(set(settings.skip_dirs) | set(exclude_dirs))
    if workers is not None:
        settings.workers = max(1, workers)
    if exclude_type_only:
        settings.exclude_type_only = True
    return settings


def _print_summary(graph: Graph, output: Optional[Path]) -> None:
    stats = graph.stats
    table = Table(title="Dependency graph", show_header=False, box=None)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Files", f"{stats.total_files} ({stats.code_files} code, {stats.test_files} test)")
    table.add_row("Code lines", str(stats.total_code_lines))
    table.add_row("Test lines", str(stats.total_test_lines))
    table.add_row("Modules", f"{stats.total_modules} ({stats.apps} apps, {stats.libs} libs)")
    table.add_row("Edges", str(len(graph.edges)))
    console.print(table)

    if graph.warnings:
        console.print(
            f"[yellow]⚠ {len(graph.warnings)} file(s) parsed with the regex fallback[/yellow]"
        )
    if output is not None:
        console.print(f"[green]✓[/green] Graph data written to: {output}")


def _run_analysis(
    app_root: Path,
    lib_root: Path,
    output: Optional[Path],
    fmt: str,
    config_file: Optional[Path],
    aliases: Optional[List[str]],
    tsconfig: Optional[Path],
    exclude_dirs: Optional[List[str]],
    workers: Optional[int],
    exclude_type_only: bool,
    to_stdout: bool,
    verbose: bool,
) -> None:
    _configure_logging(verbose)
    if fmt not in FORMATS:
        raise typer.BadParameter(f"format must be one of: {', '.join(FORMATS)}")

    app_dir = _check_root(app_root, "App root")
    lib_dir = _check_root(lib_root, "Lib root")
    project_root = project_root_for([SourceRoot(app_dir, "app"), SourceRoot(lib_dir, "lib")])

    try:
        settings = _build_settings(
            project_root, config_file, aliases, tsconfig, exclude_dirs, workers, exclude_type_only,
        )
        with Progress(
            TextColumn("[bold blue]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            console=err_console,
            transient=True,
            disable=to_stdout or not err_console.is_terminal,
        ) as progress:
            task = progress.add_task("Parsing files", total=None)

            def _on_progress(phase: str, done: int, total: int) -> None:
                if phase == "parse":
                    progress.update(task, completed=done, total=total)

            graph = GraphBuilder(app_dir, lib_dir, settings=settings, progress=_on_progress).build()
    except DepGraphError as exc:
        _fail(str(exc))

    if to_stdout:
        typer.echo(to_dot(graph) if fmt == "dot" else to_json(graph))
        return

    target = output or project_root / (
        config.OUTPUT_FILENAME if fmt == "json" else Path(config.OUTPUT_FILENAME).stem + ".dot"
    )
    export_graph(graph, target, fmt)
    _print_summary(graph, target)


@app.command("analyze")
def analyze(
    app_root: Path = typer.Argument(..., help="Application root (each subdirectory is an app module)."),
    lib_root: Path = typer.Argument(..., help="Library root (each subdirectory is a lib module)."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output file. Default: <project>/dependency-graph.json"),
    fmt: str = typer.Option("json", "--format", "-f", help="Output format: json or dot."),
    config_file: Optional[Path] = typer.Option(None, "--config", "-c", help="TOML settings file."),
    alias: Optional[List[str]] = typer.Option(None, "--alias", "-a", help="Path alias PREFIX=TARGET (repeatable)."),
    tsconfig: Optional[Path] = typer.Option(None, "--tsconfig", help="Read path aliases from a tsconfig.json."),
    exclude_dir: Optional[List[str]] = typer.Option(None, "--exclude-dir", help="Extra directory name to skip (repeatable)."),
    workers: Optional[int] = typer.Option(None, "--workers", "-w", help="Parser threads (1 = sequential)."),
    exclude_type_only: bool = typer.Option(False, "--exclude-type-only", help="Ignore imports that only bring in types."),
    to_stdout: bool = typer.Option(False, "--stdout", help="Print the document instead of writing a file."),
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging."),
):
    """📊 Build the module graph for an app root and a lib root."""
    _run_analysis(
        app_root, lib_root, output, fmt, config_file, alias, tsconfig,
        exclude_dir, workers, exclude_type_only, to_stdout, verbose,
    )


@app.command("scan")
def scan(
    project_dir: Path = typer.Argument(..., help="Directory containing apps/ and libs/."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output file. Default: <project>/dependency-graph.json"),
    fmt: str = typer.Option("json", "--format", "-f", help="Output format: json or dot."),
    config_file: Optional[Path] = typer.Option(None, "--config", "-c", help="TOML settings file."),
    alias: Optional[List[str]] = typer.Option(None, "--alias", "-a", help="Path alias PREFIX=TARGET (repeatable)."),
    tsconfig: Optional[Path] = typer.Option(None, "--tsconfig", help="Read path aliases from a tsconfig.json."),
    workers: Optional[int] = typer.Option(None, "--workers", "-w", help="Parser threads (1 = sequential)."),
    exclude_dir: Optional[List[str]] = typer.Option(None, "--exclude-dir", help="Extra directory name to skip (repeatable)."),
    exclude_type_only: bool = typer.Option(False, "--exclude-type-only", help="Ignore imports that only bring in types."),
    to_stdout: bool = typer.Option(False, "--stdout", help="Print the document instead of writing a file."),
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging."),
):
    """🔎 Analyze a project laid out as apps/ + libs/."""
    root = _check_root(project_dir, "Project")
    missing = [name for name in ("apps", "libs") if not (root / name).is_dir()]
    if missing:
        _fail(
            f"Both 'apps' and 'libs' directories must exist in {root} "
            f"(missing: {', '.join(missing)})"
        )
    _run_analysis(
        root / "apps", root / "libs", output, fmt, config_file, alias, tsconfig,
        exclude_dir, workers, exclude_type_only, to_stdout, verbose,
    )


@app.command("validate")
def validate(
    graph_file: Path = typer.Argument(..., help="Graph JSON produced by 'depgraph analyze'."),
):
    """✅ Check a graph document for contract and consistency problems."""
    try:
        doc = load_document(graph_file)
    except (OSError, ValueError) as exc:
        _fail(f"Cannot read {graph_file}: {exc}")

    problems = DocumentValidator().validate(doc)
    if problems:
        for problem in problems:
            err_console.print(f"[red]✗[/red] {problem}")
        raise typer.Exit(code=1)
    console.print(
        f"[green]✓[/green] {graph_file} is valid "
        f"({len(doc['nodes'])} modules, {len(doc['edges'])} edges)"
    )


@app.command("summary")
def summary(
    graph_file: Path = typer.Argument(..., help="Graph JSON produced by 'depgraph analyze'."),
    top: int = typer.Option(10, "--top", "-n", help="Rows per table."),
):
    """🏆 Show the most depended-upon and most dependent modules."""
    try:
        doc = load_document(graph_file)
    except (OSError, ValueError) as exc:
        _fail(f"Cannot read {graph_file}: {exc}")

    nodes = doc.get("nodes", [])
    edges = doc.get("edges", [])

    for title, key in (
        ("Most depended-upon modules", "incomingCount"),
        ("Most dependent modules", "outgoingCount"),
    ):
        table = Table(title=title)
        table.add_column("Module", style="cyan")
        table.add_column("Type")
        table.add_column(key, justify="right")
        table.add_column("Lines", justify="right")
        ranked = sorted(nodes, key=lambda n: (-n.get(key, 0), n.get("id", "")))
        for node in ranked[:top]:
            table.add_row(node["id"], node["type"], str(node.get(key, 0)), str(node.get("linesOfCode", 0)))
        console.print(table)

    table = Table(title="Heaviest edges")
    table.add_column("From", style="cyan")
    table.add_column("To", style="cyan")
    table.add_column("Files", justify="right")
    table.add_column("Symbols")
    for edge in sorted(edges, key=lambda e: (-e.get("count", 0), e.get("from", ""), e.get("to", "")))[:top]:
        symbols = edge.get("symbols", [])
        shown = ", ".join(symbols[:5]) + (" …" if len(symbols) > 5 else "")
        table.add_row(edge["from"], edge["to"], str(edge.get("count", 0)), shown)
    console.print(table)


if __name__ == "__main__":
    app()

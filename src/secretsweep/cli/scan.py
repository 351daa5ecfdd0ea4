"""CLI command: secretsweep scan <paths> — find hard-coded secrets."""

from __future__ import annotations

import os
import sys
from collections.abc import Iterable, Iterator
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from secretsweep.config import SweepConfig
from secretsweep.scanner.engine import ScanEngine
from secretsweep.scanner.models import ScanReport, Severity
from secretsweep.scanner.patterns import PATTERNS, load_patterns
from secretsweep.scanner.pool import WorkerPoolError

console = Console(stderr=True)

EXIT_ISSUES_FOUND = 1
EXIT_UNEXPECTED_ERROR = 3

_SEVERITY_COLORS = {
    Severity.CRITICAL: "red",
    Severity.HIGH: "magenta",
    Severity.MEDIUM: "yellow",
    Severity.LOW: "blue",
    Severity.INFO: "white",
}


@click.command()
@click.argument("paths", nargs=-1, required=True, type=click.Path(exists=True))
@click.option(
    "--workers",
    "-w",
    type=click.IntRange(min=1),
    help="Worker threads for parallel scanning (default: CPU count - 1).",
)
@click.option(
    "--patterns",
    "-p",
    "patterns_path",
    type=click.Path(exists=True, dir_okay=False),
    help="YAML pattern catalog to use instead of the built-in patterns.",
)
@click.pass_context
def scan(
    ctx: click.Context,
    paths: tuple[str, ...],
    workers: int | None,
    patterns_path: str | None,
) -> None:
    """Scan files and directories for hard-coded secrets."""
    try:
        config = SweepConfig.load()
    except ValueError as e:
        raise click.UsageError(str(e)) from e
    config.verbose = bool(ctx.obj.get("verbose")) if ctx.obj else False
    if workers is not None:
        config.worker_count = workers

    if patterns_path:
        try:
            patterns = load_patterns(patterns_path)
        except ValueError as e:
            raise click.BadParameter(str(e), param_hint="--patterns") from e
    else:
        patterns = PATTERNS

    files = list(collect_files(paths))
    console.print(
        f"[bold]secretsweep[/bold] scanning [cyan]{len(files)}[/cyan] files "
        f"with [cyan]{len(patterns)}[/cyan] patterns\n"
    )

    try:
        with ScanEngine(patterns=patterns, config=config) as engine:
            report = engine.scan(files)
    except WorkerPoolError as e:
        console.print(f"[red]Scan aborted: {e}[/red]")
        sys.exit(EXIT_UNEXPECTED_ERROR)

    if not report.issues:
        console.print("[green]No secrets found.[/green]")
        _print_summary(report)
        return

    report.issues.sort(key=lambda i: (i.severity.rank, i.file, i.line))

    table = Table(title="Issues", show_lines=False)
    table.add_column("Severity", style="bold", width=10)
    table.add_column("File", style="cyan")
    table.add_column("Line", justify="right")
    table.add_column("Pattern")
    table.add_column("Code", max_width=50)

    for issue in report.issues:
        color = _SEVERITY_COLORS.get(issue.severity, "white")
        table.add_row(
            f"[{color}]{issue.severity.value}[/{color}]",
            issue.file,
            str(issue.line),
            issue.title,
            issue.snippet[:50],
        )

    console.print(table)
    _print_summary(report)

    counts = report.summary()
    blocking = counts[Severity.CRITICAL] + counts[Severity.HIGH]
    if blocking > 0:
        console.print(f"\n[red]{blocking} critical/high issue(s)[/red]")
        sys.exit(EXIT_ISSUES_FOUND)


def collect_files(paths: Iterable[str]) -> Iterator[str]:
    """Expand directories into the regular files beneath them.

    Symbolic links are not followed. No ignore filtering is applied.
    """
    for raw in paths:
        path = Path(raw)
        if path.is_file():
            yield str(path)
            continue
        for root, dirs, names in os.walk(path):
            dirs.sort()
            for name in sorted(names):
                file_path = Path(root) / name
                if file_path.is_symlink() or not file_path.is_file():
                    continue
                yield str(file_path)


def _print_summary(report: ScanReport) -> None:
    console.print(
        f"\nScanned {report.files_scanned} files "
        f"({report.files_skipped} binary skipped, "
        f"{report.files_streamed} streamed, "
        f"{len(report.errors)} errors) "
        f"in {report.duration:.2f}s"
    )
    counts = report.summary()
    breakdown = ", ".join(
        f"{counts[s]} {s.value}" for s in Severity if counts[s]
    )
    console.print(f"Total issues: {len(report.issues)}" + (f" ({breakdown})" if breakdown else ""))
    console.print(f"Security score: {report.security_score()}/100")
    for error in report.errors:
        console.print(f"[yellow]Error:[/yellow] {error.file}: {error.message}")

"""CLI command: secretsweep classify <paths> — show how files would be scanned."""

from __future__ import annotations

import click
from rich.console import Console
from rich.table import Table

from secretsweep.cli.scan import collect_files
from secretsweep.config import SweepConfig
from secretsweep.scanner.classifier import FileClassifier

console = Console()


@click.command()
@click.argument("paths", nargs=-1, required=True, type=click.Path(exists=True))
def classify(paths: tuple[str, ...]) -> None:
    """Report binary/encoding/streaming classification for each file."""
    try:
        config = SweepConfig.load()
    except ValueError as e:
        raise click.UsageError(str(e)) from e

    classifier = FileClassifier(
        stream_threshold=config.stream_threshold,
        sample_size=config.sample_size,
    )

    table = Table(title="File classification")
    table.add_column("File", style="cyan")
    table.add_column("Size", justify="right")
    table.add_column("Binary")
    table.add_column("Encoding")
    table.add_column("Stream")

    for path in collect_files(paths):
        descriptor = classifier.classify(path)
        table.add_row(
            descriptor.path,
            str(descriptor.size),
            "yes" if descriptor.is_binary else "no",
            "-" if descriptor.is_binary else descriptor.encoding.value,
            "yes" if descriptor.should_stream else "no",
        )

    console.print(table)

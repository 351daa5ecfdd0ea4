"""Line matching — the primitive shared by the whole-file and streaming paths."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from pathlib import Path

from secretsweep.scanner.models import Encoding, Issue
from secretsweep.scanner.patterns import Pattern


def match_line(line: str, patterns: Sequence[Pattern]) -> list[tuple[Pattern, int]]:
    """Run every pattern against one line; return ``(pattern, offset)`` hits."""
    hits: list[tuple[Pattern, int]] = []
    for pattern in patterns:
        for offset, _text in pattern.match(line):
            hits.append((pattern, offset))
    return hits


def make_issue(
    pattern: Pattern,
    file_path: str,
    line_number: int,
    column: int | None,
    line: str,
) -> Issue:
    """Build an Issue for a pattern hit."""
    return Issue(
        id=f"{pattern.id}:{file_path}:{line_number}:{column}",
        pattern_id=pattern.id,
        severity=pattern.severity,
        title=pattern.name,
        description=pattern.description,
        file=file_path,
        line=line_number,
        column=column,
        snippet=line.strip(),
        suggestion=pattern.suggestion,
    )


def scan_lines(
    lines: Iterable[str],
    file_path: str,
    patterns: Sequence[Pattern],
    first_line: int = 1,
) -> list[Issue]:
    """Scan already-split lines; issues come out in line order."""
    issues: list[Issue] = []
    for line_number, line in enumerate(lines, start=first_line):
        for pattern, offset in match_line(line, patterns):
            issues.append(make_issue(pattern, file_path, line_number, offset, line))
    return issues


def scan_text(content: str, file_path: str, patterns: Sequence[Pattern]) -> list[Issue]:
    """Scan decoded file content."""
    return scan_lines(content.split("\n"), file_path, patterns)


def scan_file(
    file_path: str,
    patterns: Sequence[Pattern],
    encoding: Encoding | str = Encoding.UTF8,
) -> list[Issue]:
    """Read a whole file into memory and scan it.

    Raises OSError if the file cannot be read; callers handle it per file.
    """
    codec = Encoding(encoding).codec
    content = Path(file_path).read_bytes().decode(codec, errors="replace")
    return scan_text(content, file_path, patterns)

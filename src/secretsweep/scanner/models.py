"""Scanner data models — file descriptors, issues, and scan results."""

from __future__ import annotations

import enum
import time
from dataclasses import dataclass, field


class Severity(enum.Enum):
    """Issue severity level."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"

    @property
    def rank(self) -> int:
        """Sort key — critical first."""
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    Severity.CRITICAL: 0,
    Severity.HIGH: 1,
    Severity.MEDIUM: 2,
    Severity.LOW: 3,
    Severity.INFO: 4,
}


class Encoding(enum.Enum):
    """Text encodings the classifier can report."""

    UTF8 = "utf-8"
    UTF16 = "utf-16"
    LATIN1 = "latin-1"
    ASCII = "ascii"

    @property
    def codec(self) -> str:
        """Python codec name used to decode file content."""
        return _CODECS[self]


# utf-8-sig drops a leading BOM and otherwise decodes exactly like utf-8
_CODECS = {
    Encoding.UTF8: "utf-8-sig",
    Encoding.UTF16: "utf-16",
    Encoding.LATIN1: "latin-1",
    Encoding.ASCII: "ascii",
}


@dataclass(frozen=True)
class FileDescriptor:
    """Classification of a single file, computed before its content is scanned."""

    path: str
    size: int = 0
    is_binary: bool = False
    encoding: Encoding = Encoding.UTF8
    should_stream: bool = False


@dataclass(frozen=True)
class Issue:
    """A single secret found in a file."""

    id: str
    pattern_id: str
    severity: Severity
    title: str
    description: str
    file: str
    line: int
    column: int | None  # character offset in the decoded line, not bytes
    snippet: str
    suggestion: str = ""


@dataclass(frozen=True)
class ScanTaskResult:
    """Outcome of scanning one file — exactly one per requested file."""

    file: str
    issues: tuple[Issue, ...] = ()
    error: str | None = None
    error_type: str | None = None


@dataclass(frozen=True)
class FileError:
    """A per-file failure recorded during a scan."""

    file: str
    error_type: str
    message: str


@dataclass
class ScanReport:
    """Aggregate result of scanning a file list."""

    issues: list[Issue] = field(default_factory=list)
    files_scanned: int = 0
    files_skipped: int = 0
    files_streamed: int = 0
    errors: list[FileError] = field(default_factory=list)
    duration: float = 0.0
    timestamp: float = field(default_factory=time.time)

    def summary(self) -> dict[Severity, int]:
        """Issue counts per severity, every level present."""
        counts = {severity: 0 for severity in Severity}
        for issue in self.issues:
            counts[issue.severity] += 1
        return counts

    def security_score(self) -> int:
        """0–100 score: each critical/high/medium/low issue deducts 20/10/5/2."""
        counts = self.summary()
        deduction = (
            counts[Severity.CRITICAL] * 20
            + counts[Severity.HIGH] * 10
            + counts[Severity.MEDIUM] * 5
            + counts[Severity.LOW] * 2
        )
        return max(0, 100 - deduction)

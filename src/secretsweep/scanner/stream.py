"""Chunked streaming scanner for files too large to load into memory.

A file is read in fixed-size byte chunks. Each chunk is decoded and prefixed
with text carried over from the previous window so that a secret straddling
a chunk boundary is seen whole in at least one scan window.

The carry is line-aligned where possible: an unfinished last line of up to
``max_carry`` characters is carried forward unscanned and matched once it is
complete, so ordinary files are scanned exactly like a whole-file scan. A
line longer than ``max_carry`` is scanned piecewise. Its windows overlap by
``overlap`` characters, a match crossing the carry point pulls the carry back
to the match start, and hits are de-duplicated on (pattern id, line, column).
Snippets of matches on such lines are the part of the line in the window.

Memory stays at O(chunk_size + max_carry) regardless of file size.
"""

from __future__ import annotations

import codecs
import logging
import os
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from secretsweep.scanner.matcher import make_issue
from secretsweep.scanner.models import Encoding, Issue
from secretsweep.scanner.patterns import Pattern

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 64 * 1024
DEFAULT_OVERLAP = 1024
DEFAULT_MAX_CARRY = 64 * 1024


class StreamOpenError(OSError):
    """The file to stream could not be opened."""

    def __init__(self, path: str, cause: BaseException) -> None:
        super().__init__(f"Cannot open {path}: {cause}")
        self.path = path


class StreamReadError(OSError):
    """Reading a chunk failed part-way through a file."""

    def __init__(self, path: str, cause: BaseException) -> None:
        super().__init__(f"Read failed for {path}: {cause}")
        self.path = path


@dataclass
class _ChunkState:
    """Per-file streaming cursor.

    ``line`` and ``column`` locate the first character of the next scan
    window (the start of ``overlap``) within the logical file.
    """

    cursor: int = 0
    line: int = 1
    column: int = 0
    overlap: str = ""


class ChunkedMatcher:
    """Scans one file at a time in bounded memory."""

    def __init__(
        self,
        patterns: Sequence[Pattern],
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        overlap: int = DEFAULT_OVERLAP,
        max_carry: int = DEFAULT_MAX_CARRY,
    ) -> None:
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        if overlap < 0 or overlap >= chunk_size:
            raise ValueError(
                f"overlap must be in [0, chunk_size), got {overlap} "
                f"with chunk_size {chunk_size}"
            )
        if max_carry < overlap:
            raise ValueError(
                f"max_carry must be at least overlap ({overlap}), got {max_carry}"
            )
        self._patterns = tuple(patterns)
        self._chunk_size = chunk_size
        self._overlap = overlap
        self._max_carry = max_carry

    @property
    def chunk_size(self) -> int:
        return self._chunk_size

    @property
    def overlap(self) -> int:
        return self._overlap

    @property
    def max_carry(self) -> int:
        return self._max_carry

    def scan_stream(
        self,
        path: str | Path,
        encoding: Encoding | str = Encoding.UTF8,
    ) -> list[Issue]:
        """Stream-scan a file and return its issues in line order.

        Raises StreamOpenError / StreamReadError; no partial result is
        returned on failure.
        """
        path_str = str(path)
        decoder = codecs.getincrementaldecoder(Encoding(encoding).codec)(
            errors="replace"
        )

        try:
            f = open(path_str, "rb")
        except OSError as e:
            raise StreamOpenError(path_str, e) from e

        issues: list[Issue] = []
        seen: set[tuple[str, int, int]] = set()
        state = _ChunkState()

        with f:
            try:
                size = os.fstat(f.fileno()).st_size
            except OSError as e:
                raise StreamReadError(path_str, e) from e

            logger.debug(
                "Streaming %s (%d bytes, chunk=%d, overlap=%d)",
                path_str,
                size,
                self._chunk_size,
                self._overlap,
            )

            while state.cursor < size:
                try:
                    data = f.read(min(self._chunk_size, size - state.cursor))
                except OSError as e:
                    raise StreamReadError(path_str, e) from e
                if not data:
                    break
                state.cursor += len(data)
                self._consume(decoder.decode(data), state, path_str, seen, issues)

            # Flush the decoder and scan whatever is still carried
            self._consume(
                decoder.decode(b"", final=True),
                state,
                path_str,
                seen,
                issues,
                final=True,
            )

        issues.sort(key=lambda issue: issue.line)
        return issues

    def _consume(
        self,
        chunk: str,
        state: _ChunkState,
        path: str,
        seen: set[tuple[str, int, int]],
        issues: list[Issue],
        final: bool = False,
    ) -> None:
        """Scan carry + chunk, then decide what to carry into the next window."""
        window = state.overlap + chunk
        if not window:
            return

        lines = window.split("\n")
        tail = lines[-1]
        if final:
            scanned = lines
            next_start = len(window)
        elif len(tail) <= self._max_carry:
            # The unfinished line is scanned once it is complete
            scanned = lines[:-1]
            next_start = len(window) - len(tail)
        else:
            scanned = lines
            next_start = len(window) - min(self._overlap, len(chunk))
        carry_from = next_start

        line_offset = 0
        for index, line in enumerate(scanned):
            line_number = state.line + index
            base_column = state.column if index == 0 else 0
            for pattern in self._patterns:
                for offset, text in pattern.match(line):
                    start = line_offset + offset
                    if start < next_start < start + len(text) and (
                        len(window) - start <= self._max_carry
                    ):
                        carry_from = min(carry_from, start)
                    column = base_column + offset
                    key = (pattern.id, line_number, column)
                    if key in seen:
                        continue
                    seen.add(key)
                    issues.append(make_issue(pattern, path, line_number, column, line))
            line_offset += len(line) + 1

        next_start = carry_from
        newlines = window.count("\n", 0, next_start)
        if newlines:
            state.column = next_start - (window.rfind("\n", 0, next_start) + 1)
        else:
            state.column += next_start
        state.line += newlines
        state.overlap = window[next_start:]

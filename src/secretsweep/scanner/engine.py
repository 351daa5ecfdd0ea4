"""Scan engine — classifies files and routes them to the right scan path."""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable, Sequence

from secretsweep.config import SweepConfig
from secretsweep.scanner.classifier import FileClassifier
from secretsweep.scanner.matcher import scan_file
from secretsweep.scanner.models import FileDescriptor, FileError, ScanReport
from secretsweep.scanner.patterns import PATTERNS, Pattern
from secretsweep.scanner.pool import WorkerPool
from secretsweep.scanner.stream import ChunkedMatcher

logger = logging.getLogger(__name__)


class ScanEngine:
    """Orchestrates secret scanning across a list of files.

    Binary files are dropped, large files are streamed in-process, and the
    rest are scanned whole, either in the worker pool (above the fan-out
    threshold) or sequentially.
    """

    def __init__(
        self,
        patterns: Sequence[Pattern] | None = None,
        config: SweepConfig | None = None,
        pool: WorkerPool | None = None,
    ) -> None:
        self._patterns = tuple(patterns if patterns is not None else PATTERNS)
        self._config = config or SweepConfig()
        self._classifier = FileClassifier(
            stream_threshold=self._config.stream_threshold,
            sample_size=self._config.sample_size,
        )
        self._streamer = ChunkedMatcher(
            self._patterns,
            chunk_size=self._config.chunk_size,
            overlap=self._config.overlap,
            max_carry=self._config.max_carry,
        )
        self._pool = pool or WorkerPool(worker_count=self._config.worker_count)

    @property
    def pool(self) -> WorkerPool:
        return self._pool

    @property
    def classifier(self) -> FileClassifier:
        return self._classifier

    def scan(self, files: Iterable[str]) -> ScanReport:
        """Scan the given files and return aggregated results.

        Per-file failures are recorded in ``report.errors``; a worker pool
        failure (WorkerPoolError) propagates.
        """
        start = time.time()
        report = ScanReport()
        whole_file: list[FileDescriptor] = []

        for path in files:
            descriptor = self._classifier.classify(path)
            if descriptor.is_binary:
                logger.debug("Skipping binary file: %s", path)
                report.files_skipped += 1
            elif descriptor.should_stream:
                self._scan_streamed(descriptor, report)
            else:
                whole_file.append(descriptor)

        if len(whole_file) > self._config.fanout_threshold:
            self._scan_parallel(whole_file, report)
        else:
            self._scan_sequential(whole_file, report)

        report.duration = time.time() - start
        logger.info(
            "Scanned %d files (%d skipped, %d errors) in %.2fs: %d issues",
            report.files_scanned,
            report.files_skipped,
            len(report.errors),
            report.duration,
            len(report.issues),
        )
        return report

    def close(self) -> None:
        """Stop any pool workers still running."""
        self._pool.terminate()

    def __enter__(self) -> ScanEngine:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _scan_streamed(self, descriptor: FileDescriptor, report: ScanReport) -> None:
        logger.info(
            "Streaming large file: %s (%d bytes)", descriptor.path, descriptor.size
        )
        try:
            issues = self._streamer.scan_stream(descriptor.path, descriptor.encoding)
        except OSError as e:
            _record_error(report, descriptor.path, type(e).__name__, str(e))
            return
        report.issues.extend(issues)
        report.files_scanned += 1
        report.files_streamed += 1

    def _scan_parallel(
        self, descriptors: list[FileDescriptor], report: ScanReport
    ) -> None:
        logger.info(
            "Using parallel scanning with %d workers for %d files",
            self._pool.worker_count,
            len(descriptors),
        )
        results = self._pool.scan_files(
            [d.path for d in descriptors],
            self._patterns,
            encodings={d.path: d.encoding for d in descriptors},
        )
        for result in results:
            if result.error is not None:
                _record_error(
                    report, result.file, result.error_type or "ScanError", result.error
                )
                continue
            report.issues.extend(result.issues)
            report.files_scanned += 1

    def _scan_sequential(
        self, descriptors: list[FileDescriptor], report: ScanReport
    ) -> None:
        for descriptor in descriptors:
            try:
                issues = scan_file(descriptor.path, self._patterns, descriptor.encoding)
            except Exception as e:  # noqa: BLE001
                _record_error(report, descriptor.path, type(e).__name__, str(e))
                continue
            report.issues.extend(issues)
            report.files_scanned += 1


def _record_error(report: ScanReport, path: str, error_type: str, message: str) -> None:
    logger.warning("Error scanning file %s: %s", path, message)
    report.errors.append(FileError(file=path, error_type=error_type, message=message))

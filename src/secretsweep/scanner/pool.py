"""Worker pool — fans a file list out across OS threads and gathers results.

Each worker owns a contiguous slice of the file list and a deep copy of the
pattern catalog. Workers never touch dispatcher state; they post messages on
a queue and the dispatcher (the thread that called ``scan_files``) is the
only writer of the aggregated results.
"""

from __future__ import annotations

import copy
import logging
import math
import os
import queue
import threading
from collections import Counter
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Union

from secretsweep.scanner.matcher import scan_file
from secretsweep.scanner.models import Encoding, Issue, ScanTaskResult
from secretsweep.scanner.patterns import Pattern

logger = logging.getLogger(__name__)

#: Worker entry point: scan one file as a whole and return its issues.
ScanFn = Callable[[str, Sequence[Pattern], Encoding], list[Issue]]


class WorkerPoolError(RuntimeError):
    """A worker failed outside its per-file guard; the whole batch is lost.

    ``partial_results`` holds whatever results had been received.
    """

    def __init__(
        self,
        message: str,
        partial_results: list[ScanTaskResult] | None = None,
    ) -> None:
        super().__init__(message)
        self.partial_results = partial_results or []


class PoolTerminatedError(WorkerPoolError):
    """The batch was interrupted by ``terminate()``."""


# --- Worker → dispatcher messages ---


@dataclass(frozen=True)
class ResultMessage:
    worker_id: int
    result: ScanTaskResult


@dataclass(frozen=True)
class ErrorMessage:
    worker_id: int
    message: str


@dataclass(frozen=True)
class CompleteMessage:
    worker_id: int


WorkerMessage = Union[ResultMessage, ErrorMessage, CompleteMessage]


@dataclass(frozen=True)
class WorkerAssignment:
    """Everything one worker receives at spawn time."""

    worker_id: int
    files: tuple[str, ...]
    patterns: tuple[Pattern, ...]
    encodings: Mapping[str, Encoding] = field(default_factory=dict)


@dataclass(frozen=True)
class PoolStats:
    total_files: int
    completed_files: int
    active_workers: int
    worker_count: int
    errors: int
    results: int


def default_worker_count() -> int:
    """One less than the CPU count, but at least one."""
    return max(1, (os.cpu_count() or 1) - 1)


def partition(files: Sequence[str], worker_count: int) -> list[list[str]]:
    """Split files into at most ``worker_count`` contiguous, ordered slices."""
    if not files:
        return []
    size = math.ceil(len(files) / worker_count)
    return [list(files[i : i + size]) for i in range(0, len(files), size)]


def run_worker(
    assignment: WorkerAssignment,
    scan_fn: ScanFn,
    outbox: queue.Queue[WorkerMessage],
    stop_event: threading.Event,
) -> None:
    """Worker thread body: scan each file, post one result per file, then complete."""
    try:
        for path in assignment.files:
            if stop_event.is_set():
                return
            encoding = assignment.encodings.get(path, Encoding.UTF8)
            try:
                issues = scan_fn(path, assignment.patterns, encoding)
                result = ScanTaskResult(file=path, issues=tuple(issues))
            except Exception as e:  # noqa: BLE001
                logger.debug("Worker %d failed on %s: %s", assignment.worker_id, path, e)
                result = ScanTaskResult(
                    file=path,
                    error=str(e) or type(e).__name__,
                    error_type=type(e).__name__,
                )
            outbox.put(ResultMessage(assignment.worker_id, result))
        outbox.put(CompleteMessage(assignment.worker_id))
    except Exception as e:  # noqa: BLE001
        outbox.put(ErrorMessage(assignment.worker_id, f"{type(e).__name__}: {e}"))


@dataclass
class _LiveWorker:
    thread: threading.Thread
    remaining: Counter[str]


class WorkerPool:
    """Scans whole files in parallel on a fixed number of worker threads.

    ``scan_fn`` is the worker entry point; workers never stream, so large
    files must be routed elsewhere before dispatch.
    """

    def __init__(
        self,
        worker_count: int | None = None,
        scan_fn: ScanFn = scan_file,
        poll_interval: float = 0.05,
    ) -> None:
        count = worker_count if worker_count is not None else default_worker_count()
        if count < 1:
            raise ValueError(f"worker_count must be at least 1, got {count}")
        self._worker_count = count
        self._scan_fn = scan_fn
        self._poll_interval = poll_interval

        self._stop_event = threading.Event()
        self._terminated = False

        # --- Guarded by _lock (read from other threads via get_progress/get_stats) ---
        self._lock = threading.Lock()
        self._threads: list[threading.Thread] = []
        self._total_files = 0
        self._completed_files = 0
        self._active_workers = 0
        self._errors: list[str] = []
        self._results: list[ScanTaskResult] = []

    @property
    def worker_count(self) -> int:
        return self._worker_count

    def scan_files(
        self,
        files: Sequence[str],
        patterns: Sequence[Pattern],
        encodings: Mapping[str, Encoding] | None = None,
    ) -> list[ScanTaskResult]:
        """Scan every file; return exactly one result per file, sorted by path.

        Per-file failures come back as results with ``error`` set. A worker
        failure raises WorkerPoolError; ``terminate()`` raises
        PoolTerminatedError.
        """
        files = list(files)
        encodings = encodings or {}

        with self._lock:
            if any(t.is_alive() for t in self._threads):
                raise RuntimeError("scan_files() is already running on this pool")
            self._total_files = len(files)
            self._completed_files = 0
            self._active_workers = 0
            self._errors = []
            self._results = []
            self._threads = []

        if not files:
            return []

        self._stop_event.clear()
        self._terminated = False
        outbox: queue.Queue[WorkerMessage] = queue.Queue()
        live: dict[int, _LiveWorker] = {}

        for worker_id, chunk in enumerate(partition(files, self._worker_count)):
            assignment = WorkerAssignment(
                worker_id=worker_id,
                files=tuple(chunk),
                patterns=tuple(patterns),
                encodings={p: encodings[p] for p in chunk if p in encodings},
            )
            thread = threading.Thread(
                target=run_worker,
                args=(copy.deepcopy(assignment), self._scan_fn, outbox, self._stop_event),
                name=f"secretsweep-worker-{worker_id}",
                daemon=True,
            )
            live[worker_id] = _LiveWorker(thread=thread, remaining=Counter(chunk))

        with self._lock:
            self._threads = [w.thread for w in live.values()]
            self._active_workers = len(live)

        logger.debug(
            "Dispatching %d files to %d workers", len(files), len(live)
        )
        for worker in live.values():
            worker.thread.start()

        try:
            self._dispatch(outbox, live)
        except WorkerPoolError:
            self._stop_event.set()
            raise
        finally:
            self._join_all()

        with self._lock:
            results = sorted(self._results, key=lambda r: r.file)
        return results

    def get_progress(self) -> float:
        """Fraction of dispatched files that have a result, in [0, 1]."""
        with self._lock:
            if self._total_files == 0:
                return 1.0
            return self._completed_files / self._total_files

    def get_stats(self) -> PoolStats:
        with self._lock:
            return PoolStats(
                total_files=self._total_files,
                completed_files=self._completed_files,
                active_workers=self._active_workers,
                worker_count=self._worker_count,
                errors=len(self._errors),
                results=len(self._results),
            )

    def terminate(self) -> None:
        """Stop all live workers. Idempotent; safe before start and after completion.

        Workers stop between files; a file already being scanned finishes
        first and its result is discarded.
        """
        with self._lock:
            threads = list(self._threads)
            if any(t.is_alive() for t in threads):
                self._terminated = True
        self._stop_event.set()
        for thread in threads:
            if thread is not threading.current_thread():
                thread.join()
        with self._lock:
            self._threads = []
            self._active_workers = 0

    # --- Dispatcher side ---

    def _dispatch(
        self,
        outbox: queue.Queue[WorkerMessage],
        live: dict[int, _LiveWorker],
    ) -> None:
        while live:
            if self._terminated:
                raise PoolTerminatedError(
                    "Scan terminated before all files completed",
                    self._partial(),
                )
            try:
                message = outbox.get(timeout=self._poll_interval)
            except queue.Empty:
                self._check_for_dead_workers(outbox, live)
                continue
            self._handle_message(message, live)

    def _handle_message(self, message: object, live: dict[int, _LiveWorker]) -> None:
        if isinstance(message, ResultMessage):
            worker = live.get(message.worker_id)
            path = message.result.file
            if worker is None or worker.remaining[path] <= 0:
                self._fail(f"Worker {message.worker_id} sent an unexpected result for {path}")
            worker.remaining[path] -= 1
            with self._lock:
                self._results.append(message.result)
                self._completed_files += 1
        elif isinstance(message, ErrorMessage):
            self._fail(f"Worker {message.worker_id} error: {message.message}")
        elif isinstance(message, CompleteMessage):
            worker = live.pop(message.worker_id, None)
            if worker is None:
                self._fail(f"Unknown worker {message.worker_id} reported completion")
            missing = sum(worker.remaining.values())
            if missing:
                self._fail(
                    f"Worker {message.worker_id} completed with {missing} files unreported"
                )
            with self._lock:
                self._active_workers -= 1
        else:
            self._fail(f"Invalid worker message: {message!r}")

    def _check_for_dead_workers(
        self,
        outbox: queue.Queue[WorkerMessage],
        live: dict[int, _LiveWorker],
    ) -> None:
        dead = [wid for wid, w in live.items() if not w.thread.is_alive()]
        # A dead worker's last messages may still be queued
        if dead and outbox.empty() and not self._terminated:
            self._fail(f"Worker {dead[0]} exited without completing its files")

    def _fail(self, message: str) -> None:
        logger.error("Worker pool failure: %s", message)
        with self._lock:
            self._errors.append(message)
        raise WorkerPoolError(message, self._partial())

    def _partial(self) -> list[ScanTaskResult]:
        with self._lock:
            return sorted(self._results, key=lambda r: r.file)

    def _join_all(self) -> None:
        with self._lock:
            threads = list(self._threads)
        for thread in threads:
            thread.join()
        with self._lock:
            self._active_workers = 0

"""Global configuration — scan tuning knobs, env vars, defaults."""

from __future__ import annotations

import os
from dataclasses import dataclass

from secretsweep.scanner.classifier import SAMPLE_SIZE, STREAM_THRESHOLD
from secretsweep.scanner.stream import (
    DEFAULT_CHUNK_SIZE,
    DEFAULT_MAX_CARRY,
    DEFAULT_OVERLAP,
)

# Thread spawn overhead only pays off above this many whole-file scans
FANOUT_THRESHOLD = 10

_ENV_PREFIX = "SECRETSWEEP_"


@dataclass
class SweepConfig:
    """Application-wide configuration."""

    chunk_size: int = DEFAULT_CHUNK_SIZE
    overlap: int = DEFAULT_OVERLAP
    max_carry: int = DEFAULT_MAX_CARRY
    stream_threshold: int = STREAM_THRESHOLD
    sample_size: int = SAMPLE_SIZE
    fanout_threshold: int = FANOUT_THRESHOLD
    worker_count: int | None = None  # None → CPU count - 1
    verbose: bool = False

    @classmethod
    def load(cls) -> SweepConfig:
        """Load config from environment variables over the defaults."""
        config = cls()

        chunk_size = _env_int("CHUNK_SIZE")
        if chunk_size is not None:
            config.chunk_size = chunk_size

        overlap = _env_int("OVERLAP")
        if overlap is not None:
            config.overlap = overlap

        max_carry = _env_int("MAX_CARRY")
        if max_carry is not None:
            config.max_carry = max_carry

        stream_threshold = _env_int("STREAM_THRESHOLD")
        if stream_threshold is not None:
            config.stream_threshold = stream_threshold

        fanout = _env_int("FANOUT_THRESHOLD")
        if fanout is not None:
            config.fanout_threshold = fanout

        workers = _env_int("WORKERS")
        if workers is not None:
            config.worker_count = workers

        return config


def _env_int(name: str) -> int | None:
    raw = os.environ.get(_ENV_PREFIX + name)
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{_ENV_PREFIX}{name} must be an integer, got {raw!r}") from None

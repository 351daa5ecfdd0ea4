"""File classification — binary detection, encoding sniffing, streaming decision."""

from __future__ import annotations

import logging
import os
from pathlib import Path

import chardet

from secretsweep.scanner.models import Encoding, FileDescriptor

logger = logging.getLogger(__name__)

# Files above this size are streamed in chunks (10 MB)
STREAM_THRESHOLD = 10 * 1024 * 1024

# Bytes sampled from the head of a file for binary/encoding detection (8 KB)
SAMPLE_SIZE = 8 * 1024

# Non-ASCII share of the sample above which a file is treated as binary
_BINARY_NON_ASCII_RATIO = 0.3

BINARY_EXTENSIONS = frozenset(
    {
        # Images
        ".png", ".jpg", ".jpeg", ".gif", ".bmp", ".ico", ".svg", ".webp",
        ".tiff", ".tif",
        # Video
        ".mp4", ".avi", ".mov", ".wmv", ".flv", ".mkv", ".webm", ".m4v",
        # Audio
        ".mp3", ".wav", ".flac", ".aac", ".ogg", ".wma", ".m4a",
        # Archives
        ".zip", ".tar", ".gz", ".bz2", ".7z", ".rar", ".xz", ".tgz",
        ".whl", ".egg",
        # Executables and libraries
        ".exe", ".dll", ".so", ".dylib", ".bin", ".app", ".deb", ".rpm",
        # Binary documents
        ".pdf", ".doc", ".docx", ".xls", ".xlsx", ".ppt", ".pptx",
        # Databases
        ".db", ".sqlite", ".sqlite3", ".mdb",
        # Fonts
        ".ttf", ".otf", ".woff", ".woff2", ".eot",
        # Compiled artefacts
        ".pyc", ".pyo", ".class", ".o", ".a", ".lib", ".jar", ".war",
    }
)


class FileClassifier:
    """Classifies files before their content is scanned.

    Classification is advisory: any I/O failure yields a conservative
    descriptor (text, utf-8, not streamed) instead of an exception.
    """

    def __init__(
        self,
        stream_threshold: int = STREAM_THRESHOLD,
        sample_size: int = SAMPLE_SIZE,
    ) -> None:
        self._stream_threshold = stream_threshold
        self._sample_size = sample_size

    def classify(self, path: str | Path) -> FileDescriptor:
        """Return the FileDescriptor for one file. Never raises."""
        path_str = str(path)
        try:
            size = os.stat(path_str).st_size
        except OSError as e:
            logger.debug("Cannot stat %s: %s", path_str, e)
            return FileDescriptor(path=path_str)

        should_stream = size > self._stream_threshold

        if Path(path_str).suffix.lower() in BINARY_EXTENSIONS:
            return FileDescriptor(
                path=path_str,
                size=size,
                is_binary=True,
                should_stream=should_stream,
            )

        try:
            sample = self._read_sample(path_str)
        except OSError as e:
            logger.debug("Cannot sample %s: %s", path_str, e)
            return FileDescriptor(path=path_str, size=size)

        if is_binary_content(sample):
            return FileDescriptor(
                path=path_str,
                size=size,
                is_binary=True,
                should_stream=should_stream,
            )

        return FileDescriptor(
            path=path_str,
            size=size,
            encoding=detect_encoding(sample),
            should_stream=should_stream,
        )

    def is_binary(self, path: str | Path) -> bool:
        return self.classify(path).is_binary

    def _read_sample(self, path: str) -> bytes:
        with open(path, "rb") as f:
            return f.read(self._sample_size)


def is_binary_content(sample: bytes) -> bool:
    """Null bytes or a high share of non-ASCII bytes mark content as binary."""
    if not sample:
        return False
    if b"\x00" in sample:
        return True
    non_ascii = sum(1 for byte in sample if byte > 127)
    return non_ascii / len(sample) > _BINARY_NON_ASCII_RATIO


def detect_bom(sample: bytes) -> Encoding | None:
    """Encoding announced by a byte order mark, if any."""
    if sample[:2] in (b"\xff\xfe", b"\xfe\xff"):
        return Encoding.UTF16
    if sample[:3] == b"\xef\xbb\xbf":
        return Encoding.UTF8
    return None


def detect_encoding(sample: bytes) -> Encoding:
    """BOM first, then chardet, then a local byte-statistics heuristic."""
    bom = detect_bom(sample)
    if bom is not None:
        return bom

    try:
        detected = chardet.detect(sample).get("encoding")
    except Exception as e:  # noqa: BLE001
        logger.debug("chardet failed, using fallback heuristic: %s", e)
        detected = None

    if detected:
        return normalize_encoding(detected)
    return fallback_encoding(sample)


def normalize_encoding(name: str) -> Encoding:
    """Map a sniffer's encoding name onto the supported set."""
    lower = name.lower()
    if "utf-8" in lower or "utf8" in lower:
        return Encoding.UTF8
    if "utf-16" in lower or "utf16" in lower or "ucs-2" in lower:
        return Encoding.UTF16
    if "iso-8859" in lower or "latin" in lower or "windows-125" in lower:
        return Encoding.LATIN1
    if "ascii" in lower:
        return Encoding.ASCII
    return Encoding.UTF8


def fallback_encoding(sample: bytes) -> Encoding:
    """Byte-statistics guess used when the sniffer gives no answer."""
    if not sample:
        return Encoding.UTF8

    total = len(sample)
    null_ratio = sample.count(0) / total
    high_bit = sum(1 for byte in sample if byte > 127)

    if null_ratio > 0.1:
        return Encoding.UTF16
    if high_bit / total < 0.05:
        return Encoding.ASCII
    # Well-formed multi-byte UTF-8 or not, undecided text is read as utf-8
    return Encoding.UTF8


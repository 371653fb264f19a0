"""Checksum computation for staged archives."""

from __future__ import annotations

import asyncio
import hashlib
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pathlib import Path

DEFAULT_ALGORITHM = "sha256"
DEFAULT_CHUNK_SIZE = 65536  # 64 KB chunks


def compute_file_checksum(path: Path, algorithm: str = DEFAULT_ALGORITHM) -> str:
    """Compute the hex digest of a file.

    Args:
        path: File to hash.
        algorithm: hashlib algorithm name.

    Returns:
        Lower-case hex digest.
    """
    hasher = hashlib.new(algorithm)
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(DEFAULT_CHUNK_SIZE), b""):
            hasher.update(chunk)
    return hasher.hexdigest()


def checksums_match(expected: str, actual: str) -> bool:
    """Compare two hex digests, ignoring case and surrounding whitespace."""
    return expected.strip().lower() == actual.strip().lower()


async def compute_checksum(path: Path, algorithm: str = DEFAULT_ALGORITHM) -> str:
    """Hash a file off the event loop.

    Args:
        path: File to hash.
        algorithm: hashlib algorithm name.

    Returns:
        Lower-case hex digest.
    """
    return await asyncio.to_thread(compute_file_checksum, path, algorithm)

"""Archive extraction (tar.gz, tar.bz2, tar.xz, zip)."""

from __future__ import annotations

import asyncio
import lzma
import stat
import tarfile
import zipfile
import zlib
from typing import TYPE_CHECKING

from .errors import ExtractionFailed

if TYPE_CHECKING:
    from pathlib import Path

TAR_MODES = {
    "tar.gz": "r:gz",
    "tar.bz2": "r:bz2",
    "tar.xz": "r:xz",
}


def infer_archive_format(name: str) -> str | None:
    """Infer archive format from a file name or URL.

    Args:
        name: Asset name or download URL.

    Returns:
        Archive format string or None if not an archive.
    """
    lower = name.lower()
    if lower.endswith((".tar.gz", ".tgz")):
        return "tar.gz"
    if lower.endswith((".tar.bz2", ".tbz2")):
        return "tar.bz2"
    if lower.endswith((".tar.xz", ".txz")):
        return "tar.xz"
    if lower.endswith(".zip"):
        return "zip"
    return None


def _extract_zip(archive_path: Path, destination: Path) -> None:
    with zipfile.ZipFile(archive_path, "r") as zf:
        zf.extractall(destination)
        # zipfile drops permission bits; restore the executable ones.
        for info in zf.infolist():
            mode = (info.external_attr >> 16) & 0o777
            if mode & stat.S_IXUSR and not info.is_dir():
                target = destination / info.filename
                target.chmod(target.stat().st_mode | mode)


def _extract_tar(archive_path: Path, destination: Path, mode: str) -> None:
    with tarfile.open(archive_path, mode) as tar:  # type: ignore[call-overload]
        tar.extractall(destination, filter="data")


async def extract_archive(
    archive_path: Path,
    destination: Path,
    format_hint: str | None = None,
) -> Path:
    """Extract an archive to the destination.

    Args:
        archive_path: Path to the archive file.
        destination: Directory to extract to.
        format_hint: Archive format; inferred from the file name when None.

    Returns:
        Path to the extracted directory.

    Raises:
        ExtractionFailed: If the format is unsupported or extraction fails.
    """
    archive_format = format_hint or infer_archive_format(archive_path.name)
    destination.mkdir(parents=True, exist_ok=True)

    try:
        if archive_format in TAR_MODES:
            await asyncio.to_thread(
                _extract_tar, archive_path, destination, TAR_MODES[archive_format]
            )
        elif archive_format == "zip":
            await asyncio.to_thread(_extract_zip, archive_path, destination)
        else:
            raise ExtractionFailed(f"Unsupported archive format: {archive_format}")
    except (
        tarfile.TarError,
        zipfile.BadZipFile,
        zlib.error,
        lzma.LZMAError,
        EOFError,
        OSError,
        ValueError,
        NotImplementedError,
    ) as e:
        raise ExtractionFailed(f"Failed to extract archive {archive_path.name}: {e}") from e

    return destination

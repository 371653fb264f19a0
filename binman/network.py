"""HTTP transfer client used for asset and checksum downloads.

Streams a single URL to a file with aiohttp, reporting percentage progress
through an optional ``ProgressChannel``. Partial files never survive a
failed transfer.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import aiohttp
import structlog

if TYPE_CHECKING:
    from pathlib import Path

    from .progress import ProgressChannel

logger = structlog.get_logger(__name__)

DEFAULT_TIMEOUT_SECONDS = 3600
DEFAULT_CHUNK_SIZE = 65536  # 64 KB chunks
USER_AGENT = "binman/1.0"


class TransferError(Exception):
    """Exception raised when a transfer fails."""


def _discard_partial(path: Path) -> None:
    if path.is_file():
        path.unlink(missing_ok=True)


class HttpClient:
    """Streaming HTTP downloader.

    Example:
        >>> client = HttpClient(timeout_seconds=600)
        >>> await client.download_file(url, Path("/tmp/asset.zip"), is_mirror=False)
    """

    def __init__(
        self,
        timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        """Initialize the client.

        Args:
            timeout_seconds: Total timeout for one transfer in seconds.
            chunk_size: Read size for the response stream.
        """
        self._timeout_seconds = timeout_seconds
        self._chunk_size = chunk_size
        self._log = logger.bind(component="http_client")

    async def download_file(
        self,
        url: str,
        destination: Path,
        is_mirror: bool = False,
        progress: ProgressChannel | None = None,
    ) -> None:
        """Download a URL into a file.

        Content-Length drives percentage progress whenever it is present. For
        trusted mirrors it is also enforced: a short or long body fails the
        transfer.

        Args:
            url: Source URL.
            destination: Target file; parent directories are created.
            is_mirror: Whether the URL belongs to a trusted mirror.
            progress: Channel receiving percentages in [0, 100].

        Raises:
            TransferError: On HTTP, network, timeout or local write failure.
        """
        log = self._log.bind(url=url, is_mirror=is_mirror)
        timeout = aiohttp.ClientTimeout(total=self._timeout_seconds)
        headers = {"User-Agent": USER_AGENT}

        log.debug("download_started", destination=str(destination))

        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            async with (
                aiohttp.ClientSession(timeout=timeout) as session,
                session.get(url, headers=headers) as response,
            ):
                if response.status == 404:
                    raise TransferError(f"File not found: {url}")
                if response.status >= 400:
                    raise TransferError(f"HTTP error {response.status}: {response.reason}")

                total_size = response.content_length or 0
                bytes_downloaded = 0

                with destination.open("wb") as f:
                    async for chunk in response.content.iter_chunked(self._chunk_size):
                        f.write(chunk)
                        bytes_downloaded += len(chunk)
                        if progress is not None and total_size > 0:
                            progress.send(min(bytes_downloaded / total_size * 100.0, 100.0))

            if is_mirror and total_size and bytes_downloaded != total_size:
                raise TransferError(
                    f"Incomplete download from {url}: "
                    f"expected {total_size} bytes, got {bytes_downloaded}"
                )

        except TransferError:
            _discard_partial(destination)
            raise

        except aiohttp.ClientError as e:
            _discard_partial(destination)
            raise TransferError(f"Network error: {e}") from e

        except TimeoutError:
            _discard_partial(destination)
            raise TransferError("Download timed out") from None

        except OSError as e:
            _discard_partial(destination)
            raise TransferError(f"Cannot write {destination}: {e}") from e

        if progress is not None:
            progress.send(100.0)
        log.debug("download_completed", bytes=bytes_downloaded)

"""Download pipeline for a single component version.

One run takes a selected version from "advertised" to "installed":

1. Resolve the platform asset for the version.
2. Recreate the version folder empty.
3. Recreate the ``in_progress`` staging folder inside it.
4. Download the asset from its primary URL into the staging folder.
5. On failure, download it again from the fallback URL, if any.
6. Extract the staged archive into the version folder.
7. Optionally verify the staged archive against its published checksum.
8. Remove the staging folder.

Any failure after step 2, cancellation included, removes the version folder,
so an incomplete or untrusted install is never left behind looking runnable.
Retrying is the caller's job; a run never repeats a step itself apart from
the fallback transfer.
"""

from __future__ import annotations

import asyncio
import contextlib
import shutil
from typing import TYPE_CHECKING

import structlog

from .archive import extract_archive
from .checksum import checksums_match, compute_checksum
from .errors import (
    AdapterError,
    AssetNotFound,
    ChecksumMismatch,
    DownloadFailed,
)
from .inventory import IN_PROGRESS_DIR
from .network import TransferError
from .progress import DEFAULT_THROTTLE_SECONDS, ProgressChannel, ProgressRelay

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

    from .binaries import Binaries
    from .interfaces import ReleaseAdapter, StepUpdateSink
    from .lifecycle import TasksTrackers
    from .models import PlatformAsset, RemoteVersionEntry
    from .network import HttpClient
    from .version import Version

logger = structlog.get_logger(__name__)


def ensure_empty_directory(path: Path) -> None:
    """Remove ``path`` if present and recreate it empty."""
    if path.exists():
        shutil.rmtree(path)
    path.mkdir(parents=True)


def remove_directory(path: Path) -> None:
    """Remove a directory tree; a missing directory is not an error."""
    shutil.rmtree(path, ignore_errors=True)


class DownloadPipeline:
    """Downloads, verifies and stages one version of a component."""

    def __init__(
        self,
        binary: Binaries,
        adapter: ReleaseAdapter,
        http_client: HttpClient,
        trackers: TasksTrackers,
        validate_checksum: bool = True,
        progress_throttle_seconds: float = DEFAULT_THROTTLE_SECONDS,
    ) -> None:
        """Initialize the pipeline.

        Args:
            binary: Component being installed.
            adapter: Release source for assets, folders and checksums.
            http_client: Client performing the transfers.
            trackers: Task-lifecycle registry hosting progress relays.
            validate_checksum: Whether step 7 runs.
            progress_throttle_seconds: Pause between relayed progress updates.
        """
        self._binary = binary
        self._adapter = adapter
        self._http_client = http_client
        self._trackers = trackers
        self._validate_checksum = validate_checksum
        self._progress_throttle_seconds = progress_throttle_seconds
        self._log = logger.bind(component="download_pipeline", binary=binary.binary_name)

    async def run(
        self,
        version: Version,
        catalog: Sequence[RemoteVersionEntry],
        progress: StepUpdateSink | None = None,
    ) -> Path:
        """Install ``version`` from the catalog.

        Args:
            version: Version to install.
            catalog: Published versions to look the version up in.
            progress: Optional sink for download progress.

        Returns:
            The populated version folder.

        Raises:
            AssetNotFound: If the version or its platform asset is unknown.
            DownloadFailed: If the asset or its checksum cannot be fetched,
                or the version folder cannot be prepared.
            ExtractionFailed: If the staged archive cannot be unpacked.
            ChecksumMismatch: If the archive does not match its checksum.
        """
        entry = self._find_entry(version, catalog)
        asset = self._find_asset(entry)

        try:
            binary_folder = self._adapter.get_binary_folder()
        except AdapterError as e:
            raise DownloadFailed(f"Error getting binary folder: {e}") from e

        destination = binary_folder / str(version)
        in_progress = destination / IN_PROGRESS_DIR
        archive_path = in_progress / asset.name

        log = self._log.bind(version=str(version), asset=asset.name)
        log.info("download_pipeline_started", destination=str(destination))

        try:
            await self._prepare(destination, in_progress)
            await self._download_asset(asset, archive_path, progress)

            log.info("extracting_archive", archive=str(archive_path))
            await self._extract(archive_path, destination)

            if self._validate_checksum:
                await self._verify_checksum(entry, asset, archive_path, in_progress)
            else:
                log.debug("checksum_validation_skipped")

            await asyncio.to_thread(remove_directory, in_progress)
        except BaseException as e:
            log.warning("download_pipeline_failed", error=str(e) or type(e).__name__)
            # Synchronous so that a cancelled run still removes its folder.
            remove_directory(destination)
            raise

        log.info("download_pipeline_completed")
        return destination

    def _find_entry(
        self,
        version: Version,
        catalog: Sequence[RemoteVersionEntry],
    ) -> RemoteVersionEntry:
        for entry in catalog:
            if entry.version == version:
                return entry
        raise AssetNotFound(f"No release entry for {self._binary.binary_name} {version}")

    def _find_asset(self, entry: RemoteVersionEntry) -> PlatformAsset:
        try:
            return self._adapter.find_version_for_platform(entry)
        except AdapterError as e:
            raise AssetNotFound(
                f"No platform asset for {self._binary.binary_name} {entry.version}: {e}"
            ) from e

    async def _prepare(self, destination: Path, in_progress: Path) -> None:
        try:
            await asyncio.to_thread(ensure_empty_directory, destination)
            await asyncio.to_thread(ensure_empty_directory, in_progress)
        except OSError as e:
            raise DownloadFailed(f"Cannot prepare {destination}: {e}") from e

    async def _download_asset(
        self,
        asset: PlatformAsset,
        archive_path: Path,
        progress: StepUpdateSink | None,
    ) -> None:
        """Fetch the asset from its primary URL, then from its fallback URL."""
        try:
            await self._transfer(asset.url, archive_path, asset.source.is_mirror, progress)
            return
        except TransferError as e:
            primary_error = e

        if asset.fallback_url is None:
            raise DownloadFailed(
                f"Error downloading {asset.name}: {primary_error}"
            ) from primary_error

        self._log.warning(
            "primary_download_failed",
            url=asset.url,
            fallback_url=asset.fallback_url,
            error=str(primary_error),
        )
        try:
            await self._transfer(asset.fallback_url, archive_path, asset.source.is_mirror, progress)
        except TransferError as e:
            raise DownloadFailed(
                f"Error downloading {asset.name} from fallback {asset.fallback_url}: {e}"
            ) from e

    async def _extract(self, archive_path: Path, destination: Path) -> None:
        """Unpack the archive; a cancelled caller waits for the worker thread to stop."""
        extraction = asyncio.ensure_future(extract_archive(archive_path, destination))
        try:
            await asyncio.shield(extraction)
        except asyncio.CancelledError:
            with contextlib.suppress(Exception):
                await extraction
            raise

    async def _transfer(
        self,
        url: str,
        archive_path: Path,
        is_mirror: bool,
        progress: StepUpdateSink | None,
    ) -> None:
        channel = self._start_progress_relay(progress)
        try:
            await self._http_client.download_file(url, archive_path, is_mirror, channel)
        finally:
            if channel is not None:
                channel.close()

    def _start_progress_relay(self, sink: StepUpdateSink | None) -> ProgressChannel | None:
        """Spawn a relay for one transfer; it is never awaited here."""
        if sink is None:
            return None

        phase = self._trackers.get(self._binary.task_phase)
        channel = ProgressChannel()
        relay = ProgressRelay(
            channel,
            sink,
            phase.signal,
            self._binary.binary_name,
            throttle_seconds=self._progress_throttle_seconds,
        )
        phase.tracker.spawn(relay.run(), name=f"{self._binary.binary_name}-progress")
        return channel

    async def _verify_checksum(
        self,
        entry: RemoteVersionEntry,
        asset: PlatformAsset,
        archive_path: Path,
        in_progress: Path,
    ) -> None:
        try:
            checksum_file = await self._adapter.download_and_get_checksum_path(in_progress, entry)
            expected = await self._adapter.get_expected_checksum(checksum_file, asset.name)
        except AdapterError as e:
            raise DownloadFailed(f"Error getting checksum for {asset.name}: {e}") from e

        try:
            actual = await compute_checksum(archive_path)
        except OSError as e:
            raise DownloadFailed(f"Cannot hash {archive_path}: {e}") from e

        if not checksums_match(expected, actual):
            raise ChecksumMismatch(asset.name, expected, actual)

        self._log.info("checksum_validated", asset=asset.name)

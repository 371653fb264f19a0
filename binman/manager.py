"""BinaryManager: per-component façade over policy, inventory and downloads.

Typical flow::

    manager = BinaryManager(Binaries.MINOTARI_NODE, adapter, network=Network.MAINNET)
    await asyncio.gather(manager.check_for_updates(), manager.read_local_versions())
    version = manager.select_highest_version()
    if not manager.check_if_files_for_version_exist(version):
        await manager.download_version_with_retries(version, progress=sink)
    manager.set_used_version(version)

``check_for_updates`` and ``read_local_versions`` touch disjoint state and may
run concurrently; callers must let both finish before selecting.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import structlog

from .config import resolve_binary_config
from .errors import (
    AdapterError,
    BinaryManagerError,
    InventoryError,
    NoVersionSelected,
    RetriesExhausted,
    SelectionRequired,
)
from .interfaces import ReportLevel
from .inventory import LocalInventoryScanner, version_files_exist
from .lifecycle import TasksTrackers
from .models import ManagerPhase, ManagerState, Network
from .network import HttpClient
from .pipeline import DownloadPipeline
from .policy import VersionPolicy
from .progress import DEFAULT_THROTTLE_SECONDS
from .selector import select_highest_version
from .telemetry import StructlogErrorReporter

if TYPE_CHECKING:
    from pathlib import Path

    from .binaries import Binaries
    from .interfaces import ErrorReporter, ReleaseAdapter, StepUpdateSink
    from .models import SystemConfig
    from .version import Version

logger = structlog.get_logger(__name__)

DEFAULT_MAX_ATTEMPTS = 3


class BinaryManager:
    """Owns version state and downloads for one logical component."""

    def __init__(
        self,
        binary: Binaries,
        adapter: ReleaseAdapter,
        *,
        http_client: HttpClient | None = None,
        trackers: TasksTrackers | None = None,
        policy: VersionPolicy | None = None,
        network: Network = Network.MAINNET,
        network_prerelease_prefix: str | None = None,
        versions_file: Path | None = None,
        validate_checksum: bool = True,
        binary_subfolder: str | None = None,
        error_reporter: ErrorReporter | None = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        progress_throttle_seconds: float = DEFAULT_THROTTLE_SECONDS,
    ) -> None:
        """Initialize the manager and load the component's version policy.

        Args:
            binary: Component to manage.
            adapter: Release source for the component.
            http_client: Transfer client. Defaults to a fresh HttpClient.
            trackers: Task-lifecycle registry. Defaults to a private one.
            policy: Explicit policy; when None it is loaded for ``network``.
            network: Network selecting the constraint document.
            network_prerelease_prefix: Required prerelease tag, if any.
            versions_file: Constraint document overriding the bundled one.
            validate_checksum: Whether downloads are checksum-verified.
            binary_subfolder: Subfolder holding the executable, if any.
            error_reporter: Telemetry sink for final download failures.
            max_attempts: Download attempts before giving up.
            progress_throttle_seconds: Pause between relayed progress updates.
        """
        self._binary = binary
        self._adapter = adapter
        self._binary_subfolder = binary_subfolder
        self._error_reporter = error_reporter or StructlogErrorReporter()
        self._max_attempts = max_attempts
        self._log = logger.bind(component="binary_manager", binary=binary.binary_name)

        self._policy = policy or VersionPolicy.for_network(
            binary.binary_name,
            network,
            prerelease_tag=network_prerelease_prefix,
            versions_file=versions_file,
        )
        self._scanner = LocalInventoryScanner(binary, self._policy)
        self._pipeline = DownloadPipeline(
            binary,
            adapter,
            http_client or HttpClient(),
            trackers or TasksTrackers(),
            validate_checksum=validate_checksum,
            progress_throttle_seconds=progress_throttle_seconds,
        )

        self._state = ManagerState()
        self._selected_version: Version | None = None
        self._selection_pending = False
        self._phase = ManagerPhase.POLICY_LOADED

    @classmethod
    def from_config(
        cls,
        binary: Binaries,
        adapter: ReleaseAdapter,
        config: SystemConfig,
        *,
        http_client: HttpClient | None = None,
        trackers: TasksTrackers | None = None,
        error_reporter: ErrorReporter | None = None,
    ) -> BinaryManager:
        """Create a manager from the system configuration.

        Per-binary settings override global ones. The network prerelease tag
        only applies to components that follow the network channel.

        Args:
            binary: Component to manage.
            adapter: Release source for the component.
            config: Loaded system configuration.
            http_client: Transfer client; built from the config when None.
            trackers: Task-lifecycle registry.
            error_reporter: Telemetry sink.

        Returns:
            Configured BinaryManager instance.
        """
        global_config = config.global_config
        binary_config = resolve_binary_config(config, binary.binary_name)
        validate_checksum = (
            global_config.validate_checksums
            if binary_config.validate_checksum is None
            else binary_config.validate_checksum
        )

        prerelease_prefix = (
            global_config.network.prerelease_tag if binary.follows_network_channel else None
        )

        return cls(
            binary,
            adapter,
            http_client=http_client
            or HttpClient(timeout_seconds=global_config.download_timeout_seconds),
            trackers=trackers,
            network=global_config.network,
            network_prerelease_prefix=prerelease_prefix,
            versions_file=global_config.versions_file,
            validate_checksum=validate_checksum,
            binary_subfolder=binary_config.subfolder,
            error_reporter=error_reporter,
            max_attempts=global_config.download_max_attempts,
            progress_throttle_seconds=global_config.progress_throttle_seconds,
        )

    @property
    def binary(self) -> Binaries:
        """The managed component."""
        return self._binary

    @property
    def policy(self) -> VersionPolicy:
        """The component's version policy."""
        return self._policy

    @property
    def state(self) -> ManagerState:
        """Current online, local and used versions."""
        return self._state

    @property
    def phase(self) -> ManagerPhase:
        """Current lifecycle phase."""
        return self._phase

    @property
    def binary_subfolder(self) -> str | None:
        """Subfolder of a version folder holding the executable, if any."""
        return self._binary_subfolder

    async def check_for_updates(self) -> None:
        """Refresh the online list from the release source.

        The online list is replaced by the policy-accepted entries, newest
        first. Any failure to fetch or read the catalog yields an empty list.
        """
        self._log.debug("checking_for_updates")

        try:
            entries = await self._adapter.fetch_releases_list()
        except Exception as e:
            self._log.error("fetch_releases_failed", error=str(e), error_type=type(e).__name__)
            entries = []

        self._log.debug("found_online_versions", count=len(entries))

        accepted = [entry for entry in entries if self._policy.matches(entry.version)]
        accepted_versions = [entry.version for entry in accepted]

        for entry in entries:
            if entry in accepted:
                continue
            self._log.debug("skipping_version", version=str(entry.version))
            if self._policy.exceeds(entry.version, accepted_versions):
                self._log.warning(
                    "version_exceeds_requirements",
                    version=str(entry.version),
                    requirement=str(self._policy.requirement),
                )

        self._state.online_versions = sorted(
            accepted, key=lambda entry: entry.version, reverse=True
        )
        self._phase = ManagerPhase.CATALOG_CHECKED

    async def read_local_versions(self) -> None:
        """Scan the installation folder and append usable versions.

        Folder errors are logged and leave the local list unchanged.
        """
        self._log.debug("reading_local_versions")

        try:
            binary_folder = self._adapter.get_binary_folder()
        except AdapterError as e:
            self._log.error("binary_folder_unavailable", error=str(e))
            return

        try:
            found = await asyncio.to_thread(self._scanner.scan, binary_folder)
        except InventoryError as e:
            self._log.error("binary_folder_unreadable", error=str(e))
            return

        self._state.local_versions.extend(found)
        self._state.local_versions.sort(reverse=True)
        self._phase = ManagerPhase.INVENTORY_SCANNED

    def select_highest_version(self) -> Version | None:
        """Select the newest version across online and local candidates.

        Does not change the used version.

        Returns:
            The selected version, or None when there is no candidate.
        """
        online = [entry.version for entry in self._state.online_versions]
        local = self._state.local_versions
        selected = select_highest_version(online, local)

        self._log.debug(
            "selected_highest_version",
            online=str(online[0]) if online else None,
            local=str(local[0]) if local else None,
            selected=str(selected) if selected else None,
        )

        self._selection_pending = True
        self._selected_version = selected
        if selected is None:
            self._log.warning("no_version_selected")
        else:
            self._phase = ManagerPhase.VERSION_SELECTED
        return selected

    def check_if_files_for_version_exist(self, version: Version | None) -> bool:
        """Check whether a version is installed.

        Args:
            version: Version to look for; None is never installed.

        Returns:
            True if the version folder holds a runnable artifact.
        """
        if version is None:
            self._log.warning("no_version_selected")
            return False

        try:
            binary_folder = self._adapter.get_binary_folder()
        except AdapterError as e:
            self._log.error("binary_folder_unavailable", error=str(e))
            return False

        exists = version_files_exist(self._binary, binary_folder, version)
        if (
            exists
            and self._phase is ManagerPhase.VERSION_SELECTED
            and version == self._selected_version
        ):
            self._phase = ManagerPhase.FILES_PRESENT
        return exists

    async def download_version_with_retries(
        self,
        version: Version | None,
        progress: StepUpdateSink | None = None,
    ) -> None:
        """Download and stage a version, retrying failed attempts.

        Attempts run back to back. After the last failure one telemetry
        message is reported and the failure is raised.

        Args:
            version: Version to install.
            progress: Optional sink for download progress.

        Raises:
            NoVersionSelected: If ``version`` is None.
            RetriesExhausted: If every attempt failed.
        """
        if version is None:
            self._log.warning("no_version_selected")
            raise NoVersionSelected(f"No version selected for binary: {self._binary.binary_name}")

        self._phase = ManagerPhase.DOWNLOADING
        errors: list[BaseException] = []

        for attempt in range(1, self._max_attempts + 1):
            try:
                await self._pipeline.run(version, self._state.online_versions, progress)
            except BinaryManagerError as e:
                errors.append(e)
                self._log.warning(
                    "download_attempt_failed",
                    version=str(version),
                    attempt=attempt,
                    max_attempts=self._max_attempts,
                    error=str(e),
                )
                continue

            self._log.info("download_succeeded", version=str(version), attempt=attempt)
            self._phase = ManagerPhase.DOWNLOADED
            return

        message = f"Failed to download binary: {self._binary.binary_name}. Error: {errors[-1]}"
        self._report_failure(message)
        self._log.error("download_retries_exhausted", version=str(version), attempts=len(errors))
        self._phase = ManagerPhase.FAILED
        raise RetriesExhausted(message, errors)

    def _report_failure(self, message: str) -> None:
        try:
            self._error_reporter.capture_message(message, ReportLevel.ERROR)
        except Exception as e:
            self._log.warning("telemetry_report_failed", error=str(e))

    def set_used_version(self, version: Version) -> None:
        """Mark a present version as the one to run.

        Args:
            version: Version confirmed present on disk.

        Raises:
            SelectionRequired: If a different version is already in use and
                no selection pass ran since it was set.
        """
        current = self._state.used_version
        if current is not None and current != version and not self._selection_pending:
            raise SelectionRequired(
                f"Version {current} already in use for {self._binary.binary_name}; "
                "run select_highest_version() before replacing it"
            )

        self._log.debug("setting_used_version", version=str(version))
        self._state.used_version = version
        self._selection_pending = False
        self._phase = ManagerPhase.VERSION_IN_USE

    def get_used_version(self) -> Version | None:
        """Return the version in use, if any."""
        return self._state.used_version

    def get_base_dir(self) -> Path:
        """Return the folder of the version in use.

        Raises:
            NoVersionSelected: If no version is in use.
            AdapterError: If the binary folder cannot be determined.
        """
        used = self._state.used_version
        if used is None:
            raise NoVersionSelected(f"No version selected for binary: {self._binary.binary_name}")
        return self._adapter.get_binary_folder() / str(used)

"""Core interfaces for the binary manager.

This module defines the abstract base classes for the collaborators the
manager depends on: release catalogs, progress step sinks and error
telemetry sinks.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pathlib import Path

    from .models import PlatformAsset, RemoteVersionEntry


class ReleaseAdapter(ABC):
    """Abstract base class for an upstream release source.

    One implementation exists per release host. Implementations raise
    ``AdapterError`` for any failure.
    """

    @abstractmethod
    async def fetch_releases_list(self) -> list[RemoteVersionEntry]:
        """Fetch the published versions with their assets.

        Returns:
            Published versions in any order.
        """
        ...

    @abstractmethod
    def find_version_for_platform(self, entry: RemoteVersionEntry) -> PlatformAsset:
        """Pick the asset matching the current operating system and architecture.

        Args:
            entry: Published version to search.

        Returns:
            The best matching asset.
        """
        ...

    @abstractmethod
    def get_binary_folder(self) -> Path:
        """Return the root folder holding one subfolder per installed version."""
        ...

    @abstractmethod
    async def download_and_get_checksum_path(
        self,
        destination_dir: Path,
        entry: RemoteVersionEntry,
    ) -> Path:
        """Download the checksum file for ``entry``'s assets.

        Args:
            destination_dir: Folder to save the checksum file in.
            entry: Version whose (single) asset is being verified.

        Returns:
            Path to the downloaded checksum file.
        """
        ...

    @abstractmethod
    async def get_expected_checksum(self, checksum_file: Path, asset_name: str) -> str:
        """Read the published checksum of an asset.

        Args:
            checksum_file: File returned by download_and_get_checksum_path().
            asset_name: Asset whose checksum is needed.

        Returns:
            Hex digest.
        """
        ...


class StepUpdateSink(ABC):
    """Receives progress for one setup step (typically forwarded to a UI)."""

    @abstractmethod
    async def send_update(self, params: dict[str, str], progress: float) -> None:
        """Report step progress.

        Args:
            params: Display parameters (e.g. ``{"progress": "42.0"}``).
            progress: Normalized completion between 0.0 and 1.0.
        """
        ...


class ReportLevel(str, Enum):
    """Severity of a telemetry report."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class ErrorReporter(ABC):
    """Sink for error telemetry events."""

    @abstractmethod
    def capture_message(self, message: str, level: ReportLevel = ReportLevel.ERROR) -> None:
        """Record a human-readable telemetry message.

        Args:
            message: Message to report.
            level: Severity of the event.
        """
        ...

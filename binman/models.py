"""Core data models for the binary manager.

This module defines the release catalog dataclasses, the manager state, and
the Pydantic models used for configuration.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path  # noqa: TC003 - needed at runtime by Pydantic

from pydantic import BaseModel, Field

from .version import Version  # noqa: TC001 - needed at runtime by dataclasses


class Network(str, Enum):
    """Deployment network the application runs against."""

    MAINNET = "mainnet"
    STAGENET = "stagenet"
    NEXTNET = "nextnet"
    ESMERALDA = "esmeralda"
    LOCALNET = "localnet"
    IGOR = "igor"

    @property
    def versions_document(self) -> str:
        """Name of the bundled version constraint document for this network."""
        if self in (Network.MAINNET, Network.STAGENET):
            return "binaries_versions_mainnet.json"
        if self is Network.NEXTNET:
            return "binaries_versions_nextnet.json"
        return "binaries_versions_testnets.json"

    @property
    def prerelease_tag(self) -> str | None:
        """Prerelease channel tag published builds carry on this network."""
        if self is Network.NEXTNET:
            return "rc"
        if self is Network.ESMERALDA:
            return "pre"
        return None


class AssetSource(str, Enum):
    """Where a platform asset is hosted."""

    GITHUB = "github"
    MIRROR = "mirror"

    @property
    def is_mirror(self) -> bool:
        """Whether the asset is served by a trusted mirror."""
        return self is AssetSource.MIRROR


@dataclass(frozen=True)
class PlatformAsset:
    """A downloadable artifact for one operating system and architecture.

    Attributes:
        name: Asset file name (also used to look up its checksum).
        url: Primary download URL.
        fallback_url: Secondary URL tried when the primary fails.
        source: Hosting kind; trusted mirrors allow content-length checks.
    """

    name: str
    url: str
    fallback_url: str | None = None
    source: AssetSource = AssetSource.GITHUB


@dataclass(frozen=True)
class RemoteVersionEntry:
    """A published version and the assets attached to it."""

    version: Version
    assets: tuple[PlatformAsset, ...] = ()


class ManagerPhase(str, Enum):
    """Lifecycle state of a BinaryManager."""

    UNINITIALIZED = "uninitialized"
    POLICY_LOADED = "policy_loaded"
    CATALOG_CHECKED = "catalog_checked"
    INVENTORY_SCANNED = "inventory_scanned"
    VERSION_SELECTED = "version_selected"
    FILES_PRESENT = "files_present"
    DOWNLOADING = "downloading"
    DOWNLOADED = "downloaded"
    FAILED = "failed"
    VERSION_IN_USE = "version_in_use"


@dataclass
class ManagerState:
    """Mutable state owned by a BinaryManager.

    Attributes:
        online_versions: Policy-accepted remote versions, newest first.
        local_versions: Policy-accepted installed versions, newest first.
        used_version: Version confirmed present and handed to the launcher.
    """

    online_versions: list[RemoteVersionEntry] = field(default_factory=list)
    local_versions: list[Version] = field(default_factory=list)
    used_version: Version | None = None


# =============================================================================
# Configuration
# =============================================================================


class GlobalConfig(BaseModel):
    """Global configuration for the binary manager."""

    network: Network = Field(default=Network.MAINNET, description="Active deployment network")
    binaries_dir: Path | None = Field(
        default=None,
        description="Root folder for installed binaries. None = XDG data directory.",
    )
    versions_file: Path | None = Field(
        default=None,
        description="Version constraint document overriding the bundled one.",
    )
    validate_checksums: bool = Field(
        default=True, description="Verify downloaded archives against published checksums"
    )
    download_max_attempts: int = Field(
        default=3, ge=1, description="Pipeline attempts before a download is reported failed"
    )
    download_timeout_seconds: int = Field(
        default=3600, description="Timeout for a single asset transfer in seconds"
    )
    progress_throttle_seconds: float = Field(
        default=0.01, ge=0, description="Pause between relayed progress updates"
    )


class BinaryConfig(BaseModel):
    """Configuration for a single logical component."""

    name: str = Field(..., description="Logical component name")
    repository: str | None = Field(
        default=None, description="GitHub repository in 'owner/name' form"
    )
    mirror_url: str | None = Field(
        default=None, description="Trusted mirror base URL tried before GitHub"
    )
    validate_checksum: bool | None = Field(
        default=None, description="Per-binary override of validate_checksums"
    )
    subfolder: str | None = Field(default=None, description="Subfolder holding the executable")


class SystemConfig(BaseModel):
    """Complete system configuration."""

    global_config: GlobalConfig = Field(default_factory=GlobalConfig)
    binaries: dict[str, BinaryConfig] = Field(default_factory=dict)

"""Release adapter for components published as GitHub releases.

Releases are listed through the GitHub REST API. Each release tag that is a
semantic version becomes a ``RemoteVersionEntry``; its assets are matched to
the current platform by operating-system and architecture tokens in the
asset name. When a trusted mirror is configured it is tried first, with the
GitHub download URL as fallback.

Checksums are published as ``<asset>.sha256`` files next to each asset.
"""

from __future__ import annotations

import asyncio
import platform
import re
from typing import TYPE_CHECKING, Any

import aiohttp
import structlog

from ..config import get_binaries_dir, resolve_binary_config
from ..errors import AdapterError, ConfigError
from ..interfaces import ReleaseAdapter
from ..models import AssetSource, PlatformAsset, RemoteVersionEntry
from ..network import TransferError
from ..version import try_parse_version

if TYPE_CHECKING:
    from pathlib import Path

    from ..binaries import Binaries
    from ..models import SystemConfig
    from ..network import HttpClient

logger = structlog.get_logger(__name__)

GITHUB_API_URL = "https://api.github.com"
CHECKSUM_SUFFIX = ".sha256"
DEFAULT_API_TIMEOUT_SECONDS = 30
RELEASES_PER_PAGE = 100

OS_ALIASES = {
    "linux": ("linux",),
    "macos": ("macos", "darwin", "osx", "apple"),
    "windows": ("windows", "win64", "win"),
}
ARCH_ALIASES = {
    "x86_64": ("x86_64", "x64", "amd64"),
    "arm64": ("arm64", "aarch64"),
}
ARCHIVE_SUFFIXES = (".zip", ".tar.gz", ".tgz", ".tar.bz2", ".tar.xz")


def detect_platform() -> tuple[str, str]:
    """Detect the current operating system and architecture.

    Returns:
        ``(os_name, arch)`` using the keys of OS_ALIASES and ARCH_ALIASES.
    """
    system = platform.system().lower()
    if system == "darwin":
        os_name = "macos"
    elif system == "windows":
        os_name = "windows"
    else:
        os_name = "linux"

    machine = platform.machine().lower()
    arch = "arm64" if machine in ("aarch64", "arm64") else "x86_64"

    return os_name, arch


def _has_token(name: str, token: str) -> bool:
    return re.search(rf"(?<![a-z0-9]){re.escape(token)}(?![a-z0-9])", name) is not None


def asset_matches_platform(asset_name: str, os_name: str, arch: str) -> bool:
    """Check whether an asset name targets the given platform.

    Args:
        asset_name: Asset file name.
        os_name: Operating system key (see OS_ALIASES).
        arch: Architecture key (see ARCH_ALIASES).

    Returns:
        True if the name carries both an OS and an architecture token.
    """
    lower = asset_name.lower()
    os_match = any(_has_token(lower, alias) for alias in OS_ALIASES.get(os_name, (os_name,)))
    arch_match = any(_has_token(lower, alias) for alias in ARCH_ALIASES.get(arch, (arch,)))
    return os_match and arch_match


def parse_checksum_file(content: str, asset_name: str) -> str | None:
    """Find an asset's digest in ``sha256sum``-style content.

    Lines look like ``<hex>  <file>`` or ``<hex> *<file>``. A file holding a
    single bare digest applies to whichever asset it accompanies.

    Args:
        content: Checksum file text.
        asset_name: Asset to look up.

    Returns:
        The hex digest, or None if the asset is not listed.
    """
    lines = [line.strip() for line in content.splitlines() if line.strip()]
    for line in lines:
        parts = line.split(maxsplit=1)
        if len(parts) == 2 and parts[1].lstrip("*").strip() == asset_name:
            return parts[0]

    if len(lines) == 1 and len(lines[0].split()) == 1:
        return lines[0]
    return None


class GitHubReleasesAdapter(ReleaseAdapter):
    """Release adapter backed by a GitHub repository's releases.

    Example:
        >>> adapter = GitHubReleasesAdapter(
        ...     Binaries.XMRIG,
        ...     repository="xmrig/xmrig",
        ...     binaries_root=Path("~/.local/share/binman/binaries").expanduser(),
        ...     http_client=HttpClient(),
        ... )
    """

    def __init__(
        self,
        binary: Binaries,
        repository: str,
        binaries_root: Path,
        http_client: HttpClient,
        mirror_url: str | None = None,
        asset_name_filter: str | None = None,
        platform_info: tuple[str, str] | None = None,
        api_url: str = GITHUB_API_URL,
        timeout_seconds: int = DEFAULT_API_TIMEOUT_SECONDS,
    ) -> None:
        """Initialize the adapter.

        Args:
            binary: Component whose releases are listed.
            repository: Repository in ``owner/name`` form.
            binaries_root: Root folder holding one folder per component.
            http_client: Client used for checksum downloads.
            mirror_url: Trusted mirror base URL; assets are expected at
                ``<mirror_url>/<tag>/<asset>``.
            asset_name_filter: Substring asset names must contain (for
                repositories publishing several components per release).
            platform_info: ``(os_name, arch)`` override of the detected platform.
            api_url: GitHub API base URL.
            timeout_seconds: Timeout for release listing requests.
        """
        self._binary = binary
        self._repository = repository
        self._binaries_root = binaries_root
        self._http_client = http_client
        self._mirror_url = mirror_url.rstrip("/") if mirror_url else None
        self._asset_name_filter = asset_name_filter
        self._platform = platform_info or detect_platform()
        self._api_url = api_url.rstrip("/")
        self._timeout_seconds = timeout_seconds
        self._log = logger.bind(
            component="github_adapter",
            binary=binary.binary_name,
            repository=repository,
        )

    @classmethod
    def from_config(
        cls,
        binary: Binaries,
        config: SystemConfig,
        http_client: HttpClient,
    ) -> GitHubReleasesAdapter:
        """Create an adapter from the system configuration.

        Args:
            binary: Component whose releases are listed.
            config: Loaded system configuration.
            http_client: Client used for checksum downloads.

        Returns:
            Configured adapter.

        Raises:
            ConfigError: If no repository is known for the component.
        """
        binary_config = resolve_binary_config(config, binary.binary_name)
        if binary_config.repository is None:
            raise ConfigError(f"No release repository configured for {binary.binary_name}")

        return cls(
            binary,
            repository=binary_config.repository,
            binaries_root=get_binaries_dir(config.global_config),
            http_client=http_client,
            mirror_url=binary_config.mirror_url,
        )

    @property
    def releases_url(self) -> str:
        """REST endpoint listing the repository's releases."""
        return f"{self._api_url}/repos/{self._repository}/releases?per_page={RELEASES_PER_PAGE}"

    async def fetch_releases_list(self) -> list[RemoteVersionEntry]:
        """Fetch published releases from the GitHub API.

        Drafts and tags that are not semantic versions are skipped.

        Raises:
            AdapterError: If the API cannot be reached or its answer is unusable.
        """
        data = await self._get_json(self.releases_url)
        if not isinstance(data, list):
            raise AdapterError(f"Unexpected releases payload from {self._repository}")

        entries: list[RemoteVersionEntry] = []
        for release in data:
            if not isinstance(release, dict) or release.get("draft"):
                continue

            tag = str(release.get("tag_name", ""))
            version = try_parse_version(tag)
            if version is None:
                self._log.debug("skipping_unparseable_tag", tag=tag)
                continue

            raw_assets = release.get("assets") or []
            if not isinstance(raw_assets, list):
                raise AdapterError(f"Unexpected assets payload for {tag} in {self._repository}")
            assets = tuple(
                self._make_asset(tag, asset)
                for asset in raw_assets
                if isinstance(asset, dict) and asset.get("name")
            )
            entries.append(RemoteVersionEntry(version=version, assets=assets))

        self._log.debug("fetched_releases", count=len(entries))
        return entries

    async def _get_json(self, url: str) -> Any:
        headers = {"Accept": "application/vnd.github.v3+json"}
        try:
            async with (
                aiohttp.ClientSession() as session,
                session.get(
                    url,
                    headers=headers,
                    timeout=aiohttp.ClientTimeout(total=self._timeout_seconds),
                ) as resp,
            ):
                if resp.status != 200:
                    raise AdapterError(f"GitHub API error {resp.status} for {url}")
                return await resp.json()
        except (TimeoutError, aiohttp.ClientError) as e:
            raise AdapterError(f"Cannot reach GitHub API for {self._repository}: {e}") from e
        except ValueError as e:
            raise AdapterError(f"Malformed GitHub API response for {url}: {e}") from e

    def _make_asset(self, tag: str, asset: dict[str, Any]) -> PlatformAsset:
        name = str(asset["name"])
        github_url = str(asset.get("browser_download_url", ""))
        if self._mirror_url:
            return PlatformAsset(
                name=name,
                url=f"{self._mirror_url}/{tag}/{name}",
                fallback_url=github_url or None,
                source=AssetSource.MIRROR,
            )
        return PlatformAsset(name=name, url=github_url)

    def find_version_for_platform(self, entry: RemoteVersionEntry) -> PlatformAsset:
        """Pick the archive built for the current platform.

        Raises:
            AdapterError: If no asset matches.
        """
        os_name, arch = self._platform
        candidates = [
            asset
            for asset in entry.assets
            if not asset.name.endswith(CHECKSUM_SUFFIX)
            and (self._asset_name_filter is None or self._asset_name_filter in asset.name)
            and asset_matches_platform(asset.name, os_name, arch)
        ]
        if not candidates:
            raise AdapterError(
                f"No asset for {os_name}-{arch} in {self._binary.binary_name} {entry.version}"
            )

        # Archives first; installers and raw binaries only as a last resort.
        candidates.sort(key=lambda asset: not asset.name.lower().endswith(ARCHIVE_SUFFIXES))
        selected = candidates[0]
        self._log.debug("selected_platform_asset", version=str(entry.version), asset=selected.name)
        return selected

    def get_binary_folder(self) -> Path:
        """Return (and create) ``<binaries_root>/<component>``.

        Raises:
            AdapterError: If the folder cannot be created.
        """
        folder = self._binaries_root / self._binary.binary_name
        try:
            folder.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise AdapterError(f"Cannot create binary folder {folder}: {e}") from e
        return folder

    async def download_and_get_checksum_path(
        self,
        destination_dir: Path,
        entry: RemoteVersionEntry,
    ) -> Path:
        """Download ``<asset>.sha256`` for the platform asset.

        Raises:
            AdapterError: If the checksum asset is missing or cannot be fetched.
        """
        asset = self.find_version_for_platform(entry)
        checksum_name = f"{asset.name}{CHECKSUM_SUFFIX}"
        checksum_asset = next((a for a in entry.assets if a.name == checksum_name), None)
        if checksum_asset is None:
            raise AdapterError(f"No checksum published for {asset.name}")

        destination = destination_dir / checksum_name
        try:
            await self._http_client.download_file(
                checksum_asset.url, destination, checksum_asset.source.is_mirror
            )
        except TransferError as e:
            if checksum_asset.fallback_url is None:
                raise AdapterError(f"Cannot download {checksum_name}: {e}") from e
            self._log.warning("checksum_primary_download_failed", error=str(e))
            try:
                await self._http_client.download_file(
                    checksum_asset.fallback_url, destination, checksum_asset.source.is_mirror
                )
            except TransferError as fallback_error:
                raise AdapterError(
                    f"Cannot download {checksum_name}: {fallback_error}"
                ) from fallback_error

        return destination

    async def get_expected_checksum(self, checksum_file: Path, asset_name: str) -> str:
        """Read an asset's digest from a downloaded checksum file.

        Raises:
            AdapterError: If the file cannot be read or does not list the asset.
        """
        try:
            content = await asyncio.to_thread(checksum_file.read_text, encoding="utf-8")
        except OSError as e:
            raise AdapterError(f"Cannot read checksum file {checksum_file}: {e}") from e

        digest = parse_checksum_file(content, asset_name)
        if digest is None:
            raise AdapterError(f"No checksum for {asset_name} in {checksum_file.name}")
        return digest

"""Discovery of versions already installed on disk.

Layout::

    <binary_folder>/
        1.4.0/            # one folder per installed version
            minotari_node
        1.5.0/
            in_progress/  # transient staging data, never evidence of an install
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from .errors import InventoryError
from .version import Version

if TYPE_CHECKING:
    from pathlib import Path

    from .binaries import Binaries
    from .policy import VersionPolicy

logger = structlog.get_logger(__name__)

IN_PROGRESS_DIR = "in_progress"
WEB_BUNDLE_MARKER = "index.html"


def version_files_exist(binary: Binaries, binary_folder: Path, version: Version) -> bool:
    """Check whether a version folder holds a runnable artifact.

    Accepts the platform binary name, its ``.exe`` variant, or an
    ``index.html`` marker for components shipped as a web bundle.

    Args:
        binary: Component whose artifact is looked for.
        binary_folder: Root folder of the component's versions.
        version: Version to check.

    Returns:
        True if a runnable artifact exists.
    """
    version_folder = binary_folder / str(version)
    binary_file = version_folder / binary.binary_file_name(version)
    candidates = (
        binary_file,
        binary_file.with_suffix(".exe"),
        version_folder / WEB_BUNDLE_MARKER,
    )
    exists = any(candidate.is_file() for candidate in candidates)

    logger.debug(
        "checking_version_files",
        binary=binary.binary_name,
        version_folder=str(version_folder),
        binary_file=str(binary_file),
        exists=exists,
    )
    return exists


class LocalInventoryScanner:
    """Enumerates installed versions of one component.

    Only folders named by a semantic version, accepted by the policy, and
    holding a runnable artifact are reported.
    """

    def __init__(self, binary: Binaries, policy: VersionPolicy) -> None:
        """Initialize the scanner.

        Args:
            binary: Component to scan for.
            policy: Policy installed versions must satisfy.
        """
        self._binary = binary
        self._policy = policy
        self._log = logger.bind(component="inventory_scanner", binary=binary.binary_name)

    def scan(self, root: Path) -> list[Version]:
        """List usable installed versions.

        Args:
            root: The component's binary folder.

        Returns:
            Usable versions in no particular order.

        Raises:
            InventoryError: If the folder cannot be listed.
        """
        try:
            entries = list(root.iterdir())
        except OSError as e:
            raise InventoryError(f"Error reading binary folder {root}: {e}") from e

        found: list[Version] = []
        for entry in entries:
            if not entry.is_dir():
                continue

            try:
                version = Version.parse(entry.name)
            except ValueError:
                self._log.debug("skipping_non_version_folder", folder=entry.name)
                continue

            self._log.debug("found_local_version", version=str(version))
            if not self._policy.matches(version):
                continue
            if not version_files_exist(self._binary, root, version):
                continue

            self._log.debug("adding_local_version", version=str(version))
            found.append(version)

        return found

"""Version policy: which published versions a component may run.

A policy combines a version requirement read from a per-network constraint
document with an optional prerelease channel tag. Malformed or missing policy
data deliberately degrades to accepting any version so the application can
still start with the newest build it finds; this is logged, never fatal.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from importlib.resources import files
from typing import TYPE_CHECKING, Any

import structlog

from .errors import ConfigError
from .version import Version, VersionRequirement

if TYPE_CHECKING:
    from collections.abc import Iterable
    from pathlib import Path

    from .models import Network

logger = structlog.get_logger(__name__)


def load_versions_document(network: Network, versions_file: Path | None = None) -> str:
    """Read the constraint document for a network.

    Args:
        network: Active deployment network.
        versions_file: Optional document overriding the bundled one.

    Returns:
        Raw JSON text.

    Raises:
        ConfigError: If the document cannot be read.
    """
    try:
        if versions_file is not None:
            return versions_file.read_text(encoding="utf-8")
        resource = files("binman") / "versions" / network.versions_document
        return resource.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read version requirements for {network.value}: {e}") from e


def read_version_requirement(binary_name: str, data: str) -> VersionRequirement:
    """Extract the requirement for one component from a constraint document.

    The document has the shape ``{"binaries": {"<name>": "<requirement>"}}``.

    Args:
        binary_name: Logical component name.
        data: Raw JSON document.

    Returns:
        Parsed requirement.

    Raises:
        ConfigError: If the document is malformed, the component is missing,
            or its requirement cannot be parsed.
    """
    try:
        content: Any = json.loads(data)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid version requirements document: {e}") from e

    binaries = content.get("binaries") if isinstance(content, dict) else None
    if not isinstance(binaries, dict):
        raise ConfigError("Version requirements document has no 'binaries' mapping")

    raw = binaries.get(binary_name)
    if not isinstance(raw, str):
        raise ConfigError(f"No version requirement for binary: {binary_name}")

    try:
        return VersionRequirement.parse(raw)
    except ValueError as e:
        raise ConfigError(f"Invalid version requirement for {binary_name}: {e}") from e


@dataclass(frozen=True)
class VersionPolicy:
    """Acceptance rule for one logical component.

    Attributes:
        binary_name: Logical component the policy applies to.
        requirement: Semantic-version range.
        prerelease_tag: When set, only versions whose prerelease component
            contains this tag are accepted.
        fail_open: True when the requirement fell back to "any version"
            because policy data was missing or malformed.
    """

    binary_name: str
    requirement: VersionRequirement
    prerelease_tag: str | None = None
    fail_open: bool = False

    @classmethod
    def from_document(
        cls,
        binary_name: str,
        data: str,
        prerelease_tag: str | None = None,
    ) -> VersionPolicy:
        """Build a policy from a constraint document, failing open on errors."""
        try:
            requirement = read_version_requirement(binary_name, data)
        except ConfigError as e:
            return cls.permissive(binary_name, prerelease_tag, reason=str(e))

        logger.debug(
            "version_requirement_loaded",
            binary=binary_name,
            requirement=str(requirement),
            prerelease_tag=prerelease_tag,
        )
        return cls(binary_name, requirement, prerelease_tag)

    @classmethod
    def for_network(
        cls,
        binary_name: str,
        network: Network,
        prerelease_tag: str | None = None,
        versions_file: Path | None = None,
    ) -> VersionPolicy:
        """Build the policy for a component on the given network.

        Args:
            binary_name: Logical component name.
            network: Network selecting the constraint document.
            prerelease_tag: Required prerelease channel tag, if any.
            versions_file: Optional document overriding the bundled one.

        Returns:
            The loaded policy (permissive when the document is unusable).
        """
        try:
            data = load_versions_document(network, versions_file)
        except ConfigError as e:
            return cls.permissive(binary_name, prerelease_tag, reason=str(e))
        return cls.from_document(binary_name, data, prerelease_tag)

    @classmethod
    def permissive(
        cls,
        binary_name: str,
        prerelease_tag: str | None = None,
        reason: str | None = None,
    ) -> VersionPolicy:
        """Policy accepting any version (subject to the prerelease tag)."""
        logger.error(
            "version_requirement_parse_failed",
            binary=binary_name,
            reason=reason,
        )
        logger.debug("using_highest_available_version", binary=binary_name)
        return cls(binary_name, VersionRequirement.any(), prerelease_tag, fail_open=True)

    def matches(self, version: Version) -> bool:
        """Check whether a version is acceptable.

        A version matches iff it satisfies the requirement and, when a
        prerelease tag is required, its prerelease component contains it.
        """
        meets_requirement = self.requirement.matches(version)
        meets_channel = self.prerelease_tag is None or self.prerelease_tag in version.pre

        logger.debug(
            "checking_version_requirements",
            binary=self.binary_name,
            version=str(version),
            requirement=str(self.requirement),
            meets_requirement=meets_requirement,
            meets_channel=meets_channel,
        )
        return meets_requirement and meets_channel

    def exceeds(self, version: Version, accepted: Iterable[Version]) -> bool:
        """Whether a rejected version is newer than every accepted version.

        Purely diagnostic: used to warn that the catalog is ahead of policy.
        """
        return not any(candidate > version for candidate in accepted)

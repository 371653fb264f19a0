"""Semantic version parsing, ordering and requirement matching.

This module provides the version primitives used by the binary manager:

- ``Version``: a semantic version (major.minor.patch, optional prerelease and
  build metadata) totally ordered by semantic-versioning precedence.
- ``VersionRequirement``: a comma-separated list of comparators such as
  ``">=1.0.0, <2.0.0"``, ``"^1.2"``, ``"~0.3.1"`` or ``"1.*"``.

Supported comparator operators:
- ``=``, ``>``, ``>=``, ``<``, ``<=``
- ``~`` (tilde: patch-level changes)
- ``^`` (caret: compatible changes, the default when no operator is given)
- ``*`` / ``x`` / ``X`` wildcards
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from functools import total_ordering

# Regex patterns for version parsing
SEMVER_PATTERN = re.compile(
    r"^v?(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)"
    r"(?:-([0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?"
    r"(?:\+([0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?$"
)

COMPARATOR_PATTERN = re.compile(
    r"^(?P<op>>=|<=|=|>|<|~|\^)?\s*v?"
    r"(?P<major>\d+|\*|x|X)"
    r"(?:\.(?P<minor>\d+|\*|x|X))?"
    r"(?:\.(?P<patch>\d+|\*|x|X))?"
    r"(?:-(?P<pre>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?"
    r"(?:\+[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*)?$"
)

WILDCARDS = frozenset({"*", "x", "X"})


def _split_identifiers(text: str | None) -> tuple[str, ...]:
    if not text:
        return ()
    return tuple(text.split("."))


def _identifier_key(identifier: str) -> tuple[int, int, str]:
    """Ordering key for a single prerelease identifier.

    Numeric identifiers sort below alphanumeric ones and compare numerically.
    """
    if identifier.isdigit():
        return (0, int(identifier), "")
    return (1, 0, identifier)


def prerelease_key(prerelease: tuple[str, ...]) -> tuple[int, tuple[tuple[int, int, str], ...]]:
    """Get ordering value for a prerelease identifier list.

    A version without prerelease sorts above any prerelease of the same
    major.minor.patch; identifiers are compared field by field and a shorter
    list sorts first when all shared fields are equal.

    Args:
        prerelease: Dot-separated prerelease identifiers.

    Returns:
        Tuple for comparison ordering.
    """
    if not prerelease:
        return (1, ())
    return (0, tuple(_identifier_key(identifier) for identifier in prerelease))


@total_ordering
@dataclass(frozen=True)
class Version:
    """A comparable semantic version.

    Attributes:
        major: Major version number.
        minor: Minor version number.
        patch: Patch version number.
        prerelease: Prerelease identifiers (empty for a release).
        build: Build metadata identifiers (ignored for precedence, used as a
            final tie-breaker so that ordering stays total).

    Example:
        >>> Version.parse("1.2.3") < Version.parse("1.3.0")
        True
        >>> Version.parse("1.2.3-alpha") < Version.parse("1.2.3")
        True
        >>> str(Version.parse("v2.0.0-rc.1"))
        '2.0.0-rc.1'
    """

    major: int
    minor: int
    patch: int
    prerelease: tuple[str, ...] = field(default=())
    build: tuple[str, ...] = field(default=())

    @classmethod
    def parse(cls, version: str) -> Version:
        """Parse a version string.

        A single leading ``v`` is accepted (release tags are often written
        that way); otherwise the string must be a full semantic version.

        Args:
            version: Version string to parse.

        Returns:
            Parsed Version.

        Raises:
            ValueError: If the version string cannot be parsed.
        """
        match = SEMVER_PATTERN.match(version.strip())
        if not match:
            raise ValueError(f"Cannot parse version string: {version}")

        return cls(
            major=int(match.group(1)),
            minor=int(match.group(2)),
            patch=int(match.group(3)),
            prerelease=_split_identifiers(match.group(4)),
            build=_split_identifiers(match.group(5)),
        )

    @classmethod
    def zero(cls) -> Version:
        """Return the 0.0.0 sentinel version."""
        return cls(0, 0, 0)

    @property
    def pre(self) -> str:
        """Prerelease component as a single string (empty for releases)."""
        return ".".join(self.prerelease)

    @property
    def is_prerelease(self) -> bool:
        """Whether the version carries a prerelease component."""
        return bool(self.prerelease)

    def _sort_key(self) -> tuple[object, ...]:
        build_key = tuple(_identifier_key(identifier) for identifier in self.build)
        return (
            self.major,
            self.minor,
            self.patch,
            prerelease_key(self.prerelease),
            build_key,
        )

    def __lt__(self, other: object) -> bool:
        """Check if this version has lower precedence than another."""
        if not isinstance(other, Version):
            return NotImplemented
        return self._sort_key() < other._sort_key()

    def __str__(self) -> str:
        """Return the canonical version string."""
        text = f"{self.major}.{self.minor}.{self.patch}"
        if self.prerelease:
            text += f"-{self.pre}"
        if self.build:
            text += "+" + ".".join(self.build)
        return text


def try_parse_version(version: str) -> Version | None:
    """Parse a version string, returning None when it is not a semantic version."""
    try:
        return Version.parse(version)
    except ValueError:
        return None


class Op(str, Enum):
    """Comparator operator."""

    EXACT = "="
    GREATER = ">"
    GREATER_EQ = ">="
    LESS = "<"
    LESS_EQ = "<="
    TILDE = "~"
    CARET = "^"
    WILDCARD = "*"


@dataclass(frozen=True)
class Comparator:
    """A single version comparator, e.g. ``>=1.2`` or ``~0.3.1-rc.1``.

    ``minor`` and ``patch`` are None when the comparator leaves them
    unspecified (``>=1`` or ``1.2.*``).
    """

    op: Op
    major: int
    minor: int | None = None
    patch: int | None = None
    prerelease: tuple[str, ...] = ()

    @classmethod
    def parse(cls, text: str) -> Comparator:
        """Parse a single comparator.

        Raises:
            ValueError: If the comparator is malformed.
        """
        match = COMPARATOR_PATTERN.match(text.strip())
        if not match:
            raise ValueError(f"Invalid version comparator: {text!r}")

        raw_op = match.group("op")
        parts = [match.group("major"), match.group("minor"), match.group("patch")]
        prerelease = _split_identifiers(match.group("pre"))

        # Everything after the first wildcard is unspecified.
        numbers: list[int | None] = []
        saw_wildcard = False
        for part in parts:
            if part is None or part in WILDCARDS:
                saw_wildcard = saw_wildcard or part is not None
                numbers.append(None)
                continue
            if numbers and numbers[-1] is None:
                raise ValueError(f"Invalid version comparator: {text!r}")
            numbers.append(int(part))

        major, minor, patch = numbers
        if major is None:
            raise ValueError(f"Wildcard major version needs no comparator: {text!r}")
        if prerelease and patch is None:
            raise ValueError(f"Prerelease requires a full version: {text!r}")

        if saw_wildcard:
            if raw_op not in (None, "="):
                raise ValueError(f"Wildcard cannot be combined with {raw_op!r}: {text!r}")
            op = Op.WILDCARD
        else:
            op = Op(raw_op) if raw_op else Op.CARET

        return cls(op=op, major=major, minor=minor, patch=patch, prerelease=prerelease)

    def matches(self, version: Version) -> bool:
        """Check whether a version satisfies this comparator (ignoring prerelease gating)."""
        if self.op in (Op.EXACT, Op.WILDCARD):
            return self._matches_exact(version)
        if self.op is Op.GREATER:
            return self._matches_greater(version)
        if self.op is Op.GREATER_EQ:
            return self._matches_exact(version) or self._matches_greater(version)
        if self.op is Op.LESS:
            return self._matches_less(version)
        if self.op is Op.LESS_EQ:
            return self._matches_exact(version) or self._matches_less(version)
        if self.op is Op.TILDE:
            return self._matches_tilde(version)
        return self._matches_caret(version)

    def allows_prerelease_of(self, version: Version) -> bool:
        """Whether this comparator opts in to prereleases of ``version``'s release."""
        return (
            bool(self.prerelease)
            and self.major == version.major
            and self.minor == version.minor
            and self.patch == version.patch
        )

    def _pre_key(self) -> tuple[object, ...]:
        return prerelease_key(self.prerelease)

    def _matches_exact(self, version: Version) -> bool:
        if version.major != self.major:
            return False
        if self.minor is not None and version.minor != self.minor:
            return False
        if self.patch is not None and version.patch != self.patch:
            return False
        return version.prerelease == self.prerelease

    def _matches_greater(self, version: Version) -> bool:
        if version.major != self.major:
            return version.major > self.major
        if self.minor is None:
            return False
        if version.minor != self.minor:
            return version.minor > self.minor
        if self.patch is None:
            return False
        if version.patch != self.patch:
            return version.patch > self.patch
        return prerelease_key(version.prerelease) > self._pre_key()

    def _matches_less(self, version: Version) -> bool:
        if version.major != self.major:
            return version.major < self.major
        if self.minor is None:
            return False
        if version.minor != self.minor:
            return version.minor < self.minor
        if self.patch is None:
            return False
        if version.patch != self.patch:
            return version.patch < self.patch
        return prerelease_key(version.prerelease) < self._pre_key()

    def _matches_tilde(self, version: Version) -> bool:
        if version.major != self.major:
            return False
        if self.minor is not None and version.minor != self.minor:
            return False
        if self.patch is not None and version.patch != self.patch:
            return version.patch > self.patch
        return prerelease_key(version.prerelease) >= self._pre_key()

    def _matches_caret(self, version: Version) -> bool:
        if version.major != self.major:
            return False
        if self.minor is None:
            return True
        if self.patch is None:
            if self.major > 0:
                return version.minor >= self.minor
            return version.minor == self.minor

        if self.major > 0:
            if version.minor != self.minor:
                return version.minor > self.minor
            if version.patch != self.patch:
                return version.patch > self.patch
        elif self.minor > 0:
            if version.minor != self.minor:
                return False
            if version.patch != self.patch:
                return version.patch > self.patch
        elif version.minor != self.minor or version.patch != self.patch:
            return False

        return prerelease_key(version.prerelease) >= self._pre_key()

    def __str__(self) -> str:
        """Return the comparator in requirement syntax."""
        parts = [str(self.major)]
        if self.minor is not None:
            parts.append(str(self.minor))
            if self.patch is not None:
                parts.append(str(self.patch))
        text = ".".join(parts)
        if self.op is Op.WILDCARD:
            return text + ".*"
        if self.prerelease:
            text += "-" + ".".join(self.prerelease)
        return f"{self.op.value}{text}"


@dataclass(frozen=True)
class VersionRequirement:
    """A set of comparators that must all match.

    An empty comparator list is the "any version" requirement.

    Example:
        >>> req = VersionRequirement.parse(">=1.0.0, <2.0.0")
        >>> req.matches(Version.parse("1.5.0"))
        True
        >>> req.matches(Version.parse("2.1.0"))
        False
    """

    comparators: tuple[Comparator, ...] = ()

    @classmethod
    def parse(cls, text: str) -> VersionRequirement:
        """Parse a requirement expression.

        Args:
            text: Comma-separated comparators, ``*`` or an empty string.

        Returns:
            Parsed VersionRequirement.

        Raises:
            ValueError: If any comparator is malformed.
        """
        stripped = text.strip()
        if stripped in ("", "*"):
            return cls.any()

        comparators: list[Comparator] = []
        for chunk in stripped.split(","):
            chunk = chunk.strip()
            if not chunk:
                raise ValueError(f"Empty comparator in requirement: {text!r}")
            if chunk in WILDCARDS:
                continue
            comparators.append(Comparator.parse(chunk))
        return cls(tuple(comparators))

    @classmethod
    def any(cls) -> VersionRequirement:
        """Requirement that accepts every version, prereleases included."""
        return cls(())

    @property
    def is_any(self) -> bool:
        """Whether this requirement places no constraint at all."""
        return not self.comparators

    def matches(self, version: Version) -> bool:
        """Check whether a version satisfies every comparator.

        A prerelease only matches when some comparator explicitly names a
        prerelease of the same major.minor.patch. The "any" requirement
        accepts prereleases unconditionally.
        """
        if self.is_any:
            return True
        if not all(comparator.matches(version) for comparator in self.comparators):
            return False
        if not version.is_prerelease:
            return True
        return any(comparator.allows_prerelease_of(version) for comparator in self.comparators)

    def __str__(self) -> str:
        """Return the requirement expression."""
        if self.is_any:
            return "*"
        return ", ".join(str(comparator) for comparator in self.comparators)

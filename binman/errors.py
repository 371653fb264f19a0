"""Exception hierarchy for the binary manager.

Pipeline-stage errors (``AssetNotFound``, ``DownloadFailed``,
``ExtractionFailed``, ``ChecksumMismatch``) propagate to the retry wrapper;
only ``RetriesExhausted`` reaches callers after all attempts fail.
``InventoryError`` and constraint-document ``ConfigError``s are recovered
internally; ``ConfigError`` only reaches callers from configuration loading.
"""

from __future__ import annotations


class BinaryManagerError(Exception):
    """Base class for all binary manager errors."""


class ConfigError(BinaryManagerError):
    """Raised when a version constraint document cannot be parsed."""


class InventoryError(BinaryManagerError):
    """Raised when the local installation folder cannot be listed."""


class AdapterError(BinaryManagerError):
    """Raised by release adapters when the remote catalog cannot be used."""


class AssetNotFound(BinaryManagerError):
    """Raised when no platform asset exists for the selected version."""


class DownloadFailed(BinaryManagerError):
    """Raised when neither the primary nor the fallback download succeeded."""


class ExtractionFailed(BinaryManagerError):
    """Raised when a staged archive cannot be unpacked."""


class ChecksumMismatch(BinaryManagerError):
    """Raised when the staged archive does not match its published checksum."""

    def __init__(self, asset_name: str, expected: str, actual: str) -> None:
        """Initialize checksum mismatch error.

        Args:
            asset_name: Name of the verified asset.
            expected: Published checksum.
            actual: Checksum computed from the staged archive.
        """
        super().__init__(
            f"Checksum mismatch for {asset_name}: expected {expected}, got {actual}"
        )
        self.asset_name = asset_name
        self.expected = expected
        self.actual = actual


class NoVersionSelected(BinaryManagerError):
    """Raised when an operation needs a version but none has been selected."""


class SelectionRequired(BinaryManagerError):
    """Raised when replacing the used version without a new selection pass."""


class RetriesExhausted(BinaryManagerError):
    """Raised when every download attempt for a version has failed."""

    def __init__(self, message: str, errors: list[BaseException]) -> None:
        """Initialize the aggregated failure.

        Args:
            message: Human-readable summary.
            errors: Error raised by each attempt, in order.
        """
        super().__init__(message)
        self.errors = errors

    @property
    def attempts(self) -> int:
        """Number of attempts that were made."""
        return len(self.errors)

    @property
    def last_error(self) -> BaseException | None:
        """Error raised by the final attempt."""
        return self.errors[-1] if self.errors else None

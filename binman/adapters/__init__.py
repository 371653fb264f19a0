"""Release adapters, one per upstream release source."""

from binman.adapters.github import (
    GitHubReleasesAdapter,
    asset_matches_platform,
    detect_platform,
    parse_checksum_file,
)

__all__ = [
    "GitHubReleasesAdapter",
    "asset_matches_platform",
    "detect_platform",
    "parse_checksum_file",
]

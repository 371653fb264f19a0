"""Choice of the version to run from online and local candidates."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from .version import Version


def select_highest_version(
    online: Sequence[Version],
    local: Sequence[Version],
) -> Version | None:
    """Pick the newest version across both candidate lists.

    A local version wins only when it is strictly newer than anything
    advertised online (e.g. offline operation after an earlier download).

    Args:
        online: Policy-accepted remote versions.
        local: Policy-accepted installed versions.

    Returns:
        The selected version, or None when both lists are empty.

    Examples:
        >>> select_highest_version([], []) is None
        True
    """
    candidates = [*online, *local]
    if not candidates:
        return None
    return max(candidates)

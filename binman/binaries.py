"""Catalogue of the logical components managed by the binary manager."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .version import Version


class TaskPhase(str, Enum):
    """Task-lifecycle group that owns a component's background work."""

    COMMON = "common"
    NODE = "node"
    WALLET = "wallet"
    MINING = "mining"
    HARDWARE = "hardware"


class Binaries(str, Enum):
    """Logical components, keyed by the name used in constraint documents."""

    MINOTARI_NODE = "minotari_node"
    WALLET = "minotari_console_wallet"
    MERGE_MINING_PROXY = "minotari_merge_mining_proxy"
    XMRIG = "xmrig"
    GPU_MINER = "glytex"
    TOR = "tor"
    SHA_P2POOL = "sha-p2pool"
    BRIDGE_TAPPLET = "bridge-tapplet"

    @classmethod
    def from_name(cls, name: str) -> Binaries:
        """Look up a component by its canonical name.

        Raises:
            ValueError: If the name is unknown.
        """
        try:
            return cls(name)
        except ValueError:
            raise ValueError(f"Unknown binary: {name}") from None

    @property
    def binary_name(self) -> str:
        """Canonical name (key in version constraint documents)."""
        return self.value

    @property
    def task_phase(self) -> TaskPhase:
        """Lifecycle group whose shutdown signal bounds this component's tasks."""
        return _TASK_PHASES[self]

    @property
    def follows_network_channel(self) -> bool:
        """Whether published builds carry the network prerelease tag."""
        return self in (
            Binaries.MINOTARI_NODE,
            Binaries.WALLET,
            Binaries.MERGE_MINING_PROXY,
        )

    def binary_file_name(self, version: Version) -> str:
        """Relative path of the runnable artifact inside a version folder.

        Args:
            version: Installed version (some archives nest by version).

        Returns:
            Path relative to ``<binary_folder>/<version>/``, without platform
            executable suffix.
        """
        if self is Binaries.XMRIG:
            return f"xmrig-{version}/xmrig"
        if self is Binaries.TOR:
            return "tor/tor"
        if self is Binaries.BRIDGE_TAPPLET:
            return "index.html"
        return self.value


_TASK_PHASES = {
    Binaries.MINOTARI_NODE: TaskPhase.NODE,
    Binaries.WALLET: TaskPhase.WALLET,
    Binaries.MERGE_MINING_PROXY: TaskPhase.MINING,
    Binaries.XMRIG: TaskPhase.HARDWARE,
    Binaries.GPU_MINER: TaskPhase.HARDWARE,
    Binaries.TOR: TaskPhase.COMMON,
    Binaries.SHA_P2POOL: TaskPhase.MINING,
    Binaries.BRIDGE_TAPPLET: TaskPhase.WALLET,
}

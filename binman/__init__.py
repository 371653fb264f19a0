"""binman: versioned binary artifact manager.

Decides which release of a component (node, wallet, miner, ...) should run on
this machine, downloads the matching platform asset with fallback and retry,
verifies it, and stages it on disk for a launcher to pick up.

Module Overview:
    version: Semantic versions and Cargo-style version requirements
    policy: Per-network version policy with prerelease channel filter
    binaries: Catalogue of managed components
    inventory: Discovery of installed versions
    selector: Choice between online and local candidates
    network: Streaming HTTP transfers
    archive: Archive extraction
    checksum: SHA-256 verification
    progress: Last-value-wins progress channel and relay
    lifecycle: Shutdown signals and task trackers per task phase
    pipeline: Download, extract, verify and stage one version
    manager: BinaryManager façade and retry wrapper
    telemetry: Error telemetry sinks
    adapters: Release sources (GitHub)
    config: YAML-based configuration management (XDG Base Directory paths)
    logging_config: structlog setup
"""

from importlib.metadata import version as get_package_version

from binman.binaries import Binaries, TaskPhase
from binman.config import (
    ConfigManager,
    YamlConfigLoader,
    get_config_dir,
    get_default_config_path,
    resolve_binary_config,
)
from binman.errors import (
    AdapterError,
    AssetNotFound,
    BinaryManagerError,
    ChecksumMismatch,
    ConfigError,
    DownloadFailed,
    ExtractionFailed,
    InventoryError,
    NoVersionSelected,
    RetriesExhausted,
    SelectionRequired,
)
from binman.interfaces import ErrorReporter, ReleaseAdapter, ReportLevel, StepUpdateSink
from binman.inventory import LocalInventoryScanner
from binman.lifecycle import ShutdownSignal, TasksTrackers, TaskTracker
from binman.manager import BinaryManager
from binman.models import (
    AssetSource,
    BinaryConfig,
    GlobalConfig,
    ManagerPhase,
    ManagerState,
    Network,
    PlatformAsset,
    RemoteVersionEntry,
    SystemConfig,
)
from binman.network import HttpClient, TransferError
from binman.pipeline import DownloadPipeline
from binman.policy import VersionPolicy
from binman.progress import ProgressChannel, ProgressRelay
from binman.selector import select_highest_version
from binman.telemetry import CollectingErrorReporter, StructlogErrorReporter
from binman.version import Version, VersionRequirement

__version__ = get_package_version("binman")

__all__ = [
    "AdapterError",
    "AssetNotFound",
    "AssetSource",
    "BinaryConfig",
    "BinaryManager",
    "BinaryManagerError",
    "Binaries",
    "ChecksumMismatch",
    "CollectingErrorReporter",
    "ConfigError",
    "ConfigManager",
    "DownloadFailed",
    "DownloadPipeline",
    "ErrorReporter",
    "ExtractionFailed",
    "GlobalConfig",
    "HttpClient",
    "InventoryError",
    "LocalInventoryScanner",
    "ManagerPhase",
    "ManagerState",
    "Network",
    "NoVersionSelected",
    "PlatformAsset",
    "ProgressChannel",
    "ProgressRelay",
    "ReleaseAdapter",
    "RemoteVersionEntry",
    "ReportLevel",
    "RetriesExhausted",
    "SelectionRequired",
    "ShutdownSignal",
    "StepUpdateSink",
    "StructlogErrorReporter",
    "SystemConfig",
    "TaskPhase",
    "TaskTracker",
    "TasksTrackers",
    "TransferError",
    "Version",
    "VersionPolicy",
    "VersionRequirement",
    "YamlConfigLoader",
    "__version__",
    "get_config_dir",
    "get_default_config_path",
    "resolve_binary_config",
    "select_highest_version",
]

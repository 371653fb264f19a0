"""Shared test fixtures and fakes for binman tests."""

from __future__ import annotations

import hashlib
import io
import os
import tarfile
import zipfile
from typing import TYPE_CHECKING

import pytest

from binman.errors import AdapterError
from binman.interfaces import ReleaseAdapter, StepUpdateSink
from binman.models import PlatformAsset, RemoteVersionEntry
from binman.network import TransferError
from binman.version import Version

if TYPE_CHECKING:
    from collections.abc import Callable, Generator
    from pathlib import Path

    from binman.progress import ProgressChannel


@pytest.fixture(autouse=True)
def isolated_xdg_dirs(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> Generator[Path, None, None]:
    """Isolate tests from the real user config and data directories.

    Sets XDG_CONFIG_HOME and XDG_DATA_HOME to temporary directories so that
    tests never read or write ~/.config/binman or ~/.local/share/binman.
    """
    config_home = tmp_path / "xdg_config"
    data_home = tmp_path / "xdg_data"
    config_home.mkdir(parents=True, exist_ok=True)
    data_home.mkdir(parents=True, exist_ok=True)

    monkeypatch.setenv("XDG_CONFIG_HOME", str(config_home))
    monkeypatch.setenv("XDG_DATA_HOME", str(data_home))

    yield data_home


def build_zip(files: dict[str, bytes]) -> bytes:
    """Build an in-memory zip archive."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        for name, content in files.items():
            zf.writestr(name, content)
    return buffer.getvalue()


def build_damaged_zip() -> bytes:
    """A deflated zip whose compressed stream has been overwritten."""
    name = "minotari_node"
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        zf.writestr(name, b"minotari node build " * 2048)
    data = bytearray(buffer.getvalue())
    # Local file header: 30 fixed bytes plus the name, no extra field.
    start = 30 + len(name)
    for index in range(start + 2, start + 18):
        data[index] ^= 0xFF
    return bytes(data)


def build_truncated_tar_gz() -> bytes:
    """A .tar.gz cut off halfway through its only member."""
    payload = os.urandom(64 * 1024)
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:gz") as tar:
        member = tarfile.TarInfo("minotari_node")
        member.size = len(payload)
        tar.addfile(member, io.BytesIO(payload))
    data = buffer.getvalue()
    return data[: len(data) // 2]


def sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


class FakeReleaseAdapter(ReleaseAdapter):
    """In-memory release source.

    The first asset of an entry is its platform asset; checksums are served
    from a ``{asset_name: digest}`` mapping.
    """

    def __init__(
        self,
        binary_folder: Path,
        entries: list[RemoteVersionEntry] | None = None,
        checksums: dict[str, str] | None = None,
    ) -> None:
        self.binary_folder = binary_folder
        self.entries = entries or []
        self.checksums = checksums or {}
        self.fetch_error: Exception | None = None
        self.folder_error: Exception | None = None
        self.fetch_calls = 0

    async def fetch_releases_list(self) -> list[RemoteVersionEntry]:
        self.fetch_calls += 1
        if self.fetch_error is not None:
            raise self.fetch_error
        return list(self.entries)

    def find_version_for_platform(self, entry: RemoteVersionEntry) -> PlatformAsset:
        if not entry.assets:
            raise AdapterError(f"No asset for {entry.version}")
        return entry.assets[0]

    def get_binary_folder(self) -> Path:
        if self.folder_error is not None:
            raise self.folder_error
        self.binary_folder.mkdir(parents=True, exist_ok=True)
        return self.binary_folder

    async def download_and_get_checksum_path(
        self,
        destination_dir: Path,
        entry: RemoteVersionEntry,
    ) -> Path:
        path = destination_dir / "checksums.sha256"
        lines = [f"{digest}  {name}" for name, digest in self.checksums.items()]
        path.write_text("\n".join(lines) + "\n")
        return path

    async def get_expected_checksum(self, checksum_file: Path, asset_name: str) -> str:
        for line in checksum_file.read_text().splitlines():
            digest, _, name = line.partition("  ")
            if name == asset_name:
                return digest
        raise AdapterError(f"No checksum for {asset_name}")


class FakeHttpClient:
    """Serves canned bodies per URL; an Exception value is raised instead."""

    def __init__(self, responses: dict[str, bytes | Exception] | None = None) -> None:
        self.responses = responses or {}
        self.calls: list[tuple[str, Path, bool]] = []

    async def download_file(
        self,
        url: str,
        destination: Path,
        is_mirror: bool = False,
        progress: ProgressChannel | None = None,
    ) -> None:
        self.calls.append((url, destination, is_mirror))
        body = self.responses.get(url)
        if body is None:
            raise TransferError(f"File not found: {url}")
        if isinstance(body, Exception):
            raise body

        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_bytes(body)
        if progress is not None:
            progress.send(50.0)
            progress.send(100.0)

    @property
    def urls(self) -> list[str]:
        return [url for url, _, _ in self.calls]


class RecordingSink(StepUpdateSink):
    """Step sink remembering every update."""

    def __init__(self) -> None:
        self.updates: list[tuple[dict[str, str], float]] = []

    async def send_update(self, params: dict[str, str], progress: float) -> None:
        self.updates.append((params, progress))


def make_entry(
    version: str,
    asset_name: str = "node-linux-x86_64.zip",
    url: str | None = None,
    fallback_url: str | None = None,
) -> RemoteVersionEntry:
    """Build a catalog entry with one platform asset."""
    asset = PlatformAsset(
        name=asset_name,
        url=url or f"https://primary.example.com/{version}/{asset_name}",
        fallback_url=fallback_url,
    )
    return RemoteVersionEntry(version=Version.parse(version), assets=(asset,))


def install_version(binary_folder: Path, version: str, file_name: str) -> Path:
    """Create an installed version folder holding ``file_name``."""
    target = binary_folder / version / file_name
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(b"#!/bin/sh\n")
    return target


@pytest.fixture
def binary_folder(tmp_path: Path) -> Path:
    """Empty installation root for one component."""
    folder = tmp_path / "binaries" / "minotari_node"
    folder.mkdir(parents=True)
    return folder


@pytest.fixture
def zip_builder() -> Callable[[dict[str, bytes]], bytes]:
    return build_zip


@pytest.fixture
def damaged_zip() -> bytes:
    return build_damaged_zip()


@pytest.fixture
def truncated_tar_gz() -> bytes:
    return build_truncated_tar_gz()


@pytest.fixture
def entry_factory() -> Callable[..., RemoteVersionEntry]:
    return make_entry


@pytest.fixture
def installer() -> Callable[[Path, str, str], Path]:
    return install_version


@pytest.fixture
def fake_adapter(binary_folder: Path) -> FakeReleaseAdapter:
    return FakeReleaseAdapter(binary_folder)


@pytest.fixture
def fake_http() -> FakeHttpClient:
    return FakeHttpClient()


@pytest.fixture
def recording_sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def digest() -> Callable[[bytes], str]:
    return sha256_hex

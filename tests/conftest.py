"""Shared pytest fixtures."""
from __future__ import annotations

from typing import Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

from rrweb_uploader.config import Settings
from rrweb_uploader.constants import REPLAY_SECRET_HEADER
from rrweb_uploader.main import create_app
from rrweb_uploader.schemas.artifact import StoredArtifact, StoredFile
from rrweb_uploader.services.registry import SessionRegistry
from rrweb_uploader.utils.exceptions import StorageUnavailable

SECRET = "test-secret"


class ManualClock:
    """Epoch-millisecond clock advanced by hand."""

    def __init__(self, start: int = 1_700_000_000_000):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class FakeStore:
    """In-memory artifact store recording every publish."""

    def __init__(self, configured: bool = True):
        self.configured = configured
        self.fail_publish = False
        self.files: Dict[str, bytes] = {}
        self.names: Dict[str, str] = {}
        self.published: List[StoredArtifact] = []

    @property
    def is_configured(self) -> bool:
        return self.configured

    async def publish(self, name: str, content: bytes, folder_id: Optional[str] = None) -> StoredArtifact:
        if self.fail_publish:
            raise StorageUnavailable("upload failed: 503")
        stored = StoredArtifact(id=f"file-{len(self.published) + 1}", name=name)
        self.files[stored.id] = content
        self.names[stored.id] = name
        self.published.append(stored)
        return stored

    async def fetch(self, file_id: str) -> bytes:
        if file_id not in self.files:
            raise StorageUnavailable("Download failed: 404")
        return self.files[file_id]

    async def describe(self, file_id: str) -> StoredFile:
        if file_id not in self.files:
            raise StorageUnavailable("Metadata lookup failed: 404")
        return StoredFile(id=file_id, name=self.names.get(file_id, f"{file_id}.json"))

    async def list_files(self, limit: int = 50) -> List[StoredFile]:
        return [StoredFile(id=file_id, name=f"{file_id}.json") for file_id in list(self.files)[:limit]]


@pytest.fixture
def config() -> Settings:
    return Settings(
        replay_secret=SECRET,
        drive_folder_id="folder-123",
        idle_timeout_ms=30 * 60 * 1000,
        inter_chunk_gap_ms=1000,
    )


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def registry(clock: ManualClock) -> SessionRegistry:
    return SessionRegistry(idle_timeout_ms=30 * 60 * 1000, clock=clock)


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def client(config: Settings, store: FakeStore, registry: SessionRegistry) -> TestClient:
    app = create_app(config, store=store, registry=registry)
    return TestClient(app)


@pytest.fixture
def auth_headers() -> Dict[str, str]:
    return {REPLAY_SECRET_HEADER: SECRET}

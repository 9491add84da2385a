"""Pydantic schemas for request/response validation."""
from rrweb_uploader.schemas.artifact import ReplayArtifact, StoredArtifact, StoredFile
from rrweb_uploader.schemas.ingest import BeaconChunkRequest, ChunkRequest, ChunkResponse
from rrweb_uploader.schemas.session import (
    BeaconFinishRequest,
    FileListResponse,
    MergeRequest,
    MergeResponse,
    SessionFinishRequest,
    SessionFinishResponse,
    SessionStartRequest,
    SessionStartResponse,
)

__all__ = [
    "ReplayArtifact",
    "StoredArtifact",
    "StoredFile",
    "BeaconChunkRequest",
    "ChunkRequest",
    "ChunkResponse",
    "BeaconFinishRequest",
    "FileListResponse",
    "MergeRequest",
    "MergeResponse",
    "SessionFinishRequest",
    "SessionFinishResponse",
    "SessionStartRequest",
    "SessionStartResponse",
]

"""Schemas for session lifecycle and merge endpoints."""
from pydantic import BaseModel, Field
from typing import Optional, Dict, Any, List

from rrweb_uploader.schemas.artifact import ArtifactCounts, StoredFile


class SessionStartRequest(BaseModel):
    """Request schema for /replay/start endpoint."""
    sessionId: str = Field(..., min_length=1, description="Session ID from the recorder")
    meta: Optional[Dict[str, Any]] = Field(None, description="Page URL, user agent, ...")


class SessionStartResponse(BaseModel):
    """Response schema for /replay/start endpoint."""
    success: bool
    message: str
    sessionId: str
    token: str = Field(..., description="Echo this back on the beacon endpoints")


class SessionFinishRequest(BaseModel):
    """Request schema for /replay/finish endpoint."""
    sessionId: str = Field(..., min_length=1, description="Session ID from the recorder")
    meta: Optional[Dict[str, Any]] = None


class BeaconFinishRequest(BaseModel):
    """Body of /replay/finish-beacon, sent as raw text by sendBeacon."""
    sessionId: str = Field(..., min_length=1)
    token: Optional[str] = None
    meta: Optional[Dict[str, Any]] = None


class SessionFinishResponse(BaseModel):
    """Response schema for finish endpoints."""
    success: bool
    status: str
    artifactId: Optional[str] = None
    artifactName: Optional[str] = None
    eventCount: int


class MergeRequest(BaseModel):
    """Request schema for /replay/merge endpoint."""
    fileIds: List[str] = Field(..., description="Stored recordings, in playback order")
    publish: bool = False
    name: Optional[str] = Field(None, description="File name for the merged recording")


class MergeResponse(BaseModel):
    """Response schema for /replay/merge endpoint."""
    events: List[Any]
    counts: ArtifactCounts
    artifactId: Optional[str] = None
    artifactName: Optional[str] = None


class FileListResponse(BaseModel):
    """Response schema for /replay/files endpoint."""
    files: List[StoredFile]

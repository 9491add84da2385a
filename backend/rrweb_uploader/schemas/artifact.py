"""Schemas for published replay artifacts."""
from pydantic import BaseModel, ConfigDict, Field
from typing import List, Dict, Any, Optional


class ArtifactCounts(BaseModel):
    """Counters stored alongside the events."""
    model_config = ConfigDict(frozen=True)

    events: int


class ReplayArtifact(BaseModel):
    """A finalized recording as written to storage."""
    model_config = ConfigDict(frozen=True)

    sessionId: str
    createdAt: str = Field(..., description="ISO-8601 UTC creation time")
    meta: Dict[str, Any] = Field(default_factory=dict)
    events: List[Any] = Field(default_factory=list)
    counts: ArtifactCounts


class StoredArtifact(BaseModel):
    """Identifier of an artifact in the blob store."""
    id: str
    name: str


class StoredFile(BaseModel):
    """Listing entry for a file in the artifact folder."""
    id: str
    name: Optional[str] = None
    modifiedTime: Optional[str] = None
    size: Optional[str] = None
    mimeType: Optional[str] = None

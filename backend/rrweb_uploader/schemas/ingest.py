"""Schemas for chunk ingestion."""
from pydantic import BaseModel, Field
from typing import List, Any, Optional


class ChunkRequest(BaseModel):
    """Request schema for /replay/chunk endpoint."""
    sessionId: str = Field(..., min_length=1, description="Session ID from the recorder")
    events: List[Any] = Field(..., description="Array of rrweb events")


class BeaconChunkRequest(BaseModel):
    """Body of /replay/chunk-beacon, sent as raw text by sendBeacon."""
    sessionId: str = Field(..., min_length=1)
    token: Optional[str] = Field(None, description="Token returned by /replay/start")
    events: Any = None


class ChunkResponse(BaseModel):
    """Response schema for chunk endpoints."""
    success: bool
    message: str
    eventsReceived: int
    bufferedEvents: int

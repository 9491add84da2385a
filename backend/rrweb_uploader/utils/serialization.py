"""Serialization utilities for artifacts and raw request bodies."""
import json
from datetime import datetime
from typing import Any, Dict, List, Optional

from rrweb_uploader.schemas.artifact import ArtifactCounts, ReplayArtifact
from rrweb_uploader.utils.clock import utc_now
from rrweb_uploader.utils.exceptions import BadRequest, InvalidArtifact


def serialize_datetime(value: datetime) -> str:
    """
    Serialize datetime to an ISO-8601 UTC string with millisecond precision.

    Args:
        value: Timezone-aware datetime

    Returns:
        String such as 2024-05-01T10:15:30.123Z
    """
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def artifact_file_name(session_id: str, created_at: datetime) -> str:
    """
    Build the storage file name for a finalized session.

    Colons are not safe in every storage backend, so they are replaced
    with dashes.
    """
    stamp = serialize_datetime(created_at).replace(":", "-")
    return f"session-{session_id}-{stamp}.json"


def build_artifact(
    session_id: str,
    events: List[Any],
    meta: Optional[Dict[str, Any]] = None,
    created_at: Optional[datetime] = None,
) -> ReplayArtifact:
    """
    Assemble the artifact for a finalized session.

    Args:
        session_id: The session id
        events: Events in final order
        meta: Merged session meta
        created_at: Creation time (defaults to now)

    Returns:
        The immutable artifact
    """
    created_at = created_at or utc_now()
    return ReplayArtifact(
        sessionId=session_id,
        createdAt=serialize_datetime(created_at),
        meta=dict(meta or {}),
        events=list(events),
        counts=ArtifactCounts(events=len(events)),
    )


def serialize_artifact(artifact: ReplayArtifact) -> bytes:
    """Pretty-printed UTF-8 JSON, as stored in the artifact folder."""
    return json.dumps(artifact.model_dump(), indent=2, ensure_ascii=False).encode("utf-8")


def parse_beacon_body(body: bytes) -> Dict[str, Any]:
    """
    Parse a sendBeacon body.

    Beacons usually arrive as text/plain, so the body is decoded by hand
    instead of relying on the content type.

    Raises:
        BadRequest: If the body is not a JSON object
    """
    text = body.decode("utf-8", errors="replace").strip()
    if not text:
        raise BadRequest("empty body")
    try:
        payload = json.loads(text)
    except ValueError:
        raise BadRequest("body is not valid JSON")
    if not isinstance(payload, dict):
        raise BadRequest("body must be a JSON object")
    return payload


def parse_artifact_content(content: bytes) -> Any:
    """
    Decode stored artifact content.

    Raises:
        InvalidArtifact: If the content is not JSON
    """
    try:
        return json.loads(content.decode("utf-8"))
    except (UnicodeDecodeError, ValueError):
        raise InvalidArtifact("Artifact is not valid JSON")

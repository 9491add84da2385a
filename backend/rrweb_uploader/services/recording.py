"""Finalize live sessions into artifacts and merge stored recordings."""
from typing import Any, Dict, List, Optional, Sequence, Tuple

from rrweb_uploader.constants import DEFAULT_INTER_CHUNK_GAP_MS
from rrweb_uploader.schemas.artifact import ReplayArtifact, StoredArtifact
from rrweb_uploader.services.merge import MergeResult, extract_events, merge_chunks
from rrweb_uploader.services.registry import SessionRegistry
from rrweb_uploader.services.storage import ArtifactStore
from rrweb_uploader.utils.clock import utc_now
from rrweb_uploader.utils.exceptions import BadRequest, StorageUnavailable, UnknownSession
from rrweb_uploader.utils.logger import logger
from rrweb_uploader.utils.serialization import (
    artifact_file_name,
    build_artifact,
    parse_artifact_content,
    serialize_artifact,
)

MERGED_SESSION_ID = "merged"


def close_session(
    registry: SessionRegistry,
    store: ArtifactStore,
    session_id: str,
    meta: Optional[Dict[str, Any]] = None,
) -> Tuple[str, ReplayArtifact]:
    """
    Remove a session from the registry and build its artifact.

    The store is checked before the session is removed, so a misconfigured
    store does not destroy buffered events. Once this returns, the session
    is gone: a concurrent or repeated finish sees UnknownSession.

    Args:
        registry: Live session registry
        store: Artifact store that will receive the artifact
        session_id: Session to finalize
        meta: Extra meta merged over the meta given at start

    Returns:
        Tuple of (file name, artifact)

    Raises:
        StorageUnavailable: If the store is not configured
        UnknownSession: If the session was already finalized or expired
    """
    if not store.is_configured:
        raise StorageUnavailable("Artifact storage is not configured")

    session = registry.finalize(session_id)
    if session is None:
        raise UnknownSession(session_id)

    session.merge_meta(meta)
    created_at = utc_now()
    # A single live session keeps its events verbatim, in arrival order
    artifact = build_artifact(session.id, session.events, session.meta, created_at)
    return artifact_file_name(session.id, created_at), artifact


async def publish_artifact(store: ArtifactStore, name: str, artifact: ReplayArtifact) -> StoredArtifact:
    """
    Publish an artifact.

    A failure here is terminal for a finalized session since its buffer is
    already gone, so it is logged with the event count that was lost.
    """
    try:
        stored = await store.publish(name, serialize_artifact(artifact))
    except StorageUnavailable:
        logger.error(
            f"Failed to publish {name}: {artifact.counts.events} events "
            f"of session {artifact.sessionId} are lost"
        )
        raise
    return stored


async def finalize_session(
    registry: SessionRegistry,
    store: ArtifactStore,
    session_id: str,
    meta: Optional[Dict[str, Any]] = None,
) -> Tuple[ReplayArtifact, StoredArtifact]:
    """Finalize a session and publish it, at most once per session."""
    name, artifact = close_session(registry, store, session_id, meta)
    stored = await publish_artifact(store, name, artifact)
    logger.info(f"Finalized session {session_id}: {artifact.counts.events} events in {stored.name}")
    return artifact, stored


async def publish_in_background(store: ArtifactStore, name: str, artifact: ReplayArtifact) -> None:
    """Background-task wrapper; the client is no longer waiting for the result."""
    try:
        await publish_artifact(store, name, artifact)
    except StorageUnavailable:
        # Already logged; there is no caller left to report to
        return


async def merge_artifacts(
    store: ArtifactStore,
    file_ids: Sequence[str],
    gap_ms: int = DEFAULT_INTER_CHUNK_GAP_MS,
    publish: bool = False,
    name: Optional[str] = None,
) -> Tuple[MergeResult, Optional[StoredArtifact]]:
    """
    Merge previously published recordings into one timeline.

    Args:
        store: Artifact store holding the recordings
        file_ids: Recordings in the order they should be played back
        gap_ms: Gap between consecutive recordings
        publish: Also publish the merged recording
        name: File name for the merged recording

    Returns:
        Tuple of (merge result, stored artifact or None)

    Raises:
        BadRequest: If no ids were given
        InvalidArtifact: If a recording has no event list
        StorageUnavailable: If a fetch or the publish fails
    """
    if not file_ids:
        raise BadRequest("fileIds must not be empty")

    chunks: List[List[Any]] = []
    for file_id in file_ids:
        content = await store.fetch(file_id)
        chunks.append(extract_events(parse_artifact_content(content)))

    result = merge_chunks(chunks, gap_ms=gap_ms)
    logger.info(f"Merged {len(file_ids)} recordings into {result.count} events")

    if not publish:
        return result, None

    created_at = utc_now()
    artifact = build_artifact(
        MERGED_SESSION_ID,
        result.events,
        meta={"sources": list(file_ids)},
        created_at=created_at,
    )
    stored = await publish_artifact(
        store,
        name or artifact_file_name(MERGED_SESSION_ID, created_at),
        artifact,
    )
    return result, stored

"""Replay capture endpoints.

Two entry protocols feed the same registry:

- start/chunk/finish carry the pre-shared secret in the X-Replay-Secret
  header; this is the primary, retriable path.
- chunk-beacon/finish-beacon are sent with navigator.sendBeacon during page
  teardown, which cannot set headers. The body arrives as raw text and is
  authenticated by echoing the token returned from /replay/start.
"""
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request, Response, status
from pydantic import ValidationError

from rrweb_uploader.auth.secret import verify_replay_secret, verify_session_token
from rrweb_uploader.config import Settings
from rrweb_uploader.constants import ArtifactStatus
from rrweb_uploader.dependencies import get_registry, get_settings, get_store
from rrweb_uploader.schemas.ingest import BeaconChunkRequest, ChunkRequest, ChunkResponse
from rrweb_uploader.schemas.session import (
    BeaconFinishRequest,
    SessionFinishRequest,
    SessionFinishResponse,
    SessionStartRequest,
    SessionStartResponse,
)
from rrweb_uploader.services.recording import close_session, finalize_session, publish_in_background
from rrweb_uploader.services.registry import SessionRegistry
from rrweb_uploader.services.storage import ArtifactStore
from rrweb_uploader.utils.exceptions import AppException, BadRequest, internal_error, to_http_exception
from rrweb_uploader.utils.logger import logger
from rrweb_uploader.utils.serialization import parse_beacon_body

router = APIRouter(prefix="/replay", tags=["replay"])


def _beacon_model(model, payload: dict):
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        raise BadRequest(f"malformed beacon body: {e.error_count()} invalid field(s)")


@router.post(
    "/start",
    response_model=SessionStartResponse,
    dependencies=[Depends(verify_replay_secret)],
)
async def start_session(
    request: SessionStartRequest,
    registry: SessionRegistry = Depends(get_registry),
) -> SessionStartResponse:
    """
    Register a session and its meta before the first chunk.

    Calling start again for a live session merges the new meta and returns
    the same token.
    """
    try:
        session = registry.get_or_create(request.sessionId, meta=request.meta)
        logger.info(f"Started session {request.sessionId}")
        return SessionStartResponse(
            success=True,
            message="Session registered",
            sessionId=session.id,
            token=session.token,
        )
    except AppException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to start session {request.sessionId}: {e}", exc_info=True)
        raise internal_error("start session", e)


@router.post(
    "/chunk",
    response_model=ChunkResponse,
    dependencies=[Depends(verify_replay_secret)],
)
async def ingest_chunk(
    request: ChunkRequest,
    registry: SessionRegistry = Depends(get_registry),
) -> ChunkResponse:
    """
    Append a batch of rrweb events to a live session.

    The session is created implicitly if no start call was made (unless the
    server runs with strict sessions).
    """
    try:
        session = registry.append(request.sessionId, request.events)
        logger.debug(
            f"Appended {len(request.events)} events to {request.sessionId} "
            f"({session.event_count} buffered)"
        )
        return ChunkResponse(
            success=True,
            message="Events buffered",
            eventsReceived=len(request.events),
            bufferedEvents=session.event_count,
        )
    except AppException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to ingest chunk for {request.sessionId}: {e}", exc_info=True)
        raise internal_error("ingest events", e)


@router.post(
    "/finish",
    response_model=SessionFinishResponse,
    dependencies=[Depends(verify_replay_secret)],
)
async def finish_session(
    request: SessionFinishRequest,
    registry: SessionRegistry = Depends(get_registry),
    store: ArtifactStore = Depends(get_store),
) -> SessionFinishResponse:
    """
    Finalize a session and upload its artifact.

    Returns 500 with code unknown_session if the session was already
    finalized or has expired, and storage_unavailable if the upload fails.
    """
    try:
        artifact, stored = await finalize_session(registry, store, request.sessionId, request.meta)
        return SessionFinishResponse(
            success=True,
            status=ArtifactStatus.UPLOADED,
            artifactId=stored.id,
            artifactName=stored.name,
            eventCount=artifact.counts.events,
        )
    except AppException as e:
        logger.warning(f"Finish failed for {request.sessionId}: {e.message}")
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to finish session {request.sessionId}: {e}", exc_info=True)
        raise internal_error("finish session", e)


@router.post("/chunk-beacon", response_model=ChunkResponse)
async def ingest_chunk_beacon(
    request: Request,
    registry: SessionRegistry = Depends(get_registry),
) -> ChunkResponse:
    """Append events sent with sendBeacon, authenticated by the session token."""
    try:
        payload = parse_beacon_body(await request.body())
        beacon = _beacon_model(BeaconChunkRequest, payload)
        verify_session_token(registry, beacon.sessionId, beacon.token)
        if not isinstance(beacon.events, list):
            raise BadRequest("events must be a list")

        session = registry.append(beacon.sessionId, beacon.events)
        logger.debug(f"Beacon appended {len(beacon.events)} events to {beacon.sessionId}")
        return ChunkResponse(
            success=True,
            message="Events buffered",
            eventsReceived=len(beacon.events),
            bufferedEvents=session.event_count,
        )
    except AppException as e:
        raise to_http_exception(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to ingest beacon chunk: {e}", exc_info=True)
        raise internal_error("ingest events", e)


@router.post("/finish-beacon", response_model=SessionFinishResponse)
async def finish_session_beacon(
    request: Request,
    response: Response,
    background_tasks: BackgroundTasks,
    registry: SessionRegistry = Depends(get_registry),
    store: ArtifactStore = Depends(get_store),
    config: Settings = Depends(get_settings),
) -> SessionFinishResponse:
    """
    Finalize a session from a sendBeacon request.

    With beacon_background_publish enabled the session is removed right away
    and the upload runs after the response is sent (202 accepted), so the
    closing page does not hold the connection open.
    """
    try:
        payload = parse_beacon_body(await request.body())
        beacon = _beacon_model(BeaconFinishRequest, payload)
        verify_session_token(registry, beacon.sessionId, beacon.token)

        if config.beacon_background_publish:
            name, artifact = close_session(registry, store, beacon.sessionId, beacon.meta)
            background_tasks.add_task(publish_in_background, store, name, artifact)
            response.status_code = status.HTTP_202_ACCEPTED
            logger.info(f"Accepted beacon finish for {beacon.sessionId}, publishing in background")
            return SessionFinishResponse(
                success=True,
                status=ArtifactStatus.ACCEPTED,
                artifactName=name,
                eventCount=artifact.counts.events,
            )

        artifact, stored = await finalize_session(registry, store, beacon.sessionId, beacon.meta)
        return SessionFinishResponse(
            success=True,
            status=ArtifactStatus.UPLOADED,
            artifactId=stored.id,
            artifactName=stored.name,
            eventCount=artifact.counts.events,
        )
    except AppException as e:
        raise to_http_exception(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to finish beacon session: {e}", exc_info=True)
        raise internal_error("finish session", e)

"""Stored recording endpoints: listing, download and merge."""
from urllib.parse import quote

from fastapi import APIRouter, Depends, Query, Response

from rrweb_uploader.auth.secret import verify_replay_secret
from rrweb_uploader.config import Settings
from rrweb_uploader.constants import ARTIFACT_MIME_TYPE, DEFAULT_FILE_LIST_LIMIT
from rrweb_uploader.dependencies import get_settings, get_store
from rrweb_uploader.schemas.artifact import ArtifactCounts
from rrweb_uploader.schemas.session import FileListResponse, MergeRequest, MergeResponse
from rrweb_uploader.services.recording import merge_artifacts
from rrweb_uploader.services.storage import ArtifactStore
from rrweb_uploader.utils.exceptions import AppException, internal_error, to_http_exception
from rrweb_uploader.utils.logger import logger

router = APIRouter(
    prefix="/replay",
    tags=["files"],
    dependencies=[Depends(verify_replay_secret)],
)


@router.get("/files", response_model=FileListResponse)
async def list_files(
    limit: int = Query(DEFAULT_FILE_LIST_LIMIT, ge=1, le=1000),
    store: ArtifactStore = Depends(get_store),
) -> FileListResponse:
    """List the most recent recordings in the artifact folder."""
    try:
        return FileListResponse(files=await store.list_files(limit=limit))
    except AppException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to list files: {e}", exc_info=True)
        raise internal_error("list files", e)


@router.get("/file/{file_id}")
async def get_file(
    file_id: str,
    store: ArtifactStore = Depends(get_store),
) -> Response:
    """Return the raw JSON content of a stored recording."""
    try:
        stored_file = await store.describe(file_id)
        content = await store.fetch(file_id)
    except AppException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to fetch file {file_id}: {e}", exc_info=True)
        raise internal_error("fetch file", e)

    return Response(
        content=content,
        media_type=f"{ARTIFACT_MIME_TYPE}; charset=utf-8",
        headers={"Content-Disposition": f"inline; filename*=UTF-8''{quote(stored_file.name or file_id, safe='')}"},
    )


@router.post("/merge", response_model=MergeResponse)
async def merge_files(
    request: MergeRequest,
    store: ArtifactStore = Depends(get_store),
    config: Settings = Depends(get_settings),
) -> MergeResponse:
    """
    Merge stored recordings into one continuous timeline.

    Recordings are concatenated in the order of fileIds, each rebased to
    start after the previous one ends plus the configured gap. With
    publish=true the merged recording is also uploaded.
    """
    try:
        result, stored = await merge_artifacts(
            store,
            request.fileIds,
            gap_ms=config.inter_chunk_gap_ms,
            publish=request.publish,
            name=request.name,
        )
        return MergeResponse(
            events=result.events,
            counts=ArtifactCounts(events=result.count),
            artifactId=stored.id if stored else None,
            artifactName=stored.name if stored else None,
        )
    except AppException as e:
        logger.warning(f"Merge of {len(request.fileIds)} files failed: {e.message}")
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to merge files: {e}", exc_info=True)
        raise internal_error("merge files", e)

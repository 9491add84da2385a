"""Shared-secret and session-token authentication."""
from typing import Optional
from fastapi import Depends, Header

from rrweb_uploader.config import Settings
from rrweb_uploader.constants import REPLAY_SECRET_HEADER
from rrweb_uploader.dependencies import get_settings
from rrweb_uploader.services.registry import ReplaySession, SessionRegistry
from rrweb_uploader.utils.exceptions import Unauthorized, authentication_error
from rrweb_uploader.utils.hashing import credentials_match
from rrweb_uploader.utils.logger import logger


def verify_replay_secret(
    replay_secret: Optional[str] = Header(None, alias=REPLAY_SECRET_HEADER),
    config: Settings = Depends(get_settings),
) -> None:
    """
    Verify the pre-shared secret header.

    Raises HTTPException if the header is missing or does not match. An
    unconfigured server secret rejects every request.
    """
    if not credentials_match(replay_secret, config.replay_secret):
        logger.debug("Rejected request with missing or invalid replay secret")
        raise authentication_error()


def verify_session_token(
    registry: SessionRegistry,
    session_id: str,
    token: Optional[str],
) -> ReplaySession:
    """
    Authenticate a beacon by the token minted at session start.

    The header secret is never accepted here. A session that is unknown, or
    that was created implicitly and has no token, fails the same way as a
    wrong token, so nothing is created or mutated for the caller.

    Args:
        registry: Live session registry
        session_id: Session the beacon claims to belong to
        token: Token echoed back by the client

    Returns:
        The authenticated session

    Raises:
        Unauthorized: If the token does not match the session's token
    """
    session = registry.get(session_id)
    expected = session.token if session is not None else None
    if not credentials_match(token, expected):
        logger.debug(f"Rejected beacon for session {session_id}")
        raise Unauthorized()
    return session

"""Token generation and constant-time credential comparison."""
import hmac
import secrets
from typing import Optional


def generate_session_token() -> str:
    """
    Generate a new session token.

    The token is handed out by /replay/start and echoed back by the client
    on the beacon path, where custom headers cannot be sent.

    Returns:
        A new token string (format: rst_xxxxxxxxxxxx)
    """
    random_part = secrets.token_urlsafe(32)
    return f"rst_{random_part}"


def credentials_match(provided: Optional[str], expected: Optional[str]) -> bool:
    """
    Compare a provided credential against the expected one.

    An empty or missing expected value never matches, so an unconfigured
    secret or a session without a token rejects every caller.

    Args:
        provided: The credential sent by the client
        expected: The credential held by the server

    Returns:
        True if both are non-empty and equal, False otherwise
    """
    if not provided or not expected:
        return False
    if not isinstance(provided, str):
        return False
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))

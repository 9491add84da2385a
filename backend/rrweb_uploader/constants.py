"""Application-wide constants."""

# Finish response status values
class ArtifactStatus:
    """Artifact publish status constants."""
    UPLOADED = "uploaded"
    ACCEPTED = "accepted"


# Session buffering defaults (all overridable through settings)
DEFAULT_IDLE_TIMEOUT_MS = 30 * 60 * 1000  # Abandoned captures are evicted after 30 minutes
DEFAULT_SWEEP_INTERVAL_MS = 60 * 1000
DEFAULT_INTER_CHUNK_GAP_MS = 1000

# Header carrying the pre-shared secret on the primary ingestion path
REPLAY_SECRET_HEADER = "X-Replay-Secret"

# Drive listing
DEFAULT_FILE_LIST_LIMIT = 50
ARTIFACT_MIME_TYPE = "application/json"

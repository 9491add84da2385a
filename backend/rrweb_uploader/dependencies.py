"""Request-scoped access to the components owned by the application."""
from fastapi import Request

from rrweb_uploader.config import Settings
from rrweb_uploader.services.registry import SessionRegistry
from rrweb_uploader.services.storage import ArtifactStore


def get_settings(request: Request) -> Settings:
    """Dependency for the application settings."""
    return request.app.state.settings


def get_registry(request: Request) -> SessionRegistry:
    """Dependency for the live session registry."""
    return request.app.state.registry


def get_store(request: Request) -> ArtifactStore:
    """Dependency for the artifact store."""
    return request.app.state.store

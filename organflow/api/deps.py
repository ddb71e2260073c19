from fastapi import Request

from organflow.core.config import Settings
from organflow.services.lifecycle_manager import OrganLifecycleManager


def get_manager(request: Request) -> OrganLifecycleManager:
    """The lifecycle manager built at startup (or injected by create_app)."""
    return request.app.state.manager


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings

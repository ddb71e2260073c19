from fastapi import APIRouter, Depends, HTTPException, status
import logging
from organflow.api.deps import get_app_settings, get_manager
from organflow.core.config import Settings
from organflow.schemas.ledger import ResetResponse
from organflow.services.lifecycle_manager import OrganLifecycleManager

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/reset", response_model=ResetResponse)
def reset_state(
    manager: OrganLifecycleManager = Depends(get_manager),
    app_settings: Settings = Depends(get_app_settings)
):
    """Clear all organs, requests and ledger events (demo/test environments only)."""
    if not app_settings.ALLOW_RESET:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="State reset is disabled"
        )
    removed = manager.reset()
    return ResetResponse(**removed)

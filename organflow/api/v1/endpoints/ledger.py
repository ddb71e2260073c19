from fastapi import APIRouter, Depends
from typing import List, Optional
from organflow.api.deps import get_manager
from organflow.schemas.ledger import AnalyticsResponse, LedgerEvent
from organflow.services.lifecycle_manager import OrganLifecycleManager

router = APIRouter()


@router.get("/ledger/", response_model=List[LedgerEvent])
def list_ledger(
    organ_id: Optional[int] = None,
    manager: OrganLifecycleManager = Depends(get_manager)
):
    """Lifecycle events, newest first."""
    return manager.list_ledger(organ_id)


@router.get("/analytics/", response_model=AnalyticsResponse)
def get_analytics(manager: OrganLifecycleManager = Depends(get_manager)):
    """Counts derived from the current organ and request records."""
    return manager.get_analytics()

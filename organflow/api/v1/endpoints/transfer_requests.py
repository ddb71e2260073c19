from fastapi import APIRouter, Depends, status
from typing import List, Optional
import logging
from organflow.api.deps import get_manager
from organflow.models.transfer_request import RequestStatus
from organflow.schemas.transfer_request import (
    TransferRequest,
    TransferRequestCreate,
    TransferRequestResolve,
)
from organflow.services.lifecycle_manager import OrganLifecycleManager

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/", response_model=TransferRequest, status_code=status.HTTP_201_CREATED)
def create_request(
    body: TransferRequestCreate,
    manager: OrganLifecycleManager = Depends(get_manager)
):
    """Request an available organ for another hospital. The organ becomes Requested."""
    request_id = manager.create_request(body.organ_id, body.requesting_hospital, body.owning_hospital)
    return manager.get_request(request_id)


@router.get("/", response_model=List[TransferRequest])
def list_requests(
    status: Optional[RequestStatus] = None,
    manager: OrganLifecycleManager = Depends(get_manager)
):
    """All transfer requests, newest first."""
    return manager.list_requests(status)


@router.get("/{request_id}", response_model=TransferRequest)
def get_request(
    request_id: str,
    manager: OrganLifecycleManager = Depends(get_manager)
):
    return manager.get_request(request_id)


@router.post("/{request_id}/resolve", response_model=TransferRequest)
def resolve_request(
    request_id: str,
    body: TransferRequestResolve,
    manager: OrganLifecycleManager = Depends(get_manager)
):
    """Accept (organ goes to the requesting hospital) or reject (organ is available again)."""
    return manager.resolve_request(request_id, body.decision)

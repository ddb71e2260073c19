from fastapi import APIRouter, Depends, status
from typing import List, Optional
import logging
from organflow.api.deps import get_manager
from organflow.models.organ import OrganStatus
from organflow.schemas.organ import (
    Organ,
    OrganCreate,
    OrganRequestCreate,
    OrganTransfer,
    OrganTransplant,
)
from organflow.schemas.transfer_request import TransferRequest
from organflow.services.lifecycle_manager import OrganLifecycleManager

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/", response_model=Organ, status_code=status.HTTP_201_CREATED)
def register_organ(
    organ: OrganCreate,
    manager: OrganLifecycleManager = Depends(get_manager)
):
    """Register a donated organ. It starts in the Donated state."""
    return manager.register(
        donor=organ.donor,
        organ_type=organ.organ_type,
        blood_type=organ.blood_type,
        hospital=organ.hospital,
        token_uri=organ.token_uri,
    )


@router.get("/", response_model=List[Organ])
def list_organs(
    status: Optional[OrganStatus] = None,
    manager: OrganLifecycleManager = Depends(get_manager)
):
    """List organs in registration order, optionally filtered by status."""
    return manager.list_organs(status)


@router.get("/{organ_id}", response_model=Organ)
def get_organ(
    organ_id: int,
    manager: OrganLifecycleManager = Depends(get_manager)
):
    return manager.get_organ(organ_id)


@router.post("/{organ_id}/transfer", response_model=Organ)
def transfer_organ(
    organ_id: int,
    transfer: OrganTransfer,
    manager: OrganLifecycleManager = Depends(get_manager)
):
    """Send an organ to a hospital; sending it to the hospital it is already bound for marks arrival."""
    return manager.transfer(organ_id, transfer.hospital)


@router.post("/{organ_id}/request", response_model=TransferRequest, status_code=status.HTTP_201_CREATED)
def request_organ(
    organ_id: int,
    body: OrganRequestCreate,
    manager: OrganLifecycleManager = Depends(get_manager)
):
    return manager.request_transfer(organ_id, body.requesting_hospital, body.owning_hospital)


@router.post("/{organ_id}/transplant", response_model=Organ)
def transplant_organ(
    organ_id: int,
    transplant: OrganTransplant,
    manager: OrganLifecycleManager = Depends(get_manager)
):
    return manager.transplant(organ_id, transplant.recipient_details, recipient=transplant.recipient)

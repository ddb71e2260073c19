from pydantic import BaseModel
from typing import Optional
from datetime import datetime
from organflow.models.transfer_request import RequestStatus
from organflow.schemas.organ import CAMEL_CONFIG


class TransferRequest(BaseModel):
    model_config = CAMEL_CONFIG

    request_id: str
    organ_id: int
    requesting_hospital: str
    owning_hospital: str
    status: RequestStatus = RequestStatus.PENDING
    created_at: datetime
    resolved_at: Optional[datetime] = None


class TransferRequestCreate(BaseModel):
    model_config = CAMEL_CONFIG

    organ_id: int
    requesting_hospital: str
    owning_hospital: Optional[str] = None


class TransferRequestResolve(BaseModel):
    model_config = CAMEL_CONFIG

    # Plain string so that unknown decisions reach the manager and fail as InvalidArgumentError
    decision: str

from pydantic import BaseModel, Field
from typing import Dict, List
from datetime import datetime
from organflow.models.ledger_event import LedgerEventType
from organflow.schemas.organ import CAMEL_CONFIG, Organ
from organflow.schemas.transfer_request import TransferRequest


class LedgerEvent(BaseModel):
    model_config = CAMEL_CONFIG

    id: str
    type: LedgerEventType
    organ_id: int
    timestamp: datetime
    tx_hash: str
    details: str = ""


class LifecycleSnapshot(BaseModel):
    """Everything the lifecycle manager owns, as loaded from and saved to a store."""
    model_config = CAMEL_CONFIG

    organs: List[Organ] = Field(default_factory=list)
    requests: List[TransferRequest] = Field(default_factory=list)
    ledger: List[LedgerEvent] = Field(default_factory=list)
    next_id: int = 0


class AnalyticsResponse(BaseModel):
    model_config = CAMEL_CONFIG

    total_organs: int
    transplanted: int
    in_transit: int
    requested: int
    available: int
    pending_requests: int
    ledger_events: int
    by_organ_type: Dict[str, int]


class ResetResponse(BaseModel):
    model_config = CAMEL_CONFIG

    success: bool = True
    organs_removed: int
    requests_removed: int
    ledger_events_removed: int

# Database models
from .organ import OrganRow, OrganStatus, LifecycleStateRow
from .transfer_request import TransferRequestRow, RequestStatus
from .ledger_event import LedgerEventRow, LedgerEventType

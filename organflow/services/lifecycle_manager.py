"""
Organ lifecycle manager.

Owns every organ, transfer request and ledger event, and enforces the legal
transitions between organ states:

    (new) --register--> Donated
    Donated | Requested --transfer(h)--> Transferred (hospital = h)
    Transferred --transfer(same hospital)--> Donated            (arrival)
    Donated --create_request--> Requested
    Requested --resolve(accepted)--> Transferred (hospital = requesting hospital)
    Requested --resolve(rejected)--> Donated
    Transferred --transplant--> Transplanted                    (terminal)

All state sits behind one lock. After each mutation the full snapshot is
written through the configured store; a failed or slow write is logged and
retried on the next mutation, never rolled back. At most one write is in
flight at a time.

Ledger events are recorded with a synthetic reference under the lock. When a
relay is configured, events are submitted to it on a background worker and
the relay's reference replaces the synthetic one once it answers.
"""
import logging
import threading
import uuid
from collections import Counter
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Union

from pydantic import ValidationError

from organflow.core.exceptions import (
    InvalidArgumentError,
    InvalidStateError,
    LedgerUnavailableError,
    NotFoundError,
    PersistenceError,
)
from organflow.models.ledger_event import LedgerEventType
from organflow.models.organ import OrganStatus
from organflow.models.transfer_request import RequestStatus
from organflow.schemas.ledger import AnalyticsResponse, LedgerEvent, LifecycleSnapshot
from organflow.schemas.organ import Organ, RecipientDetails
from organflow.schemas.transfer_request import TransferRequest
from organflow.services.ledger_gateway import LedgerGateway, synthetic_tx_hash
from organflow.services.snapshot_store import SnapshotStore

logger = logging.getLogger(__name__)

TRANSFERABLE_STATUSES = (OrganStatus.DONATED, OrganStatus.REQUESTED)
REQUESTABLE_STATUSES = (OrganStatus.DONATED,)
REQUIRED_RECIPIENT_FIELDS = ("name", "hospital", "surgeon")
DECISIONS = {
    "accepted": RequestStatus.ACCEPTED,
    "rejected": RequestStatus.REJECTED,
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _require_text(value: Optional[str], field: str) -> str:
    if value is None or not str(value).strip():
        raise InvalidArgumentError(f"{field} is required")
    return str(value).strip()


class OrganLifecycleManager:
    """Single owner of lifecycle state; inject one instance into the HTTP layer."""

    def __init__(
        self,
        store: SnapshotStore,
        ledger_gateway: Optional[LedgerGateway] = None,
        persist_timeout: float = 5.0,
        default_owning_hospital: str = "Unknown Hospital",
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.ledger_gateway = ledger_gateway
        self.persist_timeout = persist_timeout
        self.default_owning_hospital = default_owning_hospital
        self._clock = clock or _utcnow

        self._lock = threading.RLock()
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="snapshot-flush")
        self._pending_write: Optional[Future] = None
        self._relay = (
            ThreadPoolExecutor(max_workers=1, thread_name_prefix="ledger-relay")
            if ledger_gateway is not None else None
        )
        self._organs: Dict[int, Organ] = {}
        self._requests: Dict[str, TransferRequest] = {}
        self._ledger: List[LedgerEvent] = []
        self._next_id = 0
        self._dirty = False

    # ------------------------------------------------------------------
    # Startup / shutdown
    # ------------------------------------------------------------------

    def load(self) -> None:
        """Replace in-memory state with the store's last snapshot. Called once at startup."""
        snapshot = self.store.load_snapshot()
        with self._lock:
            self._organs = {organ.id: organ for organ in snapshot.organs}
            self._requests = {request.request_id: request for request in snapshot.requests}
            self._ledger = list(snapshot.ledger)
            highest = max(self._organs, default=-1)
            self._next_id = max(snapshot.next_id, highest + 1)
            self._dirty = False
        logger.info(
            f"Lifecycle state loaded from {self.store.name} store: "
            f"{len(self._organs)} organs, {len(self._requests)} requests, {len(self._ledger)} ledger events"
        )

    def close(self) -> None:
        # Relay replies take the lock, so drain them before flushing
        if self._relay is not None:
            self._relay.shutdown(wait=True)
        with self._lock:
            if self._dirty:
                try:
                    self.flush()
                except PersistenceError as e:
                    logger.error(f"Final snapshot flush failed, changes since the last good write are lost: {e}")
        self._executor.shutdown(wait=True)
        self.store.close()
        if self.ledger_gateway:
            self.ledger_gateway.close()

    def wait_for_relay(self, timeout: Optional[float] = None) -> None:
        """Block until every ledger submission queued so far has been answered. Do not call with the lock held."""
        if self._relay is not None:
            self._relay.submit(lambda: None).result(timeout=timeout)

    @property
    def is_empty(self) -> bool:
        with self._lock:
            return not self._organs and not self._requests and not self._ledger

    @property
    def has_unsaved_changes(self) -> bool:
        return self._dirty

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def register(
        self,
        donor: str,
        organ_type: str,
        blood_type: str,
        hospital: Optional[str] = None,
        token_uri: Optional[str] = None,
    ) -> Organ:
        """Create a new organ in the Donated state with the next sequential id."""
        with self._lock:
            organ = Organ(
                id=self._next_id,
                organ_type=organ_type,
                blood_type=blood_type,
                status=OrganStatus.DONATED,
                donor=donor,
                hospital=hospital.strip() if hospital and hospital.strip() else None,
                token_uri=token_uri,
                created_at=self._now(),
            )
            self._organs[organ.id] = organ
            self._next_id += 1

            self._record(
                LedgerEventType.ORGAN_REGISTERED,
                organ.id,
                f"{organ.organ_type} ({organ.blood_type}) from donor {organ.donor} registered",
            )
            self._persist()
            logger.info(f"Registered organ {organ.id}: {organ.organ_type} {organ.blood_type}")
            return organ.model_copy(deep=True)

    def transfer(self, organ_id: int, hospital: str) -> Organ:
        """
        Move an organ to a hospital.

        Re-transferring a Transferred organ to the hospital it is already
        assigned to is an arrival: the organ becomes Donated (available) again
        instead of starting a new transit leg. Transferring a Requested organ
        directly rejects its pending request.
        """
        hospital = _require_text(hospital, "hospital")
        with self._lock:
            organ = self._get_organ(organ_id)
            is_arrival = organ.status == OrganStatus.TRANSFERRED and organ.hospital == hospital

            if is_arrival:
                organ.status = OrganStatus.DONATED
                self._record(
                    LedgerEventType.ORGAN_ARRIVED,
                    organ.id,
                    f"{organ.organ_type} #{organ.id} arrived at {hospital} and is available",
                )
            elif organ.status in TRANSFERABLE_STATUSES:
                superseded = self._close_pending_request(organ.id)
                self._move_to_hospital(
                    organ, hospital,
                    note=f"{superseded.request_id} superseded" if superseded else None,
                )
            else:
                raise InvalidStateError(
                    f"Organ {organ.id} cannot be transferred to {hospital} while {organ.status.value}"
                    + (f" at {organ.hospital}" if organ.status == OrganStatus.TRANSFERRED else "")
                )

            self._persist()
            logger.info(f"Organ {organ.id} {'arrived at' if is_arrival else 'transferred to'} {hospital}")
            return organ.model_copy(deep=True)

    def create_request(
        self,
        organ_id: int,
        requesting_hospital: str,
        owning_hospital: Optional[str] = None,
    ) -> str:
        """Open a pending transfer request and mark the organ Requested. Returns the request id."""
        with self._lock:
            organ = self._get_organ(organ_id)
            requesting_hospital = _require_text(requesting_hospital, "requesting hospital")

            if organ.status not in REQUESTABLE_STATUSES:
                raise InvalidStateError(
                    f"Organ {organ.id} cannot be requested while {organ.status.value}"
                )
            pending = self._pending_request_for(organ.id)
            if pending:
                raise InvalidStateError(
                    f"Organ {organ.id} already has pending request {pending.request_id}"
                )

            if owning_hospital and owning_hospital.strip():
                owning_hospital = owning_hospital.strip()
            else:
                owning_hospital = organ.hospital or self.default_owning_hospital

            request = TransferRequest(
                request_id=f"REQ-{len(self._requests) + 1:03d}",
                organ_id=organ.id,
                requesting_hospital=requesting_hospital,
                owning_hospital=owning_hospital,
                status=RequestStatus.PENDING,
                created_at=self._now(),
            )
            self._requests[request.request_id] = request
            organ.status = OrganStatus.REQUESTED

            self._record(
                LedgerEventType.ORGAN_REQUESTED,
                organ.id,
                f"{requesting_hospital} requested {organ.organ_type} #{organ.id} from {owning_hospital} "
                f"({request.request_id})",
            )
            self._persist()
            logger.info(f"Request {request.request_id}: {requesting_hospital} requested organ {organ.id}")
            return request.request_id

    def request_transfer(
        self,
        organ_id: int,
        requesting_hospital: str,
        owning_hospital: Optional[str] = None,
    ) -> TransferRequest:
        """Organ-side form of create_request that returns the created request."""
        with self._lock:
            request_id = self.create_request(organ_id, requesting_hospital, owning_hospital)
            return self._requests[request_id].model_copy(deep=True)

    def resolve_request(self, request_id: str, decision: str) -> TransferRequest:
        """
        Accept or reject a pending request.

        Accepting transfers the organ to the requesting hospital; rejecting
        returns it to Donated with its hospital unchanged. A request can be
        resolved only once.
        """
        with self._lock:
            request = self._requests.get(request_id)
            if request is None:
                raise NotFoundError(f"Request {request_id} not found")

            new_status = DECISIONS.get(str(decision).strip().lower()) if decision is not None else None
            if new_status is None:
                raise InvalidArgumentError(
                    f"Invalid decision {decision!r}; expected one of {', '.join(DECISIONS)}"
                )

            if request.status != RequestStatus.PENDING:
                raise InvalidStateError(
                    f"Request {request.request_id} was already {request.status.value}"
                )

            organ = self._get_organ(request.organ_id)

            if new_status == RequestStatus.ACCEPTED:
                if organ.status != OrganStatus.REQUESTED:
                    raise InvalidStateError(
                        f"Organ {organ.id} is {organ.status.value}, request {request.request_id} can no longer be accepted"
                    )
                self._move_to_hospital(organ, request.requesting_hospital, note=f"{request.request_id} accepted")
            else:
                if organ.status == OrganStatus.REQUESTED:
                    organ.status = OrganStatus.DONATED
                self._record(
                    LedgerEventType.REQUEST_REJECTED,
                    organ.id,
                    f"{request.owning_hospital} rejected {request.request_id} from {request.requesting_hospital}",
                )

            request.status = new_status
            request.resolved_at = self._now()

            self._persist()
            logger.info(f"Request {request.request_id} {new_status.value} for organ {organ.id}")
            return request.model_copy(deep=True)

    def transplant(
        self,
        organ_id: int,
        recipient_details: Union[RecipientDetails, Dict[str, Any]],
        recipient: Optional[str] = None,
    ) -> Organ:
        """Mark a Transferred organ as transplanted into a recipient."""
        with self._lock:
            organ = self._get_organ(organ_id)
            if organ.status != OrganStatus.TRANSFERRED:
                raise InvalidStateError(
                    f"Organ {organ.id} must be Transferred to be transplanted, but is {organ.status.value}"
                )

            details = self._validate_recipient_details(recipient_details)
            if details.transplant_date is None:
                details.transplant_date = self._now().date()

            organ.status = OrganStatus.TRANSPLANTED
            organ.recipient = recipient.strip() if recipient and recipient.strip() else details.name
            organ.recipient_details = details

            self._record(
                LedgerEventType.ORGAN_TRANSPLANTED,
                organ.id,
                f"{organ.organ_type} #{organ.id} transplanted into {details.name} at {details.hospital} "
                f"by {details.surgeon}",
            )
            self._persist()
            logger.info(f"Organ {organ.id} transplanted at {details.hospital}")
            return organ.model_copy(deep=True)

    def reset(self) -> Dict[str, int]:
        """Drop every organ, request and ledger event. Demo/test use only."""
        with self._lock:
            removed = {
                "organs_removed": len(self._organs),
                "requests_removed": len(self._requests),
                "ledger_events_removed": len(self._ledger),
            }
            self._organs = {}
            self._requests = {}
            self._ledger = []
            self._next_id = 0
            self._persist()
            logger.warning(f"Lifecycle state reset: {removed}")
            return removed

    def flush(self) -> None:
        """Write the current snapshot now, raising PersistenceError on failure."""
        with self._lock:
            pending = self._pending_write
            if pending is not None and not pending.done():
                try:
                    pending.result(timeout=self.persist_timeout)
                except FuturesTimeoutError as e:
                    self._dirty = True
                    raise PersistenceError(
                        f"Previous snapshot write to {self.store.name} store still running "
                        f"after {self.persist_timeout}s"
                    ) from e
                except PersistenceError as e:
                    logger.warning(f"Earlier snapshot write failed, writing current state instead: {e}")
            self._write_snapshot()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_organs(self, status: Optional[Union[OrganStatus, str]] = None) -> List[Organ]:
        status = self._coerce_status(status)
        with self._lock:
            return [
                organ.model_copy(deep=True)
                for organ in self._organs.values()
                if status is None or organ.status == status
            ]

    def get_organ(self, organ_id: int) -> Organ:
        with self._lock:
            return self._get_organ(organ_id).model_copy(deep=True)

    def list_requests(self, status: Optional[Union[RequestStatus, str]] = None) -> List[TransferRequest]:
        if status is not None and not isinstance(status, RequestStatus):
            try:
                status = RequestStatus(status)
            except ValueError:
                raise InvalidArgumentError(f"Unknown request status {status!r}")
        with self._lock:
            # reverse=True keeps ties in input order, so newest-inserted wins ties
            newest_first = sorted(reversed(list(self._requests.values())),
                                  key=lambda r: r.created_at, reverse=True)
            return [
                request.model_copy(deep=True)
                for request in newest_first
                if status is None or request.status == status
            ]

    def get_request(self, request_id: str) -> TransferRequest:
        with self._lock:
            request = self._requests.get(request_id)
            if request is None:
                raise NotFoundError(f"Request {request_id} not found")
            return request.model_copy(deep=True)

    def list_ledger(self, organ_id: Optional[int] = None) -> List[LedgerEvent]:
        with self._lock:
            newest_first = sorted(reversed(self._ledger), key=lambda e: e.timestamp, reverse=True)
            return [
                event.model_copy()
                for event in newest_first
                if organ_id is None or event.organ_id == organ_id
            ]

    def get_analytics(self) -> AnalyticsResponse:
        with self._lock:
            statuses = Counter(organ.status for organ in self._organs.values())
            return AnalyticsResponse(
                total_organs=len(self._organs),
                transplanted=statuses[OrganStatus.TRANSPLANTED],
                in_transit=statuses[OrganStatus.TRANSFERRED],
                requested=statuses[OrganStatus.REQUESTED],
                available=statuses[OrganStatus.DONATED],
                pending_requests=sum(
                    1 for r in self._requests.values() if r.status == RequestStatus.PENDING
                ),
                ledger_events=len(self._ledger),
                by_organ_type=dict(Counter(organ.organ_type for organ in self._organs.values())),
            )

    def snapshot(self) -> LifecycleSnapshot:
        with self._lock:
            return self._snapshot()

    # ------------------------------------------------------------------
    # Internals (call with the lock held)
    # ------------------------------------------------------------------

    def _get_organ(self, organ_id: int) -> Organ:
        organ = self._organs.get(organ_id)
        if organ is None:
            raise NotFoundError(f"Organ {organ_id} not found")
        return organ

    def _pending_request_for(self, organ_id: int) -> Optional[TransferRequest]:
        for request in self._requests.values():
            if request.organ_id == organ_id and request.status == RequestStatus.PENDING:
                return request
        return None

    def _close_pending_request(self, organ_id: int) -> Optional[TransferRequest]:
        """Reject the organ's pending request, if any, because the organ is moving elsewhere."""
        pending = self._pending_request_for(organ_id)
        if pending is not None:
            pending.status = RequestStatus.REJECTED
            pending.resolved_at = self._now()
        return pending

    def _move_to_hospital(self, organ: Organ, hospital: str, note: Optional[str] = None) -> None:
        previous = organ.hospital
        organ.status = OrganStatus.TRANSFERRED
        organ.hospital = hospital
        details = f"{organ.organ_type} #{organ.id} en route from {previous or 'donor site'} to {hospital}"
        if note:
            details += f" ({note})"
        self._record(LedgerEventType.ORGAN_TRANSFERRED, organ.id, details)

    def _validate_recipient_details(self, recipient_details) -> RecipientDetails:
        if recipient_details is None:
            raise InvalidArgumentError("recipient details are required")
        if isinstance(recipient_details, RecipientDetails):
            details = recipient_details.model_copy(deep=True)
        else:
            try:
                details = RecipientDetails.model_validate(recipient_details)
            except ValidationError as e:
                raise InvalidArgumentError(f"Invalid recipient details: {e}") from e

        missing = [
            field for field in REQUIRED_RECIPIENT_FIELDS
            if not (getattr(details, field) or "").strip()
        ]
        if missing:
            raise InvalidArgumentError(f"Recipient details missing: {', '.join(missing)}")
        return details

    def _coerce_status(self, status) -> Optional[OrganStatus]:
        if status is None or isinstance(status, OrganStatus):
            return status
        try:
            return OrganStatus(status)
        except ValueError:
            raise InvalidArgumentError(f"Unknown organ status {status!r}")

    def _now(self) -> datetime:
        now = self._clock()
        # Ledger timestamps never go backwards, even if the wall clock does
        if self._ledger and now < self._ledger[-1].timestamp:
            return self._ledger[-1].timestamp
        return now

    def _record(self, event_type: LedgerEventType, organ_id: int, details: str) -> LedgerEvent:
        timestamp = self._now()
        previous = self._ledger[-1].tx_hash if self._ledger else None
        event = LedgerEvent(
            id=str(uuid.uuid4()),
            type=event_type,
            organ_id=organ_id,
            timestamp=timestamp,
            tx_hash=synthetic_tx_hash(previous, event_type.value, organ_id, details, timestamp.isoformat()),
            details=details,
        )
        self._ledger.append(event)
        if self._relay is not None:
            self._relay.submit(self._relay_event, event.id, event_type.value, organ_id, details)
        return event

    def _relay_event(self, event_id: str, event_type: str, organ_id: int, details: str) -> None:
        """Runs on the relay worker. The lock is taken only to apply the reply."""
        try:
            tx_hash = self.ledger_gateway.submit(event_type, organ_id, details)
        except LedgerUnavailableError as e:
            logger.warning(f"Ledger relay unavailable, keeping synthetic reference for {event_type}: {e}")
            return

        with self._lock:
            for index in range(len(self._ledger) - 1, -1, -1):
                if self._ledger[index].id == event_id:
                    self._ledger[index] = self._ledger[index].model_copy(update={"tx_hash": tx_hash})
                    self._persist()
                    return
        # Event was dropped by a reset while the relay was answering
        logger.info(f"Ledger reference {tx_hash} arrived for discarded event {event_id}")

    def _snapshot(self) -> LifecycleSnapshot:
        return LifecycleSnapshot(
            organs=[organ.model_copy(deep=True) for organ in self._organs.values()],
            requests=[request.model_copy() for request in self._requests.values()],
            ledger=list(self._ledger),
            next_id=self._next_id,
        )

    def _persist(self) -> None:
        """Best-effort write after a mutation; the in-memory change stands either way."""
        pending = self._pending_write
        if pending is not None and not pending.done():
            # Still writing an older snapshot; the next mutation or flush() writes this state
            self._dirty = True
            logger.warning(f"Snapshot write to {self.store.name} store still running, deferring")
            return
        try:
            self._write_snapshot()
        except PersistenceError as e:
            logger.error(f"Snapshot not persisted, will retry on next change: {e}")

    def _write_snapshot(self) -> None:
        future = self._executor.submit(self.store.save_snapshot, self._snapshot())
        self._pending_write = future
        try:
            future.result(timeout=self.persist_timeout)
        except FuturesTimeoutError as e:
            self._dirty = True
            raise PersistenceError(
                f"Snapshot write to {self.store.name} store timed out after {self.persist_timeout}s"
            ) from e
        except PersistenceError:
            self._dirty = True
            raise
        self._dirty = False

"""
Snapshot persistence for the lifecycle manager.

Two interchangeable stores share one interface: a JSON file (default) and a
SQL database reached through SQLAlchemy. The store is chosen once at startup
by build_snapshot_store() and never mixed at runtime.
"""
import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import ValidationError
from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError

from organflow.core.config import Settings
from organflow.core.exceptions import PersistenceError
from organflow.database import get_engine, get_session_factory, init_db
from organflow.models import (
    LedgerEventRow,
    LifecycleStateRow,
    OrganRow,
    TransferRequestRow,
)
from organflow.schemas.ledger import LedgerEvent, LifecycleSnapshot
from organflow.schemas.organ import Organ, RecipientDetails
from organflow.schemas.transfer_request import TransferRequest

logger = logging.getLogger(__name__)

STATE_ROW_ID = 1


class SnapshotStore:
    """Load/save interface the lifecycle manager persists through."""

    name = "abstract"

    def load_snapshot(self) -> LifecycleSnapshot:
        raise NotImplementedError

    def save_snapshot(self, snapshot: LifecycleSnapshot) -> None:
        raise NotImplementedError

    def close(self) -> None:
        pass


class JsonFileSnapshotStore(SnapshotStore):
    """Stores the whole snapshot as one JSON document on disk."""

    name = "file"

    def __init__(self, path: str):
        self.path = Path(path)

    def load_snapshot(self) -> LifecycleSnapshot:
        if not self.path.exists():
            logger.info(f"Snapshot file {self.path} not found, starting with empty state")
            return LifecycleSnapshot()
        try:
            raw = self.path.read_text(encoding="utf-8")
            if not raw.strip():
                return LifecycleSnapshot()
            return LifecycleSnapshot.model_validate_json(raw)
        except (OSError, ValidationError, ValueError) as e:
            raise PersistenceError(f"Could not read snapshot file {self.path}: {e}") from e

    def save_snapshot(self, snapshot: LifecycleSnapshot) -> None:
        payload = snapshot.model_dump_json(by_alias=True, indent=2)
        tmp_path = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            # Write next to the target, then swap in, so a crash leaves the last good snapshot
            fd, tmp_path = tempfile.mkstemp(prefix=f".{self.path.name}.", dir=str(self.path.parent))
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(payload)
            os.replace(tmp_path, self.path)
            tmp_path = None
        except OSError as e:
            raise PersistenceError(f"Could not write snapshot file {self.path}: {e}") from e
        finally:
            if tmp_path and os.path.exists(tmp_path):
                os.unlink(tmp_path)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes even for timezone-aware columns
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class DatabaseSnapshotStore(SnapshotStore):
    """Stores the snapshot in relational tables, replacing every row on save."""

    name = "database"

    def __init__(self, database_url: str, pool_options: Optional[Dict[str, Any]] = None):
        self.engine = get_engine(database_url, pool_options)
        self.session_factory = get_session_factory(self.engine)
        try:
            init_db(self.engine)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Database initialization failed: {e}") from e

    def load_snapshot(self) -> LifecycleSnapshot:
        try:
            with self.session_factory() as session:
                organ_rows = session.scalars(select(OrganRow).order_by(OrganRow.id)).all()
                request_rows = session.scalars(
                    select(TransferRequestRow).order_by(TransferRequestRow.position)
                ).all()
                event_rows = session.scalars(
                    select(LedgerEventRow).order_by(LedgerEventRow.position)
                ).all()
                state = session.get(LifecycleStateRow, STATE_ROW_ID)

                organs = [
                    Organ(
                        id=row.id,
                        organ_type=row.organ_type,
                        blood_type=row.blood_type,
                        status=row.status,
                        donor=row.donor,
                        hospital=row.hospital,
                        recipient=row.recipient,
                        recipient_details=(
                            RecipientDetails.model_validate(row.recipient_details)
                            if row.recipient_details else None
                        ),
                        token_uri=row.token_uri,
                        created_at=_as_utc(row.created_at),
                    )
                    for row in organ_rows
                ]
                requests = [
                    TransferRequest(
                        request_id=row.request_id,
                        organ_id=row.organ_id,
                        requesting_hospital=row.requesting_hospital,
                        owning_hospital=row.owning_hospital,
                        status=row.status,
                        created_at=_as_utc(row.created_at),
                        resolved_at=_as_utc(row.resolved_at),
                    )
                    for row in request_rows
                ]
                ledger = [
                    LedgerEvent(
                        id=row.id,
                        type=row.event_type,
                        organ_id=row.organ_id,
                        timestamp=_as_utc(row.timestamp),
                        tx_hash=row.tx_hash,
                        details=row.details or "",
                    )
                    for row in event_rows
                ]
                next_id = state.next_id if state else (max((o.id for o in organs), default=-1) + 1)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not load snapshot from database: {e}") from e

        logger.info(f"Loaded {len(organs)} organs, {len(requests)} requests, {len(ledger)} ledger events from database")
        return LifecycleSnapshot(organs=organs, requests=requests, ledger=ledger, next_id=next_id)

    def save_snapshot(self, snapshot: LifecycleSnapshot) -> None:
        session = self.session_factory()
        try:
            # Children first so the organ foreign keys never dangle mid-transaction
            session.execute(delete(TransferRequestRow))
            session.execute(delete(LedgerEventRow))
            session.execute(delete(OrganRow))

            session.add_all(
                OrganRow(
                    id=organ.id,
                    organ_type=organ.organ_type,
                    blood_type=organ.blood_type,
                    status=organ.status,
                    donor=organ.donor,
                    hospital=organ.hospital,
                    recipient=organ.recipient,
                    recipient_details=(
                        organ.recipient_details.model_dump(mode="json")
                        if organ.recipient_details else None
                    ),
                    token_uri=organ.token_uri,
                    created_at=organ.created_at,
                )
                for organ in snapshot.organs
            )
            session.flush()
            session.add_all(
                TransferRequestRow(
                    request_id=request.request_id,
                    position=position,
                    organ_id=request.organ_id,
                    requesting_hospital=request.requesting_hospital,
                    owning_hospital=request.owning_hospital,
                    status=request.status,
                    created_at=request.created_at,
                    resolved_at=request.resolved_at,
                )
                for position, request in enumerate(snapshot.requests)
            )
            session.add_all(
                LedgerEventRow(
                    id=event.id,
                    position=position,
                    event_type=event.type,
                    organ_id=event.organ_id,
                    timestamp=event.timestamp,
                    tx_hash=event.tx_hash,
                    details=event.details,
                )
                for position, event in enumerate(snapshot.ledger)
            )

            state = session.get(LifecycleStateRow, STATE_ROW_ID)
            if state:
                state.next_id = snapshot.next_id
            else:
                session.add(LifecycleStateRow(id=STATE_ROW_ID, next_id=snapshot.next_id))

            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            raise PersistenceError(f"Could not save snapshot to database: {e}") from e
        finally:
            session.close()

    def close(self) -> None:
        self.engine.dispose()


def build_snapshot_store(settings: Settings) -> SnapshotStore:
    """Pick the store once at startup: the database when DATABASE_URL is set, otherwise the JSON file."""
    if settings.DATABASE_URL:
        logger.info("Persisting lifecycle state to database")
        return DatabaseSnapshotStore(settings.DATABASE_URL, pool_options=settings.db_pool_options)
    logger.info(f"Persisting lifecycle state to {settings.SNAPSHOT_FILE}")
    return JsonFileSnapshotStore(settings.SNAPSHOT_FILE)
